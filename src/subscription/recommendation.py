# This module recommends a subscription tier from a user's monthly usage history.
# It exists so the pricing page and plan-change flows can explain why a plan fits.
# Each resource is matched to the cheapest tier that covers its average, and the highest wins.
# Yearly billing is always recommended because it carries the largest discount.

from __future__ import annotations

from typing import Any

from src.subscription.config import RESOURCES, TIER_CONFIGS, TIER_ORDER, get_price
from src.subscription.store import USAGE_COLUMNS

HISTORY_MONTHS = 6

RESOURCE_NAMES: dict[str, str] = {
    "applications": "applications",
    "cvs": "CVs",
    "interviews": "interview sessions",
    "compensation": "compensation analyses",
    "contracts": "contract reviews",
    "ai_avatar_interviews": "AI avatar interviews",
}


def get_usage_averages(snapshots: list[dict[str, Any]]) -> dict[str, Any]:
    months = len(snapshots)
    if months == 0:
        return {**{resource: 0.0 for resource in RESOURCES}, "months_tracked": 0}

    averages: dict[str, Any] = {}
    for resource in RESOURCES:
        column = USAGE_COLUMNS[resource]
        total = sum(int(snapshot.get(column) or 0) for snapshot in snapshots)
        averages[resource] = round(total / months, 1)
    averages["months_tracked"] = months
    return averages


def find_lowest_tier_that_fits(resource: str, average: float) -> str:
    if average == 0:
        return "momentum"
    for tier in TIER_ORDER:
        limit = TIER_CONFIGS[tier].limits[resource]
        if limit == -1:
            return tier
        if limit == 0:
            continue
        if average <= limit:
            return tier
    return "elite"


def build_savings(tier: str) -> dict[str, float]:
    monthly = get_price(tier, "monthly")
    quarterly = get_price(tier, "quarterly")
    yearly = get_price(tier, "yearly")
    return {
        "monthly_price": monthly,
        "quarterly_price": quarterly,
        "yearly_price": yearly,
        "monthly_savings": 0,
        "quarterly_savings": monthly * 12 - quarterly * 4,
        "yearly_savings": monthly * 12 - yearly,
    }


def _format_average(value: float) -> str:
    return f"{value:g}"


def build_reason(averages: dict[str, Any], tier: str) -> str:
    name = TIER_CONFIGS[tier].display_name
    months = int(averages["months_tracked"])
    if months == 0:
        return f"We recommend {name} as a great starting point."

    top = sorted(
        ((resource, averages[resource]) for resource in RESOURCES if averages[resource] > 0),
        key=lambda item: item[1],
        reverse=True,
    )[:2]

    if months == 1:
        if not top:
            return f"Based on your first month, {name} is a good fit for your needs."
        resource, average = top[0]
        return (
            f"Based on your first month, you're using about {_format_average(average)} "
            f"{RESOURCE_NAMES[resource]}. The {name} plan covers your needs."
        )

    if not top:
        return f"Based on {months} months of activity, {name} is a great fit for your usage pattern."
    if len(top) == 1:
        resource, average = top[0]
        return (
            f"Based on {months} months of activity, you average {_format_average(average)} "
            f"{RESOURCE_NAMES[resource]}. The {name} plan covers all your needs."
        )

    (first, first_avg), (second, second_avg) = top
    return (
        f"Based on {months} months of activity, you average {_format_average(first_avg)} "
        f"{RESOURCE_NAMES[first]} and {_format_average(second_avg)} {RESOURCE_NAMES[second]}. "
        f"The {name} plan covers all your needs."
    )


def recommend_tier(averages: dict[str, Any]) -> dict[str, Any]:
    """Pick the highest tier any single resource needs and explain the choice."""

    comparison: dict[str, Any] = {}
    recommended = "momentum"
    for resource in RESOURCES:
        average = averages[resource]
        fits_in = find_lowest_tier_that_fits(resource, average)
        comparison[resource] = {
            "average": average,
            "momentum_limit": TIER_CONFIGS["momentum"].limits[resource],
            "accelerate_limit": TIER_CONFIGS["accelerate"].limits[resource],
            "elite_limit": TIER_CONFIGS["elite"].limits[resource],
            "fits_in": fits_in,
        }
        if TIER_ORDER.index(fits_in) > TIER_ORDER.index(recommended):
            recommended = fits_in

    return {
        "recommended_tier": recommended,
        "recommended_billing_period": "yearly",
        "comparison": comparison,
        "savings": build_savings(recommended),
        "reason": build_reason(averages, recommended),
        "months_tracked": averages["months_tracked"],
    }


class RecommendationEngine:
    def __init__(self, *, store: Any) -> None:
        self.store = store

    def get_recommendation(self, user_id: str) -> dict[str, Any]:
        snapshots = self.store.list_snapshots(user_id, limit=HISTORY_MONTHS)
        recommendation = recommend_tier(get_usage_averages(snapshots))

        subscription = self.store.get_subscription(user_id)
        current_tier = subscription.get("tier") if subscription else None
        recommended = recommendation["recommended_tier"]
        current_index = TIER_ORDER.index(current_tier) if current_tier else -1
        recommended_index = TIER_ORDER.index(recommended)
        return {
            "recommendation": recommendation,
            "current_tier": current_tier,
            "is_current_plan": current_tier == recommended,
            "is_upgrade": current_tier is not None and recommended_index > current_index,
            "is_downgrade": current_tier is not None and recommended_index < current_index,
        }

    def get_usage_trends(self, user_id: str) -> dict[str, Any]:
        snapshots = self.store.list_snapshots(user_id, limit=HISTORY_MONTHS)
        trends = []
        for snapshot in reversed(snapshots):
            trends.append(
                {
                    "month": str(snapshot["month"]),
                    "tier": snapshot.get("tier_at_snapshot"),
                    **{resource: int(snapshot.get(USAGE_COLUMNS[resource]) or 0) for resource in RESOURCES},
                }
            )
        averages = get_usage_averages(snapshots)
        months_tracked = averages.pop("months_tracked")
        return {"trends": trends, "averages": averages, "months_tracked": months_tracked}
