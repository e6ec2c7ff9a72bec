# This module is the single source of truth for subscription tiers, limits, and pricing.
# It exists so access control, the lifecycle manager, and API responses all read the same catalogue.
# Date math for billing periods lives here too, because renewals and prorations share it.
# The kill switch is read from the environment on every call so it can be flipped without a restart.

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Final

TIER_ORDER: Final[tuple[str, ...]] = ("momentum", "accelerate", "elite")
BILLING_PERIODS: Final[tuple[str, ...]] = ("monthly", "quarterly", "yearly")
SUBSCRIPTION_STATUSES: Final[tuple[str, ...]] = ("active", "cancelled", "past_due", "expired")
RESOURCES: Final[tuple[str, ...]] = (
    "applications",
    "cvs",
    "interviews",
    "compensation",
    "contracts",
    "ai_avatar_interviews",
)
FEATURES: Final[tuple[str, ...]] = (
    "application_tracker",
    "tailored_cvs",
    "interview_coach",
    "compensation_sessions",
    "contract_reviews",
    "ai_avatar_interviews",
)

GRACE_PERIOD_DAYS: Final[int] = 3
PERIOD_MONTHS: Final[dict[str, int]] = {"monthly": 1, "quarterly": 3, "yearly": 12}

_CURRENCY_SYMBOLS: Final[dict[str, str]] = {"USD": "$", "EUR": "€", "GBP": "£", "ILS": "₪"}


@dataclass(frozen=True)
class PricingOption:
    amount: float
    currency: str = "USD"
    discount: str | None = None


@dataclass(frozen=True)
class TierConfig:
    name: str
    display_name: str
    tagline: str
    is_most_popular: bool
    limits: dict[str, int]
    features: dict[str, bool]
    feature_list: tuple[str, ...]
    pricing: dict[str, PricingOption]


def _limits(count: int, avatar: int) -> dict[str, int]:
    values = {resource: count for resource in RESOURCES}
    values["ai_avatar_interviews"] = avatar
    return values


def _features(*, avatar: bool) -> dict[str, bool]:
    values = {feature: True for feature in FEATURES}
    values["ai_avatar_interviews"] = avatar
    return values


TIER_CONFIGS: Final[dict[str, TierConfig]] = {
    "momentum": TierConfig(
        name="momentum",
        display_name="Momentum",
        tagline="Best for job seekers actively applying and exploring multiple opportunities",
        is_most_popular=False,
        limits=_limits(8, 0),
        features=_features(avatar=False),
        feature_list=(
            "8 Application Tracking",
            "8 Tailored CVs",
            "8 Interview Coach Sessions",
            "8 Compensation Sessions",
            "8 Contract Reviews",
        ),
        pricing={
            "monthly": PricingOption(amount=12),
            "quarterly": PricingOption(amount=30, discount="17%"),
            "yearly": PricingOption(amount=99, discount="31%"),
        },
    ),
    "accelerate": TierConfig(
        name="accelerate",
        display_name="Accelerate",
        tagline="Best for serious job seekers who want to run a full, structured job search",
        is_most_popular=True,
        limits=_limits(15, 5),
        features=_features(avatar=True),
        feature_list=(
            "15 Application Tracking",
            "15 Tailored CVs",
            "15 Interview Coach Sessions",
            "15 Compensation Sessions",
            "15 Contract Reviews",
            "5 AI Avatar Interviews",
        ),
        pricing={
            "monthly": PricingOption(amount=18),
            "quarterly": PricingOption(amount=45, discount="17%"),
            "yearly": PricingOption(amount=149, discount="31%"),
        },
    ),
    "elite": TierConfig(
        name="elite",
        display_name="Elite",
        tagline=(
            "Best for uncompromising job seekers who want to experience quick wins before committing"
        ),
        is_most_popular=False,
        limits=_limits(-1, 10),
        features=_features(avatar=True),
        feature_list=(
            "Unlimited Application Tracking",
            "Unlimited Tailored CVs",
            "Unlimited Interview Coach Sessions",
            "Unlimited Compensation Sessions",
            "Unlimited Contract Reviews",
            "10 AI Avatar Interviews",
        ),
        pricing={
            "monthly": PricingOption(amount=29),
            "quarterly": PricingOption(amount=75, discount="14%"),
            "yearly": PricingOption(amount=249, discount="28%"),
        },
    ),
}


def is_subscription_enabled() -> bool:
    """Kill switch: enforcement is on only when SUBSCRIPTION_ENABLED is exactly `true`."""

    return os.getenv("SUBSCRIPTION_ENABLED", "") == "true"


def get_tier_config(tier: str) -> TierConfig:
    if tier not in TIER_CONFIGS:
        raise ValueError(f"Unknown subscription tier: {tier!r}")
    return TIER_CONFIGS[tier]


def get_tier_limits(tier: str) -> dict[str, int]:
    return dict(get_tier_config(tier).limits)


def get_pricing_option(tier: str, period: str) -> PricingOption:
    config = get_tier_config(tier)
    if period not in config.pricing:
        raise ValueError(f"Unknown billing period: {period!r}")
    return config.pricing[period]


def get_price(tier: str, period: str) -> float:
    return get_pricing_option(tier, period).amount


def is_upgrade(old_tier: str, new_tier: str) -> bool:
    return TIER_ORDER.index(new_tier) > TIER_ORDER.index(old_tier)


def is_downgrade(old_tier: str, new_tier: str) -> bool:
    return TIER_ORDER.index(new_tier) < TIER_ORDER.index(old_tier)


def add_months(start: datetime, months: int) -> datetime:
    """Add calendar months; a day past the end of the target month rolls into the next one."""

    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    first_of_month = start.replace(year=year, month=month, day=1)
    return first_of_month + timedelta(days=start.day - 1)


def get_period_end_date(start: datetime, period: str) -> datetime:
    if period not in PERIOD_MONTHS:
        raise ValueError(f"Unknown billing period: {period!r}")
    return add_months(start, PERIOD_MONTHS[period])


def calendar_days_between(later: datetime, earlier: datetime) -> int:
    return (later.date() - earlier.date()).days


def calculate_prorated_charge(
    old_tier: str,
    new_tier: str,
    period: str,
    period_start: datetime,
    period_end: datetime,
    now: datetime | None = None,
) -> float:
    """Charge for the remaining part of the period when moving up a tier."""

    if not is_upgrade(old_tier, new_tier):
        return 0.0

    current = now or datetime.now(tz=period_end.tzinfo)
    total_days = calendar_days_between(period_end, period_start)
    remaining_days = calendar_days_between(period_end, current)
    if total_days <= 0 or remaining_days <= 0:
        return 0.0

    price_difference = get_price(new_tier, period) - get_price(old_tier, period)
    return round(price_difference / total_days * remaining_days, 2)


def get_all_tiers() -> list[str]:
    return list(TIER_ORDER)


def is_valid_tier(value: str | None) -> bool:
    return bool(value) and value in TIER_ORDER


def is_valid_billing_period(value: str | None) -> bool:
    return bool(value) and value in BILLING_PERIODS


def is_valid_status(value: str | None) -> bool:
    return bool(value) and value in SUBSCRIPTION_STATUSES


def get_most_popular_tier() -> str:
    for tier in TIER_ORDER:
        if TIER_CONFIGS[tier].is_most_popular:
            return tier
    return "accelerate"


def get_savings_percentage(tier: str, period: str) -> int:
    if period == "monthly":
        return 0
    full_price = get_price(tier, "monthly") * PERIOD_MONTHS[period]
    return round((full_price - get_price(tier, period)) / full_price * 100)


def format_price(amount: float, currency: str = "USD") -> str:
    """Format a price with no trailing zeros: 12 -> `$12`, 12.5 -> `$12.5`."""

    text = f"{amount:,.2f}".rstrip("0").rstrip(".")
    symbol = _CURRENCY_SYMBOLS.get(currency.upper())
    if symbol is None:
        return f"{currency.upper()} {text}"
    return f"{symbol}{text}"


def has_feature(tier: str, feature: str) -> bool:
    return bool(get_tier_config(tier).features.get(feature, False))


def get_resource_limit(tier: str, resource: str) -> int:
    limits = get_tier_config(tier).limits
    if resource not in limits:
        raise ValueError(f"Unknown resource: {resource!r}")
    return limits[resource]


def is_resource_unlimited(tier: str, resource: str) -> bool:
    return get_resource_limit(tier, resource) == -1
