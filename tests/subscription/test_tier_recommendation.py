# This file tests usage-based tier recommendations and monthly usage trends.

from __future__ import annotations

from datetime import date

from src.subscription.recommendation import (
    RecommendationEngine,
    build_reason,
    build_savings,
    find_lowest_tier_that_fits,
    get_usage_averages,
    recommend_tier,
)
from tests.subscription.memory_store import InMemorySubscriptionStore


def test_averages_for_empty_history() -> None:
    averages = get_usage_averages([])
    assert averages["months_tracked"] == 0
    assert averages["cvs"] == 0.0


def test_averages_are_rounded_to_one_decimal() -> None:
    averages = get_usage_averages(
        [{"usage_cvs": 10, "usage_contracts": 1}, {"usage_cvs": 11}, {"usage_cvs": 11, "usage_contracts": None}]
    )
    assert averages["cvs"] == 10.7
    assert averages["contracts"] == 0.3
    assert averages["months_tracked"] == 3


def test_lowest_tier_that_fits() -> None:
    assert find_lowest_tier_that_fits("cvs", 0) == "momentum"
    assert find_lowest_tier_that_fits("cvs", 8) == "momentum"
    assert find_lowest_tier_that_fits("cvs", 10) == "accelerate"
    assert find_lowest_tier_that_fits("cvs", 40) == "elite"
    assert find_lowest_tier_that_fits("ai_avatar_interviews", 3) == "accelerate"
    assert find_lowest_tier_that_fits("ai_avatar_interviews", 12) == "elite"


def test_savings_compare_against_monthly_billing() -> None:
    savings = build_savings("accelerate")
    assert savings["monthly_price"] == 18
    assert savings["quarterly_savings"] == 36
    assert savings["yearly_savings"] == 67


def test_new_user_gets_starting_point_recommendation() -> None:
    result = recommend_tier(get_usage_averages([]))

    assert result["recommended_tier"] == "momentum"
    assert result["recommended_billing_period"] == "yearly"
    assert result["reason"] == "We recommend Momentum as a great starting point."


def test_first_month_reason_names_top_resource() -> None:
    averages = get_usage_averages([{"usage_cvs": 10}])
    assert build_reason(averages, "accelerate") == (
        "Based on your first month, you're using about 10 CVs. The Accelerate plan covers your needs."
    )


def test_engine_recommends_highest_needed_tier() -> None:
    store = InMemorySubscriptionStore(
        subscriptions={"user-1": {"tier": "momentum", "status": "active"}},
        snapshots=[
            {"user_id": "user-1", "month": date(2026, 9, 1), "usage_cvs": 12, "usage_applications": 5},
            {"user_id": "user-1", "month": date(2026, 8, 1), "usage_cvs": 10, "usage_applications": 3},
            {"user_id": "user-2", "month": date(2026, 9, 1), "usage_cvs": 40},
        ],
    )
    result = RecommendationEngine(store=store).get_recommendation("user-1")

    recommendation = result["recommendation"]
    assert recommendation["recommended_tier"] == "accelerate"
    assert recommendation["comparison"]["cvs"]["fits_in"] == "accelerate"
    assert recommendation["reason"] == (
        "Based on 2 months of activity, you average 11 CVs and 4 applications. "
        "The Accelerate plan covers all your needs."
    )
    assert result["current_tier"] == "momentum"
    assert result["is_upgrade"] is True
    assert result["is_current_plan"] is False


def test_engine_without_subscription_has_no_direction() -> None:
    result = RecommendationEngine(store=InMemorySubscriptionStore()).get_recommendation("user-1")

    assert result["current_tier"] is None
    assert result["is_upgrade"] is False
    assert result["is_downgrade"] is False


def test_usage_trends_are_oldest_first() -> None:
    store = InMemorySubscriptionStore(
        snapshots=[
            {"user_id": "user-1", "month": date(2026, 9, 1), "usage_cvs": 4, "tier_at_snapshot": "elite"},
            {"user_id": "user-1", "month": date(2026, 8, 1), "usage_cvs": 2, "tier_at_snapshot": "momentum"},
        ]
    )
    result = RecommendationEngine(store=store).get_usage_trends("user-1")

    assert [trend["month"] for trend in result["trends"]] == ["2026-08-01", "2026-09-01"]
    assert result["trends"][1]["tier"] == "elite"
    assert result["trends"][0]["cvs"] == 2
    assert result["averages"]["cvs"] == 3.0
    assert result["months_tracked"] == 2
