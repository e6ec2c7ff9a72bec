# This module decides whether a user may use a feature or consume one more unit of a resource.
# It exists so every route applies the same decision tree: kill switch, tier, status, then limits.
# Usage increments always run, even with enforcement off, so monthly snapshots stay complete.
# Results are plain dictionaries that routes return as-is or translate into API errors.

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from src.subscription.config import (
    GRACE_PERIOD_DAYS,
    RESOURCES,
    calendar_days_between,
    get_tier_config,
    is_subscription_enabled,
)
from src.subscription.store import USAGE_COLUMNS, to_month_key

FEATURE_TO_RESOURCE: dict[str, str] = {
    "application_tracker": "applications",
    "tailored_cvs": "cvs",
    "interview_coach": "interviews",
    "compensation_sessions": "compensation",
    "contract_reviews": "contracts",
    "ai_avatar_interviews": "ai_avatar_interviews",
}
RESOURCE_TO_COLUMN = USAGE_COLUMNS


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def is_beyond_grace_period(subscription: dict[str, Any], now: datetime | None = None) -> bool:
    current = now or _utc_now()
    status = subscription.get("status")

    if status == "past_due" and subscription.get("current_period_end"):
        days_past_due = calendar_days_between(current, subscription["current_period_end"])
        return days_past_due > GRACE_PERIOD_DAYS
    if status == "cancelled" and subscription.get("cancellation_effective_at"):
        return current >= subscription["cancellation_effective_at"]
    return status == "expired"


def _status_denial(row: dict[str, Any] | None, now: datetime) -> dict[str, Any] | None:
    if not row or not row.get("tier"):
        return {"reason": "NO_SUBSCRIPTION", "tier": None}

    tier = row["tier"]
    status = row.get("status")
    if status == "expired":
        return {"reason": "SUBSCRIPTION_EXPIRED", "tier": tier}
    if status == "past_due" and is_beyond_grace_period(row, now):
        return {"reason": "PAST_DUE_GRACE_EXCEEDED", "tier": tier}
    return None


def _empty_usage() -> dict[str, Any]:
    return {"used": 0, "limit": -1, "remaining": -1, "percent_used": 0, "unlimited": True}


def _usage_summary(used: int, limit: int) -> dict[str, Any]:
    if limit == -1:
        return {"used": used, "limit": -1, "remaining": -1, "percent_used": 0, "unlimited": True}
    return {
        "used": used,
        "limit": limit,
        "remaining": max(0, limit - used),
        "percent_used": round(used / limit * 100) if limit > 0 else 0,
        "unlimited": False,
    }


class AccessControl:
    """Feature gates, usage limits and usage tracking for one subscription store."""

    def __init__(self, *, store: Any) -> None:
        self.store = store

    def check_feature_access(
        self, user_id: str, feature: str, *, now: datetime | None = None
    ) -> dict[str, Any]:
        if feature not in FEATURE_TO_RESOURCE:
            raise ValueError(f"Unknown feature: {feature!r}")
        if not is_subscription_enabled():
            return {"allowed": True, "enforced": False}

        row = self.store.get_subscription(user_id)
        denial = _status_denial(row, now or _utc_now())
        if denial is not None:
            return {"allowed": False, "enforced": True, **denial}

        tier = row["tier"]
        if not get_tier_config(tier).features.get(feature, False):
            return {
                "allowed": False,
                "enforced": True,
                "reason": "FEATURE_NOT_INCLUDED",
                "tier": tier,
            }
        return {"allowed": True, "enforced": True, "tier": tier}

    def check_usage_limit(
        self, user_id: str, resource: str, *, now: datetime | None = None
    ) -> dict[str, Any]:
        if resource not in RESOURCE_TO_COLUMN:
            raise ValueError(f"Unknown resource: {resource!r}")
        if not is_subscription_enabled():
            return {"allowed": True, "enforced": False, "unlimited": True}

        row = self.store.get_subscription(user_id)
        denial = _status_denial(row, now or _utc_now())
        if denial is not None:
            return {"allowed": False, "enforced": True, "unlimited": False, **denial}

        tier = row["tier"]
        limit = get_tier_config(tier).limits[resource]
        used = int(row.get(RESOURCE_TO_COLUMN[resource]) or 0)

        if limit == -1:
            return {
                "allowed": True,
                "enforced": True,
                "unlimited": True,
                "used": used,
                "limit": -1,
                "remaining": -1,
                "tier": tier,
            }

        allowed = used < limit
        result: dict[str, Any] = {
            "allowed": allowed,
            "enforced": True,
            "unlimited": False,
            "used": used,
            "limit": limit,
            "remaining": max(0, limit - used),
            "tier": tier,
        }
        if not allowed:
            result["reason"] = "LIMIT_EXCEEDED"
        return result

    def increment_usage(
        self, user_id: str, resource: str, *, now: datetime | None = None
    ) -> dict[str, int]:
        if resource not in RESOURCE_TO_COLUMN:
            raise ValueError(f"Unknown resource: {resource!r}")
        column = RESOURCE_TO_COLUMN[resource]
        current = now or _utc_now()

        row = self.store.get_subscription(user_id)
        current_tier: str | None = None
        if row is None:
            self.store.insert_subscription(
                user_id,
                {"tier": None, "billing_period": None, "status": "active", column: 1},
            )
            new_count = 1
        else:
            current_tier = row.get("tier")
            new_count = int(row.get(column) or 0) + 1
            self.store.update_subscription(user_id, {column: new_count})

        self.store.increment_snapshot(
            user_id=user_id,
            month=to_month_key(current),
            resource=resource,
            tier=current_tier,
        )
        return {"new_count": new_count}

    def get_subscription_status(self, user_id: str) -> dict[str, Any]:
        enabled = is_subscription_enabled()
        row = self.store.get_subscription(user_id)

        if row is None:
            return {
                "subscription_enabled": enabled,
                "has_subscription": False,
                "tier": None,
                "billing_period": None,
                "status": None,
                "usage": {resource: _empty_usage() for resource in RESOURCES},
                "features": None,
                "current_period_start": None,
                "current_period_end": None,
                "cancelled_at": None,
                "cancellation_effective_at": None,
                "scheduled_tier_change": None,
                "scheduled_billing_period_change": None,
                "is_cancelled": False,
                "is_past_due": False,
                "is_expired": False,
                "can_upgrade": True,
                "can_downgrade": False,
            }

        tier = row.get("tier")
        status = row.get("status")
        tier_config = get_tier_config(tier) if tier else None

        usage: dict[str, Any] = {}
        for resource in RESOURCES:
            used = int(row.get(RESOURCE_TO_COLUMN[resource]) or 0)
            limit = tier_config.limits[resource] if tier_config else -1
            usage[resource] = _usage_summary(used, limit)

        is_active = status == "active"
        return {
            "subscription_enabled": enabled,
            "has_subscription": bool(tier),
            "tier": tier,
            "billing_period": row.get("billing_period"),
            "status": status,
            "usage": usage,
            "features": dict(tier_config.features) if tier_config else None,
            "current_period_start": row.get("current_period_start"),
            "current_period_end": row.get("current_period_end"),
            "cancelled_at": row.get("cancelled_at"),
            "cancellation_effective_at": row.get("cancellation_effective_at"),
            "scheduled_tier_change": row.get("scheduled_tier_change"),
            "scheduled_billing_period_change": row.get("scheduled_billing_period_change"),
            "is_cancelled": status == "cancelled" or row.get("cancelled_at") is not None,
            "is_past_due": status == "past_due",
            "is_expired": status == "expired",
            "can_upgrade": bool(tier) and tier != "elite" and is_active,
            "can_downgrade": bool(tier) and tier != "momentum" and is_active,
        }
