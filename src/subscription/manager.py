# This module implements the subscription lifecycle: activation, renewal, plan changes, and expiry.
# It exists so payment webhooks, API routes, and the nightly job share one set of state transitions.
# Upgrades apply immediately while downgrades and billing-period changes wait for the next renewal.
# Every transition writes an audit event; a failed audit write is logged and never blocks the change.

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from src.subscription.config import (
    GRACE_PERIOD_DAYS,
    calculate_prorated_charge,
    calendar_days_between,
    get_period_end_date,
    is_downgrade,
    is_upgrade,
    is_valid_billing_period,
    is_valid_tier,
)
from src.subscription.store import USAGE_COLUMNS

logger = logging.getLogger(__name__)


class SubscriptionError(ValueError):
    """Raised when a lifecycle transition is not valid for the current subscription."""


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _zeroed_counters() -> dict[str, int]:
    return {column: 0 for column in USAGE_COLUMNS.values()}


class SubscriptionManager:
    def __init__(self, *, store: Any) -> None:
        self.store = store

    def get_subscription(self, user_id: str) -> dict[str, Any] | None:
        return self.store.get_subscription(user_id)

    def _log_event(
        self,
        user_id: str,
        event_type: str,
        event_data: dict[str, Any] | None = None,
        *,
        previous_tier: str | None = None,
        new_tier: str | None = None,
        previous_billing_period: str | None = None,
        new_billing_period: str | None = None,
        amount_paid: float | None = None,
    ) -> None:
        try:
            self.store.insert_event(
                {
                    "user_id": user_id,
                    "event_type": event_type,
                    "event_data": event_data or {},
                    "previous_tier": previous_tier,
                    "new_tier": new_tier,
                    "previous_billing_period": previous_billing_period,
                    "new_billing_period": new_billing_period,
                    "amount_paid": amount_paid,
                    "currency": "USD" if amount_paid else None,
                }
            )
        except Exception:
            logger.exception("Failed to log subscription event '%s' for user %s.", event_type, user_id)

    def _require(self, user_id: str) -> dict[str, Any]:
        subscription = self.store.get_subscription(user_id)
        if subscription is None:
            raise SubscriptionError("No subscription found for user")
        return subscription

    def activate_subscription(
        self,
        user_id: str,
        tier: str,
        billing_period: str,
        grow_data: dict[str, str | None] | None = None,
        *,
        now: datetime | None = None,
    ) -> None:
        if not is_valid_tier(tier) or not is_valid_billing_period(billing_period):
            raise SubscriptionError(f"Invalid plan: {tier}/{billing_period}")

        current = now or _utc_now()
        grow = {key: value for key, value in (grow_data or {}).items() if value}
        values: dict[str, Any] = {
            "tier": tier,
            "billing_period": billing_period,
            "status": "active",
            "current_period_start": current,
            "current_period_end": get_period_end_date(current, billing_period),
            **_zeroed_counters(),
            "last_reset_at": current,
            "pending_tier": None,
            "pending_billing_period": None,
            "scheduled_tier_change": None,
            "scheduled_billing_period_change": None,
            "cancelled_at": None,
            "cancellation_effective_at": None,
        }
        if grow.get("transaction_token"):
            values["grow_transaction_token"] = grow["transaction_token"]
        if grow.get("recurring_id"):
            values["grow_recurring_id"] = grow["recurring_id"]
        if grow.get("transaction_code"):
            values["grow_last_transaction_code"] = grow["transaction_code"]

        self.store.upsert_subscription(user_id, values)
        self._log_event(
            user_id,
            "payment_success",
            {"tier": tier, "billing_period": billing_period, **grow},
            new_tier=tier,
            new_billing_period=billing_period,
        )

    def renew_subscription(
        self, user_id: str, transaction_code: str | None, *, now: datetime | None = None
    ) -> dict[str, Any]:
        subscription = self._require(user_id)
        if not subscription.get("tier") or not subscription.get("billing_period"):
            raise SubscriptionError("Subscription has no tier or billing period")

        current = now or _utc_now()
        new_tier = subscription.get("scheduled_tier_change") or subscription["tier"]
        new_period = subscription.get("scheduled_billing_period_change") or subscription["billing_period"]

        last_reset_at = subscription.get("last_reset_at")
        period_start = subscription.get("current_period_start")
        # double-reset guard: counters were already zeroed for the current period
        should_reset = last_reset_at is None or period_start is None or last_reset_at < period_start

        values: dict[str, Any] = {
            "tier": new_tier,
            "billing_period": new_period,
            "status": "active",
            "current_period_start": current,
            "current_period_end": get_period_end_date(current, new_period),
            "grow_last_transaction_code": transaction_code,
            "scheduled_tier_change": None,
            "scheduled_billing_period_change": None,
        }
        if should_reset:
            values.update(_zeroed_counters())
            values["last_reset_at"] = current

        self.store.update_subscription(user_id, values)
        self._log_event(
            user_id,
            "renewed",
            {
                "transaction_code": transaction_code,
                "scheduled_tier_applied": subscription.get("scheduled_tier_change"),
                "scheduled_period_applied": subscription.get("scheduled_billing_period_change"),
                "counters_reset": should_reset,
            },
            previous_tier=subscription["tier"],
            new_tier=new_tier,
            previous_billing_period=subscription["billing_period"],
            new_billing_period=new_period,
        )
        return {"tier": new_tier, "billing_period": new_period, "counters_reset": should_reset}

    def upgrade_subscription(
        self, user_id: str, new_tier: str, *, now: datetime | None = None
    ) -> dict[str, Any]:
        subscription = self._require(user_id)
        old_tier = subscription.get("tier")
        period = subscription.get("billing_period")
        if not old_tier or not period:
            raise SubscriptionError("Subscription has no tier or billing period")
        period_start = subscription.get("current_period_start")
        period_end = subscription.get("current_period_end")
        if period_start is None or period_end is None:
            raise SubscriptionError("Subscription has no period dates")
        if not is_valid_tier(new_tier) or not is_upgrade(old_tier, new_tier):
            raise SubscriptionError(f"{new_tier} is not an upgrade from {old_tier}")

        current = now or _utc_now()
        remaining_days = calendar_days_between(period_end, current)
        total_days = calendar_days_between(period_end, period_start)

        prorated_amount = calculate_prorated_charge(old_tier, new_tier, period, period_start, period_end, current)

        self.store.update_subscription(user_id, {"tier": new_tier, "scheduled_tier_change": None})
        self._log_event(
            user_id,
            "upgraded",
            {
                "previous_tier": old_tier,
                "new_tier": new_tier,
                "prorated_amount": prorated_amount,
                "remaining_days": remaining_days,
                "total_days": total_days,
            },
            previous_tier=old_tier,
            new_tier=new_tier,
        )
        return {"prorated_amount": prorated_amount}

    def schedule_downgrade(self, user_id: str, target_tier: str) -> dict[str, Any]:
        subscription = self._require(user_id)
        old_tier = subscription.get("tier")
        if not old_tier:
            raise SubscriptionError("Subscription has no tier")
        if subscription.get("current_period_end") is None:
            raise SubscriptionError("Subscription has no period end date")
        if not is_valid_tier(target_tier) or not is_downgrade(old_tier, target_tier):
            raise SubscriptionError(f"{target_tier} is not a downgrade from {old_tier}")

        self.store.update_subscription(user_id, {"scheduled_tier_change": target_tier})
        self._log_event(
            user_id,
            "downgrade_scheduled",
            {
                "current_tier": old_tier,
                "scheduled_tier": target_tier,
                "effective_date": subscription["current_period_end"],
            },
            previous_tier=old_tier,
            new_tier=target_tier,
        )
        return {"effective_date": subscription["current_period_end"]}

    def schedule_billing_period_change(self, user_id: str, billing_period: str) -> dict[str, Any]:
        subscription = self._require(user_id)
        if not is_valid_billing_period(billing_period):
            raise SubscriptionError(f"Invalid billing period: {billing_period}")

        self.store.update_subscription(
            user_id, {"scheduled_billing_period_change": billing_period}
        )
        self._log_event(
            user_id,
            "billing_period_change_scheduled",
            {"scheduled_billing_period": billing_period},
            previous_billing_period=subscription.get("billing_period"),
            new_billing_period=billing_period,
        )
        return {"effective_date": subscription.get("current_period_end")}

    def cancel_scheduled_change(self, user_id: str) -> None:
        self.store.update_subscription(
            user_id,
            {"scheduled_tier_change": None, "scheduled_billing_period_change": None},
        )
        self._log_event(user_id, "scheduled_change_cancelled")

    def cancel_subscription(self, user_id: str, *, now: datetime | None = None) -> dict[str, Any]:
        subscription = self._require(user_id)
        if not subscription.get("tier"):
            raise SubscriptionError("No active subscription to cancel")
        if subscription.get("status") == "cancelled":
            raise SubscriptionError("Subscription is already cancelled")
        effective_at = subscription.get("current_period_end")
        if effective_at is None:
            raise SubscriptionError("Subscription has no period end date")

        self.store.update_subscription(
            user_id,
            {
                "status": "cancelled",
                "cancelled_at": now or _utc_now(),
                "cancellation_effective_at": effective_at,
            },
        )
        # TODO: stop the Grow recurring charge once the gateway exposes a cancel endpoint
        self._log_event(
            user_id,
            "cancelled",
            {"cancellation_effective_at": effective_at},
            previous_tier=subscription["tier"],
        )
        return {"cancellation_effective_at": effective_at}

    def handle_payment_failure(self, user_id: str) -> None:
        self.store.update_subscription(user_id, {"status": "past_due"})
        self._log_event(user_id, "payment_failed")

    def set_pending_plan(self, user_id: str, tier: str, billing_period: str) -> None:
        if not is_valid_tier(tier) or not is_valid_billing_period(billing_period):
            raise SubscriptionError(f"Invalid plan: {tier}/{billing_period}")
        existing = self.store.get_subscription(user_id)
        values = {"pending_tier": tier, "pending_billing_period": billing_period}
        if existing is None:
            self.store.insert_subscription(user_id, {**values, "status": "active"})
        else:
            self.store.update_subscription(user_id, values)

    def process_expirations(self, *, now: datetime | None = None) -> dict[str, int]:
        current = now or _utc_now()
        expired = 0

        for row in self.store.list_subscriptions_by_status("cancelled"):
            effective_at = row.get("cancellation_effective_at")
            if effective_at is None or effective_at >= current:
                continue
            if self._expire(row["user_id"], "cancellation_effective_date_passed"):
                expired += 1

        grace_cutoff = current - timedelta(days=GRACE_PERIOD_DAYS)
        for row in self.store.list_subscriptions_by_status("past_due"):
            updated_at = row.get("updated_at")
            if updated_at is None or updated_at >= grace_cutoff:
                continue
            if self._expire(row["user_id"], "grace_period_exceeded"):
                expired += 1

        logger.info("Expired %s subscriptions.", expired)
        return {"expired": expired}

    def _expire(self, user_id: str, reason: str) -> bool:
        try:
            self.store.update_subscription(user_id, {"status": "expired"})
        except Exception:
            logger.exception("Failed to expire subscription for user %s.", user_id)
            return False
        self._log_event(user_id, "expired", {"reason": reason})
        return True

    def reconcile_snapshots(self, month: str) -> dict[str, Any]:
        """Clamp negative counters in one month of usage snapshots and report what was fixed."""

        reconciled = 0
        mismatches: list[dict[str, Any]] = []
        for snapshot in self.store.list_snapshots_for_month(month):
            reconciled += 1
            negatives = {
                column: int(snapshot.get(column) or 0)
                for column in USAGE_COLUMNS.values()
                if int(snapshot.get(column) or 0) < 0
            }
            if not negatives:
                continue
            mismatches.extend(
                {
                    "user_id": snapshot["user_id"],
                    "snapshot_month": month,
                    "field": column,
                    "snapshot_value": value,
                    "actual_value": 0,
                }
                for column, value in negatives.items()
            )
            self.store.update_snapshot_counters(
                user_id=snapshot["user_id"],
                month=month,
                counters={column: 0 for column in negatives},
            )

        if mismatches:
            logger.warning("Reconciled %s snapshot rows with negative counters for %s.", len(mismatches), month)
        return {"reconciled": reconciled, "mismatches": mismatches}
