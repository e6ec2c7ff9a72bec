# This file tests subscription lifecycle transitions against an in-memory store.
# It exists to pin activation, renewal, proration, scheduled changes, cancellation, and expiry rules.

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from src.subscription.manager import SubscriptionError, SubscriptionManager
from tests.subscription.memory_store import InMemorySubscriptionStore

NOW = datetime(2026, 10, 16, 8, 0, tzinfo=UTC)
PERIOD_START = datetime(2026, 10, 1, 8, 0, tzinfo=UTC)
PERIOD_END = datetime(2026, 10, 31, 8, 0, tzinfo=UTC)


def _active_row(**overrides: object) -> dict[str, object]:
    row: dict[str, object] = {
        "tier": "momentum",
        "billing_period": "monthly",
        "status": "active",
        "current_period_start": PERIOD_START,
        "current_period_end": PERIOD_END,
        "last_reset_at": PERIOD_START,
        "usage_cvs": 5,
        "usage_applications": 3,
    }
    row.update(overrides)
    return row


def _manager(**rows: dict[str, object]) -> tuple[SubscriptionManager, InMemorySubscriptionStore]:
    store = InMemorySubscriptionStore(subscriptions=rows)
    return SubscriptionManager(store=store), store


def test_activation_starts_a_fresh_period() -> None:
    manager, store = _manager(**{"user-1": {"status": "active", "usage_cvs": 4, "pending_tier": "elite"}})
    manager.activate_subscription(
        "user-1",
        "elite",
        "quarterly",
        {"transaction_token": "tok-1", "recurring_id": None, "transaction_code": "code-9"},
        now=NOW,
    )

    row = store.subscriptions["user-1"]
    assert row["tier"] == "elite"
    assert row["billing_period"] == "quarterly"
    assert row["current_period_end"] == datetime(2027, 1, 16, 8, 0, tzinfo=UTC)
    assert row["usage_cvs"] == 0
    assert row["pending_tier"] is None
    assert row["grow_transaction_token"] == "tok-1"
    assert "grow_recurring_id" not in row
    assert store.events[-1]["event_type"] == "payment_success"
    assert store.events[-1]["event_data"] == {
        "tier": "elite",
        "billing_period": "quarterly",
        "transaction_token": "tok-1",
        "transaction_code": "code-9",
    }


def test_activation_rejects_unknown_plan() -> None:
    manager, _ = _manager()
    with pytest.raises(SubscriptionError):
        manager.activate_subscription("user-1", "platinum", "monthly", now=NOW)


def test_renewal_applies_scheduled_changes_and_resets_counters() -> None:
    row = _active_row(
        tier="elite",
        scheduled_tier_change="accelerate",
        scheduled_billing_period_change="yearly",
        last_reset_at=PERIOD_START - timedelta(days=30),
    )
    manager, store = _manager(**{"user-1": row})

    result = manager.renew_subscription("user-1", "code-2", now=PERIOD_END)

    assert result == {"tier": "accelerate", "billing_period": "yearly", "counters_reset": True}
    saved = store.subscriptions["user-1"]
    assert saved["usage_cvs"] == 0
    assert saved["scheduled_tier_change"] is None
    assert saved["current_period_end"] == datetime(2027, 10, 31, 8, 0, tzinfo=UTC)
    assert saved["grow_last_transaction_code"] == "code-2"
    assert store.events[-1]["event_type"] == "renewed"
    assert store.events[-1]["previous_tier"] == "elite"


def test_renewal_skips_reset_when_counters_already_reset_for_the_period() -> None:
    manager, store = _manager(**{"user-1": _active_row(last_reset_at=PERIOD_START + timedelta(hours=1))})

    result = manager.renew_subscription("user-1", None, now=PERIOD_END)

    assert result["counters_reset"] is False
    assert store.subscriptions["user-1"]["usage_cvs"] == 5


def test_renewal_requires_a_subscription() -> None:
    manager, _ = _manager()
    with pytest.raises(SubscriptionError, match="No subscription found for user"):
        manager.renew_subscription("ghost", None, now=NOW)


def test_upgrade_charges_for_remaining_days() -> None:
    manager, store = _manager(**{"user-1": _active_row(scheduled_tier_change="momentum")})

    result = manager.upgrade_subscription("user-1", "accelerate", now=NOW)

    assert result == {"prorated_amount": 3.0}
    assert store.subscriptions["user-1"]["tier"] == "accelerate"
    assert store.subscriptions["user-1"]["scheduled_tier_change"] is None
    assert store.events[-1]["event_data"]["remaining_days"] == 15
    assert store.events[-1]["event_data"]["total_days"] == 30


def test_upgrade_to_lower_tier_is_rejected() -> None:
    manager, _ = _manager(**{"user-1": _active_row(tier="elite")})
    with pytest.raises(SubscriptionError, match="not an upgrade"):
        manager.upgrade_subscription("user-1", "accelerate", now=NOW)


def test_downgrade_waits_for_period_end() -> None:
    manager, store = _manager(**{"user-1": _active_row(tier="elite")})

    result = manager.schedule_downgrade("user-1", "momentum")

    assert result == {"effective_date": PERIOD_END}
    assert store.subscriptions["user-1"]["tier"] == "elite"
    assert store.subscriptions["user-1"]["scheduled_tier_change"] == "momentum"


def test_downgrade_to_higher_tier_is_rejected() -> None:
    manager, _ = _manager(**{"user-1": _active_row()})
    with pytest.raises(SubscriptionError, match="not a downgrade"):
        manager.schedule_downgrade("user-1", "elite")


def test_billing_period_change_is_scheduled() -> None:
    manager, store = _manager(**{"user-1": _active_row()})

    assert manager.schedule_billing_period_change("user-1", "yearly") == {"effective_date": PERIOD_END}
    assert store.subscriptions["user-1"]["scheduled_billing_period_change"] == "yearly"
    with pytest.raises(SubscriptionError):
        manager.schedule_billing_period_change("user-1", "weekly")


def test_cancel_keeps_access_until_period_end() -> None:
    manager, store = _manager(**{"user-1": _active_row()})

    result = manager.cancel_subscription("user-1", now=NOW)

    assert result == {"cancellation_effective_at": PERIOD_END}
    assert store.subscriptions["user-1"]["status"] == "cancelled"
    assert store.subscriptions["user-1"]["cancelled_at"] == NOW
    with pytest.raises(SubscriptionError, match="already cancelled"):
        manager.cancel_subscription("user-1", now=NOW)


def test_pending_plan_creates_row_for_new_customers() -> None:
    manager, store = _manager()
    manager.set_pending_plan("user-1", "accelerate", "yearly")

    assert store.subscriptions["user-1"]["pending_tier"] == "accelerate"
    assert store.subscriptions["user-1"]["pending_billing_period"] == "yearly"
    assert store.subscriptions["user-1"].get("tier") is None


def test_failed_event_write_does_not_block_transition() -> None:
    manager, store = _manager(**{"user-1": _active_row()})
    store.fail_events = True

    manager.handle_payment_failure("user-1")

    assert store.subscriptions["user-1"]["status"] == "past_due"
    assert store.events == []


def test_process_expirations() -> None:
    manager, store = _manager(
        **{
            "lapsed": _active_row(status="cancelled", cancellation_effective_at=NOW - timedelta(days=1)),
            "still-paid": _active_row(status="cancelled", cancellation_effective_at=NOW + timedelta(days=1)),
            "overdue": _active_row(status="past_due", updated_at=NOW - timedelta(days=4)),
            "recently-due": _active_row(status="past_due", updated_at=NOW - timedelta(days=1)),
        }
    )

    assert manager.process_expirations(now=NOW) == {"expired": 2}
    assert store.subscriptions["lapsed"]["status"] == "expired"
    assert store.subscriptions["overdue"]["status"] == "expired"
    assert store.subscriptions["still-paid"]["status"] == "cancelled"
    assert store.subscriptions["recently-due"]["status"] == "past_due"
    reasons = sorted(event["event_data"]["reason"] for event in store.events)
    assert reasons == ["cancellation_effective_date_passed", "grace_period_exceeded"]


def test_reconcile_clamps_negative_snapshot_counters() -> None:
    store = InMemorySubscriptionStore(
        snapshots=[
            {"user_id": "user-1", "month": "2026-09-01", "usage_cvs": -2, "usage_applications": 4},
            {"user_id": "user-2", "month": "2026-09-01", "usage_cvs": 1},
            {"user_id": "user-1", "month": "2026-08-01", "usage_cvs": -1},
        ]
    )
    manager = SubscriptionManager(store=store)

    result = manager.reconcile_snapshots("2026-09-01")

    assert result["reconciled"] == 2
    assert result["mismatches"] == [
        {
            "user_id": "user-1",
            "snapshot_month": "2026-09-01",
            "field": "usage_cvs",
            "snapshot_value": -2,
            "actual_value": 0,
        }
    ]
    assert store.snapshots[0]["usage_cvs"] == 0
    assert store.snapshots[0]["usage_applications"] == 4
    assert store.snapshots[2]["usage_cvs"] == -1
