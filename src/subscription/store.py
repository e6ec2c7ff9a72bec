# This module holds every SQL statement the subscription domain runs.
# It exists so access control, lifecycle management, and recommendations share one data-access seam.
# Domain classes only see plain dictionaries, which lets tests swap in an in-memory store.
# Column names used in dynamic updates are checked against an allowlist before they reach SQL.

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from src.api.db_access import DatabaseClient

USAGE_COLUMNS: dict[str, str] = {
    "applications": "usage_applications",
    "cvs": "usage_cvs",
    "interviews": "usage_interviews",
    "compensation": "usage_compensation",
    "contracts": "usage_contracts",
    "ai_avatar_interviews": "usage_ai_avatar_interviews",
}

SUBSCRIPTION_COLUMNS: frozenset[str] = frozenset(
    {
        "tier",
        "billing_period",
        "status",
        "grow_transaction_token",
        "grow_recurring_id",
        "grow_last_transaction_code",
        "morning_customer_id",
        "current_period_start",
        "current_period_end",
        "cancelled_at",
        "cancellation_effective_at",
        "scheduled_tier_change",
        "scheduled_billing_period_change",
        "pending_tier",
        "pending_billing_period",
        "last_reset_at",
        *USAGE_COLUMNS.values(),
    }
)


def _checked_columns(values: dict[str, Any], allowed: frozenset[str]) -> list[str]:
    unknown = sorted(set(values) - allowed)
    if unknown:
        raise ValueError(f"Unknown subscription columns: {', '.join(unknown)}")
    return sorted(values)


class SubscriptionStore:
    """SQL access for `user_subscriptions`, `subscription_events` and `usage_monthly_snapshots`."""

    def __init__(self, *, db: DatabaseClient) -> None:
        self.db = db

    def get_subscription(self, user_id: str) -> dict[str, Any] | None:
        return self.db.fetch_one(
            "SELECT * FROM user_subscriptions WHERE user_id = :user_id",
            {"user_id": user_id},
        )

    def insert_subscription(self, user_id: str, values: dict[str, Any]) -> None:
        columns = _checked_columns(values, SUBSCRIPTION_COLUMNS)
        column_sql = ", ".join(["user_id", *columns])
        value_sql = ", ".join([":user_id", *(f":{column}" for column in columns)])
        self.db.execute(
            f"INSERT INTO user_subscriptions ({column_sql}) VALUES ({value_sql})",
            {"user_id": user_id, **values},
        )

    def upsert_subscription(self, user_id: str, values: dict[str, Any]) -> None:
        columns = _checked_columns(values, SUBSCRIPTION_COLUMNS)
        column_sql = ", ".join(["user_id", *columns])
        value_sql = ", ".join([":user_id", *(f":{column}" for column in columns)])
        update_sql = ", ".join(f"{column} = EXCLUDED.{column}" for column in columns)
        self.db.execute(
            f"""
            INSERT INTO user_subscriptions ({column_sql}, updated_at)
            VALUES ({value_sql}, NOW())
            ON CONFLICT (user_id) DO UPDATE SET {update_sql}, updated_at = NOW()
            """,
            {"user_id": user_id, **values},
        )

    def update_subscription(self, user_id: str, values: dict[str, Any]) -> None:
        columns = _checked_columns(values, SUBSCRIPTION_COLUMNS)
        set_sql = ", ".join(f"{column} = :{column}" for column in columns)
        self.db.execute(
            f"UPDATE user_subscriptions SET {set_sql}, updated_at = NOW() WHERE user_id = :user_id",
            {"user_id": user_id, **values},
        )

    def list_subscriptions_by_status(self, status: str) -> list[dict[str, Any]]:
        return self.db.fetch_all(
            """
            SELECT user_id, cancellation_effective_at, updated_at
            FROM user_subscriptions
            WHERE status = :status
            """,
            {"status": status},
        )

    def insert_event(self, event: dict[str, Any]) -> None:
        self.db.execute(
            """
            INSERT INTO subscription_events (
                user_id, event_type, event_data, previous_tier, new_tier,
                previous_billing_period, new_billing_period, amount_paid, currency, created_at
            )
            VALUES (
                :user_id, :event_type, CAST(:event_data AS JSONB), :previous_tier, :new_tier,
                :previous_billing_period, :new_billing_period, :amount_paid, :currency, NOW()
            )
            """,
            {**event, "event_data": json.dumps(event.get("event_data") or {}, default=str)},
        )

    def increment_snapshot(self, *, user_id: str, month: str, resource: str, tier: str | None) -> None:
        column = USAGE_COLUMNS[resource]
        self.db.execute(
            f"""
            INSERT INTO usage_monthly_snapshots (user_id, month, {column}, tier_at_snapshot, updated_at)
            VALUES (:user_id, :month, 1, :tier, NOW())
            ON CONFLICT (user_id, month) DO UPDATE SET
                {column} = COALESCE(usage_monthly_snapshots.{column}, 0) + 1,
                tier_at_snapshot = COALESCE(:tier, usage_monthly_snapshots.tier_at_snapshot),
                updated_at = NOW()
            """,
            {"user_id": user_id, "month": month, "tier": tier},
        )

    def list_snapshots(self, user_id: str, *, limit: int | None = None) -> list[dict[str, Any]]:
        query = """
        SELECT *
        FROM usage_monthly_snapshots
        WHERE user_id = :user_id
        ORDER BY month DESC
        """
        params: dict[str, Any] = {"user_id": user_id}
        if limit is not None:
            query += " LIMIT :limit"
            params["limit"] = limit
        return self.db.fetch_all(query, params)

    def list_snapshots_for_month(self, month: str) -> list[dict[str, Any]]:
        return self.db.fetch_all(
            "SELECT * FROM usage_monthly_snapshots WHERE month = :month",
            {"month": month},
        )

    def update_snapshot_counters(self, *, user_id: str, month: str, counters: dict[str, int]) -> None:
        columns = _checked_columns(counters, frozenset(USAGE_COLUMNS.values()))
        set_sql = ", ".join(f"{column} = :{column}" for column in columns)
        self.db.execute(
            f"""
            UPDATE usage_monthly_snapshots
            SET {set_sql}, updated_at = NOW()
            WHERE user_id = :user_id AND month = :month
            """,
            {"user_id": user_id, "month": month, **counters},
        )


def to_month_key(value: datetime) -> str:
    """First day of the month as `YYYY-MM-DD`."""

    return value.strftime("%Y-%m-01")
