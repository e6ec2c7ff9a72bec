# This file implements the data-protection endpoints: full data export and account deletion requests.
# It exists so the export table list and the deletion grace period are defined in one place.
# Deletion is never immediate; a request is scheduled and can be cancelled until the scheduled date.
# Every deletion request or cancellation is mirrored into `consent_log` for the audit trail.

from __future__ import annotations

import logging
import math
from datetime import UTC, datetime, timedelta
from typing import Any

from src.api.api_config import ApiConfig
from src.api.db_access import DatabaseClient
from src.api.error_handlers import APIError

logger = logging.getLogger(__name__)

DELETION_GRACE_PERIOD_DAYS = 30
DELETION_CONFIRMATION = "DELETE_MY_ACCOUNT"
EXPORT_FORMAT_VERSION = "1.0"
EXPORT_GDPR_ARTICLE = "Article 15 - Right of Access"
IMPORTANT_NOTICE = (
    "Your account and all data will be permanently deleted after the grace period. "
    "You can cancel this request anytime before the scheduled date."
)

# (table, export key); profiles is keyed by `id`, everything else by `user_id`.
EXPORT_TABLES: tuple[tuple[str, str], ...] = (
    ("profiles", "profile"),
    ("job_applications", "job_applications"),
    ("cv_versions", "cv_versions"),
    ("cv_tailoring_sessions", "cv_tailoring_sessions"),
    ("daily_check_ins", "daily_check_ins"),
    ("interview_sessions", "interview_sessions"),
    ("compensation_negotiations", "compensation_negotiations"),
    ("contract_reviews", "contract_reviews"),
    ("contract_analyses", "contract_analyses"),
    ("indicator_scores", "indicator_scores"),
    ("user_subscriptions", "subscription"),
    ("subscription_events", "subscription_events"),
    ("usage_monthly_snapshots", "usage_history"),
    ("consent_log", "consent_history"),
    ("account_deletion_requests", "account_deletion_requests"),
)
# Payment credentials stay out of the export.
REDACTED_COLUMNS: frozenset[str] = frozenset({"grow_transaction_token", "grow_recurring_id"})
SUMMARY_KEYS: dict[str, str] = {
    "total_applications": "job_applications",
    "total_cv_versions": "cv_versions",
    "total_tailoring_sessions": "cv_tailoring_sessions",
    "total_check_ins": "daily_check_ins",
    "total_interviews": "interview_sessions",
    "total_contract_analyses": "contract_analyses",
    "total_indicator_scores": "indicator_scores",
    "total_consent_records": "consent_history",
}


def export_filename(user_id: str, now: datetime) -> str:
    epoch_ms = int(now.timestamp() * 1000)
    return f"signatura-data-export-{user_id[:8]}-{epoch_ms}.json"


def days_until(scheduled: datetime | str, now: datetime) -> int:
    if isinstance(scheduled, str):
        scheduled = datetime.fromisoformat(scheduled.replace("Z", "+00:00"))
    if scheduled.tzinfo is None:
        scheduled = scheduled.replace(tzinfo=UTC)
    return math.ceil((scheduled - now).total_seconds() / 86400)


class GdprService:
    """Right of access (export) and right to erasure (scheduled deletion)."""

    def __init__(self, *, config: ApiConfig, db: DatabaseClient) -> None:
        self.config = config
        self.db = db
        self.deletion_table = self.config.validate_table_name("account_deletion_requests")
        self.consent_table = self.config.validate_table_name("consent_log")

    def export_user_data(
        self, user_id: str, email: str | None = None, *, now: datetime | None = None
    ) -> dict[str, Any]:
        current = now or datetime.now(UTC)
        export: dict[str, Any] = {
            "export_info": {
                "exported_at": current.isoformat(),
                "user_id": user_id,
                "user_email": email,
                "format_version": EXPORT_FORMAT_VERSION,
                "gdpr_article": EXPORT_GDPR_ARTICLE,
            }
        }

        for table_name, key in EXPORT_TABLES:
            table = self.config.validate_table_name(table_name)
            if not self.db.table_exists(table):
                logger.warning("Skipping missing table %s in data export for user %s.", table, user_id)
                export[key] = None if table == "profiles" else []
                continue
            if table == "profiles":
                export[key] = self.db.fetch_one(f"SELECT * FROM {table} WHERE id = :user_id", {"user_id": user_id})
            else:
                rows = self.db.fetch_all(f"SELECT * FROM {table} WHERE user_id = :user_id", {"user_id": user_id})
                export[key] = [
                    {column: value for column, value in row.items() if column not in REDACTED_COLUMNS} for row in rows
                ]

        export["data_summary"] = {name: len(export[key]) for name, key in SUMMARY_KEYS.items()}
        return export

    def _pending_request(self, user_id: str) -> dict[str, Any] | None:
        return self.db.fetch_one(
            f"""
            SELECT *
            FROM {self.deletion_table}
            WHERE user_id = :user_id AND status = 'pending'
            ORDER BY requested_at DESC
            LIMIT 1
            """,
            {"user_id": user_id},
        )

    def _log_consent(self, user_id: str, action: str, version: str) -> None:
        # The deletion row is already written; a missing audit row must not fail the request.
        try:
            self.db.execute(
                f"""
                INSERT INTO {self.consent_table} (user_id, consent_type, action, version, created_at)
                VALUES (:user_id, 'data_processing', :action, :version, NOW())
                """,
                {"user_id": user_id, "action": action, "version": version},
            )
        except Exception:
            logger.exception("Error logging %s consent entry for user %s.", version, user_id)

    def request_deletion(
        self, user_id: str, body: dict[str, Any], *, now: datetime | None = None
    ) -> dict[str, Any]:
        if body.get("confirm") != DELETION_CONFIRMATION:
            raise APIError(
                status_code=400,
                error_code="CONFIRMATION_REQUIRED",
                message=f'Confirmation required. Please send confirm: "{DELETION_CONFIRMATION}"',
            )

        existing = self._pending_request(user_id)
        if existing is not None:
            raise APIError(
                status_code=409,
                error_code="DELETION_ALREADY_PENDING",
                message="A deletion request is already pending",
                details={
                    "id": str(existing["id"]),
                    "scheduled_date": str(existing["scheduled_deletion_date"]),
                    "requested_at": str(existing.get("requested_at")),
                },
            )

        current = now or datetime.now(UTC)
        scheduled = current + timedelta(days=DELETION_GRACE_PERIOD_DAYS)
        row = self.db.execute_returning(
            f"""
            INSERT INTO {self.deletion_table} (user_id, scheduled_deletion_date, reason, status, requested_at)
            VALUES (:user_id, :scheduled_deletion_date, :reason, 'pending', :requested_at)
            RETURNING id
            """,
            {
                "user_id": user_id,
                "scheduled_deletion_date": scheduled,
                "reason": body.get("reason") or None,
                "requested_at": current,
            },
        )
        self._log_consent(user_id, "revoked", "account_deletion_requested")
        logger.info("Scheduled account deletion for user %s on %s.", user_id, scheduled.date())

        return {
            "message": "Account deletion scheduled",
            "deletion_request": {
                "id": str(row["id"]) if row else None,
                "scheduled_date": scheduled.isoformat(),
                "grace_period_days": DELETION_GRACE_PERIOD_DAYS,
                "can_cancel_until": scheduled.isoformat(),
            },
            "important_notice": IMPORTANT_NOTICE,
        }

    def cancel_deletion(self, user_id: str) -> dict[str, Any]:
        pending = self._pending_request(user_id)
        if pending is None:
            raise APIError(
                status_code=404,
                error_code="NOT_FOUND",
                message="No pending deletion request found",
            )

        self.db.execute(
            f"UPDATE {self.deletion_table} SET status = 'cancelled' WHERE id = :id",
            {"id": pending["id"]},
        )
        self._log_consent(user_id, "granted", "account_deletion_cancelled")
        logger.info("Cancelled account deletion request %s for user %s.", pending["id"], user_id)
        return {
            "message": "Account deletion request cancelled",
            "cancelled_request_id": str(pending["id"]),
        }

    def deletion_status(self, user_id: str, *, now: datetime | None = None) -> dict[str, Any]:
        current = now or datetime.now(UTC)
        requests = self.db.fetch_all(
            f"SELECT * FROM {self.deletion_table} WHERE user_id = :user_id ORDER BY requested_at DESC",
            {"user_id": user_id},
        )
        pending = next((item for item in requests if item.get("status") == "pending"), None)
        pending_summary = None
        if pending is not None:
            pending_summary = {
                "id": str(pending["id"]),
                "scheduled_date": pending["scheduled_deletion_date"],
                "requested_at": pending.get("requested_at"),
                "days_remaining": days_until(pending["scheduled_deletion_date"], current),
            }
        return {
            "has_pending_request": pending is not None,
            "pending_request": pending_summary,
            "all_requests": requests,
        }
