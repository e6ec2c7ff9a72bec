# This file records consent decisions and keeps the matching profile flags in sync.
# It exists so the audit row and the profile update always happen together for one consent action.
# The audit insert must succeed; a failed profile update is logged because the consent is already on record.

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from src.api.api_config import ApiConfig
from src.api.db_access import DatabaseClient
from src.api.error_handlers import APIError
from src.api.plain_language import consent_message

logger = logging.getLogger(__name__)

CONSENT_TYPES: tuple[str, ...] = (
    "privacy_policy",
    "terms_of_service",
    "marketing_emails",
    "data_processing",
    "cookies",
)
CONSENT_ACTIONS: tuple[str, ...] = ("granted", "revoked")


def client_ip(headers: Any) -> str | None:
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return headers.get("x-real-ip")


def profile_updates_for(consent_type: str, action: str, now: datetime) -> dict[str, Any]:
    granted = action == "granted"
    if consent_type == "privacy_policy":
        return {"privacy_policy_accepted_at": now} if granted else {}
    if consent_type == "terms_of_service":
        return {"terms_accepted_at": now} if granted else {}
    if consent_type == "marketing_emails":
        return {"marketing_emails_consent": granted}
    if consent_type == "data_processing":
        return {"data_processing_consent": granted}
    return {}


def validate_consent_body(body: dict[str, Any]) -> tuple[str, str, str | None]:
    consent_type = body.get("consent_type")
    action = body.get("action")
    if not consent_type or not action:
        raise APIError(status_code=400, error_code="INVALID_REQUEST", message="consent_type and action are required")
    if consent_type not in CONSENT_TYPES:
        raise APIError(status_code=400, error_code="INVALID_REQUEST", message="Invalid consent_type")
    if action not in CONSENT_ACTIONS:
        raise APIError(status_code=400, error_code="INVALID_REQUEST", message="Invalid action")
    return consent_type, action, body.get("version") or None


class ConsentService:
    def __init__(self, *, config: ApiConfig, db: DatabaseClient) -> None:
        self.config = config
        self.db = db
        self.consent_table = self.config.validate_table_name("consent_log")
        self.profiles_table = self.config.validate_table_name("profiles")

    def log_consent(
        self,
        user_id: str,
        body: dict[str, Any],
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        consent_type, action, version = validate_consent_body(body)
        current = now or datetime.now(UTC)

        self.db.execute(
            f"""
            INSERT INTO {self.consent_table}
                (user_id, consent_type, action, version, ip_address, user_agent, created_at)
            VALUES
                (:user_id, :consent_type, :action, :version, :ip_address, :user_agent, :created_at)
            """,
            {
                "user_id": user_id,
                "consent_type": consent_type,
                "action": action,
                "version": version,
                "ip_address": ip_address,
                "user_agent": user_agent,
                "created_at": current,
            },
        )

        updates = profile_updates_for(consent_type, action, current)
        if updates:
            set_sql = ", ".join(f"{column} = :{column}" for column in sorted(updates))
            try:
                self.db.execute(
                    f"UPDATE {self.profiles_table} SET {set_sql} WHERE id = :user_id",
                    {**updates, "user_id": user_id},
                )
            except Exception:
                logger.exception("Error updating consent flags on profile %s.", user_id)

        return {"message": consent_message(action, consent_type)}

    def history(self, user_id: str) -> list[dict[str, Any]]:
        return self.db.fetch_all(
            f"SELECT * FROM {self.consent_table} WHERE user_id = :user_id ORDER BY created_at DESC",
            {"user_id": user_id},
        )
