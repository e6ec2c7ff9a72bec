# This file implements the split pattern around metered actions.
# It exists so routes check the quota before doing work and count the action only after it succeeds.
# The check and the increment are separate calls with no lock, so two racing requests may both pass.
# A failed increment is logged and swallowed; the user already got what they paid for.

from __future__ import annotations

import logging
from typing import Any

from src.api.error_handlers import APIError
from src.subscription.access_control import AccessControl

logger = logging.getLogger(__name__)


class UsageGuard:
    def __init__(self, *, access_control: AccessControl) -> None:
        self.access_control = access_control

    def enforce(self, user_id: str, resource: str) -> dict[str, Any]:
        """Raise 402/403 when the user may not consume one more `resource`."""

        check = self.access_control.check_usage_limit(user_id, resource)
        if check["allowed"]:
            return check

        details = {
            "reason": check.get("reason"),
            "used": check.get("used"),
            "limit": check.get("limit"),
            "tier": check.get("tier"),
        }
        if check.get("reason") == "NO_SUBSCRIPTION":
            raise APIError(
                status_code=402,
                error_code="SUBSCRIPTION_REQUIRED",
                message="Subscription required",
                details=details,
            )
        raise APIError(
            status_code=403,
            error_code="USAGE_LIMIT_REACHED",
            message="Usage limit reached",
            details=details,
        )

    def record(self, user_id: str, resource: str) -> None:
        try:
            self.access_control.increment_usage(user_id, resource)
        except Exception:
            logger.exception("Failed to record %s usage for user %s.", resource, user_id)
