# This file turns subscription and account state changes into the sentences shown to users.
# It exists so cancellation, plan-change, and consent wording stays identical across endpoints.
# Dates are rendered as "Month D, YYYY" in UTC, whatever form the database returned them in.

from __future__ import annotations

from datetime import UTC, datetime

from src.subscription.config import get_tier_config

SCHEDULED_CHANGE_CANCELLED = "Scheduled change cancelled."
NO_PLAN_CHANGE = "No changes needed. You are already on this plan."


def _as_datetime(value: datetime | str) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def format_long_date(value: datetime | str) -> str:
    """Render `March 3, 2026` style dates."""

    moment = _as_datetime(value)
    return f"{moment:%B} {moment.day}, {moment.year}"


def tier_display_name(tier: str) -> str:
    return get_tier_config(tier).display_name


def cancellation_message(tier: str, effective_at: datetime | str) -> str:
    return (
        f"Your {tier_display_name(tier)} subscription will remain active until "
        f"{format_long_date(effective_at)}."
    )


def downgrade_message(target_tier: str, effective_at: datetime | str) -> str:
    return (
        f"Your downgrade to {tier_display_name(target_tier)} will take effect on "
        f"{format_long_date(effective_at)}."
    )


def billing_period_change_message(billing_period: str) -> str:
    return f"Your billing period will change to {billing_period} at your next renewal."


def upgrade_message(new_tier: str, prorated_amount: float) -> str:
    if prorated_amount > 0:
        return f"You are now on {tier_display_name(new_tier)}. A prorated charge of ${prorated_amount:.2f} applies."
    return f"You are now on {tier_display_name(new_tier)}."


def consent_message(action: str, consent_type: str) -> str:
    return f"Consent {action} for {consent_type}"
