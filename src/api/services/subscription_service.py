# This file orchestrates subscription flows that span the store, the manager, and payment partners.
# It exists so plan changes, checkout, payment webhooks, and the nightly job share one code path.
# Partner failures after a state change (prorated charges, invoices) are logged and never raised.
# Messages shown to users come from `src.api.plain_language`.

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime, timedelta
from typing import Any

from src.api.api_config import ApiConfig
from src.api.error_handlers import APIError
from src.api.plain_language import (
    NO_PLAN_CHANGE,
    SCHEDULED_CHANGE_CANCELLED,
    billing_period_change_message,
    cancellation_message,
    downgrade_message,
    tier_display_name,
    upgrade_message,
)
from src.subscription.config import is_downgrade, is_subscription_enabled, is_upgrade
from src.subscription.grow_gateway import GrowGateway, parse_webhook_payload
from src.subscription.manager import SubscriptionError, SubscriptionManager
from src.subscription.morning_invoicing import MorningClient, invoice_subscription_payment
from src.subscription.store import to_month_key

logger = logging.getLogger(__name__)


def previous_month_key(now: datetime) -> str:
    last_day_of_previous = now.replace(day=1) - timedelta(days=1)
    return to_month_key(last_day_of_previous)


def _no_active_subscription() -> APIError:
    return APIError(
        status_code=404,
        error_code="SUBSCRIPTION_NOT_FOUND",
        message="No active subscription found",
    )


class SubscriptionService:
    """Plan changes, checkout, webhook handling, and scheduled maintenance."""

    def __init__(
        self,
        *,
        config: ApiConfig,
        store: Any,
        manager: SubscriptionManager,
        gateway: GrowGateway,
        invoicing: MorningClient,
    ) -> None:
        self.config = config
        self.store = store
        self.manager = manager
        self.gateway = gateway
        self.invoicing = invoicing

    def cancel(self, user_id: str) -> dict[str, Any]:
        subscription = self.store.get_subscription(user_id)
        if subscription is None or not subscription.get("tier") or subscription.get("status") == "expired":
            raise _no_active_subscription()
        if subscription.get("status") == "cancelled":
            raise APIError(
                status_code=400,
                error_code="ALREADY_CANCELLED",
                message="Subscription is already cancelled",
            )

        result = self.manager.cancel_subscription(user_id)
        effective_at = result["cancellation_effective_at"]
        return {
            "cancellation_effective_at": effective_at,
            "message": cancellation_message(subscription["tier"], effective_at),
        }

    def change_plan(
        self, user_id: str, target_tier: str, target_billing_period: str | None = None
    ) -> dict[str, Any]:
        subscription = self.store.get_subscription(user_id)
        if subscription is None or not subscription.get("tier"):
            raise _no_active_subscription()

        current_tier = subscription["tier"]
        try:
            if target_tier == current_tier and subscription.get("scheduled_tier_change"):
                self.manager.cancel_scheduled_change(user_id)
                return {"message": SCHEDULED_CHANGE_CANCELLED}

            if is_upgrade(current_tier, target_tier):
                return self._upgrade(user_id, subscription, target_tier)

            if is_downgrade(current_tier, target_tier):
                result = self.manager.schedule_downgrade(user_id, target_tier)
                return {
                    "immediate": False,
                    "effective_date": result["effective_date"],
                    "message": downgrade_message(target_tier, result["effective_date"]),
                }
        except SubscriptionError as exc:
            if "not an upgrade" in str(exc) or "not a downgrade" in str(exc):
                raise APIError(
                    status_code=400,
                    error_code="INVALID_PLAN_CHANGE",
                    message=str(exc),
                ) from exc
            raise

        if target_billing_period and target_billing_period != subscription.get("billing_period"):
            self.manager.schedule_billing_period_change(user_id, target_billing_period)
            return {
                "immediate": False,
                "effective_date": subscription.get("current_period_end"),
                "message": billing_period_change_message(target_billing_period),
            }

        return {"message": NO_PLAN_CHANGE}

    def _upgrade(self, user_id: str, subscription: dict[str, Any], target_tier: str) -> dict[str, Any]:
        result = self.manager.upgrade_subscription(user_id, target_tier)
        prorated_amount = result["prorated_amount"]
        token = subscription.get("grow_transaction_token")

        if prorated_amount > 0 and token:
            charge = self.gateway.create_one_time_charge(
                amount=prorated_amount,
                description=f"Upgrade to {tier_display_name(target_tier)}",
                user_id=user_id,
                transaction_token=token,
            )
            if not charge["success"]:
                logger.error(
                    "Failed to charge prorated amount %.2f for user %s: %s",
                    prorated_amount,
                    user_id,
                    charge.get("error"),
                )
        elif prorated_amount > 0:
            logger.warning("Prorated charge of %.2f needed for user %s but no token is stored.", prorated_amount, user_id)

        return {
            "immediate": True,
            "prorated_amount": prorated_amount,
            "new_tier": target_tier,
            "message": upgrade_message(target_tier, prorated_amount),
        }

    def initiate_checkout(
        self,
        *,
        user_id: str,
        tier: str,
        billing_period: str,
        origin: str | None,
        email: str | None = None,
        name: str | None = None,
    ) -> dict[str, Any]:
        base_url = (origin or self.config.app_base_url).rstrip("/")
        result = self.gateway.create_recurring_payment(
            tier=tier,
            billing_period=billing_period,
            user_id=user_id,
            notify_url=f"{base_url}{self.config.api_version_path}/webhooks/grow",
            success_url=f"{base_url}/dashboard/subscription?success=true",
            cancel_url=f"{base_url}/dashboard/subscription?cancelled=true",
            email=email,
            name=name,
        )
        if not result["success"]:
            raise APIError(
                status_code=500,
                error_code="PAYMENT_INITIATION_FAILED",
                message="Failed to create payment",
                details=result.get("error"),
            )

        self.manager.set_pending_plan(user_id, tier, billing_period)
        return {"payment_url": result["payment_url"]}

    def handle_grow_webhook(self, body: dict[str, Any]) -> dict[str, Any]:
        """Verify, approve, then activate or renew; the invoice step only logs on failure."""

        if not self.gateway.verify_webhook(body):
            logger.error("Rejected Grow webhook with an invalid key.")
            raise APIError(status_code=401, error_code="INVALID_WEBHOOK_KEY", message="Invalid webhook key")

        payment = parse_webhook_payload(body)
        user_id = payment["user_id"]
        if not user_id:
            raise APIError(status_code=400, error_code="MISSING_USER_ID", message="Missing userId")

        approval = self.gateway.approve_transaction(
            transaction_id=payment["transaction_id"],
            transaction_token=payment["transaction_token"],
        )
        if not approval["success"]:
            logger.error("Failed to approve Grow transaction for user %s: %s", user_id, approval.get("error"))
            raise APIError(
                status_code=500,
                error_code="TRANSACTION_APPROVAL_FAILED",
                message="Failed to approve transaction",
            )

        existing = self.store.get_subscription(user_id)
        if existing is None or existing.get("tier") is None:
            self.manager.activate_subscription(
                user_id,
                payment["tier"],
                payment["billing_period"],
                {
                    "transaction_token": payment["transaction_token"],
                    "recurring_id": payment["recurring_id"],
                    "transaction_code": payment["transaction_code"],
                },
            )
            logger.info("Activated %s/%s for user %s.", payment["tier"], payment["billing_period"], user_id)
        else:
            self.manager.renew_subscription(user_id, payment["transaction_code"] or None)
            logger.info("Renewed subscription for user %s.", user_id)

        try:
            invoice_subscription_payment(self.invoicing, payment)
        except Exception:
            logger.exception("Failed to create invoice for user %s.", user_id)

        return {"success": True}

    def process_subscriptions(self, *, now: datetime | None = None) -> dict[str, Any]:
        """Expire lapsed rows and reconcile last month's snapshots."""

        if not is_subscription_enabled():
            return {"skipped": True, "reason": "enforcement disabled"}

        started = time.perf_counter()
        current = now or datetime.now(UTC)
        expiration = self.manager.process_expirations(now=current)
        reconciliation = self.manager.reconcile_snapshots(previous_month_key(current))
        return {
            "expired": expiration["expired"],
            "reconciled": reconciliation["reconciled"],
            "mismatches": reconciliation["mismatches"],
            "execution_time_ms": round((time.perf_counter() - started) * 1000.0, 2),
            "timestamp": current.isoformat(),
        }
