# This module is the client for the Grow payment gateway used for subscription billing.
# It exists so checkout, proration charges, and webhook handling share one request path.
# Calls are form-encoded POSTs; Grow reports success in the body with `status == 1`.
# Payment helpers never raise: failures come back as `{"success": False, "error": ...}`.

from __future__ import annotations

import hmac
import logging
import os
from typing import Any

import requests

from src.subscription.config import get_price

logger = logging.getLogger(__name__)


class GatewayError(RuntimeError):
    """Raised when the gateway cannot be reached or rejects a request."""


class GatewayConfigError(GatewayError):
    """Raised when required gateway settings are missing."""


def get_page_code(tier: str, billing_period: str) -> str:
    env_name = f"GROW_PAGE_CODE_{tier.upper()}_{billing_period.upper()}"
    page_code = os.getenv(env_name)
    if not page_code:
        raise GatewayConfigError(f"{env_name} environment variable is not set")
    return page_code


def _error_message(payload: dict[str, Any], default: str) -> str:
    err = payload.get("err")
    if isinstance(err, dict) and err.get("message"):
        return str(err["message"])
    return default


class GrowGateway:
    def __init__(
        self,
        *,
        api_url: str | None = None,
        user_id: str | None = None,
        webhook_key: str | None = None,
        timeout_seconds: int = 15,
        session: requests.Session | None = None,
    ) -> None:
        self.api_url = api_url if api_url is not None else os.getenv("GROW_API_URL")
        self.user_id = user_id if user_id is not None else os.getenv("GROW_USER_ID")
        self.webhook_key = webhook_key if webhook_key is not None else os.getenv("GROW_WEBHOOK_KEY")
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    def _config(self) -> tuple[str, str]:
        if not self.api_url:
            raise GatewayConfigError("GROW_API_URL environment variable is not set")
        if not self.user_id:
            raise GatewayConfigError("GROW_USER_ID environment variable is not set")
        return self.api_url.rstrip("/"), self.user_id

    def call(self, endpoint: str, form_fields: dict[str, str]) -> dict[str, Any]:
        api_url, grow_user_id = self._config()
        url = f"{api_url}{endpoint}"
        try:
            response = self.session.post(
                url,
                data={**form_fields, "userId": grow_user_id},
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise GatewayError(f"Grow API request failed for {endpoint}: {exc}") from exc

        if response.status_code >= 400:
            raise GatewayError(f"Grow API error: {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise GatewayError(f"Grow API did not return valid JSON for {endpoint}") from exc
        if not isinstance(payload, dict):
            raise GatewayError(f"Unexpected payload shape from {endpoint}")
        return payload

    def create_recurring_payment(
        self,
        *,
        tier: str,
        billing_period: str,
        user_id: str,
        notify_url: str,
        success_url: str,
        cancel_url: str,
        email: str | None = None,
        name: str | None = None,
    ) -> dict[str, Any]:
        try:
            form_fields = {
                "pageCode": get_page_code(tier, billing_period),
                "sum": f"{get_price(tier, billing_period):g}",
                "paymentNum": "0",
                "cField1": user_id,
                "cField2": tier,
                "cField3": billing_period,
                "notifyUrl": notify_url,
                "successUrl": success_url,
                "cancelUrl": cancel_url,
            }
            if email:
                form_fields["email"] = email
            if name:
                form_fields["fullName"] = name

            payload = self.call("/createPaymentProcess", form_fields)
        except (GatewayError, ValueError) as exc:
            logger.warning("Grow recurring payment setup failed for user %s: %s", user_id, exc)
            return {"success": False, "error": str(exc)}

        data = payload.get("data")
        if payload.get("status") == 1 and isinstance(data, dict):
            return {"success": True, "payment_url": data.get("url")}
        return {"success": False, "error": _error_message(payload, "Unknown error creating payment")}

    def create_one_time_charge(
        self, *, amount: float, description: str, user_id: str, transaction_token: str
    ) -> dict[str, Any]:
        try:
            payload = self.call(
                "/chargeToken",
                {
                    "transactionToken": transaction_token,
                    "sum": f"{amount:g}",
                    "description": description,
                    "cField1": user_id,
                },
            )
        except GatewayError as exc:
            return {"success": False, "error": str(exc)}

        if payload.get("status") == 1:
            data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
            return {"success": True, "transaction_id": data.get("transactionId")}
        return {"success": False, "error": _error_message(payload, "Unknown error charging token")}

    def approve_transaction(self, *, transaction_id: str, transaction_token: str) -> dict[str, Any]:
        try:
            payload = self.call(
                "/approveTransaction",
                {"transactionId": transaction_id, "transactionToken": transaction_token},
            )
        except GatewayError as exc:
            return {"success": False, "error": str(exc)}

        if payload.get("status") == 1:
            return {"success": True}
        return {
            "success": False,
            "error": _error_message(payload, "Unknown error approving transaction"),
        }

    def verify_webhook(self, body: dict[str, Any]) -> bool:
        if not self.webhook_key:
            logger.warning("GROW_WEBHOOK_KEY is not set - rejecting webhook")
            return False
        received = body.get("webhookKey")
        if not received or not isinstance(received, str):
            return False
        return hmac.compare_digest(self.webhook_key.encode("utf-8"), received.encode("utf-8"))


def _parse_sum(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def parse_webhook_payload(body: dict[str, Any]) -> dict[str, Any]:
    """Normalize a Grow notification into the fields the webhook route uses."""

    return {
        "transaction_id": str(body.get("transactionId") or ""),
        "transaction_token": str(body.get("transactionToken") or ""),
        "transaction_code": str(body.get("transactionCode") or ""),
        "status": str(body.get("status") or ""),
        "sum": _parse_sum(body.get("sum")),
        "currency": str(body.get("currency") or "ILS"),
        "user_id": str(body.get("cField1") or ""),
        "tier": str(body.get("cField2") or "momentum"),
        "billing_period": str(body.get("cField3") or "monthly"),
        "recurring_id": body.get("recurringId"),
        "email": body.get("email"),
        "name": body.get("fullName"),
        "raw_payload": body,
    }
