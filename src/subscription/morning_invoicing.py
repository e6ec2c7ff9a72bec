# This module issues invoices for subscription payments through the Morning bookkeeping API.
# It exists so the payment webhook can produce a tax invoice receipt for every successful charge.
# Access tokens are cached for 50 minutes because Morning tokens live about an hour.
# Invoicing is best effort: callers log failures and never fail the payment flow because of them.

from __future__ import annotations

import logging
import os
import time
from datetime import date
from typing import Any

import requests

from src.subscription.config import get_price, get_tier_config

logger = logging.getLogger(__name__)

TOKEN_TTL_SECONDS = 50 * 60
DOCUMENT_TYPE_INVOICE_RECEIPT = 305
PAYMENT_TYPE_CREDIT_CARD = 3

PERIOD_LABELS: dict[str, str] = {"monthly": "Monthly", "quarterly": "Quarterly", "yearly": "Annual"}


class InvoicingError(RuntimeError):
    """Raised when the invoicing API rejects a request or is misconfigured."""


class MorningClient:
    def __init__(
        self,
        *,
        api_url: str | None = None,
        api_key: str | None = None,
        api_secret: str | None = None,
        timeout_seconds: int = 15,
        session: requests.Session | None = None,
    ) -> None:
        self.api_url = (api_url if api_url is not None else os.getenv("MORNING_API_URL", "")).rstrip("/")
        self.api_key = api_key if api_key is not None else os.getenv("MORNING_API_KEY", "")
        self.api_secret = api_secret if api_secret is not None else os.getenv("MORNING_API_SECRET", "")
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()
        self._token: str | None = None
        self._token_expires_at = 0.0

    @property
    def is_configured(self) -> bool:
        return bool(self.api_url and self.api_key and self.api_secret)

    def clear_token_cache(self) -> None:
        self._token = None
        self._token_expires_at = 0.0

    def authenticate(self) -> str:
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token
        if not self.is_configured:
            raise InvoicingError("Morning API credentials are not configured")

        response = self._post(
            f"{self.api_url}/account/token",
            {"id": self.api_key, "secret": self.api_secret},
            headers={},
        )
        token = response.get("token")
        if not token:
            raise InvoicingError("Morning auth response missing token")

        self._token = str(token)
        self._token_expires_at = time.monotonic() + TOKEN_TTL_SECONDS
        return self._token

    def _post(self, url: str, body: dict[str, Any], *, headers: dict[str, str]) -> dict[str, Any]:
        try:
            response = self.session.post(url, json=body, headers=headers, timeout=self.timeout_seconds)
        except requests.RequestException as exc:
            raise InvoicingError(f"Morning API request failed for {url}: {exc}") from exc
        if response.status_code >= 400:
            raise InvoicingError(f"Morning API error: {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise InvoicingError(f"Morning API did not return valid JSON for {url}") from exc
        return payload if isinstance(payload, dict) else {}

    def _api_call(self, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        token = self.authenticate()
        return self._post(
            f"{self.api_url}{endpoint}",
            body,
            headers={"Authorization": f"Bearer {token}"},
        )

    def create_or_find_customer(self, *, name: str, email: str) -> dict[str, Any]:
        search = self._api_call("/clients/search", {"email": email})
        items = search.get("items") or []
        if items:
            return {"customer_id": items[0]["id"], "is_new": False}

        created = self._api_call("/clients", {"name": name, "emails": [email], "active": True})
        return {"customer_id": created["id"], "is_new": True}

    def create_invoice_receipt(self, *, customer_id: str, description: str, amount: float) -> dict[str, Any]:
        result = self._api_call(
            "/documents",
            {
                "type": DOCUMENT_TYPE_INVOICE_RECEIPT,
                "client": {"id": customer_id},
                "currency": "USD",
                "lang": "en",
                "income": [
                    {
                        "catalogNum": "SUB-001",
                        "description": description,
                        "quantity": 1,
                        "price": amount,
                        "currency": "USD",
                        "vatType": 0,
                    }
                ],
                "payment": [
                    {
                        "type": PAYMENT_TYPE_CREDIT_CARD,
                        "date": date.today().isoformat(),
                        "price": amount,
                        "currency": "USD",
                    }
                ],
            },
        )
        return {"document_id": result.get("id"), "document_url": result.get("url")}


def subscription_invoice_description(tier: str, billing_period: str) -> str:
    tier_name = get_tier_config(tier).display_name
    return f"Signatura {tier_name} - {PERIOD_LABELS.get(billing_period, 'Annual')} Subscription"


def invoice_subscription_payment(client: MorningClient, payment: dict[str, Any]) -> dict[str, Any] | None:
    """Create an invoice receipt for a webhook payment; returns None when it was skipped."""

    email = payment.get("email")
    if not email:
        logger.warning("No email in payment payload for user %s, skipping invoice.", payment.get("user_id"))
        return None
    if not client.is_configured:
        logger.warning("Morning invoicing is not configured, skipping invoice.")
        return None

    customer = client.create_or_find_customer(name=payment.get("name") or "Customer", email=email)
    return client.create_invoice_receipt(
        customer_id=customer["customer_id"],
        description=subscription_invoice_description(payment["tier"], payment["billing_period"]),
        amount=get_price(payment["tier"], payment["billing_period"]),
    )
