# This file tests the Grow payment gateway client with a fake HTTP session.
# It exists so checkout, token charges, approvals, and webhook verification keep their wire contract.

from __future__ import annotations

from typing import Any

import pytest
import requests

from src.subscription.grow_gateway import GatewayConfigError, GrowGateway, get_page_code, parse_webhook_payload


class _FakeResponse:
    def __init__(self, *, status_code: int = 200, payload: Any = None) -> None:
        self.status_code = status_code
        self._payload = payload

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class _FakeSession:
    def __init__(self, responses: list[_FakeResponse] | None = None, raise_error: Exception | None = None) -> None:
        self.responses = responses or []
        self.raise_error = raise_error
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def post(self, url: str, data: dict[str, Any] | None = None, timeout: int | None = None, **_: Any) -> _FakeResponse:
        self.calls.append((url, dict(data or {})))
        if self.raise_error is not None:
            raise self.raise_error
        return self.responses.pop(0)


def _gateway(session: _FakeSession, **overrides: Any) -> GrowGateway:
    settings = {"api_url": "https://grow.test/api/", "user_id": "grow-user", "webhook_key": "secret-key"}
    settings.update(overrides)
    return GrowGateway(session=session, **settings)  # type: ignore[arg-type]


def test_page_code_comes_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GROW_PAGE_CODE_ELITE_YEARLY", "page-ey")
    assert get_page_code("elite", "yearly") == "page-ey"
    with pytest.raises(GatewayConfigError, match="GROW_PAGE_CODE_MOMENTUM_MONTHLY"):
        get_page_code("momentum", "monthly")


def test_recurring_payment_posts_plan_fields(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GROW_PAGE_CODE_ACCELERATE_QUARTERLY", "page-aq")
    session = _FakeSession([_FakeResponse(payload={"status": 1, "data": {"url": "https://pay.test/abc"}})])

    result = _gateway(session).create_recurring_payment(
        tier="accelerate",
        billing_period="quarterly",
        user_id="user-1",
        notify_url="https://app.test/api/v1/webhooks/grow",
        success_url="https://app.test/ok",
        cancel_url="https://app.test/cancel",
        email="dana@example.com",
    )

    assert result == {"success": True, "payment_url": "https://pay.test/abc"}
    url, form = session.calls[0]
    assert url == "https://grow.test/api/createPaymentProcess"
    assert form["pageCode"] == "page-aq"
    assert form["sum"] == "45"
    assert form["cField1"] == "user-1"
    assert form["cField2"] == "accelerate"
    assert form["cField3"] == "quarterly"
    assert form["userId"] == "grow-user"
    assert form["email"] == "dana@example.com"
    assert "fullName" not in form


def test_recurring_payment_without_page_code_fails_softly() -> None:
    session = _FakeSession()
    result = _gateway(session).create_recurring_payment(
        tier="elite",
        billing_period="monthly",
        user_id="user-1",
        notify_url="n",
        success_url="s",
        cancel_url="c",
    )

    assert result["success"] is False
    assert "GROW_PAGE_CODE_ELITE_MONTHLY" in result["error"]
    assert session.calls == []


def test_gateway_error_message_is_surfaced(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GROW_PAGE_CODE_ELITE_MONTHLY", "page-em")
    session = _FakeSession([_FakeResponse(payload={"status": 0, "err": {"message": "Page disabled"}})])

    result = _gateway(session).create_recurring_payment(
        tier="elite", billing_period="monthly", user_id="u", notify_url="n", success_url="s", cancel_url="c"
    )
    assert result == {"success": False, "error": "Page disabled"}


def test_one_time_charge_handles_http_and_network_errors() -> None:
    failing = _gateway(_FakeSession([_FakeResponse(status_code=502, payload={})]))
    result = failing.create_one_time_charge(amount=3.5, description="Upgrade", user_id="u", transaction_token="t")
    assert result == {"success": False, "error": "Grow API error: 502"}

    offline = _gateway(_FakeSession(raise_error=requests.ConnectionError("down")))
    result = offline.create_one_time_charge(amount=3.5, description="Upgrade", user_id="u", transaction_token="t")
    assert result["success"] is False
    assert "down" in result["error"]


def test_one_time_charge_sends_amount_without_trailing_zeros() -> None:
    session = _FakeSession([_FakeResponse(payload={"status": 1, "data": {"transactionId": "tx-1"}})])
    result = _gateway(session).create_one_time_charge(
        amount=3.5, description="Upgrade to Elite", user_id="user-1", transaction_token="tok"
    )

    assert result == {"success": True, "transaction_id": "tx-1"}
    assert session.calls[0][0].endswith("/chargeToken")
    assert session.calls[0][1]["sum"] == "3.5"


def test_missing_gateway_url_is_reported() -> None:
    gateway = _gateway(_FakeSession(), api_url="")
    result = gateway.approve_transaction(transaction_id="1", transaction_token="t")
    assert result == {"success": False, "error": "GROW_API_URL environment variable is not set"}


def test_approve_transaction() -> None:
    session = _FakeSession([_FakeResponse(payload={"status": 1})])
    assert _gateway(session).approve_transaction(transaction_id="tx-1", transaction_token="tok") == {"success": True}
    assert session.calls[0][1]["transactionId"] == "tx-1"


def test_webhook_verification() -> None:
    gateway = _gateway(_FakeSession())
    assert gateway.verify_webhook({"webhookKey": "secret-key"}) is True
    assert gateway.verify_webhook({"webhookKey": "wrong"}) is False
    assert gateway.verify_webhook({}) is False
    assert _gateway(_FakeSession(), webhook_key="").verify_webhook({"webhookKey": ""}) is False


def test_webhook_payload_defaults() -> None:
    parsed = parse_webhook_payload({"cField1": "user-1", "sum": "not-a-number", "transactionId": 42})

    assert parsed["user_id"] == "user-1"
    assert parsed["tier"] == "momentum"
    assert parsed["billing_period"] == "monthly"
    assert parsed["sum"] == 0.0
    assert parsed["currency"] == "ILS"
    assert parsed["transaction_id"] == "42"
    assert parsed["recurring_id"] is None
