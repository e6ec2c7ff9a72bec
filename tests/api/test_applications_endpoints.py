# This file tests the job application tracker endpoints.
# It exists to lock the create validation, owner scoping, pagination, and usage metering contracts.
# A fake service stands in for SQL; usage runs through the real guard over an in-memory store.

from __future__ import annotations

from typing import Any

import pytest

from src.api.pagination import SortSpec
from src.api.usage_limits import UsageGuard
from src.subscription.access_control import AccessControl
from tests.api.support import AUTH_HEADERS, TEST_USER_ID, api_test_client
from tests.subscription.memory_store import InMemorySubscriptionStore

VALID_BODY = {
    "company_name": "Acme",
    "position_title": "Backend Engineer",
    "job_description": "Own the billing service.",
}


class FakeApplicationsService:
    def __init__(self, rows: list[dict[str, Any]] | None = None) -> None:
        self.rows = rows if rows is not None else []
        self.list_calls: list[dict[str, Any]] = []

    def create_application(self, user_id: str, values: dict[str, Any]) -> dict[str, Any]:
        row = {"id": f"app-{len(self.rows) + 1}", "user_id": user_id, **values}
        self.rows.append(row)
        return row

    def list_applications(self, **kwargs: Any) -> dict[str, Any]:
        self.list_calls.append(kwargs)
        owned = [row for row in self.rows if row["user_id"] == kwargs["user_id"]]
        start = (kwargs["page"] - 1) * kwargs["page_size"]
        return {"rows": owned[start : start + kwargs["page_size"]], "total_count": len(owned)}

    def get_application(self, user_id: str, application_id: str) -> dict[str, Any] | None:
        return next(
            (row for row in self.rows if row["id"] == application_id and row["user_id"] == user_id), None
        )

    def update_application(self, user_id: str, application_id: str, updates: dict[str, Any]) -> dict[str, Any] | None:
        row = self.get_application(user_id, application_id)
        if row is not None:
            row.update(updates)
        return row

    def delete_application(self, user_id: str, application_id: str) -> bool:
        row = self.get_application(user_id, application_id)
        if row is None:
            return False
        self.rows.remove(row)
        return True


def _guard(**subscriptions: dict[str, Any]) -> tuple[UsageGuard, InMemorySubscriptionStore]:
    store = InMemorySubscriptionStore(subscriptions=subscriptions)
    return UsageGuard(access_control=AccessControl(store=store)), store


def _seeded(count: int) -> FakeApplicationsService:
    rows = [
        {"id": f"app-{index}", "user_id": TEST_USER_ID, "company_name": f"Company {index}"}
        for index in range(1, count + 1)
    ]
    rows.append({"id": "foreign", "user_id": "user-2", "company_name": "Elsewhere"})
    return FakeApplicationsService(rows)


def test_requests_without_token_are_unauthorized() -> None:
    with api_test_client(applications_service=FakeApplicationsService()) as client:
        response = client.get("/api/v1/applications")

    assert response.status_code == 401
    payload = response.json()
    assert payload["error_code"] == "UNAUTHORIZED"
    assert payload["message"] == "Authentication required"
    assert payload["request_id"]


def test_create_application_returns_201_and_records_usage() -> None:
    service = FakeApplicationsService()
    guard, store = _guard()
    with api_test_client(applications_service=service, usage_guard=guard) as client:
        response = client.post("/api/v1/applications", json=VALID_BODY, headers=AUTH_HEADERS)

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["user_id"] == TEST_USER_ID
    assert data["application_status"] == "preparing"
    assert data["priority_level"] == "medium"
    assert store.subscriptions[TEST_USER_ID]["usage_applications"] == 1


def test_create_application_accepts_short_field_names() -> None:
    guard, _ = _guard()
    body = {**VALID_BODY, "status": "applied", "priority": "high", "excitement_level": 5}
    canonical_wins = {**VALID_BODY, "status": "applied", "application_status": "interviewing"}
    with api_test_client(applications_service=FakeApplicationsService(), usage_guard=guard) as client:
        short = client.post("/api/v1/applications", json=body, headers=AUTH_HEADERS).json()["data"]
        both = client.post("/api/v1/applications", json=canonical_wins, headers=AUTH_HEADERS).json()["data"]

    assert short["application_status"] == "applied"
    assert short["priority_level"] == "high"
    assert short["user_excitement_level"] == 5
    assert both["application_status"] == "interviewing"
    assert "status" not in short


def test_create_application_requires_fields() -> None:
    guard, store = _guard()
    body = {**VALID_BODY, "company_name": "   "}
    with api_test_client(applications_service=FakeApplicationsService(), usage_guard=guard) as client:
        response = client.post("/api/v1/applications", json=body, headers=AUTH_HEADERS)

    assert response.status_code == 400
    assert response.json()["message"] == "company_name is required"
    assert store.subscriptions == {}


def test_malformed_json_is_a_400_not_a_422() -> None:
    guard, _ = _guard()
    with api_test_client(applications_service=FakeApplicationsService(), usage_guard=guard) as client:
        response = client.post(
            "/api/v1/applications",
            content=b"{not json",
            headers={**AUTH_HEADERS, "Content-Type": "application/json"},
        )

    assert response.status_code == 400
    assert response.json()["message"] == "company_name is required"


def test_create_without_subscription_is_402(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SUBSCRIPTION_ENABLED", "true")
    service = FakeApplicationsService()
    guard, _ = _guard()
    with api_test_client(applications_service=service, usage_guard=guard) as client:
        response = client.post("/api/v1/applications", json=VALID_BODY, headers=AUTH_HEADERS)

    assert response.status_code == 402
    payload = response.json()
    assert payload["error_code"] == "SUBSCRIPTION_REQUIRED"
    assert payload["details"]["reason"] == "NO_SUBSCRIPTION"
    assert service.rows == []


def test_create_at_tier_cap_is_403(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SUBSCRIPTION_ENABLED", "true")
    guard, store = _guard(**{TEST_USER_ID: {"tier": "momentum", "status": "active", "usage_applications": 8}})
    with api_test_client(applications_service=FakeApplicationsService(), usage_guard=guard) as client:
        response = client.post("/api/v1/applications", json=VALID_BODY, headers=AUTH_HEADERS)

    assert response.status_code == 403
    payload = response.json()
    assert payload["error_code"] == "USAGE_LIMIT_REACHED"
    assert payload["details"] == {"reason": "LIMIT_EXCEEDED", "used": 8, "limit": 8, "tier": "momentum"}
    assert store.subscriptions[TEST_USER_ID]["usage_applications"] == 8


def test_create_below_cap_counts_one_more(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SUBSCRIPTION_ENABLED", "true")
    guard, store = _guard(**{TEST_USER_ID: {"tier": "momentum", "status": "active", "usage_applications": 7}})
    with api_test_client(applications_service=FakeApplicationsService(), usage_guard=guard) as client:
        response = client.post("/api/v1/applications", json=VALID_BODY, headers=AUTH_HEADERS)

    assert response.status_code == 201
    assert store.subscriptions[TEST_USER_ID]["usage_applications"] == 8


def test_list_applications_is_paginated_and_owner_scoped() -> None:
    service = _seeded(3)
    with api_test_client(applications_service=service) as client:
        response = client.get("/api/v1/applications", headers=AUTH_HEADERS)

    assert response.status_code == 200
    payload = response.json()
    assert [row["id"] for row in payload["data"]] == ["app-1", "app-2"]
    assert payload["pagination"] == {
        "page": 1,
        "page_size": 2,
        "total_count": 3,
        "total_pages": 2,
        "sort": "created_at:desc",
    }
    assert service.list_calls[0]["sort"] == SortSpec(field="created_at", order="desc")


def test_list_second_page_and_filters_are_forwarded() -> None:
    service = _seeded(3)
    with api_test_client(applications_service=service) as client:
        response = client.get(
            "/api/v1/applications?page=2&status=applied&sort=company_name:asc", headers=AUTH_HEADERS
        )

    assert [row["id"] for row in response.json()["data"]] == ["app-3"]
    call = service.list_calls[0]
    assert call["status"] == "applied"
    assert call["priority"] is None
    assert call["sort"] == SortSpec(field="company_name", order="asc")


@pytest.mark.parametrize(
    "query",
    ["page_size=6", "sort=salary:desc", "sort=created_at:sideways"],
)
def test_invalid_list_queries_are_400(query: str) -> None:
    with api_test_client(applications_service=_seeded(1)) as client:
        response = client.get(f"/api/v1/applications?{query}", headers=AUTH_HEADERS)

    assert response.status_code == 400
    assert response.json()["error_code"] == "INVALID_QUERY_PARAM"


def test_get_foreign_application_is_404() -> None:
    with api_test_client(applications_service=_seeded(1)) as client:
        response = client.get("/api/v1/applications/foreign", headers=AUTH_HEADERS)

    assert response.status_code == 404
    assert response.json()["message"] == "Application not found"


def test_patch_maps_aliases_onto_columns() -> None:
    service = _seeded(1)
    with api_test_client(applications_service=service) as client:
        response = client.patch(
            "/api/v1/applications/app-1",
            json={"status": "interviewing", "priority": "high", "ignored": "x"},
            headers=AUTH_HEADERS,
        )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["application_status"] == "interviewing"
    assert data["priority_level"] == "high"
    assert "ignored" not in data


def test_patch_without_known_fields_is_400() -> None:
    with api_test_client(applications_service=_seeded(1)) as client:
        response = client.patch("/api/v1/applications/app-1", json={"ignored": 1}, headers=AUTH_HEADERS)

    assert response.status_code == 400
    assert response.json()["message"] == "No valid fields to update"


def test_delete_application() -> None:
    service = _seeded(1)
    with api_test_client(applications_service=service) as client:
        deleted = client.delete("/api/v1/applications/app-1", headers=AUTH_HEADERS)
        missing = client.delete("/api/v1/applications/app-1", headers=AUTH_HEADERS)

    assert deleted.status_code == 200
    assert deleted.json()["message"] == "Application deleted"
    assert missing.status_code == 404
