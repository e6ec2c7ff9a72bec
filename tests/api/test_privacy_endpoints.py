# This file tests the data export, account deletion, and consent audit endpoints.
# It exists to pin the export attachment, the 30-day deletion grace period, and consent side effects.

from __future__ import annotations

from datetime import UTC, datetime

from src.api.services.consent_service import ConsentService, client_ip, profile_updates_for
from src.api.services.gdpr_service import GdprService, days_until, export_filename
from tests.api.support import AUTH_HEADERS, TEST_USER_ID, RecordingDB, api_test_client, build_test_config

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


def _gdpr(db: RecordingDB) -> GdprService:
    return GdprService(config=build_test_config(), db=db)  # type: ignore[arg-type]


def _consent(db: RecordingDB) -> ConsentService:
    return ConsentService(config=build_test_config(), db=db)  # type: ignore[arg-type]


def test_export_filename_and_days_until() -> None:
    assert export_filename("0123456789abcdef", NOW) == f"signatura-data-export-01234567-{int(NOW.timestamp() * 1000)}.json"
    assert days_until("2026-10-21T00:00:00Z", NOW) == 2
    assert days_until(datetime(2026, 10, 19, 12, 0), NOW) == 0


def test_export_is_a_json_attachment() -> None:
    db = RecordingDB(
        fetch_one_results=[{"id": TEST_USER_ID, "full_name": "Dana Levi"}],
        fetch_all_results=[[{"id": "app-1"}, {"id": "app-2"}]],
    )
    with api_test_client(gdpr_service=_gdpr(db)) as client:
        response = client.get("/api/v1/gdpr/export-data", headers=AUTH_HEADERS)

    assert response.status_code == 200
    assert response.headers["content-disposition"].startswith('attachment; filename="signatura-data-export-user-1-')
    assert response.headers["x-content-type-options"] == "nosniff"
    export = response.json()
    assert export["export_info"]["user_email"] == "dana@example.com"
    assert export["export_info"]["gdpr_article"] == "Article 15 - Right of Access"
    assert export["profile"]["full_name"] == "Dana Levi"
    assert export["data_summary"]["total_applications"] == 2
    assert export["data_summary"]["total_consent_records"] == 0


def test_export_includes_billing_history_without_payment_tokens() -> None:
    subscription = {
        "user_id": TEST_USER_ID,
        "tier": "momentum",
        "grow_transaction_token": "tok-secret",
        "grow_recurring_id": "rec-secret",
    }
    # job_applications through contract_analyses come back empty.
    db = RecordingDB(fetch_all_results=[[] for _ in range(8)] + [[{"id": "score-1"}], [subscription]])
    with api_test_client(gdpr_service=_gdpr(db)) as client:
        export = client.get("/api/v1/gdpr/export-data", headers=AUTH_HEADERS).json()

    assert export["indicator_scores"] == [{"id": "score-1"}]
    assert export["subscription"] == [{"user_id": TEST_USER_ID, "tier": "momentum"}]
    assert export["subscription_events"] == []
    assert export["usage_history"] == []
    assert export["contract_analyses"] == []
    assert export["data_summary"]["total_indicator_scores"] == 1


def test_export_skips_missing_tables() -> None:
    db = RecordingDB(existing_tables={"consent_log"}, fetch_all_results=[[{"consent_type": "cookies"}]])
    with api_test_client(gdpr_service=_gdpr(db)) as client:
        export = client.get("/api/v1/gdpr/export-data", headers=AUTH_HEADERS).json()

    assert export["profile"] is None
    assert export["job_applications"] == []
    assert export["consent_history"] == [{"consent_type": "cookies"}]
    assert export["data_summary"]["total_consent_records"] == 1


def test_deletion_requires_confirmation() -> None:
    with api_test_client(gdpr_service=_gdpr(RecordingDB())) as client:
        response = client.post("/api/v1/gdpr/delete-account", json={"confirm": "yes"}, headers=AUTH_HEADERS)

    assert response.status_code == 400
    assert response.json()["error_code"] == "CONFIRMATION_REQUIRED"


def test_deletion_is_scheduled_thirty_days_out() -> None:
    db = RecordingDB(returning_row={"id": 17})
    with api_test_client(gdpr_service=_gdpr(db)) as client:
        response = client.post(
            "/api/v1/gdpr/delete-account",
            json={"confirm": "DELETE_MY_ACCOUNT", "reason": "Found a job"},
            headers=AUTH_HEADERS,
        )

    assert response.status_code == 200
    payload = response.json()
    assert payload["message"] == "Account deletion scheduled"
    request = payload["data"]["deletion_request"]
    assert request["id"] == "17"
    assert request["grace_period_days"] == 30
    insert_params = db.statements[0][1]
    assert (insert_params["scheduled_deletion_date"] - insert_params["requested_at"]).days == 30
    assert insert_params["reason"] == "Found a job"
    assert db.statements[1][1] == {"user_id": TEST_USER_ID, "action": "revoked", "version": "account_deletion_requested"}


class ConsentLogDown(RecordingDB):
    """Deletion writes succeed but the consent audit insert fails."""

    def execute(self, query: str, params: object = None) -> int:
        if "consent_log" in query:
            raise RuntimeError("consent_log unavailable")
        return super().execute(query, params)


def test_deletion_survives_consent_audit_failure() -> None:
    db = ConsentLogDown(returning_row={"id": 21}, fetch_one_results=[None, {"id": 21, "status": "pending"}])
    with api_test_client(gdpr_service=_gdpr(db)) as client:
        scheduled = client.post(
            "/api/v1/gdpr/delete-account", json={"confirm": "DELETE_MY_ACCOUNT"}, headers=AUTH_HEADERS
        )
        cancelled = client.delete("/api/v1/gdpr/delete-account", headers=AUTH_HEADERS)

    assert scheduled.status_code == 200
    assert scheduled.json()["data"]["deletion_request"]["id"] == "21"
    assert cancelled.status_code == 200
    assert cancelled.json()["data"]["cancelled_request_id"] == "21"
    assert [query.split(" ")[0] for query, _ in db.statements] == ["INSERT", "UPDATE"]


def test_second_deletion_request_conflicts() -> None:
    pending = {"id": 3, "scheduled_deletion_date": "2026-11-18", "requested_at": "2026-10-19"}
    db = RecordingDB(fetch_one_results=[pending])
    with api_test_client(gdpr_service=_gdpr(db)) as client:
        response = client.post(
            "/api/v1/gdpr/delete-account", json={"confirm": "DELETE_MY_ACCOUNT"}, headers=AUTH_HEADERS
        )

    assert response.status_code == 409
    assert response.json()["details"]["id"] == "3"
    assert db.statements == []


def test_cancel_deletion() -> None:
    db = RecordingDB(fetch_one_results=[{"id": 3, "status": "pending"}])
    with api_test_client(gdpr_service=_gdpr(db)) as client:
        cancelled = client.delete("/api/v1/gdpr/delete-account", headers=AUTH_HEADERS)
        missing = client.delete("/api/v1/gdpr/delete-account", headers=AUTH_HEADERS)

    assert cancelled.json()["data"]["cancelled_request_id"] == "3"
    assert db.statements[0][0].startswith("UPDATE account_deletion_requests SET status = 'cancelled'")
    assert db.statements[1][1]["action"] == "granted"
    assert missing.status_code == 404


def test_deletion_status_reports_pending_request() -> None:
    requests = [
        {"id": 5, "status": "pending", "scheduled_deletion_date": "2099-01-01T00:00:00Z", "requested_at": None},
        {"id": 4, "status": "cancelled", "scheduled_deletion_date": "2026-01-01T00:00:00Z"},
    ]
    with api_test_client(gdpr_service=_gdpr(RecordingDB(fetch_all_results=[requests]))) as client:
        data = client.get("/api/v1/gdpr/delete-account", headers=AUTH_HEADERS).json()["data"]

    assert data["has_pending_request"] is True
    assert data["pending_request"]["id"] == "5"
    assert data["pending_request"]["days_remaining"] > 0
    assert len(data["all_requests"]) == 2


def test_client_ip_prefers_forwarded_header() -> None:
    assert client_ip({"x-forwarded-for": "203.0.113.9, 10.0.0.1", "x-real-ip": "10.0.0.2"}) == "203.0.113.9"
    assert client_ip({"x-real-ip": "10.0.0.2"}) == "10.0.0.2"
    assert client_ip({}) is None


def test_profile_updates_per_consent_type() -> None:
    assert profile_updates_for("privacy_policy", "granted", NOW) == {"privacy_policy_accepted_at": NOW}
    assert profile_updates_for("privacy_policy", "revoked", NOW) == {}
    assert profile_updates_for("marketing_emails", "revoked", NOW) == {"marketing_emails_consent": False}
    assert profile_updates_for("cookies", "granted", NOW) == {}


def test_consent_is_logged_with_request_metadata() -> None:
    db = RecordingDB()
    with api_test_client(consent_service=_consent(db)) as client:
        response = client.post(
            "/api/v1/consent/log",
            json={"consent_type": "data_processing", "action": "granted", "version": "2026-10"},
            headers={**AUTH_HEADERS, "X-Forwarded-For": "203.0.113.9", "User-Agent": "pytest"},
        )

    assert response.status_code == 200
    assert response.json()["message"] == "Consent granted for data_processing"
    audit = db.statements[0][1]
    assert audit["ip_address"] == "203.0.113.9"
    assert audit["user_agent"] == "pytest"
    assert audit["version"] == "2026-10"
    assert db.statements[1][0].startswith("UPDATE profiles SET data_processing_consent = :data_processing_consent")


def test_consent_validation() -> None:
    with api_test_client(consent_service=_consent(RecordingDB())) as client:
        missing = client.post("/api/v1/consent/log", json={"consent_type": "cookies"}, headers=AUTH_HEADERS)
        bad_type = client.post(
            "/api/v1/consent/log", json={"consent_type": "telepathy", "action": "granted"}, headers=AUTH_HEADERS
        )
        bad_action = client.post(
            "/api/v1/consent/log", json={"consent_type": "cookies", "action": "maybe"}, headers=AUTH_HEADERS
        )

    assert missing.json()["message"] == "consent_type and action are required"
    assert bad_type.json()["message"] == "Invalid consent_type"
    assert bad_action.status_code == 400
    assert bad_action.json()["message"] == "Invalid action"


def test_consent_history() -> None:
    db = RecordingDB(fetch_all_results=[[{"consent_type": "cookies", "action": "granted"}]])
    with api_test_client(consent_service=_consent(db)) as client:
        data = client.get("/api/v1/consent/log", headers=AUTH_HEADERS).json()["data"]

    assert data == {"consents": [{"consent_type": "cookies", "action": "granted"}]}
