# This file tests the AI coaching endpoints in mock mode: compensation, contract, interview, and CV.
# It exists to lock the 400/404/422 mappings and the usage metering around each generator.
# Real services run with fake persistence; USE_MOCK_AI keeps every model call offline.

from __future__ import annotations

from typing import Any

import pytest

from src.api.services.compensation_service import CompensationService
from src.api.services.contract_service import ContractService
from src.api.services.cv_service import CVService
from src.api.services.interview_service import InterviewService
from src.api.usage_limits import UsageGuard
from src.subscription.access_control import AccessControl
from tests.api.support import (
    AUTH_HEADERS,
    TEST_USER_ID,
    FakeDocumentStore,
    RecordingDB,
    api_test_client,
    build_test_config,
)
from tests.subscription.memory_store import InMemorySubscriptionStore

OFFER_BODY = {
    "offerDetails": {
        "baseSalary": 100000,
        "currency": "USD",
        "location": "Austin, TX",
        "roleTitle": "Backend Engineer",
        "roleLevel": "mid",
        "companyName": "Acme",
    },
    "userPriorities": {"primaryFocus": "cash", "willingToWalkAway": False},
    "jobApplicationId": "app-1",
}

PLAN_BODY = {
    "job_description": "Platform engineer to own the deployment pipeline.",
    "tailored_cv": "- Cut deploy time from 40 to 8 minutes",
    "application_id": "app-1",
    "config": {
        "interview_type": "technical",
        "persona_mode": "preset",
        "persona": "data_driven",
        "focus_areas": ["system_design"],
    },
}

BASE_CV = (
    "Dana Levi\ndana@example.com\n\nSummary\nOperations lead who managed a team of 12 people for 5 years.\n\n"
    "Experience\n- Led the rollout of a new inventory system that reduced stock errors by 30%\n"
    "- Developed onboarding material for seasonal staff"
)
JOB_DESCRIPTION = "Senior Operations Manager\nRun our regional fulfilment network and grow the team."


class FakeResponse:
    status_code = 200
    headers: dict[str, str] = {}

    def __enter__(self) -> FakeResponse:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        return None

    def iter_content(self, chunk_size: int) -> list[bytes]:
        return [b"docx-bytes"]


class FakeSession:
    def get(self, url: str, timeout: int, stream: bool = False) -> FakeResponse:
        return FakeResponse()


@pytest.fixture
def mock_ai(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("USE_MOCK_AI", "true")


def _guard() -> tuple[UsageGuard, InMemorySubscriptionStore]:
    store = InMemorySubscriptionStore()
    return UsageGuard(access_control=AccessControl(store=store)), store


@pytest.mark.usefixtures("mock_ai")
def test_compensation_strategy_is_generated_stored_and_counted() -> None:
    documents = FakeDocumentStore()
    guard, store = _guard()
    service = CompensationService(applications=documents, llm=None)  # type: ignore[arg-type]
    with api_test_client(compensation_service=service, usage_guard=guard) as client:
        created = client.post("/api/v1/compensation/generate-strategy", json=OFFER_BODY, headers=AUTH_HEADERS)
        fetched = client.get("/api/v1/compensation/generate-strategy?application_id=app-1", headers=AUTH_HEADERS)

    assert created.status_code == 200
    strategy = created.json()["data"]
    assert strategy["strategy"]["recommended_approach"] == "collaborative"
    assert documents.documents[("app-1", "compensation_strategy")]["user_id"] == TEST_USER_ID
    assert fetched.json()["data"]["strategy"]["walk_away_point"] == 100000
    assert store.subscriptions[TEST_USER_ID]["usage_compensation"] == 1


def test_compensation_validation_is_400_and_not_counted() -> None:
    guard, store = _guard()
    service = CompensationService(applications=FakeDocumentStore(), llm=None)  # type: ignore[arg-type]
    body = {**OFFER_BODY, "offerDetails": {**OFFER_BODY["offerDetails"], "baseSalary": -5}}
    with api_test_client(compensation_service=service, usage_guard=guard) as client:
        response = client.post("/api/v1/compensation/generate-strategy", json=body, headers=AUTH_HEADERS)

    assert response.status_code == 400
    assert response.json()["message"] == "baseSalary must be greater than 0"
    assert store.subscriptions == {}


def test_compensation_without_ai_client_is_500() -> None:
    service = CompensationService(applications=FakeDocumentStore(), llm=None)  # type: ignore[arg-type]
    with api_test_client(compensation_service=service, usage_guard=_guard()[0]) as client:
        response = client.post("/api/v1/compensation/generate-strategy", json=OFFER_BODY, headers=AUTH_HEADERS)

    assert response.status_code == 500
    assert response.json()["error_code"] == "STRATEGY_GENERATION_FAILED"


def test_compensation_lookup_needs_known_application() -> None:
    service = CompensationService(applications=FakeDocumentStore(), llm=None)  # type: ignore[arg-type]
    with api_test_client(compensation_service=service) as client:
        missing_param = client.get("/api/v1/compensation/generate-strategy", headers=AUTH_HEADERS)
        unknown = client.get("/api/v1/compensation/generate-strategy?application_id=nope", headers=AUTH_HEADERS)

    assert missing_param.status_code == 400
    assert missing_param.json()["message"] == "application_id is required"
    assert unknown.status_code == 404


def _contract_service(db: RecordingDB, documents: FakeDocumentStore | None = None) -> ContractService:
    return ContractService(
        config=build_test_config(),
        db=db,  # type: ignore[arg-type]
        applications=documents or FakeDocumentStore(),  # type: ignore[arg-type]
        llm=None,
        session=FakeSession(),  # type: ignore[arg-type]
    )


@pytest.mark.usefixtures("mock_ai")
def test_contract_analysis_is_stored_and_linked() -> None:
    db = RecordingDB()
    documents = FakeDocumentStore()
    guard, store = _guard()
    body = {"file_url": "https://files.signatura.test/offer.docx", "job_application_id": "app-1"}
    with api_test_client(contract_service=_contract_service(db, documents), usage_guard=guard) as client:
        response = client.post("/api/v1/contract/analyze", json=body, headers=AUTH_HEADERS)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["file_name"] == "contract.docx"
    assert data["red_flag_count"] == 1
    assert db.statements[0][0].startswith("INSERT INTO contract_analyses")
    assert documents.documents[("app-1", "contract_analysis")]["fairness_score"] == 6
    assert store.subscriptions[TEST_USER_ID]["usage_contracts"] == 1


def test_contract_request_errors() -> None:
    guard, store = _guard()
    with api_test_client(contract_service=_contract_service(RecordingDB()), usage_guard=guard) as client:
        missing = client.post("/api/v1/contract/analyze", json={}, headers=AUTH_HEADERS)
        unsupported = client.post(
            "/api/v1/contract/analyze", json={"file_url": "https://files.signatura.test/offer.txt"}, headers=AUTH_HEADERS
        )
        unreadable = client.post(
            "/api/v1/contract/analyze", json={"file_url": "https://files.signatura.test/scan.png"}, headers=AUTH_HEADERS
        )

    assert missing.status_code == 400
    assert missing.json()["details"] == "file_url is required"
    assert unsupported.status_code == 400
    assert unsupported.json()["error_code"] == "UNSUPPORTED_FILE_TYPE"
    assert unreadable.status_code == 422
    assert unreadable.json()["error_code"] == "EXTRACTION_FAILED"
    assert store.subscriptions == {}


def test_contract_lookups() -> None:
    db = RecordingDB(fetch_one_results=[None], fetch_all_results=[[{"id": "c-1"}], [{"id": "c-2"}]])
    with api_test_client(contract_service=_contract_service(db)) as client:
        missing = client.get("/api/v1/contract/analyze?analysis_id=c-9", headers=AUTH_HEADERS)
        by_application = client.get("/api/v1/contract/analyze?job_application_id=app-1", headers=AUTH_HEADERS)
        recent = client.get("/api/v1/contract/analyze", headers=AUTH_HEADERS)

    assert missing.status_code == 404
    assert missing.json()["message"] == "Analysis not found"
    assert by_application.json()["data"] == [{"id": "c-1"}]
    assert recent.json()["data"] == [{"id": "c-2"}]


@pytest.mark.usefixtures("mock_ai")
def test_interview_plan_is_generated_and_reloaded() -> None:
    documents = FakeDocumentStore()
    guard, store = _guard()
    service = InterviewService(applications=documents, llm=None)  # type: ignore[arg-type]
    with api_test_client(interview_service=service, usage_guard=guard) as client:
        created = client.post("/api/v1/interview/generate-plan", json=PLAN_BODY, headers=AUTH_HEADERS)
        fetched = client.get("/api/v1/interview/generate-plan?application_id=app-1", headers=AUTH_HEADERS)

    assert created.status_code == 200
    assert len(created.json()["data"]["questions"]) == 10
    assert fetched.json()["data"]["id"] == created.json()["data"]["id"]
    assert store.subscriptions[TEST_USER_ID]["usage_interviews"] == 1


def test_interview_validation_errors() -> None:
    service = InterviewService(applications=FakeDocumentStore(), llm=None)  # type: ignore[arg-type]
    body = {**PLAN_BODY, "config": {**PLAN_BODY["config"], "focus_areas": []}}
    with api_test_client(interview_service=service, usage_guard=_guard()[0]) as client:
        invalid = client.post("/api/v1/interview/generate-plan", json=body, headers=AUTH_HEADERS)
        no_param = client.get("/api/v1/interview/generate-plan", headers=AUTH_HEADERS)

    assert invalid.status_code == 400
    assert invalid.json()["message"] == "Invalid config"
    assert invalid.json()["details"] == "At least one focus area is required"
    assert no_param.json()["message"] == "Missing application_id parameter"


@pytest.mark.usefixtures("mock_ai")
def test_cv_tailoring_creates_and_finishes_a_session() -> None:
    db = RecordingDB(returning_row={"id": "session-7"})
    guard, store = _guard()
    service = CVService(config=build_test_config(), db=db, llm=None)  # type: ignore[arg-type]
    body = {"base_cv_text": BASE_CV, "job_description": JOB_DESCRIPTION, "industry": "retail"}
    with api_test_client(cv_service=service, usage_guard=guard) as client:
        response = client.post("/api/v1/cv/tailor", json=body, headers=AUTH_HEADERS)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["session_id"] == "session-7"
    assert data["result"]["success"] is True
    assert [statement.split()[0] for statement, _ in db.statements] == ["INSERT", "UPDATE"]
    assert db.statements[1][1]["status"] == "completed"
    assert store.subscriptions[TEST_USER_ID]["usage_cvs"] == 1


@pytest.mark.usefixtures("mock_ai")
def test_cv_tailoring_can_skip_persistence() -> None:
    db = RecordingDB()
    service = CVService(config=build_test_config(), db=db, llm=None)  # type: ignore[arg-type]
    body = {"base_cv_text": BASE_CV, "job_description": JOB_DESCRIPTION, "save_to_database": False}
    with api_test_client(cv_service=service, usage_guard=_guard()[0]) as client:
        response = client.post("/api/v1/cv/tailor", json=body, headers=AUTH_HEADERS)

    assert response.json()["data"]["session_id"] is None
    assert db.statements == []


@pytest.mark.parametrize(
    ("body", "message"),
    [
        ({}, "Base CV text is required"),
        ({"base_cv_text": BASE_CV}, "Job description is required"),
        ({"base_cv_text": "short", "job_description": JOB_DESCRIPTION}, "Base CV text is too short (minimum 100 characters)"),
    ],
)
def test_cv_tailoring_validation(body: dict[str, Any], message: str) -> None:
    service = CVService(config=build_test_config(), db=RecordingDB(), llm=None)  # type: ignore[arg-type]
    with api_test_client(cv_service=service, usage_guard=_guard()[0]) as client:
        response = client.post("/api/v1/cv/tailor", json=body, headers=AUTH_HEADERS)

    assert response.status_code == 400
    assert response.json()["message"] == message


def test_cv_tailoring_without_ai_client_fails_and_is_not_counted() -> None:
    db = RecordingDB()
    guard, store = _guard()
    service = CVService(config=build_test_config(), db=db, llm=None)  # type: ignore[arg-type]
    body = {"base_cv_text": BASE_CV, "job_description": JOB_DESCRIPTION}
    with api_test_client(cv_service=service, usage_guard=guard) as client:
        response = client.post("/api/v1/cv/tailor", json=body, headers=AUTH_HEADERS)

    assert response.status_code == 500
    assert response.json()["details"] == {"session_id": "row-1"}
    assert db.statements[1][1]["status"] == "failed"
    assert store.subscriptions == {}


def test_cv_session_lookup() -> None:
    db = RecordingDB(fetch_one_results=[None], fetch_all_results=[[{"id": "s-1"}]])
    service = CVService(config=build_test_config(), db=db, llm=None)  # type: ignore[arg-type]
    with api_test_client(cv_service=service) as client:
        missing = client.get("/api/v1/cv/tailor?session_id=s-9", headers=AUTH_HEADERS)
        listed = client.get("/api/v1/cv/tailor", headers=AUTH_HEADERS)

    assert missing.status_code == 404
    assert listed.json()["data"] == [{"id": "s-1"}]
