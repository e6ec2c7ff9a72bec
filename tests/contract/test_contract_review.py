# This file tests contract download, text extraction, and analysis normalisation.
# A fake HTTP session and a fake model stand in for storage and OpenAI.

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import pytest
import requests

from src.common.llm import LLMResult
from src.contract.analyzer import (
    analyze_contract,
    count_flags,
    get_fairness_label,
    mock_contract_analysis,
    validate_analysis_result,
)
from src.contract.extraction import (
    INSUFFICIENT_TEXT_MESSAGE,
    ExtractionError,
    detect_file_type,
    download_file,
    extract_contract_text,
)

FILE_URL = "https://files.signatura.test/contracts/offer.docx?token=abc"


class FakeResponse:
    def __init__(
        self, status_code: int = 200, content: bytes = b"contract-bytes", headers: dict[str, str] | None = None
    ) -> None:
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}
        self.chunks_read = 0
        self.closed = False

    def __enter__(self) -> FakeResponse:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.closed = True

    def iter_content(self, chunk_size: int) -> Iterator[bytes]:
        for start in range(0, len(self.content), chunk_size):
            self.chunks_read += 1
            yield self.content[start : start + chunk_size]


class FakeSession:
    def __init__(self, response: FakeResponse | None = None, error: Exception | None = None) -> None:
        self.response = response or FakeResponse()
        self.error = error
        self.calls: list[str] = []

    def get(self, url: str, timeout: int, stream: bool = False) -> FakeResponse:
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return self.response


class FakeLLM:
    def __init__(self, content: str = "", payload: dict[str, Any] | None = None) -> None:
        self.content = content
        self.payload = payload or {}
        self.messages: list[Any] = []

    def complete(self, **kwargs: Any) -> LLMResult:
        self.messages.append(kwargs["messages"])
        return LLMResult(content=self.content, model="gpt-4o", tokens_used=10)

    def complete_json(self, **kwargs: Any) -> dict[str, Any]:
        return self.payload


def test_file_type_comes_from_name_or_url() -> None:
    assert detect_file_type(FILE_URL) == "docx"
    assert detect_file_type(FILE_URL, "Scan.JPEG") == "jpeg"
    assert detect_file_type("https://files.signatura.test/contracts/notes.txt") is None
    assert detect_file_type("https://files.signatura.test/contracts/") is None


def test_download_failures_raise_extraction_errors() -> None:
    with pytest.raises(ExtractionError, match="Failed to fetch file: 404"):
        download_file(FILE_URL, session=FakeSession(FakeResponse(status_code=404)))  # type: ignore[arg-type]

    session = FakeSession(error=requests.ConnectionError("refused"))
    with pytest.raises(ExtractionError, match="Failed to fetch file"):
        download_file(FILE_URL, session=session)  # type: ignore[arg-type]

    oversized = FakeResponse(content=b"x" * (10 * 1024 * 1024 + 1))
    with pytest.raises(ExtractionError, match="10 MB"):
        download_file(FILE_URL, session=FakeSession(oversized))  # type: ignore[arg-type]


def test_oversized_download_stops_reading_early() -> None:
    limit = 10 * 1024 * 1024
    declared = FakeResponse(content=b"x" * 10, headers={"Content-Length": str(limit + 1)})
    with pytest.raises(ExtractionError, match="10 MB"):
        download_file(FILE_URL, session=FakeSession(declared))  # type: ignore[arg-type]
    assert declared.chunks_read == 0

    streamed = FakeResponse(content=b"x" * (limit * 2))
    with pytest.raises(ExtractionError, match="10 MB"):
        download_file(FILE_URL, session=FakeSession(streamed))  # type: ignore[arg-type]
    assert 0 < streamed.chunks_read < (limit * 2) // (64 * 1024)
    assert streamed.closed


def test_unsupported_type_is_rejected_before_download() -> None:
    session = FakeSession()
    with pytest.raises(ExtractionError, match="Unsupported file type: txt"):
        extract_contract_text(FILE_URL, "txt", session=session)  # type: ignore[arg-type]
    assert session.calls == []


def test_empty_pdf_cannot_be_read() -> None:
    with pytest.raises(ExtractionError, match="Could not read PDF"):
        extract_contract_text(FILE_URL, "pdf", session=FakeSession(FakeResponse(content=b"")))  # type: ignore[arg-type]


def test_mock_mode_transcribes_documents(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("USE_MOCK_AI", "true")

    text = extract_contract_text(FILE_URL, "docx", session=FakeSession())  # type: ignore[arg-type]

    assert text.startswith("[Mock transcription of docx contract]")
    assert len(text) >= 100


def test_images_go_to_the_vision_model() -> None:
    llm = FakeLLM(content="EMPLOYMENT AGREEMENT " * 10)

    text = extract_contract_text(FILE_URL, "png", llm=llm, session=FakeSession())  # type: ignore[arg-type]

    assert text.startswith("EMPLOYMENT AGREEMENT")
    image_part = llm.messages[0][0]["content"][1]
    assert image_part["image_url"]["url"].startswith("data:image/png;base64,")


def test_short_transcriptions_are_insufficient() -> None:
    llm = FakeLLM(content="Page 1")
    with pytest.raises(ExtractionError) as excinfo:
        extract_contract_text(FILE_URL, "jpg", llm=llm, session=FakeSession())  # type: ignore[arg-type]
    assert str(excinfo.value) == INSUFFICIENT_TEXT_MESSAGE


def test_transcription_without_client_fails() -> None:
    with pytest.raises(ExtractionError, match="not configured"):
        extract_contract_text(FILE_URL, "docx", session=FakeSession())  # type: ignore[arg-type]


def test_analysis_is_clamped_and_defaulted() -> None:
    result = validate_analysis_result(
        {
            "fairness_score": 14,
            "risk_level": "Extreme",
            "clauses": [{"type": "Bonus", "status": "Purple"}, "noise", {"type": "Salary", "status": "Green"}],
        }
    )

    assert result["fairness_score"] == 10
    assert result["risk_level"] == "Medium"
    assert result["summary"] == "Analysis complete."
    assert [clause["status"] for clause in result["clauses"]] == ["Yellow", "Green"]
    assert result["negotiation_tips"] == []


@pytest.mark.parametrize(("raw", "expected"), [(None, 5), ("abc", 5), (0, 5), (-3, 1), (6.5, 7), ("8", 8)])
def test_fairness_normalisation(raw: Any, expected: int) -> None:
    assert validate_analysis_result({"fairness_score": raw})["fairness_score"] == expected


@pytest.mark.parametrize(
    ("score", "label"),
    [(9, "Excellent"), (7.5, "Fair"), (5, "Caution"), (3, "Concerning"), (2, "High Risk")],
)
def test_fairness_labels(score: float, label: str) -> None:
    assert get_fairness_label(score) == label


def test_flag_counts_follow_clause_statuses() -> None:
    assert count_flags(mock_contract_analysis()) == {
        "red_flag_count": 1,
        "yellow_flag_count": 2,
        "green_clause_count": 3,
    }


def test_mock_analysis_builds_a_row(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("USE_MOCK_AI", "true")

    entity = analyze_contract("user-1", FILE_URL, "offer.docx", "docx", session=FakeSession())  # type: ignore[arg-type]

    assert entity["user_id"] == "user-1"
    assert entity["analysis"]["fairness_score"] == 6
    assert entity["red_flag_count"] == 1
    assert entity["user_reviewed"] is False
    assert entity["job_application_id"] is None


def test_live_analysis_uses_model_output() -> None:
    llm = FakeLLM(
        content="EMPLOYMENT AGREEMENT " * 10,
        payload={"fairness_score": 3, "risk_level": "High", "clauses": [{"type": "Non-Compete", "status": "Red Flag"}]},
    )

    entity = analyze_contract(
        "user-1", FILE_URL, "offer.docx", "docx", "Engineer", "app-3", llm=llm, session=FakeSession()  # type: ignore[arg-type]
    )

    assert entity["analysis"]["risk_level"] == "High"
    assert entity["red_flag_count"] == 1
    assert entity["green_clause_count"] == 0
    assert entity["job_application_id"] == "app-3"
