# This file tests CV tailoring guards, section heuristics, and the never-worse guarantee.
# Mock mode is used for the end-to-end path so no model is called.

from __future__ import annotations

import pytest

from src.cv.tailor import (
    enhance_cv_for_mock,
    extract_role_from_job_description,
    generate_best_of_both_worlds_cv,
    quick_compare,
    score_section_text,
)

BASE_CV = """Dana Levi
dana@example.com

Summary
Operations lead who managed a team of 12 people for 5 years across three warehouses.

Experience
- Led the rollout of a new inventory system that reduced stock errors by 30%
- Developed onboarding material for seasonal staff and improved retention

Skills
Inventory planning, vendor negotiation, forecasting, team scheduling, SAP"""

JOB_DESCRIPTION = """Senior Operations Manager
We are hiring an operations manager to run our regional fulfilment network and grow the team."""


def test_short_inputs_fail_with_original_cv() -> None:
    result = generate_best_of_both_worlds_cv("too short", JOB_DESCRIPTION)

    assert result["success"] is False
    assert result["error"] == "Base CV text is too short (minimum 100 characters)"
    assert result["final_cv_text"] == "too short"

    result = generate_best_of_both_worlds_cv(BASE_CV, "tiny")
    assert result["error"] == "Job description is too short (minimum 50 characters)"


def test_missing_ai_client_returns_original() -> None:
    result = generate_best_of_both_worlds_cv(BASE_CV, JOB_DESCRIPTION, "retail", llm=None)

    assert result["success"] is False
    assert result["error"] == "AI client is not configured"
    assert result["final_cv_text"] == BASE_CV


def test_mock_tailoring_never_scores_below_base(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("USE_MOCK_AI", "true")

    result = generate_best_of_both_worlds_cv(BASE_CV, JOB_DESCRIPTION, "retail")

    assert result["success"] is True
    assert result["tokens_used"] == 0
    assert result["final_overall_score"] >= result["base_overall_score"]
    assert result["total_sections"] >= 1
    assert {item["chosen"] for item in result["section_comparisons"]} <= {"base", "tailored"}


def test_mock_enhancement_rewrites_phrasing() -> None:
    assert enhance_cv_for_mock("Managed a team for 5 years") == "effectively managed a cross-functional team for 5+ years"


def test_role_is_taken_from_job_title_line() -> None:
    assert extract_role_from_job_description(JOB_DESCRIPTION) == "Senior Operations Manager"
    assert extract_role_from_job_description("We need help. Apply now.") == ""


def test_short_sections_use_heuristic_scores() -> None:
    assert score_section_text("tiny", "generic") == 0.0
    assert score_section_text("Increased sales by 20%", "generic") == 6.5
    assert score_section_text("Responsible for the front desk", "generic") == 5.0


def test_quick_compare_without_scores_is_equal() -> None:
    result = quick_compare(BASE_CV, BASE_CV, "retail")
    assert result == {"base_score": 5.0, "tailored_score": 5.0, "recommendation": "equal"}
