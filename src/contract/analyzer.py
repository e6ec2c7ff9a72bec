# This module reviews employment contract text and returns a clause-by-clause risk assessment.
# It exists so the contract reviewer endpoint receives one normalized analysis entity to persist.
# Model output is sanitized: fairness is clamped to 1-10 and unknown labels fall back to neutral values.
# Mock mode returns a fixed sample analysis so the UI can be exercised without an API key.

from __future__ import annotations

import logging
import math
import uuid
from datetime import UTC, datetime
from typing import Any

import requests

from src.common.llm import LLMClient
from src.common.settings import use_mock_ai
from src.contract.extraction import extract_contract_text

logger = logging.getLogger(__name__)

ANALYSIS_TEMPERATURE = 0.1
STORED_TEXT_LIMIT = 50_000
DEFAULT_FAIRNESS_SCORE = 5
RISK_LEVELS: tuple[str, ...] = ("Low", "Medium", "High")
CLAUSE_STATUSES: tuple[str, ...] = ("Green", "Yellow", "Red Flag")

CONTRACT_ANALYSIS_SYSTEM_PROMPT = """You are an expert Legal AI for Employment Contracts.
Analyze the attached contract text.

Your role is to:
1. Identify and analyze each significant clause in the contract
2. Translate complex legal language into plain English
3. Assess risk levels and flag concerning terms
4. Provide actionable negotiation tips

Guidelines:
- Flag truly concerning clauses as "Red Flag", moderately concerning as "Yellow", and standard/favorable as "Green"
- Consider industry standards when assessing fairness
- Focus on clauses that materially affect the employee's rights, compensation, and obligations

OUTPUT JSON format:
{
  "fairness_score": 8,
  "risk_level": "Medium",
  "summary": "A standard contract, but watch out for the non-compete clause.",
  "clauses": [
    {
      "type": "Non-Compete",
      "original_text": "Employee shall not work for competitors for 24 months...",
      "plain_english": "You cannot work for any competitor for 2 years. This is very restrictive.",
      "status": "Red Flag"
    }
  ],
  "negotiation_tips": ["Ask to reduce non-compete to 6 months"]
}

IMPORTANT:
- fairness_score must be a number from 1-10 (1 = very unfair, 10 = very fair)
- risk_level must be exactly "Low", "Medium", or "High"
- status must be exactly "Green", "Yellow", or "Red Flag"
- Return ONLY the JSON object, no additional text"""


def build_analysis_prompt(contract_text: str, user_role: str | None = None) -> str:
    context = f"Context: The user is applying for a {user_role} position.\n\n" if user_role else ""
    return (
        "Analyze this employment contract:\n\n"
        f"{context}CONTRACT TEXT:\n{contract_text}\n\n"
        "Provide a comprehensive analysis following the specified JSON format."
    )


def _normalize_fairness(value: Any) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = 0.0
    if not number or math.isnan(number):
        number = DEFAULT_FAIRNESS_SCORE
    return max(1, min(10, math.floor(number + 0.5)))


def validate_analysis_result(result: dict[str, Any]) -> dict[str, Any]:
    """Clamp and default every field the UI relies on."""

    risk_level = result.get("risk_level")
    clauses = []
    for clause in result.get("clauses") or []:
        if not isinstance(clause, dict):
            continue
        status = clause.get("status")
        clauses.append({**clause, "status": status if status in CLAUSE_STATUSES else "Yellow"})

    return {
        "fairness_score": _normalize_fairness(result.get("fairness_score")),
        "risk_level": risk_level if risk_level in RISK_LEVELS else "Medium",
        "summary": result.get("summary") or "Analysis complete.",
        "clauses": clauses,
        "negotiation_tips": list(result.get("negotiation_tips") or []),
    }


def analyze_contract_with_ai(
    contract_text: str, user_role: str | None = None, *, llm: LLMClient
) -> dict[str, Any]:
    raw = llm.complete_json(
        system_prompt=CONTRACT_ANALYSIS_SYSTEM_PROMPT,
        user_prompt=build_analysis_prompt(contract_text, user_role),
        temperature=ANALYSIS_TEMPERATURE,
    )
    return validate_analysis_result(raw)


def count_flags(analysis: dict[str, Any]) -> dict[str, int]:
    statuses = [clause.get("status") for clause in analysis.get("clauses", [])]
    return {
        "red_flag_count": statuses.count("Red Flag"),
        "yellow_flag_count": statuses.count("Yellow"),
        "green_clause_count": statuses.count("Green"),
    }


def get_fairness_label(score: float) -> str:
    if score >= 9:
        return "Excellent"
    if score >= 7:
        return "Fair"
    if score >= 5:
        return "Caution"
    if score >= 3:
        return "Concerning"
    return "High Risk"


def mock_contract_analysis(fairness_score: int = 6, risk_level: str = "Medium") -> dict[str, Any]:
    return {
        "fairness_score": fairness_score,
        "risk_level": risk_level,
        "summary": (
            "This is a standard employment contract with some areas that warrant attention. The compensation "
            "and benefits sections are fair, but the non-compete and IP assignment clauses are more restrictive "
            "than industry standard."
        ),
        "clauses": [
            {
                "type": "Compensation",
                "original_text": "Employee shall receive a base salary of $150,000 per annum, payable in bi-weekly installments.",
                "plain_english": "You'll be paid $150,000 per year, with paychecks every two weeks. This is standard.",
                "status": "Green",
            },
            {
                "type": "Non-Compete",
                "original_text": (
                    "For a period of twenty-four (24) months following the termination of employment, Employee "
                    "agrees not to engage in any business that competes with the Company."
                ),
                "plain_english": "You cannot work for any competitor for 2 years after leaving. This is very restrictive.",
                "status": "Red Flag",
                "concerns": ["Duration is longer than industry standard", "Geographic scope is overly broad"],
                "industry_standard": "Typical non-competes are 6-12 months with specific geographic limits",
            },
            {
                "type": "IP Assignment",
                "original_text": "Employee hereby assigns to the Company all inventions conceived during the term of employment.",
                "plain_english": "Everything you create while employed belongs to the company, even side projects.",
                "status": "Yellow",
                "concerns": ["Does not carve out personal projects"],
                "industry_standard": "Many contracts exclude inventions unrelated to company business",
            },
            {
                "type": "Confidentiality",
                "original_text": "Employee agrees to hold in strict confidence any Confidential Information.",
                "plain_english": "You must keep company secrets confidential. This is completely standard.",
                "status": "Green",
            },
            {
                "type": "Termination",
                "original_text": "Either party may terminate this Agreement upon thirty (30) days written notice.",
                "plain_english": "Either side can end the employment with 30 days notice.",
                "status": "Green",
            },
            {
                "type": "Arbitration",
                "original_text": "Any dispute shall be resolved exclusively by binding arbitration.",
                "plain_english": "Disputes go to private arbitration instead of court. This limits your legal options.",
                "status": "Yellow",
                "concerns": ["Waives right to jury trial"],
            },
        ],
        "negotiation_tips": [
            "Request reducing the non-compete period from 24 months to 12 months",
            "Negotiate an IP assignment carve-out for personal projects unrelated to company business",
            "Consider requesting an opt-out period for the arbitration clause",
            "Ask about severance terms in case of termination without cause",
        ],
    }


def analyze_contract(
    user_id: str,
    file_url: str,
    file_name: str,
    file_type: str,
    user_role: str | None = None,
    job_application_id: str | None = None,
    *,
    llm: LLMClient | None = None,
    session: requests.Session | None = None,
) -> dict[str, Any]:
    """Extract, analyze and wrap the result as a `contract_analyses` row."""

    extracted_text = extract_contract_text(file_url, file_type, llm=llm, session=session)

    if use_mock_ai():
        analysis = mock_contract_analysis()
    elif llm is None:
        raise RuntimeError("AI client is not configured")
    else:
        analysis = analyze_contract_with_ai(extracted_text, user_role, llm=llm)

    now = datetime.now(UTC).isoformat()
    entity = {
        "id": str(uuid.uuid4()),
        "user_id": user_id,
        "job_application_id": job_application_id,
        "file_url": file_url,
        "file_name": file_name,
        "file_type": file_type,
        "extracted_text": extracted_text[:STORED_TEXT_LIMIT],
        "analysis": analysis,
        **count_flags(analysis),
        "user_reviewed": False,
        "created_at": now,
        "updated_at": now,
    }
    logger.info(
        "Analyzed contract %s for user %s: fairness=%s red_flags=%s",
        file_name,
        user_id,
        analysis["fairness_score"],
        entity["red_flag_count"],
    )
    return entity
