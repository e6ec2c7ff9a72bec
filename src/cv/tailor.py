# This module tailors a CV to a job description without ever making it worse.
# It exists so the candidate gets AI rewording only where it measurably helps.
# Both versions are split into sections, each pair is scored, and the better section wins.
# A final safety net returns the original CV whenever the assembled result scores lower.

from __future__ import annotations

import logging
import re
import time
from typing import Any

from src.common.llm import LLMClient, LLMError
from src.common.settings import use_mock_ai
from src.cv.parser import assemble_cv_from_sections, parse_cv_into_sections, sections_match
from src.indicators.scorer import score_text

logger = logging.getLogger(__name__)

MIN_CV_LENGTH = 100
MIN_JOB_DESCRIPTION_LENGTH = 50
MIN_SECTION_LENGTH = 20
HEURISTIC_SECTION_LENGTH = 100
MIN_NEW_SECTION_LENGTH = 50
MIN_NEW_SECTION_SCORE = 5
DEFAULT_SCORE = 5.0
TAILORING_TEMPERATURE = 0.7
TAILORING_MAX_TOKENS = 4000

ACTION_VERBS: tuple[str, ...] = (
    "led",
    "managed",
    "developed",
    "created",
    "implemented",
    "increased",
    "reduced",
    "improved",
    "achieved",
    "delivered",
)

_METRIC_PATTERN = re.compile(r"\d+%|\$\d+|\d+ years?|\d+ (people|team|projects?)", re.IGNORECASE)
_ROLE_PATTERN = re.compile(
    r"^(senior|junior|lead|principal|staff)?\s*"
    r"(software|product|marketing|sales|data|project|program|account|customer|operations)",
    re.IGNORECASE,
)

MOCK_ENHANCEMENTS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"(\d+) years?", re.IGNORECASE), r"\1+ years"),
    (re.compile(r"managed", re.IGNORECASE), "effectively managed"),
    (re.compile(r"led", re.IGNORECASE), "successfully led"),
    (re.compile(r"developed", re.IGNORECASE), "designed and developed"),
    (re.compile(r"improved", re.IGNORECASE), "significantly improved"),
    (re.compile(r"increased", re.IGNORECASE), "strategically increased"),
    (re.compile(r"team", re.IGNORECASE), "cross-functional team"),
    (re.compile(r"project", re.IGNORECASE), "high-impact project"),
)


def _failure(error: str, base_cv_text: str, started: float) -> dict[str, Any]:
    return {
        "success": False,
        "error": error,
        "final_cv_text": base_cv_text,
        "section_comparisons": [],
        "base_overall_score": 0,
        "tailored_overall_score": 0,
        "final_overall_score": 0,
        "overall_improvement": 0,
        "sections_improved": 0,
        "sections_kept_original": 0,
        "total_sections": 0,
        "processing_time_ms": _elapsed_ms(started),
    }


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _overall(result: dict[str, Any], default: float) -> float:
    if not result.get("success"):
        return default
    return float(result["scores"].get("overall") or default)


def extract_role_from_job_description(job_description: str) -> str:
    for line in job_description.split("\n")[:5]:
        cleaned = line.strip()
        if _ROLE_PATTERN.match(cleaned):
            return cleaned[:100]
        if 5 < len(cleaned) < 80 and "." not in cleaned:
            return cleaned
    return ""


def enhance_cv_for_mock(base_cv_text: str) -> str:
    enhanced = base_cv_text
    for pattern, replacement in MOCK_ENHANCEMENTS:
        enhanced = pattern.sub(replacement, enhanced)
    return enhanced


def score_section_text(section_text: str, industry: str, *, llm: LLMClient | None = None) -> float:
    if not section_text or len(section_text) < MIN_SECTION_LENGTH:
        return 0.0

    if len(section_text) < HEURISTIC_SECTION_LENGTH:
        score = DEFAULT_SCORE
        if _METRIC_PATTERN.search(section_text):
            score += 1
        lowered = section_text.lower()
        if any(verb in lowered for verb in ACTION_VERBS):
            score += 0.5
        return min(10.0, score)

    result = score_text(section_text, {"type": "cv", "industry": industry}, llm=llm)
    return _overall(result, DEFAULT_SCORE)


def generate_tailored_cv(
    base_cv_text: str, job_description: str, industry: str, *, llm: LLMClient | None
) -> tuple[str, int]:
    """Return the AI-tailored CV text and the tokens it cost."""

    if use_mock_ai():
        return enhance_cv_for_mock(base_cv_text), 0
    if llm is None:
        raise LLMError("AI client is not configured")

    prompt = f"""You are an expert CV writer specializing in optimizing resumes for specific job descriptions.

CRITICAL INSTRUCTIONS:
1. Tailor the CV to match the job description requirements
2. Maintain ALL factual information - never fabricate achievements or experiences
3. Use relevant keywords from the job description naturally
4. Emphasize achievements that align with job requirements
5. Add quantifiable metrics where already present in the base CV (don't invent numbers)
6. Use strong action verbs appropriate to the {industry} industry
7. Maintain professional formatting and structure
8. Keep ALL sections from the original CV

INDUSTRY CONTEXT: {industry}

BASE CV:
{base_cv_text}

JOB DESCRIPTION:
{job_description}

Return ONLY the tailored CV text. Do not include any explanations, preamble, or commentary."""

    result = llm.complete(
        messages=[{"role": "user", "content": prompt}],
        temperature=TAILORING_TEMPERATURE,
        max_tokens=TAILORING_MAX_TOKENS,
    )
    return result.content, int(result.tokens_used or 0)


def _comparison_reason(use_tailored: bool, base_score: float, tailored_score: float) -> str:
    if use_tailored:
        return f"Tailored version scored higher (+{tailored_score - base_score:.1f} points)"
    if base_score == tailored_score:
        return "Scores equal - keeping original for consistency"
    return "Original version scored higher - keeping it"


def generate_best_of_both_worlds_cv(
    base_cv_text: str,
    job_description: str,
    industry: str = "generic",
    *,
    llm: LLMClient | None = None,
) -> dict[str, Any]:
    started = time.perf_counter()

    if not base_cv_text or len(base_cv_text.strip()) < MIN_CV_LENGTH:
        return _failure("Base CV text is too short (minimum 100 characters)", base_cv_text, started)
    if not job_description or len(job_description.strip()) < MIN_JOB_DESCRIPTION_LENGTH:
        return _failure("Job description is too short (minimum 50 characters)", base_cv_text, started)

    base_sections = parse_cv_into_sections(base_cv_text)
    context = {"type": "cv", "industry": industry, "role": extract_role_from_job_description(job_description)}
    base_overall = _overall(score_text(base_cv_text, context, llm=llm), DEFAULT_SCORE)
    logger.info("Base CV parsed into %s sections, overall score %.1f.", len(base_sections), base_overall)

    try:
        tailored_text, tokens_used = generate_tailored_cv(base_cv_text, job_description, industry, llm=llm)
    except LLMError as exc:
        logger.exception("CV tailoring generation failed.")
        return _failure(str(exc), base_cv_text, started)

    tailored_sections = parse_cv_into_sections(tailored_text)
    tailored_overall = _overall(score_text(tailored_text, context, llm=llm), DEFAULT_SCORE)

    comparisons: list[dict[str, Any]] = []
    final_sections: list[dict[str, str]] = []
    sections_improved = 0
    sections_kept = 0

    for base_section in base_sections:
        tailored_section = next(
            (item for item in tailored_sections if sections_match(item.name, base_section.name)),
            None,
        )
        if tailored_section is None:
            final_sections.append({"name": base_section.name, "text": base_section.text})
            comparisons.append(
                {
                    "section_name": base_section.name,
                    "base": {"text": base_section.text, "score": base_overall},
                    "tailored": {"text": "", "score": 0},
                    "chosen": "base",
                    "improvement": 0,
                    "reason": "Section not found in tailored version - keeping original",
                }
            )
            sections_kept += 1
            continue

        base_score = score_section_text(base_section.text, industry, llm=llm)
        tailored_score = score_section_text(tailored_section.text, industry, llm=llm)
        use_tailored = tailored_score > base_score

        final_sections.append(
            {"name": base_section.name, "text": tailored_section.text if use_tailored else base_section.text}
        )
        comparisons.append(
            {
                "section_name": base_section.name,
                "base": {"text": base_section.text, "score": base_score},
                "tailored": {"text": tailored_section.text, "score": tailored_score},
                "chosen": "tailored" if use_tailored else "base",
                "improvement": round(tailored_score - base_score, 2) if use_tailored else 0,
                "reason": _comparison_reason(use_tailored, base_score, tailored_score),
            }
        )
        if use_tailored:
            sections_improved += 1
        else:
            sections_kept += 1

    for tailored_section in tailored_sections:
        if any(sections_match(item.name, tailored_section.name) for item in base_sections):
            continue
        if len(tailored_section.text) <= MIN_NEW_SECTION_LENGTH:
            continue
        new_score = score_section_text(tailored_section.text, industry, llm=llm)
        if new_score < MIN_NEW_SECTION_SCORE:
            continue
        final_sections.append({"name": tailored_section.name, "text": tailored_section.text})
        comparisons.append(
            {
                "section_name": tailored_section.name,
                "base": {"text": "", "score": 0},
                "tailored": {"text": tailored_section.text, "score": new_score},
                "chosen": "tailored",
                "improvement": new_score,
                "reason": "New section added that strengthens the CV",
            }
        )
        sections_improved += 1

    final_text = assemble_cv_from_sections(final_sections)
    final_overall = _overall(score_text(final_text, context, llm=llm), base_overall)

    if final_overall < base_overall:
        logger.warning(
            "Final CV scored %.1f vs base %.1f; returning the original CV.", final_overall, base_overall
        )
        return {
            "success": True,
            "final_cv_text": base_cv_text,
            "section_comparisons": [
                {**item, "chosen": "base", "improvement": 0, "reason": "Safety fallback: Original CV preserved"}
                for item in comparisons
            ],
            "base_overall_score": base_overall,
            "tailored_overall_score": tailored_overall,
            "final_overall_score": base_overall,
            "overall_improvement": 0,
            "sections_improved": 0,
            "sections_kept_original": len(base_sections),
            "total_sections": len(base_sections),
            "processing_time_ms": _elapsed_ms(started),
            "tokens_used": tokens_used,
        }

    return {
        "success": True,
        "final_cv_text": final_text,
        "section_comparisons": comparisons,
        "base_overall_score": base_overall,
        "tailored_overall_score": tailored_overall,
        "final_overall_score": final_overall,
        "overall_improvement": round(final_overall - base_overall, 2),
        "sections_improved": sections_improved,
        "sections_kept_original": sections_kept,
        "total_sections": len(comparisons),
        "processing_time_ms": _elapsed_ms(started),
        "tokens_used": tokens_used,
    }


def quick_compare(
    base_text: str, tailored_text: str, industry: str, *, llm: LLMClient | None = None
) -> dict[str, Any]:
    context = {"type": "cv", "industry": industry}
    base_score = _overall(score_text(base_text, context, llm=llm), DEFAULT_SCORE)
    tailored_score = _overall(score_text(tailored_text, context, llm=llm), DEFAULT_SCORE)

    recommendation = "equal"
    if tailored_score > base_score + 0.5:
        recommendation = "tailored"
    elif base_score > tailored_score + 0.5:
        recommendation = "base"
    return {"base_score": base_score, "tailored_score": tailored_score, "recommendation": recommendation}
