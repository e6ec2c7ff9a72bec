# This module scores free text against the ten indicators with an LLM and turns scores into feedback.
# It exists so CV tailoring, the indicators API and interview tooling share one scoring contract.
# Results are plain dictionaries: `{success, scores?, error?, tokens_used?, model?}`.
# Mock mode returns deterministic pseudo-random scores seeded from the text itself.

from __future__ import annotations

import hashlib
import logging
import math
import random
from datetime import UTC, datetime
from typing import Any

from src.common.llm import LLMClient, LLMError, parse_json_content
from src.common.settings import use_mock_ai
from src.indicators.catalog import INDICATOR_IDS, INDICATOR_NAMES
from src.indicators.weights import calculate_weighted_score

logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 50
SCORING_TEMPERATURE = 0.3
SCORING_MAX_TOKENS = 2000
CHANGE_THRESHOLD = 0.5

SCORING_TYPES = ("cv", "interview", "job_description", "general")

_TYPE_NOTES: dict[str, str] = {
    "cv": "This is a CV/resume. Score based on demonstrated experience and achievements.",
    "interview": "This is an interview response. Score based on how well they articulate their capabilities.",
    "job_description": "This is a job description. Identify which indicators are most important for this role.",
    "general": "Score based on all available evidence in the text.",
}

SYSTEM_PROMPT = "You are an expert assessment evaluator. Return only valid JSON."

ACTION_ITEMS: dict[int, tuple[str, ...]] = {
    1: (
        "Add specific certifications or credentials relevant to your field",
        "Quantify your expertise with metrics or achievements",
        "Highlight specialized training or continuing education",
        "Mention specific tools, systems, or methodologies you use",
    ),
    2: (
        "Include a specific example of a complex problem you solved",
        "Describe your analytical process, not just the outcome",
        "Quantify the impact of your solutions",
        "Show how you identified root causes, not just symptoms",
    ),
    3: (
        "Add examples of presentations, training, or documentation you created",
        "Mention stakeholders you regularly communicate with",
        "Include any public speaking or teaching experience",
        "Highlight cross-functional collaboration",
    ),
    4: (
        "Describe team projects and your collaborative role",
        "Include conflict resolution or difficult conversation examples",
        "Mention mentoring, coaching, or supporting colleagues",
        "Show relationship-building with clients, patients, or customers",
    ),
    5: (
        "Highlight situations where you maintained ethical standards",
        "Include examples of accountability and ownership",
        "Mention compliance, quality assurance, or safety initiatives",
        "Show transparency in challenging situations",
    ),
    6: (
        "Describe how you handled a significant change or challenge",
        "Include examples of learning new skills quickly",
        "Show resilience during difficult periods",
        "Mention successful pivots or transitions",
    ),
    7: (
        "List recent training, courses, or certifications",
        "Describe how you stay current in your field",
        "Include examples of applying feedback",
        "Show progression and growth over time",
    ),
    8: (
        "Highlight initiatives you started without being asked",
        "Include team guidance or mentoring examples",
        "Show strategic thinking beyond your immediate role",
        "Describe influence without formal authority",
    ),
    9: (
        "Include process improvements you implemented",
        "Describe novel solutions to common problems",
        "Show examples of innovation within constraints",
        "Mention new ideas that were adopted",
    ),
    10: (
        "Demonstrate persistence through challenges",
        "Show goal achievement with specific metrics",
        "Include long-term projects you completed",
        "Highlight going above and beyond expectations",
    ),
}

INDUSTRY_EXAMPLES: dict[str, dict[int, tuple[str, ...]]] = {
    "healthcare": {
        1: ("ACLS/BLS certifications", "EHR system proficiency", "Specialized clinical training"),
        2: ("Patient assessment leading to early diagnosis", "Protocol improvement reducing errors"),
        3: ("Patient education techniques", "Interdisciplinary team communication"),
        4: ("Bedside manner and patient rapport", "Family communication during difficult times"),
    },
    "education": {
        1: ("Curriculum development", "Assessment design", "Subject matter expertise"),
        2: ("Differentiated instruction strategies", "Improving student outcomes"),
        3: ("Parent-teacher communication", "IEP meeting facilitation"),
        4: ("Classroom management", "Student relationship building"),
    },
    "retail": {
        1: ("Product knowledge", "POS system expertise", "Inventory management"),
        2: ("Customer complaint resolution", "Loss prevention strategies"),
        3: ("Sales presentations", "Team huddle facilitation"),
        4: ("Customer service excellence", "Team collaboration"),
    },
    "technology": {
        1: ("Technical stack proficiency", "System architecture", "Code quality"),
        2: ("Debugging complex issues", "Performance optimization"),
        3: ("Technical documentation", "Stakeholder presentations"),
        4: ("Cross-functional collaboration", "Code review culture"),
    },
    "finance": {
        1: ("Financial modeling", "Regulatory compliance", "Risk assessment"),
        2: ("Complex analysis and recommendations", "Audit findings resolution"),
        3: ("Client advisory", "Executive presentations"),
        4: ("Client relationship management", "Team collaboration"),
    },
}

GENERIC_EXAMPLES: tuple[str, ...] = (
    "Specific achievement with measurable outcome",
    "Challenge faced and how you addressed it",
    "Recognition or positive feedback received",
)

_INDICATOR_GUIDE = """1. Job Knowledge & Technical Skills
   - Domain expertise in their field (medical knowledge, teaching methods, financial analysis, etc.)
   - Professional competencies specific to their role
   - Mastery of relevant tools/systems
2. Problem-Solving & Critical Thinking
   - Analytical reasoning, creative solutions within constraints, root cause analysis
3. Communication & Articulation
   - Verbal and written clarity, active listening, presentation skills
4. Social Skills & Interpersonal Ability
   - Team collaboration, conflict resolution, empathy and relationship building
5. Integrity & Ethical Standards
   - Honesty, accountability, ethical decision-making, transparency
6. Adaptability & Flexibility
   - Handling change, resilience under pressure, stress tolerance
7. Learning Agility & Growth Mindset
   - Speed of learning, professional development, feedback receptiveness
8. Leadership & Initiative
   - Ownership without being asked, guiding others at any level, strategic vision
9. Creativity & Innovation
   - Original thinking, experimentation, appropriate risk-taking
10. Motivation & Drive
    - Goal orientation, persistence, work ethic, ambition for excellence"""


def build_scoring_prompt(text: str, context: dict[str, Any]) -> str:
    industry = context.get("industry")
    role = context.get("role")
    industry_note = (
        f"The candidate is in the {industry} industry/field."
        if industry
        else "The industry is not specified - use universal criteria."
    )
    role_note = f"They are applying for or working as: {role}" if role else ""
    type_note = _TYPE_NOTES.get(str(context.get("type", "general")), _TYPE_NOTES["general"])

    return f"""You are an expert evaluator using a research-backed 10-Indicator Assessment Framework.

CRITICAL: This framework applies to ALL professions and industries. Do NOT favor any industry over another.

{industry_note}
{role_note}

{type_note}

Analyze this text and score it on each indicator (1-10 scale):

---TEXT TO ANALYZE---
{text}
---END TEXT---

THE 10 INDICATORS TO SCORE:

{_INDICATOR_GUIDE}

SCORING GUIDELINES:
- 9-10: Exceptional - Multiple strong examples, clearly demonstrated
- 7-8: Strong - Good evidence, well-articulated
- 5-6: Adequate - Some evidence, room for improvement
- 3-4: Developing - Limited evidence, needs work
- 1-2: Minimal - Little to no evidence

Use industry-appropriate language in your feedback and score based ONLY on evidence in the text.

Return your analysis as JSON with this exact structure:
{{
  "scores": {{
    "1": {{ "score": 7, "evidence": "Specific quote or example from text", "suggestion": "Actionable improvement" }},
    "...": "one entry per indicator 1-10"
  }},
  "overall": 6.4,
  "strengths": ["Top 2-3 strengths with specific evidence"],
  "gaps": ["Top 2-3 gaps with specific improvement suggestions"]
}}

Respond ONLY with valid JSON, no other text."""


def _clamp_score(value: Any) -> float:
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return 5.0
    return min(10.0, max(1.0, numeric))


def _default_score(indicator_id: int) -> dict[str, Any]:
    return {
        "indicator_id": indicator_id,
        "indicator_name": INDICATOR_NAMES[indicator_id],
        "score": 5.0,
        "evidence": "Unable to assess from provided text",
        "suggestion": "Provide more information demonstrating this indicator",
    }


def score_entry(scores: dict[Any, Any], indicator_id: int) -> dict[str, Any] | None:
    """Look up an indicator score whether keys are ints or JSON strings."""

    entry = scores.get(indicator_id)
    if entry is None:
        entry = scores.get(str(indicator_id))
    return entry if isinstance(entry, dict) else None


def calculate_simple_average(scores: dict[int, dict[str, Any]]) -> float:
    values = [float(item["score"]) for item in scores.values()]
    if not values:
        return 0.0
    return round(sum(values) / len(values), 1)


def parse_scoring_response(content: str, context: dict[str, Any]) -> dict[str, Any]:
    parsed = parse_json_content(content)
    raw_scores = parsed.get("scores") if isinstance(parsed.get("scores"), dict) else {}

    scores: dict[int, dict[str, Any]] = {}
    for indicator_id in INDICATOR_IDS:
        raw = score_entry(raw_scores, indicator_id)
        if raw is None:
            scores[indicator_id] = _default_score(indicator_id)
            continue
        scores[indicator_id] = {
            "indicator_id": indicator_id,
            "indicator_name": INDICATOR_NAMES[indicator_id],
            "score": _clamp_score(raw.get("score")),
            "evidence": raw.get("evidence") or "No specific evidence provided",
            "suggestion": raw.get("suggestion") or "No suggestion provided",
        }

    overall = parsed.get("overall")
    if not isinstance(overall, (int, float)) or not overall:
        overall = calculate_simple_average(scores)
    return {
        "scores": scores,
        "overall": float(overall),
        "strengths": list(parsed.get("strengths") or []),
        "gaps": list(parsed.get("gaps") or []),
        "industry": context.get("industry"),
        "context": context.get("type", "general"),
        "timestamp": datetime.now(tz=UTC).isoformat(),
    }


def mock_scores(text: str, context: dict[str, Any]) -> dict[str, Any]:
    seed = int(hashlib.sha256(text.encode("utf-8")).hexdigest()[:12], 16)
    rng = random.Random(seed)
    base_score = 5 + rng.random() * 2

    scores: dict[int, dict[str, Any]] = {}
    for indicator_id in INDICATOR_IDS:
        variance = (rng.random() - 0.5) * 3
        name = INDICATOR_NAMES[indicator_id]
        scores[indicator_id] = {
            "indicator_id": indicator_id,
            "indicator_name": name,
            "score": min(10.0, max(1.0, round(base_score + variance, 1))),
            "evidence": f"[Mock] Evidence for {name} detected in text",
            "suggestion": f"[Mock] Consider adding more specific examples of {name.lower()}",
        }

    return {
        "success": True,
        "scores": {
            "scores": scores,
            "overall": calculate_simple_average(scores),
            "strengths": ["[Mock] Shows potential in multiple areas", "[Mock] Good foundation demonstrated"],
            "gaps": ["[Mock] Could strengthen specific examples", "[Mock] Consider adding quantified achievements"],
            "industry": context.get("industry"),
            "context": context.get("type", "general"),
            "timestamp": datetime.now(tz=UTC).isoformat(),
        },
        "model": "mock",
    }


def score_text(
    text: str,
    context: dict[str, Any],
    indicator_ids: list[int] | None = None,
    *,
    llm: LLMClient | None = None,
) -> dict[str, Any]:
    """Score text on the ten indicators; failures come back as `{success: False, error}`."""

    if not text or len(text.strip()) < MIN_TEXT_LENGTH:
        return {
            "success": False,
            "error": "Text is too short to analyze. Please provide at least 50 characters.",
        }
    if use_mock_ai():
        return mock_scores(text, context)
    if llm is None:
        return {"success": False, "error": "AI client is not configured"}

    try:
        result = llm.complete(
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_scoring_prompt(text, context)},
            ],
            temperature=SCORING_TEMPERATURE,
            max_tokens=SCORING_MAX_TOKENS,
        )
    except LLMError as exc:
        logger.exception("Indicator scoring request failed.")
        return {"success": False, "error": str(exc)}

    try:
        scores = parse_scoring_response(result.content, context)
    except ValueError:
        logger.error("Could not parse scoring response: %s", result.content[:500])
        return {"success": False, "error": "Failed to parse AI response"}

    if indicator_ids:
        scores["scores"] = {
            indicator_id: scores["scores"][indicator_id]
            for indicator_id in indicator_ids
            if indicator_id in scores["scores"]
        }
        scores["overall"] = calculate_simple_average(scores["scores"])

    if context.get("industry"):
        scores["overall"] = calculate_weighted_score(scores["scores"], str(context["industry"]))

    return {"success": True, "scores": scores, "tokens_used": result.tokens_used, "model": result.model}


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _signed(value: float, digits: int = 1) -> str:
    return f"{'+' if value >= 0 else ''}{value:.{digits}f}"


def _as_score(value: Any) -> float:
    """Client-supplied score as a float; anything non-numeric counts as unscored."""

    try:
        score = float(value or 0)
    except (TypeError, ValueError):
        return 0.0
    return score if math.isfinite(score) else 0.0


def compare_scores(before: dict[str, Any], after: dict[str, Any]) -> dict[str, Any]:
    improvements: list[dict[str, Any]] = []
    regressions: list[dict[str, Any]] = []
    unchanged: list[int] = []

    for indicator_id in INDICATOR_IDS:
        before_entry = score_entry(before.get("scores", {}), indicator_id) or {}
        after_entry = score_entry(after.get("scores", {}), indicator_id) or {}
        before_score = _as_score(before_entry.get("score"))
        after_score = _as_score(after_entry.get("score"))
        change = after_score - before_score
        if before_score > 0:
            percent_change = _round_half_up(change / before_score * 100)
        else:
            percent_change = 100 if after_score > 0 else 0

        delta = {
            "indicator_id": indicator_id,
            "indicator_name": INDICATOR_NAMES[indicator_id],
            "before_score": before_score,
            "after_score": after_score,
            "change": round(change, 2),
            "percent_change": percent_change,
        }
        if change > CHANGE_THRESHOLD:
            improvements.append(delta)
        elif change < -CHANGE_THRESHOLD:
            regressions.append(delta)
        else:
            unchanged.append(indicator_id)

    improvements.sort(key=lambda item: item["change"], reverse=True)
    regressions.sort(key=lambda item: item["change"])

    before_overall = _as_score(before.get("overall"))
    overall_change = _as_score(after.get("overall")) - before_overall
    overall_percent = _round_half_up(overall_change / before_overall * 100) if before_overall > 0 else 0

    summary = ""
    if improvements:
        top = improvements[0]
        summary += f"Greatest improvement in {top['indicator_name']} (+{top['change']:.1f}). "
    if regressions:
        top = regressions[0]
        summary += f"Attention needed on {top['indicator_name']} ({top['change']:.1f}). "
    summary += (
        f"Overall score changed by {_signed(overall_change)} "
        f"({'+' if overall_percent >= 0 else ''}{overall_percent}%)."
    )

    return {
        "improvements": improvements,
        "regressions": regressions,
        "unchanged": unchanged,
        "overall_change": overall_percent,
        "overall_improvement": overall_change > 0,
        "summary": summary,
    }


def generate_action_items(indicator_id: int) -> list[str]:
    items = ACTION_ITEMS.get(indicator_id)
    if items is None:
        return ["Provide more specific examples demonstrating this indicator"]
    return list(items)


def generate_examples(indicator_id: int, industry: str | None = None) -> list[str]:
    if industry and indicator_id in INDUSTRY_EXAMPLES.get(industry, {}):
        return list(INDUSTRY_EXAMPLES[industry][indicator_id])
    return list(GENERIC_EXAMPLES)


def generate_feedback(scores: dict[str, Any], threshold: float = 7) -> list[dict[str, Any]]:
    """Feedback for every indicator under the threshold, biggest gap first."""

    industry = scores.get("industry")
    feedback: list[dict[str, Any]] = []
    for key, entry in dict(scores.get("scores", {})).items():
        indicator_id = int(key)
        score = float(entry["score"])
        if score >= threshold:
            continue
        feedback.append(
            {
                "indicator_id": indicator_id,
                "indicator_name": entry.get("indicator_name", INDICATOR_NAMES.get(indicator_id, "")),
                "current_score": score,
                "target_score": threshold,
                "gap": round(threshold - score, 2),
                "feedback": entry.get("suggestion", ""),
                "action_items": generate_action_items(indicator_id),
                "examples": generate_examples(indicator_id, industry),
            }
        )

    feedback.sort(key=lambda item: item["gap"], reverse=True)
    return feedback
