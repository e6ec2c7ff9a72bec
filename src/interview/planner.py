# This module builds a personalized interview plan from a job description and a tailored CV.
# It exists so the interview coach can profile the interviewer and draft ten targeted questions.
# Interviewer profiles come from a preset persona or an LLM reading of their LinkedIn bio.
# Missing fields in model output are filled with defaults so the plan shape is always complete.

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from typing import Any

from src.common.llm import LLMClient
from src.common.settings import use_mock_ai

logger = logging.getLogger(__name__)

PROFILE_TEMPERATURE = 0.3
PLAN_TEMPERATURE = 0.7
MIN_LINKEDIN_TEXT_LENGTH = 50
PERSONA_MODES: tuple[str, ...] = ("preset", "analyze")

INTERVIEW_TYPES: dict[str, dict[str, Any]] = {
    "hr_screening": {
        "label": "HR Screening",
        "focus_areas": ["Culture", "Basic qualifications", "Salary expectations"],
    },
    "hiring_manager": {
        "label": "Hiring Manager",
        "focus_areas": ["Day-to-day responsibilities", "Team collaboration", "Management style"],
    },
    "technical": {
        "label": "Technical/Skills",
        "focus_areas": ["Technical proficiency", "Problem-solving", "System design"],
    },
    "executive": {
        "label": "Executive",
        "focus_areas": ["Strategic thinking", "Business impact", "Leadership vision"],
    },
    "peer": {
        "label": "Peer Interview",
        "focus_areas": ["Collaboration style", "Communication", "Team dynamics"],
    },
}

FOCUS_AREAS: tuple[str, ...] = (
    "soft_skills",
    "system_design",
    "conflict_resolution",
    "live_coding",
    "leadership",
    "culture_fit",
    "problem_solving",
    "communication",
)

PRESET_PERSONAS: dict[str, dict[str, Any]] = {
    "friendly": {
        "inferred_style": "Warm & Conversational",
        "communication_preferences": [
            "Prefers casual, conversational tone",
            "Values authenticity over perfection",
            "Appreciates personal anecdotes",
            "Enjoys building rapport first",
        ],
        "likely_priorities": [
            "Cultural fit and team dynamics",
            "Growth potential and learning ability",
            "Interpersonal skills",
        ],
        "potential_biases": [
            "May prioritize likability over technical depth",
            "Could be swayed by good rapport",
        ],
    },
    "strict": {
        "inferred_style": "Skeptical & Thorough",
        "communication_preferences": [
            "Expects precise, detailed answers",
            "Will challenge vague statements",
            "Values evidence and examples",
            "Prefers structured responses",
        ],
        "likely_priorities": [
            "Technical accuracy and depth",
            "Attention to detail",
            "Ability to handle pressure",
        ],
        "potential_biases": [
            "May undervalue creative thinking",
            "Could be dismissive of unconventional backgrounds",
        ],
    },
    "data_driven": {
        "inferred_style": "Analytical & Metrics-Focused",
        "communication_preferences": [
            "Loves numbers and quantifiable results",
            "Appreciates ROI and impact metrics",
            "Values logical, structured thinking",
            "Expects data to back up claims",
        ],
        "likely_priorities": [
            "Measurable achievements and outcomes",
            "Analytical problem-solving ability",
            "Business impact and efficiency",
        ],
        "potential_biases": [
            "May undervalue qualitative contributions",
            "Could dismiss soft skills importance",
        ],
    },
    "visionary": {
        "inferred_style": "Strategic & Big-Picture",
        "communication_preferences": [
            "Thinks in terms of future possibilities",
            "Appreciates innovative ideas",
            "Values strategic thinking over tactics",
            "Enjoys discussing industry trends",
        ],
        "likely_priorities": [
            "Vision alignment and strategic fit",
            "Innovation and creativity",
            "Long-term potential over immediate skills",
        ],
        "potential_biases": [
            "May overlook execution details",
            "Could favor candidates who share their vision",
        ],
    },
}

LINKEDIN_PROFILE_SYSTEM_PROMPT = """You are an expert interviewer profiler. Analyze the LinkedIn bio/about text to deduce the interviewer's personality, communication style, and likely interview approach.

Output JSON only:
{
  "name": "string (use provided name or infer from text or use 'Your Interviewer')",
  "inferred_style": "string (e.g., 'Data-Driven Leader', 'People-First Manager')",
  "communication_preferences": ["3-4 preferences"],
  "likely_priorities": ["3-4 priorities they likely care about"],
  "potential_biases": ["2-3 potential biases to watch for"],
  "questioning_approach": "how they likely ask questions",
  "decision_making_style": "how they likely make hiring decisions"
}

Analyze writing patterns: formal vs casual language, metrics vs relationships, technical depth vs business focus."""

INTERVIEW_PLAN_SYSTEM_PROMPT = """You are an expert Interview Coach.

Phase 1: Profiling. Use the interviewer profile provided by the user message.

Phase 2: Generation. Generate a Personalized Interview Plan JSON:
{
  "strategy_brief": "2-3 sentences on how to win over THIS specific interviewer",
  "key_tactics": ["3-5 specific tactics to use during the interview"],
  "questions": [
    {
      "id": "unique-id",
      "question": "The actual interview question",
      "category": "standard|tailored|persona",
      "hidden_agenda": "What they're REALLY asking (the subtext)",
      "suggested_structure": "STAR format suggestion for answering",
      "difficulty": "easy|medium|hard",
      "time_estimate": "2-3 min",
      "related_cv_section": "Optional: which CV section this relates to",
      "keywords": ["keywords", "to", "include"]
    }
  ]
}

Question mix (10 questions total):
- 3-4 standard questions for the interview type
- 3-4 tailored challenges targeting the new or notable bullets in the tailored CV
- 2-3 persona questions reflecting the interviewer's specific interests

STAR structure: Situation (1-2 sentences), Task (1 sentence), Action (2-3 sentences, use "I" not "we"), Result (quantifiable outcome + learning)."""


class InvalidPlanRequest(ValueError):
    """Raised when a plan request is missing fields; carries a short message plus details."""

    def __init__(self, message: str, details: str) -> None:
        super().__init__(details)
        self.message = message
        self.details = details


def validate_plan_request(body: dict[str, Any]) -> None:
    config = body.get("config")
    has_config = isinstance(config, dict) and bool(config)
    if not body.get("job_description") or not body.get("tailored_cv") or not has_config:
        raise InvalidPlanRequest(
            "Missing required fields", "job_description, tailored_cv, and config are required"
        )
    if not config.get("interview_type"):
        raise InvalidPlanRequest("Invalid config", "interview_type is required")
    mode = config.get("persona_mode", "preset")
    if mode == "preset" and not config.get("persona"):
        raise InvalidPlanRequest("Invalid config", "persona is required for preset mode")
    if mode == "analyze" and len((config.get("linkedin_text") or "").strip()) < MIN_LINKEDIN_TEXT_LENGTH:
        raise InvalidPlanRequest(
            "Invalid config", "linkedin_text with at least 50 characters is required for analyze mode"
        )
    if not config.get("focus_areas"):
        raise InvalidPlanRequest("Invalid config", "At least one focus area is required")


def get_preset_persona_profile(persona: str | None) -> dict[str, Any]:
    preset = PRESET_PERSONAS.get(persona or "friendly", PRESET_PERSONAS["friendly"])
    return {"name": "Your Interviewer", **preset, "derived_from": "preset_persona"}


def analyze_linkedin_profile(
    linkedin_text: str, interviewer_name: str | None = None, *, llm: LLMClient
) -> dict[str, Any]:
    result = llm.complete_json(
        system_prompt=LINKEDIN_PROFILE_SYSTEM_PROMPT,
        user_prompt=f"Interviewer Name: {interviewer_name or 'Unknown'}\n\nLinkedIn Bio/About:\n{linkedin_text}",
        temperature=PROFILE_TEMPERATURE,
    )
    return {
        "name": result.get("name") or interviewer_name or "Your Interviewer",
        "inferred_style": result.get("inferred_style") or "Professional",
        "communication_preferences": result.get("communication_preferences") or ["Clear communication"],
        "likely_priorities": result.get("likely_priorities") or ["Technical competence"],
        "potential_biases": result.get("potential_biases") or [],
        "derived_from": "linkedin_analysis",
    }


def build_plan_prompt(body: dict[str, Any], profile: dict[str, Any]) -> str:
    config = body["config"]
    interview_type = INTERVIEW_TYPES.get(config["interview_type"])
    label = interview_type["label"] if interview_type else config["interview_type"]
    type_focus = ", ".join(interview_type["focus_areas"]) if interview_type else ""
    return f"""Generate an interview plan with the following context:

Interview Type: {label}
Focus areas for this type: {type_focus}

Interviewer Profile:
- Name: {profile['name']}
- Style: {profile['inferred_style']}
- Communication Preferences: {'; '.join(profile['communication_preferences'])}
- Likely Priorities: {'; '.join(profile['likely_priorities'])}
- Derived from: {profile['derived_from']}

Selected Focus Areas: {', '.join(config['focus_areas'])}

Candidate's Specific Anxieties/Topics to Drill:
{config.get('anxieties') or 'None specified'}

Job Description:
{body['job_description']}

Company: {body.get('company_name') or 'Not specified'}
Position: {body.get('position_title') or 'Not specified'}

Tailored CV (focus on new/notable bullets for tailored questions):
{body['tailored_cv']}

Generate exactly 10 questions with a good mix of standard, tailored, and persona-based questions."""


def normalize_question(raw: dict[str, Any], index: int) -> dict[str, Any]:
    question = {
        "id": raw.get("id") or str(uuid.uuid4()),
        "question": raw.get("question") or f"Question {index + 1}",
        "category": raw.get("category") or "standard",
        "hidden_agenda": raw.get("hidden_agenda") or "Assess your qualifications",
        "suggested_structure": raw.get("suggested_structure") or "Use STAR format",
        "difficulty": raw.get("difficulty") or "medium",
        "time_estimate": raw.get("time_estimate") or "2-3 min",
        "keywords": raw.get("keywords") or [],
    }
    if raw.get("related_cv_section"):
        question["related_cv_section"] = raw["related_cv_section"]
    return question


def _fallback_strategy_brief(profile: dict[str, Any]) -> str:
    priorities = profile.get("likely_priorities") or []
    focus = priorities[0].lower() if priorities else "your key strengths"
    return f"Prepare to engage with a {profile['inferred_style']} interviewer. Focus on {focus}."


def _plan_envelope(body: dict[str, Any], user_id: str, profile: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": str(uuid.uuid4()),
        "application_id": body.get("application_id"),
        "user_id": user_id,
        "config": body["config"],
        "interviewer_profile": profile,
        "generated_at": datetime.now(UTC).isoformat(),
        "regeneration_count": 0,
    }


MOCK_QUESTIONS: tuple[dict[str, Any], ...] = (
    {
        "question": "Tell me about yourself and what brings you to this role.",
        "category": "standard",
        "hidden_agenda": "Testing: Communication skills, self-awareness, and whether you've researched the role.",
        "difficulty": "easy",
        "time_estimate": "2-3 min",
    },
    {
        "question": "Walk me through a complex project where you had to make difficult technical decisions.",
        "category": "tailored",
        "hidden_agenda": "Testing: Technical depth, decision-making process, and ability to handle ambiguity.",
        "difficulty": "hard",
        "time_estimate": "4-5 min",
        "related_cv_section": "Recent project experience",
        "keywords": ["trade-offs", "scalability", "architecture"],
    },
    {
        "question": "How do you stay current with industry trends and new technologies?",
        "category": "persona",
        "hidden_agenda": "Testing: Growth mindset and commitment to continuous learning.",
        "difficulty": "easy",
        "time_estimate": "2 min",
        "keywords": ["continuous learning", "adaptability"],
    },
    {
        "question": "Describe a time when you disagreed with a colleague or manager. How did you handle it?",
        "category": "standard",
        "hidden_agenda": "Testing: Conflict resolution and professionalism.",
        "difficulty": "medium",
        "time_estimate": "3 min",
        "keywords": ["collaboration", "professional maturity"],
    },
    {
        "question": "Can you elaborate on your specific contributions to your most recent highlighted achievement?",
        "category": "tailored",
        "hidden_agenda": "Testing: Honesty about contributions and ability to articulate impact.",
        "difficulty": "medium",
        "time_estimate": "3-4 min",
        "related_cv_section": "Key achievements",
        "keywords": ["ownership", "impact"],
    },
    {
        "question": "What metrics do you use to measure success in your work?",
        "category": "persona",
        "hidden_agenda": "Testing: Results orientation and analytical thinking.",
        "difficulty": "medium",
        "time_estimate": "2-3 min",
        "keywords": ["metrics", "KPIs", "outcomes"],
    },
    {
        "question": "Tell me about a time when a project failed or had significant setbacks. What happened?",
        "category": "standard",
        "hidden_agenda": "Testing: Accountability, resilience, and learning ability.",
        "difficulty": "hard",
        "time_estimate": "3-4 min",
        "keywords": ["accountability", "resilience"],
    },
    {
        "question": "How would you approach ramping up in this role during the first 90 days?",
        "category": "tailored",
        "hidden_agenda": "Testing: Planning ability and understanding of the role requirements.",
        "difficulty": "medium",
        "time_estimate": "3 min",
        "keywords": ["onboarding", "strategic thinking"],
    },
    {
        "question": "What questions do you have for me about the team or role?",
        "category": "standard",
        "hidden_agenda": "Testing: Genuine interest and preparation.",
        "difficulty": "easy",
        "time_estimate": "5 min",
        "keywords": ["engagement", "curiosity"],
    },
    {
        "question": "Why are you looking to leave your current position?",
        "category": "persona",
        "hidden_agenda": "Testing: Honesty, professional maturity, and possible red flags.",
        "difficulty": "medium",
        "time_estimate": "2 min",
        "keywords": ["growth", "opportunity"],
    },
)


def mock_interview_plan(body: dict[str, Any], user_id: str) -> dict[str, Any]:
    config = body["config"]
    if config.get("persona_mode") == "analyze":
        profile = {
            "name": config.get("interviewer_name") or "Your Interviewer",
            "inferred_style": "Data-Driven Technical Leader",
            "communication_preferences": [
                "Values brevity and directness",
                "Appreciates data-backed claims",
                "Prefers structured responses",
            ],
            "likely_priorities": ["Technical depth and accuracy", "Problem-solving approach"],
            "potential_biases": ["May favor candidates with similar technical background"],
            "derived_from": "linkedin_analysis",
        }
    else:
        profile = get_preset_persona_profile(config.get("persona"))

    return {
        **_plan_envelope(body, user_id, profile),
        "strategy_brief": (
            "This interviewer values data-driven decisions and technical depth. Be direct, use specific "
            "metrics and examples, and come prepared with thoughtful questions."
        ),
        "key_tactics": [
            "Lead with metrics and quantifiable results when possible",
            "Use the STAR format but emphasize the Result with concrete numbers",
            "Be concise and skip lengthy explanations",
            "Prepare questions that show you've researched the company and team",
        ],
        "questions": [normalize_question(question, index) for index, question in enumerate(MOCK_QUESTIONS)],
    }


def generate_interview_plan(
    body: dict[str, Any], user_id: str, *, llm: LLMClient | None = None
) -> dict[str, Any]:
    """Validate the request and return a complete plan, mocked when the kill switch is on."""

    validate_plan_request(body)
    if use_mock_ai():
        return mock_interview_plan(body, user_id)
    if llm is None:
        raise RuntimeError("AI client is not configured")

    config = body["config"]
    if config.get("persona_mode") == "analyze" and config.get("linkedin_text"):
        profile = analyze_linkedin_profile(config["linkedin_text"], config.get("interviewer_name"), llm=llm)
    else:
        profile = get_preset_persona_profile(config.get("persona"))

    result = llm.complete_json(
        system_prompt=INTERVIEW_PLAN_SYSTEM_PROMPT,
        user_prompt=build_plan_prompt(body, profile),
        temperature=PLAN_TEMPERATURE,
    )
    raw_questions = [question for question in result.get("questions") or [] if isinstance(question, dict)]
    plan = {
        **_plan_envelope(body, user_id, profile),
        "strategy_brief": result.get("strategy_brief") or _fallback_strategy_brief(profile),
        "key_tactics": result.get("key_tactics")
        or ["Be concise and specific", "Use concrete examples", "Ask thoughtful questions"],
        "questions": [normalize_question(question, index) for index, question in enumerate(raw_questions)],
    }
    logger.info("Generated interview plan with %s questions for user %s.", len(plan["questions"]), user_id)
    return plan
