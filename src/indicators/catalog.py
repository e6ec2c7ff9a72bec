# This module defines the ten indicators every score is expressed in.
# It exists so names, short names and categories are shared by the scorer, the API and feedback text.
# The framework is profession-neutral; industry emphasis lives in `weights`, not here.
# Sub-indicators are descriptive only and never scored on their own.

from __future__ import annotations

from typing import Any

INDICATOR_IDS: tuple[int, ...] = tuple(range(1, 11))

INDICATOR_NAMES: dict[int, str] = {
    1: "Job Knowledge & Professional Competence",
    2: "Problem-Solving & Critical Thinking",
    3: "Communication & Articulation",
    4: "Social Skills & Interpersonal Ability",
    5: "Integrity & Ethical Standards",
    6: "Adaptability & Flexibility",
    7: "Learning Agility & Growth Mindset",
    8: "Leadership & Initiative",
    9: "Creativity & Innovation",
    10: "Motivation & Drive",
}

INDICATOR_SHORT_NAMES: dict[int, str] = {
    1: "Job Knowledge",
    2: "Problem-Solving",
    3: "Communication",
    4: "Social Skills",
    5: "Integrity",
    6: "Adaptability",
    7: "Learning Agility",
    8: "Leadership",
    9: "Creativity",
    10: "Motivation",
}

INDICATOR_CATEGORIES: dict[int, str] = {
    1: "Cognitive",
    2: "Cognitive",
    3: "Interpersonal",
    4: "Interpersonal",
    5: "Character",
    6: "Character",
    7: "Cognitive",
    8: "Interpersonal",
    9: "Cognitive",
    10: "Character",
}

SCORE_LABELS: dict[int, str] = {
    10: "Exceptional",
    9: "Excellent",
    8: "Very Good",
    7: "Good",
    6: "Above Average",
    5: "Average",
    4: "Below Average",
    3: "Developing",
    2: "Weak",
    1: "Minimal",
}

SCORE_THRESHOLDS: dict[str, int] = {
    "exceptional": 9,
    "strong": 7,
    "adequate": 5,
    "developing": 3,
    "minimal": 1,
}

SUB_INDICATORS: dict[int, tuple[str, ...]] = {
    1: (
        "Domain Expertise",
        "Technical Skills",
        "Tool/System Mastery",
        "Industry Awareness",
        "Continuous Learning",
    ),
    2: (
        "Analytical Skills",
        "Decision Making",
        "Strategic Thinking",
        "Root Cause Analysis",
        "Innovative Solutions",
    ),
    3: (
        "Verbal Communication",
        "Written Communication",
        "Active Listening",
        "Presentation Skills",
        "Cross-Cultural Communication",
    ),
    4: (
        "Team Collaboration",
        "Conflict Resolution",
        "Empathy & Emotional Intelligence",
        "Networking & Relationship Building",
        "Customer/Client Focus",
    ),
    5: (
        "Honesty & Transparency",
        "Confidentiality",
        "Accountability",
        "Fairness & Respect",
        "Ethical Decision Making",
    ),
    6: (
        "Embracing Change",
        "Resilience",
        "Multitasking & Prioritization",
        "Learning New Skills",
        "Cross-Functional Adaptability",
    ),
    7: (
        "Self-Reflection & Feedback Integration",
        "Continuous Improvement",
        "Intellectual Curiosity",
        "Resourcefulness",
        "Application of Learning",
    ),
    8: (
        "Goal Setting & Vision",
        "Team Motivation & Development",
        "Ownership & Accountability",
        "Strategic Thinking & Influence",
        "Delegating & Empowering",
        "Conflict Resolution (Leadership)",
        "Change Management",
        "Performance Management",
        "Crisis Management",
        "Mentorship & Coaching",
        "Decisiveness",
        "Problem Anticipation",
    ),
    9: (
        "Original Thinking",
        "Experimentation & Risk-Taking",
        "Design Thinking",
        "Implementation of Innovations",
        "Divergent Thinking",
        "Convergent Thinking",
        "Resource Optimization",
        "Trend Spotting",
    ),
    10: (
        "Proactiveness & Initiative",
        "Persistence & Perseverance",
        "Achievement Orientation",
        "Work Ethic & Reliability",
        "Self-Motivation",
        "Enthusiasm & Engagement",
        "Commitment to Quality",
        "Goal Orientation",
        "Resilience to Failure",
        "Professionalism",
        "Time Management",
        "Self-Development",
        "Passion for the Mission",
        "Adaptability to Feedback",
        "Drive for Impact",
    ),
}


def get_score_label(score: float) -> str:
    # round half up, 6.5 -> "Good"
    return SCORE_LABELS.get(int(score + 0.5), "Unknown")


def get_score_band(score: float) -> str:
    if score >= 7:
        return "high"
    if score >= 5:
        return "medium"
    return "low"


def is_valid_indicator(indicator_id: int) -> bool:
    return indicator_id in INDICATOR_NAMES


def list_indicators() -> list[dict[str, Any]]:
    return [
        {
            "id": indicator_id,
            "name": INDICATOR_NAMES[indicator_id],
            "short_name": INDICATOR_SHORT_NAMES[indicator_id],
            "category": INDICATOR_CATEGORIES[indicator_id],
            "sub_indicators": list(SUB_INDICATORS[indicator_id]),
        }
        for indicator_id in INDICATOR_IDS
    ]
