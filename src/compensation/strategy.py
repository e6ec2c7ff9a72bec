# This module analyses a job offer against market benchmarks and builds a negotiation strategy.
# It exists so the compensation API can return one assembled strategy document per request.
# Offer arithmetic and SWOT-style findings are deterministic; counter-offer text comes from the LLM.
# Mock mode assembles a rule-based strategy so the flow works without an API key.

from __future__ import annotations

import logging
import math
import uuid
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from src.common.llm import LLMClient
from src.common.settings import use_mock_ai
from src.compensation.market_data import (
    ROLE_LEVELS,
    fetch_market_data,
    get_temperature_config,
    supported_currencies,
)

logger = logging.getLogger(__name__)

STRATEGY_TEMPERATURE = 0.0
DEFAULT_VESTING_YEARS = 4
P90_FALLBACK_FACTOR = 1.2


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class EquityDetails(_CamelModel):
    type: Literal["rsu", "options", "phantom", "none"] = "none"
    total_value: float | None = None
    number_of_shares: int | None = None
    strike_price: float | None = None
    vesting_schedule: str | None = None
    vesting_period_years: float | None = None


class OfferDetails(_CamelModel):
    base_salary: float
    currency: str
    equity: EquityDetails | None = None
    sign_on_bonus: float | None = None
    annual_bonus: float | None = None
    bonus_target: float | None = None
    benefits: str | None = None
    location: str
    role_title: str
    role_level: str
    company_name: str
    company_size: Literal["startup", "small", "medium", "large", "enterprise"] | None = None
    industry: str | None = None
    remote_policy: Literal["onsite", "hybrid", "remote"] | None = None


class UserPriorities(_CamelModel):
    primary_focus: Literal["cash", "equity", "wlb", "growth", "stability"]
    secondary_focus: Literal["cash", "equity", "wlb", "growth", "stability"] | None = None
    must_haves: list[str] = []
    nice_to_haves: list[str] = []
    deal_breakers: list[str] = []
    current_salary: float | None = None
    target_salary: float | None = None
    willing_to_walk_away: bool
    timeline: str | None = None


def _positive_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def validate_strategy_request(body: dict[str, Any]) -> tuple[OfferDetails, UserPriorities, str | None]:
    """Check a camelCase request body and return typed offer, priorities and application id."""

    offer = body.get("offerDetails")
    priorities = body.get("userPriorities")
    if not isinstance(offer, dict) or not isinstance(priorities, dict):
        raise ValueError("offerDetails and userPriorities are required")
    if not _positive_number(offer.get("baseSalary")):
        raise ValueError("baseSalary must be greater than 0")
    if not offer.get("currency"):
        raise ValueError("currency is required")
    if not offer.get("roleTitle") or not offer.get("roleLevel"):
        raise ValueError("roleTitle and roleLevel are required")
    if not offer.get("location"):
        raise ValueError("location is required")
    if not offer.get("companyName"):
        raise ValueError("companyName is required")
    if not priorities.get("primaryFocus"):
        raise ValueError("primaryFocus is required")
    if not isinstance(priorities.get("willingToWalkAway"), bool):
        raise ValueError("willingToWalkAway must be a boolean")
    if offer["roleLevel"] not in ROLE_LEVELS:
        raise ValueError(f"roleLevel must be one of: {', '.join(ROLE_LEVELS)}")
    if offer["currency"] not in supported_currencies():
        raise ValueError(f"currency must be one of: {', '.join(supported_currencies())}")

    try:
        parsed_offer = OfferDetails.model_validate(offer)
        parsed_priorities = UserPriorities.model_validate(priorities)
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        raise ValueError(f"Invalid value for {field}: {first.get('msg', 'invalid')}") from exc

    application_id = body.get("jobApplicationId")
    return parsed_offer, parsed_priorities, str(application_id) if application_id else None


def _has_equity(offer: OfferDetails) -> bool:
    return bool(offer.equity and offer.equity.type != "none" and offer.equity.total_value)


def calculate_annualized_equity(offer: OfferDetails) -> float:
    if not _has_equity(offer):
        return 0.0
    vesting_years = offer.equity.vesting_period_years or DEFAULT_VESTING_YEARS
    return offer.equity.total_value / vesting_years


def calculate_total_comp(offer: OfferDetails) -> float:
    """Base + bonus + equity spread over its vesting period."""

    bonus = offer.annual_bonus or (offer.bonus_target or 0) * offer.base_salary / 100
    return offer.base_salary + bonus + calculate_annualized_equity(offer)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def determine_market_position(total_comp: float, benchmark: dict[str, Any]) -> dict[str, Any]:
    p25 = benchmark["percentile25"]
    p50 = benchmark["percentile50"]
    p75 = benchmark["percentile75"]
    p90 = benchmark.get("percentile90") or _round_half_up(p75 * P90_FALLBACK_FACTOR)

    if total_comp < p25 * 0.9:
        return {
            "position": "well_below_market",
            "percentile": _round_half_up(total_comp / p25 * 25),
            "description": "This offer is significantly below market rate. Strong negotiation recommended.",
        }
    if total_comp < p50:
        return {
            "position": "below_market",
            "percentile": _round_half_up(25 + (total_comp - p25) / (p50 - p25) * 25),
            "description": "This offer is below the median market rate. There is room for negotiation.",
        }
    if total_comp < p75:
        return {
            "position": "at_market",
            "percentile": _round_half_up(50 + (total_comp - p50) / (p75 - p50) * 25),
            "description": "This offer is competitive and at market rate. Targeted improvements possible.",
        }
    if total_comp < p90:
        return {
            "position": "above_market",
            "percentile": _round_half_up(75 + (total_comp - p75) / (p90 - p75) * 15),
            "description": "This is a strong offer above market median. Focus on specific priorities.",
        }
    return {
        "position": "well_above_market",
        "percentile": min(99, _round_half_up(90 + (total_comp - p90) / p90 * 10)),
        "description": "Exceptional offer well above market. Consider non-monetary factors.",
    }


def format_amount(value: float | None) -> str:
    if value is None:
        return "None"
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"


def analyze_offer(offer: OfferDetails, benchmark: dict[str, Any], priorities: UserPriorities) -> dict[str, Any]:
    total_comp = calculate_total_comp(offer)
    position = determine_market_position(total_comp, benchmark)

    strengths: list[str] = []
    weaknesses: list[str] = []
    risks: list[str] = []
    opportunities: list[str] = []

    if offer.base_salary >= benchmark["percentile50"]:
        strengths.append("Base salary at or above market median")
    else:
        weaknesses.append("Base salary below market median")
        opportunities.append("Negotiate base salary increase")

    if offer.sign_on_bonus and offer.sign_on_bonus > 0:
        strengths.append(f"Sign-on bonus of {format_amount(offer.sign_on_bonus)} included")
    else:
        opportunities.append("Request sign-on bonus to bridge compensation gap")

    if _has_equity(offer):
        strengths.append(f"Equity package worth {format_amount(offer.equity.total_value)} over vesting period")
        if offer.equity.type == "options":
            risks.append("Options value depends on company growth and exit")
    else:
        weaknesses.append("No equity component in offer")
        opportunities.append("Request equity or RSU grant")

    if priorities.primary_focus == "cash" and offer.base_salary < benchmark["percentile75"]:
        opportunities.append("Push for higher base salary given cash priority")
    if priorities.primary_focus == "equity" and (offer.equity is None or offer.equity.type == "none"):
        weaknesses.append("No equity despite equity being top priority")
    if priorities.primary_focus == "wlb":
        if offer.remote_policy == "remote":
            strengths.append("Remote work policy supports work-life balance")
        elif offer.remote_policy == "onsite":
            weaknesses.append("On-site requirement may impact work-life balance")
            opportunities.append("Negotiate hybrid or remote work arrangement")

    if offer.company_size == "startup":
        risks.append("Startup environment carries higher risk")
        if offer.equity is not None and offer.equity.type == "options":
            opportunities.append("Negotiate for more equity given startup risk")

    if priorities.timeline:
        risks.append(f"Decision timeline: {priorities.timeline}")

    return {
        "market_position": position["position"],
        "market_position_description": position["description"],
        "percentile_estimate": position["percentile"],
        "total_compensation": total_comp,
        "annualized_equity": calculate_annualized_equity(offer),
        "market_temperature": benchmark["market_temperature"],
        "temperature_advice": get_temperature_config(benchmark["market_temperature"])["advice"],
        "strengths": strengths,
        "weaknesses": weaknesses,
        "risks": risks,
        "opportunities": opportunities,
    }


STRATEGY_SYSTEM_PROMPT = """You are an expert compensation negotiation coach helping candidates maximize their job offers.

Your role is to:
1. Analyze the offer details and market context
2. Develop a tailored negotiation strategy based on the candidate's priorities
3. Generate specific counter-offer recommendations
4. Create actionable scripts for different scenarios

Be specific and actionable, respect the candidate's deal-breakers, account for market conditions,
address likely employer objections and keep a collaborative but assertive tone.

Output your response as a valid JSON object with the exact structure specified."""


def build_strategy_prompt(
    offer: OfferDetails, priorities: UserPriorities, benchmark: dict[str, Any], analysis: dict[str, Any]
) -> str:
    if offer.annual_bonus:
        bonus_line = format_amount(offer.annual_bonus)
    else:
        bonus_line = f"{format_amount(offer.bonus_target or 0)}% target"
    equity_line = (
        f"{format_amount(offer.equity.total_value)} {offer.currency} ({offer.equity.type})"
        if offer.equity is not None and offer.equity.type != "none"
        else "None"
    )

    return f"""
Generate a comprehensive negotiation strategy for this offer:

## Offer Details
- Company: {offer.company_name} ({offer.company_size or 'Unknown size'})
- Role: {offer.role_title} ({offer.role_level} level)
- Location: {offer.location} ({offer.remote_policy or 'Not specified'})
- Base Salary: {format_amount(offer.base_salary)} {offer.currency}
- Sign-on Bonus: {format_amount(offer.sign_on_bonus)} {offer.currency}
- Annual Bonus: {bonus_line}
- Equity: {equity_line}

## Market Context
- Market Position: {analysis['market_position']} ({analysis['percentile_estimate']}th percentile)
- Market Temperature: {benchmark['market_temperature']}
- P25/P50/P75: {format_amount(benchmark['percentile25'])} / {format_amount(benchmark['percentile50'])} / {format_amount(benchmark['percentile75'])}
- Total Comp Calculated: {format_amount(analysis['total_compensation'])} {offer.currency}

## Candidate Priorities
- Primary Focus: {priorities.primary_focus}
- Secondary Focus: {priorities.secondary_focus or 'Not specified'}
- Must Haves: {', '.join(priorities.must_haves) or 'None specified'}
- Deal Breakers: {', '.join(priorities.deal_breakers) or 'None specified'}
- Willing to Walk Away: {'Yes' if priorities.willing_to_walk_away else 'No'}
- Current Salary: {format_amount(priorities.current_salary) if priorities.current_salary else 'Not disclosed'}
- Target Salary: {format_amount(priorities.target_salary) if priorities.target_salary else 'Not specified'}
- Timeline: {priorities.timeline or 'Flexible'}

## Analysis Summary
Strengths: {'; '.join(analysis['strengths'])}
Weaknesses: {'; '.join(analysis['weaknesses'])}
Opportunities: {'; '.join(analysis['opportunities'])}

Return a JSON object with this exact structure:
{{
  "strategy": {{
    "recommended_approach": "aggressive" | "collaborative" | "cautious" | "accept_as_is",
    "approach_rationale": "string",
    "counter_offer_target": number,
    "counter_offer_range": {{"minimum": number, "target": number, "stretch": number}},
    "walk_away_point": number,
    "negotiation_levers": [
      {{
        "category": "base" | "bonus" | "equity" | "signing" | "benefits" | "title" | "start_date" | "other",
        "description": "string",
        "priority": "primary" | "secondary" | "fallback",
        "suggested_ask": "string",
        "likelihood": "low" | "medium" | "high"
      }}
    ],
    "timeline": "string",
    "confidence_level": "low" | "medium" | "high"
  }},
  "scripts": {{
    "email_draft": "Full email template for initial counter-offer",
    "phone_script": ["talking points"],
    "in_person_tips": ["tips"],
    "objection_handling": [{{"objection": "string", "response": "string", "follow_up": "string"}}],
    "closing_statements": ["closing statements"]
  }}
}}

Important: Return ONLY the JSON object, no additional text."""


def _round_thousands(value: float) -> int:
    return _round_half_up(value / 1000) * 1000


def build_mock_strategy(
    offer: OfferDetails, priorities: UserPriorities, benchmark: dict[str, Any], analysis: dict[str, Any]
) -> tuple[dict[str, Any], dict[str, Any]]:
    position = analysis["market_position"]
    temperature = benchmark["market_temperature"]
    if position == "well_above_market":
        approach = "accept_as_is"
    elif temperature == "heating" and priorities.willing_to_walk_away:
        approach = "aggressive"
    elif temperature == "cooling":
        approach = "cautious"
    else:
        approach = "collaborative"

    target = _round_thousands(max(benchmark["percentile50"], offer.base_salary * 1.1))
    minimum = _round_thousands(offer.base_salary * 1.05)
    stretch = _round_thousands(max(benchmark["percentile75"], target * 1.08))
    currency = offer.currency

    strategy = {
        "recommended_approach": approach,
        "approach_rationale": (
            f"{analysis['market_position_description']} {analysis['temperature_advice']}"
        ),
        "counter_offer_target": target,
        "counter_offer_range": {"minimum": minimum, "target": target, "stretch": stretch},
        "walk_away_point": _round_thousands(offer.base_salary),
        "negotiation_levers": [
            {
                "category": "base",
                "description": f"Increase base salary to {format_amount(target)} {currency}",
                "priority": "primary",
                "suggested_ask": f"{format_amount(target)} {currency} base salary",
                "likelihood": "high" if position in ("well_below_market", "below_market") else "medium",
            },
            {
                "category": "signing",
                "description": "Sign-on bonus to bridge any remaining gap",
                "priority": "fallback",
                "suggested_ask": f"{format_amount(_round_thousands(offer.base_salary * 0.1))} {currency} sign-on bonus",
                "likelihood": "medium",
            },
        ],
        "timeline": "Day 1: Send counter-offer email. Day 3-5: Follow up. Day 7-10: Final decision.",
        "confidence_level": "medium",
    }
    scripts = {
        "email_draft": (
            f"Hi [Recruiter Name],\n\nThank you for the offer for the {offer.role_title} position at "
            f"{offer.company_name}. I'm excited about the opportunity. Based on market data for similar roles "
            f"in {offer.location}, I'd like to discuss a base salary of {format_amount(target)} {currency}.\n\n"
            "Would you have time for a call this week?\n\nBest regards,\n[Your Name]"
        ),
        "phone_script": [
            "Thank the recruiter and reiterate your excitement about the role",
            f"Present your counter: a base salary of {format_amount(target)} {currency}",
            "If base is firm, pivot to sign-on bonus or equity",
        ],
        "in_person_tips": [
            "Bring a printed summary of your asks",
            "Pause after making an ask",
        ],
        "objection_handling": [
            {
                "objection": "We don't have budget for a higher base salary",
                "response": "Could we bridge the gap with a sign-on bonus or a six-month review?",
                "follow_up": "What metrics would justify an adjustment at six months?",
            }
        ],
        "closing_statements": [
            f"I'm excited to join {offer.company_name} and ready to move forward once we align on these points."
        ],
    }
    return strategy, scripts


def generate_strategy_with_llm(
    offer: OfferDetails,
    priorities: UserPriorities,
    benchmark: dict[str, Any],
    analysis: dict[str, Any],
    *,
    llm: LLMClient,
) -> tuple[dict[str, Any], dict[str, Any]]:
    result = llm.complete_json(
        system_prompt=STRATEGY_SYSTEM_PROMPT,
        user_prompt=build_strategy_prompt(offer, priorities, benchmark, analysis),
        temperature=STRATEGY_TEMPERATURE,
    )
    strategy = result.get("strategy") if isinstance(result.get("strategy"), dict) else {}
    scripts = result.get("scripts") if isinstance(result.get("scripts"), dict) else {}
    return strategy, scripts


def generate_strategy(
    user_id: str,
    offer: OfferDetails,
    priorities: UserPriorities,
    job_application_id: str | None = None,
    *,
    llm: LLMClient | None = None,
) -> dict[str, Any]:
    """Assemble the full compensation strategy document for one offer."""

    benchmark = fetch_market_data(
        offer.role_title, offer.role_level, offer.location, offer.currency, offer.industry
    )
    analysis = analyze_offer(offer, benchmark, priorities)

    if use_mock_ai():
        strategy, scripts = build_mock_strategy(offer, priorities, benchmark, analysis)
    else:
        if llm is None:
            raise RuntimeError("AI client is not configured")
        strategy, scripts = generate_strategy_with_llm(offer, priorities, benchmark, analysis, llm=llm)

    now = datetime.now(tz=UTC).isoformat()
    logger.info(
        "Generated compensation strategy for user %s (%s, %s percentile).",
        user_id,
        analysis["market_position"],
        analysis["percentile_estimate"],
    )
    return {
        "id": str(uuid.uuid4()),
        "user_id": user_id,
        "job_application_id": job_application_id,
        "created_at": now,
        "updated_at": now,
        "offer_details": offer.model_dump(),
        "user_priorities": priorities.model_dump(),
        "market_benchmark": benchmark,
        "analysis": analysis,
        "strategy": strategy,
        "scripts": scripts,
        "regeneration_count": 0,
        "is_active": True,
    }
