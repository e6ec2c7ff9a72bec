# This file implements the indicator endpoints: scoring, comparison, catalogue and weights.
# It exists so request validation and the optional score history write sit outside the router.
# Anonymous callers can score text; only signed-in callers get a row in `indicator_scores`.

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from typing import Any

from src.api.api_config import ApiConfig
from src.api.db_access import DatabaseClient
from src.api.error_handlers import APIError
from src.common.llm import LLMClient
from src.indicators.catalog import is_valid_indicator, list_indicators
from src.indicators.scorer import SCORING_TYPES, compare_scores, generate_feedback, score_text
from src.indicators.weights import (
    format_weights_for_display,
    get_industry_weights,
    get_supported_industries,
    get_top_indicators,
)

logger = logging.getLogger(__name__)

MIN_SCORE_TEXT_LENGTH = 50
MAX_SCORE_TEXT_LENGTH = 50_000
TEXT_PREVIEW_LENGTH = 500


def _bad_request(message: str) -> APIError:
    return APIError(status_code=400, error_code="INVALID_REQUEST", message=message)


def validate_score_request(body: dict[str, Any]) -> tuple[str, dict[str, Any], list[int] | None]:
    text = body.get("text")
    if not text or not isinstance(text, str):
        raise _bad_request("Text is required")
    if len(text) < MIN_SCORE_TEXT_LENGTH:
        raise _bad_request("Text must be at least 50 characters")
    if len(text) > MAX_SCORE_TEXT_LENGTH:
        raise _bad_request("Text must be less than 50,000 characters")

    scoring_type = body.get("type") or "general"
    if scoring_type not in SCORING_TYPES:
        raise _bad_request(f"type must be one of: {', '.join(SCORING_TYPES)}")

    indicator_ids = body.get("indicator_ids")
    if indicator_ids is not None:
        if not isinstance(indicator_ids, list) or not all(
            isinstance(item, int) and is_valid_indicator(item) for item in indicator_ids
        ):
            raise _bad_request("indicator_ids must be a list of indicator numbers from 1 to 10")

    context: dict[str, Any] = {"type": scoring_type}
    if body.get("industry"):
        context["industry"] = body["industry"]
    if body.get("role"):
        context["role"] = body["role"]
    return text, context, indicator_ids or None


class IndicatorsService:
    def __init__(self, *, config: ApiConfig, db: DatabaseClient, llm: LLMClient | None) -> None:
        self.config = config
        self.db = db
        self.llm = llm
        self.scores_table = self.config.validate_table_name("indicator_scores")

    def score(self, user_id: str | None, body: dict[str, Any]) -> dict[str, Any]:
        text, context, indicator_ids = validate_score_request(body)
        result = score_text(text, context, indicator_ids, llm=self.llm)
        if not result["success"]:
            raise APIError(
                status_code=500,
                error_code="SCORING_FAILED",
                message=result.get("error") or "Scoring failed",
            )

        scores = result["scores"]
        if user_id is not None:
            self._save_scores(user_id, text, context, scores)

        return {
            "scores": scores,
            "feedback": generate_feedback(scores),
            "tokens_used": result.get("tokens_used"),
            "model": result.get("model"),
        }

    def _save_scores(self, user_id: str, text: str, context: dict[str, Any], scores: dict[str, Any]) -> None:
        try:
            self.db.execute(
                f"""
                INSERT INTO {self.scores_table}
                    (user_id, scores, overall_score, strengths, gaps, context_type, industry, text_preview, created_at)
                VALUES
                    (:user_id, :scores, :overall_score, :strengths, :gaps, :context_type, :industry, :text_preview, NOW())
                """,
                {
                    "user_id": user_id,
                    "scores": json.dumps(scores["scores"], default=str),
                    "overall_score": scores["overall"],
                    "strengths": json.dumps(scores.get("strengths", [])),
                    "gaps": json.dumps(scores.get("gaps", [])),
                    "context_type": context["type"],
                    "industry": context.get("industry"),
                    "text_preview": text[:TEXT_PREVIEW_LENGTH],
                },
            )
        except Exception:
            logger.exception("Failed to save indicator scores for user %s.", user_id)

    def compare(self, body: dict[str, Any]) -> dict[str, Any]:
        before = body.get("before_scores")
        after = body.get("after_scores")
        if not before or not after:
            raise _bad_request("Both before_scores and after_scores are required")
        if not isinstance(before, dict) or not isinstance(after, dict):
            raise _bad_request("Invalid score structure - scores object required")
        if not isinstance(before.get("scores"), dict) or not isinstance(after.get("scores"), dict):
            raise _bad_request("Invalid score structure - scores object required")
        return compare_scores(before, after)

    def catalogue(self) -> list[dict[str, Any]]:
        return list_indicators()

    def weights(self, industry: str) -> dict[str, Any]:
        if industry in {"list", "all"}:
            return {"industries": get_supported_industries()}

        profile = get_industry_weights(industry)
        return {
            **asdict(profile),
            "formatted_weights": format_weights_for_display(industry),
            "top_indicators": get_top_indicators(industry, 3),
            "is_generic": profile.industry == "generic",
        }
