# This file wires compensation strategy generation to the application tracker.
# It exists so the router only validates transport concerns and maps domain errors to status codes.
# Saving the strategy onto a job application is best-effort and never fails the request.

from __future__ import annotations

import logging
from typing import Any

from src.api.error_handlers import APIError
from src.api.services.applications_service import ApplicationsService
from src.common.llm import LLMClient, LLMError
from src.compensation.strategy import generate_strategy, validate_strategy_request

logger = logging.getLogger(__name__)

STRATEGY_COLUMN = "compensation_strategy"


class CompensationService:
    """Generate and look up negotiation strategies."""

    def __init__(self, *, applications: ApplicationsService, llm: LLMClient | None) -> None:
        self.applications = applications
        self.llm = llm

    def generate(self, user_id: str, body: dict[str, Any]) -> dict[str, Any]:
        try:
            offer, priorities, job_application_id = validate_strategy_request(body)
        except ValueError as exc:
            raise APIError(status_code=400, error_code="INVALID_REQUEST", message=str(exc)) from exc

        try:
            strategy = generate_strategy(user_id, offer, priorities, job_application_id, llm=self.llm)
        except (LLMError, RuntimeError) as exc:
            logger.exception("Compensation strategy generation failed for user %s.", user_id)
            raise APIError(
                status_code=500,
                error_code="STRATEGY_GENERATION_FAILED",
                message="Failed to generate compensation strategy",
                details=str(exc),
            ) from exc

        if job_application_id:
            try:
                self.applications.store_document(user_id, job_application_id, STRATEGY_COLUMN, strategy)
            except Exception:
                logger.exception("Failed to store compensation strategy on application %s.", job_application_id)
        return strategy

    def get_for_application(self, user_id: str, application_id: str | None) -> Any:
        if not application_id:
            raise APIError(status_code=400, error_code="INVALID_REQUEST", message="application_id is required")
        found, strategy = self.applications.read_document(user_id, application_id, STRATEGY_COLUMN)
        if not found:
            raise APIError(status_code=404, error_code="NOT_FOUND", message="Application not found")
        return strategy
