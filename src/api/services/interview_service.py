# This file connects interview plan generation to the application tracker.
# It exists so plan validation errors map to 400 bodies and the stored plan can be read back later.

from __future__ import annotations

import logging
from typing import Any

from src.api.error_handlers import APIError
from src.api.services.applications_service import ApplicationsService
from src.common.llm import LLMClient, LLMError
from src.interview.planner import InvalidPlanRequest, generate_interview_plan, validate_plan_request

logger = logging.getLogger(__name__)

PLAN_COLUMN = "interview_prep_notes"


class InterviewService:
    def __init__(self, *, applications: ApplicationsService, llm: LLMClient | None) -> None:
        self.applications = applications
        self.llm = llm

    def validate(self, body: dict[str, Any]) -> None:
        try:
            validate_plan_request(body)
        except InvalidPlanRequest as exc:
            raise APIError(
                status_code=400,
                error_code="INVALID_REQUEST",
                message=exc.message,
                details=exc.details,
            ) from exc

    def generate(self, user_id: str, body: dict[str, Any]) -> dict[str, Any]:
        self.validate(body)
        try:
            plan = generate_interview_plan(body, user_id, llm=self.llm)
        except (LLMError, RuntimeError) as exc:
            logger.exception("Interview plan generation failed for user %s.", user_id)
            raise APIError(
                status_code=500,
                error_code="PLAN_GENERATION_FAILED",
                message="Failed to generate interview plan",
                details=str(exc),
            ) from exc

        application_id = body.get("application_id")
        if application_id:
            try:
                self.applications.store_document(user_id, application_id, PLAN_COLUMN, plan)
            except Exception:
                logger.exception("Error storing interview plan on application %s.", application_id)
        return plan

    def get_plan(self, user_id: str, application_id: str | None) -> Any:
        if not application_id:
            raise APIError(
                status_code=400,
                error_code="INVALID_REQUEST",
                message="Missing application_id parameter",
            )
        found, plan = self.applications.read_document(user_id, application_id, PLAN_COLUMN)
        if not found:
            raise APIError(status_code=404, error_code="NOT_FOUND", message="Application not found")
        return plan
