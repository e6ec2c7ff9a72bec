# This file defines the interview preparation endpoints.
# It exists so a candidate can generate a persona-driven question plan and reload it from an application.
# Plan generation is metered on the `interviews` resource with the split pattern.

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from src.api.api_config import ApiConfig
from src.api.auth import CurrentUserDep
from src.api.dependencies import get_config, get_interview_service, get_usage_guard
from src.api.request_body import JsonBodyDep, json_object
from src.api.response_envelope import object_envelope
from src.api.schemas.common import ObjectResponseV1
from src.api.services.interview_service import InterviewService
from src.api.usage_limits import UsageGuard

router = APIRouter(prefix="/interview", tags=["interview"])
InterviewServiceDep = Annotated[InterviewService, Depends(get_interview_service)]
UsageGuardDep = Annotated[UsageGuard, Depends(get_usage_guard)]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]


@router.post("/generate-plan", response_model=ObjectResponseV1)
def generate_plan(
    request: Request,
    user: CurrentUserDep,
    service: InterviewServiceDep,
    usage: UsageGuardDep,
    config: ConfigDep,
    body: JsonBodyDep,
) -> dict[str, object]:
    usage.enforce(user.id, "interviews")
    plan = service.generate(user.id, json_object(body))
    usage.record(user.id, "interviews")
    return object_envelope(config, request.state.request_id, plan)


@router.get("/generate-plan", response_model=ObjectResponseV1)
def get_plan(
    request: Request,
    user: CurrentUserDep,
    service: InterviewServiceDep,
    config: ConfigDep,
    application_id: str | None = Query(default=None),
) -> dict[str, object]:
    plan = service.get_plan(user.id, application_id)
    return object_envelope(config, request.state.request_id, plan)
