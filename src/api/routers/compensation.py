# This file defines the compensation negotiation endpoints.
# It exists so a candidate can turn an offer into a strategy and read it back from an application.
# Generation is metered on the `compensation` resource with the split pattern.

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from src.api.api_config import ApiConfig
from src.api.auth import CurrentUserDep
from src.api.dependencies import get_compensation_service, get_config, get_usage_guard
from src.api.request_body import JsonBodyDep, json_object
from src.api.response_envelope import object_envelope
from src.api.schemas.common import ObjectResponseV1
from src.api.services.compensation_service import CompensationService
from src.api.usage_limits import UsageGuard

router = APIRouter(prefix="/compensation", tags=["compensation"])
CompensationServiceDep = Annotated[CompensationService, Depends(get_compensation_service)]
UsageGuardDep = Annotated[UsageGuard, Depends(get_usage_guard)]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]


@router.post("/generate-strategy", response_model=ObjectResponseV1)
def generate_strategy(
    request: Request,
    user: CurrentUserDep,
    service: CompensationServiceDep,
    usage: UsageGuardDep,
    config: ConfigDep,
    body: JsonBodyDep,
) -> dict[str, object]:
    usage.enforce(user.id, "compensation")
    strategy = service.generate(user.id, json_object(body))
    usage.record(user.id, "compensation")
    return object_envelope(config, request.state.request_id, strategy)


@router.get("/generate-strategy", response_model=ObjectResponseV1)
def get_strategy(
    request: Request,
    user: CurrentUserDep,
    service: CompensationServiceDep,
    config: ConfigDep,
    application_id: str | None = Query(default=None),
) -> dict[str, object]:
    strategy = service.get_for_application(user.id, application_id)
    return object_envelope(config, request.state.request_id, strategy)
