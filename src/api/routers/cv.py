# This file defines the CV tailoring endpoints.
# It exists so a candidate can tailor a base CV to a job description and revisit past sessions.
# Tailoring is metered on the `cvs` resource; usage is counted only after the pipeline succeeds.

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from src.api.api_config import ApiConfig
from src.api.auth import CurrentUserDep
from src.api.dependencies import get_config, get_cv_service, get_usage_guard
from src.api.request_body import JsonBodyDep, json_object
from src.api.response_envelope import object_envelope
from src.api.schemas.common import ObjectResponseV1
from src.api.services.cv_service import CVService
from src.api.usage_limits import UsageGuard

router = APIRouter(prefix="/cv", tags=["cv"])
CVServiceDep = Annotated[CVService, Depends(get_cv_service)]
UsageGuardDep = Annotated[UsageGuard, Depends(get_usage_guard)]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]


@router.post("/tailor", response_model=ObjectResponseV1)
def tailor_cv(
    request: Request,
    user: CurrentUserDep,
    service: CVServiceDep,
    usage: UsageGuardDep,
    config: ConfigDep,
    body: JsonBodyDep,
) -> dict[str, object]:
    usage.enforce(user.id, "cvs")
    result = service.tailor(user.id, json_object(body))
    usage.record(user.id, "cvs")
    return object_envelope(config, request.state.request_id, result)


@router.get("/tailor", response_model=ObjectResponseV1)
def get_tailoring_sessions(
    request: Request,
    user: CurrentUserDep,
    service: CVServiceDep,
    config: ConfigDep,
    session_id: str | None = Query(default=None),
) -> dict[str, object]:
    if session_id:
        data: object = service.get_session(user.id, session_id)
    else:
        data = service.list_sessions(user.id)
    return object_envelope(config, request.state.request_id, data)
