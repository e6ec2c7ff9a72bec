# This file defines the ten-indicator scoring endpoints.
# It exists so any text (a CV, interview answer, job description) can be scored and compared over time.
# Scoring is open to anonymous callers; signed-in callers also get the result saved to their history.

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.api.api_config import ApiConfig
from src.api.auth import OptionalUserDep
from src.api.dependencies import get_config, get_indicators_service
from src.api.request_body import JsonBodyDep, json_object
from src.api.response_envelope import object_envelope
from src.api.schemas.common import ObjectResponseV1
from src.api.services.indicators_service import IndicatorsService

router = APIRouter(prefix="/indicators", tags=["indicators"])
IndicatorsServiceDep = Annotated[IndicatorsService, Depends(get_indicators_service)]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]


@router.get("", response_model=ObjectResponseV1)
def list_indicators(request: Request, service: IndicatorsServiceDep, config: ConfigDep) -> dict[str, object]:
    return object_envelope(
        config, request.state.request_id, {"indicators": service.catalogue(), "source": "static"}
    )


@router.post("/score", response_model=ObjectResponseV1)
def score(
    request: Request,
    user: OptionalUserDep,
    service: IndicatorsServiceDep,
    config: ConfigDep,
    body: JsonBodyDep,
) -> dict[str, object]:
    result = service.score(user.id if user is not None else None, json_object(body))
    return object_envelope(config, request.state.request_id, result)


@router.post("/compare", response_model=ObjectResponseV1)
def compare(
    request: Request,
    service: IndicatorsServiceDep,
    config: ConfigDep,
    body: JsonBodyDep,
) -> dict[str, object]:
    comparison = service.compare(json_object(body))
    return object_envelope(config, request.state.request_id, comparison)


@router.get("/weights/{industry}", response_model=ObjectResponseV1)
def weights(
    request: Request,
    industry: str,
    service: IndicatorsServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    return object_envelope(config, request.state.request_id, service.weights(industry))
