# This file defines the consent audit endpoints.
# It exists so every consent grant or revocation is recorded with the caller's IP and user agent.

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.api.api_config import ApiConfig
from src.api.auth import CurrentUserDep
from src.api.dependencies import get_config, get_consent_service
from src.api.request_body import JsonBodyDep, json_object
from src.api.response_envelope import object_envelope
from src.api.schemas.common import ObjectResponseV1
from src.api.services.consent_service import ConsentService, client_ip

router = APIRouter(prefix="/consent", tags=["consent"])
ConsentServiceDep = Annotated[ConsentService, Depends(get_consent_service)]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]


@router.post("/log", response_model=ObjectResponseV1)
def log_consent(
    request: Request,
    user: CurrentUserDep,
    service: ConsentServiceDep,
    config: ConfigDep,
    body: JsonBodyDep,
) -> dict[str, object]:
    result = service.log_consent(
        user.id,
        json_object(body),
        ip_address=client_ip(request.headers),
        user_agent=request.headers.get("user-agent"),
    )
    return object_envelope(config, request.state.request_id, result, message=result["message"])


@router.get("/log", response_model=ObjectResponseV1)
def consent_history(
    request: Request,
    user: CurrentUserDep,
    service: ConsentServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    return object_envelope(config, request.state.request_id, {"consents": service.history(user.id)})
