# This file defines the data-protection endpoints: data export and scheduled account deletion.
# It exists so users can exercise access and erasure rights without contacting support.
# The export is returned as a downloadable JSON attachment rather than an API envelope.

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from src.api.api_config import ApiConfig
from src.api.auth import CurrentUserDep
from src.api.dependencies import get_config, get_gdpr_service
from src.api.request_body import JsonBodyDep, json_object
from src.api.response_envelope import object_envelope
from src.api.schemas.common import ObjectResponseV1
from src.api.services.gdpr_service import GdprService, export_filename

router = APIRouter(prefix="/gdpr", tags=["gdpr"])
GdprServiceDep = Annotated[GdprService, Depends(get_gdpr_service)]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]


@router.get("/export-data", response_class=Response)
def export_data(user: CurrentUserDep, service: GdprServiceDep) -> Response:
    now = datetime.now(UTC)
    export = service.export_user_data(user.id, user.email, now=now)
    return Response(
        content=json.dumps(export, indent=2, default=str),
        media_type="application/json",
        headers={
            "Content-Disposition": f'attachment; filename="{export_filename(user.id, now)}"',
            "X-Content-Type-Options": "nosniff",
        },
    )


@router.post("/delete-account", response_model=ObjectResponseV1)
def request_account_deletion(
    request: Request,
    user: CurrentUserDep,
    service: GdprServiceDep,
    config: ConfigDep,
    body: JsonBodyDep,
) -> dict[str, object]:
    result = service.request_deletion(user.id, json_object(body))
    return object_envelope(config, request.state.request_id, result, message=result["message"])


@router.delete("/delete-account", response_model=ObjectResponseV1)
def cancel_account_deletion(
    request: Request,
    user: CurrentUserDep,
    service: GdprServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    result = service.cancel_deletion(user.id)
    return object_envelope(config, request.state.request_id, result, message=result["message"])


@router.get("/delete-account", response_model=ObjectResponseV1)
def account_deletion_status(
    request: Request,
    user: CurrentUserDep,
    service: GdprServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    return object_envelope(config, request.state.request_id, service.deletion_status(user.id))
