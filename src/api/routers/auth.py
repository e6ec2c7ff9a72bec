# This file defines identity endpoints used by the web client after sign-in.
# It exists so the client can ask who the caller is and whether a page is open to them.

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from src.api.api_config import ApiConfig
from src.api.auth import CurrentUserDep, OptionalUserDep
from src.api.dependencies import get_config
from src.api.response_envelope import object_envelope
from src.api.schemas.common import ObjectResponseV1
from src.auth.permissions import (
    can_access_route,
    get_home_route_for_user_type,
    get_unauthorized_reason,
    is_public_route,
)

router = APIRouter(prefix="/auth", tags=["auth"])
ConfigDep = Annotated[ApiConfig, Depends(get_config)]


@router.get("/me", response_model=ObjectResponseV1)
def me(request: Request, user: CurrentUserDep, config: ConfigDep) -> dict[str, object]:
    permissions = user.permissions
    return object_envelope(
        config,
        request.state.request_id,
        {
            "id": user.id,
            "email": user.email,
            "full_name": user.full_name,
            "user_type": user.user_type,
            "is_admin": user.is_admin,
            "home_route": get_home_route_for_user_type(user.user_type),
            "can_access_candidate_features": permissions.can_access_candidate_features,
            "can_access_recruiter_features": permissions.can_access_recruiter_features,
            "can_access_admin_panel": permissions.can_access_admin_panel,
        },
    )


@router.get("/access", response_model=ObjectResponseV1)
def access(
    request: Request,
    user: OptionalUserDep,
    config: ConfigDep,
    route: str = Query(min_length=1),
) -> dict[str, object]:
    if user is None:
        allowed = is_public_route(route)
        reason = None if allowed else get_unauthorized_reason(route, None)
        home_route = "/login"
    else:
        allowed = can_access_route(route, user.permissions)
        reason = None if allowed else get_unauthorized_reason(route, user.permissions)
        home_route = get_home_route_for_user_type(user.user_type)
    return object_envelope(
        config,
        request.state.request_id,
        {
            "route": route,
            "allowed": allowed,
            "reason": reason,
            "home_route": home_route,
        },
    )
