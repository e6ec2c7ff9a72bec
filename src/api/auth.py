# This file provides the FastAPI dependencies that identify the caller.
# It exists so every protected route gets the same `CurrentUser` or the same 401 body.
# Tokens arrive as `Authorization: Bearer <token>` and are checked by `AuthService`.

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request

from src.api.dependencies import get_auth_service
from src.api.error_handlers import APIError
from src.api.services.auth_service import AuthService
from src.auth.permissions import UserPermissions, build_permissions


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: str | None = None
    full_name: str | None = None
    user_type: str = "candidate"
    is_admin: bool = False

    @property
    def permissions(self) -> UserPermissions:
        return build_permissions(self.id, self.user_type, self.is_admin)


def bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_optional_user(
    request: Request,
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> CurrentUser | None:
    token = bearer_token(request)
    if token is None:
        return None
    row = service.resolve_token(token)
    if row is None:
        return None
    permissions = build_permissions(str(row["id"]), row.get("user_type"), row.get("is_admin"))
    return CurrentUser(
        id=permissions.user_id,
        email=row.get("email"),
        full_name=row.get("full_name"),
        user_type=permissions.user_type,
        is_admin=permissions.is_admin,
    )


def get_current_user(
    user: Annotated[CurrentUser | None, Depends(get_optional_user)],
) -> CurrentUser:
    if user is None:
        raise APIError(status_code=401, error_code="UNAUTHORIZED", message="Authentication required")
    return user


CurrentUserDep = Annotated[CurrentUser, Depends(get_current_user)]
OptionalUserDep = Annotated[CurrentUser | None, Depends(get_optional_user)]
