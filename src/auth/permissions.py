# This module decides which application routes an account may open.
# It exists so the API and the web shell share one rule set for candidate, recruiter and admin areas.
# User types are mutually exclusive; the admin flag is additive on top of either type.
# Routes outside the guarded prefixes are open to any signed-in user.

from __future__ import annotations

from dataclasses import dataclass

USER_TYPES: tuple[str, ...] = ("candidate", "recruiter")

CANDIDATE_ROUTES: tuple[str, ...] = (
    "/companion",
    "/applications",
    "/cv",
    "/cv-tailor",
    "/interview",
    "/compensation",
    "/contract",
)
RECRUITER_ROUTES: tuple[str, ...] = ("/jobs", "/pipeline", "/talent-pool", "/analytics", "/recruiter")
ADMIN_ROUTES: tuple[str, ...] = ("/admin",)
PUBLIC_ROUTES: tuple[str, ...] = (
    "/",
    "/login",
    "/signup",
    "/privacy",
    "/terms",
    "/unauthorized",
    "/pricing",
)
PUBLIC_PREFIXES: tuple[str, ...] = ("/auth/",)


@dataclass(frozen=True)
class UserPermissions:
    user_id: str
    user_type: str
    is_admin: bool

    @property
    def can_access_candidate_features(self) -> bool:
        return self.user_type == "candidate"

    @property
    def can_access_recruiter_features(self) -> bool:
        return self.user_type == "recruiter"

    @property
    def can_access_admin_panel(self) -> bool:
        return self.is_admin


def build_permissions(user_id: str, user_type: str | None, is_admin: bool | None) -> UserPermissions:
    resolved = user_type if user_type in USER_TYPES else "candidate"
    return UserPermissions(user_id=user_id, user_type=resolved, is_admin=bool(is_admin))


def _matches(path: str, routes: tuple[str, ...]) -> bool:
    return any(path.startswith(route) for route in routes)


def can_access_route(path: str, permissions: UserPermissions) -> bool:
    if _matches(path, CANDIDATE_ROUTES):
        return permissions.can_access_candidate_features
    if _matches(path, RECRUITER_ROUTES):
        return permissions.can_access_recruiter_features
    if _matches(path, ADMIN_ROUTES):
        return permissions.can_access_admin_panel
    return True


def get_unauthorized_reason(path: str, permissions: UserPermissions | None) -> str | None:
    if permissions is None:
        return "not_authenticated"
    if _matches(path, CANDIDATE_ROUTES) and not permissions.can_access_candidate_features:
        return "candidate_only"
    if _matches(path, RECRUITER_ROUTES) and not permissions.can_access_recruiter_features:
        return "recruiter_only"
    if _matches(path, ADMIN_ROUTES) and not permissions.can_access_admin_panel:
        return "admin_only"
    return None


def is_public_route(path: str) -> bool:
    return path in PUBLIC_ROUTES or _matches(path, PUBLIC_PREFIXES)


def get_home_route_for_user_type(user_type: str) -> str:
    if user_type == "candidate":
        return "/companion"
    if user_type == "recruiter":
        return "/jobs"
    return "/"


def require_permission(
    permissions: UserPermissions | None,
    required_user_type: str | None = None,
    require_admin: bool = False,
) -> UserPermissions:
    """Return the permissions unchanged or raise `PermissionError` naming the missing grant."""

    if permissions is None:
        raise PermissionError("Unauthorized: Not authenticated")
    if required_user_type and permissions.user_type != required_user_type:
        raise PermissionError(f"Unauthorized: Requires {required_user_type} account")
    if require_admin and not permissions.is_admin:
        raise PermissionError("Unauthorized: Requires admin privileges")
    return permissions
