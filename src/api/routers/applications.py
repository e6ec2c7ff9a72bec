# This file defines the job application tracker endpoints under the versioned API path.
# It exists so candidates can create, list, edit, and remove the applications they are working on.
# Creating an application is metered with the split pattern: check first, count only after the insert.
# Listing uses the shared pagination and allowlisted sorting helpers.

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from src.api.api_config import ApiConfig
from src.api.auth import CurrentUserDep
from src.api.dependencies import get_applications_service, get_config, get_usage_guard
from src.api.error_handlers import APIError
from src.api.pagination import compute_total_pages, normalize_pagination, parse_sort
from src.api.request_body import JsonBodyDep, json_object
from src.api.response_envelope import build_list_envelope, object_envelope
from src.api.schemas.common import ListResponseV1, ObjectResponseV1, PaginationMetadata
from src.api.services.applications_service import (
    APPLICATION_SORT_FIELD_MAP,
    ApplicationsService,
    normalize_application_updates,
    validate_new_application,
)
from src.api.usage_limits import UsageGuard

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/applications", tags=["applications"])
ApplicationsServiceDep = Annotated[ApplicationsService, Depends(get_applications_service)]
UsageGuardDep = Annotated[UsageGuard, Depends(get_usage_guard)]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]


def _not_found() -> APIError:
    return APIError(status_code=404, error_code="NOT_FOUND", message="Application not found")


@router.post("", status_code=201, response_model=ObjectResponseV1)
def create_application(
    request: Request,
    user: CurrentUserDep,
    service: ApplicationsServiceDep,
    usage: UsageGuardDep,
    config: ConfigDep,
    body: JsonBodyDep,
) -> dict[str, object]:
    usage.enforce(user.id, "applications")

    try:
        values = validate_new_application(json_object(body))
    except ValueError as exc:
        raise APIError(status_code=400, error_code="INVALID_REQUEST", message=str(exc)) from exc

    try:
        created = service.create_application(user.id, values)
    except Exception as exc:
        logger.exception("Failed to insert application for user %s.", user.id)
        raise APIError(
            status_code=500,
            error_code="CREATE_FAILED",
            message="Failed to create application",
        ) from exc
    if created is None:
        raise APIError(status_code=500, error_code="CREATE_FAILED", message="Failed to create application")

    usage.record(user.id, "applications")
    return object_envelope(config, request.state.request_id, created)


@router.get("", response_model=ListResponseV1, response_model_exclude_none=True)
def list_applications(
    request: Request,
    user: CurrentUserDep,
    service: ApplicationsServiceDep,
    config: ConfigDep,
    status: str | None = Query(default=None),
    priority: str | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1),
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1),
    sort: str | None = Query(default=None),
) -> dict[str, object]:
    try:
        pagination = normalize_pagination(
            page=page,
            page_size=page_size,
            limit=limit,
            default_page_size=config.default_page_size,
            max_page_size=config.max_page_size,
        )
        sort_spec = parse_sort(
            requested_sort=sort,
            default_sort=config.default_sort_order,
            allowed_fields=set(APPLICATION_SORT_FIELD_MAP),
        )
    except ValueError as exc:
        raise APIError(
            status_code=400,
            error_code="INVALID_QUERY_PARAM",
            message=str(exc),
        ) from exc

    service_result = service.list_applications(
        user_id=user.id,
        status=status,
        priority=priority,
        page=pagination.page,
        page_size=pagination.page_size,
        sort=sort_spec,
    )
    total_count = int(service_result["total_count"])
    pagination_meta = PaginationMetadata(
        page=pagination.page,
        page_size=pagination.page_size,
        total_count=total_count,
        total_pages=compute_total_pages(total_count=total_count, page_size=pagination.page_size),
        sort=sort_spec.as_text,
    )
    return build_list_envelope(
        config,
        request.state.request_id,
        list(service_result["rows"]),
        pagination=pagination_meta.model_dump(),
    )


@router.get("/{application_id}", response_model=ObjectResponseV1)
def get_application(
    request: Request,
    application_id: str,
    user: CurrentUserDep,
    service: ApplicationsServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    row = service.get_application(user.id, application_id)
    if row is None:
        raise _not_found()
    return object_envelope(config, request.state.request_id, row)


@router.patch("/{application_id}", response_model=ObjectResponseV1)
def update_application(
    request: Request,
    application_id: str,
    user: CurrentUserDep,
    service: ApplicationsServiceDep,
    config: ConfigDep,
    body: JsonBodyDep,
) -> dict[str, object]:
    try:
        updates = normalize_application_updates(json_object(body))
    except ValueError as exc:
        raise APIError(status_code=400, error_code="INVALID_REQUEST", message=str(exc)) from exc

    row = service.update_application(user.id, application_id, updates)
    if row is None:
        raise _not_found()
    return object_envelope(config, request.state.request_id, row)


@router.delete("/{application_id}", response_model=ObjectResponseV1)
def delete_application(
    request: Request,
    application_id: str,
    user: CurrentUserDep,
    service: ApplicationsServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    if not service.delete_application(user.id, application_id):
        raise _not_found()
    return object_envelope(
        config, request.state.request_id, {"id": application_id}, message="Application deleted"
    )
