# This file defines liveness, readiness, and version endpoints for API operations.
# It exists so the container platform can tell a live process from one that can actually serve quota checks.
# The readiness check confirms database connectivity and that the subscription tables exist.

from __future__ import annotations

import os
import subprocess
from datetime import UTC, datetime
from functools import lru_cache
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request

from src.api.api_config import ApiConfig
from src.api.db_access import DatabaseClient
from src.api.dependencies import get_config, get_database_client
from src.api.schema_versions import build_version_fields
from src.api.schemas.health_schemas import HealthResponse, ReadinessResponse, VersionResponse

router = APIRouter(tags=["health"])
ConfigDep = Annotated[ApiConfig, Depends(get_config)]
DBDep = Annotated[DatabaseClient, Depends(get_database_client)]


def _probe_header(request: Request, config: ApiConfig) -> dict[str, Any]:
    header = build_version_fields(api_version_path=config.api_version_path, schema_version=config.schema_version)
    header["request_id"] = request.state.request_id
    header["timestamp"] = datetime.now(tz=UTC)
    return header


@lru_cache(maxsize=1)
def _git_commit() -> str | None:
    # Deploy images ship without .git, so the build pipeline passes the commit in.
    baked = os.getenv("GIT_COMMIT")
    if baked:
        return baked
    try:
        completed = subprocess.run(["git", "rev-parse", "--short", "HEAD"], check=True, capture_output=True, text=True)
    except (OSError, subprocess.CalledProcessError):
        return None
    return completed.stdout.strip() or None


@router.get("/health", response_model=HealthResponse)
def health(request: Request, config: ConfigDep) -> dict[str, object]:
    return {
        **_probe_header(request, config),
        "status": "ok",
        "environment": config.environment,
        "service_name": config.api_name,
    }


@router.get("/ready", response_model=ReadinessResponse)
def ready(request: Request, config: ConfigDep, db: DBDep) -> dict[str, object]:
    db_connected = db.can_connect()
    subscriptions_ready = db_connected and db.table_exists(config.validate_table_name("user_subscriptions"))
    return {
        **_probe_header(request, config),
        "db_connected": db_connected,
        "subscriptions_source_ready": subscriptions_ready,
        "ready": db_connected and subscriptions_ready,
        "database": "reachable" if db_connected else "unreachable",
    }


@router.get("/version", response_model=VersionResponse)
def version(request: Request, config: ConfigDep) -> dict[str, object]:
    return {
        **_probe_header(request, config),
        "api_version_path": config.api_version_path,
        "app_version": config.app_version,
        "git_commit": _git_commit(),
        "project": config.api_name,
        "version": config.app_version,
    }
