# This file builds the Signatura FastAPI application and registers every router.
# It exists so startup behavior, middleware, and error handling are configured in one place.
# The app adds request IDs, timing headers, Prometheus metrics, and optional request logging.
# Health routes stay unprefixed; everything else lives under the versioned API path.

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from starlette.middleware.base import RequestResponseEndpoint

from src.api.api_config import get_api_config
from src.api.dependencies import get_database_client
from src.api.error_handlers import register_error_handlers
from src.api.routers.applications import router as applications_router
from src.api.routers.auth import router as auth_router
from src.api.routers.compensation import router as compensation_router
from src.api.routers.consent import router as consent_router
from src.api.routers.contract import router as contract_router
from src.api.routers.cron import router as cron_router
from src.api.routers.cv import router as cv_router
from src.api.routers.gdpr import router as gdpr_router
from src.api.routers.health import router as health_router
from src.api.routers.indicators import router as indicators_router
from src.api.routers.interview import router as interview_router
from src.api.routers.subscription import router as subscription_router
from src.api.routers.webhooks import router as webhooks_router
from src.api.schemas.common import ErrorResponse
from src.common.logging import configure_logging

logger = logging.getLogger(__name__)

API_HTTP_REQUESTS_TOTAL = Counter(
    "signatura_http_requests_total",
    "Total number of HTTP requests processed by the API.",
    ["method", "path", "status_code"],
)
API_HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "signatura_http_request_duration_seconds",
    "API request duration in seconds.",
    ["method", "path"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60),
)
API_HTTP_INFLIGHT_REQUESTS = Gauge(
    "signatura_http_inflight_requests",
    "Number of API requests currently being processed.",
    ["method"],
)

ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    status: {"model": ErrorResponse} for status in (400, 401, 402, 403, 404, 409, 422, 500)
}

OPENAPI_TAGS = [
    {"name": "health", "description": "Service liveness, readiness, and version metadata."},
    {"name": "auth", "description": "Current user and route permissions."},
    {"name": "applications", "description": "Job application tracker."},
    {"name": "subscription", "description": "Plans, quotas, usage trends, and checkout."},
    {"name": "webhooks", "description": "Payment gateway notifications."},
    {"name": "cron", "description": "Scheduled subscription maintenance."},
    {"name": "compensation", "description": "Offer analysis and negotiation strategy."},
    {"name": "contract", "description": "Employment contract review."},
    {"name": "indicators", "description": "Ten-indicator scoring, comparison, and industry weights."},
    {"name": "cv", "description": "CV tailoring sessions."},
    {"name": "interview", "description": "Interview preparation plans."},
    {"name": "gdpr", "description": "Data export and account deletion."},
    {"name": "consent", "description": "Consent audit log."},
]


def _route_label(request: Request) -> str:
    # Route templates keep application ids out of metric labels.
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


def _write_request_log(request: Request, status_code: int, duration_ms: float) -> None:
    config = get_api_config()
    try:
        get_database_client().log_request(
            table_name=config.request_log_table_name,
            request_id=request.state.request_id,
            path=request.url.path,
            method=request.method,
            status_code=status_code,
            duration_ms=duration_ms,
        )
    except Exception:
        logger.warning("Could not write request log row for %s.", request.state.request_id, exc_info=True)


def create_app() -> FastAPI:
    """Create configured FastAPI application instance."""

    configure_logging()
    config = get_api_config()

    app = FastAPI(
        title=config.api_name,
        description=(
            "Career coaching API: application tracking, AI CV tailoring, interview and negotiation "
            "coaching, contract review, and the subscription quotas that meter them."
        ),
        version=config.app_version,
        openapi_tags=OPENAPI_TAGS,
    )

    if config.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def request_context_middleware(
        request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        started = time.perf_counter()
        status_code = 500
        API_HTTP_INFLIGHT_REQUESTS.labels(method=request.method).inc()
        try:
            response: Response = await call_next(request)
            status_code = response.status_code
            duration_ms = (time.perf_counter() - started) * 1000.0
            response.headers["x-request-id"] = request_id
            response.headers["x-response-time-ms"] = f"{duration_ms:.2f}"
            if config.enable_request_logging:
                _write_request_log(request, status_code, duration_ms)
            return response
        finally:
            path_label = _route_label(request)
            API_HTTP_REQUESTS_TOTAL.labels(
                method=request.method, path=path_label, status_code=str(status_code)
            ).inc()
            API_HTTP_REQUEST_DURATION_SECONDS.labels(method=request.method, path=path_label).observe(
                time.perf_counter() - started
            )
            API_HTTP_INFLIGHT_REQUESTS.labels(method=request.method).dec()

    @app.get("/metrics", include_in_schema=False)
    def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.on_event("startup")
    def startup_checks() -> None:
        try:
            app.state.db_connected_at_startup = get_database_client().can_connect()
        except Exception:
            logger.exception("Database check failed during startup.")
            app.state.db_connected_at_startup = False

    register_error_handlers(app)

    app.include_router(health_router)
    for router in (
        auth_router,
        applications_router,
        subscription_router,
        webhooks_router,
        cron_router,
        compensation_router,
        contract_router,
        indicators_router,
        cv_router,
        interview_router,
        gdpr_router,
        consent_router,
    ):
        app.include_router(router, prefix=config.api_version_path, responses=ERROR_RESPONSES)

    return app


app = create_app()
