# This file builds response envelopes for Signatura endpoints in a consistent format.
# It exists so the web client always receives version metadata and the request id it can report.
# Payment webhooks and the cron job answer with bare bodies instead, because external callers parse them.

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from src.api.api_config import ApiConfig
from src.api.schema_versions import build_version_fields


def _envelope_header(config: ApiConfig, request_id: str) -> dict[str, Any]:
    header = build_version_fields(api_version_path=config.api_version_path, schema_version=config.schema_version)
    header["request_id"] = request_id
    header["generated_at"] = datetime.now(tz=UTC)
    return header


def build_list_envelope(
    config: ApiConfig,
    request_id: str,
    rows: list[dict[str, Any]],
    *,
    pagination: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    """Wrap a page of rows together with its pagination block."""

    return {**_envelope_header(config, request_id), "data": rows, "pagination": pagination, "warnings": warnings}


def object_envelope(
    config: ApiConfig,
    request_id: str,
    data: Any,
    *,
    message: str | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    """Wrap a single object; `message` carries the user-facing sentence for state changes."""

    return {**_envelope_header(config, request_id), "data": data, "message": message, "warnings": warnings}
