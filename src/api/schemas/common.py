# This file defines the response envelope models shared by every enveloped endpoint.
# Feature payloads are free-form dictionaries inside `data`; the envelope around them is fixed.
# `ErrorResponse` documents the body the error handlers emit.

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class PaginationMetadata(BaseModel):
    page: int = Field(ge=1)
    page_size: int = Field(ge=1)
    total_count: int = Field(ge=0)
    total_pages: int = Field(ge=0)
    sort: str


class EnvelopeFields(BaseModel):
    api_version: str
    schema_version: str
    request_id: str
    generated_at: datetime
    warnings: list[str] | None = None


class ObjectResponseV1(EnvelopeFields):
    data: Any = None
    message: str | None = None


class ListResponseV1(EnvelopeFields):
    data: list[dict[str, Any]]
    pagination: PaginationMetadata | None = None


class ErrorResponse(BaseModel):
    error_code: str
    message: str
    details: Any | None = None
    request_id: str
    timestamp: datetime
