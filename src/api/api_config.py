# This file defines runtime settings for the Signatura API in one place.
# It exists so paging, AI model choice, integrations, and table names change through the environment.
# Every SQL identifier a service interpolates must appear in `allowed_table_names`.

from __future__ import annotations

import os
import re
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

SIGNATURA_TABLES: frozenset[str] = frozenset(
    {
        "profiles",
        "user_sessions",
        "job_applications",
        "cv_versions",
        "cv_tailoring_sessions",
        "daily_check_ins",
        "interview_sessions",
        "compensation_negotiations",
        "contract_reviews",
        "contract_analyses",
        "indicator_scores",
        "consent_log",
        "account_deletion_requests",
        "user_subscriptions",
        "subscription_events",
        "usage_monthly_snapshots",
        "api_request_log",
    }
)


def _check_identifier(value: str) -> str:
    if not _IDENTIFIER_RE.match(value):
        raise ValueError(f"Unsafe SQL identifier: {value!r}")
    return value


class ApiConfig(BaseModel):
    """Typed API runtime configuration."""

    model_config = ConfigDict(extra="ignore")

    api_name: str = "Signatura API"
    api_version_path: str = "/api/v1"
    schema_version: str = "1.0.0"
    environment: str = "local"
    database_url: str
    app_version: str = "0.1.0"
    # Applications list paging
    default_page_size: int = 50
    max_page_size: int = 200
    default_sort_order: str = "created_at:desc"
    allowed_origins: list[str] = Field(default_factory=list)
    enable_request_logging: bool = False
    request_log_table_name: str = "api_request_log"
    # Payment redirects and webhook URLs are built from this
    app_base_url: str = "http://localhost:3000"
    cron_secret: str | None = None
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o"
    openai_fallback_models: list[str] = Field(default_factory=list)
    integration_timeout_seconds: int = 15
    allowed_table_names: set[str] = Field(default_factory=set)

    @field_validator("api_version_path")
    @classmethod
    def validate_api_version_path(cls, value: str) -> str:
        trimmed = value.rstrip("/")
        segments = trimmed.split("/")
        if not value.startswith("/") or len(segments) < 3 or not segments[-1].startswith("v"):
            raise ValueError("api_version_path must look like '/api/v1'.")
        return trimmed

    @field_validator("request_log_table_name")
    @classmethod
    def validate_log_table(cls, value: str) -> str:
        return _check_identifier(value)

    @field_validator("default_page_size", "max_page_size", "integration_timeout_seconds")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Value must be greater than 0.")
        return value

    @field_validator("app_base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    def validate_table_name(self, table_name: str) -> str:
        _check_identifier(table_name)
        if table_name not in self.allowed_table_names:
            raise ValueError(f"Table name is not in allowlist: {table_name!r}")
        return table_name


def _env(name: str) -> str | None:
    raw = os.getenv(name)
    return raw.strip() if raw and raw.strip() else None


def _env_flag(name: str) -> bool:
    raw = _env(name)
    if raw is None:
        return False
    if raw.lower() not in {"true", "false", "1", "0"}:
        raise ValueError(f"{name} must be true/false, got {raw!r}")
    return raw.lower() in {"true", "1"}


def _env_csv(name: str) -> list[str]:
    return [item.strip() for item in (_env(name) or "").split(",") if item.strip()]


def load_api_config(*, load_env: bool = True) -> ApiConfig:
    """Load API configuration from `.env` and process environment."""

    if load_env:
        load_dotenv()

    database_url = _env("DATABASE_URL")
    if database_url is None:
        raise RuntimeError("DATABASE_URL is required for API startup.")

    log_table = _env("API_REQUEST_LOG_TABLE_NAME") or "api_request_log"
    tables = set(SIGNATURA_TABLES) | {log_table} | set(_env_csv("API_ALLOWED_TABLE_NAMES"))
    for table_name in tables:
        _check_identifier(table_name)

    return ApiConfig(
        api_name=_env("API_NAME") or "Signatura API",
        api_version_path=_env("API_VERSION_PATH") or "/api/v1",
        schema_version=_env("API_SCHEMA_VERSION") or "1.0.0",
        environment=_env("ENV") or "local",
        database_url=database_url,
        app_version=_env("APP_VERSION") or "0.1.0",
        default_page_size=int(_env("API_DEFAULT_PAGE_SIZE") or 50),
        max_page_size=int(_env("API_MAX_PAGE_SIZE") or 200),
        default_sort_order=_env("API_DEFAULT_SORT_ORDER") or "created_at:desc",
        allowed_origins=_env_csv("API_ALLOWED_ORIGINS"),
        enable_request_logging=_env_flag("API_ENABLE_REQUEST_LOGGING"),
        request_log_table_name=log_table,
        app_base_url=_env("APP_BASE_URL") or "http://localhost:3000",
        cron_secret=_env("CRON_SECRET"),
        openai_api_key=_env("OPENAI_API_KEY"),
        openai_model=_env("OPENAI_MODEL") or "gpt-4o",
        openai_fallback_models=_env_csv("OPENAI_FALLBACK_MODELS"),
        integration_timeout_seconds=int(_env("INTEGRATION_TIMEOUT_SECONDS") or 15),
        allowed_table_names=tables,
    )


@lru_cache(maxsize=1)
def get_api_config() -> ApiConfig:
    """Cached accessor for API config."""

    return load_api_config()
