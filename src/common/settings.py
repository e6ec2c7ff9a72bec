"""
Process-wide settings loaded from environment variables.
Only the values every entrypoint needs (API, cron CLI, tests) live here; API-specific
knobs are in `src.api.api_config`.
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Final

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, ValidationError

REQUIRED_ENV_VARS: Final[tuple[str, ...]] = ("PROJECT_NAME", "ENV", "LOG_LEVEL", "DATABASE_URL")


class Settings(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    PROJECT_NAME: str
    ENV: str
    LOG_LEVEL: str
    DATABASE_URL: str


def load_settings(*, load_env: bool = True) -> Settings:
    """Read settings from `.env` (optional) and the environment; raise `RuntimeError` naming gaps."""

    if load_env:
        load_dotenv()

    values = {key: os.getenv(key, "") for key in REQUIRED_ENV_VARS}
    missing = sorted(key for key, value in values.items() if not value)
    if missing:
        raise RuntimeError(
            f"Missing required environment variables: {', '.join(missing)}. "
            "Set them in `.env` or the process environment before starting Signatura."
        )

    try:
        return Settings.model_validate(values)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid environment configuration: {exc}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


def use_mock_ai() -> bool:
    """True only when USE_MOCK_AI is exactly `true`."""

    return os.getenv("USE_MOCK_AI", "") == "true"
