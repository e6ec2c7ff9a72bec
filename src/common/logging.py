"""
Logging configuration helpers.
Every entrypoint (API app, cron script) calls `configure_logging()` once; modules then
log through `logging.getLogger(__name__)`.
"""

from __future__ import annotations

import logging

from src.common.settings import get_settings

_LOGGING_CONFIGURED = False


def configure_logging(level_name: str | None = None) -> None:
    """Configure process-wide logging from environment settings."""

    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    resolved_name = (level_name or get_settings().LOG_LEVEL).upper()
    level = getattr(logging, resolved_name, logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    # httpx/openai request lines are noisy at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    _LOGGING_CONFIGURED = True
