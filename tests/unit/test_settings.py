"""
Unit tests for process settings, the mock-AI flag, and logging setup.
These tests are executed by `pytest` locally and in CI and should remain deterministic.
"""

import logging

import pytest

from src.common import logging as logging_module
from src.common import settings as settings_module


def test_load_settings_success() -> None:
    settings_module.get_settings.cache_clear()
    settings = settings_module.get_settings()
    assert settings.PROJECT_NAME
    assert settings.DATABASE_URL.startswith("postgresql")


def test_load_settings_missing_required(monkeypatch: pytest.MonkeyPatch) -> None:
    settings_module.get_settings.cache_clear()
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(RuntimeError, match="Missing required environment variables: DATABASE_URL"):
        settings_module.load_settings(load_env=False)


@pytest.mark.parametrize(("value", "expected"), [("true", True), ("TRUE", False), ("1", False), ("", False)])
def test_mock_ai_flag_requires_exact_true(monkeypatch: pytest.MonkeyPatch, value: str, expected: bool) -> None:
    monkeypatch.setenv("USE_MOCK_AI", value)
    assert settings_module.use_mock_ai() is expected


def test_configure_logging_runs_once(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(logging_module, "_LOGGING_CONFIGURED", False)
    httpx_logger = logging.getLogger("httpx")
    monkeypatch.setattr(httpx_logger, "level", logging.NOTSET)

    logging_module.configure_logging("debug")
    assert httpx_logger.level == logging.WARNING

    httpx_logger.setLevel(logging.NOTSET)
    logging_module.configure_logging("error")
    assert httpx_logger.level == logging.NOTSET
