"""
Test suite for logger configuration and Sentry integration.

Run tests:
    pytest tests/core/test_logger.py -v
"""

import logging
import os
from unittest.mock import patch
from uuid import uuid4

import pytest

from taskdesk.core.logger import init_sentry, setup_logger


@pytest.fixture(autouse=True)
def reset_sentry_state():
    """Reset Sentry initialization state before each test."""
    import taskdesk.core.logger as logger_module

    logger_module._sentry_initialized = False
    yield
    logger_module._sentry_initialized = False


def _unique_name() -> str:
    return f"test_logger_{uuid4().hex}"


class TestInitSentry:
    """Test suite for init_sentry function."""

    def test_empty_dsn_is_disabled(self):
        with patch("sentry_sdk.init") as mock_init:
            assert init_sentry("") is False

        mock_init.assert_not_called()

    def test_initializes_once(self):
        with patch("sentry_sdk.init") as mock_init:
            assert init_sentry("https://key@sentry.example.com/1", "test") is True
            assert init_sentry("https://key@sentry.example.com/1", "test") is False

        mock_init.assert_called_once()
        assert mock_init.call_args.kwargs["environment"] == "test"


class TestSetupLogger:
    """Test suite for setup_logger function."""

    def test_writes_to_rotating_file(self, tmp_path):
        logger = setup_logger(_unique_name(), "component.log", log_dir=str(tmp_path))
        logger.info("hello from the test")

        for handler in logger.handlers:
            handler.flush()

        log_path = tmp_path / "component.log"
        assert os.path.exists(log_path)
        assert "hello from the test" in log_path.read_text(encoding="utf-8")

    def test_does_not_stack_handlers(self, tmp_path):
        name = _unique_name()

        first = setup_logger(name, "component.log", log_dir=str(tmp_path))
        second = setup_logger(name, "component.log", log_dir=str(tmp_path))

        assert first is second
        assert len(second.handlers) == 2

    def test_level(self, tmp_path):
        logger = setup_logger(
            _unique_name(), "component.log", level=logging.WARNING, log_dir=str(tmp_path)
        )

        assert logger.level == logging.WARNING

    def test_sentry_tag_applied_when_active(self, tmp_path):
        import taskdesk.core.logger as logger_module

        logger_module._sentry_initialized = True
        with patch("sentry_sdk.set_tag") as mock_set_tag:
            setup_logger(
                _unique_name(), "component.log", sentry_tag="auth", log_dir=str(tmp_path)
            )

        mock_set_tag.assert_called_once_with("component", "auth")
