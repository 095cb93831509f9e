# ABOUTME: Tests for logging configuration module
# ABOUTME: Validates dual-mode logging setup and third-party library suppression

import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from xtrade_scraper.utils.logging.config import (
    THIRD_PARTY_LOGGERS,
    LoggingMode,
    configure_logging,
    detect_logging_mode,
    get_logging_status,
)


@pytest.fixture(autouse=True)
def reset_stdlib_logging():
    yield
    for logger_name in ["", *THIRD_PARTY_LOGGERS["critical"], *THIRD_PARTY_LOGGERS["warning"], "py.warnings"]:
        logger = logging.getLogger(logger_name)
        logger.handlers.clear()
        logger.setLevel(logging.NOTSET)
    logging.captureWarnings(False)


class TestDetectLoggingMode:
    """Test logging mode detection logic."""

    def test_configured_mode_wins(self):
        with patch("sys.stdout.isatty", return_value=True):
            assert detect_logging_mode("production") == LoggingMode.PRODUCTION
        with patch("sys.stdout.isatty", return_value=False):
            assert detect_logging_mode("INTERACTIVE") == LoggingMode.INTERACTIVE

    def test_invalid_mode_falls_back_to_tty(self):
        with patch("sys.stdout.isatty", return_value=True):
            assert detect_logging_mode("invalid") == LoggingMode.INTERACTIVE

    def test_non_tty_is_production(self):
        with patch("sys.stdout.isatty", return_value=False):
            assert detect_logging_mode() == LoggingMode.PRODUCTION


class TestConfigureLogging:
    """Test logging configuration functionality."""

    def test_interactive_mode_creates_log_directory(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        configure_logging(mode=LoggingMode.INTERACTIVE, log_level="INFO")

        assert Path("logs").exists()
        assert logging.getLogger("LiteLLM").level == logging.CRITICAL

    def test_production_mode_suppresses_third_parties(self):
        configure_logging(mode=LoggingMode.PRODUCTION, log_level="INFO")

        assert logging.getLogger("dspy").level == logging.CRITICAL
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("botocore").level == logging.WARNING

    def test_custom_log_level(self):
        configure_logging(mode=LoggingMode.PRODUCTION, log_level="DEBUG")

        assert logging.getLogger().level == logging.DEBUG

    def test_warnings_logger_quieted(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        configure_logging(mode=LoggingMode.INTERACTIVE)

        assert logging.getLogger("py.warnings").level == logging.ERROR


class TestGetLoggingStatus:
    """Test logging status reporting."""

    def test_interactive_status(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "logs").mkdir()

        with patch("xtrade_scraper.utils.logging.config.detect_logging_mode", return_value=LoggingMode.INTERACTIVE):
            status = get_logging_status()

        assert status["mode"] == LoggingMode.INTERACTIVE
        assert status["log_directory"] is not None
        assert status["log_files"]["main"].endswith("xtrade-scraper.log")
        assert "LiteLLM" in status["third_party_suppressed"]

    def test_production_status(self):
        with patch("xtrade_scraper.utils.logging.config.detect_logging_mode", return_value=LoggingMode.PRODUCTION):
            status = get_logging_status()

        assert status["mode"] == LoggingMode.PRODUCTION
        assert status["log_files"] == {"main": None, "json": None, "errors": None}

    def test_status_uses_configured_mode(self):
        with patch("sys.stdout.isatty", return_value=True):
            status = get_logging_status("production")

        assert status["mode"] == LoggingMode.PRODUCTION
