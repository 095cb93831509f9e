# ABOUTME: Logging configuration using loguru sinks with structlog as the event front end
# ABOUTME: Dual-mode operation: interactive CLI (files under logs/) vs production JSON on stdout

import logging
import sys
from pathlib import Path
from typing import Any

import structlog
from loguru import logger


class LoggingMode:
    """Logging mode constants."""

    INTERACTIVE = "interactive"
    PRODUCTION = "production"


THIRD_PARTY_LOGGERS = {
    # Complete silence
    "critical": ["LiteLLM", "litellm", "dspy"],
    # Warnings and above only
    "warning": ["httpx", "httpcore", "botocore", "boto3", "s3transfer", "urllib3", "PIL", "asyncio", "aiosqlite"],
}


def detect_logging_mode(preferred: str | None = None) -> str:
    """Resolve the logging mode: a valid configured mode wins, otherwise a TTY means interactive."""
    if preferred and preferred.lower() in [LoggingMode.INTERACTIVE, LoggingMode.PRODUCTION]:
        return preferred.lower()

    return LoggingMode.INTERACTIVE if sys.stdout.isatty() else LoggingMode.PRODUCTION


class InterceptHandler(logging.Handler):
    """Forward standard library records (and structlog output) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        logger.opt(depth=6, exception=record.exc_info).bind(name=record.name).log(level, record.getMessage())


def setup_third_party_logging() -> None:
    """Configure third-party library logging to avoid CLI interference."""
    for logger_name in THIRD_PARTY_LOGGERS["critical"]:
        logging.getLogger(logger_name).setLevel(logging.CRITICAL)

    for logger_name in THIRD_PARTY_LOGGERS["warning"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.captureWarnings(True)
    logging.getLogger("py.warnings").setLevel(logging.ERROR)


def setup_structlog() -> None:
    """Render structlog events as key=value lines handed to the stdlib root logger."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.format_exc_info,
            structlog.processors.KeyValueRenderer(key_order=["event"], sort_keys=True),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def configure_logging(mode: str | None = None, log_level: str = "INFO", log_file: str | None = None) -> None:
    """Configure logging using loguru.

    Args:
        mode: Logging mode (interactive/production), auto-detected if None
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Custom log file path, uses default if None
    """
    mode = detect_logging_mode(mode)

    setup_third_party_logging()
    setup_structlog()

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(handlers=[InterceptHandler()], level=numeric_level, force=True)

    logger.remove()
    logger.configure(extra={"name": "xtrade_scraper"})

    if mode == LoggingMode.INTERACTIVE:
        log_dir = Path("logs")
        try:
            log_dir.mkdir(exist_ok=True)
        except OSError:
            # No writable log directory: behave like production
            mode = LoggingMode.PRODUCTION

    if mode == LoggingMode.PRODUCTION:
        logger.add(sys.stdout, level=log_level, format="{time} | {level} | {name} | {message}", serialize=True)
        return

    log_file_path = log_file or str(log_dir / "xtrade-scraper.log")

    logger.add(
        log_file_path,
        level=log_level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[name]} - {message}",
        rotation="10 MB",
        retention="7 days",
    )

    logger.add(
        log_dir / "xtrade-scraper.json",
        level=log_level,
        format="{time} | {level} | {name} | {message}",
        serialize=True,
        rotation="10 MB",
        retention="7 days",
    )

    logger.add(
        log_dir / "errors.log",
        level="ERROR",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[name]} - {message}",
        backtrace=True,
        diagnose=False,
    )


def get_logging_status(mode: str | None = None) -> dict[str, Any]:
    """Get current logging configuration status."""
    mode = detect_logging_mode(mode)
    log_dir = Path("logs")
    interactive = mode == LoggingMode.INTERACTIVE

    return {
        "mode": mode,
        "log_directory": str(log_dir.absolute()) if log_dir.exists() else None,
        "log_files": {
            "main": str(log_dir / "xtrade-scraper.log") if interactive else None,
            "json": str(log_dir / "xtrade-scraper.json") if interactive else None,
            "errors": str(log_dir / "errors.log") if interactive else None,
        },
        "third_party_suppressed": THIRD_PARTY_LOGGERS["critical"] + THIRD_PARTY_LOGGERS["warning"],
    }

