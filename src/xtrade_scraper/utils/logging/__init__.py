# ABOUTME: Logging configuration and structured logger helpers
# ABOUTME: Exposes dual-mode (interactive/production) setup and context binders for the pipeline

from .config import LoggingMode, configure_logging, detect_logging_mode, get_logging_status
from .utils import LogContext, get_logger, log_api_call, with_pipeline_context, with_source_context

__all__ = [
    # Configuration
    "LoggingMode",
    "configure_logging",
    "detect_logging_mode",
    "get_logging_status",
    # Utilities
    "LogContext",
    "get_logger",
    "log_api_call",
    "with_pipeline_context",
    "with_source_context",
]
