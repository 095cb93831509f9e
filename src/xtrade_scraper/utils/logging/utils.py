# ABOUTME: Logger utilities with context binding and remote-call tracking decorators
# ABOUTME: Provides get_logger plus helpers that bind source and pipeline context to log events

import functools
import inspect
import time
import uuid
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

import structlog

P = ParamSpec("P")
R = TypeVar("R")

_URL_PREFIXES = ("http://", "https://")


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger named after ``name`` or, when omitted, the calling module."""
    if name is None:
        caller = inspect.currentframe()
        caller = caller.f_back if caller else None
        name = caller.f_globals.get("__name__") if caller else None

    return structlog.get_logger(name or "xtrade_scraper")


def generate_operation_id() -> str:
    """Short random id used to correlate the events of one call or run."""
    return uuid.uuid4().hex[:8]


def _first_url(args: tuple) -> str | None:
    return next((a for a in args if isinstance(a, str) and a.startswith(_URL_PREFIXES)), None)


def log_api_call(
    api_name: str, **context
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Decorate an async remote call so each attempt logs its target, duration and outcome.

    The first ``http(s)://`` positional argument, if any, is bound as ``url``.
    Failures are logged at warning level and re-raised untouched; deciding
    whether to retry is left to the caller's RetryPolicy.
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            log = get_logger(func.__module__).bind(
                api_name=api_name,
                call_id=generate_operation_id(),
                url=_first_url(args),
                **context,
            )
            started = time.perf_counter()
            log.debug("Remote call started")

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                log.warning(
                    "Remote call failed",
                    duration_seconds=round(time.perf_counter() - started, 3),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise

            log.debug("Remote call finished", duration_seconds=round(time.perf_counter() - started, 3))
            return result

        return wrapper

    return decorator


class LogContext:
    """Bind context to a logger for the duration of a ``with`` block.

    An exception leaving the block is logged once with the bound context and
    then propagates.
    """

    def __init__(self, logger: structlog.stdlib.BoundLogger, **context):
        self._base = logger
        self.context = context
        self.logger: structlog.stdlib.BoundLogger | None = None

    def __enter__(self) -> structlog.stdlib.BoundLogger:
        self.logger = self._base.bind(**self.context)
        return self.logger

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None and self.logger is not None:
            self.logger.error("Run aborted", error=str(exc_val), error_type=exc_type.__name__)


def with_source_context(source_id: str, source_name: str | None = None) -> LogContext:
    """Context for every event of one source run."""
    return LogContext(
        get_logger("xtrade_scraper.run"),
        source_id=source_id,
        source_name=source_name,
        run_id=generate_operation_id(),
    )


def with_pipeline_context(pipeline_name: str, **context) -> LogContext:
    """Context for a CLI-level pipeline invocation spanning several sources."""
    return LogContext(
        get_logger("xtrade_scraper.pipeline"),
        pipeline=pipeline_name,
        operation_id=generate_operation_id(),
        **context,
    )
