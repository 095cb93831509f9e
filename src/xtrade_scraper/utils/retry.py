# ABOUTME: Retry and rate limiting primitives built on tenacity
# ABOUTME: Classifies remote errors, backs off exponentially and spaces calls per resource class

import asyncio
import math
import re
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import TypeVar

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from xtrade_scraper.utils.logging import get_logger

T = TypeVar("T")

logger = get_logger(__name__)

_RATE_LIMIT_PATTERN = re.compile(r"rate[_ ]limit|429|too many requests", re.IGNORECASE)
_NETWORK_MARKERS = ("network", "timeout", "econnreset", "econnrefused", "socket hang up")
_SERVER_ERROR_CODES = ("500", "502", "503", "504")
_RETRY_AFTER_PATTERN = re.compile(r"try again in (\d+(?:\.\d+)?)\s*(?:seconds?|s)\b", re.IGNORECASE)


def _status_of(error: BaseException) -> int | None:
    """Read an HTTP status from the error or the response attached to it."""
    for attr in ("status", "status_code"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value

    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def is_rate_limit_error(error: BaseException) -> bool:
    """Whether the error signals HTTP 429 / provider rate limiting."""
    if _RATE_LIMIT_PATTERN.search(str(error)):
        return True
    return _status_of(error) == 429


def is_transient_error(error: BaseException) -> bool:
    """Whether the error is worth retrying: rate limits, network failures and 5xx."""
    if is_rate_limit_error(error):
        return True

    if isinstance(error, httpx.TransportError | TimeoutError | ConnectionError):
        return True

    message = str(error).lower()
    if any(marker in message for marker in _NETWORK_MARKERS):
        return True
    if any(code in message for code in _SERVER_ERROR_CODES):
        return True

    status = _status_of(error)
    return status is not None and status >= 500


def _ceil_to_millis(seconds: float) -> float:
    # round first so 1.1 * 1000 does not ceil to 1101
    return math.ceil(round(seconds * 1000, 6)) / 1000


def _headers_of(error: BaseException) -> Mapping[str, str] | None:
    headers = getattr(error, "headers", None)
    if headers is None:
        headers = getattr(getattr(error, "response", None), "headers", None)
    return headers if isinstance(headers, Mapping) else None


def extract_retry_after(error: BaseException) -> float | None:
    """Best-effort server-suggested wait in seconds, or None.

    Prefers a ``retry-after`` header and falls back to parsing
    "try again in N seconds" out of the error message.
    """
    headers = _headers_of(error)
    if headers is not None:
        raw = headers.get("retry-after") or headers.get("Retry-After")
        if raw:
            try:
                return _ceil_to_millis(float(raw))
            except ValueError:
                pass

    match = _RETRY_AFTER_PATTERN.search(str(error))
    if match:
        return _ceil_to_millis(float(match.group(1)))

    return None


def _log_retry(policy_name: str, attempt: int, delay: float, error: BaseException) -> None:
    logger.warning(
        "Retrying after failure",
        policy=policy_name,
        attempt=attempt,
        delay_seconds=round(delay, 3),
        rate_limited=is_rate_limit_error(error),
        error=str(error),
        error_type=type(error).__name__,
    )


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff configuration for one class of remote calls.

    Total attempts are ``1 + max_retries``. Delays are in seconds.
    """

    name: str = "default"
    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 60.0
    backoff_multiplier: float = 2.0
    should_retry: Callable[[BaseException], bool] = is_transient_error
    on_retry: Callable[[int, float, BaseException], None] | None = None

    def backoff_for(self, retry_number: int) -> float:
        """Backoff before the given retry (1-based); capped only after growing."""
        delay = self.initial_delay
        for _ in range(retry_number - 1):
            delay = min(delay * self.backoff_multiplier, self.max_delay)
        return delay

    def delay_for(self, retry_number: int, error: BaseException) -> float:
        backoff = self.backoff_for(retry_number)
        suggested = extract_retry_after(error)
        if suggested is None:
            return backoff
        return max(suggested, backoff)

    def notify_retry(self, attempt: int, delay: float, error: BaseException) -> None:
        if self.on_retry is not None:
            self.on_retry(attempt, delay, error)
        else:
            _log_retry(self.name, attempt, delay, error)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation`` under ``policy``; re-raises the original error when giving up."""
    policy = policy or RetryPolicy()

    def wait(retry_state: RetryCallState) -> float:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        if error is None:
            return policy.backoff_for(retry_state.attempt_number)
        return policy.delay_for(retry_state.attempt_number, error)

    def before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        if error is not None:
            policy.notify_retry(retry_state.attempt_number, delay, error)

    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(policy.max_retries + 1),
        wait=wait,
        retry=retry_if_exception(policy.should_retry),
        before_sleep=before_sleep,
        reraise=True,
        sleep=sleep,
    ):
        with attempt:
            return await operation()

    raise RuntimeError("retry loop exited without a result")  # pragma: no cover


EXTERNAL_SITE_RETRY = RetryPolicy(
    name="external-site",
    max_retries=3,
    initial_delay=2.0,
    max_delay=30.0,
    backoff_multiplier=2.0,
)

LLM_API_RETRY = RetryPolicy(
    name="llm-api",
    max_retries=5,
    initial_delay=5.0,
    max_delay=120.0,
    backoff_multiplier=2.0,
)


class RateLimiter:
    """Enforces a minimum spacing between successive calls to one resource class.

    Each instance owns its own last-dispatch timestamp; instances share nothing.
    This orders calls on a single cooperative path and is not a concurrency gate.
    """

    def __init__(
        self,
        min_interval: float = 1.0,
        *,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval = min_interval
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._last_dispatch: float | None = None

    @property
    def last_dispatch(self) -> float | None:
        return self._last_dispatch

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        if self._last_dispatch is not None:
            elapsed = self._clock() - self._last_dispatch
            if elapsed < self.min_interval:
                wait_time = self.min_interval - elapsed
                logger.debug("Rate limiting", limiter=self.name, sleep_time=round(wait_time, 3))
                await self._sleep(wait_time)

        self._last_dispatch = self._clock()
        return await operation()
