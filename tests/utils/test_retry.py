# ABOUTME: Tests for error classification, retry-after extraction and the retry loop
# ABOUTME: Uses a recording sleep so backoff behavior is checked without waiting

import httpx
import pytest

from xtrade_scraper.utils.errors import FetchError
from xtrade_scraper.utils.retry import (
    EXTERNAL_SITE_RETRY,
    LLM_API_RETRY,
    RetryPolicy,
    extract_retry_after,
    is_rate_limit_error,
    is_transient_error,
    with_retry,
)


class StatusError(Exception):
    def __init__(self, message: str = "request failed", status: int | None = None, headers=None):
        super().__init__(message)
        self.status = status
        self.headers = headers


class FlakyOperation:
    """Fails with the given errors in order, then returns ``value``."""

    def __init__(self, errors: list[BaseException], value: str = "ok"):
        self.errors = list(errors)
        self.value = value
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.value


class TestErrorClassification:
    """Pure predicates deciding retry eligibility."""

    def test_rate_limit_from_status(self):
        assert is_rate_limit_error(StatusError(status=429))

    @pytest.mark.parametrize("message", ["rate_limit exceeded", "Rate limit hit", "HTTP 429", "Too Many Requests"])
    def test_rate_limit_from_message(self, message):
        assert is_rate_limit_error(Exception(message))

    def test_not_found_is_not_rate_limit(self):
        assert not is_rate_limit_error(Exception("404 Not Found"))

    @pytest.mark.parametrize("status", [500, 502, 503, 504])
    def test_server_errors_are_transient(self, status):
        assert is_transient_error(StatusError(status=status))

    def test_not_found_status_is_not_transient(self):
        assert not is_transient_error(StatusError(status=404))

    def test_connection_reset_is_transient(self):
        assert is_transient_error(Exception("ECONNRESET"))

    @pytest.mark.parametrize("message", ["socket hang up", "network unreachable", "read timeout", "ECONNREFUSED"])
    def test_network_messages_are_transient(self, message):
        assert is_transient_error(Exception(message))

    def test_httpx_transport_error_is_transient(self):
        assert is_transient_error(httpx.ConnectError("connection failed"))

    def test_fetch_error_status_is_read(self):
        assert is_transient_error(FetchError("Failed to fetch page: 503 Service Unavailable", status=503))
        assert not is_transient_error(FetchError("Failed to fetch page: 403 Forbidden", status=403))

    def test_status_read_from_attached_response(self):
        request = httpx.Request("GET", "https://example.com")
        response = httpx.Response(502, request=request)
        error = httpx.HTTPStatusError("bad gateway", request=request, response=response)
        assert is_transient_error(error)


class TestExtractRetryAfter:
    """Server-suggested waits, in seconds."""

    def test_header_seconds(self):
        assert extract_retry_after(StatusError(headers={"retry-after": "30"})) == 30.0

    def test_message_rounds_up_to_milliseconds(self):
        assert extract_retry_after(Exception("Try again in 1.1 seconds")) == pytest.approx(1.1)

    def test_message_short_unit(self):
        assert extract_retry_after(Exception("please try again in 2s")) == 2.0

    def test_unknown(self):
        assert extract_retry_after(Exception("unknown")) is None

    def test_unparseable_header_falls_back_to_message(self):
        error = StatusError("try again in 3 seconds", headers={"retry-after": "soon"})
        assert extract_retry_after(error) == 3.0


class TestRetryPolicy:
    """Backoff arithmetic."""

    def test_backoff_grows_and_caps(self):
        policy = RetryPolicy(initial_delay=2.0, max_delay=5.0, backoff_multiplier=2.0)
        assert [policy.backoff_for(n) for n in (1, 2, 3, 4)] == [2.0, 4.0, 5.0, 5.0]

    def test_server_suggestion_wins_when_larger(self):
        policy = RetryPolicy(initial_delay=1.0)
        assert policy.delay_for(1, StatusError(headers={"retry-after": "30"})) == 30.0

    def test_backoff_wins_when_larger(self):
        policy = RetryPolicy(initial_delay=10.0)
        assert policy.delay_for(1, Exception("try again in 1 second")) == 10.0

    def test_profiles(self):
        assert (EXTERNAL_SITE_RETRY.max_retries, EXTERNAL_SITE_RETRY.initial_delay) == (3, 2.0)
        assert EXTERNAL_SITE_RETRY.max_delay == 30.0
        assert (LLM_API_RETRY.max_retries, LLM_API_RETRY.initial_delay) == (5, 5.0)
        assert LLM_API_RETRY.max_delay == 120.0
        assert LLM_API_RETRY.should_retry is is_transient_error
        assert LLM_API_RETRY.should_retry(StatusError(status=429))
        assert not LLM_API_RETRY.should_retry(StatusError(status=404))


class TestWithRetry:
    """The retry loop itself."""

    @pytest.mark.asyncio
    async def test_success_first_try(self, recording_sleep):
        op = FlakyOperation([])

        assert await with_retry(op, sleep=recording_sleep) == "ok"
        assert op.calls == 1
        assert recording_sleep.calls == []

    @pytest.mark.asyncio
    async def test_transient_failures_then_success(self, recording_sleep):
        op = FlakyOperation([Exception("ECONNRESET"), Exception("503 Service Unavailable")], value="done")
        policy = RetryPolicy(max_retries=3, initial_delay=0.01)

        assert await with_retry(op, policy, sleep=recording_sleep) == "done"
        assert op.calls == 3
        assert recording_sleep.calls == pytest.approx([0.01, 0.02])

    @pytest.mark.asyncio
    async def test_exhausted_retries_reraise_original(self, recording_sleep):
        errors = [Exception(f"timeout {i}") for i in range(3)]
        op = FlakyOperation(errors)
        policy = RetryPolicy(max_retries=2, initial_delay=0.01)

        with pytest.raises(Exception, match="timeout 2"):
            await with_retry(op, policy, sleep=recording_sleep)
        assert op.calls == 3

    @pytest.mark.asyncio
    async def test_permanent_error_not_retried(self, recording_sleep):
        op = FlakyOperation([FetchError("Failed to fetch page: 404 Not Found", status=404)])

        with pytest.raises(FetchError):
            await with_retry(op, RetryPolicy(), sleep=recording_sleep)
        assert op.calls == 1
        assert recording_sleep.calls == []

    @pytest.mark.asyncio
    async def test_custom_classifier_and_callback(self, recording_sleep):
        seen: list[tuple[int, float, str]] = []
        policy = RetryPolicy(
            max_retries=1,
            initial_delay=0.5,
            should_retry=lambda e: isinstance(e, ValueError),
            on_retry=lambda attempt, delay, error: seen.append((attempt, delay, str(error))),
        )
        op = FlakyOperation([ValueError("bad value")])

        assert await with_retry(op, policy, sleep=recording_sleep) == "ok"
        assert seen == [(1, 0.5, "bad value")]

    @pytest.mark.asyncio
    async def test_retry_after_header_drives_delay(self, recording_sleep):
        op = FlakyOperation([StatusError("Too Many Requests", status=429, headers={"retry-after": "7"})])

        await with_retry(op, RetryPolicy(initial_delay=1.0), sleep=recording_sleep)
        assert recording_sleep.calls == [7.0]
