# ABOUTME: Rate-limited, retried HTTP GET of source pages
# ABOUTME: One request per call, spaced by the page-class RateLimiter and retried per the external-site policy

import asyncio
from collections.abc import Awaitable, Callable

import httpx

from xtrade_scraper.utils.http import PAGE_ACCEPT, browser_headers, raise_for_status
from xtrade_scraper.utils.logging import get_logger, log_api_call
from xtrade_scraper.utils.retry import EXTERNAL_SITE_RETRY, RateLimiter, RetryPolicy, with_retry


class PageFetcher:
    """Fetches source pages the way a single slow browsing session would."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        rate_limiter: RateLimiter,
        retry_policy: RetryPolicy = EXTERNAL_SITE_RETRY,
        accept_language: str = "ja,en-US;q=0.9,en;q=0.8",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.rate_limiter = rate_limiter
        self.retry_policy = retry_policy
        self.accept_language = accept_language
        self._sleep = sleep
        self.logger = get_logger(__name__)

    async def fetch(self, url: str) -> str:
        """Return the body of ``url`` as text.

        Raises:
            FetchError: on a non-2xx response that is not retried or exhausts retries
        """
        return await self.rate_limiter.execute(
            lambda: with_retry(lambda: self._get(url), self.retry_policy, sleep=self._sleep)
        )

    @log_api_call("external-site")
    async def _get(self, url: str) -> str:
        response = await self.client.get(url, headers=browser_headers(url, PAGE_ACCEPT, self.accept_language))
        raise_for_status(response, "page")
        return response.text
