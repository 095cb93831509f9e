# ABOUTME: HTTP client helpers shared by the page fetcher and the image processor
# ABOUTME: Browser-like request headers and conversion of non-2xx responses into FetchError

from urllib.parse import urlsplit

import httpx

from xtrade_scraper.utils.errors import FetchError

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

PAGE_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
IMAGE_ACCEPT = "image/webp,image/png,image/jpeg,image/*"


def origin_of(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


def browser_headers(url: str, accept: str, accept_language: str | None = None) -> dict[str, str]:
    """Headers resembling a desktop browser, with the request origin as Referer."""
    headers = {
        "User-Agent": USER_AGENT,
        "Accept": accept,
        "Referer": origin_of(url),
    }
    if accept_language:
        headers["Accept-Language"] = accept_language
    return headers


def raise_for_status(response: httpx.Response, what: str) -> None:
    """Raise FetchError carrying the status and headers for any non-2xx response."""
    if response.is_success:
        return
    raise FetchError(
        f"Failed to fetch {what}: {response.status_code} {response.reason_phrase}",
        status=response.status_code,
        headers=response.headers,
    )


def create_http_client(timeout: float = 30.0) -> httpx.AsyncClient:
    return httpx.AsyncClient(follow_redirects=True, timeout=timeout)
