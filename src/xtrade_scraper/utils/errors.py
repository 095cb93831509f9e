# ABOUTME: Exception hierarchy shared by every stage of the scraping pipeline
# ABOUTME: Remote errors carry the HTTP status and headers so retry classification can act on them

from collections.abc import Mapping


class ScraperError(Exception):
    """Base exception for catalog scraping errors."""

    pass


class ConfigurationError(ScraperError):
    """Raised when required credentials or settings are missing. Never retried."""

    pass


class FetchError(ScraperError):
    """Raised when a remote host answers with a non-2xx status."""

    def __init__(self, message: str, status: int | None = None, headers: Mapping[str, str] | None = None):
        super().__init__(message)
        self.status = status
        self.headers = dict(headers) if headers is not None else {}


class ImageProcessingError(ScraperError):
    """Raised when downloaded bytes cannot be decoded or re-encoded as an image."""

    pass


class StorageError(ScraperError):
    """Raised when an object upload to the bucket fails."""

    pass


class JobLogStateError(ScraperError):
    """Raised when a job log is finalized twice."""

    pass
