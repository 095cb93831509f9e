# ABOUTME: Card image download and processing with Pillow
# ABOUTME: Downscales wide images preserving aspect ratio (never enlarging) and re-encodes them

import asyncio
import io
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal

import httpx
from PIL import Image, UnidentifiedImageError

from xtrade_scraper.utils.errors import ImageProcessingError
from xtrade_scraper.utils.http import IMAGE_ACCEPT, browser_headers, raise_for_status
from xtrade_scraper.utils.logging import get_logger, log_api_call
from xtrade_scraper.utils.retry import EXTERNAL_SITE_RETRY, RetryPolicy, with_retry

OutputFormat = Literal["png", "jpeg", "webp"]

_PIL_FORMATS: dict[str, str] = {"png": "PNG", "jpeg": "JPEG", "webp": "WEBP"}
_SAVE_MODES: dict[str, set[str]] = {
    "png": {"RGB", "RGBA", "L", "LA", "P"},
    "jpeg": {"RGB", "L"},
    "webp": {"RGB", "RGBA"},
}
# Fixed qualities used when mirroring; PNG is lossless so its value only documents intent
MIRROR_QUALITY: dict[str, int] = {"png": 90, "jpeg": 85, "webp": 85}


@dataclass(frozen=True, slots=True)
class ProcessedImage:
    """Re-encoded image bytes ready for upload."""

    data: bytes
    format: OutputFormat
    width: int
    height: int
    original_url: str


def _encode(data: bytes, output_format: OutputFormat, quality: int, max_width: int) -> tuple[bytes, int, int]:
    try:
        with Image.open(io.BytesIO(data)) as source:
            source.load()
            image = source
            if image.width > max_width:
                height = max(1, round(image.height * max_width / image.width))
                image = image.resize((max_width, height), Image.Resampling.LANCZOS)

            if image.mode not in _SAVE_MODES[output_format]:
                has_alpha = image.mode in ("RGBA", "LA", "PA") or "transparency" in image.info
                image = image.convert("RGBA" if has_alpha and output_format != "jpeg" else "RGB")

            save_kwargs: dict[str, object] = {"optimize": True}
            if output_format != "png":
                save_kwargs["quality"] = quality

            buffer = io.BytesIO()
            image.save(buffer, format=_PIL_FORMATS[output_format], **save_kwargs)
            return buffer.getvalue(), image.width, image.height
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageProcessingError(f"Cannot process image: {e}") from e


def detect_format(data: bytes) -> str | None:
    """Sniff the container format ('png', 'jpeg', 'webp', ...) or None if unrecognised."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            return image.format.lower() if image.format else None
    except (UnidentifiedImageError, OSError):
        return None


class ImageProcessor:
    """Downloads card images and prepares them for mirroring."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        retry_policy: RetryPolicy = EXTERNAL_SITE_RETRY,
        max_width: int = 800,
        output_format: OutputFormat = "png",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.retry_policy = retry_policy
        self.max_width = max_width
        self.output_format = output_format
        self._sleep = sleep
        self.logger = get_logger(__name__)

    async def fetch_and_process(
        self,
        url: str,
        *,
        max_width: int | None = None,
        output_format: OutputFormat | None = None,
    ) -> ProcessedImage:
        """Download ``url`` and re-encode it, downscaling when wider than ``max_width``.

        Raises:
            FetchError: when the download fails for good
            ImageProcessingError: when the bytes are not a decodable image
        """
        max_width = max_width or self.max_width
        output_format = output_format or self.output_format

        raw = await with_retry(lambda: self._download(url), self.retry_policy, sleep=self._sleep)
        self.logger.debug("Downloaded image", url=url, size=len(raw), source_format=detect_format(raw))

        data, width, height = _encode(raw, output_format, MIRROR_QUALITY[output_format], max_width)
        return ProcessedImage(data=data, format=output_format, width=width, height=height, original_url=url)

    def optimize(
        self,
        data: bytes,
        *,
        output_format: OutputFormat = "png",
        quality: int = 85,
        max_width: int | None = None,
    ) -> bytes:
        """Apply the same resize/re-encode rules to an in-memory image."""
        optimized, _, _ = _encode(data, output_format, quality, max_width or self.max_width)
        return optimized

    @staticmethod
    def detect_format(data: bytes) -> str | None:
        return detect_format(data)

    @log_api_call("image-host")
    async def _download(self, url: str) -> bytes:
        response = await self.client.get(url, headers=browser_headers(url, IMAGE_ACCEPT))
        raise_for_status(response, "image")
        return response.content
