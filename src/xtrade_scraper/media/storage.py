# ABOUTME: Content-addressed uploads of processed images to S3-compatible storage via boto3
# ABOUTME: Keys derive from the SHA-256 of the bytes so identical images always map to one object

import functools
import hashlib
from dataclasses import dataclass
from typing import Any

import boto3
from anyio import to_thread
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from xtrade_scraper.config import Config, get_config
from xtrade_scraper.utils.errors import ConfigurationError, StorageError
from xtrade_scraper.utils.logging import get_logger

CACHE_CONTROL = "public, max-age=31536000"
CONTENT_TYPES = {"png": "image/png", "jpeg": "image/jpeg", "webp": "image/webp"}


@dataclass(frozen=True, slots=True)
class UploadResult:
    key: str
    url: str
    size: int


def generate_key(data: bytes, prefix: str = "cards", extension: str = "png") -> str:
    """``{prefix}/{first 16 hex chars of sha256(data)}.{extension}``."""
    digest = hashlib.sha256(data).hexdigest()[:16]
    return f"{prefix}/{digest}.{extension}"


def public_url(public_domain: str, key: str) -> str:
    host = public_domain.split(":", 1)[0]
    scheme = "http" if host == "localhost" else "https"
    return f"{scheme}://{public_domain}/{key}"


def create_storage_client(config: Config | None = None) -> Any:
    """Build the S3 client handle used by ObjectMirror.

    Raises:
        ConfigurationError: if endpoint or credentials are missing
    """
    config = config or get_config()
    missing = [
        name
        for name, value in (
            ("XTRADE_SCRAPER_STORAGE_ENDPOINT", config.storage_endpoint),
            ("XTRADE_SCRAPER_STORAGE_ACCESS_KEY_ID", config.storage_access_key_id),
            ("XTRADE_SCRAPER_STORAGE_SECRET_ACCESS_KEY", config.storage_secret_access_key),
        )
        if not value
    ]
    if missing:
        raise ConfigurationError(f"Storage credentials not configured. Required: {', '.join(missing)}")

    return boto3.client(
        "s3",
        endpoint_url=config.storage_endpoint,
        aws_access_key_id=config.storage_access_key_id,
        aws_secret_access_key=config.storage_secret_access_key,
        region_name="auto",
        # MinIO needs path-style addressing
        config=BotoConfig(s3={"addressing_style": "path"}),
    )


class ObjectMirror:
    """Re-hosts image bytes under owned storage."""

    def __init__(self, client: Any, bucket: str, public_domain: str):
        self.client = client
        self.bucket = bucket
        self.public_domain = public_domain
        self.logger = get_logger(__name__)

    @property
    def public_base_url(self) -> str:
        """Prefix shared by every URL this mirror hands out."""
        return public_url(self.public_domain, "")

    async def upload(self, data: bytes, key: str, content_type: str = "image/png") -> UploadResult:
        put = functools.partial(
            self.client.put_object,
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
            CacheControl=CACHE_CONTROL,
        )
        try:
            await to_thread.run_sync(put)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Upload of {key} failed: {e}") from e

        result = UploadResult(key=key, url=public_url(self.public_domain, key), size=len(data))
        self.logger.debug("Uploaded object", key=key, size=result.size, bucket=self.bucket)
        return result

    async def mirror(
        self, source_url: str, data: bytes, *, prefix: str = "cards", image_format: str = "png"
    ) -> UploadResult:
        key = generate_key(data, prefix=prefix, extension=image_format)
        self.logger.debug("Mirroring image", source_url=source_url, key=key)
        return await self.upload(data, key, CONTENT_TYPES.get(image_format, "application/octet-stream"))
