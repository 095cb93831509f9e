# ABOUTME: Tests for content-addressed keys and the S3 object mirror
# ABOUTME: The boto3 client is a Mock; no bucket is contacted

import re
from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError

from xtrade_scraper.config import Config
from xtrade_scraper.media.storage import (
    CACHE_CONTROL,
    ObjectMirror,
    create_storage_client,
    generate_key,
    public_url,
)
from xtrade_scraper.utils.errors import ConfigurationError, StorageError


class TestGenerateKey:
    def test_same_bytes_same_key(self):
        assert generate_key(b"card image") == generate_key(b"card image")

    def test_different_bytes_different_key(self):
        assert generate_key(b"card image A") != generate_key(b"card image B")

    def test_key_shape(self):
        assert re.fullmatch(r"cards/[0-9a-f]{16}\.png", generate_key(b"abc"))
        assert re.fullmatch(r"thumbs/[0-9a-f]{16}\.webp", generate_key(b"abc", prefix="thumbs", extension="webp"))


class TestPublicUrl:
    def test_https_for_public_domain(self):
        assert public_url("cdn.example.com", "cards/abc.png") == "https://cdn.example.com/cards/abc.png"

    def test_http_for_localhost(self):
        assert public_url("localhost:9000", "cards/abc.png") == "http://localhost:9000/cards/abc.png"


class TestObjectMirror:
    @pytest.mark.asyncio
    async def test_mirror_uploads_with_cache_headers(self):
        client = Mock()
        mirror = ObjectMirror(client, bucket="card-images", public_domain="cdn.example.com")

        result = await mirror.mirror("https://img.example.com/a.png", b"png-bytes")

        assert result.key == generate_key(b"png-bytes")
        assert result.url == f"https://cdn.example.com/{result.key}"
        assert result.size == len(b"png-bytes")
        client.put_object.assert_called_once_with(
            Bucket="card-images",
            Key=result.key,
            Body=b"png-bytes",
            ContentType="image/png",
            CacheControl=CACHE_CONTROL,
        )

    @pytest.mark.asyncio
    async def test_upload_failure_wrapped(self):
        client = Mock()
        client.put_object.side_effect = ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject")
        mirror = ObjectMirror(client, bucket="card-images", public_domain="cdn.example.com")

        with pytest.raises(StorageError, match="AccessDenied"):
            await mirror.upload(b"data", "cards/0000000000000000.png")


def test_storage_client_requires_credentials():
    config = Config(storage_endpoint="", storage_access_key_id="", storage_secret_access_key="")

    with pytest.raises(ConfigurationError) as excinfo:
        create_storage_client(config)
    assert "XTRADE_SCRAPER_STORAGE_ENDPOINT" in str(excinfo.value)


def test_storage_client_built_from_config():
    config = Config(
        storage_endpoint="http://localhost:9000",
        storage_access_key_id="minio",
        storage_secret_access_key="minio-secret",
    )

    client = create_storage_client(config)

    assert client.meta.endpoint_url == "http://localhost:9000"
    assert client.meta.region_name == "auto"
