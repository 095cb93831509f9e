# ABOUTME: Tests for ScraperService wiring of scrape modes
# ABOUTME: Each mode only builds the handles it uses, so missing credentials fail where they matter

from unittest.mock import Mock

import pytest
import pytest_asyncio

from xtrade_scraper.config import Config
from xtrade_scraper.core.models import ScrapeMode
from xtrade_scraper.core.service import ScraperService
from xtrade_scraper.utils.errors import ConfigurationError


def _config(**overrides) -> Config:
    values = {
        "llm_api_key": "",
        "storage_endpoint": "",
        "storage_access_key_id": "",
        "storage_secret_access_key": "",
        "storage_public_domain": "cdn.example.com",
    }
    values.update(overrides)
    return Config(_env_file=None, **values)


@pytest_asyncio.fixture
async def close_after():
    services = []
    yield services.append
    for service in services:
        await service.http_client.aclose()


@pytest.mark.asyncio
async def test_metadata_mode_needs_no_storage(temp_db, close_after):
    service = ScraperService(_config(), database=temp_db, lm=Mock())
    close_after(service)

    orchestrator = service.build_orchestrator(ScrapeMode.METADATA)

    assert orchestrator.mirror is None
    assert orchestrator.extractor is not None


@pytest.mark.asyncio
async def test_sync_mode_needs_no_language_model(temp_db, close_after):
    service = ScraperService(_config(), database=temp_db, storage_client=Mock())
    close_after(service)

    orchestrator = service.build_orchestrator(ScrapeMode.SYNC_IMAGES)

    assert orchestrator.extractor is None
    assert orchestrator.mirror.public_base_url == "https://cdn.example.com/"


@pytest.mark.asyncio
async def test_full_mode_requires_storage_credentials(temp_db, close_after):
    service = ScraperService(_config(), database=temp_db, lm=Mock())
    close_after(service)

    with pytest.raises(ConfigurationError, match="Storage credentials"):
        service.build_orchestrator(ScrapeMode.ALL)


@pytest.mark.asyncio
async def test_sync_images_runs_over_catalog(temp_db, close_after):
    service = ScraperService(_config(), database=temp_db, storage_client=Mock())
    close_after(service)

    summary = await service.sync_images(limit=10)

    assert (summary.total, summary.synced, summary.failed) == (0, 0, 0)


@pytest.mark.asyncio
async def test_unknown_source_is_a_configuration_error(temp_db, close_after):
    service = ScraperService(_config(), database=temp_db, lm=Mock(), storage_client=Mock())
    close_after(service)

    with pytest.raises(ConfigurationError, match="Unknown source"):
        await service.scrape_one("missing")


@pytest.mark.asyncio
async def test_sync_mode_is_not_a_source_scrape(temp_db, close_after):
    service = ScraperService(_config(), database=temp_db, storage_client=Mock())
    close_after(service)

    with pytest.raises(ValueError):
        await service.scrape_all(ScrapeMode.SYNC_IMAGES)
