# ABOUTME: High-level service wiring configuration into the scraping pipeline
# ABOUTME: Constructs the shared HTTP, model, storage and database handles once and closes them together

from __future__ import annotations

from typing import Any

import httpx

from xtrade_scraper.config import Config, get_config
from xtrade_scraper.core.models import ImageSyncSummary, ScrapeMode, ScrapeResult
from xtrade_scraper.core.orchestrator import ScrapeOrchestrator
from xtrade_scraper.extraction.base import PageAnalysis
from xtrade_scraper.extraction.fetcher import PageFetcher
from xtrade_scraper.extraction.llm import CardExtractor, create_language_model
from xtrade_scraper.media.images import ImageProcessor
from xtrade_scraper.media.storage import ObjectMirror, create_storage_client
from xtrade_scraper.persistence import CatalogRepository, DatabaseManager
from xtrade_scraper.utils.errors import ConfigurationError
from xtrade_scraper.utils.http import create_http_client
from xtrade_scraper.utils.logging import get_logger
from xtrade_scraper.utils.retry import RateLimiter


class ScraperService:
    """Entry point used by the CLI to run scrapes against configured sources.

    Handles default to ones built from ``Config``; pass explicit handles to use
    other credentials or test doubles.
    """

    def __init__(
        self,
        config: Config | None = None,
        *,
        database: DatabaseManager | None = None,
        http_client: httpx.AsyncClient | None = None,
        lm: Any = None,
        storage_client: Any = None,
    ):
        self.config = config or get_config()
        self.logger = get_logger(__name__)
        self.database = database or DatabaseManager(self.config.database_url)
        self.http_client = http_client or create_http_client()
        self._lm = lm
        self._storage_client = storage_client

        self.page_limiter = RateLimiter(self.config.page_interval, name="page")
        self.image_limiter = RateLimiter(self.config.image_interval, name="image")
        self.fetcher = PageFetcher(self.http_client, self.page_limiter)

    def _extractor(self) -> CardExtractor:
        if self._lm is None:
            self._lm = create_language_model(self.config)
        return CardExtractor(self._lm, max_html_chars=self.config.max_html_chars)

    def build_orchestrator(self, mode: ScrapeMode = ScrapeMode.ALL) -> ScrapeOrchestrator:
        """Assemble the orchestrator for ``mode``.

        Only the handles the mode needs are built: metadata runs need no object
        storage and image syncs need no language model.

        Raises:
            ConfigurationError: if credentials for a needed handle are missing
        """
        mirror = None
        if mode != ScrapeMode.METADATA:
            if self._storage_client is None:
                self._storage_client = create_storage_client(self.config)
            mirror = ObjectMirror(
                self._storage_client,
                bucket=self.config.storage_bucket,
                public_domain=self.config.storage_public_domain,
            )

        return ScrapeOrchestrator(
            database=self.database,
            catalog=CatalogRepository(self.database),
            fetcher=self.fetcher,
            extractor=self._extractor() if mode != ScrapeMode.SYNC_IMAGES else None,
            image_processor=ImageProcessor(self.http_client, max_width=self.config.image_max_width),
            mirror=mirror,
            image_limiter=self.image_limiter,
            source_interval=self.config.source_interval,
        )

    async def scrape_all(self, mode: ScrapeMode = ScrapeMode.ALL) -> list[ScrapeResult]:
        if mode == ScrapeMode.SYNC_IMAGES:
            raise ValueError("Image sync is not a source scrape; use sync_images()")
        await self.database.create_tables()
        return await self.build_orchestrator(mode).scrape_all_sources(mirror_images=mode == ScrapeMode.ALL)

    async def scrape_one(self, source_id: str, mode: ScrapeMode = ScrapeMode.ALL) -> ScrapeResult:
        if mode == ScrapeMode.SYNC_IMAGES:
            raise ValueError("Image sync is not a source scrape; use sync_images()")
        await self.database.create_tables()
        source = await self.database.get_source(source_id)
        if source is None:
            raise ConfigurationError(f"Unknown source: {source_id}")
        return await self.build_orchestrator(mode).scrape_source(source, mirror_images=mode == ScrapeMode.ALL)

    async def sync_images(self, limit: int = 100) -> ImageSyncSummary:
        """Mirror up to ``limit`` catalog images still served from their original host."""
        await self.database.create_tables()
        return await self.build_orchestrator(ScrapeMode.SYNC_IMAGES).sync_images(limit=limit)

    async def analyze_page(self, url: str) -> PageAnalysis:
        """Fetch ``url`` and ask the model whether it lists cards."""
        html = await self.fetcher.fetch(url)
        return await self._extractor().analyze_page_structure(html)

    async def close(self) -> None:
        await self.http_client.aclose()
        await self.database.close()
