# ABOUTME: Scrape orchestrator sequencing fetch, extraction, mirroring and catalog upsert per source
# ABOUTME: Writes one job log per source run, walks sources one at a time and syncs pending images

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import assert_never

from xtrade_scraper.core.models import (
    ApiSourceConfig,
    ImageSyncSummary,
    LLMSourceConfig,
    RunStage,
    RunStatus,
    ScrapeResult,
    SelectorSourceConfig,
)
from xtrade_scraper.extraction.base import ExtractedCard
from xtrade_scraper.extraction.fetcher import PageFetcher
from xtrade_scraper.extraction.llm import CardExtractor, default_prompt
from xtrade_scraper.media.images import ImageProcessor
from xtrade_scraper.media.storage import ObjectMirror, UploadResult
from xtrade_scraper.persistence.catalog import CatalogRepository
from xtrade_scraper.persistence.manager import DatabaseManager
from xtrade_scraper.persistence.models import ScrapeSource, utcnow
from xtrade_scraper.utils.errors import ConfigurationError, JobLogStateError
from xtrade_scraper.utils.logging import get_logger, with_source_context
from xtrade_scraper.utils.retry import RateLimiter

logger = get_logger(__name__)


class ScrapeOrchestrator:
    """Runs the scraping pipeline for configured sources.

    A source run moves running → extracting → imaging → persisting and ends in
    success or failed. Failures are contained at the smallest unit: one image falls
    back to its original URL, one card's write is counted as failed, and one
    source's exception becomes a failed result. Only configuration errors escape.

    The extractor or the mirror may be omitted for modes that never use them;
    reaching for a missing one raises ConfigurationError.
    """

    def __init__(
        self,
        database: DatabaseManager,
        catalog: CatalogRepository,
        fetcher: PageFetcher,
        extractor: CardExtractor | None,
        image_processor: ImageProcessor,
        mirror: ObjectMirror | None,
        image_limiter: RateLimiter,
        *,
        source_interval: float = 5.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.database = database
        self.catalog = catalog
        self.fetcher = fetcher
        self.extractor = extractor
        self.image_processor = image_processor
        self.mirror = mirror
        self.image_limiter = image_limiter
        self.source_interval = source_interval
        self._sleep = sleep

    async def scrape_all_sources(self, *, mirror_images: bool = True) -> list[ScrapeResult]:
        """Scrape every active source in turn, pausing between sources."""
        sources = await self.database.get_active_sources()
        logger.info("Starting scrape of active sources", source_count=len(sources), mirror_images=mirror_images)

        results: list[ScrapeResult] = []
        for index, source in enumerate(sources):
            if index > 0:
                await self._sleep(self.source_interval)
            results.append(await self.scrape_source(source, mirror_images=mirror_images))

        succeeded = sum(1 for r in results if r.succeeded)
        logger.info(
            "Finished scrape of active sources",
            total=len(results),
            succeeded=succeeded,
            failed=len(results) - succeeded,
        )
        return results

    async def scrape_source(self, source: ScrapeSource, *, mirror_images: bool = True) -> ScrapeResult:
        job_log = await self.database.create_job_log(source.id)
        started_at = job_log.started_at
        stage = RunStage.RUNNING

        with with_source_context(source.id, source.name) as log:
            log.info("Source run started", kind=source.kind.value, base_url=source.base_url, job_log_id=job_log.id)
            try:
                stage = RunStage.EXTRACTING
                cards = await self._extract(source)
                log.info("Extraction stage complete", stage=stage.value, items_found=len(cards))

                if mirror_images:
                    stage = RunStage.IMAGING
                    cards = await self._mirror_images(cards)
                else:
                    log.info("Image mirroring deferred to image sync", items_found=len(cards))

                stage = RunStage.PERSISTING
                # Metadata-only runs carry external URLs; existing rows keep theirs
                summary = await self.catalog.upsert_cards(cards, source, refresh_existing=mirror_images)
                if summary.all_failed:
                    raise RuntimeError(f"All {summary.failed} cards failed to persist")

                await self.database.finalize_job_log(
                    job_log.id,
                    status=RunStatus.SUCCESS,
                    items_found=len(cards),
                    items_created=summary.created,
                    items_updated=summary.updated,
                    scraped_source_id=source.id,
                )
            except ConfigurationError as e:
                await self._finalize_failed(job_log.id, str(e))
                raise
            except Exception as e:
                log.error(
                    "Source run failed",
                    stage=stage.value,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                await self._finalize_failed(job_log.id, str(e))
                return ScrapeResult(
                    source_id=source.id,
                    status=RunStatus.FAILED,
                    error_message=str(e),
                    failed_stage=stage,
                    started_at=started_at,
                    finished_at=utcnow(),
                )

            log.info(
                "Source run succeeded",
                items_found=len(cards),
                items_created=summary.created,
                items_updated=summary.updated,
                items_failed=summary.failed,
            )
            return ScrapeResult(
                source_id=source.id,
                status=RunStatus.SUCCESS,
                items_found=len(cards),
                items_created=summary.created,
                items_updated=summary.updated,
                cards=cards,
                started_at=started_at,
                finished_at=utcnow(),
            )

    async def _extract(self, source: ScrapeSource) -> list[ExtractedCard]:
        config = source.config
        if isinstance(config, LLMSourceConfig):
            if self.extractor is None:
                raise ConfigurationError("No language model configured for card extraction")
            html = await self.fetcher.fetch(source.base_url)
            prompt = config.prompt or default_prompt(source.group_name, source.category)
            return await self.extractor.extract_cards(html, prompt, base_url=source.base_url)
        elif isinstance(config, SelectorSourceConfig):
            logger.warning("Selector-based scraping is not implemented", source_id=source.id)
            return []
        elif isinstance(config, ApiSourceConfig):
            logger.warning("API-based scraping is not implemented", source_id=source.id)
            return []
        else:
            assert_never(config)

    async def sync_images(self, limit: int = 100) -> ImageSyncSummary:
        """Mirror catalog images that still point at their original host.

        Picks up cards stored by metadata-only runs and cards whose mirroring
        failed during a scrape. No model call is made. An entry that fails again
        keeps its external URL and is retried by the next sync.
        """
        mirror = self._require_mirror()
        entries = await self.catalog.list_unmirrored(mirror.public_base_url, limit=limit)
        summary = ImageSyncSummary(total=len(entries))
        logger.info("Starting image sync", pending=summary.total, limit=limit)

        for entry in entries:
            try:
                upload = await self.image_limiter.execute(lambda url=entry.image_url: self._mirror_url(url))
                await self.catalog.set_image_url(entry.id, upload.url)
            except Exception as e:
                summary.failed += 1
                logger.warning(
                    "Image sync failed, entry stays pending",
                    card_name=entry.name,
                    image_url=entry.image_url,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue
            summary.synced += 1

        logger.info("Finished image sync", total=summary.total, synced=summary.synced, failed=summary.failed)
        return summary

    async def _mirror_images(self, cards: list[ExtractedCard]) -> list[ExtractedCard]:
        """Mirror each card's image one at a time; failures keep the original URL."""
        self._require_mirror()
        mirrored: list[ExtractedCard] = []
        for card in cards:
            if not card.image_url:
                mirrored.append(card)
                continue
            try:
                upload = await self.image_limiter.execute(lambda url=card.image_url: self._mirror_url(url))
            except Exception as e:
                logger.warning(
                    "Image mirroring failed, keeping original URL",
                    card_name=card.name,
                    image_url=card.image_url,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                mirrored.append(card)
                continue
            mirrored.append(card.model_copy(update={"image_url": upload.url}))
        return mirrored

    def _require_mirror(self) -> ObjectMirror:
        if self.mirror is None:
            raise ConfigurationError("No object storage configured for image mirroring")
        return self.mirror

    async def _mirror_url(self, image_url: str) -> UploadResult:
        image = await self.image_processor.fetch_and_process(image_url)
        return await self._require_mirror().mirror(image_url, image.data, image_format=image.format)

    async def _finalize_failed(self, log_id: str, error_message: str) -> None:
        try:
            await self.database.finalize_job_log(log_id, status=RunStatus.FAILED, error_message=error_message)
        except JobLogStateError as e:
            logger.warning("Job log already finalized", job_log_id=log_id, error=str(e))
