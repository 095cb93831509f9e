# ABOUTME: Catalog repository: idempotent upsert of canonical entries keyed by card name
# ABOUTME: Scrapes only ever overwrite image_url, source_url and source on existing rows

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from xtrade_scraper.core.models import EntrySource
from xtrade_scraper.extraction.base import ExtractedCard
from xtrade_scraper.persistence.manager import DatabaseManager
from xtrade_scraper.persistence.models import CatalogEntry, ScrapeSource, utcnow
from xtrade_scraper.utils.logging import get_logger

logger = get_logger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: str) -> str:
    """Search form of a card name: NFKC, lower-cased, whitespace removed."""
    return _WHITESPACE.sub("", unicodedata.normalize("NFKC", name).lower())


@dataclass(slots=True)
class UpsertSummary:
    """Counts from upserting one batch of cards."""

    created: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0

    @property
    def attempted(self) -> int:
        return self.created + self.updated + self.unchanged + self.failed

    @property
    def all_failed(self) -> bool:
        return self.failed > 0 and self.failed == self.attempted


class CatalogRepository:
    """Idempotent writes of extracted cards into the catalog."""

    def __init__(self, database: DatabaseManager):
        self.database = database

    async def get_by_identity(self, name: str) -> CatalogEntry | None:
        async with self.database.async_session() as session:
            return await self._find(session, name)

    async def _find(self, session: AsyncSession, name: str) -> CatalogEntry | None:
        result = await session.exec(select(CatalogEntry).where(CatalogEntry.name == name))
        return result.first()

    async def upsert_card(
        self, card: ExtractedCard, source: ScrapeSource | None = None, *, refresh_existing: bool = True
    ) -> str:
        """Insert or refresh one card; returns "created", "updated" or "unchanged".

        Only ``image_url`` decides whether an existing row changes. Curated fields
        such as series, rarity and verification are never overwritten. With
        ``refresh_existing=False`` existing rows are left alone entirely.
        """
        source_url = card.source_url or (source.base_url if source else None)

        async with self.database.session() as session:
            existing = await self._find(session, card.name)

            if existing is None:
                session.add(
                    CatalogEntry(
                        name=card.name,
                        normalized_name=normalize_name(card.name),
                        group_name=card.group_name or (source.group_name if source else None),
                        member_name=card.member_name,
                        series=card.series,
                        rarity=card.rarity,
                        release_date=card.release_date,
                        image_url=card.image_url,
                        source=EntrySource.SCRAPE,
                        source_url=source_url,
                        verified=False,
                    )
                )
                return "created"

            if not refresh_existing or existing.image_url == card.image_url:
                return "unchanged"

            existing.image_url = card.image_url
            existing.source_url = source_url
            existing.source = EntrySource.SCRAPE
            existing.updated_at = utcnow()
            session.add(existing)
            return "updated"

    async def upsert_cards(
        self, cards: list[ExtractedCard], source: ScrapeSource | None = None, *, refresh_existing: bool = True
    ) -> UpsertSummary:
        """Upsert a batch; each card commits on its own so one bad row cannot sink the rest."""
        summary = UpsertSummary()

        for card in cards:
            try:
                outcome = await self.upsert_card(card, source, refresh_existing=refresh_existing)
            except SQLAlchemyError as e:
                summary.failed += 1
                logger.error(
                    "Failed to persist card",
                    card_name=card.name,
                    source_id=source.id if source else None,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            if outcome == "created":
                summary.created += 1
            elif outcome == "updated":
                summary.updated += 1
            else:
                summary.unchanged += 1

        logger.info(
            "Catalog upsert complete",
            source_id=source.id if source else None,
            created=summary.created,
            updated=summary.updated,
            unchanged=summary.unchanged,
            failed=summary.failed,
        )
        return summary

    async def list_unmirrored(self, mirrored_prefix: str, limit: int = 100) -> list[CatalogEntry]:
        """Entries whose image is not served from ``mirrored_prefix``, oldest first."""
        async with self.database.async_session() as session:
            statement = (
                select(CatalogEntry)
                .where(~col(CatalogEntry.image_url).startswith(mirrored_prefix, autoescape=True))
                .order_by(col(CatalogEntry.created_at))
                .limit(limit)
            )
            result = await session.exec(statement)
            return list(result.all())

    async def set_image_url(self, entry_id: str, image_url: str) -> None:
        """Point an entry at its mirrored image; no other field changes."""
        async with self.database.session() as session:
            entry = await session.get(CatalogEntry, entry_id)
            if entry is None:
                logger.warning("Cannot update image of unknown catalog entry", entry_id=entry_id)
                return
            entry.image_url = image_url
            entry.updated_at = utcnow()
            session.add(entry)
