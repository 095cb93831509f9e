# ABOUTME: Persistence models for scrape sources, job logs and canonical catalog entries
# ABOUTME: Only the narrow slice of the marketplace schema the scraping pipeline reads and writes

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlmodel import Column, Field, SQLModel

from xtrade_scraper.core.models import (
    ApiSourceConfig,
    EntrySource,
    LLMSourceConfig,
    RunStatus,
    SelectorSourceConfig,
    SourceConfig,
    SourceKind,
)
from xtrade_scraper.persistence.json_types import PydanticJson


def utcnow() -> datetime:
    """Returns the current UTC timestamp."""

    return datetime.now(UTC)


def new_id() -> str:
    return str(uuid.uuid4())


class ScrapeSource(SQLModel, table=True):
    """A configured external origin to scrape. Edited outside the pipeline."""

    __tablename__ = "scrape_source"  # type: ignore[assignment]

    id: str = Field(default_factory=new_id, primary_key=True)
    name: str = Field(description="Human readable source name")
    base_url: str = Field(description="Listing page fetched for this source")
    category: str | None = Field(default=None, description="Catalog category, used in the default prompt")
    group_name: str | None = Field(default=None, description="Group the source's cards belong to")
    config: SelectorSourceConfig | LLMSourceConfig | ApiSourceConfig = Field(
        default_factory=LLMSourceConfig,
        sa_column=Column(PydanticJson(SourceConfig), nullable=False),
        description="Kind-tagged extraction configuration",
    )
    is_active: bool = Field(default=True, index=True)
    last_scraped_at: datetime | None = Field(default=None, description="Stamped after each completed run")
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def kind(self) -> SourceKind:
        return SourceKind(self.config.kind)


class ScrapeLog(SQLModel, table=True):
    """One row per source run: created running, finalized exactly once."""

    __tablename__ = "scrape_log"  # type: ignore[assignment]

    id: str = Field(default_factory=new_id, primary_key=True)
    source_id: str = Field(index=True, foreign_key="scrape_source.id")
    status: RunStatus = Field(default=RunStatus.RUNNING)
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: datetime | None = Field(default=None)
    items_found: int = Field(default=0)
    items_created: int = Field(default=0)
    items_updated: int = Field(default=0)
    error_message: str | None = Field(default=None)


class CatalogEntry(SQLModel, table=True):
    """Canonical record for one distinct card, identified by ``name``."""

    __tablename__ = "catalog_entry"  # type: ignore[assignment]

    id: str = Field(default_factory=new_id, primary_key=True)
    name: str = Field(unique=True, index=True, description="Identity key")
    normalized_name: str | None = Field(default=None, index=True, description="Search form of the name")
    group_name: str | None = Field(default=None)
    member_name: str | None = Field(default=None)
    series: str | None = Field(default=None)
    rarity: str | None = Field(default=None)
    release_date: str | None = Field(default=None)
    image_url: str = Field(description="Mirrored URL, or the original external URL when mirroring failed")
    source: EntrySource = Field(default=EntrySource.SCRAPE)
    source_url: str | None = Field(default=None)
    verified: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
