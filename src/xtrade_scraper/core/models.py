# ABOUTME: Domain models for the scraping pipeline: source configuration variants and run outcomes
# ABOUTME: Source kinds form a closed discriminated union so dispatch over them is exhaustive

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, Field

from xtrade_scraper.extraction.base import ExtractedCard, SelectorSet


class SourceKind(str, Enum):
    """Extraction strategy of a source."""

    SELECTOR = "selector"
    LLM = "llm"
    API = "api"


class RunStatus(str, Enum):
    """Persisted status of one job log."""

    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class RunStage(str, Enum):
    """Progress of a single source run; SUCCESS and FAILED are terminal."""

    RUNNING = "running"
    EXTRACTING = "extracting"
    IMAGING = "imaging"
    PERSISTING = "persisting"
    SUCCESS = "success"
    FAILED = "failed"


class ScrapeMode(str, Enum):
    """What one scrape invocation does."""

    ALL = "all"
    # Extract and persist only; images keep their original URLs
    METADATA = "metadata"
    # Mirror catalog images that still point at their original host
    SYNC_IMAGES = "sync-images"


class EntrySource(str, Enum):
    """Origin of a catalog entry."""

    SEED = "seed"
    USER = "user"
    SCRAPE = "scrape"


class _SourceConfigBase(BaseModel):
    rate_limit: float | None = Field(default=None, description="Hint: seconds between requests to this source")
    max_pages: int | None = Field(default=None, description="Hint: maximum listing pages to visit")


class SelectorSourceConfig(_SourceConfigBase):
    """CSS-selector scraping. Declared for configuration; extraction is not implemented."""

    kind: Literal["selector"] = "selector"
    selectors: SelectorSet = Field(default_factory=SelectorSet)


class LLMSourceConfig(_SourceConfigBase):
    """Generative-model extraction from the fetched page."""

    kind: Literal["llm"] = "llm"
    prompt: str | None = Field(default=None, description="Source-specific instructions for the model")


class ApiSourceConfig(_SourceConfigBase):
    """Structured API ingestion. Declared for configuration; extraction is not implemented."""

    kind: Literal["api"] = "api"
    api_endpoint: str | None = None
    api_key: str | None = None


SourceConfig = Annotated[
    SelectorSourceConfig | LLMSourceConfig | ApiSourceConfig,
    Field(discriminator="kind"),
]


class ScrapeResult(BaseModel):
    """Outcome of one source run as reported to the operator."""

    source_id: str
    status: RunStatus
    items_found: int = 0
    items_created: int = 0
    items_updated: int = 0
    cards: list[ExtractedCard] = Field(default_factory=list)
    error_message: str | None = None
    failed_stage: RunStage | None = None
    started_at: datetime
    finished_at: datetime

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.SUCCESS


class ImageSyncSummary(BaseModel):
    """Outcome of one image sync pass over the catalog."""

    total: int = 0
    synced: int = 0
    failed: int = 0
