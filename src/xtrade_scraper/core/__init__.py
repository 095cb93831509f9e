# ABOUTME: Business logic and orchestration layer
# ABOUTME: Pipeline Stage 3: Extracted cards → Mirrored images → Catalog entries and job logs

"""
Core Layer: Domain models and workflow orchestration

This layer handles:
- Source configuration variants and run outcomes
- Per-source stage sequencing and job log bookkeeping
- Service APIs used by the CLI

Data Flow: extraction/ + media/ → persistence/ → operator console
"""

from .models import (
    ApiSourceConfig,
    EntrySource,
    ImageSyncSummary,
    LLMSourceConfig,
    RunStage,
    RunStatus,
    ScrapeMode,
    ScrapeResult,
    SelectorSourceConfig,
    SourceConfig,
    SourceKind,
)

# Import orchestration on-demand to avoid circular imports
# Use: from xtrade_scraper.core.service import ScraperService

__all__ = [
    "ApiSourceConfig",
    "EntrySource",
    "ImageSyncSummary",
    "LLMSourceConfig",
    "RunStage",
    "RunStatus",
    "ScrapeMode",
    "ScrapeResult",
    "SelectorSourceConfig",
    "SourceConfig",
    "SourceKind",
]
