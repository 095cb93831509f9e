# ABOUTME: Database operations and data persistence layer
# ABOUTME: Sources, job logs and canonical catalog entries stored through SQLModel

"""
Persistence Layer: Save and retrieve pipeline state

This layer handles:
- SQLModel tables for sources, job logs and catalog entries
- Job log lifecycle (created running, finalized exactly once)
- Idempotent catalog upserts keyed by card name

Data Flow: extraction/ + media/ output → Database → core/ reporting
"""

from .catalog import CatalogRepository, UpsertSummary, normalize_name
from .json_types import PydanticJson
from .manager import DatabaseManager
from .models import CatalogEntry, ScrapeLog, ScrapeSource

__all__ = [
    "CatalogEntry",
    "CatalogRepository",
    "DatabaseManager",
    "PydanticJson",
    "ScrapeLog",
    "ScrapeSource",
    "UpsertSummary",
    "normalize_name",
]
