# ABOUTME: Database manager for scrape sources and job logs
# ABOUTME: Owns the async engine and session factory shared with the catalog repository

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlmodel import SQLModel, select
from sqlmodel.ext.asyncio.session import AsyncSession

from xtrade_scraper.core.models import LLMSourceConfig, RunStatus, SourceConfig
from xtrade_scraper.persistence.models import ScrapeLog, ScrapeSource, utcnow
from xtrade_scraper.utils.errors import JobLogStateError
from xtrade_scraper.utils.logging import get_logger


def _ensure_sqlite_directory(database_url: str) -> None:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)


class DatabaseManager:
    """Manages async database operations for sources and scrape runs."""

    def __init__(self, database_url: str = "sqlite+aiosqlite:///./data/xtrade_catalog.db"):
        self.database_url = database_url
        self.logger = get_logger(__name__)
        _ensure_sqlite_directory(database_url)
        self.engine = create_async_engine(database_url, echo=False)
        self.async_session = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def create_tables(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    # --- Sources ---------------------------------------------------------------------
    async def add_source(
        self,
        *,
        name: str,
        base_url: str,
        config: SourceConfig | None = None,
        category: str | None = None,
        group_name: str | None = None,
        is_active: bool = True,
    ) -> ScrapeSource:
        """Register a source. Sources are normally managed by an operator."""
        async with self.async_session() as session:
            source = ScrapeSource(
                name=name,
                base_url=base_url,
                config=config or LLMSourceConfig(),
                category=category,
                group_name=group_name,
                is_active=is_active,
            )
            session.add(source)
            await session.commit()
            await session.refresh(source)
            return source

    async def get_source(self, source_id: str) -> ScrapeSource | None:
        async with self.async_session() as session:
            return await session.get(ScrapeSource, source_id)

    async def list_sources(self) -> list[ScrapeSource]:
        async with self.async_session() as session:
            result = await session.exec(select(ScrapeSource).order_by(ScrapeSource.created_at))
            return list(result.all())

    async def get_active_sources(self) -> list[ScrapeSource]:
        """Active sources in registration order."""
        async with self.async_session() as session:
            statement = (
                select(ScrapeSource)
                .where(ScrapeSource.is_active == True)  # noqa: E712
                .order_by(ScrapeSource.created_at)
            )
            result = await session.exec(statement)
            return list(result.all())

    # --- Job logs --------------------------------------------------------------------
    async def create_job_log(self, source_id: str) -> ScrapeLog:
        """Open a job log in the running state."""
        async with self.async_session() as session:
            job_log = ScrapeLog(source_id=source_id, status=RunStatus.RUNNING)
            session.add(job_log)
            await session.commit()
            await session.refresh(job_log)
            return job_log

    async def finalize_job_log(
        self,
        log_id: str,
        *,
        status: RunStatus,
        items_found: int = 0,
        items_created: int = 0,
        items_updated: int = 0,
        error_message: str | None = None,
        scraped_source_id: str | None = None,
    ) -> ScrapeLog:
        """Move a running job log to its terminal status.

        A job log is finalized exactly once; a second attempt raises
        ``JobLogStateError`` and leaves the stored row untouched. When
        ``scraped_source_id`` is given, that source's ``last_scraped_at`` is
        stamped in the same transaction, so the stamp and the terminal status
        are committed together or not at all.
        """
        if status == RunStatus.RUNNING:
            raise JobLogStateError("Job logs cannot be finalized as running")

        async with self.async_session() as session:
            job_log = await session.get(ScrapeLog, log_id)
            if job_log is None:
                raise JobLogStateError(f"Job log {log_id} does not exist")
            if job_log.status != RunStatus.RUNNING:
                raise JobLogStateError(f"Job log {log_id} is already {job_log.status.value}")

            finished_at = utcnow()
            if scraped_source_id is not None:
                source = await session.get(ScrapeSource, scraped_source_id)
                if source is None:
                    self.logger.warning("Cannot stamp unknown source", source_id=scraped_source_id)
                else:
                    source.last_scraped_at = finished_at
                    session.add(source)

            job_log.status = status
            job_log.finished_at = finished_at
            job_log.items_found = items_found
            job_log.items_created = items_created
            job_log.items_updated = items_updated
            job_log.error_message = error_message
            session.add(job_log)
            await session.commit()
            await session.refresh(job_log)
            return job_log

    async def get_job_log(self, log_id: str) -> ScrapeLog | None:
        async with self.async_session() as session:
            return await session.get(ScrapeLog, log_id)

    async def list_job_logs(self, source_id: str | None = None, limit: int = 20) -> list[ScrapeLog]:
        """Return job logs, newest first."""
        async with self.async_session() as session:
            statement = select(ScrapeLog)
            if source_id is not None:
                statement = statement.where(ScrapeLog.source_id == source_id)
            statement = statement.order_by(ScrapeLog.started_at.desc()).limit(limit)  # type: ignore[attr-defined]
            result = await session.exec(statement)
            return list(result.all())

    async def close(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield an async session that commits on success and rolls back on error."""
        async with self.async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
