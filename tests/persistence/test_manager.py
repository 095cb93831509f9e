# ABOUTME: Tests for DatabaseManager source and job log operations
# ABOUTME: Job logs must be created running and finalized exactly once

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel.ext.asyncio.session import AsyncSession

from xtrade_scraper.core.models import (
    ApiSourceConfig,
    LLMSourceConfig,
    RunStatus,
    SelectorSourceConfig,
    SourceKind,
)
from xtrade_scraper.extraction.base import SelectorSet
from xtrade_scraper.utils.errors import JobLogStateError


@pytest.mark.asyncio
async def test_source_config_round_trips_as_variant(temp_db):
    created = await temp_db.add_source(
        name="Selector Shop",
        base_url="https://shop.example.com",
        config=SelectorSourceConfig(selectors=SelectorSet(card_list=".grid", card_name=".name"), max_pages=3),
    )

    loaded = await temp_db.get_source(created.id)

    assert isinstance(loaded.config, SelectorSourceConfig)
    assert loaded.kind == SourceKind.SELECTOR
    assert loaded.config.selectors.card_list == ".grid"
    assert loaded.config.max_pages == 3


@pytest.mark.asyncio
async def test_active_sources_exclude_inactive(temp_db):
    await temp_db.add_source(name="A", base_url="https://a.example.com", config=LLMSourceConfig(prompt="p"))
    await temp_db.add_source(name="B", base_url="https://b.example.com", is_active=False)
    await temp_db.add_source(name="C", base_url="https://c.example.com", config=ApiSourceConfig(api_endpoint="x"))

    active = await temp_db.get_active_sources()

    assert [s.name for s in active] == ["A", "C"]
    assert [s.kind for s in active] == [SourceKind.LLM, SourceKind.API]
    assert len(await temp_db.list_sources()) == 3


@pytest.mark.asyncio
async def test_successful_finalize_stamps_source(temp_db):
    source = await temp_db.add_source(name="A", base_url="https://a.example.com")
    assert source.last_scraped_at is None
    job_log = await temp_db.create_job_log(source.id)

    finalized = await temp_db.finalize_job_log(job_log.id, status=RunStatus.SUCCESS, scraped_source_id=source.id)

    stamped = await temp_db.get_source(source.id)
    assert stamped.last_scraped_at == finalized.finished_at


@pytest.mark.asyncio
async def test_failed_commit_leaves_log_running_and_source_unstamped(temp_db):
    source = await temp_db.add_source(name="A", base_url="https://a.example.com")
    job_log = await temp_db.create_job_log(source.id)
    failing_commit = AsyncMock(side_effect=OperationalError("UPDATE scrape_log", {}, Exception("disk I/O error")))

    with patch.object(AsyncSession, "commit", failing_commit), pytest.raises(OperationalError):
        await temp_db.finalize_job_log(job_log.id, status=RunStatus.SUCCESS, scraped_source_id=source.id)

    assert (await temp_db.get_job_log(job_log.id)).status == RunStatus.RUNNING
    assert (await temp_db.get_source(source.id)).last_scraped_at is None


@pytest.mark.asyncio
async def test_job_log_lifecycle(temp_db):
    source = await temp_db.add_source(name="A", base_url="https://a.example.com")

    job_log = await temp_db.create_job_log(source.id)
    assert job_log.status == RunStatus.RUNNING
    assert job_log.finished_at is None

    finalized = await temp_db.finalize_job_log(
        job_log.id, status=RunStatus.SUCCESS, items_found=3, items_created=2, items_updated=1
    )

    assert finalized.status == RunStatus.SUCCESS
    assert finalized.finished_at is not None
    assert finalized.finished_at >= finalized.started_at
    assert (finalized.items_found, finalized.items_created, finalized.items_updated) == (3, 2, 1)


@pytest.mark.asyncio
async def test_job_log_finalized_only_once(temp_db):
    source = await temp_db.add_source(name="A", base_url="https://a.example.com")
    job_log = await temp_db.create_job_log(source.id)
    await temp_db.finalize_job_log(job_log.id, status=RunStatus.FAILED, error_message="boom")

    with pytest.raises(JobLogStateError):
        await temp_db.finalize_job_log(job_log.id, status=RunStatus.SUCCESS)

    stored = await temp_db.get_job_log(job_log.id)
    assert stored.status == RunStatus.FAILED
    assert stored.error_message == "boom"


@pytest.mark.asyncio
async def test_cannot_finalize_as_running_or_unknown(temp_db):
    with pytest.raises(JobLogStateError):
        await temp_db.finalize_job_log("missing", status=RunStatus.SUCCESS)

    source = await temp_db.add_source(name="A", base_url="https://a.example.com")
    job_log = await temp_db.create_job_log(source.id)
    with pytest.raises(JobLogStateError):
        await temp_db.finalize_job_log(job_log.id, status=RunStatus.RUNNING)


@pytest.mark.asyncio
async def test_list_job_logs_filters_by_source(temp_db):
    a = await temp_db.add_source(name="A", base_url="https://a.example.com")
    b = await temp_db.add_source(name="B", base_url="https://b.example.com")
    await temp_db.create_job_log(a.id)
    await temp_db.create_job_log(b.id)
    await temp_db.create_job_log(a.id)

    assert len(await temp_db.list_job_logs()) == 3
    assert {log.source_id for log in await temp_db.list_job_logs(source_id=a.id)} == {a.id}
    assert len(await temp_db.list_job_logs(limit=1)) == 1
