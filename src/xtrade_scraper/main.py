# ABOUTME: Main CLI application entry point using asyncclick for native async support
# ABOUTME: Provides commands to scrape sources, inspect sources and runs, and classify pages

import sys
from datetime import UTC, datetime

import asyncclick as click
import httpx
from rich.console import Console

from xtrade_scraper.config import get_config
from xtrade_scraper.core.models import ImageSyncSummary, ScrapeMode, ScrapeResult
from xtrade_scraper.persistence import DatabaseManager
from xtrade_scraper.utils.errors import ConfigurationError, ScraperError
from xtrade_scraper.utils.logging import (
    LoggingMode,
    configure_logging,
    get_logging_status,
    with_pipeline_context,
)
from xtrade_scraper.utils.rich_tables import (
    create_logging_status_table,
    create_page_analysis_table,
    create_runs_table,
    create_sources_table,
    print_rich_table,
)

console = Console()


def _print_summary(results: list[ScrapeResult]) -> int:
    """Print one status line per source plus totals; returns the process exit code."""
    console.print()
    console.print("[bold]" + "=" * 50 + "[/bold]")
    console.print("[bold]Summary[/bold]")
    console.print("[bold]" + "=" * 50 + "[/bold]")

    total_found = total_created = total_updated = 0
    succeeded = failed = 0

    for result in results:
        if result.succeeded:
            succeeded += 1
            total_found += result.items_found
            total_created += result.items_created
            total_updated += result.items_updated
            console.print(
                f"[green]✓[/green] {result.source_id}: Found {result.items_found}, "
                f"Created {result.items_created}, Updated {result.items_updated}"
            )
        else:
            failed += 1
            console.print(f"[red]✗[/red] {result.source_id}: Failed")
            if result.error_message:
                console.print(f"  [red]Error: {result.error_message}[/red]")

    console.print()
    console.print(f"Total: {len(results)} sources ({succeeded} success, {failed} failed)")
    console.print(f"Cards: {total_found} found, {total_created} created, {total_updated} updated")
    console.print(f"Finished at: {datetime.now(UTC).isoformat()}")

    return 1 if failed else 0


def _print_sync_summary(summary: ImageSyncSummary) -> int:
    """Print image sync totals; returns the process exit code."""
    console.print()
    console.print("[bold]Image sync[/bold]")
    console.print(f"Total pending: {summary.total}")
    console.print(f"Synced: {summary.synced}")
    console.print(f"Failed: {summary.failed}")

    return 1 if summary.failed else 0


def _make_service():
    from xtrade_scraper.core.service import ScraperService

    return ScraperService()


@click.command()
@click.option(
    "--mode",
    type=click.Choice([m.value for m in ScrapeMode]),
    default=ScrapeMode.ALL.value,
    show_default=True,
    help="all: extract and mirror; metadata: extract only; sync-images: mirror images still on their original host",
)
@click.option("--limit", default=100, show_default=True, help="Maximum images to mirror in sync-images mode")
async def scrape(mode: str, limit: int):
    """
    🕷️ Scrape every active source in turn.

    Exits with status 1 when any source (or, with --mode sync-images, any image) fails.
    """
    scrape_mode = ScrapeMode(mode)
    service = _make_service()
    try:
        with with_pipeline_context("scrape-all", mode=scrape_mode.value) as logger:
            if scrape_mode == ScrapeMode.SYNC_IMAGES:
                logger.info("Starting image sync", limit=limit)
                summary = await service.sync_images(limit=limit)
            else:
                logger.info("Starting scrape of all active sources")
                results = await service.scrape_all(scrape_mode)
    except ConfigurationError as e:
        console.print(f"[red]❌ Fatal configuration error: {e}[/red]")
        sys.exit(1)
    finally:
        await service.close()

    if scrape_mode == ScrapeMode.SYNC_IMAGES:
        sys.exit(_print_sync_summary(summary))
    sys.exit(_print_summary(results))


@click.command(name="scrape-source")
@click.argument("source_id")
@click.option(
    "--mode",
    type=click.Choice([ScrapeMode.ALL.value, ScrapeMode.METADATA.value]),
    default=ScrapeMode.ALL.value,
    show_default=True,
    help="all: extract and mirror; metadata: extract only",
)
async def scrape_source(source_id: str, mode: str):
    """
    🎯 Scrape a single source by ID.
    """
    service = _make_service()
    try:
        with with_pipeline_context("scrape-source", source_id=source_id, mode=mode) as logger:
            logger.info("Starting single source scrape")
            result = await service.scrape_one(source_id, ScrapeMode(mode))
    except ConfigurationError as e:
        console.print(f"[red]❌ Fatal configuration error: {e}[/red]")
        sys.exit(1)
    finally:
        await service.close()

    sys.exit(_print_summary([result]))


@click.command()
async def sources():
    """
    🌐 List configured scrape sources.
    """
    db = DatabaseManager(get_config().database_url)
    try:
        await db.create_tables()
        rows = await db.list_sources()
    finally:
        await db.close()

    if not rows:
        console.print("[yellow]No scrape sources configured.[/yellow]")
        return

    print_rich_table(console, create_sources_table(rows))


@click.command()
@click.option("--source-id", default=None, help="Only show runs for this source")
@click.option("--limit", default=20, show_default=True, help="Maximum number of runs to show")
async def runs(source_id: str | None, limit: int):
    """
    📜 Show recent scrape runs.
    """
    db = DatabaseManager(get_config().database_url)
    try:
        await db.create_tables()
        job_logs = await db.list_job_logs(source_id=source_id, limit=limit)
    finally:
        await db.close()

    if not job_logs:
        console.print("[yellow]No scrape runs recorded.[/yellow]")
        return

    print_rich_table(console, create_runs_table(job_logs))


@click.command(name="analyze-page")
@click.argument("url")
@click.pass_context
async def analyze_page(ctx, url: str):
    """
    🔎 Ask the model whether a page lists cards and which selectors find them.
    """
    service = _make_service()
    try:
        analysis = await service.analyze_page(url)
    except ConfigurationError as e:
        console.print(f"[red]❌ Fatal configuration error: {e}[/red]")
        sys.exit(1)
    except (ScraperError, httpx.HTTPError) as e:
        console.print(f"[red]❌ Could not analyze {url}: {e}[/red]")
        sys.exit(1)
    finally:
        await service.close()

    if ctx.obj["json_output"]:
        click.echo(analysis.model_dump_json(by_alias=True))
        return

    print_rich_table(console, create_page_analysis_table(url, analysis))


@click.command(name="logging-status")
def logging_status():
    """
    📊 Show current logging configuration and status.
    """
    status = get_logging_status(get_config().log_mode)
    logging_table = create_logging_status_table(status)
    print_rich_table(console, logging_table)


def _initialize_logging(json_output: bool, log_level: str | None = None, log_file: str | None = None) -> None:
    """Initialize logging configuration."""
    try:
        config = get_config()
        mode = LoggingMode.PRODUCTION if json_output else config.log_mode

        # Use config defaults when CLI parameters are not provided
        final_log_level = log_level or config.log_level
        final_log_file = log_file or (str(config.log_file) if config.log_file else None)

        configure_logging(mode=mode, log_level=final_log_level, log_file=final_log_file)
    except (FileNotFoundError, PermissionError, OSError):
        # Fall back to stdout logging when log files cannot be opened
        configure_logging(mode=LoggingMode.PRODUCTION, log_level=log_level or "INFO")


@click.group(invoke_without_command=True)
@click.option("--json", is_flag=True, help="Output structured JSON logs instead of rich interface")
@click.option("--log-level", default=None, help="Logging level (DEBUG, INFO, WARNING, ERROR)")
@click.option("--log-file", help="Custom log file path")
@click.pass_context
def app(ctx, json: bool, log_level: str | None, log_file: str | None):
    """
    🃏 XTrade Scraper - Card catalog ingestion

    Discover card images on configured sources, mirror them into owned
    storage and keep the canonical catalog up to date.
    """
    ctx.ensure_object(dict)
    ctx.obj["json_output"] = json

    _initialize_logging(json, log_level, log_file)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


app.add_command(scrape)
app.add_command(scrape_source)
app.add_command(sources)
app.add_command(runs)
app.add_command(analyze_page)
app.add_command(logging_status)


if __name__ == "__main__":
    app()
