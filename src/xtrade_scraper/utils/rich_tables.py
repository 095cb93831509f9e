# ABOUTME: Rich table builders for operator-facing CLI output
# ABOUTME: Sources, job logs, page analysis and logging status displays

from datetime import datetime
from typing import Any

from rich.box import ROUNDED
from rich.console import Console
from rich.table import Table

STATUS_BADGES = {"success": "✅ success", "failed": "❌ failed", "running": "⏳ running"}


def _format_time(value: datetime | None, missing: str = "never") -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else missing


def _titled_table(title: str, title_style: str, *, expand: bool, **options: Any) -> Table:
    return Table(
        title=f"[{title_style}]{title}[/{title_style}]",
        title_justify="left",
        box=ROUNDED,
        border_style="cyan",
        show_header=True,
        expand=expand,
        **options,
    )


def create_key_value_table(
    title: str,
    data: dict[str, Any],
    title_style: str = "bold cyan",
    key_style: str = "bold blue",
    value_style: str = "green",
) -> Table:
    """Two columns, one row per ``data`` item; values are stringified."""
    table = _titled_table(title, title_style, expand=False, header_style="bold magenta")
    table.add_column("Field", style=key_style)
    table.add_column("Value", style=value_style)
    for key, value in data.items():
        table.add_row(key, str(value))
    return table


def create_multi_column_table(
    title: str,
    columns: list[tuple[str, str]],
    rows: list[list[str]],
    title_style: str = "bold cyan",
    header_style: str = "bold magenta",
) -> Table:
    """Full-width table with zebra-striped rows.

    Args:
        title: Table title, may contain emoji
        columns: (header, style) pairs in display order
        rows: Cell text per row, in column order
        title_style: Style for the title
        header_style: Style for the header row
    """
    table = _titled_table(title, title_style, expand=True, header_style=header_style, row_styles=["", "dim"])
    for header, style in columns:
        table.add_column(header, style=style)
    for row in rows:
        table.add_row(*row)
    return table


def create_sources_table(sources: list[Any]) -> Table:
    """Configured scrape sources with their kind and last run time."""
    rows = [
        [
            source.id,
            source.name,
            source.kind.value,
            "✅" if source.is_active else "⏸️",
            source.base_url,
            _format_time(source.last_scraped_at),
        ]
        for source in sources
    ]
    return create_multi_column_table(
        title="🌐 Scrape Sources",
        columns=[
            ("ID", "dim"),
            ("Name", "bold cyan"),
            ("Kind", "magenta"),
            ("Active", "green"),
            ("Base URL", "blue"),
            ("Last Scraped", "yellow"),
        ],
        rows=rows,
    )


def create_runs_table(job_logs: list[Any]) -> Table:
    """Recent job logs, newest first."""
    rows = []
    for job_log in job_logs:
        rows.append(
            [
                job_log.source_id,
                STATUS_BADGES.get(job_log.status.value, job_log.status.value),
                _format_time(job_log.started_at),
                _format_time(job_log.finished_at, missing="-"),
                str(job_log.items_found),
                str(job_log.items_created),
                str(job_log.items_updated),
                job_log.error_message or "",
            ]
        )
    return create_multi_column_table(
        title="📜 Scrape Runs",
        columns=[
            ("Source", "dim"),
            ("Status", "bold"),
            ("Started", "yellow"),
            ("Finished", "yellow"),
            ("Found", "cyan"),
            ("Created", "green"),
            ("Updated", "blue"),
            ("Error", "red"),
        ],
        rows=rows,
    )


def create_page_analysis_table(url: str, analysis: Any) -> Table:
    data = {
        "🔗 URL": url,
        "🃏 Card List Page": "✅ Yes" if analysis.is_card_list_page else "❌ No",
        "💬 Reason": analysis.reason or "N/A",
    }
    selectors = analysis.suggested_selectors
    if selectors is not None:
        data["📦 Card List"] = selectors.card_list or "N/A"
        data["🏷️ Card Name"] = selectors.card_name or "N/A"
        data["🖼️ Card Image"] = selectors.card_image or "N/A"
        data["➡️ Next Page"] = selectors.next_page or "N/A"

    return create_key_value_table(title="🔎 Page Analysis", data=data)


def create_logging_status_table(status: dict[str, Any]) -> Table:
    """Logging mode, sink locations and the third-party loggers kept quiet."""
    log_files = status["log_files"]
    data = {
        "🔧 Mode": status["mode"].title(),
        "📁 Log Directory": status["log_directory"] or "N/A (production mode)",
    }
    for key, label in (("main", "📝 Main Log"), ("json", "📊 JSON Log"), ("errors", "🚨 Error Log")):
        if log_files.get(key):
            data[label] = log_files[key]
    data["🔇 Suppressed Libraries"] = ", ".join(status["third_party_suppressed"])

    return create_key_value_table(
        title="🔍 Logging Configuration",
        data=data,
        title_style="bold green",
        key_style="blue",
        value_style="white",
    )


def print_rich_table(console: Console, table: Table) -> None:
    """Print a rich table with consistent spacing."""
    console.print()
    console.print(table)
    console.print()
