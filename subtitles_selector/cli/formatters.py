"""
Rich renderings for the CLI: error panels, config, cache listings and badges.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from subtitles_selector.models.config import AppConfig
from subtitles_selector.models.records import CacheRecord, SettingsRecord, TokenRecord
from subtitles_selector.storage.notifier import CACHED_LABEL
from subtitles_selector.utils.formatting import format_age, format_size, format_timestamp

HINTS: dict[str, list[str]] = {
    "AuthRequiredError": [
        "Log in again: subsel init <API_KEY> --token <TOKEN>",
        "Stored tokens are re-checked with the server after 30 days.",
    ],
    "SubtitleNotFoundError": [
        "Use the file_id of a search result, not the subtitle id.",
        "The file may have been removed from OpenSubtitles.",
    ],
    "NetworkError": [
        "OpenSubtitles could not be reached. Check your connection.",
        "Cached subtitles stay available offline: subsel cache",
    ],
    "UpstreamError": [
        "The API may be down or your daily download quota used up.",
        "Retry later; subsel diagnose shows the API status.",
    ],
    "ConfigurationError": [
        "Create a configuration with subsel init <API_KEY>.",
        "subsel validate shows the values in use.",
    ],
    "StorageUnavailableError": [
        "The cache database could not be opened; downloads still work uncached.",
    ],
}


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Wraps an error and the matching hints in a red panel."""
    name = type(error).__name__
    hints = HINTS.get(name, ["Re-run with -vv to see debug logs."])

    body = Table.grid(padding=(0, 1))
    body.add_row(Text.assemble((f"{name}: ", "bold red"), str(error)))
    body.add_row("")
    for hint in hints:
        body.add_row(Text(f"→ {hint}", style="yellow"))
    if context:
        body.add_row(Text(", ".join(f"{k}={v}" for k, v in context.items()), style="dim"))

    return Panel(body, title="[bold red]subsel failed[/bold red]", border_style="red", expand=False)


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Shows config.ini values with the API key masked."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="cyan")
    table.add_column()
    for key, value in config_data.items():
        if key == "api_key" and value:
            value = f"{value[:4]}{'*' * max(0, len(value) - 4)}"
        table.add_row(key, str(value))
    Console().print(Panel(table, title=str(config_path), border_style="cyan"))


def print_validation_table(config: AppConfig, token: TokenRecord | None):
    """Summarizes the loaded config and the login state."""
    rows = [
        ("Endpoint", config.api_endpoint),
        ("User-Agent", config.user_agent),
        ("Prefetch", f"{config.prefetch_workers} concurrent"),
        ("Save to", config.download_dir or "[dim]current directory[/dim]"),
        (
            "Token",
            f"[green]stored {format_age(token.timestamp)}[/green]"
            if token
            else "[red]not logged in[/red]",
        ),
    ]
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()
    for label, value in rows:
        table.add_row(label, value)
    Console().print(Panel(table, title="[green]config.ini OK[/green]", border_style="green"))


def print_cache_table(records: list[CacheRecord], capacity: int):
    """Lists cached subtitles, oldest first (next to be evicted on top)."""
    console = Console()
    if not records:
        console.print("[dim]The subtitle cache is empty.[/dim]")
        return

    table = Table(
        title=f"Cached Subtitles ({len(records)}/{capacity})",
        box=box.SIMPLE_HEAVY,
    )
    table.add_column("#", style="dim", justify="right")
    table.add_column("File ID", style="cyan")
    table.add_column("Title")
    table.add_column("Lang", style="magenta")
    table.add_column("Size", justify="right", style="green")
    table.add_column("Cached", style="dim")
    for i, record in enumerate(records, 1):
        table.add_row(
            str(i),
            record.id,
            record.display_title,
            record.language or "-",
            format_size(len(record.content.encode("utf-8"))),
            f"{format_timestamp(record.timestamp)} ({format_age(record.timestamp)})",
        )
    console.print(table)


def print_status_table(statuses: dict[str, str]):
    """Shows one cache badge per subtitle id."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold")
    table.add_column()
    for subtitle_id, label in statuses.items():
        colour = "green" if label == CACHED_LABEL else "grey50"
        table.add_row(subtitle_id, f"[{colour}]● {label}[/{colour}]")
    console.print(table)


def print_settings_panel(settings: SettingsRecord):
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()
    for key, value in settings.model_dump(exclude={"id"}).items():
        table.add_row(key, str(value))
    console.print(Panel(table, title="Overlay Settings", border_style="cyan"))


def print_languages_table(languages: list[dict[str, Any]]):
    console = Console()
    if not languages:
        console.print("[dim]No languages cached.[/dim]")
        return
    table = Table(title="Languages", box=box.SIMPLE)
    table.add_column("Code", style="cyan")
    table.add_column("Name")
    for language in languages:
        table.add_row(
            str(language.get("language_code", "?")),
            str(language.get("language_name", "")),
        )
    console.print(table)
