"""
Typer commands for subsel. Each command opens the store once, does its work
through SubtitleCache or a repository, and closes it again.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from subtitles_selector import __version__
from subtitles_selector.api.auth import OpenSubtitlesAuthenticator
from subtitles_selector.api.client import OpenSubtitlesClient
from subtitles_selector.core.subtitle_loader import SubtitleLoader
from subtitles_selector.exceptions import (
    ConfigurationError,
    RemoteFetchError,
    StorageUnavailableError,
    SubtitlesSelectorError,
)
from subtitles_selector.models.config import API_HOSTS, AppConfig
from subtitles_selector.models.records import CacheRecord
from subtitles_selector.models.session import SessionState
from subtitles_selector.storage.config_manager import ConfigManager
from subtitles_selector.storage.notifier import CACHED_LABEL, CacheStatusNotifier, badge
from subtitles_selector.storage.repositories import (
    LanguageListRepository,
    SettingsRepository,
    TokenRepository,
)
from subtitles_selector.storage.store import SqliteStore
from subtitles_selector.storage.subtitle_cache import SubtitleCache
from subtitles_selector.utils.path import get_config_dir

from .formatters import (
    print_cache_table,
    print_config,
    print_languages_table,
    print_settings_panel,
    print_status_table,
    print_validation_table,
)

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("subtitles_selector")

app = typer.Typer(
    name="subsel",
    help=(
        "Fetch OpenSubtitles files by id through a bounded local cache. Use 'subsel"
        " <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)

CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


@dataclass
class Services:
    """Everything a command needs, wired around one store handle."""

    store: SqliteStore | None
    notifier: CacheStatusNotifier
    cache: SubtitleCache
    tokens: TokenRepository
    settings: SettingsRepository
    languages: LanguageListRepository

    async def close(self) -> None:
        await self.notifier.drain()
        if self.store:
            await self.store.close()


async def open_services(config_dir: Path | None = None) -> Services:
    """Opens the store once and builds the cache and repositories on it."""
    store: SqliteStore | None = SqliteStore.in_config_dir(config_dir or CONFIG_DIR)
    try:
        await store.open()
    except StorageUnavailableError as e:
        log.warning(f"[yellow]⚠️  Local cache disabled: {e}[/yellow]")
        store = None

    notifier = CacheStatusNotifier()
    return Services(
        store=store,
        notifier=notifier,
        cache=SubtitleCache(store, notifier),
        tokens=TokenRepository(store),
        settings=SettingsRepository(store),
        languages=LanguageListRepository(store),
    )


def _load_config() -> AppConfig:
    try:
        return ConfigManager(CONFIG_FILE).load_config()
    except SubtitlesSelectorError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e


def _build_client(config: AppConfig) -> OpenSubtitlesClient:
    return OpenSubtitlesClient(
        config.api_key, user_agent=config.user_agent, base_url=config.base_url
    )


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="More output; -vv shows cache hits, misses and API calls.",
    ),
    version: bool = typer.Option(
        False, "--version", help="Print the version.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Print config.ini with the API key masked."
    ),
):
    """Subtitles Selector CLI"""
    if version:
        console.print(f"[bold]subtitles-selector[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "DEBUG" if verbose >= 2 else "INFO"
    logging.getLogger("subtitles_selector").setLevel(log_level)

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]subsel init[/cyan] first."
            )
            raise typer.Exit(code=1)
        config_manager = ConfigManager(CONFIG_FILE)
        config_manager.load_config()
        print_config(CONFIG_FILE, config_manager.get_config_as_dict())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    api_key: str = typer.Argument(..., help="Your OpenSubtitles consumer API key."),
    token: str | None = typer.Option(None, "--token", help="An existing API token."),
    username: str | None = typer.Option(None, "--username", "-u", help="Account name."),
    password: str | None = typer.Option(None, "--password", "-p", help="Account password."),
    base_url: str = typer.Option(
        API_HOSTS[0], "--base-url", help=f"API host: {' or '.join(API_HOSTS)}."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration without asking."
    ),
):
    """Write the configuration and, optionally, log in."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()
    if username and not password:
        console.print("[red]✗ --username requires --password.[/red]")
        raise typer.Exit(code=1)

    config_manager = ConfigManager(CONFIG_FILE)
    config_manager.save_new_config({"api_key": api_key, "base_url": base_url})
    config = config_manager.load_config()
    console.print(f"[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")

    if not token and not username:
        console.print("[dim]No login given; cached subtitles only until you log in.[/dim]")
        return

    async def _login():
        services = await open_services()
        try:
            async with _build_client(config) as client:
                authenticator = OpenSubtitlesAuthenticator(client, services.tokens)
                if token:
                    record = await authenticator.authenticate_with_token(token, config.base_url)
                else:
                    record = await authenticator.authenticate_with_credentials(
                        username, password
                    )
            if record.user_data:
                await services.settings.save_user_info(record.user_data)
        finally:
            await services.close()
        console.print("[green]✓ Logged in. Try: [cyan]subsel fetch <FILE_ID>[/cyan][/green]")

    asyncio.run(_login())


def _optional_config() -> AppConfig | None:
    try:
        return ConfigManager(CONFIG_FILE).load_config()
    except ConfigurationError as e:
        log.debug(f"Continuing without configuration: {e}")
        return None


def _build_loader(
    services: Services, client: OpenSubtitlesClient, config: AppConfig
) -> SubtitleLoader:
    return SubtitleLoader(
        services.cache,
        client,
        OpenSubtitlesAuthenticator(client, services.tokens),
        max_concurrent=config.prefetch_workers,
    )


async def _search_session(
    client: OpenSubtitlesClient, query: str | None, languages: str | None
) -> SessionState:
    """Runs one search so fetched records can take titles and languages from its results."""
    session = SessionState(current_query=query or "", current_params=languages)
    if not query:
        return session
    params = {"query": query}
    if languages:
        params["languages"] = languages
    try:
        response = await client.search_subtitles(**params)
    except RemoteFetchError as e:
        log.warning(f"[yellow]Search for '{query}' failed, storing without titles: {e}[/yellow]")
        return session
    session.current_results = response.get("data", [])
    session.total_pages = response.get("total_pages", 1)
    session.total_count = response.get("total_count", len(session.current_results))
    return session


async def _load_subtitle(
    file_id: str,
    title: str | None = None,
    query: str | None = None,
    languages: str | None = None,
    show_badge: bool = False,
) -> CacheRecord:
    """Serves cache hits offline; config.ini and the API are only needed on a miss."""
    services = await open_services()

    if show_badge:
        async def _refresh_badge(subtitle_id: str) -> None:
            label = await badge(services.cache, subtitle_id)
            console.print(f"[dim]{subtitle_id}: {label}[/dim]")

        services.notifier.subscribe(_refresh_badge)

    try:
        cached = await services.cache.lookup(file_id)
        if cached is not None:
            log.debug(f"{file_id} served from the local cache.")
            return cached

        config = _load_config()
        async with _build_client(config) as client:
            loader = _build_loader(services, client, config)
            session = await _search_session(client, query, languages)
            record = await loader.apply(file_id, session, title=title)
        if record is None:
            raise typer.Exit(code=1)
        return record
    finally:
        await services.close()


@app.command()
def fetch(
    file_id: str = typer.Argument(..., help="OpenSubtitles file id."),
    title: str | None = typer.Option(None, "--title", help="Display title to store."),
    query: str | None = typer.Option(
        None, "--query", help="Search whose results supply the title and language."
    ),
    languages: str | None = typer.Option(
        None, "--languages", help="Language filter for --query, e.g. 'en,fr'."
    ),
    badge_only: bool = typer.Option(
        False, "--quiet", "-q", help="Do not print the subtitle content."
    ),
):
    """Load a subtitle (from the cache if possible) and print it."""
    record = asyncio.run(_load_subtitle(file_id, title, query, languages, show_badge=True))
    if not badge_only:
        console.print(record.content, markup=False, highlight=False)


@app.command()
def save(
    file_id: str = typer.Argument(..., help="OpenSubtitles file id."),
    directory: Path | None = typer.Option(
        None, "--dir", "-d", help="Target directory (default: config download_dir or cwd)."
    ),
):
    """Load a subtitle and write it to disk under its suggested file name."""

    async def _save():
        record = await _load_subtitle(file_id)
        config = _optional_config()
        target = directory or Path((config and config.download_dir) or ".")
        return await SubtitleLoader.save_to_file(record, target)

    path = asyncio.run(_save())
    console.print(f"[green]✓ Saved to '{path}'[/green]")


@app.command()
def prefetch(
    ids: list[str] = typer.Argument(..., help="File ids to download into the cache."),
    query: str | None = typer.Option(
        None, "--query", help="Search whose results supply titles and languages."
    ),
    languages: str | None = typer.Option(
        None, "--languages", help="Language filter for --query, e.g. 'en,fr'."
    ),
):
    """Cache several subtitles, prefetch_workers downloads at a time."""
    config = _load_config()

    async def _prefetch():
        services = await open_services()
        try:
            async with _build_client(config) as client:
                loader = _build_loader(services, client, config)
                session = await _search_session(client, query, languages)
                return await loader.prefetch(ids, session)
        finally:
            await services.close()

    results = asyncio.run(_prefetch())
    print_status_table(
        {sid: CACHED_LABEL if record else "Failed" for sid, record in results.items()}
    )
    if not all(results.values()):
        raise typer.Exit(code=1)

@app.command()
def status(ids: list[str] = typer.Argument(..., help="File ids to check.")):
    """Show whether each subtitle id is cached."""

    async def _status():
        services = await open_services()
        try:
            return {sid: await badge(services.cache, sid) for sid in ids if sid}
        finally:
            await services.close()

    print_status_table(asyncio.run(_status()))


@app.command(name="cache")
def cache_list():
    """List cached subtitles, oldest (next to be evicted) first."""

    async def _entries():
        services = await open_services()
        try:
            return await services.cache.entries(), services.cache.capacity
        finally:
            await services.close()

    records, capacity = asyncio.run(_entries())
    print_cache_table(records, capacity)


@app.command(name="clear-cache")
def clear_cache(
    force: bool = typer.Option(False, "--force", "-f", help="Bypass the confirmation prompt."),
):
    """Remove every cached subtitle."""
    if not force and not typer.confirm("Remove all cached subtitles?"):
        console.print("[yellow]Operation cancelled.[/yellow]")
        raise typer.Abort()

    async def _clear():
        services = await open_services()
        try:
            count = len(await services.cache.entries())
            cleared = await services.cache.clear()
            if cleared and services.store:
                await services.store.vacuum()
            return cleared, count
        finally:
            await services.close()

    ok, count = asyncio.run(_clear())
    if ok:
        console.print(f"[green]✓ Cache cleared successfully ({count} entries removed).[/green]")
    else:
        console.print("[red]✗ Failed to clear cache.[/red]")
        raise typer.Exit(code=1)


@app.command()
def settings(
    sync_offset: float | None = typer.Option(
        None, "--sync-offset", help="Seconds to shift subtitles."
    ),
    font_size: int | None = typer.Option(None, "--font-size"),
    font_color: str | None = typer.Option(None, "--font-color", help="#RRGGBB"),
    bg_opacity: float | None = typer.Option(None, "--bg-opacity", help="0.0 to 1.0"),
    animation: bool | None = typer.Option(None, "--animation/--no-animation"),
):
    """Show or update overlay settings."""
    changes = {
        key: value
        for key, value in {
            "sync_offset": sync_offset,
            "font_size": font_size,
            "font_color": font_color,
            "bg_opacity": bg_opacity,
            "animation_enabled": animation,
        }.items()
        if value is not None
    }

    async def _settings():
        services = await open_services()
        try:
            if changes:
                return await services.settings.update(**changes)
            return await services.settings.load()
        finally:
            await services.close()

    try:
        current = asyncio.run(_settings())
    except ValidationError as e:
        console.print(f"[red]✗ Invalid setting: {e.errors()[0]['msg']}[/red]")
        raise typer.Exit(code=1) from e
    print_settings_panel(current)


@app.command()
def languages(
    refresh: bool = typer.Option(False, "--refresh", help="Fetch the list from the API."),
):
    """Show the cached list of subtitle languages."""

    async def _languages():
        services = await open_services()
        try:
            if not refresh:
                cached = await services.languages.load()
                if cached is not None:
                    return cached.data
            config = _load_config()
            async with _build_client(config) as client:
                data = await client.fetch_languages()
            await services.languages.save(data)
            return data
        finally:
            await services.close()

    print_languages_table(asyncio.run(_languages()))


@app.command()
def validate():
    """Validate the current configuration."""
    config = _load_config()

    async def _token():
        services = await open_services()
        try:
            return await services.tokens.load()
        finally:
            await services.close()

    print_validation_table(config, asyncio.run(_token()))


@app.command()
def diagnose():
    """Check config.ini, the cache database, the login and the API connection."""
    problems: list[str] = []

    def ok(message: str) -> None:
        console.print(f"[green]✓[/green] {message}")

    def fail(message: str) -> None:
        problems.append(message)
        console.print(f"[red]✗ {message}[/red]")

    config = None
    try:
        config = ConfigManager(CONFIG_FILE).load_config()
        ok(f"config.ini loaded from [dim]{CONFIG_FILE}[/dim]")
    except SubtitlesSelectorError as e:
        fail(str(e))

    async def _check():
        services = await open_services()
        try:
            if services.store is None:
                fail("Cache database cannot be opened; subtitles will not be cached.")
            else:
                cached = await services.cache.entries()
                ok(f"Cache database usable, {len(cached)}/{services.cache.capacity} subtitles.")
            token = await services.tokens.load()
        finally:
            await services.close()

        if token is None:
            console.print("[yellow]! Not logged in; only cached subtitles can be shown.[/yellow]")
        if config is None:
            return
        try:
            async with _build_client(config) as client:
                if token:
                    await client.validate_token(token.token, host=token.base_url)
                else:
                    await client.fetch_languages()
            ok(f"Reached {config.api_endpoint}")
        except SubtitlesSelectorError as e:
            fail(f"API check failed: {e}")

    asyncio.run(_check())
    if problems:
        console.print(f"\n[bold red]{len(problems)} problem(s) found.[/bold red]")
        raise typer.Exit(code=1)
    console.print("\n[bold green]Everything looks fine.[/bold green]")
