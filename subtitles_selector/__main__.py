"""
Entry point for ``subsel`` and ``python -m subtitles_selector``.
Application errors end up as a suggestion panel and exit status 1.
"""

import asyncio
import logging
import os
import sys

import typer
from rich.console import Console

from subtitles_selector.cli.app import app
from subtitles_selector.cli.formatters import format_error_with_suggestions
from subtitles_selector.exceptions import SubtitlesSelectorError


def main() -> None:
    # Subtitle text is rarely plain ASCII.
    if os.name == "nt":
        try:
            sys.stdout.reconfigure(encoding="utf-8")
            sys.stderr.reconfigure(encoding="utf-8")
        except (TypeError, AttributeError):
            pass

    log = logging.getLogger("subtitles_selector")
    console = Console(stderr=True)

    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print("\n[yellow]Interrupted.[/yellow]")
        sys.exit(130)
    except SubtitlesSelectorError as e:
        console.print(format_error_with_suggestions(e))
        sys.exit(1)
    except Exception as e:
        console.print(format_error_with_suggestions(e, {"type": "Unexpected"}))
        log.debug("Unhandled error", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
