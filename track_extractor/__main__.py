"""
Entry point for `track-extractor` / `tx` and `python -m track_extractor`.

Errors that escape a command end up here and are rendered as a panel with
suggestions instead of a traceback.
"""

import asyncio
import logging
import os
import sys

import typer
from rich.console import Console

from track_extractor.cli.app import app
from track_extractor.cli.formatters import format_error_with_suggestions
from track_extractor.exceptions import ExtractorError

log = logging.getLogger("track_extractor")


def _force_utf8_streams() -> None:
    # Windows consoles default to a legacy code page; the panels use symbols
    if os.name != "nt":
        return
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.reconfigure(encoding="utf-8")
        except (TypeError, AttributeError):
            pass


def main() -> None:
    _force_utf8_streams()
    console = Console(stderr=True)

    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print("\n[yellow]⚠️  Extraction cancelled.[/yellow]")
        sys.exit(130)
    except ExtractorError as e:
        console.print()
        console.print(format_error_with_suggestions(e))
        sys.exit(1)
    except Exception as e:
        console.print()
        console.print(format_error_with_suggestions(e, {"type": "Unexpected"}))
        log.debug("Full traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
