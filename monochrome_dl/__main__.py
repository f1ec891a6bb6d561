"""
Console entry point.

Runs the Typer app and turns errors that escape a command into an error panel
and a process exit code. The shared download pool is released on every error
path so an aborted run does not leave sockets open.
"""

import asyncio
import logging
import os
import sys
from typing import List, Optional

from rich.console import Console

from monochrome_dl.cli.app import app
from monochrome_dl.cli.formatters import format_error_with_suggestions
from monochrome_dl.exceptions import ExhaustedInstancesError, MonochromeError, RequestError
from monochrome_dl.media.downloader import close_connection_pool

log = logging.getLogger("monochrome_dl")

EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def failure_context(error: Exception) -> dict:
    """Where a request failure happened: attempts, failure kind, instance and status."""
    context: dict = {}
    if isinstance(error, ExhaustedInstancesError):
        context["attempts"] = error.attempts
        if error.last_failure is not None:
            error = error.last_failure
    kind = getattr(error, "kind", None)
    if kind is not None:
        context["kind"] = kind.label
    if isinstance(error, RequestError):
        if error.instance is not None:
            context["instance"] = error.instance.host
        if error.status is not None:
            context["status"] = error.status
    return context


def _release_download_pool() -> None:
    asyncio.run(close_connection_pool())


def main(argv: Optional[List[str]] = None) -> int:
    if os.name == "nt":
        # Status glyphs need UTF-8 on legacy Windows consoles.
        for stream in (sys.stdout, sys.stderr):
            if hasattr(stream, "reconfigure"):
                stream.reconfigure(encoding="utf-8")

    console = Console(stderr=True)
    try:
        app(args=argv, prog_name="monochrome-dl")
    except KeyboardInterrupt:
        _release_download_pool()
        console.print("\n[yellow]Download cancelled.[/yellow]")
        return EXIT_INTERRUPTED
    except MonochromeError as e:
        _release_download_pool()
        console.print(format_error_with_suggestions(e, failure_context(e) or None))
        return EXIT_FAILURE
    except Exception as e:
        _release_download_pool()
        console.print(format_error_with_suggestions(e, {"type": "Unexpected"}))
        log.debug("Full traceback:", exc_info=True)
        return EXIT_FAILURE
    return 0


if __name__ == "__main__":
    sys.exit(main())
