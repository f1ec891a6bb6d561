"""
Rich-backed status reporter: transient messages share one spinner line that
is rewritten in place, persistent messages are printed above it.
"""

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.status import Status


class RichStatusReporter:
    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self._status: Optional[Status] = None

    def report_transient(self, message: str) -> None:
        text = f"[dim]{escape(message)}[/dim]"
        if self._status is None:
            self._status = self.console.status(text, spinner="dots")
            self._status.start()
        else:
            self._status.update(text)

    def report_persistent(self, message: str) -> None:
        self.clear()
        style = "red" if message.startswith("✗") else "yellow" if message.startswith("○") else ""
        self.console.print(f"[{style}]{escape(message)}[/{style}]" if style else escape(message))

    def clear(self) -> None:
        """Removes the transient status line, if one is showing."""
        if self._status is not None:
            self._status.stop()
            self._status = None

    def __enter__(self) -> "RichStatusReporter":
        return self

    def __exit__(self, *exc_info) -> None:
        self.clear()
