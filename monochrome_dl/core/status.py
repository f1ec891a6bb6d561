"""
Status reporting capability shared by the request executor and the orchestrator.

Transient messages (retries, failover) are meant to overwrite a single status
line; persistent messages are appended to the output history.
"""

import logging
from typing import Protocol, runtime_checkable

log = logging.getLogger(__name__)


@runtime_checkable
class StatusReporter(Protocol):
    def report_transient(self, message: str) -> None: ...

    def report_persistent(self, message: str) -> None: ...


class LoggingStatusReporter:
    """Library default: routes transient lines to DEBUG and persistent ones to INFO."""

    def __init__(self, logger: logging.Logger | None = None):
        self._log = logger or log

    def report_transient(self, message: str) -> None:
        self._log.debug(message)

    def report_persistent(self, message: str) -> None:
        self._log.info(message)
