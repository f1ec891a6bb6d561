"""
Defines custom exceptions for the application to allow for more specific error handling.

Request failures are split into two families. Transient failures
(network, server, rate-limit, malformed body) are recovered by the request
executor through instance failover; fatal failures (auth, invalid request,
unsupported stream) stop the executor immediately.
"""

from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from monochrome_dl.api.instances import Instance


class FailureKind(Enum):
    """Classification of a single failed request attempt."""

    NETWORK = "network"
    SERVER = "server"
    RATE_LIMITED = "rate_limited"
    MALFORMED = "malformed"
    AUTH = "auth"
    INVALID_REQUEST = "invalid_request"
    UNSUPPORTED_STREAM = "unsupported_stream"

    @property
    def label(self) -> str:
        return _FAILURE_LABELS[self]

    @property
    def is_transient(self) -> bool:
        return self in (
            FailureKind.NETWORK,
            FailureKind.SERVER,
            FailureKind.RATE_LIMITED,
            FailureKind.MALFORMED,
        )


_FAILURE_LABELS = {
    FailureKind.NETWORK: "Network error",
    FailureKind.SERVER: "Server error",
    FailureKind.RATE_LIMITED: "Rate limited",
    FailureKind.MALFORMED: "Malformed response",
    FailureKind.AUTH: "Auth failed",
    FailureKind.INVALID_REQUEST: "Invalid request",
    FailureKind.UNSUPPORTED_STREAM: "Unsupported stream type",
}


class MonochromeError(Exception):
    """Base exception for all application-specific errors."""


class RequestError(MonochromeError):
    """A classified failure of one request attempt against one instance."""

    kind: FailureKind = FailureKind.SERVER

    def __init__(
        self,
        message: str,
        instance: Optional["Instance"] = None,
        status: int | None = None,
    ):
        super().__init__(message)
        self.instance = instance
        self.status = status


class TransientRequestError(RequestError):
    """A failure that may succeed on retry or on another instance."""


class NetworkError(TransientRequestError):
    """Raised when an instance is unreachable or the request timed out."""

    kind = FailureKind.NETWORK


class ServerError(TransientRequestError):
    """Raised for 5xx responses and unexpected statuses from an instance."""

    kind = FailureKind.SERVER


class RateLimitedError(TransientRequestError):
    """Raised when an instance answers 429 Too Many Requests."""

    kind = FailureKind.RATE_LIMITED


class MalformedResponseError(TransientRequestError):
    """Raised when a 2xx response has an empty or unparseable body."""

    kind = FailureKind.MALFORMED


class AuthError(RequestError):
    """Raised on 401/403. Fatal: not retried across instances."""

    kind = FailureKind.AUTH


class InvalidRequestError(RequestError):
    """Raised when an instance rejects the request as structurally invalid."""

    kind = FailureKind.INVALID_REQUEST


class UnsupportedStreamError(RequestError):
    """
    Raised when a stream resolves to a segmented (DASH) or blob-style locator.
    No instance can fix this, so it is fatal.
    """

    kind = FailureKind.UNSUPPORTED_STREAM


class ExhaustedInstancesError(MonochromeError):
    """Raised when every instance and every retry round failed transiently."""

    def __init__(
        self,
        message: str,
        last_failure: TransientRequestError | None = None,
        attempts: int = 0,
    ):
        super().__init__(message)
        self.last_failure = last_failure
        self.attempts = attempts

    @property
    def kind(self) -> FailureKind | None:
        return self.last_failure.kind if self.last_failure else None


class NoTracksError(MonochromeError):
    """Raised when a release has an empty track list."""


class DownloadIOError(MonochromeError, OSError):
    """Raised when writing a track to its destination fails."""


class ConfigurationError(MonochromeError):
    """Raised for issues related to configuration loading or validation."""
