"""
Resilient request execution across interchangeable API instances.

The executor walks the instance list for a request class in order, classifies
every failed attempt, fails over on transient errors, stops on fatal ones and
caches successful catalog lookups.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import aiohttp

from monochrome_dl.core.status import LoggingStatusReporter, StatusReporter
from monochrome_dl.exceptions import (
    AuthError,
    ExhaustedInstancesError,
    InvalidRequestError,
    MalformedResponseError,
    NetworkError,
    RateLimitedError,
    RequestError,
    ServerError,
    TransientRequestError,
)
from monochrome_dl.storage.cache import ResponseCache

from .instances import Instance, InstanceRegistry, RequestClass

log = logging.getLogger(__name__)

USER_AGENT = "monochrome-dl (+https://github.com/monochrome-music/monochrome)"


@dataclass(frozen=True)
class Operation:
    """
    A logical API request.

    ``name`` and ``params`` double as the cache key. ``parse`` turns a decoded
    JSON body into the caller's result; it may raise ``MalformedResponseError``
    to fail over to the next instance, or a fatal ``RequestError`` to stop.
    """

    name: str
    path: str
    params: Dict[str, Any] = field(default_factory=dict)
    cacheable: bool = False
    parse: Optional[Callable[[Any], Any]] = None


@dataclass(frozen=True)
class ExecutionResult:
    """A successful execution and the instance that served it."""

    data: Any
    instance: Optional[Instance]
    from_cache: bool = False
    attempts: int = 0


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry policy. After the whole instance list failed transiently, up to
    ``extra_rounds`` more passes over the list are made, waiting
    ``backoff_seconds * backoff_multiplier ** (round - 1)`` before each.
    """

    extra_rounds: int = 1
    backoff_seconds: float = 1.0
    backoff_multiplier: float = 2.0

    @property
    def max_rounds(self) -> int:
        return 1 + max(0, self.extra_rounds)

    def delay_before(self, extra_round: int) -> float:
        return self.backoff_seconds * self.backoff_multiplier ** (extra_round - 1)


class RequestExecutor:
    """Executes operations against the first instance able to serve them."""

    def __init__(
        self,
        registry: InstanceRegistry,
        cache: Optional[ResponseCache] = None,
        policy: Optional[RetryPolicy] = None,
        reporter: Optional[StatusReporter] = None,
        session: Optional[aiohttp.ClientSession] = None,
        timeout_seconds: float = 15,
    ):
        self.registry = registry
        self.cache = cache
        self.policy = policy or RetryPolicy()
        self.reporter = reporter or LoggingStatusReporter()
        self.timeout_seconds = timeout_seconds
        self._session = session
        self._owns_session = session is None
        self._session_lock = asyncio.Lock()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        async with self._session_lock:
            if self._session is None or self._session.closed:
                connector = aiohttp.TCPConnector(
                    limit=16, ttl_dns_cache=300, enable_cleanup_closed=True
                )
                self._session = aiohttp.ClientSession(
                    connector=connector,
                    headers={
                        "User-Agent": USER_AGENT,
                        "Accept": "application/json",
                        "Accept-Encoding": "gzip, deflate",
                    },
                )
                self._owns_session = True
            return self._session

    async def close(self) -> None:
        """Closes the HTTP session if this executor created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def refresh_instances(self, url: str) -> bool:
        """Reloads the registry's instance lists from ``url`` using this executor's session."""
        session = await self._get_session()
        return await self.registry.refresh_from_remote(session, url)

    async def execute(
        self, request_class: RequestClass, operation: Operation
    ) -> ExecutionResult:
        """
        Runs an operation with instance failover.

        Raises:
            AuthError, InvalidRequestError, UnsupportedStreamError: on a fatal
                classification; no further instance is contacted.
            ExhaustedInstancesError: when every instance failed transiently in
                every retry round.
        """
        instances = self.registry.list_instances(request_class)

        if operation.cacheable and self.cache is not None:
            cached = self.cache.get(operation.name, operation.params)
            if cached is not None:
                log.debug(f"Cache hit for {operation.name} {operation.params}")
                return ExecutionResult(data=cached, instance=None, from_cache=True)

        attempts = 0
        last_failure: Optional[TransientRequestError] = None

        for round_number in range(self.policy.max_rounds):
            if round_number > 0:
                delay = self.policy.delay_before(round_number)
                self.reporter.report_transient(
                    f"All instances failed, retrying in {delay:.1f}s "
                    f"(round {round_number + 1}/{self.policy.max_rounds})"
                )
                await asyncio.sleep(delay)

            for instance in instances:
                attempts += 1
                try:
                    data = await self._attempt(instance, operation)
                except TransientRequestError as e:
                    last_failure = e
                    self.reporter.report_transient(
                        f"{e.kind.label} from {instance.host}: {e}. "
                        "Trying next instance..."
                    )
                    continue

                if operation.cacheable and self.cache is not None:
                    self.cache.put(operation.name, operation.params, data)
                return ExecutionResult(data=data, instance=instance, attempts=attempts)

        kind = last_failure.kind.label if last_failure else "No response"
        log.warning(
            f"[yellow]{operation.name}: all {len(instances)} instances failed "
            f"after {attempts} attempts ({kind}).[/yellow]"
        )
        raise ExhaustedInstancesError(
            f"All instances failed for {operation.name} ({kind}: {last_failure})",
            last_failure=last_failure,
            attempts=attempts,
        )

    async def _attempt(self, instance: Instance, operation: Operation) -> Any:
        """Issues one request against one instance and classifies the outcome."""
        session = await self._get_session()
        url = instance.url_for(operation.path)
        start_time = time.monotonic()

        try:
            async with session.get(
                url,
                params=operation.params,
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            ) as r:
                duration_ms = (time.monotonic() - start_time) * 1000
                log.debug(
                    f"GET {url} {operation.params} -> {r.status} ({duration_ms:.0f} ms)"
                )
                self._raise_for_status(r.status, instance)
                try:
                    body = await r.json(content_type=None)
                except ValueError as e:
                    raise MalformedResponseError(
                        f"Unparseable body: {e}", instance, r.status
                    ) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(
                str(e) or type(e).__name__, instance
            ) from e

        if not body:
            raise MalformedResponseError("Empty response body", instance)
        if isinstance(body, dict) and "detail" in body and "data" not in body:
            raise MalformedResponseError(str(body["detail"]), instance)

        if operation.parse is None:
            return body
        try:
            return operation.parse(body)
        except RequestError as e:
            if e.instance is None:
                e.instance = instance
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedResponseError(
                f"Unexpected response shape: {e}", instance
            ) from e

    @staticmethod
    def _raise_for_status(status: int, instance: Instance) -> None:
        if 200 <= status < 300:
            return
        if status == 429:
            raise RateLimitedError("HTTP 429 Too Many Requests", instance, status)
        if status in (401, 403):
            raise AuthError(f"HTTP {status} from {instance.host}", instance, status)
        if status in (400, 422):
            raise InvalidRequestError(
                f"HTTP {status} from {instance.host}", instance, status
            )
        raise ServerError(f"HTTP {status}", instance, status)
