"""Fakes for the HTTP layer, status reporting and time, plus payload builders."""

from __future__ import annotations

import base64
import json
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import aiohttp

from monochrome_dl.api.executor import RequestExecutor, RetryPolicy
from monochrome_dl.api.instances import Instance, InstanceRegistry, RequestClass
from monochrome_dl.storage.cache import ResponseCache

_MISSING = object()


class FakeContent:
    def __init__(self, chunks: List[bytes]) -> None:
        self._chunks = chunks

    async def iter_chunked(self, size: int):
        for chunk in self._chunks:
            yield chunk


class FakeResponse:
    """Stands in for ``aiohttp.ClientResponse`` used as an async context manager."""

    def __init__(
        self,
        status: int = 200,
        body: Any = _MISSING,
        raw: Optional[str] = None,
        chunks: Optional[List[bytes]] = None,
        headers: Optional[Dict[str, str]] = None,
        exc: Optional[BaseException] = None,
    ) -> None:
        self.status = status
        self._body = body
        self._raw = raw
        self._exc = exc
        self.content = FakeContent(chunks or [])
        self.headers = headers or {}
        if chunks and "Content-Length" not in self.headers:
            self.headers["Content-Length"] = str(sum(len(c) for c in chunks))

    async def __aenter__(self) -> "FakeResponse":
        if self._exc is not None:
            raise self._exc
        return self

    async def __aexit__(self, *exc_info: Any) -> bool:
        return False

    async def json(self, content_type: Optional[str] = None) -> Any:
        if self._raw is not None:
            return json.loads(self._raw)
        if self._body is _MISSING:
            return None
        return self._body

    def raise_for_status(self) -> None:
        if self.status >= 400:
            raise aiohttp.ClientConnectionError(f"HTTP {self.status}")


Route = Union[FakeResponse, BaseException, Callable[[str, Dict[str, Any]], Any], list]


class FakeSession:
    """
    Minimal ``aiohttp.ClientSession`` replacement.

    ``routes`` maps a URL prefix to a response, an exception, a callable taking
    ``(url, params)`` or a list consumed one item per request.
    """

    def __init__(self, routes: Optional[Dict[str, Route]] = None) -> None:
        self.routes: Dict[str, Route] = routes or {}
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.closed = False

    def _lookup(self, url: str) -> Route:
        matches = [prefix for prefix in self.routes if url.startswith(prefix)]
        if not matches:
            raise AssertionError(f"Unexpected request to {url}")
        return self.routes[max(matches, key=len)]

    def get(self, url: str, params: Optional[Dict[str, Any]] = None, **kwargs: Any):
        params = dict(params or {})
        self.calls.append((url, params))
        route = self._lookup(url)
        if isinstance(route, list):
            route = route.pop(0) if len(route) > 1 else route[0]
        if callable(route) and not isinstance(route, FakeResponse):
            route = route(url, params)
        if isinstance(route, BaseException):
            return FakeResponse(exc=route)
        return route

    def contacted_hosts(self) -> List[str]:
        return [url.split("://", 1)[1].split("/", 1)[0] for url, _ in self.calls]

    async def close(self) -> None:
        self.closed = True


class RecordingReporter:
    def __init__(self) -> None:
        self.transient: List[str] = []
        self.persistent: List[str] = []

    def report_transient(self, message: str) -> None:
        self.transient.append(message)

    def report_persistent(self, message: str) -> None:
        self.persistent.append(message)


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_registry(catalog_hosts: List[str], streaming_hosts: Optional[List[str]] = None) -> InstanceRegistry:
    streaming_hosts = streaming_hosts or catalog_hosts
    return InstanceRegistry(
        instances={
            RequestClass.CATALOG: [Instance(f"https://{h}") for h in catalog_hosts],
            RequestClass.STREAMING: [Instance(f"https://{h}") for h in streaming_hosts],
        }
    )


def make_executor(
    session: FakeSession,
    catalog_hosts: List[str],
    streaming_hosts: Optional[List[str]] = None,
    reporter: Optional[RecordingReporter] = None,
    extra_rounds: int = 1,
    cache: Optional[ResponseCache] = None,
) -> RequestExecutor:
    return RequestExecutor(
        registry=make_registry(catalog_hosts, streaming_hosts),
        cache=cache,
        policy=RetryPolicy(extra_rounds=extra_rounds, backoff_seconds=0),
        reporter=reporter or RecordingReporter(),
        session=session,  # type: ignore[arg-type]
    )


def bts_manifest(url: str, encryption: str = "NONE") -> str:
    payload = {"mimeType": "audio/flac", "codecs": "flac", "encryptionType": encryption, "urls": [url]}
    return base64.b64encode(json.dumps(payload).encode()).decode()


def track_payload(track_id: int, number: int, title: str, **extra: Any) -> Dict[str, Any]:
    payload = {
        "id": track_id,
        "title": title,
        "trackNumber": number,
        "duration": 180 + number,
        "artists": [{"id": 7, "name": "Test Artist"}],
        "allowStreaming": True,
        "streamReady": True,
        "audioQuality": "LOSSLESS",
    }
    payload.update(extra)
    return payload


def album_payload(album_id: int = 100, title: str = "Test Album", tracks: int = 3) -> Dict[str, Any]:
    return {
        "id": album_id,
        "title": title,
        "type": "ALBUM",
        "releaseDate": "2021-05-14",
        "numberOfTracks": tracks,
        "artists": [{"id": 7, "name": "Test Artist"}],
        "mediaMetadata": {"tags": ["LOSSLESS", "HIRES_LOSSLESS"]},
        "items": [
            {"type": "track", "item": track_payload(1000 + i, i, f"Song {i}")}
            for i in range(1, tracks + 1)
        ],
    }


