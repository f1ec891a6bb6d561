"""
Async client for the Monochrome catalog and streaming API, served by many mirrors.
"""

import base64
import binascii
import json
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from monochrome_dl.core.status import StatusReporter
from monochrome_dl.exceptions import MalformedResponseError, UnsupportedStreamError
from monochrome_dl.models.catalog import Artist, ArtistDiscography, Release, ReleaseType
from monochrome_dl.models.config import DownloadConfig
from monochrome_dl.models.quality import QualityLevel
from monochrome_dl.storage.cache import ResponseCache

from .executor import Operation, RequestExecutor, RetryPolicy
from .instances import InstanceRegistry, RequestClass

log = logging.getLogger(__name__)

DASH_MIME_TYPE = "application/dash+xml"


def unwrap(body: Any) -> Any:
    """Strips the ``{"version": ..., "data": ...}`` envelope newer instances add."""
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


def _find_items(payload: Any, key: str) -> List[Dict[str, Any]]:
    """Finds ``payload[key]["items"]``, tolerating list or bare-list shapes."""
    if isinstance(payload, list):
        for entry in payload:
            if items := _find_items(entry, key):
                return items
        return []
    if not isinstance(payload, dict):
        return []
    section = payload.get(key)
    if isinstance(section, dict):
        return [i for i in section.get("items") or [] if isinstance(i, dict)]
    if isinstance(section, list):
        return [i for i in section if isinstance(i, dict)]
    return []


def parse_artist_search(body: Any) -> List[Artist]:
    payload = unwrap(body)
    items = _find_items(payload, "artists")
    if not items and isinstance(payload, dict):
        items = [i for i in payload.get("items") or [] if isinstance(i, dict)]
    return [Artist.from_api(item) for item in items]


def parse_artist(body: Any) -> ArtistDiscography:
    payload = unwrap(body)
    if not isinstance(payload, dict):
        raise MalformedResponseError("Artist response is not an object")

    artist_payload = payload.get("artist") or payload
    artist = Artist.from_api(artist_payload)

    albums: List[Release] = []
    eps: List[Release] = []
    seen: set[str] = set()
    for item in _find_items(payload, "albums") + _find_items(payload, "eps"):
        release = Release.from_api(item)
        if release.id in seen:
            continue
        seen.add(release.id)
        if release.release_type is ReleaseType.ALBUM:
            albums.append(release)
        else:
            eps.append(release)
    return ArtistDiscography(artist=artist, albums=albums, eps=eps)


def parse_album(body: Any) -> Release:
    payload = unwrap(body)
    if not isinstance(payload, dict) or not payload.get("id"):
        raise MalformedResponseError("Album response has no album id")
    return Release.from_api(payload)


def _decode_manifest(manifest: str) -> Dict[str, Any]:
    try:
        decoded = json.loads(base64.b64decode(manifest))
    except (binascii.Error, ValueError) as e:
        raise MalformedResponseError(f"Undecodable stream manifest: {e}") from e
    if not isinstance(decoded, dict):
        raise MalformedResponseError("Stream manifest is not an object")
    return decoded


def _check_locator(url: Any) -> str:
    if not isinstance(url, str) or not url:
        raise MalformedResponseError("Stream locator is empty")
    if url.startswith("blob:"):
        raise UnsupportedStreamError(
            "DASH streams (blob:) are not supported. Use quality LOSSLESS or try "
            "another release."
        )
    if not url.startswith(("http://", "https://")):
        raise UnsupportedStreamError(f"Unsupported stream locator: {url[:40]}")
    return url


def extract_stream_url(body: Any) -> str:
    """
    Resolves a track playback response into a direct HTTP(S) stream URL.

    Raises:
        UnsupportedStreamError: for segmented (DASH), encrypted or blob-style
            streams, which no instance can turn into a direct download.
        MalformedResponseError: when the response carries no locator at all.
    """
    payload = unwrap(body)
    entries = payload if isinstance(payload, list) else [payload]
    entries = [e for e in entries if isinstance(e, dict)]

    for entry in entries:
        if entry.get("OriginalTrackUrl"):
            return _check_locator(entry["OriginalTrackUrl"])

    for entry in entries:
        manifest = entry.get("manifest")
        if not manifest:
            continue
        mime_type = entry.get("manifestMimeType", "")
        if DASH_MIME_TYPE in mime_type or "dash" in mime_type:
            raise UnsupportedStreamError(
                "Segmented (DASH) streams are not supported for this quality."
            )
        decoded = _decode_manifest(manifest)
        encryption = decoded.get("encryptionType", "NONE")
        if encryption not in (None, "NONE"):
            raise UnsupportedStreamError(f"Stream is encrypted ({encryption}).")
        urls = decoded.get("urls") or []
        if not urls:
            raise MalformedResponseError("Stream manifest contains no URLs")
        return _check_locator(urls[0])

    raise MalformedResponseError("No stream locator in response")


class MonochromeAPIClient:
    """
    High-level catalog operations on top of the resilient request executor.

    Catalog lookups (search, artist, album) are idempotent and cached; stream
    resolution always goes to the network.
    """

    def __init__(self, executor: RequestExecutor):
        self.executor = executor

    async def close(self) -> None:
        await self.executor.close()

    async def refresh_instances(self, url: str) -> bool:
        return await self.executor.refresh_instances(url)

    async def search_artists(self, query: str) -> List[Artist]:
        result = await self.executor.execute(
            RequestClass.CATALOG,
            Operation(
                name="search_artists",
                path="/search/",
                params={"a": query},
                cacheable=True,
                parse=parse_artist_search,
            ),
        )
        return result.data

    async def get_artist(self, artist_id: str) -> ArtistDiscography:
        result = await self.executor.execute(
            RequestClass.CATALOG,
            Operation(
                name="artist",
                path="/artist/",
                params={"f": str(artist_id)},
                cacheable=True,
                parse=parse_artist,
            ),
        )
        return result.data

    async def get_album(self, album_id: str) -> Release:
        result = await self.executor.execute(
            RequestClass.CATALOG,
            Operation(
                name="album",
                path="/album/",
                params={"id": str(album_id)},
                cacheable=True,
                parse=parse_album,
            ),
        )
        release: Release = result.data
        log.debug(
            f"Album '{release.title}' ({len(release.tracks)} tracks) served by "
            f"{result.instance.host if result.instance else 'cache'}"
        )
        return release

    async def get_stream_url(
        self, track_id: str, quality: QualityLevel = QualityLevel.LOSSLESS
    ) -> str:
        result = await self.executor.execute(
            RequestClass.STREAMING,
            Operation(
                name="track_stream",
                path="/track/",
                params={"id": str(track_id), "quality": QualityLevel(quality).value},
                parse=extract_stream_url,
            ),
        )
        return result.data


def create_client(
    config: DownloadConfig,
    reporter: Optional[StatusReporter] = None,
    session: Optional[aiohttp.ClientSession] = None,
) -> MonochromeAPIClient:
    """Wires registry, cache and executor from a ``DownloadConfig``."""
    executor = RequestExecutor(
        registry=InstanceRegistry(override_url=config.api_url),
        cache=ResponseCache(
            max_size=config.cache_max_size, ttl_seconds=config.cache_ttl_seconds
        ),
        policy=RetryPolicy(
            extra_rounds=config.retry_rounds,
            backoff_seconds=config.retry_backoff_seconds,
        ),
        reporter=reporter,
        session=session,
        timeout_seconds=config.request_timeout_seconds,
    )
    return MonochromeAPIClient(executor)
