"""
Registry of interchangeable API mirrors ("instances").

The registry hands out an ordered snapshot of endpoints per request class.
The order is the failover order used by the request executor, so it is kept
stable for the lifetime of the registry unless a refresh is explicitly
requested.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

log = logging.getLogger(__name__)

DEFAULT_API_VERSION = "2.4"


class RequestClass(Enum):
    """Selects which instance list and retry policy apply to a request."""

    CATALOG = "api"
    STREAMING = "streaming"


@dataclass(frozen=True)
class Instance:
    """One deployment of the remote API."""

    base_url: str
    api_version: str = DEFAULT_API_VERSION

    @property
    def host(self) -> str:
        return self.base_url.split("://", 1)[-1]

    def url_for(self, path: str) -> str:
        return self.base_url + "/" + path.lstrip("/")


_BUILTIN_INSTANCES: Dict[RequestClass, Tuple[Instance, ...]] = {
    RequestClass.CATALOG: (
        Instance("https://eu-central.monochrome.tf", "2.4"),
        Instance("https://us-west.monochrome.tf", "2.4"),
        Instance("https://arran.monochrome.tf", "2.4"),
        Instance("https://triton.squid.wtf", "2.4"),
        Instance("https://api.monochrome.tf", "2.3"),
        Instance("https://monochrome-api.samidy.com", "2.3"),
        Instance("https://maus.qqdl.site", "2.2"),
        Instance("https://vogel.qqdl.site", "2.2"),
        Instance("https://katze.qqdl.site", "2.2"),
        Instance("https://hund.qqdl.site", "2.2"),
        Instance("https://tidal.kinoplus.online", "2.2"),
        Instance("https://wolf.qqdl.site", "2.2"),
    ),
    RequestClass.STREAMING: (
        Instance("https://arran.monochrome.tf", "2.4"),
        Instance("https://triton.squid.wtf", "2.4"),
        Instance("https://maus.qqdl.site", "2.2"),
        Instance("https://vogel.qqdl.site", "2.2"),
        Instance("https://katze.qqdl.site", "2.2"),
        Instance("https://hund.qqdl.site", "2.2"),
        Instance("https://wolf.qqdl.site", "2.2"),
    ),
}


def _parse_instance_entry(entry: Any) -> Optional[Instance]:
    if isinstance(entry, str) and entry.strip():
        return Instance(entry.strip().rstrip("/"))
    if isinstance(entry, dict) and (url := entry.get("url")):
        return Instance(
            str(url).rstrip("/"), str(entry.get("version") or DEFAULT_API_VERSION)
        )
    return None


class InstanceRegistry:
    """Supplies the ordered candidate endpoints for each request class."""

    def __init__(
        self,
        override_url: Optional[str] = None,
        instances: Optional[Dict[RequestClass, List[Instance]]] = None,
    ):
        """
        Args:
            override_url: Single endpoint to use for every request class.
            instances: Explicit instance lists, replacing the built-in ones for
                the classes they cover.
        """
        self._override: Optional[Instance] = (
            Instance(override_url.rstrip("/")) if override_url else None
        )
        self._instances: Dict[RequestClass, Tuple[Instance, ...]] = dict(
            _BUILTIN_INSTANCES
        )
        for request_class, entries in (instances or {}).items():
            if entries:
                self._instances[request_class] = tuple(entries)
        self._lock = threading.Lock()

    def list_instances(self, request_class: RequestClass) -> Tuple[Instance, ...]:
        """Returns the failover order for a request class. Never empty."""
        if self._override is not None:
            return (self._override,)
        with self._lock:
            return self._instances.get(request_class) or _BUILTIN_INSTANCES[
                request_class
            ]

    async def refresh_from_remote(self, session: aiohttp.ClientSession, url: str) -> bool:
        """
        Replaces the instance lists with the instance document at ``url``.

        The document looks like ``{"api": [...], "streaming": [...]}`` where each
        entry is a URL string or a ``{"url": ..., "version": ...}`` object.
        The built-in lists stay in force for any class the document does not
        provide, and entirely if the fetch fails.
        """
        try:
            async with session.get(
                url, timeout=aiohttp.ClientTimeout(total=10)
            ) as response:
                if response.status != 200:
                    log.warning(
                        f"[yellow]Instance list fetch returned HTTP {response.status}; "
                        "using built-in instances.[/yellow]"
                    )
                    return False
                document = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            log.warning(f"[yellow]Failed to fetch instance list: {e}[/yellow]")
            return False

        if not isinstance(document, dict):
            log.warning("[yellow]Instance list has an unexpected shape.[/yellow]")
            return False

        refreshed: Dict[RequestClass, Tuple[Instance, ...]] = {}
        for request_class in RequestClass:
            entries = document.get(request_class.value) or []
            parsed = tuple(
                inst for inst in map(_parse_instance_entry, entries) if inst
            )
            if parsed:
                refreshed[request_class] = parsed

        if not refreshed:
            return False

        with self._lock:
            self._instances.update(refreshed)
        log.info(
            "Loaded instances from remote: "
            + ", ".join(f"{c.value}={len(v)}" for c, v in refreshed.items())
        )
        return True
