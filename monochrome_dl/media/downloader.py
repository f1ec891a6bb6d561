"""
Handles the low-level streaming of audio files over HTTP to disk.

Bodies are written to ``<name>.part`` and renamed into place only after the
last chunk is flushed, so a finished file is never observed half-written.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Callable, Optional

import aiofiles
import aiofiles.os
import aiohttp

from monochrome_dl.exceptions import DownloadIOError, NetworkError

log = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

_connection_pool: aiohttp.ClientSession | None = None
_pool_lock = asyncio.Lock()


async def get_connection_pool() -> aiohttp.ClientSession:
    """
    Gets or creates the shared aiohttp ClientSession used for audio transfers.

    Stream URLs point at CDN hosts rather than API instances, so transfers
    use their own session with a long read timeout.
    """
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            return _connection_pool

        connector = aiohttp.TCPConnector(
            limit=8,
            ttl_dns_cache=600,  # 10 minutes
            keepalive_timeout=30,
            enable_cleanup_closed=True,
        )
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=15, sock_read=90)
        _connection_pool = aiohttp.ClientSession(connector=connector, timeout=timeout)
        log.debug("Created download connection pool")

    return _connection_pool


async def close_connection_pool() -> None:
    """Closes the shared global connection pool."""
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            await _connection_pool.close()
            _connection_pool = None
            log.debug("Shared downloader connection pool closed.")


def part_path_for(destination_path: Path) -> Path:
    return destination_path.with_name(destination_path.name + ".part")


class Downloader:
    """Streams one URL to one file, retrying transfer failures with backoff."""

    CHUNK_SIZE = 262144  # 256 KB

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        max_attempts: int = 3,
        base_delay: float = 1.5,
    ):
        self._session = session
        self.max_attempts = max_attempts
        self.base_delay = base_delay

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is not None:
            return self._session
        return await get_connection_pool()

    async def download_file(
        self,
        url: str,
        destination_path: Path,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> int:
        """
        Downloads ``url`` to ``destination_path`` and returns the bytes written.

        Raises:
            NetworkError: when every transfer attempt failed.
            DownloadIOError: when the destination cannot be written; not retried.
        """
        destination_path = Path(destination_path)
        part_path = part_path_for(destination_path)
        try:
            await asyncio.to_thread(
                destination_path.parent.mkdir, parents=True, exist_ok=True
            )
        except OSError as e:
            raise DownloadIOError(
                f"Cannot create directory '{destination_path.parent}': {e}"
            ) from e

        last_exception: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                size = await self._transfer(url, part_path, progress_callback)
                await aiofiles.os.replace(part_path, destination_path)
                return size
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_exception = e
                log.debug(
                    f"Download attempt {attempt}/{self.max_attempts} for "
                    f"'{destination_path.name}' failed: {e}. Retrying..."
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.base_delay * (2 ** (attempt - 1)))
            except OSError as e:
                raise DownloadIOError(
                    f"Failed to write '{destination_path.name}': {e}"
                ) from e

        raise NetworkError(
            f"Download of '{destination_path.name}' failed after "
            f"{self.max_attempts} attempts: {last_exception}"
        ) from last_exception

    async def _transfer(
        self,
        url: str,
        part_path: Path,
        progress_callback: Optional[ProgressCallback],
    ) -> int:
        session = await self._get_session()
        async with session.get(url, allow_redirects=True) as response:
            response.raise_for_status()
            total = int(response.headers.get("Content-Length", 0) or 0)

            bytes_downloaded = 0
            async with aiofiles.open(part_path, "wb") as f:
                async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
                    await f.write(chunk)
                    bytes_downloaded += len(chunk)
                    if progress_callback:
                        progress_callback(bytes_downloaded, total)
        return bytes_downloaded


async def remove_stale_part(destination_path: Path) -> None:
    """Deletes a leftover ``.part`` file from an earlier interrupted run."""
    part_path = part_path_for(Path(destination_path))
    if await asyncio.to_thread(os.path.isfile, part_path):
        await aiofiles.os.remove(part_path)
        log.debug(f"Removed stale partial file '{part_path.name}'")
