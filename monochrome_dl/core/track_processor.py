"""
Handles the processing of a single track, from stream resolution to the
finished file on disk.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from rich.markup import escape

from monochrome_dl.api.client import MonochromeAPIClient
from monochrome_dl.media.downloader import Downloader, remove_stale_part
from monochrome_dl.models.catalog import Track
from monochrome_dl.models.quality import QualityLevel
from monochrome_dl.models.stats import DownloadStats
from monochrome_dl.utils.formatting import format_size

from .status import LoggingStatusReporter, StatusReporter

log = logging.getLogger(__name__)


@dataclass
class DownloadTask:
    """One track to fetch during one release download."""

    track: Track
    destination_path: Path
    quality: QualityLevel


class TrackStatus(Enum):
    DOWNLOADED = "downloaded"
    SKIPPED_EXISTS = "skipped_exists"
    SKIPPED_UNAVAILABLE = "skipped_unavailable"


class TrackProcessor:
    """
    Resolves the stream for a single track and writes it to its destination.

    Errors are not handled here; the caller decides how a failed track is
    reported so one track never aborts the rest of its release.
    """

    def __init__(
        self,
        client: MonochromeAPIClient,
        downloader: Downloader,
        stats: DownloadStats,
        reporter: Optional[StatusReporter] = None,
        skip_existing: bool = True,
    ):
        self.client = client
        self.downloader = downloader
        self.stats = stats
        self.reporter = reporter or LoggingStatusReporter()
        self.skip_existing = skip_existing

    async def process_track(self, task: DownloadTask) -> TrackStatus:
        track = task.track
        final_path = task.destination_path

        if track.is_unavailable:
            self.stats.tracks_skipped_unavailable += 1
            self.reporter.report_persistent(
                f"○ Skipping: {track.display_title} (unavailable for streaming)"
            )
            return TrackStatus.SKIPPED_UNAVAILABLE

        if self.skip_existing and await asyncio.to_thread(final_path.is_file):
            self.stats.tracks_skipped_exists += 1
            self.reporter.report_persistent(
                f"○ Skipping: {final_path.name} (already exists)"
            )
            return TrackStatus.SKIPPED_EXISTS

        await remove_stale_part(final_path)

        stream_url = await self.client.get_stream_url(track.id, task.quality)
        log.debug(f"Resolved stream for track {track.id}: {stream_url[:80]}")

        def on_progress(received: int, total: int) -> None:
            if total:
                self.reporter.report_transient(
                    f"Downloading {track.display_title}: "
                    f"{format_size(received)} / {format_size(total)}"
                )

        size = await self.downloader.download_file(
            stream_url, final_path, progress_callback=on_progress
        )
        self.stats.record_download(size)
        log.info(
            f"  [green]✓ Downloaded:[/] {escape(final_path.name)} "
            f"[dim]({format_size(size)})[/dim]"
        )
        return TrackStatus.DOWNLOADED
