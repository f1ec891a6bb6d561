"""
The main orchestrator: downloads releases track by track and writes their
companion files.
"""

import asyncio
import logging
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Union

from rich.markup import escape

from monochrome_dl.api.client import MonochromeAPIClient
from monochrome_dl.exceptions import ConfigurationError, MonochromeError, NoTracksError
from monochrome_dl.media.downloader import Downloader
from monochrome_dl.models.catalog import Release, Track
from monochrome_dl.models.config import DownloadConfig
from monochrome_dl.models.quality import QualityLevel, normalize_quality_token
from monochrome_dl.models.stats import DownloadStats, ReleaseOutcome, TrackFailure
from monochrome_dl.utils.path import (
    build_track_filename,
    create_dir,
    release_directory,
    sanitize_for_filename,
)
from monochrome_dl.utils.playlist import COMPANION_GENERATORS

from .status import LoggingStatusReporter, StatusReporter
from .track_processor import DownloadTask, TrackProcessor, TrackStatus

log = logging.getLogger(__name__)

# (tracks done, total tracks, track just processed)
ReleaseProgressCallback = Callable[[int, int, Track], None]


def _describe_error(error: Exception) -> str:
    kind = getattr(error, "kind", None)
    if kind is not None:
        return f"{kind.label}: {error}"
    return str(error)


class DownloadManager:
    """
    Orchestrates release downloads.

    Tracks of one release are processed strictly in order, one at a time, with
    an optional pause before every track but the first. Independent releases
    may run concurrently on separate managers sharing one client.
    """

    def __init__(
        self,
        config: DownloadConfig,
        api_client: MonochromeAPIClient,
        downloader: Optional[Downloader] = None,
        reporter: Optional[StatusReporter] = None,
        stats: Optional[DownloadStats] = None,
    ):
        self.config = config
        self.api_client = api_client
        self.reporter = reporter or LoggingStatusReporter()
        self.stats = stats or DownloadStats()
        self.outcomes: List[ReleaseOutcome] = []
        self.track_processor = TrackProcessor(
            api_client,
            downloader or Downloader(),
            self.stats,
            self.reporter,
            skip_existing=config.skip_existing,
        )

    async def download_release(
        self,
        release: Release,
        tracks: Optional[Sequence[Track]] = None,
        destination_root: Optional[Path] = None,
        quality: Union[QualityLevel, str, None] = None,
        options: Optional[DownloadConfig] = None,
        progress_callback: Optional[ReleaseProgressCallback] = None,
    ) -> Path:
        """
        Downloads every track of ``release`` and returns its directory.

        A failing track is reported and the next one is attempted; companion
        files are written once all tracks have been tried.

        Raises:
            NoTracksError: if there is nothing to download. No directory is
                created in that case.
            ConfigurationError: if ``quality`` names no known level.
        """
        options = options or self.config
        tracks = list(release.tracks if tracks is None else tracks)
        requested = quality or options.quality
        quality = normalize_quality_token(requested)
        if quality is None:
            raise ConfigurationError(
                f"Unknown quality '{requested}'. Choose one of: "
                + ", ".join(level.value for level in QualityLevel)
            )
        extension = quality.extension
        root = Path(destination_root or options.download_dir)

        if not tracks:
            raise NoTracksError(f"Release '{release.title}' has no tracks.")

        directory = release_directory(release, root, options)
        create_dir(directory)
        self.stats.releases_processed.add(release.id)
        outcome = ReleaseOutcome(release_id=release.id, title=release.title, directory=directory)

        label = release.release_type.label
        year = f" ({release.year})" if release.year else ""
        log.info(
            f"\n[bold cyan]▶ {label}:[/] {escape(release.primary_artist)} - "
            f"{escape(release.title)}{year}"
        )

        def resolve_filename(track: Track, index: int = 0) -> str:
            return build_track_filename(track, options, release, extension)

        for index, track in enumerate(tracks):
            if index > 0 and options.track_delay_ms > 0:
                await asyncio.sleep(options.track_delay_seconds)

            try:
                task = DownloadTask(
                    track=track,
                    destination_path=directory / resolve_filename(track, index),
                    quality=quality,
                )
                status = await self.track_processor.process_track(task)
            except Exception as e:
                self._record_failure(outcome, track, e)
                if not isinstance(e, MonochromeError):
                    log.debug("Unexpected track failure", exc_info=True)
            else:
                if status is TrackStatus.DOWNLOADED:
                    outcome.downloaded.append(track.id)
                else:
                    outcome.skipped.append(track.id)

            if progress_callback:
                progress_callback(index + 1, len(tracks), track)

        outcome.companion_files = await self._write_companion_files(
            release, tracks, directory, options, resolve_filename, extension
        )
        self.outcomes.append(outcome)
        return directory

    def _record_failure(self, outcome: ReleaseOutcome, track: Track, error: Exception) -> None:
        failure = TrackFailure(
            track_id=track.id,
            title=track.display_title,
            error=str(error),
            kind=getattr(getattr(error, "kind", None), "value", None),
        )
        self.stats.record_failure(failure)
        outcome.failed.append(failure)
        log.error(
            f"  [red]✗ Failed:[/] {escape(track.display_title)} "
            f"({escape(_describe_error(error))})"
        )
        self.reporter.report_persistent(
            f"✗ {track.display_title}: {_describe_error(error)}"
        )

    async def _write_companion_files(
        self,
        release: Release,
        tracks: Sequence[Track],
        directory: Path,
        options: DownloadConfig,
        path_resolver: Callable[[Track, int], str],
        extension: str,
    ) -> List[Path]:
        written: List[Path] = []
        stem = sanitize_for_filename(release.title)
        for suffix, (toggle, generator) in COMPANION_GENERATORS.items():
            if not getattr(options, toggle):
                continue
            target = directory / f"{stem}.{suffix}"
            try:
                content = generator(
                    release,
                    tracks,
                    options.use_relative_paths,
                    path_resolver,
                    extension,
                    directory,
                )
                await asyncio.to_thread(target.write_text, content, encoding="utf-8")
            except OSError as e:
                log.error(f"[red]Could not write {target.name}: {e}[/red]")
                self.reporter.report_persistent(f"Could not write {target.name}: {e}")
                continue
            log.debug(f"Wrote companion file '{target.name}'")
            written.append(target)
        return written

    async def download_releases(
        self,
        release_ids: Iterable[str],
        destination_root: Optional[Path] = None,
        quality: Optional[QualityLevel] = None,
        progress_callback: Optional[ReleaseProgressCallback] = None,
    ) -> List[Path]:
        """
        Fetches and downloads releases one after another.

        A release without tracks or one that fails to load is reported and
        skipped; the remaining releases still run.
        """
        directories: List[Path] = []
        for index, release_id in enumerate(release_ids):
            if index > 0 and self.config.release_delay_ms > 0:
                await asyncio.sleep(self.config.release_delay_seconds)

            try:
                release = await self.api_client.get_album(release_id)
                directory = await self.download_release(
                    release,
                    release.tracks,
                    destination_root,
                    quality,
                    progress_callback=progress_callback,
                )
            except NoTracksError:
                self.stats.releases_skipped += 1
                self.reporter.report_persistent(f"No tracks in release {release_id}, skipping")
                continue
            except MonochromeError as e:
                self.stats.releases_skipped += 1
                log.error(f"[red]✗ Release {escape(str(release_id))} failed: {escape(_describe_error(e))}[/red]")
                self.reporter.report_persistent(
                    f"✗ Release {release_id}: {_describe_error(e)}"
                )
                continue
            directories.append(directory)
        return directories
