"""
Dataclasses tracking per-release outcomes and download session statistics.
"""

import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


@dataclass
class TrackFailure:
    track_id: str
    title: str
    error: str
    kind: Optional[str] = None


@dataclass
class ReleaseOutcome:
    """What happened to each track of one release download."""

    release_id: str
    title: str
    directory: Path
    downloaded: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[TrackFailure] = field(default_factory=list)
    companion_files: List[Path] = field(default_factory=list)


@dataclass
class DownloadStats:
    """Tracks statistics for a download session."""

    tracks_downloaded: int = 0
    tracks_skipped_exists: int = 0
    tracks_skipped_unavailable: int = 0
    tracks_failed: int = 0
    total_size_downloaded: int = 0
    releases_processed: set[str] = field(default_factory=set)
    releases_skipped: int = 0
    failures: List[TrackFailure] = field(default_factory=list)
    start_time: float = field(default_factory=time.monotonic, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record_download(self, size_bytes: int) -> None:
        with self._lock:
            self.tracks_downloaded += 1
            self.total_size_downloaded += size_bytes

    def record_failure(self, failure: TrackFailure) -> None:
        with self._lock:
            self.tracks_failed += 1
            self.failures.append(failure)

    @property
    def tracks_skipped(self) -> int:
        return self.tracks_skipped_exists + self.tracks_skipped_unavailable

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self.start_time
