"""Release orchestration: per-track isolation, skipping and companion files."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Dict, Iterable, List

import pytest

from monochrome_dl.core.download_manager import DownloadManager
from monochrome_dl.exceptions import (
    ConfigurationError,
    ExhaustedInstancesError,
    NoTracksError,
    ServerError,
    UnsupportedStreamError,
)
from monochrome_dl.media.downloader import Downloader
from monochrome_dl.models.catalog import Release
from monochrome_dl.models.config import DownloadConfig
from monochrome_dl.models.quality import QualityLevel
from tests.fakes import FakeResponse, FakeSession, RecordingReporter, album_payload, track_payload


class FakeClient:
    """Serves releases from memory and resolves streams to a fake CDN."""

    def __init__(self, releases: Dict[str, Release], broken: Iterable[str] = ()) -> None:
        self.releases = releases
        self.broken = set(broken)
        self.stream_requests: List[tuple] = []

    async def get_album(self, album_id: str) -> Release:
        if album_id not in self.releases:
            raise ExhaustedInstancesError(
                f"All instances failed for album {album_id}",
                last_failure=ServerError("HTTP 503"),
                attempts=4,
            )
        return self.releases[album_id]

    async def get_stream_url(self, track_id: str, quality: QualityLevel) -> str:
        self.stream_requests.append((track_id, quality))
        if track_id in self.broken:
            raise UnsupportedStreamError("Segmented (DASH) streams are not supported for this quality.")
        return f"https://cdn.test/{track_id}.flac"


def _manager(
    tmp_path: Path,
    client: FakeClient,
    reporter: RecordingReporter,
    cdn: FakeSession | None = None,
    **config,
) -> DownloadManager:
    cdn = cdn or FakeSession({"https://cdn.test/": FakeResponse(chunks=[b"abc", b"de"])})
    return DownloadManager(
        DownloadConfig(download_dir=tmp_path, **config),
        client,  # type: ignore[arg-type]
        downloader=Downloader(session=cdn, base_delay=0),  # type: ignore[arg-type]
        reporter=reporter,
    )


def _release(tracks: int = 3) -> Release:
    return Release.from_api(album_payload(tracks=tracks))


@pytest.mark.asyncio
async def test_failing_track_does_not_stop_the_release(
    tmp_path: Path, reporter: RecordingReporter
) -> None:
    release = _release()
    client = FakeClient({"100": release}, broken={"1002"})
    manager = _manager(tmp_path, client, reporter)
    progress: list[tuple[int, int]] = []

    directory = await manager.download_release(
        release, progress_callback=lambda done, total, track: progress.append((done, total))
    )

    assert directory == tmp_path / "Test Artist" / "Test Album - Test Artist"
    assert (directory / "01 - Test Artist - Song 1.flac").read_bytes() == b"abcde"
    assert not (directory / "02 - Test Artist - Song 2.flac").exists()
    assert (directory / "03 - Test Artist - Song 3.flac").read_bytes() == b"abcde"
    assert [track_id for track_id, _ in client.stream_requests] == ["1001", "1002", "1003"]
    assert progress == [(1, 3), (2, 3), (3, 3)]

    assert manager.stats.tracks_downloaded == 2
    assert manager.stats.tracks_failed == 1
    assert manager.stats.failures[0].kind == "unsupported_stream"
    assert any(m.startswith("✗ Song 2: Unsupported stream type") for m in reporter.persistent)

    outcome = manager.outcomes[0]
    assert outcome.downloaded == ["1001", "1003"]
    assert [f.track_id for f in outcome.failed] == ["1002"]
    assert sorted(p.name for p in outcome.companion_files) == [
        "Test Album.cue",
        "Test Album.json",
        "Test Album.m3u",
        "Test Album.m3u8",
        "Test Album.nfo",
    ]


@pytest.mark.asyncio
async def test_companion_files_reference_downloaded_names(
    tmp_path: Path, reporter: RecordingReporter
) -> None:
    release = _release(tracks=2)
    manager = _manager(
        tmp_path,
        FakeClient({"100": release}),
        reporter,
        generate_cue=False,
        generate_nfo=False,
    )

    directory = await manager.download_release(release)

    playlist = (directory / "Test Album.m3u").read_text(encoding="utf-8").splitlines()
    assert playlist[0] == "#EXTM3U"
    assert "01 - Test Artist - Song 1.flac" in playlist
    assert "02 - Test Artist - Song 2.flac" in playlist
    assert not (directory / "Test Album.cue").exists()
    assert not (directory / "Test Album.nfo").exists()

    manifest = json.loads((directory / "Test Album.json").read_text(encoding="utf-8"))
    assert [t["file"] for t in manifest["tracks"]] == [
        "01 - Test Artist - Song 1.flac",
        "02 - Test Artist - Song 2.flac",
    ]


@pytest.mark.asyncio
async def test_empty_release_creates_nothing(tmp_path: Path, reporter: RecordingReporter) -> None:
    release = _release(tracks=0)
    manager = _manager(tmp_path, FakeClient({"100": release}), reporter)

    with pytest.raises(NoTracksError):
        await manager.download_release(release)

    assert list(tmp_path.iterdir()) == []
    assert manager.outcomes == []


@pytest.mark.asyncio
async def test_existing_and_unavailable_tracks_are_skipped(
    tmp_path: Path, reporter: RecordingReporter
) -> None:
    payload = album_payload(tracks=2)
    payload["items"].append(
        {"type": "track", "item": track_payload(1003, 3, "Song 3", allowStreaming=False)}
    )
    release = Release.from_api(payload)
    directory = tmp_path / "Test Artist" / "Test Album - Test Artist"
    directory.mkdir(parents=True)
    (directory / "01 - Test Artist - Song 1.flac").write_bytes(b"old")
    client = FakeClient({"100": release})
    cdn = FakeSession({"https://cdn.test/": FakeResponse(chunks=[b"new"])})
    manager = _manager(tmp_path, client, reporter, cdn=cdn)

    await manager.download_release(release)

    assert (directory / "01 - Test Artist - Song 1.flac").read_bytes() == b"old"
    assert (directory / "02 - Test Artist - Song 2.flac").read_bytes() == b"new"
    assert [track_id for track_id, _ in client.stream_requests] == ["1002"]
    assert manager.stats.tracks_skipped_exists == 1
    assert manager.stats.tracks_skipped_unavailable == 1
    assert manager.outcomes[0].skipped == ["1001", "1003"]
    assert any("already exists" in m for m in reporter.persistent)
    assert any("unavailable for streaming" in m for m in reporter.persistent)


@pytest.mark.asyncio
async def test_quality_override_changes_extension_and_request(
    tmp_path: Path, reporter: RecordingReporter
) -> None:
    release = _release(tracks=1)
    client = FakeClient({"100": release})
    manager = _manager(tmp_path, client, reporter)

    directory = await manager.download_release(release, quality=QualityLevel.HIGH)

    assert (directory / "01 - Test Artist - Song 1.m4a").exists()
    assert client.stream_requests == [("1001", QualityLevel.HIGH)]


@pytest.mark.asyncio
async def test_track_delay_applies_between_tracks_only(
    tmp_path: Path, reporter: RecordingReporter, monkeypatch: pytest.MonkeyPatch
) -> None:
    delays: list[float] = []
    real_sleep = asyncio.sleep

    async def fake_sleep(seconds: float, *args, **kwargs) -> None:
        delays.append(seconds)
        await real_sleep(0)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    release = _release(tracks=3)
    manager = _manager(tmp_path, FakeClient({"100": release}), reporter, track_delay_ms=250)

    await manager.download_release(release)

    assert delays == [0.25, 0.25]


@pytest.mark.asyncio
async def test_download_releases_skips_empty_and_failed_releases(
    tmp_path: Path, reporter: RecordingReporter
) -> None:
    empty = Release.from_api(album_payload(album_id=200, title="Nothing Here", tracks=0))
    client = FakeClient({"100": _release(tracks=1), "200": empty})
    manager = _manager(tmp_path, client, reporter)

    directories = await manager.download_releases(["200", "404", "100"])

    assert directories == [tmp_path / "Test Artist" / "Test Album - Test Artist"]
    assert manager.stats.releases_skipped == 2
    assert manager.stats.releases_processed == {"100"}
    assert "No tracks in release 200, skipping" in reporter.persistent
    assert any(m.startswith("✗ Release 404: Server error") for m in reporter.persistent)


@pytest.mark.asyncio
async def test_side_labelled_track_numbers_are_used_verbatim(
    tmp_path: Path, reporter: RecordingReporter
) -> None:
    payload = album_payload(tracks=3)
    payload["items"][0]["item"]["trackNumber"] = "A1"
    release = Release.from_api(payload)
    manager = _manager(tmp_path, FakeClient({"100": release}), reporter)

    directory = await manager.download_release(release)

    assert (directory / "A1 - Test Artist - Song 1.flac").read_bytes() == b"abcde"
    assert (directory / "02 - Test Artist - Song 2.flac").exists()
    assert (directory / "03 - Test Artist - Song 3.flac").exists()
    assert "01. Test Artist - Song 1" not in (directory / "Test Album.nfo").read_text(encoding="utf-8")
    assert manager.stats.tracks_downloaded == 3


@pytest.mark.asyncio
async def test_filename_failure_is_isolated_to_its_track(
    tmp_path: Path, reporter: RecordingReporter, monkeypatch: pytest.MonkeyPatch
) -> None:
    from monochrome_dl.core import download_manager as module

    real_build = module.build_track_filename

    def build(track, *args, **kwargs):
        if track.id == "1001":
            raise ValueError("unusable track number")
        return real_build(track, *args, **kwargs)

    monkeypatch.setattr(module, "build_track_filename", build)
    release = _release(tracks=3)
    manager = _manager(
        tmp_path,
        FakeClient({"100": release}),
        reporter,
        generate_m3u=False,
        generate_m3u8=False,
        generate_cue=False,
        generate_json=False,
    )

    directory = await manager.download_release(release)

    assert (directory / "02 - Test Artist - Song 2.flac").exists()
    assert (directory / "03 - Test Artist - Song 3.flac").exists()
    assert manager.outcomes[0].downloaded == ["1002", "1003"]
    assert [f.track_id for f in manager.outcomes[0].failed] == ["1001"]
    assert any(m.startswith("✗ Song 1: unusable track number") for m in reporter.persistent)


@pytest.mark.asyncio
async def test_quality_aliases_are_accepted_per_release(
    tmp_path: Path, reporter: RecordingReporter
) -> None:
    release = _release(tracks=1)
    client = FakeClient({"100": release})
    manager = _manager(tmp_path, client, reporter)

    directory = await manager.download_release(release, quality="hi-res")

    assert (directory / "01 - Test Artist - Song 1.flac").exists()
    assert client.stream_requests == [("1001", QualityLevel.HI_RES_LOSSLESS)]


@pytest.mark.asyncio
async def test_unknown_quality_is_rejected_before_anything_is_written(
    tmp_path: Path, reporter: RecordingReporter
) -> None:
    release = _release(tracks=1)
    manager = _manager(tmp_path, FakeClient({"100": release}), reporter)

    with pytest.raises(ConfigurationError, match="Unknown quality 'ultra'"):
        await manager.download_release(release, quality="ultra")

    assert list(tmp_path.iterdir()) == []
