from __future__ import annotations

from pathlib import Path

import aiohttp
import pytest

from monochrome_dl.exceptions import DownloadIOError, NetworkError
from monochrome_dl.media.downloader import Downloader, part_path_for, remove_stale_part
from tests.fakes import FakeResponse, FakeSession

URL = "https://cdn.test/track.flac"


def _body() -> FakeResponse:
    return FakeResponse(chunks=[b"abc", b"de"])


@pytest.mark.asyncio
async def test_download_writes_part_then_renames(tmp_path: Path) -> None:
    destination = tmp_path / "album" / "01 - Song.flac"
    progress: list[tuple[int, int]] = []
    downloader = Downloader(session=FakeSession({URL: _body()}))

    size = await downloader.download_file(
        URL, destination, progress_callback=lambda done, total: progress.append((done, total))
    )

    assert size == 5
    assert destination.read_bytes() == b"abcde"
    assert not part_path_for(destination).exists()
    assert progress == [(3, 5), (5, 5)]


@pytest.mark.asyncio
async def test_transfer_failures_are_retried(tmp_path: Path) -> None:
    session = FakeSession(
        {URL: [aiohttp.ClientConnectionError("reset"), FakeResponse(status=503), _body()]}
    )
    downloader = Downloader(session=session, max_attempts=3, base_delay=0)

    size = await downloader.download_file(URL, tmp_path / "song.flac")

    assert size == 5
    assert len(session.calls) == 3


@pytest.mark.asyncio
async def test_exhausted_attempts_raise_network_error(tmp_path: Path) -> None:
    session = FakeSession({URL: FakeResponse(status=500)})
    downloader = Downloader(session=session, max_attempts=2, base_delay=0)
    destination = tmp_path / "song.flac"

    with pytest.raises(NetworkError):
        await downloader.download_file(URL, destination)

    assert len(session.calls) == 2
    assert not destination.exists()


@pytest.mark.asyncio
async def test_unwritable_destination_is_not_retried(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    session = FakeSession({URL: _body()})
    downloader = Downloader(session=session, base_delay=0)

    with pytest.raises(DownloadIOError):
        await downloader.download_file(URL, blocker / "song.flac")

    assert session.calls == []


@pytest.mark.asyncio
async def test_stale_part_file_is_removed(tmp_path: Path) -> None:
    destination = tmp_path / "song.flac"
    part_path_for(destination).write_bytes(b"half")

    await remove_stale_part(destination)
    await remove_stale_part(destination)

    assert not part_path_for(destination).exists()
