from __future__ import annotations

from pathlib import Path

from monochrome_dl.models.catalog import Release
from monochrome_dl.utils.playlist import generate_cue, generate_m3u, generate_m3u8, generate_nfo
from tests.fakes import album_payload


def _resolver(track, index: int) -> str:
    return f"{index + 1:02} - {track.title}.flac"


def test_m3u_lists_tracks_in_order() -> None:
    release = Release.from_api(album_payload(tracks=2))

    content = generate_m3u(release, release.tracks, True, _resolver, "flac")

    assert content.splitlines() == [
        "#EXTM3U",
        "#EXTINF:181,Test Artist - Song 1",
        "01 - Song 1.flac",
        "#EXTINF:182,Test Artist - Song 2",
        "02 - Song 2.flac",
    ]


def test_m3u8_has_playlist_header_and_absolute_paths(tmp_path: Path) -> None:
    release = Release.from_api(album_payload(tracks=1))

    lines = generate_m3u8(release, release.tracks, False, _resolver, "flac", tmp_path).splitlines()

    assert lines[:2] == ["#EXTM3U", "#PLAYLIST:Test Album"]
    assert lines[-1] == str((tmp_path / "01 - Song 1.flac").resolve())


def test_cue_has_one_file_per_track() -> None:
    release = Release.from_api(album_payload(tracks=2))

    content = generate_cue(release, release.tracks, True, _resolver, "flac")

    assert 'FILE "01 - Song 1.flac" WAVE' in content
    assert "  TRACK 02 AUDIO" in content
    assert "REM DATE 2021" in content


def test_nfo_summarizes_release() -> None:
    release = Release.from_api(album_payload(tracks=2))

    content = generate_nfo(release, release.tracks, True, _resolver, "flac")

    assert "Album:        Test Album" in content
    assert "Tracks:       2" in content
    assert "01. Test Artist - Song 1 [3:01]" in content
