"""
Generators for the companion files written next to a downloaded release:
M3U and M3U8 playlists, a CUE sheet, NFO liner notes and a JSON manifest.

Every generator returns the file content as a string; writing it to disk is
left to the caller. Track file names come from a ``path_resolver`` callable
so the generators reference exactly the names the downloader used.
"""

import json
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from monochrome_dl.models.catalog import Release, Track
from monochrome_dl.utils.formatting import format_duration, format_track_length

PathResolver = Callable[[Track, int], str]


def _track_path(
    track: Track,
    index: int,
    use_relative_paths: bool,
    path_resolver: PathResolver,
    base_dir: Optional[Path],
) -> str:
    filename = path_resolver(track, index)
    if use_relative_paths or base_dir is None:
        return filename
    return str((Path(base_dir) / filename).resolve())


def generate_m3u(
    release: Release,
    tracks: Sequence[Track],
    use_relative_paths: bool,
    path_resolver: PathResolver,
    extension: str,
    base_dir: Optional[Path] = None,
) -> str:
    """Generates an extended M3U playlist for the release."""
    content = ["#EXTM3U"]
    for index, track in enumerate(tracks):
        content.append(f"#EXTINF:{track.duration or -1},{track.artist_names} - {track.display_title}")
        content.append(_track_path(track, index, use_relative_paths, path_resolver, base_dir))
    return "\n".join(content) + "\n"


def generate_m3u8(
    release: Release,
    tracks: Sequence[Track],
    use_relative_paths: bool,
    path_resolver: PathResolver,
    extension: str,
    base_dir: Optional[Path] = None,
) -> str:
    """Same as M3U with a ``#PLAYLIST`` header; always written as UTF-8."""
    content = ["#EXTM3U", f"#PLAYLIST:{release.title}"]
    for index, track in enumerate(tracks):
        content.append(f"#EXTINF:{track.duration or -1},{track.artist_names} - {track.display_title}")
        content.append(_track_path(track, index, use_relative_paths, path_resolver, base_dir))
    return "\n".join(content) + "\n"


def _cue_escape(value: str) -> str:
    return value.replace('"', "'")


def generate_cue(
    release: Release,
    tracks: Sequence[Track],
    use_relative_paths: bool,
    path_resolver: PathResolver,
    extension: str,
    base_dir: Optional[Path] = None,
) -> str:
    """
    Generates a CUE sheet with one ``FILE`` entry per track, since every
    track is stored in its own audio file.
    """
    lines = [
        f'PERFORMER "{_cue_escape(release.primary_artist)}"',
        f'TITLE "{_cue_escape(release.title)}"',
    ]
    if release.year:
        lines.append(f"REM DATE {release.year}")
    lines.append(f'REM COMMENT "Quality: {extension.upper()}"')

    for index, track in enumerate(tracks):
        path = _track_path(track, index, use_relative_paths, path_resolver, base_dir)
        lines.extend(
            [
                f'FILE "{_cue_escape(path)}" WAVE',
                f"  TRACK {index + 1:02} AUDIO",
                f'    TITLE "{_cue_escape(track.display_title)}"',
                f'    PERFORMER "{_cue_escape(track.artist_names)}"',
            ]
        )
        if track.isrc:
            lines.append(f"    ISRC {track.isrc}")
        lines.append("    INDEX 01 00:00:00")
    return "\n".join(lines) + "\n"


def generate_nfo(
    release: Release,
    tracks: Sequence[Track],
    use_relative_paths: bool,
    path_resolver: PathResolver,
    extension: str,
    base_dir: Optional[Path] = None,
) -> str:
    """Generates plain-text liner notes."""
    total = sum(t.duration for t in tracks)
    lines = [
        f"Artist:       {', '.join(release.artists) or 'Unknown Artist'}",
        f"Album:        {release.title}",
        f"Type:         {release.release_type.label}",
        f"Release Date: {release.release_date or release.year or 'Unknown'}",
        f"Tracks:       {len(tracks)}",
        f"Duration:     {format_duration(total)}",
        f"Format:       {extension.upper()}",
    ]
    if release.copyright:
        lines.append(f"Copyright:    {release.copyright}")
    if release.upc:
        lines.append(f"UPC:          {release.upc}")

    lines.extend(["", "Tracklist:", ""])
    width = len(str(len(tracks)))
    for index, track in enumerate(tracks, start=1):
        number = str(track.track_number or index).zfill(max(width, 2))
        lines.append(
            f"{number}. {track.artist_names} - {track.display_title} "
            f"[{format_track_length(track.duration)}]"
        )
    return "\n".join(lines) + "\n"


def generate_json(
    release: Release,
    tracks: Sequence[Track],
    use_relative_paths: bool,
    path_resolver: PathResolver,
    extension: str,
    base_dir: Optional[Path] = None,
) -> str:
    """Generates a JSON manifest of the release and its track files."""
    track_entries: List[Dict[str, object]] = []
    for index, track in enumerate(tracks):
        quality = track.best_quality
        track_entries.append(
            {
                "id": track.id,
                "trackNumber": track.track_number,
                "volumeNumber": track.volume_number,
                "title": track.display_title,
                "artists": track.artists,
                "duration": track.duration,
                "isrc": track.isrc,
                "explicit": track.explicit,
                "quality": quality.value if quality else None,
                "file": _track_path(track, index, use_relative_paths, path_resolver, base_dir),
            }
        )

    manifest = {
        "id": release.id,
        "title": release.title,
        "type": release.release_type.label,
        "artists": release.artists,
        "releaseDate": release.release_date,
        "year": release.year,
        "numberOfTracks": len(tracks),
        "duration": sum(t.duration for t in tracks),
        "copyright": release.copyright,
        "upc": release.upc,
        "format": extension,
        "tracks": track_entries,
    }
    return json.dumps(manifest, indent=2, ensure_ascii=False) + "\n"


# File extension -> (config toggle, generator); iteration order is write order.
COMPANION_GENERATORS = {
    "m3u": ("generate_m3u", generate_m3u),
    "m3u8": ("generate_m3u8", generate_m3u8),
    "cue": ("generate_cue", generate_cue),
    "nfo": ("generate_nfo", generate_nfo),
    "json": ("generate_json", generate_json),
}
