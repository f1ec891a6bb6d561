"""
Utilities for handling file paths, naming templates and sanitization.
"""

import re
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from pathvalidate import sanitize_filename

from monochrome_dl.models.catalog import Release, Track
from monochrome_dl.models.config import DownloadConfig

_HOSTILE_CHARS = re.compile(r'[\\/:*?"<>|]')
_WHITESPACE = re.compile(r"\s+")
_PLACEHOLDER = re.compile(r"\{(\w+)\}")

_FALLBACKS = {
    "artist": "Unknown Artist",
    "title": "Unknown Title",
    "album": "Unknown Album",
    "albumArtist": "Unknown Artist",
    "albumTitle": "Unknown Album",
    "year": "Unknown",
}


def sanitize_for_filename(value: Any) -> str:
    """
    Makes a single path component safe for any common filesystem.

    Hostile characters become ``_`` and whitespace runs collapse to one space.
    Sanitizing an already sanitized value returns it unchanged.
    """
    if value is None or value == "":
        return "Unknown"
    text = _WHITESPACE.sub(" ", _HOSTILE_CHARS.sub("_", str(value)))
    text = sanitize_filename(text, replacement_text="_").strip().rstrip(" .")
    return text or "Unknown"


def _format_track_number(value: Any) -> str:
    """Zero-pads numeric track numbers. Labels such as ``A1`` pass through sanitized."""
    if value is None or value == "":
        return "00"
    try:
        return f"{int(value):02}"
    except (TypeError, ValueError):
        return sanitize_for_filename(value)


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


class PathFormatter:
    """
    Formats a naming template such as ``{trackNumber} - {artist} - {title}``.

    Supported placeholders: ``trackNumber`` (numbers zero-padded to two digits),
    ``artist``, ``title``, ``album``, ``albumArtist``, ``albumTitle`` and
    ``year``. Unknown placeholders are left as written.
    """

    def __init__(self, template: str) -> None:
        self.template = template

    def format(self, values: Mapping[str, Any]) -> str:
        template_vars = self._get_template_vars(values)

        def replacer(match: re.Match) -> str:
            key = match.group(1)
            return template_vars.get(key, match.group(0))

        return _PLACEHOLDER.sub(replacer, self.template)

    @staticmethod
    def _get_template_vars(values: Mapping[str, Any]) -> Dict[str, str]:
        """Builds the sanitized variable dictionary for template formatting."""
        template_vars = {"trackNumber": _format_track_number(values.get("trackNumber"))}
        for key, fallback in _FALLBACKS.items():
            template_vars[key] = sanitize_for_filename(values.get(key) or fallback)
        return template_vars


def format_template(template: str, **values: Any) -> str:
    """Shortcut for ``PathFormatter(template).format(values)``."""
    return PathFormatter(template).format(values)


def build_track_filename(
    track: Track,
    config: DownloadConfig,
    release: Optional[Release] = None,
    extension: Optional[str] = None,
) -> str:
    """Returns ``<templated name>.<ext>`` for a track."""
    album_title = release.title if release else (track.album.title if track.album else None)
    name = format_template(
        config.filename_template,
        trackNumber=track.track_number,
        artist=track.primary_artist,
        title=track.display_title,
        album=album_title,
        albumArtist=release.primary_artist if release else None,
        albumTitle=album_title,
        year=release.year if release else None,
    ).strip()
    return f"{name or sanitize_for_filename(track.display_title)}.{extension or config.extension}"


def release_directory(release: Release, root: Path, config: DownloadConfig) -> Path:
    """
    Computes ``root/<artist>/<folder template>`` for a release.

    The result depends only on the release metadata and the config, so the
    same release always maps to the same directory.
    """
    artist_folder = sanitize_for_filename(release.primary_artist)
    folder_name = format_template(
        config.folder_template,
        album=release.title,
        albumTitle=release.title,
        albumArtist=release.primary_artist,
        artist=release.primary_artist,
        year=release.year,
    ).strip()
    return Path(root) / artist_folder / (folder_name or sanitize_for_filename(release.title))
