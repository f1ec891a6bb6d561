"""
Helper functions for formatting data into human-readable strings.
"""

from typing import Optional


def format_size(bytes_size: float) -> str:
    """Formats bytes into a human-readable size string (e.g., '145.3 MB')."""
    if bytes_size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    while bytes_size >= 1024 and i < len(units) - 1:
        bytes_size /= 1024
        i += 1
    return f"{bytes_size:.1f} {units[i]}"


def format_duration(seconds: float) -> str:
    """
    Formats a duration in seconds into a human-readable string (e.g., '2h 34m 12s').
    """
    s = int(seconds)
    hours, remainder = divmod(s, 3600)
    minutes, secs = divmod(remainder, 60)
    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def format_track_length(seconds: Optional[int]) -> str:
    """Formats a track length as ``m:ss`` (``h:mm:ss`` past an hour)."""
    s = max(int(seconds or 0), 0)
    hours, remainder = divmod(s, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02}:{secs:02}"
    return f"{minutes}:{secs:02}"


def format_release_label(release_type_label: str, title: str, year: Optional[str]) -> str:
    """Builds the ``[Album] Title (2021)`` line used in release listings."""
    suffix = f" ({year})" if year else ""
    return f"[{release_type_label}] {title}{suffix}"
