"""
Data Models Layer.

This package contains the models that define the core data structures
used throughout the application: catalog entities, quality levels,
configuration and statistics.
"""

from .catalog import AlbumRef, Artist, ArtistDiscography, Release, ReleaseType, Track
from .config import DownloadConfig
from .quality import QualityLevel
from .stats import DownloadStats, ReleaseOutcome, TrackFailure

__all__ = [
    "AlbumRef",
    "Artist",
    "ArtistDiscography",
    "DownloadConfig",
    "DownloadStats",
    "QualityLevel",
    "Release",
    "ReleaseOutcome",
    "ReleaseType",
    "Track",
    "TrackFailure",
]
