"""
Catalog entities (artists, releases, tracks) built from API responses.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from monochrome_dl.models.quality import QualityLevel, derive_track_quality


class ReleaseType(Enum):
    """Closed set of release kinds, each with a display label."""

    ALBUM = "ALBUM"
    EP = "EP"
    SINGLE = "SINGLE"

    @property
    def label(self) -> str:
        return _RELEASE_LABELS[self]

    @classmethod
    def from_api(cls, value: Any) -> "ReleaseType":
        """Maps the API's loose ``type`` string; anything unrecognized is an album."""
        token = str(value or "").strip().upper()
        if token == "SINGLE":
            return cls.SINGLE
        if token == "EP":
            return cls.EP
        return cls.ALBUM


_RELEASE_LABELS = {
    ReleaseType.ALBUM: "Album",
    ReleaseType.EP: "EP",
    ReleaseType.SINGLE: "Single",
}


def _media_tags(payload: Dict[str, Any]) -> List[str]:
    tags = (payload.get("mediaMetadata") or {}).get("tags") or []
    return [t for t in tags if isinstance(t, str)]


def _artist_names(payload: Dict[str, Any]) -> List[str]:
    names = [
        a.get("name") for a in payload.get("artists") or [] if isinstance(a, dict)
    ]
    names = [n for n in names if n]
    if not names and isinstance(payload.get("artist"), dict):
        if name := payload["artist"].get("name"):
            names = [name]
    return names


@dataclass(frozen=True)
class Artist:
    id: str
    name: str
    picture: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Artist":
        return cls(
            id=str(payload.get("id", "")),
            name=payload.get("name") or "Unknown Artist",
            picture=payload.get("picture"),
        )


@dataclass(frozen=True)
class AlbumRef:
    """The album a track points back to."""

    id: str
    title: str
    tags: List[str] = field(default_factory=list)
    cover: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Optional[Dict[str, Any]]) -> Optional["AlbumRef"]:
        if not payload:
            return None
        return cls(
            id=str(payload.get("id", "")),
            title=payload.get("title") or "Unknown Album",
            tags=_media_tags(payload),
            cover=payload.get("cover"),
        )


@dataclass
class Track:
    id: str
    title: str
    track_number: Union[int, str, None] = None
    version: Optional[str] = None
    artists: List[str] = field(default_factory=list)
    album: Optional[AlbumRef] = None
    duration: int = 0
    volume_number: int = 1
    isrc: Optional[str] = None
    explicit: bool = False
    allow_streaming: Optional[bool] = None
    stream_ready: Optional[bool] = None
    stream_start_date: Optional[str] = None
    audio_quality: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    @classmethod
    def from_api(
        cls, payload: Dict[str, Any], album: Optional[AlbumRef] = None
    ) -> "Track":
        return cls(
            id=str(payload.get("id", "")),
            title=payload.get("title") or "",
            track_number=payload.get("trackNumber"),
            version=payload.get("version"),
            artists=_artist_names(payload),
            album=album or AlbumRef.from_api(payload.get("album")),
            duration=int(payload.get("duration") or 0),
            volume_number=int(payload.get("volumeNumber") or 1),
            isrc=payload.get("isrc"),
            explicit=bool(payload.get("explicit", False)),
            allow_streaming=payload.get("allowStreaming"),
            stream_ready=payload.get("streamReady"),
            stream_start_date=payload.get("streamStartDate"),
            audio_quality=payload.get("audioQuality"),
            tags=_media_tags(payload),
        )

    @property
    def display_title(self) -> str:
        """Title including the version suffix, if any."""
        if not self.title:
            return "Unknown Title"
        if self.version:
            return f"{self.title} ({self.version})"
        return self.title

    @property
    def artist_names(self) -> str:
        return ", ".join(self.artists) if self.artists else "Unknown Artist"

    @property
    def primary_artist(self) -> str:
        return self.artists[0] if self.artists else "Unknown Artist"

    @property
    def is_unavailable(self) -> bool:
        return (
            self.allow_streaming is False
            or self.stream_ready is False
            or self.title == "Unavailable"
        )

    @property
    def best_quality(self) -> Optional[QualityLevel]:
        return derive_track_quality(self)


@dataclass
class Release:
    """An album, EP or single: an ordered collection of tracks."""

    id: str
    title: str
    artists: List[str] = field(default_factory=list)
    release_date: Optional[str] = None
    release_type: ReleaseType = ReleaseType.ALBUM
    tracks: List[Track] = field(default_factory=list)
    number_of_tracks: int = 0
    number_of_volumes: int = 1
    tags: List[str] = field(default_factory=list)
    cover: Optional[str] = None
    copyright: Optional[str] = None
    upc: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Release":
        """
        Builds a release from an album payload. Track entries may be bare track
        objects or ``{"item": {...}, "type": "track"}`` wrappers.
        """
        ref = AlbumRef.from_api(payload)
        tracks = []
        for entry in payload.get("items") or []:
            if not isinstance(entry, dict):
                continue
            if entry.get("type") not in (None, "track"):
                continue
            item = entry.get("item", entry)
            if isinstance(item, dict):
                tracks.append(Track.from_api(item, album=ref))

        return cls(
            id=str(payload.get("id", "")),
            title=payload.get("title") or "Unknown Album",
            artists=_artist_names(payload),
            release_date=payload.get("releaseDate"),
            release_type=ReleaseType.from_api(payload.get("type")),
            tracks=tracks,
            number_of_tracks=int(payload.get("numberOfTracks") or len(tracks)),
            number_of_volumes=int(payload.get("numberOfVolumes") or 1),
            tags=_media_tags(payload),
            cover=payload.get("cover"),
            copyright=payload.get("copyright"),
            upc=payload.get("upc"),
        )

    @property
    def primary_artist(self) -> str:
        return self.artists[0] if self.artists else "Unknown Artist"

    @property
    def year(self) -> Optional[str]:
        """Release year, falling back to the first track's stream start date."""
        date = self.release_date
        if not date and self.tracks:
            date = self.tracks[0].stream_start_date
        if date and len(date) >= 4 and date[:4].isdigit():
            return date[:4]
        return None

    @property
    def total_duration(self) -> int:
        return sum(t.duration for t in self.tracks)


@dataclass
class ArtistDiscography:
    artist: Artist
    albums: List[Release] = field(default_factory=list)
    eps: List[Release] = field(default_factory=list)

    @property
    def releases(self) -> List[Release]:
        """Albums first, then EPs and singles, as listed by the API."""
        return [*self.albums, *self.eps]
