"""
Audio quality levels and the helpers that map vendor quality labels onto them.
"""

import re
from enum import Enum
from typing import Any, Iterable, Optional, Union


class QualityLevel(str, Enum):
    """Canonical audio-fidelity tiers, declared highest fidelity first."""

    HI_RES_LOSSLESS = "HI_RES_LOSSLESS"
    LOSSLESS = "LOSSLESS"
    HIGH = "HIGH"
    LOW = "LOW"

    @property
    def extension(self) -> str:
        """Container extension of streams delivered at this quality."""
        return "m4a" if self in (QualityLevel.HIGH, QualityLevel.LOW) else "flac"

    @property
    def label(self) -> str:
        return QUALITY_LABELS[self]

    @property
    def rank(self) -> int:
        return QUALITY_PRIORITY.index(self)


QUALITY_PRIORITY = [
    QualityLevel.HI_RES_LOSSLESS,
    QualityLevel.LOSSLESS,
    QualityLevel.HIGH,
    QualityLevel.LOW,
]

QUALITY_LABELS = {
    QualityLevel.HI_RES_LOSSLESS: "Hi-Res Lossless (up to 24/192 FLAC)",
    QualityLevel.LOSSLESS: "Lossless (16/44.1 FLAC)",
    QualityLevel.HIGH: "High (320 kbps AAC)",
    QualityLevel.LOW: "Low (96 kbps AAC)",
}

# Historical and vendor-specific labels, already in normalized token form.
QUALITY_ALIASES = {
    QualityLevel.HI_RES_LOSSLESS: (
        "HI_RES_LOSSLESS",
        "HIRES_LOSSLESS",
        "HIRESLOSSLESS",
        "HIFI_PLUS",
        "HI_RES_FLAC",
        "HI_RES",
        "HIRES",
        "MASTER",
        "MASTER_QUALITY",
        "MQA",
    ),
    QualityLevel.LOSSLESS: ("LOSSLESS", "HIFI"),
    QualityLevel.HIGH: ("HIGH", "HIGH_QUALITY"),
    QualityLevel.LOW: ("LOW", "LOW_QUALITY"),
}

_TOKEN_TO_QUALITY = {
    alias: quality for quality, aliases in QUALITY_ALIASES.items() for alias in aliases
}
_NON_ALNUM = re.compile(r"[^A-Z0-9]+")

QualityCandidate = Union[QualityLevel, str, None]


def _sanitize_token(value: str) -> str:
    return _NON_ALNUM.sub("_", value.strip().upper())


def normalize_quality_token(value: Any) -> Optional[QualityLevel]:
    """
    Maps a raw quality label (e.g. ``"Hi-Res Lossless"``) to a QualityLevel.
    Returns None for empty or unrecognized labels.
    """
    if isinstance(value, QualityLevel):
        return value
    if not value or not isinstance(value, str):
        return None
    return _TOKEN_TO_QUALITY.get(_sanitize_token(value))


def _rank(candidate: QualityCandidate) -> float:
    if not candidate:
        return float("inf")
    try:
        return QualityLevel(candidate).rank
    except ValueError:
        return float("inf")


def pick_best_quality(candidates: Iterable[QualityCandidate]) -> Optional[QualityLevel]:
    """
    Returns the highest-fidelity recognized candidate, or None if there is none.
    Unrecognized candidates rank below every recognized level.
    """
    best: Optional[QualityLevel] = None
    best_rank = float("inf")
    for candidate in candidates:
        rank = _rank(candidate)
        if rank < best_rank:
            best = QualityLevel(candidate)
            best_rank = rank
    return best


def derive_quality_from_tags(raw_tags: Any) -> Optional[QualityLevel]:
    """Normalizes every tag and returns the best recognized quality among them."""
    if not isinstance(raw_tags, (list, tuple)):
        return None
    candidates: list[QualityLevel] = []
    for tag in raw_tags:
        normalized = normalize_quality_token(tag)
        if normalized and normalized not in candidates:
            candidates.append(normalized)
    return pick_best_quality(candidates)


def derive_track_quality(track: Any) -> Optional[QualityLevel]:
    """
    Infers the best available quality of a track from its own tags, its album's
    tags and its explicit quality field, considering all three together.
    """
    if track is None:
        return None
    album = getattr(track, "album", None)
    return pick_best_quality(
        [
            derive_quality_from_tags(getattr(track, "tags", None)),
            derive_quality_from_tags(getattr(album, "tags", None)),
            normalize_quality_token(getattr(track, "audio_quality", None)),
        ]
    )
