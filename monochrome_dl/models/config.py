"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .quality import QualityLevel, normalize_quality_token

DEFAULT_FILENAME_TEMPLATE = "{trackNumber} - {artist} - {title}"
DEFAULT_FOLDER_TEMPLATE = "{albumTitle} - {albumArtist}"


class DownloadConfig(BaseModel):
    """A validated configuration model for the application."""

    # Naming
    filename_template: str = DEFAULT_FILENAME_TEMPLATE
    folder_template: str = DEFAULT_FOLDER_TEMPLATE

    # Companion files
    generate_m3u: bool = True
    generate_m3u8: bool = True
    generate_cue: bool = True
    generate_nfo: bool = True
    generate_json: bool = True
    use_relative_paths: bool = True

    # Download Settings
    quality: QualityLevel = QualityLevel.LOSSLESS
    download_dir: Path = Path("downloads")
    track_delay_ms: int = 0
    release_delay_ms: int = 0
    skip_existing: bool = True

    # API & resilience
    api_url: Optional[str] = None
    instances_url: Optional[str] = None
    cache_ttl_seconds: float = 30 * 60
    cache_max_size: int = 200
    retry_rounds: int = 1
    retry_backoff_seconds: float = 1.0
    request_timeout_seconds: float = 15

    # Internal fields not loaded from INI file
    config_path: Optional[str] = Field(default=None, repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("quality", mode="before")
    @classmethod
    def validate_quality(cls, v):
        """Accepts any known quality alias (e.g. 'hifi', 'Hi-Res') and normalizes it."""
        quality = normalize_quality_token(v)
        if quality is None:
            raise ValueError(
                "Quality must be one of HI_RES_LOSSLESS, LOSSLESS, HIGH, LOW "
                f"(or a known alias), got: {v!r}"
            )
        return quality

    @field_validator("filename_template", "folder_template")
    @classmethod
    def validate_template(cls, v: str) -> str:
        """Validates the naming templates."""
        if not v:
            raise ValueError("Templates cannot be empty.")
        if ".." in v or v.startswith(("/", "\\")):
            raise ValueError("Templates cannot contain relative '..' or absolute paths.")
        return v

    @field_validator("track_delay_ms", "release_delay_ms", "retry_rounds")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Delays and retry rounds cannot be negative.")
        return v

    @field_validator("cache_max_size")
    @classmethod
    def validate_cache_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Cache size must be at least 1.")
        return v

    @field_validator("api_url", "instances_url")
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"URLs must start with http:// or https://, got: {v}")
        return v.rstrip("/")

    @property
    def extension(self) -> str:
        return self.quality.extension

    @property
    def track_delay_seconds(self) -> float:
        return self.track_delay_ms / 1000

    @property
    def release_delay_seconds(self) -> float:
        return self.release_delay_ms / 1000

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
