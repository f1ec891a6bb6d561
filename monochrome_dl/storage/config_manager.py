"""
Manages loading, layering and validation of the application configuration.

Values are merged in increasing precedence: model defaults, the INI file,
``MONOCHROME_*`` environment variables, then command-line options.
"""

import configparser
import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from monochrome_dl.exceptions import ConfigurationError
from monochrome_dl.models.config import DownloadConfig

log = logging.getLogger(__name__)

# Environment variable -> config field
ENV_VARS = {
    "MONOCHROME_FILENAME_TEMPLATE": "filename_template",
    "MONOCHROME_ZIP_FOLDER_TEMPLATE": "folder_template",
    "MONOCHROME_M3U": "generate_m3u",
    "MONOCHROME_M3U8": "generate_m3u8",
    "MONOCHROME_CUE": "generate_cue",
    "MONOCHROME_NFO": "generate_nfo",
    "MONOCHROME_JSON": "generate_json",
    "MONOCHROME_RELATIVE_PATHS": "use_relative_paths",
    "MONOCHROME_QUALITY": "quality",
    "MONOCHROME_DELAY_MS": "release_delay_ms",
    "MONOCHROME_TRACK_DELAY_MS": "track_delay_ms",
    "MONOCHROME_DOWNLOAD_DIR": "download_dir",
    "MONOCHROME_API_URL": "api_url",
    "MONOCHROME_INSTANCES_URL": "instances_url",
}

_BOOL_FIELDS = {
    name
    for name, field in DownloadConfig.model_fields.items()
    if field.annotation is bool
}


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "monochrome-dl"


def parse_env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes")


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(
        self,
        cli_options: Optional[dict[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> DownloadConfig:
        """
        Builds the validated configuration from every layer.

        A missing config file is not an error; defaults apply.

        Raises:
            ConfigurationError: If the file cannot be parsed or validation fails.
        """
        values: dict[str, Any] = {}
        if self.config_file_path.is_file():
            try:
                self._parser.read(self.config_file_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(f"Error parsing configuration file: {e}") from e
            values.update(self._get_config_as_dict())
        else:
            log.debug(f"No config file at '{self.config_file_path}', using defaults.")

        env_values = self._get_env_overrides(os.environ if environ is None else environ)
        if env_values:
            log.debug(f"Environment overrides: {', '.join(sorted(env_values))}")
        values.update(env_values)

        if cli_options:
            values.update({k: v for k, v in cli_options.items() if v is not None})

        try:
            return DownloadConfig(
                **values, config_path=str(self.config_file_path.parent)
            )
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: Optional[dict[str, Any]] = None) -> None:
        """
        Creates and saves a complete configuration file.

        Args:
            settings: Values to write instead of the model defaults.
        """
        settings = settings or {}
        config = configparser.ConfigParser(interpolation=None)
        config["DEFAULT"] = {}

        defaults = DownloadConfig()
        for key in sorted(DownloadConfig.get_ini_keys()):
            value = settings.get(key, getattr(defaults, key, None))
            if isinstance(value, bool):
                config["DEFAULT"][key] = "true" if value else "false"
            elif hasattr(value, "value"):
                config["DEFAULT"][key] = str(value.value)
            elif value is not None:
                config["DEFAULT"][key] = str(value)
            else:
                config["DEFAULT"][key] = ""

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads known keys from the 'DEFAULT' section of the INI file."""
        section = self._parser["DEFAULT"]
        values: dict[str, Any] = {}
        for key in DownloadConfig.get_ini_keys():
            raw = section.get(key)
            if raw is None or raw.strip() == "":
                continue
            if key in _BOOL_FIELDS:
                try:
                    values[key] = section.getboolean(key)
                except ValueError as e:
                    raise ConfigurationError(
                        f"Invalid boolean for '{key}' in config file: {raw!r}"
                    ) from e
            else:
                values[key] = raw.strip()

        unknown = set(section) - DownloadConfig.get_ini_keys()
        if unknown:
            log.debug(f"Ignoring unknown config keys: {', '.join(sorted(unknown))}")
        return values

    @staticmethod
    def _get_env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for env_key, field_name in ENV_VARS.items():
            raw = environ.get(env_key)
            if raw is None or raw == "":
                continue
            if field_name in _BOOL_FIELDS:
                values[field_name] = parse_env_bool(raw)
            else:
                values[field_name] = raw
        return values

    def get_config_as_dict(self) -> dict[str, Any]:
        """Returns the effective INI values, for display."""
        if self.config_file_path.is_file():
            self._parser.read(self.config_file_path, encoding="utf-8")
            return self._get_config_as_dict()
        return {}
