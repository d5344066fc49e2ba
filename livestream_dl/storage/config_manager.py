"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from livestream_dl.exceptions import ConfigurationError
from livestream_dl.models.config import CaptureConfig

log = logging.getLogger(__name__)


def _ini_value(value: Any) -> str | None:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return None
    return str(value)


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, cli_options: dict[str, Any] | None = None) -> CaptureConfig:
        """
        Loads defaults from the INI file, applies CLI overrides, and validates them.

        A missing configuration file is not an error; the model defaults apply.

        Args:
            cli_options: A dictionary of options provided via the command line.

        Returns:
            A validated CaptureConfig object.

        Raises:
            ConfigurationError: If the config file is invalid or validation fails.
        """
        config_from_file: dict[str, Any] = {}
        if self.config_file_path.is_file():
            try:
                self._parser.read(self.config_file_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(f"Error parsing configuration file: {e}") from e

            if self._migrate_if_needed():
                log.info(
                    "[yellow]Configuration file was updated with new default values."
                    "[/yellow]"
                )
            config_from_file = self._get_config_as_dict()
        else:
            log.debug(f"No configuration file at {self.config_file_path}, using defaults")

        # Override with CLI options
        if cli_options:
            config_from_file.update(
                {key: value for key, value in cli_options.items() if value is not None}
            )

        try:
            return CaptureConfig(**config_from_file)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any] | None = None) -> None:
        """
        Creates and saves a new configuration file.

        Args:
            settings: Values to store instead of the model defaults.
        """
        settings = settings or {}
        config = configparser.ConfigParser(interpolation=None)
        config["DEFAULT"] = {}

        defaults = CaptureConfig.model_construct()
        for key in sorted(CaptureConfig.get_ini_keys()):
            value = _ini_value(settings.get(key, getattr(defaults, key, None)))
            if value is not None:
                config["DEFAULT"][key] = value

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def stored_settings(self) -> dict[str, Any]:
        """Returns the settings stored in the file, without CLI overrides."""
        try:
            self._parser.read(self.config_file_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Error parsing configuration file: {e}") from e
        return self._get_config_as_dict()

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._parser["DEFAULT"]
        defaults = CaptureConfig.model_construct()
        try:
            values = {
                "max_concurrent_downloads": section.getint(
                    "max_concurrent_downloads", defaults.max_concurrent_downloads
                ),
                "max_retries": section.getint("max_retries", defaults.max_retries),
                "timeout": section.getfloat("timeout", defaults.timeout),
                "retry_min_delay": section.getfloat(
                    "retry_min_delay", defaults.retry_min_delay
                ),
                "retry_max_delay": section.getfloat(
                    "retry_max_delay", defaults.retry_max_delay
                ),
                "copy_query": section.getboolean("copy_query", defaults.copy_query),
                "user_agent": section.get("user_agent", defaults.user_agent),
                "fail_fast": section.getboolean("fail_fast", defaults.fail_fast),
                "segment_retries": section.getint(
                    "segment_retries", defaults.segment_retries
                ),
                "ffmpeg_path": section.get("ffmpeg_path", defaults.ffmpeg_path),
                "ffprobe_path": section.get("ffprobe_path", defaults.ffprobe_path),
            }
            if init_cache_size := section.get("init_cache_size", "").strip():
                values["init_cache_size"] = int(init_cache_size)
        except ValueError as e:
            raise ConfigurationError(f"Invalid value in configuration file: {e}") from e
        return values

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        defaults = CaptureConfig.model_construct()
        needs_saving = False

        config_section = self._parser["DEFAULT"]

        for key in sorted(CaptureConfig.get_ini_keys()):
            if key in config_section:
                continue
            default_value = _ini_value(getattr(defaults, key))
            if default_value is None:
                continue
            config_section[key] = default_value
            needs_saving = True
            log.debug(
                f"Migrating config: added missing key '{key}' with "
                f"value '{config_section[key]}'."
            )

        if needs_saving:
            try:
                with open(self.config_file_path, "w", encoding="utf-8") as f:
                    self._parser.write(f)
            except OSError as e:
                log.error(f"Could not save migrated configuration file: {e}")
                return False

        return needs_saving
