"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from streamqueue.exceptions import ConfigurationError
from streamqueue.models.config import PlayerConfig

log = logging.getLogger(__name__)


def _to_ini_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if hasattr(value, "value"):  # Enum members
        return str(value.value)
    if value is None:
        return ""
    return str(value)


class ConfigManager:
    """Handles all operations related to the player's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, overrides: dict[str, Any] | None = None) -> PlayerConfig:
        """
        Loads configuration from the INI file, applies overrides, and validates it.

        Args:
            overrides: Settings that take precedence over the file's values.

        Returns:
            A validated PlayerConfig object.

        Raises:
            ConfigurationError: If the config file is missing, invalid, or validation
            fails.
        """
        if not self.config_file_path.is_file():
            raise ConfigurationError(
                f"Configuration file not found at '{self.config_file_path}'."
            )

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
        if overrides:
            config_from_file.update(overrides)

        try:
            return PlayerConfig(**config_from_file)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """
        Creates and saves a new configuration file.

        Args:
            settings: A dictionary of settings to save; omitted keys get defaults.
        """
        config = configparser.ConfigParser(interpolation=None)
        config["DEFAULT"] = {}

        defaults = PlayerConfig.model_construct()
        for key in sorted(PlayerConfig.get_ini_keys()):
            value = settings.get(key, getattr(defaults, key, None))
            config["DEFAULT"][key] = _to_ini_value(value)

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._parser["DEFAULT"]
        config = {
            "cache_dir": section.get("cache_dir", ""),
            "prefetch_enabled": section.getboolean("prefetch_enabled", True),
            "repeat_mode": section.get("repeat_mode", "off"),
            "max_attempts": section.getint("max_attempts", 3),
            "base_delay": section.getfloat("base_delay", 1.5),
            "max_connections": section.getint("max_connections", 4),
            "connect_timeout": section.getfloat("connect_timeout", 15.0),
            "read_timeout": section.getfloat("read_timeout", 90.0),
            "log_level": section.get("log_level", "INFO"),
            "json_log_dir": section.get("json_log_dir", ""),
        }
        # Blank paths mean "use the default"
        for key in ("cache_dir", "json_log_dir"):
            if not config[key]:
                del config[key]
        return config

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        defaults = PlayerConfig.model_construct()
        needs_saving = False

        config_section = self._parser["DEFAULT"]

        for key in sorted(PlayerConfig.get_ini_keys()):
            if key not in config_section:
                config_section[key] = _to_ini_value(getattr(defaults, key))
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
