"""
Reads, migrates and writes ``config.ini``, the API key and client settings.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from subtitles_selector.exceptions import ConfigurationError
from subtitles_selector.models.config import AppConfig

log = logging.getLogger(__name__)

# Keys written to new files and added to old ones by migration.
DEFAULTS: dict[str, Any] = {
    "api_key": "",
    "user_agent": AppConfig.model_fields["user_agent"].default,
    "base_url": AppConfig.model_fields["base_url"].default,
    "download_dir": "",
    "prefetch_workers": AppConfig.model_fields["prefetch_workers"].default,
}


class ConfigManager:
    """Owns one INI file; every value lives in its ``DEFAULT`` section."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, cli_options: dict[str, Any] | None = None) -> AppConfig:
        """
        Builds an AppConfig from the file, with command-line values on top.

        Args:
            cli_options: Overrides by key; ``None`` values are ignored.

        Raises:
            ConfigurationError: The file is absent, unreadable, or holds
            values AppConfig rejects.
        """
        if not self.config_file_path.is_file():
            raise ConfigurationError(
                f"No configuration at '{self.config_file_path}'. "
                "Run 'subsel init <API_KEY>' first."
            )

        try:
            self._parser.read(self.config_file_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Cannot parse {self.config_file_path}: {e}") from e

        if self._migrate_if_needed():
            log.info("[yellow]Added new settings with default values to config.ini.[/yellow]")

        values = self.get_config_as_dict()
        if cli_options:
            values.update({k: v for k, v in cli_options.items() if v is not None})

        try:
            return AppConfig(**values, config_path=str(self.config_file_path.parent))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """Writes a fresh file from ``settings``, filling gaps from DEFAULTS."""
        config = configparser.ConfigParser(interpolation=None)
        config["DEFAULT"] = {
            key: str(settings.get(key, default))
            for key, default in DEFAULTS.items()
        }

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as fp:
                config.write(fp)
        except OSError as e:
            raise ConfigurationError(f"Cannot write {self.config_file_path}: {e}") from e

    def get_config_as_dict(self) -> dict[str, Any]:
        section = self._parser["DEFAULT"]
        try:
            workers = section.getint("prefetch_workers", DEFAULTS["prefetch_workers"])
        except ValueError as e:
            raise ConfigurationError(f"prefetch_workers must be an integer: {e}") from e
        return {
            "api_key": section.get("api_key", ""),
            "user_agent": section.get("user_agent", DEFAULTS["user_agent"]),
            "base_url": section.get("base_url", DEFAULTS["base_url"]),
            "download_dir": section.get("download_dir", ""),
            "prefetch_workers": workers,
        }

    def _migrate_if_needed(self) -> bool:
        """Fills keys added in newer versions and rewrites the file."""
        section = self._parser["DEFAULT"]
        missing = sorted(key for key in AppConfig.get_ini_keys() if key not in section)
        if not missing:
            return False

        for key in missing:
            section[key] = str(DEFAULTS.get(key, ""))
            log.debug(f"config.ini: '{key}' missing, defaulting to '{section[key]}'.")

        try:
            with open(self.config_file_path, "w", encoding="utf-8") as fp:
                self._parser.write(fp)
        except OSError as e:
            log.error(f"Could not rewrite migrated config.ini: {e}")
            return False
        return True
