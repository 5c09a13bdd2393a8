"""Operator settings loaded from a YAML file"""

import os
from pathlib import Path
from typing import Any, Dict, Optional
import yaml

from datedmail.errors import ConfigurationError, NotFoundError, ParseError, StorageError
from datedmail.store import DEFAULT_REGISTRY_PATH

DEFAULT_SETTINGS_PATH = Path("~/.config/DatedMail/settings.yaml")
SETTINGS_ENV_VAR = "DATEDMAIL_SETTINGS"

LOG_LEVELS = ('debug', 'info', 'warning', 'error', 'critical')


def section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    """Return a settings section, which must be a mapping if present"""
    value = config.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"Settings section '{name}' must be a mapping, got {type(value).__name__}")
    return value


class Settings:
    """Operator settings. Missing keys fall back to built-in defaults."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        if not isinstance(config, dict):
            raise ConfigurationError("Settings must be a YAML mapping")

        # Registry
        registry_config = section(config, 'registry')
        registry_path = registry_config.get('path') or DEFAULT_REGISTRY_PATH
        if not isinstance(registry_path, (str, Path)):
            raise ConfigurationError(f"registry.path must be a string, got {registry_path!r}")
        self.REGISTRY_PATH: Path = Path(registry_path).expanduser()

        # Aliases
        aliases_config = section(config, 'aliases')
        self.DEFAULT_VALID_DAYS: Optional[int] = aliases_config.get('default_valid_days')

        # Refresh
        refresh_config = section(config, 'refresh')
        self.REFRESH_INTERVAL_MINUTES: float = refresh_config.get('interval_minutes', 60)

        # Logging
        logging_config = section(config, 'logging')
        self.LOG_LEVEL: str = str(logging_config.get('level', 'info')).lower()

        self._validate()

    def _validate(self) -> None:
        days = self.DEFAULT_VALID_DAYS
        if days is not None and (isinstance(days, bool) or not isinstance(days, int) or days < 1):
            raise ConfigurationError(
                f"aliases.default_valid_days must be a positive integer, got {days!r}"
            )

        interval = self.REFRESH_INTERVAL_MINUTES
        if isinstance(interval, bool) or not isinstance(interval, (int, float)) or interval <= 0:
            raise ConfigurationError(
                f"refresh.interval_minutes must be a positive number, got {interval!r}"
            )

        if self.LOG_LEVEL not in LOG_LEVELS:
            raise ConfigurationError(
                f"logging.level must be one of {', '.join(LOG_LEVELS)}, got {self.LOG_LEVEL!r}"
            )

    @classmethod
    def from_file(cls, config_path: os.PathLike) -> "Settings":
        """Load settings from a YAML file"""
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ParseError(config_path, str(e)) from e
        except OSError as e:
            raise StorageError(config_path, e.strerror or str(e), action="read") from e
        return cls(config)


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Load operator settings.

    An explicit path (argument or DATEDMAIL_SETTINGS) must exist. When
    neither is given, the default location is used if present, otherwise
    built-in defaults apply.

    Raises:
        NotFoundError: If an explicitly named settings file is missing
        ParseError: If the file is not valid YAML
        ConfigurationError: If a setting has an invalid value
    """
    explicit = config_path or os.getenv(SETTINGS_ENV_VAR)

    if explicit:
        path = Path(explicit).expanduser()
        if not path.is_file():
            raise NotFoundError(path, f"Settings file not found: {path}")
        return Settings.from_file(path)

    path = DEFAULT_SETTINGS_PATH.expanduser()
    if path.is_file():
        return Settings.from_file(path)

    return Settings()
