"""Configuration management for pyworkspace."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

# Seconds allowed for loading an archive before an operation gives up
DEFAULT_ARCHIVE_TIMEOUT: float = 3.0


class Config:
    """Configuration read from the environment and the config file.

    Environment variables take precedence over values stored in
    ``<config dir>/config.json``.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding the config file, workspace records
                and archives. Defaults to $PYWORKSPACE_CONFIG_DIR or
                ~/.config/pyworkspace
        """
        if config_dir is None:
            env_dir = os.environ.get("PYWORKSPACE_CONFIG_DIR")
            if env_dir:
                config_dir = Path(env_dir)
            else:
                config_dir = Path.home() / ".config" / "pyworkspace"
        self.config_dir = Path(config_dir)
        self._values: dict[str, Any] = self._load()

    def get_config_path(self) -> Path:
        """Get the path of the config file."""
        return self.config_dir / "config.json"

    def _load(self) -> dict[str, Any]:
        config_path = self.get_config_path()
        if not config_path.exists():
            return {}
        try:
            with open(config_path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to read config file {config_path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed config file {config_path}")
            return {}
        return data

    def save(self, **values: Any) -> None:
        """Persist values to the config file.

        Args:
            **values: Keys and values to store
        """
        self._values.update(values)
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(self.get_config_path(), "w", encoding="utf-8") as f:
            json.dump(self._values, f, indent=2)

    @property
    def archive_timeout(self) -> float:
        """Seconds allowed for loading an archive."""
        value = os.environ.get("PYWORKSPACE_ARCHIVE_TIMEOUT")
        if value is None:
            value = self._values.get("archive_timeout", DEFAULT_ARCHIVE_TIMEOUT)
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning(f"Invalid archive timeout {value!r}, using default")
            return DEFAULT_ARCHIVE_TIMEOUT

    @property
    def default_profile_id(self) -> int:
        """Profile used when the CLI is not given one."""
        value = os.environ.get("PYWORKSPACE_PROFILE_ID")
        if value is None:
            value = self._values.get("profile_id", 0)
        try:
            return int(value)
        except (TypeError, ValueError):
            return 0

    @property
    def workspaces_path(self) -> Path:
        """JSON file holding workspace records."""
        return self.config_dir / "workspaces.json"

    @property
    def archives_dir(self) -> Path:
        """Directory holding archive storage."""
        return self.config_dir / "archives"


config = Config()
