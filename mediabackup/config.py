"""
Configuration management for mediabackup.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .constants import (DEFAULT_METADATA_TIMEOUT, DEFAULT_MIN_FILE_SIZE_KB, DEFAULT_WORKERS,
                        PROGRAM)
from .timestamps import is_valid_timezone


class Config:
    """Manages configuration file for storing user preferences."""

    def __init__(self, config_path: Optional[Path] = None):
        # Default config location: ~/.<PROGRAM>/config.yml
        if config_path:
            self.config_path = Path(config_path)
        else:
            self.config_path = Path.home() / f".{PROGRAM}" / "config.yml"
        self.program_root = self.config_path.parent
        self.data = self._load_config()

    def _load_config(self) -> Dict:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            return {}

        try:
            with open(self.config_path, 'r') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logging.getLogger(PROGRAM).warning(f"Could not load config: {e}")
            return {}

        if not isinstance(data, dict):
            logging.getLogger(PROGRAM).warning(f"Ignoring malformed config: {self.config_path}")
            return {}
        return data

    def save_config(self) -> None:
        """Save current configuration to file."""
        try:
            self.program_root.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, 'w') as f:
                yaml.safe_dump(self.data, f, default_flow_style=False)
        except OSError as e:
            logging.getLogger(PROGRAM).error(f"Could not save config: {e}")

    def _get_number(self, key: str, default: Any, cast) -> Any:
        value = self.data.get(key)
        if value is None:
            return default
        try:
            return cast(value)
        except (TypeError, ValueError):
            logging.getLogger(PROGRAM).warning(f"Ignoring invalid {key} in config: {value!r}")
            return default

    def get_last_source(self) -> Optional[str]:
        """Get the last used source directory."""
        return self.data.get('last_source')

    def get_last_dest(self) -> Optional[str]:
        """Get the last used destination directory."""
        return self.data.get('last_dest')

    def get_min_file_size_kb(self) -> int:
        return self._get_number('min_file_size_kb', DEFAULT_MIN_FILE_SIZE_KB, int)

    def get_workers(self) -> int:
        return self._get_number('workers', DEFAULT_WORKERS, int)

    def get_metadata_timeout(self) -> float:
        return self._get_number('metadata_timeout', DEFAULT_METADATA_TIMEOUT, float)

    def get_timezone(self) -> Optional[str]:
        """Get the saved timezone setting (None means system local time)."""
        value = self.data.get('timezone')
        if value and not is_valid_timezone(str(value)):
            logging.getLogger(PROGRAM).warning(f"Ignoring unknown timezone in config: {value!r}")
            return None
        return value or None

    def get_seed_from_destination(self) -> bool:
        """Whether to index the destination before a run (default: True)."""
        return bool(self.data.get('seed_from_destination', True))

    def update_paths(self, source: str, dest: Optional[str]) -> None:
        """Update and save the last used paths."""
        self.data['last_source'] = source
        if dest is not None:
            self.data['last_dest'] = dest
        self.save_config()

    def update(self, **settings: Any) -> None:
        """Update and save individual settings; None values are left unchanged."""
        changed = {key: value for key, value in settings.items() if value is not None}
        if not changed:
            return
        self.data.update(changed)
        self.save_config()
