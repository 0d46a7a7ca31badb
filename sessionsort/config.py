"""
Configuration management for sessionsort.
"""

import os
from pathlib import Path
from typing import Dict, Optional

import yaml

from .constants import (DEFAULT_EXIF_TIMEOUT, DEFAULT_GAP_MINUTES, DEFAULT_TIMEZONE,
                        DEFAULT_WORKERS, PROGRAM, get_logger)

SOURCE_ROOT_ENV = "SESSIONSORT_SOURCE_ROOT"
ARCHIVE_ROOT_ENV = "SESSIONSORT_ARCHIVE_ROOT"


def _env_string(name: str) -> Optional[str]:
    value = os.environ.get(name, "").strip()
    return value or None


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
            get_logger().warning(f"Could not load config: {e}")
            return {}

        if not isinstance(data, dict):
            get_logger().warning(f"Ignoring malformed config: {self.config_path}")
            return {}
        return data

    def save_config(self) -> None:
        """Save current configuration to file."""
        try:
            self.program_root.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, 'w') as f:
                yaml.safe_dump(self.data, f, default_flow_style=False)
        except OSError as e:
            get_logger().error(f"Could not save config: {e}")

    def get_last_source(self) -> Optional[str]:
        """Get the source directory (environment override, then last used)."""
        return _env_string(SOURCE_ROOT_ENV) or self.data.get('last_source')

    def get_archive_root(self) -> Optional[str]:
        """Get the archive root (environment override, then saved)."""
        return _env_string(ARCHIVE_ROOT_ENV) or self.data.get('archive_root')

    def get_device_label(self) -> Optional[str]:
        return self.data.get('device_label')

    def get_gap_minutes(self) -> float:
        """Default session gap in minutes (default: 30)."""
        try:
            value = float(self.data.get('gap_minutes', DEFAULT_GAP_MINUTES))
        except (TypeError, ValueError):
            return DEFAULT_GAP_MINUTES
        return value if value >= 0 else DEFAULT_GAP_MINUTES

    def get_workers(self) -> int:
        try:
            return int(self.data.get('workers', DEFAULT_WORKERS))
        except (TypeError, ValueError):
            return DEFAULT_WORKERS

    def get_exif_timeout(self) -> float:
        try:
            return float(self.data.get('exif_timeout', DEFAULT_EXIF_TIMEOUT))
        except (TypeError, ValueError):
            return DEFAULT_EXIF_TIMEOUT

    def get_timezone(self) -> str:
        return self.data.get('timezone') or DEFAULT_TIMEZONE

    def get_file_mode(self) -> Optional[str]:
        """Get the saved file mode setting."""
        return self.data.get('file_mode')

    def get_group(self) -> Optional[str]:
        """Get the saved group setting."""
        return self.data.get('group')

    def update(self, **values) -> None:
        """Update and save settings, ignoring values that are None."""
        changed = False
        for key, value in values.items():
            if value is None:
                continue
            self.data[key] = value
            changed = True
        if changed:
            self.save_config()
