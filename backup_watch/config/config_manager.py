"""Configuration management for the backup watch system."""

import copy
import os
from datetime import timedelta
from typing import Any, Dict, Optional

import yaml

from ..core.errors import ConfigError
from ..core.models import DestinationMode, NamingScheme, WatchTarget
from .config_validator import ConfigValidator


class ConfigManager:
    """Loads optional YAML configuration and builds watch targets from it."""

    DEFAULT_CONFIG_LOCATIONS = [
        "backup-watch.yaml",
        "backup-watch.yml",
        os.path.expanduser("~/.backup-watch/config.yaml"),
        os.path.expanduser("~/.backup-watch/config.yml"),
    ]

    DEFAULTS = {
        'watch': {
            'path': None,
            'interval_ms': 5000,
            'naming_scheme': NamingScheme.SEQUENTIAL.value,
            'destination': {
                'mode': DestinationMode.IN_PLACE.value,
                'directory': None
            },
            'backup_at_start': False,
            'tolerate_missing': False,
            'quiet': False,
            'exclude_patterns': []
        },
        'logging': {
            'level': 'WARNING',
            'file': None
        }
    }

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration manager.

        Args:
            config_path: Optional path to config file. If not provided,
                        the default locations are searched, and running
                        without any config file is allowed.
        """
        self.config_path = config_path
        self.config_file: Optional[str] = None
        self.config_data: Dict[str, Any] = {}
        self.validator = ConfigValidator()

    def load_config(self) -> Dict[str, Any]:
        """Load configuration from file.

        Returns:
            Dictionary containing configuration data with defaults applied.

        Raises:
            ConfigError: If an explicit config file is missing, or the file
                is unreadable or invalid.
        """
        self.config_file = self._find_config_file()
        self.config_data = {}

        if self.config_file:
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    self.config_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in config file {self.config_file}: {e}")
            except OSError as e:
                raise ConfigError(f"Error reading config file {self.config_file}: {e}")

        # Validate configuration
        self.validator.validate(self.config_data)

        # Set defaults for missing values
        self._set_defaults()

        return self.config_data

    def _find_config_file(self) -> Optional[str]:
        """Find configuration file in default locations.

        Returns:
            Path to configuration file, or None if there is none.

        Raises:
            ConfigError: If an explicitly given config file does not exist.
        """
        if self.config_path:
            if os.path.exists(self.config_path):
                return self.config_path
            raise ConfigError(f"Config file not found: {self.config_path}")

        for location in self.DEFAULT_CONFIG_LOCATIONS:
            if os.path.exists(location):
                return location

        return None

    def _set_defaults(self):
        """Fill in default values for missing configuration parameters."""
        self.config_data = _merge(copy.deepcopy(self.DEFAULTS), self.config_data)

    def get_watch_config(self) -> Dict[str, Any]:
        """Get watch configuration."""
        return self.config_data.get('watch', {})

    def get_logging_config(self) -> Dict[str, Any]:
        """Get logging configuration."""
        return self.config_data.get('logging', {})

    def build_target(self, overrides: Optional[Dict[str, Any]] = None) -> WatchTarget:
        """Build a watch target from the loaded configuration.

        Args:
            overrides: Watch settings that take precedence over the file,
                typically from the command line. None values are ignored.
                ``destination_dir`` switches to directory destination mode.

        Returns:
            The configured WatchTarget.

        Raises:
            ConfigError: If the merged configuration is incomplete or invalid.
        """
        watch = copy.deepcopy(self.get_watch_config() or self.DEFAULTS['watch'])
        destination = watch.setdefault('destination', {})

        # Apply overrides on top of the file
        for key, value in (overrides or {}).items():
            if value is None:
                continue
            if key == 'destination_dir':
                destination['mode'] = DestinationMode.DIRECTORY.value
                destination['directory'] = value
            else:
                watch[key] = value

        # Validate the merged settings
        self.validator.validate({'watch': watch})

        if not watch.get('path'):
            raise ConfigError("No watch path given on the command line or in the config file")

        directory = destination.get('directory')
        return WatchTarget(
            path=os.path.expanduser(watch['path']),
            interval=timedelta(milliseconds=self.validator.validate_interval(watch.get('interval_ms', 5000))),
            naming_scheme=NamingScheme(watch.get('naming_scheme') or NamingScheme.SEQUENTIAL.value),
            destination_mode=DestinationMode(destination.get('mode') or DestinationMode.IN_PLACE.value),
            destination_dir=os.path.expanduser(directory) if directory else None,
            backup_at_start=bool(watch.get('backup_at_start', False)),
            tolerate_missing=bool(watch.get('tolerate_missing', False)),
            exclude_patterns=list(watch.get('exclude_patterns') or [])
        )


def _merge(defaults: Dict[str, Any], values: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively overlay configured values on top of defaults."""
    for key, value in values.items():
        if isinstance(value, dict) and isinstance(defaults.get(key), dict):
            _merge(defaults[key], value)
        elif value is not None or key not in defaults:
            defaults[key] = value
    return defaults
