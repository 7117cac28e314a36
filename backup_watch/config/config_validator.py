"""Configuration validation for backup watch."""

from typing import Any, Dict

from ..core.errors import ConfigError
from ..core.models import DestinationMode, NamingScheme


class ConfigValidator:
    """Validates backup watch configuration."""

    KNOWN_SECTIONS = ['watch', 'logging']
    NAMING_SCHEMES = [scheme.value for scheme in NamingScheme]
    DESTINATION_MODES = [mode.value for mode in DestinationMode]
    LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR']

    def validate(self, config: Dict[str, Any]) -> None:
        """Validate configuration data.

        Args:
            config: Configuration dictionary to validate.

        Raises:
            ConfigError: If configuration is invalid.
        """
        self._validate_structure(config)
        self._validate_watch_config(config.get('watch') or {})

        if config.get('logging'):
            self._validate_logging_config(config['logging'])

    def _validate_structure(self, config: Dict[str, Any]) -> None:
        """Validate basic configuration structure.

        Args:
            config: Configuration dictionary.

        Raises:
            ConfigError: If the document is not a mapping or has unknown sections.
        """
        if not isinstance(config, dict):
            raise ConfigError("Configuration must be a mapping")

        unknown_sections = [section for section in config if section not in self.KNOWN_SECTIONS]
        if unknown_sections:
            raise ConfigError(f"Unknown configuration sections: {unknown_sections}")

        for section in self.KNOWN_SECTIONS:
            if config.get(section) is not None and not isinstance(config[section], dict):
                raise ConfigError(f"Configuration section '{section}' must be a mapping")

    def _validate_watch_config(self, watch: Dict[str, Any]) -> None:
        """Validate the watch section.

        Args:
            watch: Watch configuration dictionary.

        Raises:
            ConfigError: If the watch configuration is invalid.
        """
        if 'path' in watch and watch['path'] is not None:
            if not isinstance(watch['path'], str) or not watch['path']:
                raise ConfigError("Watch path must be a non-empty string")

        if 'interval_ms' in watch:
            self.validate_interval(watch['interval_ms'])

        scheme = watch.get('naming_scheme')
        if scheme is not None and scheme not in self.NAMING_SCHEMES:
            raise ConfigError(f"Invalid naming scheme: {scheme} (expected one of {self.NAMING_SCHEMES})")

        destination = watch.get('destination') or {}
        if not isinstance(destination, dict):
            raise ConfigError("Watch destination must be a mapping")

        mode = destination.get('mode')
        if mode is not None and mode not in self.DESTINATION_MODES:
            raise ConfigError(f"Invalid destination mode: {mode} (expected one of {self.DESTINATION_MODES})")
        if mode == DestinationMode.DIRECTORY.value and not destination.get('directory'):
            raise ConfigError("Destination mode 'directory' requires destination.directory")

        for flag in ['backup_at_start', 'tolerate_missing', 'quiet']:
            if flag in watch and not isinstance(watch[flag], bool):
                raise ConfigError(f"Watch option '{flag}' must be true or false")

        patterns = watch.get('exclude_patterns', [])
        if not isinstance(patterns, list) or not all(isinstance(p, str) for p in patterns):
            raise ConfigError("Watch exclude_patterns must be a list of strings")

    def _validate_logging_config(self, logging_config: Dict[str, Any]) -> None:
        level = logging_config.get('level')
        if level is not None and str(level).upper() not in self.LOG_LEVELS:
            raise ConfigError(f"Invalid log level: {level}")

    def validate_interval(self, interval_ms: Any) -> int:
        """Check a polling interval in milliseconds.

        Args:
            interval_ms: Interval value to check.

        Returns:
            The interval as an integer.

        Raises:
            ConfigError: If the interval is not a positive integer.
        """
        if isinstance(interval_ms, bool):
            raise ConfigError(f"Polling interval must be an integer, got {interval_ms!r}")
        if isinstance(interval_ms, float) and not interval_ms.is_integer():
            raise ConfigError(f"Polling interval must be a whole number of milliseconds, got {interval_ms!r}")
        try:
            value = int(interval_ms)
        except (ValueError, TypeError):
            raise ConfigError(f"Polling interval must be an integer, got {interval_ms!r}")
        if value <= 0:
            raise ConfigError(f"Polling interval must be greater than 0, got {value}")
        return value
