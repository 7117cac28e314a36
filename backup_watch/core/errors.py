"""Exceptions raised by the backup watch engine."""

from pathlib import Path
from typing import Optional, Union


class WatchError(Exception):
    """Base class for backup watch errors."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        super().__init__(message)
        self.path = str(path) if path is not None else None

    @property
    def kind(self) -> str:
        return type(self).__name__


class ConfigError(WatchError, ValueError):
    """Invalid configuration. Fatal at startup."""


class NotFound(WatchError):
    """The watched path does not exist at read time."""


class ReadError(WatchError):
    """The source could not be opened or a read failed mid-stream."""


class WriteError(WatchError):
    """The backup could not be written to its destination."""


class SourceVanished(WatchError):
    """The source disappeared between change detection and the copy."""
