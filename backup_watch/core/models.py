"""Data models for backup watching."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import List, Optional

from .errors import ConfigError


class NamingScheme(Enum):
    """How backup versions are embedded in backup filenames."""
    SEQUENTIAL = 'sequential'
    TIMESTAMP = 'timestamp'


class DestinationMode(Enum):
    """Where backups are written."""
    IN_PLACE = 'in_place'
    DIRECTORY = 'directory'


class ChangeDecision(Enum):
    """Outcome of comparing a fresh observation against stored state."""
    FIRST_SEEN = 'first_seen'
    UNCHANGED = 'unchanged'
    CHANGED = 'changed'
    APPEARED = 'appeared'
    DISAPPEARED = 'disappeared'


@dataclass
class WatchTarget:
    """A file or directory being watched."""
    path: Path
    interval: timedelta = timedelta(milliseconds=5000)
    naming_scheme: NamingScheme = NamingScheme.SEQUENTIAL
    destination_mode: DestinationMode = DestinationMode.IN_PLACE
    destination_dir: Optional[Path] = None
    backup_at_start: bool = False
    tolerate_missing: bool = False
    exclude_patterns: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.path = Path(self.path)
        if self.interval <= timedelta(0):
            raise ConfigError(f"Polling interval must be greater than 0, got {self.interval}")
        if self.destination_mode is DestinationMode.DIRECTORY:
            if not self.destination_dir:
                raise ConfigError("A destination directory is required for directory destination mode")
            self.destination_dir = Path(self.destination_dir)


@dataclass(frozen=True)
class BackupVersion:
    """Version indicator embedded in a backup filename.

    For the sequential scheme ``sequence`` is the backup number. For the
    timestamp scheme ``timestamp`` holds the formatted time and ``sequence``
    disambiguates backups that share a timestamp.
    """
    sequence: int
    timestamp: Optional[str] = None

    @property
    def label(self) -> str:
        if self.timestamp is None:
            return str(self.sequence)
        if self.sequence == 0:
            return self.timestamp
        return f"{self.timestamp}-{self.sequence}"


@dataclass
class ObservedState:
    """Last known state of a watched path."""
    exists: bool
    last_fingerprint: Optional[int] = None
    last_backup_version: Optional[BackupVersion] = None
    last_checked: Optional[datetime] = None


@dataclass
class BackupRecord:
    """A completed backup."""
    source_path: Path
    backup_path: Path
    version: BackupVersion
    created_at: datetime
    size: int = 0


@dataclass
class WatchEvent:
    """One tick outcome for one path, or an error."""
    path: str
    decision: Optional[ChangeDecision]
    timestamp: datetime
    fingerprint: Optional[int] = None
    backup: Optional[BackupRecord] = None
    error_kind: Optional[str] = None
    message: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error_kind is not None
