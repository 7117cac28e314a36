"""Core change detection and backup functionality."""

from .errors import ConfigError, NotFound, ReadError, SourceVanished, WatchError, WriteError
from .hasher import ContentHasher
from .models import (BackupRecord, BackupVersion, ChangeDecision, DestinationMode,
                     NamingScheme, ObservedState, WatchEvent, WatchTarget)
from .namer import BackupNamer
from .tracker import ChangeTracker
from .watcher import WatchLoop
from .writer import BackupWriter

__all__ = [
    "WatchLoop", "ChangeTracker", "ContentHasher", "BackupNamer", "BackupWriter",
    "WatchTarget", "ObservedState", "BackupRecord", "BackupVersion", "WatchEvent",
    "ChangeDecision", "NamingScheme", "DestinationMode",
    "WatchError", "ConfigError", "NotFound", "ReadError", "WriteError", "SourceVanished",
]
