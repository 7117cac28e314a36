"""
Backup Watch - Keep versioned backups of files while you edit them.

This package polls a file (or every file in a directory), fingerprints its
content, and writes a numbered or timestamped backup copy whenever the content
changes.
"""

__version__ = "1.0.0"

from .core.watcher import WatchLoop
from .core.tracker import ChangeTracker
from .reporters.console_reporter import ConsoleReporter

__all__ = ["WatchLoop", "ChangeTracker", "ConsoleReporter"]
