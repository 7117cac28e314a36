"""Backup file naming."""

import logging
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Set

from .models import BackupVersion, DestinationMode, NamingScheme


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BackupNamer:
    """Derives backup paths for source files.

    Backups are named ``<basename>.<label>.bak`` where the label is a
    sequence number (``notes.txt.3.bak``) or a millisecond UTC timestamp
    (``notes.txt.20261018093015123.bak``), optionally followed by a
    disambiguating counter (``notes.txt.20261018093015123-1.bak``).
    """

    SUFFIX = '.bak'
    TIMESTAMP_FORMAT = '%Y%m%d%H%M%S'
    BACKUP_NAME_RE = re.compile(r'^(?P<source>.+)\.(?:\d+|\d{17}-\d+)\.bak$')

    def __init__(self, scheme: NamingScheme = NamingScheme.SEQUENTIAL,
                 destination_mode: DestinationMode = DestinationMode.IN_PLACE,
                 destination_dir: Optional[Path] = None,
                 clock: Callable[[], datetime] = _utc_now):
        """Initialize backup namer.

        Args:
            scheme: Naming scheme for version labels.
            destination_mode: Whether backups sit next to the source or in a
                separate directory.
            destination_dir: Backup directory for directory destination mode.
            clock: Callable returning the current time, used by the
                timestamp scheme.
        """
        if destination_mode is DestinationMode.DIRECTORY and destination_dir is None:
            raise ValueError("destination_dir is required for directory destination mode")
        self.scheme = scheme
        self.destination_mode = destination_mode
        self.destination_dir = Path(destination_dir) if destination_dir is not None else None
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    def backup_dir(self, source: Path) -> Path:
        """Get the directory that holds backups of a source."""
        if self.destination_mode is DestinationMode.DIRECTORY:
            return self.destination_dir
        return Path(source).parent

    def name_for(self, source: Path, version: BackupVersion) -> Path:
        """Get the backup path for a source at a given version."""
        source = Path(source)
        return self.backup_dir(source) / f"{source.name}.{version.label}{self.SUFFIX}"

    def next_version(self, source: Path, last_version: Optional[BackupVersion] = None) -> BackupVersion:
        """Pick the version for the next backup of a source.

        Versions increase monotonically and never name an existing file.

        Args:
            source: Source file being backed up.
            last_version: Version of the previous backup of this source in
                this run, or None if there was none yet.

        Returns:
            The version to use for the next backup.
        """
        source = Path(source)
        if self.scheme is NamingScheme.SEQUENTIAL:
            if last_version is None:
                highest = self._highest_existing_sequence(source)
            else:
                highest = last_version.sequence
            version = BackupVersion(sequence=highest + 1)
        else:
            version = self._next_timestamp_version(last_version)

        while self.name_for(source, version).exists():
            self.logger.debug(f"Backup name {self.name_for(source, version)} already taken")
            version = BackupVersion(sequence=version.sequence + 1, timestamp=version.timestamp)

        return version

    def is_backup_file(self, path: Path, siblings: Optional[Set[str]] = None) -> bool:
        """Check whether a filename looks like a backup written by this namer.

        Args:
            path: File to check.
            siblings: Names of the files its source could be. When given, a
                name only counts as a backup if its source name is among them,
                so a user file such as ``chapter.2.bak`` is not mistaken for one.

        Returns:
            True if the file is one of our backups.
        """
        match = self.BACKUP_NAME_RE.match(Path(path).name)
        if not match:
            return False
        if siblings is None:
            return True
        return match.group('source') in siblings

    def _next_timestamp_version(self, last_version: Optional[BackupVersion]) -> BackupVersion:
        now = self.clock()
        stamp = now.strftime(self.TIMESTAMP_FORMAT) + f"{now.microsecond // 1000:03d}"

        if last_version is not None and last_version.timestamp is not None:
            if stamp <= last_version.timestamp:
                # Same millisecond (or the clock stepped back): keep ordering
                return BackupVersion(sequence=last_version.sequence + 1,
                                     timestamp=last_version.timestamp)

        return BackupVersion(sequence=0, timestamp=stamp)

    def _highest_existing_sequence(self, source: Path) -> int:
        """Scan the backup directory for the highest sequence number in use."""
        pattern = re.compile(rf'^{re.escape(source.name)}\.(\d{{1,16}}){re.escape(self.SUFFIX)}$')
        directory = self.backup_dir(source)
        highest = 0

        try:
            names = os.listdir(directory)
        except OSError as e:
            self.logger.debug(f"Could not list {directory}: {e}")
            return highest

        for name in names:
            match = pattern.match(name)
            if match:
                highest = max(highest, int(match.group(1)))

        return highest
