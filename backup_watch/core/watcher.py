"""Main backup watching loop."""

import fnmatch
import logging
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Set

from .errors import ConfigError, NotFound, WatchError
from .hasher import ContentHasher
from .models import (BackupRecord, ChangeDecision, DestinationMode, WatchEvent,
                     WatchTarget)
from .namer import BackupNamer
from .tracker import ChangeTracker
from .writer import BackupWriter


class WatchLoop:
    """Polls a watch target and writes a backup whenever its content changes.

    The loop is single-threaded: one tick runs at a time, and the wait for
    the next tick starts only once the current one has finished.
    """

    def __init__(self, target: WatchTarget,
                 hasher: Optional[ContentHasher] = None,
                 namer: Optional[BackupNamer] = None,
                 writer: Optional[BackupWriter] = None,
                 clock: Callable[[], datetime] = datetime.now,
                 on_event: Optional[Callable[[WatchEvent], None]] = None):
        """Initialize watch loop.

        Args:
            target: What to watch and how to name its backups.
            hasher: Content hasher, created from defaults if not given.
            namer: Backup namer, created from the target if not given.
            writer: Backup writer, created from defaults if not given.
            clock: Callable returning the current time for events and state.
            on_event: Optional callback receiving every event.
        """
        self.target = target
        self.clock = clock
        self.on_event = on_event
        self.hasher = hasher or ContentHasher()
        self.writer = writer or BackupWriter()
        self.namer = namer or BackupNamer(
            scheme=target.naming_scheme,
            destination_mode=target.destination_mode,
            destination_dir=target.destination_dir
        )
        self.path: Optional[Path] = None
        self.directory_mode = False
        self.stop_event = threading.Event()
        self.logger = logging.getLogger(__name__)

    def start(self) -> ChangeTracker:
        """Validate the target and capture its initial state.

        Returns:
            A tracker holding the initial observed state.

        Raises:
            ConfigError: If the destination cannot be used or the watch path
                is missing and missing paths are not tolerated.
        """
        self.path = Path(os.path.abspath(os.path.expanduser(str(self.target.path))))

        if self.target.destination_mode is DestinationMode.DIRECTORY:
            self._prepare_destination(self.target.destination_dir)

        if not self.path.exists():
            if not self.target.tolerate_missing:
                raise ConfigError(f"Watch path does not exist: {self.path}", self.path)
            self.logger.warning(f"Watch path does not exist yet: {self.path}")
        self.directory_mode = self.path.is_dir()

        self.logger.info(f"Watching {self.path} every {self.target.interval.total_seconds():g}s "
                         f"({self.target.naming_scheme.value} naming, "
                         f"{self.target.destination_mode.value} backups)")

        tracker = ChangeTracker(clock=self.clock)
        self.tick(tracker)
        return tracker

    def run(self, max_ticks: Optional[int] = None) -> ChangeTracker:
        """Watch until stopped.

        Args:
            max_ticks: Stop after this many polls. Runs until stop() if None.

        Returns:
            The tracker with the final observed state.
        """
        tracker = self.start()
        interval = self.target.interval.total_seconds()
        ticks = 0

        while max_ticks is None or ticks < max_ticks:
            if self.stop_event.wait(interval):
                break
            self.tick(tracker)
            ticks += 1

        self.logger.info(f"Stopped watching {self.path} after {ticks} polls")
        return tracker

    def stop(self) -> None:
        """Ask the loop to stop at its next suspension point."""
        self.stop_event.set()

    def tick(self, tracker: ChangeTracker) -> List[WatchEvent]:
        """Run one poll-hash-decide-backup cycle over all watched paths.

        Failures are isolated per path and reported as error events.

        Args:
            tracker: Observed state to compare against and update.

        Returns:
            Events produced by this tick.
        """
        if self.path is None:
            raise RuntimeError("WatchLoop.start() must be called before tick()")

        events = []
        for path in self._paths_to_check(tracker, events):
            if self.stop_event.is_set():
                self.logger.debug("Stop requested, ending tick early")
                break
            events.append(self._check_path(tracker, path))

        return events

    def _check_path(self, tracker: ChangeTracker, path: Path) -> WatchEvent:
        key = str(path)
        state = tracker.get(key)
        previous = state.last_fingerprint if state else None

        try:
            fingerprint = self.hasher.fingerprint(path)
            exists = True
        except NotFound:
            fingerprint = None
            exists = False
        except WatchError as e:
            return self._emit_error(e, key)

        decision = tracker.observe(key, exists, fingerprint)
        backup = None

        if self._should_back_up(decision):
            try:
                backup = self._back_up(tracker, path)
            except WatchError as e:
                tracker.revert(key, previous)
                return self._emit_error(e, key)

        return self._emit(WatchEvent(
            path=key,
            decision=decision,
            timestamp=self.clock(),
            fingerprint=fingerprint,
            backup=backup
        ))

    def _should_back_up(self, decision: ChangeDecision) -> bool:
        if decision is ChangeDecision.CHANGED:
            return True
        if decision is ChangeDecision.FIRST_SEEN:
            return self.target.backup_at_start
        return False

    def _back_up(self, tracker: ChangeTracker, path: Path) -> BackupRecord:
        state = tracker.get(str(path))
        version = self.namer.next_version(path, state.last_backup_version)
        backup_path = self.namer.name_for(path, version)

        size = self.writer.write(path, backup_path)
        tracker.record_backup(str(path), version)

        return BackupRecord(
            source_path=path,
            backup_path=backup_path,
            version=version,
            created_at=self.clock(),
            size=size
        )

    def _paths_to_check(self, tracker: ChangeTracker, events: List[WatchEvent]) -> List[Path]:
        """Get the paths to poll this tick.

        A watched directory contributes its regular files, minus excluded
        names and our own backup and temporary files. Previously tracked
        paths are always polled so their disappearance is noticed.
        """
        if not self.directory_mode:
            if not self.path.is_dir():
                return [self.path]
            # A tolerated missing path was created as a directory
            self.logger.info(f"{self.path} is now a directory, watching its files")
            self.directory_mode = True
            tracker.forget(str(self.path))

        paths = {str(p): p for p in map(Path, tracker.paths())}
        entries = []
        try:
            for entry in os.scandir(self.path):
                try:
                    if entry.is_file():
                        entries.append(entry)
                except OSError as e:
                    self.logger.debug(f"Skipping {entry.path}: {e}")
        except OSError as e:
            error = WatchError(f"Unable to list {self.path}: {e}", self.path)
            events.append(self._emit_error(error, str(self.path)))

        siblings = {entry.name for entry in entries} | {path.name for path in paths.values()}
        for entry in entries:
            if not self._is_excluded(entry.name, siblings):
                paths.setdefault(entry.path, Path(entry.path))

        return [paths[key] for key in sorted(paths)]

    def _is_excluded(self, name: str, siblings: Set[str]) -> bool:
        if self.namer.is_backup_file(name, siblings) or self.writer.is_temp_file(name):
            return True
        for pattern in self.target.exclude_patterns:
            if fnmatch.fnmatch(name, pattern):
                return True
        return False

    def _prepare_destination(self, destination: Path) -> None:
        try:
            destination.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigError(f"Cannot create backup directory {destination}: {e}", destination) from e

        if not destination.is_dir():
            raise ConfigError(f"Backup destination is not a directory: {destination}", destination)
        if not os.access(destination, os.R_OK | os.W_OK | os.X_OK):
            raise ConfigError(f"Backup directory is not writable: {destination}", destination)

    def _emit_error(self, error: WatchError, path: str) -> WatchEvent:
        self.logger.error(f"{error.kind} for {path}: {error}")
        return self._emit(WatchEvent(
            path=path,
            decision=None,
            timestamp=self.clock(),
            error_kind=error.kind,
            message=str(error)
        ))

    def _emit(self, event: WatchEvent) -> WatchEvent:
        if not event.is_error:
            if event.backup:
                self.logger.info(f"{event.decision.value}: {event.path} -> {event.backup.backup_path}")
            else:
                self.logger.debug(f"{event.decision.value}: {event.path}")
        if self.on_event:
            self.on_event(event)
        return event
