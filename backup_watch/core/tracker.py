"""Change tracking for watched paths."""

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from .models import BackupVersion, ChangeDecision, ObservedState


class ChangeTracker:
    """Holds the last observed state per path and classifies new observations.

    Detection is poll-sampled: a change that happens while a file is absent,
    or that reverts before the next poll, cannot be seen.
    """

    def __init__(self, states: Optional[Dict[str, ObservedState]] = None,
                 clock: Callable[[], datetime] = datetime.now):
        """Initialize change tracker.

        Args:
            states: Optional existing state map, keyed by resolved path.
            clock: Callable returning the current time.
        """
        self.states: Dict[str, ObservedState] = states if states is not None else {}
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    def get(self, path: str) -> Optional[ObservedState]:
        """Get the observed state of a path, or None if it was never observed."""
        return self.states.get(str(path))

    def paths(self) -> List[str]:
        """Get every tracked path."""
        return list(self.states)

    def forget(self, path: str) -> None:
        """Drop the state of a path that is no longer watched."""
        self.states.pop(str(path), None)

    def observe(self, path: str, exists_now: bool,
                fingerprint: Optional[int] = None) -> ChangeDecision:
        """Record an observation and decide what happened since the last one.

        Args:
            path: Resolved path that was observed.
            exists_now: Whether the path exists now.
            fingerprint: Content fingerprint, required when the path exists.

        Returns:
            The change decision for this observation.
        """
        path = str(path)
        if exists_now and fingerprint is None:
            raise ValueError(f"A fingerprint is required for existing path {path}")

        state = self.states.get(path)
        now = self.clock()

        if state is None:
            self.states[path] = ObservedState(
                exists=exists_now,
                last_fingerprint=fingerprint if exists_now else None,
                last_checked=now
            )
            if exists_now:
                return ChangeDecision.FIRST_SEEN
            # Never existed, so nothing disappeared
            return ChangeDecision.UNCHANGED

        existed = state.exists
        previous = state.last_fingerprint
        state.exists = exists_now
        state.last_checked = now

        if not exists_now:
            # Fingerprint is retained so a reappearance can be compared to it
            return ChangeDecision.DISAPPEARED if existed else ChangeDecision.UNCHANGED

        state.last_fingerprint = fingerprint

        if previous is None:
            return ChangeDecision.FIRST_SEEN
        if fingerprint != previous:
            return ChangeDecision.CHANGED
        if not existed:
            return ChangeDecision.APPEARED
        return ChangeDecision.UNCHANGED

    def record_backup(self, path: str, version: BackupVersion) -> None:
        """Remember the version used for the latest backup of a path."""
        self.states[str(path)].last_backup_version = version

    def revert(self, path: str, fingerprint: Optional[int]) -> None:
        """Restore a previous fingerprint after a failed backup.

        The next observation of unchanged content is then classified as a
        change again, so the backup is retried.
        """
        state = self.states.get(str(path))
        if state is not None:
            self.logger.debug(f"Reverting fingerprint for {path}")
            state.last_fingerprint = fingerprint
