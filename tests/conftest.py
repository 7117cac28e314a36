"""Shared fixtures for backup watch tests."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from backup_watch.core.models import WatchTarget
from backup_watch.core.watcher import WatchLoop


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2026, 10, 18, 9, 30, 15, 123000, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notes(tmp_path: Path) -> Path:
    """A watched file containing "a"."""
    path = tmp_path / "notes.txt"
    path.write_text("a")
    return path


@pytest.fixture
def make_loop(clock: FakeClock):
    """Build a started watch loop that records its events."""

    def _make(path: Path, **target_options):
        target_options.setdefault('interval', timedelta(milliseconds=100))
        events = []
        loop = WatchLoop(WatchTarget(path=path, **target_options), clock=clock, on_event=events.append)
        loop.namer.clock = clock
        tracker = loop.start()
        return loop, tracker, events

    return _make


def backups_of(path: Path):
    """Backup files next to path, sorted by name."""
    return sorted(p.name for p in path.parent.glob(f"{path.name}.*.bak"))
