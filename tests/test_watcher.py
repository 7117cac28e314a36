"""Tests for the watch loop."""

import threading
import time
from datetime import timedelta
from pathlib import Path

import pytest

from backup_watch.core.errors import ConfigError, ReadError, SourceVanished, WriteError
from backup_watch.core.hasher import ContentHasher
from backup_watch.core.models import ChangeDecision, DestinationMode, NamingScheme, WatchTarget
from backup_watch.core.watcher import WatchLoop
from backup_watch.core.writer import BackupWriter
from conftest import backups_of


class FlakyWriter(BackupWriter):
    """Writer that fails a given number of times before copying normally."""

    def __init__(self, error, failures: int = 1):
        super().__init__()
        self.error = error
        self.failures = failures

    def write(self, source, backup_path):
        if self.failures > 0:
            self.failures -= 1
            raise self.error
        return super().write(source, backup_path)


class SelectiveHasher(ContentHasher):
    """Hasher that cannot read files with a given name."""

    def __init__(self, unreadable: str):
        super().__init__()
        self.unreadable = unreadable

    def fingerprint(self, path):
        if Path(path).name == self.unreadable:
            raise ReadError(f"Permission denied: {path}", path)
        return super().fingerprint(path)


class TestSingleFile:
    """Test watching a single file."""

    def test_edit_cycle_creates_sequential_backups(self, notes: Path, make_loop) -> None:
        """First poll only records state; each real change gets the next backup."""
        loop, tracker, events = make_loop(notes)

        assert [e.decision for e in events] == [ChangeDecision.FIRST_SEEN]
        assert events[0].backup is None
        assert backups_of(notes) == []

        notes.write_text("ab")
        [event] = loop.tick(tracker)
        assert event.decision is ChangeDecision.CHANGED
        assert event.backup.backup_path == notes.parent / "notes.txt.1.bak"
        assert (notes.parent / "notes.txt.1.bak").read_text() == "ab"

        notes.write_text("a")
        [event] = loop.tick(tracker)
        assert event.decision is ChangeDecision.CHANGED
        assert (notes.parent / "notes.txt.2.bak").read_text() == "a"

        assert backups_of(notes) == ["notes.txt.1.bak", "notes.txt.2.bak"]

    def test_unchanged_poll_makes_no_backup(self, notes: Path, make_loop) -> None:
        loop, tracker, events = make_loop(notes)

        [event] = loop.tick(tracker)

        assert event.decision is ChangeDecision.UNCHANGED
        assert event.backup is None
        assert backups_of(notes) == []

    def test_delete_and_recreate_with_same_content(self, notes: Path, make_loop) -> None:
        """A disappear/reappear cycle with identical content produces no backup."""
        loop, tracker, events = make_loop(notes)
        notes.write_text("ab")
        loop.tick(tracker)

        notes.unlink()
        [event] = loop.tick(tracker)
        assert event.decision is ChangeDecision.DISAPPEARED
        assert not event.is_error

        notes.write_text("ab")
        [event] = loop.tick(tracker)
        assert event.decision is ChangeDecision.APPEARED
        assert event.backup is None

        assert backups_of(notes) == ["notes.txt.1.bak"]

    def test_delete_and_recreate_with_new_content(self, notes: Path, make_loop) -> None:
        """Reappearing with different content produces exactly one backup of it."""
        loop, tracker, events = make_loop(notes)

        notes.unlink()
        loop.tick(tracker)
        loop.tick(tracker)
        notes.write_text("new")
        [event] = loop.tick(tracker)
        loop.tick(tracker)

        assert event.decision is ChangeDecision.CHANGED
        assert backups_of(notes) == ["notes.txt.1.bak"]
        assert (notes.parent / "notes.txt.1.bak").read_text() == "new"

    def test_backup_at_start(self, notes: Path, make_loop) -> None:
        loop, tracker, events = make_loop(notes, backup_at_start=True)

        assert events[0].decision is ChangeDecision.FIRST_SEEN
        assert events[0].backup.backup_path.name == "notes.txt.1.bak"
        assert (notes.parent / "notes.txt.1.bak").read_text() == "a"

    def test_empty_file_changes(self, tmp_path: Path, make_loop) -> None:
        path = tmp_path / "empty.txt"
        path.write_bytes(b"")
        loop, tracker, events = make_loop(path)

        path.write_text("content")
        [event] = loop.tick(tracker)
        assert event.decision is ChangeDecision.CHANGED

        path.write_bytes(b"")
        [event] = loop.tick(tracker)
        assert event.decision is ChangeDecision.CHANGED
        assert (tmp_path / "empty.txt.2.bak").read_bytes() == b""

    def test_continues_numbering_from_existing_backups(self, notes: Path, make_loop) -> None:
        (notes.parent / "notes.txt.3.bak").write_text("from an earlier run")
        loop, tracker, events = make_loop(notes)

        notes.write_text("b")
        loop.tick(tracker)
        notes.write_text("c")
        loop.tick(tracker)

        assert backups_of(notes) == ["notes.txt.3.bak", "notes.txt.4.bak", "notes.txt.5.bak"]
        assert (notes.parent / "notes.txt.3.bak").read_text() == "from an earlier run"

    def test_timestamp_backups_within_one_millisecond(self, notes: Path, make_loop) -> None:
        """Two changes at the same timestamp produce two distinct backups."""
        loop, tracker, events = make_loop(notes, naming_scheme=NamingScheme.TIMESTAMP)

        notes.write_text("b")
        loop.tick(tracker)
        notes.write_text("c")
        loop.tick(tracker)

        assert backups_of(notes) == [
            "notes.txt.20261018093015123-1.bak",
            "notes.txt.20261018093015123.bak",
        ]
        assert (notes.parent / "notes.txt.20261018093015123.bak").read_text() == "b"
        assert (notes.parent / "notes.txt.20261018093015123-1.bak").read_text() == "c"

    def test_destination_directory(self, notes: Path, tmp_path: Path, make_loop) -> None:
        destination = tmp_path / "backups" / "notes"
        loop, tracker, events = make_loop(notes, destination_mode=DestinationMode.DIRECTORY,
                                          destination_dir=destination)
        assert destination.is_dir()

        notes.write_text("b")
        loop.tick(tracker)

        assert (destination / "notes.txt.1.bak").read_text() == "b"
        assert backups_of(notes) == []


class TestErrors:
    """Test startup and per-tick error handling."""

    def test_missing_path_at_start_is_config_error(self, tmp_path: Path, make_loop) -> None:
        with pytest.raises(ConfigError):
            make_loop(tmp_path / "missing.txt")

    def test_tolerated_missing_path(self, tmp_path: Path, make_loop) -> None:
        path = tmp_path / "later.txt"
        loop, tracker, events = make_loop(path, tolerate_missing=True)
        assert events[0].decision is ChangeDecision.UNCHANGED

        path.write_text("hello")
        [event] = loop.tick(tracker)
        assert event.decision is ChangeDecision.FIRST_SEEN
        assert backups_of(path) == []

        path.write_text("hello again")
        [event] = loop.tick(tracker)
        assert event.decision is ChangeDecision.CHANGED
        assert backups_of(path) == ["later.txt.1.bak"]

    def test_tolerated_missing_path_created_as_directory(self, tmp_path: Path, make_loop) -> None:
        """A missing path that later shows up as a directory has its files watched."""
        drafts = tmp_path / "drafts"
        loop, tracker, events = make_loop(drafts, tolerate_missing=True)
        assert not loop.directory_mode

        drafts.mkdir()
        (drafts / "a.txt").write_text("a")
        events = loop.tick(tracker)

        assert [(Path(e.path).name, e.decision) for e in events] == [("a.txt", ChangeDecision.FIRST_SEEN)]
        assert loop.directory_mode
        assert tracker.get(str(drafts)) is None

        (drafts / "a.txt").write_text("aa")
        [event] = loop.tick(tracker)

        assert event.decision is ChangeDecision.CHANGED
        assert (drafts / "a.txt.1.bak").read_text() == "aa"

    def test_destination_that_is_a_file(self, notes: Path, tmp_path: Path, make_loop) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")

        with pytest.raises(ConfigError):
            make_loop(notes, destination_mode=DestinationMode.DIRECTORY, destination_dir=blocker)

    def test_non_positive_interval(self, notes: Path) -> None:
        with pytest.raises(ConfigError):
            WatchTarget(path=notes, interval=timedelta(0))
        with pytest.raises(ConfigError):
            WatchTarget(path=notes, interval=timedelta(milliseconds=-5))

    def test_tick_before_start(self, notes: Path) -> None:
        loop = WatchLoop(WatchTarget(path=notes))
        with pytest.raises(RuntimeError):
            loop.tick(None)

    def test_read_error_is_reported(self, notes: Path, clock) -> None:
        events = []
        loop = WatchLoop(WatchTarget(path=notes), hasher=SelectiveHasher("notes.txt"),
                         clock=clock, on_event=events.append)
        tracker = loop.start()

        assert len(events) == 1
        assert events[0].is_error
        assert events[0].error_kind == "ReadError"
        assert events[0].path == str(notes)
        assert tracker.get(str(notes)) is None

    def test_write_error_is_retried_next_tick(self, notes: Path, clock) -> None:
        writer = FlakyWriter(WriteError("No space left on device", notes), failures=2)
        loop = WatchLoop(WatchTarget(path=notes), writer=writer, clock=clock)
        tracker = loop.start()

        notes.write_text("ab")
        [event] = loop.tick(tracker)
        assert event.error_kind == "WriteError"
        assert backups_of(notes) == []

        [event] = loop.tick(tracker)
        assert event.error_kind == "WriteError"

        [event] = loop.tick(tracker)
        assert event.decision is ChangeDecision.CHANGED
        assert backups_of(notes) == ["notes.txt.1.bak"]

        [event] = loop.tick(tracker)
        assert event.decision is ChangeDecision.UNCHANGED

    def test_source_vanished_is_reported(self, notes: Path, clock) -> None:
        writer = FlakyWriter(SourceVanished("gone", notes))
        loop = WatchLoop(WatchTarget(path=notes), writer=writer, clock=clock)
        tracker = loop.start()

        notes.write_text("ab")
        [event] = loop.tick(tracker)
        assert event.error_kind == "SourceVanished"

        notes.unlink()
        [event] = loop.tick(tracker)
        assert event.decision is ChangeDecision.DISAPPEARED


class TestDirectory:
    """Test watching every file in a directory."""

    @pytest.fixture
    def drafts(self, tmp_path: Path) -> Path:
        directory = tmp_path / "drafts"
        directory.mkdir()
        (directory / "a.txt").write_text("a")
        (directory / "b.txt").write_text("b")
        (directory / "a.txt.1.bak").write_text("old backup")
        (directory / ".a.txt.swp").write_text("swap")
        (directory / "sub").mkdir()
        return directory

    def test_watches_each_file(self, drafts: Path, make_loop) -> None:
        loop, tracker, events = make_loop(drafts, exclude_patterns=[".*.swp"])

        assert sorted(Path(e.path).name for e in events) == ["a.txt", "b.txt"]
        assert all(e.decision is ChangeDecision.FIRST_SEEN for e in events)

        (drafts / "a.txt").write_text("aa")
        events = {Path(e.path).name: e for e in loop.tick(tracker)}

        assert set(events) == {"a.txt", "b.txt"}
        assert events["a.txt"].decision is ChangeDecision.CHANGED
        assert events["a.txt"].backup.backup_path == drafts / "a.txt.2.bak"
        assert events["b.txt"].decision is ChangeDecision.UNCHANGED

    def test_new_and_deleted_files(self, drafts: Path, make_loop) -> None:
        loop, tracker, events = make_loop(drafts, exclude_patterns=[".*.swp"])

        (drafts / "b.txt").unlink()
        (drafts / "c.txt").write_text("c")
        events = {Path(e.path).name: e.decision for e in loop.tick(tracker)}

        assert events == {
            "a.txt": ChangeDecision.UNCHANGED,
            "b.txt": ChangeDecision.DISAPPEARED,
            "c.txt": ChangeDecision.FIRST_SEEN,
        }

    def test_bak_file_without_source_is_watched(self, tmp_path: Path, make_loop) -> None:
        """A user file that only looks like a backup is watched like any other."""
        directory = tmp_path / "book"
        directory.mkdir()
        (directory / "chapter.2.bak").write_text("draft")

        loop, tracker, events = make_loop(directory)

        assert [(Path(e.path).name, e.decision) for e in events] == [("chapter.2.bak", ChangeDecision.FIRST_SEEN)]

        (directory / "chapter.2.bak").write_text("second draft")
        [event] = loop.tick(tracker)

        assert event.decision is ChangeDecision.CHANGED
        assert event.backup.backup_path == directory / "chapter.2.bak.1.bak"
        # Its own backup is skipped on the next poll
        assert [Path(e.path).name for e in loop.tick(tracker)] == ["chapter.2.bak"]

    def test_backup_of_deleted_file_is_still_skipped(self, drafts: Path, make_loop) -> None:
        loop, tracker, events = make_loop(drafts, exclude_patterns=[".*.swp"])

        (drafts / "a.txt").unlink()
        events = {Path(e.path).name: e.decision for e in loop.tick(tracker)}

        assert events == {
            "a.txt": ChangeDecision.DISAPPEARED,
            "b.txt": ChangeDecision.UNCHANGED,
        }

    def test_failure_on_one_file_does_not_stop_others(self, drafts: Path, clock) -> None:
        loop = WatchLoop(WatchTarget(path=drafts, exclude_patterns=[".*.swp"]),
                         hasher=SelectiveHasher("a.txt"), clock=clock)
        tracker = loop.start()

        (drafts / "b.txt").write_text("bb")
        events = {Path(e.path).name: e for e in loop.tick(tracker)}

        assert events["a.txt"].error_kind == "ReadError"
        assert events["b.txt"].decision is ChangeDecision.CHANGED
        assert (drafts / "b.txt.1.bak").read_text() == "bb"

    def test_stop_between_files(self, drafts: Path, clock) -> None:
        loop = WatchLoop(WatchTarget(path=drafts, exclude_patterns=[".*.swp"]), clock=clock)
        tracker = loop.start()
        loop.on_event = lambda event: loop.stop()

        events = loop.tick(tracker)

        assert len(events) == 1


class TestRun:
    """Test the polling loop."""

    def test_runs_requested_number_of_ticks(self, notes: Path, clock) -> None:
        events = []
        loop = WatchLoop(WatchTarget(path=notes, interval=timedelta(milliseconds=1)),
                         clock=clock, on_event=events.append)

        tracker = loop.run(max_ticks=3)

        assert [e.decision for e in events] == [ChangeDecision.FIRST_SEEN] + [ChangeDecision.UNCHANGED] * 3
        assert tracker.get(str(notes)).exists

    def test_stop_before_run(self, notes: Path, clock) -> None:
        events = []
        loop = WatchLoop(WatchTarget(path=notes, interval=timedelta(seconds=60)),
                         clock=clock, on_event=events.append)
        loop.stop()

        tracker = loop.run()

        assert events == []
        assert tracker.paths() == []

    def test_stop_during_wait(self, notes: Path, clock) -> None:
        """Stopping from another thread ends the wait without a further poll."""
        events = []
        loop = WatchLoop(WatchTarget(path=notes, interval=timedelta(seconds=60)),
                         clock=clock, on_event=events.append)
        timer = threading.Timer(0.1, loop.stop)

        started = time.monotonic()
        timer.start()
        try:
            loop.run()
        finally:
            timer.cancel()

        assert time.monotonic() - started < 5
        assert [e.decision for e in events] == [ChangeDecision.FIRST_SEEN]
