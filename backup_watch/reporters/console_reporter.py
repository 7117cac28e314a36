"""Console output for watch events."""

from typing import Optional

import click

from ..core.models import ChangeDecision, WatchEvent
from ..utils.formatters import format_date, format_file_size, format_fingerprint, format_path_relative


class ConsoleReporter:
    """Prints watch events to the terminal.

    Errors are always printed to stderr. Quiet mode suppresses everything
    else; unchanged polls are only shown in verbose mode.
    """

    MESSAGES = {
        ChangeDecision.FIRST_SEEN: "Watching",
        ChangeDecision.CHANGED: "File changed!",
        ChangeDecision.APPEARED: "File reappeared unchanged.",
        ChangeDecision.DISAPPEARED: "File disappeared.",
        ChangeDecision.UNCHANGED: "No change.",
    }

    def __init__(self, quiet: bool = False, verbose: bool = False, base_path: Optional[str] = None):
        """Initialize console reporter.

        Args:
            quiet: Only print errors.
            verbose: Also print polls that found no change.
            base_path: Watched directory; event paths are shown relative to it.
        """
        self.quiet = quiet
        self.verbose = verbose
        self.base_path = base_path
        self.backups = 0
        self.errors = 0

    def __call__(self, event: WatchEvent) -> None:
        self.report(event)

    def report(self, event: WatchEvent) -> None:
        """Print a single event."""
        if event.is_error:
            self.errors += 1
            click.echo(f"Error ({event.error_kind}) {self._display(event.path)}: {event.message}", err=True)
            return

        if event.backup:
            self.backups += 1

        if self.quiet:
            return
        if event.decision is ChangeDecision.UNCHANGED and not self.verbose:
            return

        click.echo(self.format_event(event))

    def format_event(self, event: WatchEvent) -> str:
        """Format a non-error event as a single line."""
        message = self.MESSAGES[event.decision]
        if event.decision is ChangeDecision.FIRST_SEEN and event.backup:
            message = "Making a starting backup."

        line = f"{message} {format_date(event.timestamp)} {self._display(event.path)}"
        if event.fingerprint is not None:
            line += f": {format_fingerprint(event.fingerprint)}"
        if event.backup:
            line += (f" -> {self._display(str(event.backup.backup_path))}"
                     f" ({format_file_size(event.backup.size)})")
        return line

    def summary(self) -> str:
        return f"{self.backups} backups written, {self.errors} errors"

    def _display(self, path: str) -> str:
        if self.base_path:
            return format_path_relative(path, self.base_path)
        return path
