"""Command-line interface for backup watch."""

import logging
import os
import signal
import sys
from typing import Any, Dict, Optional, Tuple

import click
from click.core import ParameterSource

from .config.config_manager import ConfigManager
from .core.errors import ConfigError
from .core.models import DestinationMode, NamingScheme
from .core.watcher import WatchLoop
from .reporters.console_reporter import ConsoleReporter


def setup_logging(level: str, log_file: Optional[str] = None):
    """Set up logging configuration."""
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f'Invalid log level: {level}')

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Set up root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Add console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Add file handler if specified
    if log_file:
        try:
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
        except OSError as e:
            click.echo(f"Warning: Could not set up file logging: {e}", err=True)


@click.group()
@click.version_option(package_name='backup-watch')
@click.option('--config', '-c', 'config_path',
              help='Path to configuration file')
@click.option('--log-level',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              help='Logging level (default: from config, else WARNING)')
@click.option('--log-file',
              help='Log file path')
@click.pass_context
def cli(ctx, config_path: Optional[str], log_level: Optional[str], log_file: Optional[str]):
    """Backup Watch - Watch a file and make backups whenever a change is detected."""
    ctx.ensure_object(dict)

    # Load configuration
    config_manager = ConfigManager(config_path)
    try:
        config_manager.load_config()
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(2)

    # Set up logging, command line options win over the config file
    logging_config = config_manager.get_logging_config()
    setup_logging(log_level or logging_config.get('level', 'WARNING'),
                  log_file or logging_config.get('file'))

    ctx.obj['config_manager'] = config_manager


@cli.command()
@click.argument('path', required=False, type=click.Path())
@click.option('--interval', '-i', 'interval_ms', type=int,
              help='Polling interval in milliseconds (default: 5000)')
@click.option('--scheme', 'naming_scheme',
              type=click.Choice([scheme.value for scheme in NamingScheme]),
              help='Backup naming scheme (default: sequential)')
@click.option('--dest-dir', '-d', 'destination_dir', type=click.Path(file_okay=False),
              help='Write backups to this directory instead of next to the file')
@click.option('--starting-backup', '-s', 'backup_at_start', is_flag=True,
              help='Make a backup of the file when watching starts')
@click.option('--tolerate-missing', is_flag=True,
              help='Start even if the watched path does not exist yet')
@click.option('--quiet', '-q', is_flag=True,
              help='Be silent under normal operation (errors are still shown)')
@click.option('--verbose', '-v', is_flag=True,
              help='Also report polls that found no change')
@click.option('--exclude', 'exclude_patterns', multiple=True,
              help='Glob pattern of file names to skip in directory mode (repeatable)')
@click.option('--ticks', type=click.IntRange(min=0), default=0,
              help='Stop after this many polls (0 runs until interrupted)')
@click.pass_context
def watch(ctx, path: Optional[str], interval_ms: Optional[int], naming_scheme: Optional[str],
          destination_dir: Optional[str], backup_at_start: Optional[bool],
          tolerate_missing: Optional[bool], quiet: Optional[bool], verbose: bool,
          exclude_patterns: Tuple[str, ...], ticks: int):
    """Watch PATH (a file or directory) and back it up on every change."""
    config_manager = ctx.obj['config_manager']
    watch_config = config_manager.get_watch_config()
    reporter = None
    previous_handlers = {}

    # Flags left at their default must not override the config file
    backup_at_start = _given(ctx, 'backup_at_start', backup_at_start)
    tolerate_missing = _given(ctx, 'tolerate_missing', tolerate_missing)
    quiet = _given(ctx, 'quiet', quiet)

    try:
        # Merge command line options over the config file
        target = config_manager.build_target({
            'path': path,
            'interval_ms': interval_ms,
            'naming_scheme': naming_scheme,
            'destination_dir': destination_dir,
            'backup_at_start': backup_at_start,
            'tolerate_missing': tolerate_missing,
            'exclude_patterns': list(exclude_patterns) or None
        })
        if quiet is None:
            quiet = watch_config.get('quiet', False)

        # Create watch loop and reporter
        loop = WatchLoop(target)
        base_path = os.path.abspath(target.path) if os.path.isdir(target.path) else None
        reporter = ConsoleReporter(quiet=quiet, verbose=verbose, base_path=base_path)
        loop.on_event = reporter

        previous_handlers = _install_signal_handlers(loop)

        if not quiet:
            click.echo(f"Watching {target.path} every {target.interval.total_seconds() * 1000:g}ms "
                       f"(press Ctrl+C to stop)")

        # Run until stopped
        loop.run(max_ticks=ticks or None)

    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(2)
    except KeyboardInterrupt:
        pass
    except Exception as e:
        click.echo(f"Error while watching: {e}", err=True)
        sys.exit(1)
    finally:
        # Restore previous signal handlers
        for signum, handler in previous_handlers.items():
            if handler is not None:
                signal.signal(signum, handler)

    if reporter and not quiet:
        click.echo(f"Stopped. {reporter.summary()}")


@cli.command()
@click.pass_context
def validate_config(ctx):
    """Validate configuration file."""
    config_manager = ctx.obj['config_manager']

    if not config_manager.config_file:
        click.echo("No configuration file found; command line options and defaults will be used")
        return

    click.echo(f"✅ Configuration loaded successfully from {config_manager.config_file}")

    watch_config = config_manager.get_watch_config()
    destination = watch_config.get('destination', {})

    click.echo("\n📊 Configuration Summary:")
    click.echo(f"   Watch path: {watch_config.get('path') or '(from command line)'}")
    click.echo(f"   Interval: {watch_config.get('interval_ms')}ms")
    click.echo(f"   Naming scheme: {watch_config.get('naming_scheme')}")
    if destination.get('mode') == DestinationMode.DIRECTORY.value:
        click.echo(f"   Backups: in {destination.get('directory')}")
    else:
        click.echo("   Backups: next to the watched file")
    click.echo(f"   Starting backup: {'yes' if watch_config.get('backup_at_start') else 'no'}")
    if watch_config.get('exclude_patterns'):
        click.echo(f"   Excluded: {', '.join(watch_config['exclude_patterns'])}")

    if watch_config.get('path'):
        try:
            config_manager.build_target()
        except ConfigError as e:
            click.echo(f"❌ Configuration validation failed: {e}", err=True)
            sys.exit(2)
        click.echo("\n✅ Watch target valid")


def _given(ctx, name: str, value: Any) -> Any:
    """Return an option value, or None if it was not given on the command line."""
    if ctx.get_parameter_source(name) is ParameterSource.DEFAULT:
        return None
    return value


def _install_signal_handlers(loop: WatchLoop) -> Dict[int, Any]:
    """Stop the loop gracefully on SIGINT and SIGTERM.

    Returns:
        The handlers that were replaced, keyed by signal number.
    """
    def handle_signal(signum, frame):
        logging.getLogger(__name__).info(f"Received signal {signum}, stopping")
        loop.stop()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            previous[signum] = signal.signal(signum, handle_signal)
        except ValueError:
            # Not in the main thread
            pass
    return previous


def main():
    """Main CLI entry point."""
    cli()


if __name__ == '__main__':
    main()
