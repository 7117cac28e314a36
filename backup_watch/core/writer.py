"""Atomic backup writing."""

import logging
import os
import shutil
import tempfile
from pathlib import Path

from .errors import ReadError, SourceVanished, WriteError


class BackupWriter:
    """Copies a source file to its backup path atomically.

    The copy is staged in a temporary file in the destination directory and
    renamed into place, so either the complete backup exists at the final
    path or nothing does.
    """

    TEMP_PREFIX = '.backup-watch-'
    TEMP_SUFFIX = '.tmp'

    def __init__(self, chunk_size: int = 64 * 1024):
        """Initialize backup writer.

        Args:
            chunk_size: Number of bytes copied per read.
        """
        if chunk_size <= 0:
            raise ValueError(f"Invalid chunk size: {chunk_size}")
        self.chunk_size = chunk_size
        self.logger = logging.getLogger(__name__)

    def write(self, source: Path, backup_path: Path) -> int:
        """Copy the current bytes of source to backup_path.

        The source is re-read here, so the backup may reflect a newer state
        than the one whose fingerprint triggered it.

        Args:
            source: File to back up.
            backup_path: Final path of the backup.

        Returns:
            Number of bytes copied.

        Raises:
            SourceVanished: If the source no longer exists.
            ReadError: If reading the source fails.
            WriteError: If the backup cannot be written.
        """
        source = Path(source)
        backup_path = Path(backup_path)

        try:
            src = open(source, 'rb')
        except FileNotFoundError:
            raise SourceVanished(f"Source disappeared before backup: {source}", source)
        except OSError as e:
            raise ReadError(f"Unable to open {source}: {e}", source) from e

        with src:
            try:
                fd, tmp_name = tempfile.mkstemp(prefix=self.TEMP_PREFIX, suffix=self.TEMP_SUFFIX,
                                                dir=str(backup_path.parent))
            except OSError as e:
                raise WriteError(f"Unable to create temporary file in {backup_path.parent}: {e}",
                                 backup_path) from e

            try:
                with os.fdopen(fd, 'wb') as dst:
                    copied = self._copy(src, dst, source, backup_path)
                    dst.flush()
                    os.fsync(dst.fileno())

                try:
                    shutil.copymode(source, tmp_name)
                except OSError as e:
                    self.logger.debug(f"Could not copy permissions of {source}: {e}")

                os.replace(tmp_name, backup_path)
            except OSError as e:
                self._discard(tmp_name)
                raise WriteError(f"Unable to write backup {backup_path}: {e}", backup_path) from e
            except BaseException:
                self._discard(tmp_name)
                raise

        self.logger.info(f"Backed up {source} to {backup_path} ({copied} bytes)")
        return copied

    @classmethod
    def is_temp_file(cls, path: Path) -> bool:
        name = Path(path).name
        return name.startswith(cls.TEMP_PREFIX) and name.endswith(cls.TEMP_SUFFIX)

    def _copy(self, src, dst, source: Path, backup_path: Path) -> int:
        copied = 0
        while True:
            try:
                chunk = src.read(self.chunk_size)
            except OSError as e:
                raise ReadError(f"Read of {source} failed mid-copy: {e}", source) from e
            if not chunk:
                return copied
            try:
                dst.write(chunk)
            except OSError as e:
                raise WriteError(f"Unable to write backup {backup_path}: {e}", backup_path) from e
            copied += len(chunk)

    def _discard(self, tmp_name: str) -> None:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logger.warning(f"Could not remove temporary file {tmp_name}: {e}")
