"""Content fingerprinting for watched files."""

import hashlib
import logging
from pathlib import Path
from typing import Union

from .errors import NotFound, ReadError


class ContentHasher:
    """Computes 128-bit fingerprints of file contents."""

    DIGEST_SIZE = 16

    def __init__(self, chunk_size: int = 64 * 1024):
        """Initialize content hasher.

        Args:
            chunk_size: Number of bytes read per chunk while streaming.
        """
        if chunk_size <= 0:
            raise ValueError(f"Invalid chunk size: {chunk_size}")
        self.chunk_size = chunk_size
        self.logger = logging.getLogger(__name__)

    def fingerprint(self, path: Union[str, Path]) -> int:
        """Fingerprint the current byte content of a file.

        The file is streamed, so memory use does not depend on file size.
        Metadata such as modification time or permissions is ignored.

        Args:
            path: File to fingerprint.

        Returns:
            The 128-bit BLAKE2b digest of the content as an integer.

        Raises:
            NotFound: If the path does not exist.
            ReadError: If the path cannot be opened or a read fails.
        """
        digest = hashlib.blake2b(digest_size=self.DIGEST_SIZE)

        try:
            with open(path, 'rb') as f:
                for chunk in iter(lambda: f.read(self.chunk_size), b''):
                    digest.update(chunk)
        except FileNotFoundError:
            raise NotFound(f"File not found: {path}", path)
        except OSError as e:
            raise ReadError(f"Unable to read {path}: {e}", path) from e

        value = int.from_bytes(digest.digest(), 'big')
        self.logger.debug(f"Fingerprinted {path}: {value:#034x}")
        return value
