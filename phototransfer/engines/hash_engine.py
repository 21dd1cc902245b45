"""Content hash engine.

Digests are used only to identify files and track changes between runs,
never for security.
"""
from __future__ import annotations

import hashlib
from pathlib import Path

from ..core.config import DEFAULT_HASH_CHUNK_SIZE
from ..core.errors import MediaIOError


class ContentHashEngine:
    """SHA-256 over the full file contents, streamed in chunks."""

    def __init__(self, chunk_size: int = DEFAULT_HASH_CHUNK_SIZE):
        """Initialize the hash engine.

        Args:
            chunk_size: Bytes read per iteration, bounds memory use.
        """
        self._chunk_size = chunk_size

    @property
    def name(self) -> str:
        return "sha256"

    def compute_hash(self, path: Path) -> str:
        """Compute the hex digest of a file.

        Raises:
            MediaIOError: The file could not be opened or read.
        """
        digest = hashlib.sha256()
        try:
            with path.open("rb") as f:
                for chunk in iter(lambda: f.read(self._chunk_size), b""):
                    digest.update(chunk)
        except OSError as e:
            raise MediaIOError(f"Cannot read {path}: {e.strerror or e}", path) from e
        return digest.hexdigest()
