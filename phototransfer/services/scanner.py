"""Directory scanning service."""
from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path
from typing import Iterator, Optional

from ..core.config import SUPPORTED_EXTENSIONS
from ..core.errors import NotFoundError

logger = logging.getLogger(__name__)

NO_EXTENSION = "[no extension]"


class FileEnumerator:
    """Walks a directory tree and yields candidate media files.

    Entries are visited in sorted order so an unchanged tree always yields
    the same sequence. Symlink cycles are not detected when
    ``follow_symlinks`` is enabled.
    """

    def __init__(
        self,
        extensions: Optional[frozenset[str]] = None,
        follow_symlinks: bool = False,
    ):
        """Initialize the enumerator.

        Args:
            extensions: Lower-cased extensions to accept (with dot).
            follow_symlinks: Whether to follow symbolic links.
        """
        if extensions is None:
            extensions = frozenset(SUPPORTED_EXTENSIONS)
        self._extensions = frozenset(ext.lower() for ext in extensions)
        self._follow_symlinks = follow_symlinks

    @property
    def extensions(self) -> frozenset[str]:
        return self._extensions

    def scan(self, root: Path, extensions: Optional[frozenset[str]] = None) -> Iterator[Path]:
        """Yield absolute paths of non-empty files with an allowed extension.

        Each call starts a fresh walk.

        Raises:
            NotFoundError: Root directory does not exist.
        """
        allowed = self._extensions if extensions is None else extensions
        root = self._check_root(root)
        for path in self._walk(root):
            if path.suffix.lower() not in allowed:
                continue
            try:
                if path.stat().st_size <= 0:
                    continue
            except OSError as e:
                logger.debug("Skipping %s: %s", path, e)
                continue
            yield path

    def count_by_extension(self, root: Path) -> dict[str, int]:
        """Count every file under root by lower-cased extension."""
        counts: Counter[str] = Counter()
        for path in self._walk(self._check_root(root)):
            counts[path.suffix.lower() or NO_EXTENSION] += 1
        return dict(counts)

    def _check_root(self, root: Path) -> Path:
        root = Path(root).expanduser().absolute()
        if not root.is_dir():
            raise NotFoundError(f"Directory not found: {root}", root)
        return root

    def _walk(self, directory: Path) -> Iterator[Path]:
        """Recursively yield files under a directory."""
        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as e:
            logger.debug("Cannot list %s: %s", directory, e)
            return

        for entry in entries:
            if entry.is_symlink() and not self._follow_symlinks:
                continue
            try:
                if entry.is_file():
                    yield entry
                elif entry.is_dir():
                    yield from self._walk(entry)
            except OSError as e:
                logger.debug("Skipping %s: %s", entry, e)
