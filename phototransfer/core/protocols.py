"""Protocol definitions (interfaces) for dependency injection."""
from __future__ import annotations

import os
from abc import abstractmethod
from pathlib import Path
from typing import Iterator, Optional, Protocol

from .models import DateFact


class HashComputer(Protocol):
    """Interface for content digests used in duplicate bookkeeping."""

    @abstractmethod
    def compute_hash(self, path: Path) -> str:
        """Compute the digest of a file. Raises MediaIOError on read failure."""
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Engine name for logging."""
        ...


class DateFactSource(Protocol):
    """One origin of dated facts about a file.

    Implementations:
    - FilesystemDateSource: creation and last-write timestamps
    - ExifDateSource: capture metadata embedded in images
    - ContainerDateSource: creation/modification atoms in video containers

    ``collect`` must never raise; a failing source contributes no facts.
    """

    @abstractmethod
    def applies_to(self, extension: str) -> bool:
        """Whether this source can read files with this extension."""
        ...

    @abstractmethod
    def collect(self, path: Path, stat: os.stat_result) -> list[DateFact]:
        """Return the facts this source can extract."""
        ...


class ProgressReporter(Protocol):
    """Interface for progress reporting."""

    @abstractmethod
    def start_phase(self, name: str, total: int) -> None:
        """Start a new processing phase."""
        ...

    @abstractmethod
    def advance_phase(self, amount: int = 1) -> None:
        """Advance the current phase by an amount."""
        ...

    @abstractmethod
    def end_phase(self) -> None:
        """Complete current phase."""
        ...

    @abstractmethod
    def info(self, message: str) -> None:
        """Log an info message."""
        ...

    @abstractmethod
    def warning(self, message: str) -> None:
        """Log a warning message."""
        ...

    @abstractmethod
    def error(self, message: str) -> None:
        """Log an error message."""
        ...


class MediaScanner(Protocol):
    """Interface for enumerating candidate files under a root."""

    @abstractmethod
    def scan(self, root: Path, extensions: Optional[frozenset[str]] = None) -> Iterator[Path]:
        """Yield absolute paths of candidate files."""
        ...
