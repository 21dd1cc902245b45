"""Error taxonomy.

Each error also derives from the matching built-in exception so callers
that only know about ``OSError`` or ``ValueError`` still catch them.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


PathLike = Union[str, Path]


class PhotoTransferError(Exception):
    """Base class for all phototransfer errors."""


class NotFoundError(PhotoTransferError, FileNotFoundError):
    """A required directory or file does not exist."""

    def __init__(self, message: str, path: Optional[PathLike] = None):
        super().__init__(message)
        self.path = str(path) if path is not None else None

    def __str__(self) -> str:
        return self.args[0] if self.args else ""


class FileMissingError(NotFoundError):
    """A source file vanished between indexing and transfer."""


class AccessDeniedError(PhotoTransferError, PermissionError):
    """A path cannot be read or written."""

    def __init__(self, message: str, path: Optional[PathLike] = None):
        super().__init__(message)
        self.path = str(path) if path is not None else None

    def __str__(self) -> str:
        return self.args[0] if self.args else ""


class CorruptDataError(PhotoTransferError, ValueError):
    """A snapshot or checkpoint cannot be parsed or has the wrong shape."""

    def __init__(self, message: str, path: Optional[PathLike] = None):
        super().__init__(message)
        self.path = str(path) if path is not None else None


class MediaIOError(PhotoTransferError, OSError):
    """Generic read/write failure while hashing or transferring a file."""

    def __init__(self, message: str, path: Optional[PathLike] = None):
        super().__init__(message)
        self.path = str(path) if path is not None else None

    def __str__(self) -> str:
        return self.args[0] if self.args else ""
