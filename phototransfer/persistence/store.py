"""JSON-backed index store.

Documents:
- index snapshot: ``<base>-NNNN.json``, one per completed (or checkpointed)
  indexing run, never edited in place except for transfer status updates
- checkpoint: ``<output>.progress``, deleted when a scan completes
- base path registry: ``base-index.json``, cached path enumeration

All writes go to a temporary file that is renamed over the target, so a
reader never sees a half-written document.
"""
from __future__ import annotations

import json
import logging
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional, Union

from ..core.config import CHECKPOINT_SUFFIX
from ..core.errors import AccessDeniedError, CorruptDataError, MediaIOError, NotFoundError
from ..core.models import BasePathRegistry, DateFact, MediaIndex, MediaRecord, ScanCheckpoint

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

SEQUENCE_WIDTH = 4


class SnapshotSequence:
    """Monotonically numbered snapshot files next to a base file name.

    For ``dir/.phototransfer-index.json`` the snapshots are
    ``dir/.phototransfer-index-0001.json``, ``-0002`` and so on.
    """

    def __init__(self, base_path: PathLike):
        self._base = Path(base_path)
        self._pattern = re.compile(
            rf"^{re.escape(self._base.stem)}-(\d+){re.escape(self._base.suffix)}$",
            re.IGNORECASE,
        )

    @property
    def directory(self) -> Path:
        return self._base.parent

    def number_of(self, path: PathLike) -> Optional[int]:
        """Sequence number encoded in a snapshot file name, if any."""
        match = self._pattern.match(Path(path).name)
        return int(match.group(1)) if match else None

    def snapshots(self) -> list[tuple[int, Path]]:
        """All existing snapshots, ordered by sequence number."""
        if not self.directory.is_dir():
            return []
        found = []
        for entry in self.directory.iterdir():
            number = self.number_of(entry)
            if number is not None and entry.is_file():
                found.append((number, entry))
        return sorted(found)

    def path_for(self, number: int) -> Path:
        name = f"{self._base.stem}-{number:0{SEQUENCE_WIDTH}d}{self._base.suffix}"
        return self.directory / name

    def latest(self) -> Optional[Path]:
        """Highest-numbered existing snapshot, or None."""
        existing = self.snapshots()
        return existing[-1][1] if existing else None

    def next(self) -> Path:
        """Path of the snapshot after the highest existing one."""
        existing = self.snapshots()
        number = existing[-1][0] + 1 if existing else 1
        return self.path_for(number)

    def __iter__(self) -> Iterator[Path]:
        return (path for _, path in self.snapshots())


# ============ Field helpers ============

def _require(data: Mapping[str, Any], key: str, kind: Union[type, tuple], path: PathLike) -> Any:
    if not isinstance(data, Mapping):
        raise CorruptDataError(f"Expected an object in {path}", path)
    if key not in data:
        raise CorruptDataError(f"Missing required field '{key}' in {path}", path)
    value = data[key]
    # bool is an int subclass; reject it where a count is expected
    if kind is int and isinstance(value, bool):
        raise CorruptDataError(f"Field '{key}' has wrong type in {path}", path)
    if not isinstance(value, kind):
        raise CorruptDataError(f"Field '{key}' has wrong type in {path}", path)
    return value


def _require_datetime(data: Mapping[str, Any], key: str, path: PathLike) -> datetime:
    raw = _require(data, key, str, path)
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        raise CorruptDataError(f"Field '{key}' is not a valid date in {path}: {raw!r}", path) from None


def _require_str_list(data: Mapping[str, Any], key: str, path: PathLike) -> list[str]:
    values = _require(data, key, list, path)
    if not all(isinstance(v, str) for v in values):
        raise CorruptDataError(f"Field '{key}' must be a list of strings in {path}", path)
    return values


# ============ Serialization ============

def fact_to_dict(fact: DateFact) -> dict[str, Any]:
    return {
        "date": fact.timestamp.isoformat(),
        "source": fact.origin,
        "isPlaceholder": fact.is_placeholder,
    }


def fact_from_dict(data: Mapping[str, Any], path: PathLike) -> DateFact:
    return DateFact(
        timestamp=_require_datetime(data, "date", path),
        origin=_require(data, "source", str, path),
        is_placeholder=_require(data, "isPlaceholder", bool, path),
    )


def record_to_dict(record: MediaRecord) -> dict[str, Any]:
    return {
        "filePath": record.file_path,
        "fileName": record.file_name,
        "extension": record.extension,
        "fileSize": record.file_size,
        "hash": record.hash,
        "creationDate": record.creation_date.isoformat(),
        "modificationDate": record.modification_date.isoformat(),
        "effectiveDate": record.effective_date.isoformat(),
        "allDates": [fact_to_dict(f) for f in record.all_dates],
        "isTransferred": record.is_transferred,
        "transferredTo": record.transferred_to,
    }


def record_from_dict(data: Mapping[str, Any], path: PathLike) -> MediaRecord:
    transferred_to = data.get("transferredTo") if isinstance(data, Mapping) else None
    if transferred_to is not None and not isinstance(transferred_to, str):
        raise CorruptDataError(f"Field 'transferredTo' has wrong type in {path}", path)

    return MediaRecord(
        file_path=_require(data, "filePath", str, path),
        file_name=_require(data, "fileName", str, path),
        extension=_require(data, "extension", str, path),
        file_size=_require(data, "fileSize", int, path),
        hash=_require(data, "hash", str, path),
        creation_date=_require_datetime(data, "creationDate", path),
        modification_date=_require_datetime(data, "modificationDate", path),
        effective_date=_require_datetime(data, "effectiveDate", path),
        all_dates=[fact_from_dict(f, path) for f in _require(data, "allDates", list, path)],
        is_transferred=_require(data, "isTransferred", bool, path),
        transferred_to=transferred_to,
    )


def index_to_dict(index: MediaIndex) -> dict[str, Any]:
    return {
        "createdAt": index.created_at.isoformat(),
        "workingDirectory": index.working_directory,
        "version": index.version,
        "totalCount": len(index.records),
        "supportedExtensions": list(index.supported_extensions),
        "records": [record_to_dict(r) for r in index.records],
    }


def index_from_dict(data: Mapping[str, Any], path: PathLike) -> MediaIndex:
    records = [record_from_dict(r, path) for r in _require(data, "records", list, path)]
    total = _require(data, "totalCount", int, path)
    if total != len(records):
        raise CorruptDataError(
            f"totalCount {total} does not match {len(records)} records in {path}", path
        )
    return MediaIndex(
        created_at=_require_datetime(data, "createdAt", path),
        working_directory=_require(data, "workingDirectory", str, path),
        version=_require(data, "version", str, path),
        total_count=total,
        supported_extensions=_require_str_list(data, "supportedExtensions", path),
        records=records,
    )


def checkpoint_to_dict(checkpoint: ScanCheckpoint) -> dict[str, Any]:
    return {
        "workingDirectory": checkpoint.working_directory,
        "startedAt": checkpoint.started_at.isoformat(),
        "lastSavedAt": checkpoint.last_saved_at.isoformat(),
        "totalFiles": checkpoint.total_files,
        "processedFiles": checkpoint.processed_files,
        "allFilePaths": list(checkpoint.all_file_paths),
        # Discovery order keeps the document stable between saves
        "processedFilePaths": [
            p for p in checkpoint.all_file_paths if p in checkpoint.processed_file_paths
        ],
        "currentOutputFile": checkpoint.current_output_file,
    }


def checkpoint_from_dict(data: Mapping[str, Any], path: PathLike) -> ScanCheckpoint:
    all_paths = _require_str_list(data, "allFilePaths", path)
    processed = set(_require_str_list(data, "processedFilePaths", path))
    unknown = processed.difference(all_paths)
    if unknown:
        raise CorruptDataError(
            f"{len(unknown)} processed paths are not in the discoverable list in {path}", path
        )
    return ScanCheckpoint(
        working_directory=_require(data, "workingDirectory", str, path),
        started_at=_require_datetime(data, "startedAt", path),
        last_saved_at=_require_datetime(data, "lastSavedAt", path),
        current_output_file=_require(data, "currentOutputFile", str, path),
        all_file_paths=all_paths,
        processed_file_paths=processed,
    )


def registry_to_dict(registry: BasePathRegistry) -> dict[str, Any]:
    return {
        "createdAt": registry.created_at.isoformat(),
        "workingDirectory": registry.working_directory,
        "totalFiles": registry.total_files,
        "filePaths": list(registry.file_paths),
    }


def registry_from_dict(data: Mapping[str, Any], path: PathLike) -> BasePathRegistry:
    return BasePathRegistry(
        created_at=_require_datetime(data, "createdAt", path),
        working_directory=_require(data, "workingDirectory", str, path),
        file_paths=_require_str_list(data, "filePaths", path),
    )


class IndexStore:
    """Persists and loads index snapshots, checkpoints and path registries."""

    # ---- Raw documents ----

    def _write_document(self, data: dict[str, Any], path: PathLike) -> None:
        """Atomically write a JSON document, creating parent directories.

        Non-ASCII text is written as ``\\uXXXX`` escapes, so file names that
        are not valid UTF-8 (lone surrogates) survive a save and load.
        """
        path = Path(path)
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, path)
        except PermissionError as e:
            raise AccessDeniedError(f"Permission denied: cannot write {path}", path) from e
        except OSError as e:
            raise MediaIOError(f"Cannot write {path}: {e.strerror or e}", path) from e
        except ValueError as e:
            raise MediaIOError(f"Cannot encode {path}: {e}", path) from e
        finally:
            tmp_path.unlink(missing_ok=True)

    def _read_document(self, path: PathLike) -> Any:
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            raise NotFoundError(f"File not found: {path}", path) from None
        except IsADirectoryError:
            raise CorruptDataError(f"Expected a file but found a directory: {path}", path) from None
        except PermissionError as e:
            raise AccessDeniedError(f"Permission denied: cannot read {path}", path) from e
        except OSError as e:
            raise MediaIOError(f"Cannot read {path}: {e.strerror or e}", path) from e
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CorruptDataError(f"Invalid document format in {path}: {e}", path) from e

    # ---- Snapshots ----

    def sequence(self, base_path: PathLike) -> SnapshotSequence:
        return SnapshotSequence(base_path)

    def save_index(self, index: MediaIndex, path: PathLike) -> None:
        index.total_count = len(index.records)
        self._write_document(index_to_dict(index), path)
        logger.debug("Saved index with %d records to %s", index.total_count, path)

    def load_index(self, path: PathLike) -> MediaIndex:
        """Load a snapshot.

        Raises:
            NotFoundError: The file does not exist.
            CorruptDataError: The file is not a valid index document.
        """
        return index_from_dict(self._read_document(path), path)

    def load_latest(self, base_path: PathLike) -> tuple[Path, MediaIndex]:
        """Load the highest-numbered snapshot for a base path.

        Falls back to the unnumbered base file when no snapshot exists.

        Raises:
            NotFoundError: Neither a snapshot nor the base file exists.
        """
        path = self.sequence(base_path).latest()
        if path is None:
            path = Path(base_path)
            if not path.is_file():
                raise NotFoundError(f"No index files found for {base_path}", base_path)
        return path, self.load_index(path)

    def mark_transferred(self, path: PathLike, destinations: Mapping[str, str]) -> int:
        """Set transfer status on records of a snapshot and re-persist it.

        Args:
            path: Snapshot file to update.
            destinations: Source path -> destination path.

        Returns:
            Number of records updated.
        """
        index = self.load_index(path)
        updated = 0
        for record in index.records:
            destination = destinations.get(record.file_path)
            if destination is None:
                continue
            record.is_transferred = True
            record.transferred_to = destination
            updated += 1
        if updated:
            self.save_index(index, path)
        return updated

    # ---- Checkpoints ----

    @staticmethod
    def checkpoint_path_for(output_path: PathLike) -> Path:
        return Path(output_path).with_suffix(CHECKPOINT_SUFFIX)

    def save_checkpoint(self, checkpoint: ScanCheckpoint, path: PathLike) -> None:
        self._write_document(checkpoint_to_dict(checkpoint), path)

    def load_checkpoint(self, path: PathLike) -> ScanCheckpoint:
        return checkpoint_from_dict(self._read_document(path), path)

    def load_checkpoint_if_present(self, path: PathLike) -> Optional[ScanCheckpoint]:
        """Load a checkpoint, returning None when there is none.

        Raises:
            CorruptDataError: A checkpoint exists but cannot be used.
        """
        if not Path(path).exists():
            return None
        return self.load_checkpoint(path)

    def delete_checkpoint(self, path: PathLike) -> None:
        try:
            Path(path).unlink(missing_ok=True)
        except PermissionError as e:
            raise AccessDeniedError(f"Permission denied: cannot delete {path}", path) from e

    # ---- Base path registry ----

    def save_base_registry(self, registry: BasePathRegistry, path: PathLike) -> None:
        self._write_document(registry_to_dict(registry), path)

    def load_base_registry(self, path: PathLike) -> BasePathRegistry:
        return registry_from_dict(self._read_document(path), path)
