"""Domain models - index records, checkpoints and transfer operations."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

from .config import INDEX_VERSION, TransferMode


class OperationStatus(Enum):
    """Lifecycle of a transfer operation."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class TransferOutcome(Enum):
    """Overall result of executing a batch of operations."""
    NOTHING = "nothing"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class DateFact:
    """One candidate date for a file and where it came from."""
    timestamp: datetime
    origin: str
    is_placeholder: bool = False

    @property
    def group(self) -> str:
        """Origin family: 'capture', 'filesystem' or 'other'."""
        prefix = self.origin.split(".", 1)[0]
        if prefix in ("capture", "filesystem"):
            return prefix
        return "other"


_PERIOD_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})$")


@dataclass(frozen=True, slots=True, order=True)
class Period:
    """A year-month bucket."""
    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Invalid month: {self.month}")

    @classmethod
    def parse(cls, text: str) -> "Period":
        """Parse 'YYYY-MM', tolerating leading dashes ('--2012-01')."""
        if not text or not text.strip():
            raise ValueError("Period cannot be empty")

        cleaned = text.strip().lstrip("-")
        match = _PERIOD_PATTERN.match(cleaned)
        if not match:
            raise ValueError(f"Invalid period format: {text}. Expected format: YYYY-MM")

        year, month = int(match.group(1)), int(match.group(2))
        if year < 1900 or year > datetime.now().year + 1:
            raise ValueError(f"Invalid year: {match.group(1)}")
        if not 1 <= month <= 12:
            raise ValueError(f"Invalid month: {match.group(2)}")
        return cls(year, month)

    @classmethod
    def of(cls, moment: datetime) -> "Period":
        return cls(moment.year, moment.month)

    def contains(self, moment: datetime) -> bool:
        return moment.year == self.year and moment.month == self.month

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(slots=True)
class MediaRecord:
    """Indexed metadata for one source file.

    Identity is the absolute source path. Only ``is_transferred`` and
    ``transferred_to`` change after the indexer creates a record.
    """
    file_path: str
    file_name: str
    extension: str
    file_size: int
    hash: str
    creation_date: datetime
    modification_date: datetime
    effective_date: datetime
    all_dates: list[DateFact] = field(default_factory=list)
    is_transferred: bool = False
    transferred_to: Optional[str] = None

    @property
    def path(self) -> Path:
        return Path(self.file_path)

    @property
    def period(self) -> Period:
        return Period.of(self.effective_date)


@dataclass(slots=True)
class MediaIndex:
    """A full index snapshot of one working directory."""
    created_at: datetime
    working_directory: str
    version: str
    total_count: int
    supported_extensions: list[str]
    records: list[MediaRecord] = field(default_factory=list)

    @classmethod
    def build(
        cls,
        working_directory: str,
        records: Iterable[MediaRecord],
        supported_extensions: Iterable[str],
        version: str = INDEX_VERSION,
        created_at: Optional[datetime] = None,
    ) -> "MediaIndex":
        """Create an index whose total count matches its records."""
        record_list = list(records)
        return cls(
            created_at=created_at or datetime.now(),
            working_directory=working_directory,
            version=version,
            total_count=len(record_list),
            supported_extensions=list(supported_extensions),
            records=record_list,
        )

    def find(self, file_path: str) -> Optional[MediaRecord]:
        for record in self.records:
            if record.file_path == file_path:
                return record
        return None

    def records_in(self, period: Period) -> list[MediaRecord]:
        return [r for r in self.records if period.contains(r.effective_date)]


@dataclass(slots=True)
class ScanCheckpoint:
    """Resumable progress of one indexing run.

    ``processed_file_paths`` is always a subset of ``all_file_paths``.
    """
    working_directory: str
    started_at: datetime
    last_saved_at: datetime
    current_output_file: str
    all_file_paths: list[str] = field(default_factory=list)
    processed_file_paths: set[str] = field(default_factory=set)
    total_files: int = 0
    processed_files: int = 0
    _known: set[str] = field(default_factory=set, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._known = set(self.all_file_paths)
        self.total_files = len(self.all_file_paths)
        self.processed_file_paths = set(self.processed_file_paths) & self._known
        self.processed_files = len(self.processed_file_paths)

    @classmethod
    def start(
        cls,
        working_directory: str,
        file_paths: Iterable[str],
        current_output_file: str,
    ) -> "ScanCheckpoint":
        now = datetime.now()
        return cls(
            working_directory=working_directory,
            started_at=now,
            last_saved_at=now,
            current_output_file=current_output_file,
            all_file_paths=list(file_paths),
        )

    def is_processed(self, path: str) -> bool:
        return path in self.processed_file_paths

    def mark_processed(self, path: str) -> bool:
        """Record a path as processed. Returns False for unknown paths."""
        if path not in self._known or path in self.processed_file_paths:
            return False
        self.processed_file_paths.add(path)
        self.processed_files = len(self.processed_file_paths)
        return True

    def retain(self, paths: Iterable[str]) -> None:
        """Un-mark every processed path not in paths so it is processed again."""
        self.processed_file_paths &= set(paths)
        self.processed_files = len(self.processed_file_paths)

    def pending_paths(self) -> list[str]:
        return [p for p in self.all_file_paths if p not in self.processed_file_paths]

    @property
    def is_complete(self) -> bool:
        return self.processed_files >= self.total_files


@dataclass(slots=True)
class BasePathRegistry:
    """Cached enumeration of all discoverable paths under a root."""
    created_at: datetime
    working_directory: str
    file_paths: list[str] = field(default_factory=list)

    @property
    def total_files(self) -> int:
        return len(self.file_paths)


@dataclass(slots=True)
class TransferOperation:
    """One planned move or copy of a record to a target path."""
    record: MediaRecord
    target_path: Path
    mode: TransferMode
    status: OperationStatus = OperationStatus.PENDING
    error: Optional[str] = None
    replaces_existing: bool = False

    @property
    def source_path(self) -> Path:
        return self.record.path


@dataclass(slots=True)
class TransferSummary:
    """Counts for an executed batch of operations."""
    total: int = 0
    completed: int = 0
    failed: int = 0
    dry_run: bool = False
    failures: list[TransferOperation] = field(default_factory=list)

    @classmethod
    def from_operations(
        cls,
        operations: Iterable[TransferOperation],
        dry_run: bool = False,
    ) -> "TransferSummary":
        summary = cls(dry_run=dry_run)
        for op in operations:
            summary.total += 1
            match op.status:
                case OperationStatus.COMPLETED:
                    summary.completed += 1
                case OperationStatus.FAILED:
                    summary.failed += 1
                    summary.failures.append(op)
        return summary

    @property
    def outcome(self) -> TransferOutcome:
        if self.total == 0 or (self.completed == 0 and self.failed == 0):
            return TransferOutcome.NOTHING
        if self.failed == 0:
            return TransferOutcome.SUCCESS
        if self.completed == 0:
            return TransferOutcome.FAILED
        return TransferOutcome.PARTIAL


@dataclass(slots=True)
class IndexStats:
    """Mutable counters for one indexing run."""
    discovered: int = 0
    processed: int = 0
    already_processed: int = 0
    errors: int = 0
    checkpoints: int = 0
    records: int = 0
    resumed: bool = False
