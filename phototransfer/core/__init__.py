"""Core domain models, protocols and configuration."""
from .protocols import (
    HashComputer,
    DateFactSource,
    ProgressReporter,
    MediaScanner,
)
from .models import (
    DateFact,
    MediaRecord,
    MediaIndex,
    ScanCheckpoint,
    BasePathRegistry,
    TransferOperation,
    TransferSummary,
    OperationStatus,
    TransferOutcome,
    Period,
    IndexStats,
)
from .config import IndexerConfig, TransferConfig, TransferMode, DuplicatePolicy
from .errors import (
    PhotoTransferError,
    NotFoundError,
    FileMissingError,
    AccessDeniedError,
    CorruptDataError,
    MediaIOError,
)

__all__ = [
    # Protocols
    "HashComputer",
    "DateFactSource",
    "ProgressReporter",
    "MediaScanner",
    # Models
    "DateFact",
    "MediaRecord",
    "MediaIndex",
    "ScanCheckpoint",
    "BasePathRegistry",
    "TransferOperation",
    "TransferSummary",
    "OperationStatus",
    "TransferOutcome",
    "Period",
    "IndexStats",
    # Config
    "IndexerConfig",
    "TransferConfig",
    "TransferMode",
    "DuplicatePolicy",
    # Errors
    "PhotoTransferError",
    "NotFoundError",
    "FileMissingError",
    "AccessDeniedError",
    "CorruptDataError",
    "MediaIOError",
]
