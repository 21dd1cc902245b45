"""Photo indexing and period-based transfer package.

Indexes a directory tree of photos and videos into JSON snapshots, then
moves or copies the files of one year-month period into a target folder.
"""

__version__ = "1.0.0"

# Core exports
from .core.config import IndexerConfig, TransferConfig, TransferMode, DuplicatePolicy
from .core.errors import (
    PhotoTransferError,
    NotFoundError,
    FileMissingError,
    AccessDeniedError,
    CorruptDataError,
    MediaIOError,
)
from .core.models import (
    DateFact,
    Period,
    MediaRecord,
    MediaIndex,
    ScanCheckpoint,
    TransferOperation,
    TransferSummary,
    OperationStatus,
)

# Engine exports
from .engines.date_selector import select_effective_date
from .engines.hash_engine import ContentHashEngine
from .engines.metadata import DateSourceCollector

# Service exports
from .services.scanner import FileEnumerator
from .services.indexer import MediaIndexer
from .services.planner import TransferPlanner
from .services.file_ops import TransferExecutor, update_index_after_transfer

# Persistence exports
from .persistence.store import IndexStore, SnapshotSequence

# Logging exports
from .logging.rich_logger import RichProgressReporter

__all__ = [
    # Core
    "IndexerConfig",
    "TransferConfig",
    "TransferMode",
    "DuplicatePolicy",
    "PhotoTransferError",
    "NotFoundError",
    "FileMissingError",
    "AccessDeniedError",
    "CorruptDataError",
    "MediaIOError",
    "DateFact",
    "Period",
    "MediaRecord",
    "MediaIndex",
    "ScanCheckpoint",
    "TransferOperation",
    "TransferSummary",
    "OperationStatus",
    # Engines
    "select_effective_date",
    "ContentHashEngine",
    "DateSourceCollector",
    # Services
    "FileEnumerator",
    "MediaIndexer",
    "TransferPlanner",
    "TransferExecutor",
    "update_index_after_transfer",
    # Persistence
    "IndexStore",
    "SnapshotSequence",
    # Logging
    "RichProgressReporter",
]
