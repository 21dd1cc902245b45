"""Service layer - indexing, planning and transfer."""
from .scanner import FileEnumerator
from .indexer import MediaIndexer, IndexerState
from .planner import TransferPlanner, records_for_period
from .file_ops import TransferExecutor, update_index_after_transfer
from .stats import period_statistics, extension_statistics

__all__ = [
    "FileEnumerator",
    "MediaIndexer",
    "IndexerState",
    "TransferPlanner",
    "records_for_period",
    "TransferExecutor",
    "update_index_after_transfer",
    "period_statistics",
    "extension_statistics",
]
