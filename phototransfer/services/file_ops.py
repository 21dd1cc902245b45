"""File operations service - executes planned transfers."""
from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Iterable, Optional

from ..core.config import TransferMode
from ..core.errors import FileMissingError, PhotoTransferError
from ..core.models import OperationStatus, TransferOperation, TransferSummary
from ..core.protocols import ProgressReporter
from ..persistence.store import IndexStore

logger = logging.getLogger(__name__)


class TransferExecutor:
    """Performs move/copy operations in planned order.

    A failing operation is marked ``FAILED`` with its error message and the
    batch carries on.
    """

    def __init__(self, dry_run: bool = False, progress: Optional[ProgressReporter] = None):
        """Initialize the executor.

        Args:
            dry_run: If True, mark operations completed without touching files.
            progress: Optional reporter for per-operation progress.
        """
        self._dry_run = dry_run
        self._progress = progress

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    def execute(self, operations: list[TransferOperation]) -> TransferSummary:
        """Run every operation, mutating its status in place."""
        if self._progress:
            self._progress.start_phase("Transferring", len(operations))
        try:
            for operation in operations:
                self.execute_one(operation)
                if self._progress:
                    self._progress.advance_phase()
        finally:
            if self._progress:
                self._progress.end_phase()
        return TransferSummary.from_operations(operations, dry_run=self._dry_run)

    def execute_one(self, operation: TransferOperation) -> None:
        operation.status = OperationStatus.IN_PROGRESS
        if self._dry_run:
            operation.status = OperationStatus.COMPLETED
            return

        try:
            self._transfer(operation)
        except (OSError, PhotoTransferError) as e:
            operation.status = OperationStatus.FAILED
            operation.error = str(e) or type(e).__name__
            logger.warning("Failed to transfer %s: %s", operation.source_path, operation.error)
            return
        operation.status = OperationStatus.COMPLETED
        logger.debug("%s %s -> %s", operation.mode.value, operation.source_path, operation.target_path)

    def _transfer(self, operation: TransferOperation) -> None:
        source = operation.source_path
        target = operation.target_path

        target.parent.mkdir(parents=True, exist_ok=True)

        if not source.is_file():
            raise FileMissingError(f"Source file no longer exists: {source}", source)

        if target.exists() and not operation.replaces_existing:
            raise FileExistsError(f"Destination already exists: {target}")

        match operation.mode:
            case TransferMode.COPY:
                shutil.copy2(source, target)
            case TransferMode.MOVE:
                shutil.move(str(source), str(target))


def update_index_after_transfer(
    store: IndexStore,
    snapshot_path: Path,
    operations: Iterable[TransferOperation],
) -> int:
    """Mark completed operations as transferred in a persisted snapshot.

    Operations are matched to records by source path. Records that cannot
    be matched are logged and skipped; a failed write is logged and
    reported as zero updates.

    Returns:
        Number of records updated.
    """
    destinations = {
        str(op.source_path): str(op.target_path)
        for op in operations
        if op.status == OperationStatus.COMPLETED
    }
    if not destinations:
        return 0

    try:
        updated = store.mark_transferred(snapshot_path, destinations)
    except (OSError, PhotoTransferError) as e:
        logger.error("Could not update %s: %s", snapshot_path, e)
        return 0

    if updated < len(destinations):
        logger.warning(
            "%d transferred files were not found in %s",
            len(destinations) - updated, snapshot_path,
        )
    return updated
