"""Transfer planning - duplicate resolution by file name."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

from ..core.config import DuplicatePolicy, TransferMode
from ..core.models import MediaIndex, MediaRecord, Period, TransferOperation

logger = logging.getLogger(__name__)


def records_for_period(index: MediaIndex, period: Period) -> list[MediaRecord]:
    """Records whose effective date falls in the period, in index order."""
    return index.records_in(period)


def existing_files(target_dir: Path) -> dict[str, Path]:
    """Files already in the target directory, keyed by lower-cased name."""
    found: dict[str, Path] = {}
    if not target_dir.is_dir():
        return found
    for entry in sorted(target_dir.iterdir()):
        if entry.is_file():
            found.setdefault(entry.name.lower(), entry)
    return found


def suffixed_name(file_name: str, counter: int) -> str:
    """``photo.jpg`` -> ``photo(0).jpg``."""
    path = Path(file_name)
    return f"{path.stem}({counter}){path.suffix}"


class TransferPlanner:
    """Turns the records of one period into transfer operations.

    With ``DuplicatePolicy.KEEP_LARGEST`` one file survives per name
    (case-insensitive): the largest in the batch, first one on a tie. It is
    dropped if the target directory already holds a file of that name at
    least as large, and replaces it otherwise.

    With ``DuplicatePolicy.SUFFIX`` every file is kept and later ones are
    renamed ``name(0).ext``, ``name(1).ext``, ...
    """

    def __init__(self, policy: DuplicatePolicy = DuplicatePolicy.KEEP_LARGEST):
        self._policy = policy

    @property
    def policy(self) -> DuplicatePolicy:
        return self._policy

    def plan(
        self,
        records: Iterable[MediaRecord],
        target_dir: Path,
        mode: TransferMode = TransferMode.MOVE,
    ) -> list[TransferOperation]:
        """Plan operations for records already filtered to one period.

        Records already marked transferred are left out.
        """
        target_dir = Path(target_dir)
        candidates = []
        for record in records:
            if record.is_transferred:
                logger.debug("Already transferred: %s", record.file_path)
                continue
            candidates.append(record)

        existing = existing_files(target_dir)
        match self._policy:
            case DuplicatePolicy.SUFFIX:
                return self._plan_suffixed(candidates, target_dir, mode, existing)
            case _:
                return self._plan_largest(candidates, target_dir, mode, existing)

    def _plan_largest(
        self,
        records: list[MediaRecord],
        target_dir: Path,
        mode: TransferMode,
        existing: dict[str, Path],
    ) -> list[TransferOperation]:
        winners: dict[str, MediaRecord] = {}
        for record in records:
            key = record.file_name.lower()
            current = winners.get(key)
            if current is None:
                winners[key] = record
            elif record.file_size > current.file_size:
                logger.debug(
                    "Dropping %s (%d bytes) for larger %s (%d bytes)",
                    current.file_path, current.file_size, record.file_path, record.file_size,
                )
                winners[key] = record
            else:
                logger.debug("Dropping %s, same name as %s", record.file_path, current.file_path)

        # Winners keep their input order.
        chosen = {id(r) for r in winners.values()}
        operations = []
        for record in records:
            if id(record) not in chosen:
                continue
            present = existing.get(record.file_name.lower())
            replaces = False
            target = target_dir / record.file_name
            if present is not None:
                size = self._size_of(present)
                if size is not None and record.file_size <= size:
                    logger.debug(
                        "Skipping %s, %s already holds %d bytes", record.file_path, present, size,
                    )
                    continue
                replaces = True
                target = present
            operations.append(
                TransferOperation(record, target, mode, replaces_existing=replaces)
            )
        return operations

    def _plan_suffixed(
        self,
        records: list[MediaRecord],
        target_dir: Path,
        mode: TransferMode,
        existing: dict[str, Path],
    ) -> list[TransferOperation]:
        taken = set(existing)
        operations = []
        for record in records:
            name = record.file_name
            counter = 0
            while name.lower() in taken:
                name = suffixed_name(record.file_name, counter)
                counter += 1
            taken.add(name.lower())
            operations.append(TransferOperation(record, target_dir / name, mode))
        return operations

    @staticmethod
    def _size_of(path: Path) -> Optional[int]:
        try:
            return path.stat().st_size
        except OSError as e:
            logger.debug("Cannot stat %s: %s", path, e)
            return None
