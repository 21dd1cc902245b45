"""Incremental, resumable media indexer.

A run moves through Initializing -> Scanning -> Checkpointing (every
``checkpoint_interval`` newly processed files) -> Finalizing -> Done.

The target snapshot path is reserved when the scan starts and stored in
the checkpoint. Every checkpoint first rewrites that snapshot with the
records gathered so far and only then saves the checkpoint, so the two are
never out of step on disk. A resumed run continues from the checkpoint and
completes the same snapshot.
"""
from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from ..core.config import (
    BASE_INDEX_FILENAME,
    INDEX_VERSION,
    INTERMEDIATE_INDEX_VERSION,
    IndexerConfig,
)
from ..core.errors import NotFoundError
from ..core.models import BasePathRegistry, IndexStats, MediaIndex, MediaRecord, ScanCheckpoint
from ..core.protocols import HashComputer, MediaScanner, ProgressReporter
from ..engines.date_selector import select_effective_date
from ..engines.hash_engine import ContentHashEngine
from ..engines.metadata import DateSourceCollector, creation_time, modification_time
from ..persistence.store import IndexStore, SnapshotSequence
from .scanner import FileEnumerator

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


class IndexerState(Enum):
    """Phases of an indexing run."""
    INITIALIZING = "initializing"
    SCANNING = "scanning"
    CHECKPOINTING = "checkpointing"
    FINALIZING = "finalizing"
    DONE = "done"


class MediaIndexer:
    """Builds a MediaIndex for a directory tree.

    All collaborators are injected; defaults are created from the config.
    """

    def __init__(
        self,
        config: Optional[IndexerConfig] = None,
        store: Optional[IndexStore] = None,
        enumerator: Optional[MediaScanner] = None,
        hasher: Optional[HashComputer] = None,
        collector: Optional[DateSourceCollector] = None,
        progress: Optional[ProgressReporter] = None,
    ):
        self._config = config or IndexerConfig()
        self._store = store or IndexStore()
        self._enumerator = enumerator or FileEnumerator(
            extensions=self._config.extension_set,
            follow_symlinks=self._config.follow_symlinks,
        )
        self._hasher = hasher or ContentHashEngine(self._config.hash_chunk_size)
        self._collector = collector or DateSourceCollector()
        self._progress = progress
        self._state = IndexerState.INITIALIZING
        self._stats = IndexStats()

    @property
    def state(self) -> IndexerState:
        return self._state

    @property
    def stats(self) -> IndexStats:
        return self._stats

    def close(self) -> None:
        self._collector.close()

    def __enter__(self) -> "MediaIndexer":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # ============ Entry point ============

    def index(
        self,
        directory: Path,
        output_path: Path,
        update_base: bool = False,
        on_progress: Optional[ProgressCallback] = None,
        reuse_base: bool = False,
    ) -> MediaIndex:
        """Index a directory, resuming an interrupted run if one exists.

        Args:
            directory: Root of the tree to index.
            output_path: Base index file; snapshots are numbered next to it.
            update_base: Re-enumerate the tree (e.g., after adding
                extensions) while keeping files already in the latest
                snapshot as processed.
            on_progress: Receives human-readable progress messages.
            reuse_base: Take the path list from the base path registry
                instead of walking the tree, when it matches the root.

        Returns:
            The complete index, already persisted as a numbered snapshot.

        Raises:
            NotFoundError: Directory does not exist.
            CorruptDataError: Checkpoint or seed snapshot is unreadable.
        """
        notify = on_progress or (lambda message: None)
        self._stats = IndexStats()
        self._state = IndexerState.INITIALIZING

        root = Path(directory).expanduser().absolute()
        if not root.is_dir():
            raise NotFoundError(f"Directory not found: {root}", root)

        output_path = Path(output_path).expanduser().absolute()
        checkpoint_path = self._store.checkpoint_path_for(output_path)
        registry_path = output_path.parent / BASE_INDEX_FILENAME
        sequence = self._store.sequence(output_path)

        checkpoint = self._store.load_checkpoint_if_present(checkpoint_path)
        if checkpoint is not None and checkpoint.working_directory != str(root):
            logger.warning(
                "Ignoring checkpoint for %s while indexing %s",
                checkpoint.working_directory, root,
            )
            checkpoint = None

        if checkpoint is None or update_base:
            if update_base:
                notify("Updating base index with new formats...")
                checkpoint = self._refresh_checkpoint(root, sequence, notify)
            else:
                notify("Creating base index...")
                paths = self._discover(root, registry_path, reuse_base)
                checkpoint = ScanCheckpoint.start(str(root), paths, str(sequence.next()))
                notify(f"Base index created: {checkpoint.total_files} files found")
            self._store.save_base_registry(
                BasePathRegistry(datetime.now(), str(root), list(checkpoint.all_file_paths)),
                registry_path,
            )
            self._store.save_checkpoint(checkpoint, checkpoint_path)
        else:
            self._stats.resumed = True
            notify(
                f"Resuming scan: {checkpoint.processed_files}/{checkpoint.total_files} "
                "files already processed"
            )

        records = self._seed_records(checkpoint, sequence, notify)
        self._scan(checkpoint, checkpoint_path, records, notify)
        return self._finalize(checkpoint, checkpoint_path, records, notify)

    # ============ Initializing ============

    def _discover(self, root: Path, registry_path: Path, reuse_base: bool) -> list[str]:
        if reuse_base and registry_path.is_file():
            registry = self._store.load_base_registry(registry_path)
            if registry.working_directory == str(root):
                logger.debug("Using %d cached paths from %s", registry.total_files, registry_path)
                return list(registry.file_paths)
        return [str(p) for p in self._enumerator.scan(root)]

    def _refresh_checkpoint(
        self,
        root: Path,
        sequence: SnapshotSequence,
        notify: ProgressCallback,
    ) -> ScanCheckpoint:
        """Re-enumerate the tree, keeping already indexed files as processed."""
        paths = [str(p) for p in self._enumerator.scan(root)]
        checkpoint = ScanCheckpoint.start(str(root), paths, str(sequence.next()))

        latest = sequence.latest()
        if latest is not None:
            existing = self._store.load_index(latest)
            notify(f"Loaded existing index: {len(existing.records)} records")
            for record in existing.records:
                checkpoint.mark_processed(record.file_path)
            notify(f"Found {checkpoint.processed_files} already processed files")

        new_files = checkpoint.total_files - checkpoint.processed_files
        notify(
            f"Updated base index: {checkpoint.total_files} total files "
            f"({new_files} new files to process)"
        )
        return checkpoint

    def _seed_records(
        self,
        checkpoint: ScanCheckpoint,
        sequence: SnapshotSequence,
        notify: ProgressCallback,
    ) -> dict[str, MediaRecord]:
        """Records already produced for processed paths.

        Read from the partial snapshot the checkpoint points at, or from the
        latest snapshot when that one has not been written yet. Processed
        paths without a record there are un-marked and processed again.
        """
        if checkpoint.processed_files == 0:
            return {}

        source = Path(checkpoint.current_output_file)
        if not source.is_file():
            source = sequence.latest()

        records: dict[str, MediaRecord] = {}
        if source is not None:
            existing = self._store.load_index(source)
            records = {
                r.file_path: r for r in existing.records if checkpoint.is_processed(r.file_path)
            }
            notify(f"Loaded {len(records)} existing metadata records")

        missing = checkpoint.processed_files - len(records)
        if missing:
            logger.warning("%d processed files have no stored record, reprocessing them", missing)
            checkpoint.retain(records)
        return records

    # ============ Scanning / Checkpointing ============

    def _scan(
        self,
        checkpoint: ScanCheckpoint,
        checkpoint_path: Path,
        records: dict[str, MediaRecord],
        notify: ProgressCallback,
    ) -> None:
        self._state = IndexerState.SCANNING
        pending = checkpoint.pending_paths()
        self._stats.discovered = checkpoint.total_files
        self._stats.already_processed = checkpoint.processed_files

        if self._progress:
            self._progress.start_phase("Indexing", len(pending))

        since_save = 0
        try:
            for path_str in pending:
                record = self._process_file(Path(path_str))
                if record is not None:
                    records[path_str] = record
                checkpoint.mark_processed(path_str)
                self._stats.processed += 1
                since_save += 1

                if self._progress:
                    self._progress.advance_phase()
                notify(
                    f"Processing: {Path(path_str).name} "
                    f"({checkpoint.processed_files}/{checkpoint.total_files})"
                )

                if since_save >= self._config.checkpoint_interval:
                    self._checkpoint(checkpoint, checkpoint_path, records)
                    since_save = 0
                    notify(
                        f"Saved progress: {checkpoint.processed_files}/"
                        f"{checkpoint.total_files} files processed"
                    )
        finally:
            if self._progress:
                self._progress.end_phase()

    def _process_file(self, path: Path) -> Optional[MediaRecord]:
        """Build a record, or None if the file cannot be read."""
        try:
            return self.build_record(path)
        except (OSError, ValueError) as e:
            self._stats.errors += 1
            logger.warning("Skipping %s: %s", path, e)
            if self._progress:
                self._progress.warning(f"Skipping {path.name}: {e}")
            return None

    def build_record(self, path: Path) -> MediaRecord:
        """Hash a file and collect its dates.

        Raises:
            OSError: The file cannot be stat'ed or read.
            ValueError: Its timestamps cannot be represented.
        """
        stat = path.stat()
        digest = self._hasher.compute_hash(path)
        facts = self._collector.collect(path, stat)

        created = creation_time(stat)
        modified = modification_time(stat)
        if created is None or modified is None:
            raise ValueError("Filesystem timestamps out of range")

        return MediaRecord(
            file_path=str(path),
            file_name=path.name,
            extension=path.suffix.lower(),
            file_size=stat.st_size,
            hash=digest,
            creation_date=created,
            modification_date=modified,
            effective_date=select_effective_date(facts, fallback=created),
            all_dates=facts,
        )

    def _ordered(self, checkpoint: ScanCheckpoint, records: dict[str, MediaRecord]) -> list[MediaRecord]:
        return [records[p] for p in checkpoint.all_file_paths if p in records]

    def _checkpoint(
        self,
        checkpoint: ScanCheckpoint,
        checkpoint_path: Path,
        records: dict[str, MediaRecord],
    ) -> None:
        """Persist the partial snapshot, then the checkpoint that refers to it."""
        self._state = IndexerState.CHECKPOINTING
        partial = MediaIndex.build(
            checkpoint.working_directory,
            self._ordered(checkpoint, records),
            self._config.extensions,
            version=INTERMEDIATE_INDEX_VERSION,
        )
        self._store.save_index(partial, checkpoint.current_output_file)
        checkpoint.last_saved_at = datetime.now()
        self._store.save_checkpoint(checkpoint, checkpoint_path)
        self._stats.checkpoints += 1
        logger.debug(
            "Checkpoint %d: %d/%d processed",
            self._stats.checkpoints, checkpoint.processed_files, checkpoint.total_files,
        )
        self._state = IndexerState.SCANNING

    # ============ Finalizing ============

    def _finalize(
        self,
        checkpoint: ScanCheckpoint,
        checkpoint_path: Path,
        records: dict[str, MediaRecord],
        notify: ProgressCallback,
    ) -> MediaIndex:
        self._state = IndexerState.FINALIZING
        index = MediaIndex.build(
            checkpoint.working_directory,
            self._ordered(checkpoint, records),
            self._config.extensions,
            version=INDEX_VERSION,
        )
        self._store.save_index(index, checkpoint.current_output_file)
        self._store.delete_checkpoint(checkpoint_path)
        self._stats.records = index.total_count
        self._state = IndexerState.DONE
        notify(f"Index saved to {checkpoint.current_output_file}")
        return index
