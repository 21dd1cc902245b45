"""Tests for the resumable media indexer."""
import json
import os
import pytest
from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock

from phototransfer.core.config import BASE_INDEX_FILENAME, INTERMEDIATE_INDEX_VERSION, IndexerConfig
from phototransfer.core.errors import CorruptDataError, MediaIOError, NotFoundError
from phototransfer.engines.hash_engine import ContentHashEngine
from phototransfer.engines.metadata import DateSourceCollector, ExifDateSource, FilesystemDateSource
from phototransfer.persistence.store import IndexStore
from phototransfer.services.indexer import IndexerState, MediaIndexer

from .fixtures import make_file, make_jpeg


class CountingHasher:
    """Hash engine that records calls and can fail on demand."""

    def __init__(self, interrupt_after=None, fail_on=()):
        self._engine = ContentHashEngine()
        self._interrupt_after = interrupt_after
        self._fail_on = set(fail_on)
        self.hashed: list[str] = []

    @property
    def name(self) -> str:
        return "counting"

    def compute_hash(self, path: Path) -> str:
        if self._interrupt_after is not None and len(self.hashed) >= self._interrupt_after:
            raise KeyboardInterrupt
        self.hashed.append(path.name)
        if path.name in self._fail_on:
            raise MediaIOError(f"Cannot read {path}", path)
        return self._engine.compute_hash(path)


def make_indexer(hasher=None, **config) -> MediaIndexer:
    return MediaIndexer(
        config=IndexerConfig(**config),
        hasher=hasher,
        collector=DateSourceCollector(sources=[FilesystemDateSource(), ExifDateSource()]),
    )


def summary(index):
    return [(r.file_path, r.hash, r.file_size, r.effective_date) for r in index.records]


class TestMediaIndexer:
    """Tests for MediaIndexer."""

    @pytest.fixture
    def photos(self, tmp_path: Path) -> Path:
        """Five photos with distinct content and modification months."""
        root = tmp_path / "photos"
        for i in range(5):
            make_file(
                root / f"img{i}.jpg",
                size=10 + i,
                fill=bytes([65 + i]),
                modified=datetime(2015, i + 1, 10, 12, 0),
            )
        return root

    @pytest.fixture
    def output(self, tmp_path: Path) -> Path:
        return tmp_path / "meta" / ".phototransfer-index.json"

    def test_full_index(self, photos, output):
        """Test a clean run produces a numbered snapshot and no checkpoint."""
        indexer = make_indexer()
        index = indexer.index(photos, output)

        assert index.total_count == 5
        assert [r.file_name for r in index.records] == [f"img{i}.jpg" for i in range(5)]
        assert index.version == "1.0.0"
        assert (output.parent / ".phototransfer-index-0001.json").is_file()
        assert not IndexStore.checkpoint_path_for(output).exists()
        assert indexer.state == IndexerState.DONE
        assert indexer.stats.processed == 5
        assert indexer.stats.records == 5

    def test_record_fields(self, photos, output):
        """Test records carry size, lower-cased extension and dates."""
        index = make_indexer().index(photos, output)
        record = index.records[2]

        assert record.file_path == str(photos / "img2.jpg")
        assert record.extension == ".jpg"
        assert record.file_size == 12
        assert len(record.hash) == 64
        assert record.effective_date == datetime(2015, 3, 10, 12, 0)
        assert {f.origin for f in record.all_dates} == {"filesystem.created", "filesystem.modified"}

    def test_capture_date_used(self, tmp_path: Path, output):
        """Test EXIF capture dates decide the effective date."""
        root = tmp_path / "photos"
        make_jpeg(root / "trip.jpg", date_taken=datetime(2006, 4, 27, 10, 0, 0))

        index = make_indexer().index(root, output)
        assert index.records[0].effective_date == datetime(2006, 4, 27, 10, 0, 0)

    def test_base_registry_written(self, photos, output):
        """Test the discoverable paths are cached next to the index."""
        make_indexer().index(photos, output)
        data = json.loads((output.parent / BASE_INDEX_FILENAME).read_text())

        assert data["totalFiles"] == 5
        assert data["workingDirectory"] == str(photos)

    def test_second_run_new_snapshot(self, photos, output):
        """Test each completed run writes the next snapshot."""
        make_indexer().index(photos, output)
        make_indexer().index(photos, output)

        assert (output.parent / ".phototransfer-index-0002.json").is_file()

    def test_checkpoints_every_interval(self, photos, output):
        """Test progress is saved every N newly processed files."""
        indexer = make_indexer(checkpoint_interval=2)
        indexer.index(photos, output)

        assert indexer.stats.checkpoints == 2

    def test_resume_after_interruption(self, photos, output, tmp_path: Path):
        """Test an interrupted run resumes and matches an uninterrupted one."""
        with pytest.raises(KeyboardInterrupt):
            make_indexer(CountingHasher(interrupt_after=3), checkpoint_interval=2).index(photos, output)

        checkpoint_path = IndexStore.checkpoint_path_for(output)
        snapshot = output.parent / ".phototransfer-index-0001.json"
        assert checkpoint_path.is_file()
        checkpoint = IndexStore().load_checkpoint(checkpoint_path)
        partial = IndexStore().load_index(snapshot)
        assert checkpoint.processed_files == 2
        assert partial.version == INTERMEDIATE_INDEX_VERSION
        assert partial.total_count == 2

        hasher = CountingHasher()
        indexer = make_indexer(hasher, checkpoint_interval=2)
        resumed = indexer.index(photos, output)

        assert hasher.hashed == ["img2.jpg", "img3.jpg", "img4.jpg"]
        assert indexer.stats.resumed is True
        assert indexer.stats.already_processed == 2
        assert not checkpoint_path.exists()
        assert not (output.parent / ".phototransfer-index-0002.json").exists()

        fresh = make_indexer().index(photos, tmp_path / "other" / ".phototransfer-index.json")
        assert summary(resumed) == summary(fresh)
        assert IndexStore().load_index(snapshot) == resumed

    def test_resume_last_file(self, photos, output):
        """Test resuming when only the last file remains."""
        with pytest.raises(KeyboardInterrupt):
            make_indexer(CountingHasher(interrupt_after=4), checkpoint_interval=4).index(photos, output)

        hasher = CountingHasher()
        index = make_indexer(hasher, checkpoint_interval=4).index(photos, output)

        assert hasher.hashed == ["img4.jpg"]
        assert index.total_count == 5

    def test_per_file_error_skipped(self, photos, output):
        """Test an unreadable file is marked processed and left out."""
        indexer = make_indexer(CountingHasher(fail_on={"img1.jpg"}))
        index = indexer.index(photos, output)

        assert [r.file_name for r in index.records] == ["img0.jpg", "img2.jpg", "img3.jpg", "img4.jpg"]
        assert indexer.stats.errors == 1
        assert not IndexStore.checkpoint_path_for(output).exists()

    def test_progress_reporter(self, photos, output):
        """Test the reporter sees one indexing phase."""
        reporter = MagicMock()
        indexer = MediaIndexer(
            config=IndexerConfig(),
            collector=DateSourceCollector(sources=[FilesystemDateSource()]),
            progress=reporter,
        )
        indexer.index(photos, output)

        reporter.start_phase.assert_called_once_with("Indexing", 5)
        assert reporter.advance_phase.call_count == 5
        reporter.end_phase.assert_called_once()

    def test_on_progress_messages(self, photos, output):
        """Test progress callback receives messages."""
        messages = []
        make_indexer().index(photos, output, on_progress=messages.append)

        assert messages[0] == "Creating base index..."
        assert "Base index created: 5 files found" in messages
        assert messages[-1].startswith("Index saved to")

    def test_missing_directory(self, tmp_path: Path, output):
        """Test a missing root is a hard failure."""
        with pytest.raises(NotFoundError):
            make_indexer().index(tmp_path / "missing", output)

    def test_corrupt_checkpoint(self, photos, output):
        """Test a corrupt checkpoint aborts the run."""
        output.parent.mkdir(parents=True)
        IndexStore.checkpoint_path_for(output).write_text("{broken")

        with pytest.raises(CorruptDataError):
            make_indexer().index(photos, output)

    def test_checkpoint_for_other_root_ignored(self, photos, output, tmp_path: Path):
        """Test a checkpoint from a different directory starts over."""
        other = tmp_path / "other"
        make_file(other / "x.jpg")
        with pytest.raises(KeyboardInterrupt):
            make_indexer(CountingHasher(interrupt_after=0)).index(other, output)

        index = make_indexer().index(photos, output)
        assert index.total_count == 5
        assert index.working_directory == str(photos)

    def test_undecodable_file_name(self, tmp_path: Path, output):
        """Test a file name that is not valid UTF-8 is indexed and persisted."""
        root = tmp_path / "photos"
        make_file(root / "good.jpg", fill=b"g")
        raw = os.path.join(os.fsencode(root), b"bad\xff.jpg")
        try:
            with open(raw, "wb") as f:
                f.write(b"b" * 16)
        except OSError:
            pytest.skip("filesystem rejects non-UTF-8 names")

        index = make_indexer().index(root, output)

        bad_name = os.fsdecode(b"bad\xff.jpg")
        assert sorted(r.file_name for r in index.records) == sorted([bad_name, "good.jpg"])
        snapshot = output.parent / ".phototransfer-index-0001.json"
        assert IndexStore().load_index(snapshot) == index
        assert not list(output.parent.glob("*.tmp"))

    def test_resume_without_partial_snapshot(self, tmp_path: Path, output):
        """Test processed files missing from every snapshot are reprocessed."""
        root = tmp_path / "photos"
        make_file(root / "a.jpg", fill=b"a")
        make_indexer().index(root, output)

        for name in ("b.jpg", "c.jpg", "d.jpg"):
            make_file(root / name, fill=name.encode())
        with pytest.raises(KeyboardInterrupt):
            make_indexer(CountingHasher(interrupt_after=3), checkpoint_interval=2).index(root, output)
        partial = output.parent / ".phototransfer-index-0002.json"
        partial.unlink()

        hasher = CountingHasher()
        index = make_indexer(hasher, checkpoint_interval=2).index(root, output)

        assert hasher.hashed == ["b.jpg", "c.jpg", "d.jpg"]
        assert [r.file_name for r in index.records] == ["a.jpg", "b.jpg", "c.jpg", "d.jpg"]
        assert partial.is_file()


class TestRefreshMode:
    """Tests for update_base re-enumeration."""

    @pytest.fixture
    def output(self, tmp_path: Path) -> Path:
        return tmp_path / ".phototransfer-index.json"

    def test_new_formats_only(self, tmp_path: Path, output):
        """Test only files not in the latest snapshot are processed."""
        root = tmp_path / "photos"
        for name in ("a.jpg", "b.jpg", "c.jpg"):
            make_file(root / name, fill=name.encode())
        make_indexer(extensions=(".jpg",)).index(root, output)

        make_file(root / "d.png", fill=b"d")
        make_file(root / "e.png", fill=b"e")
        hasher = CountingHasher()
        indexer = make_indexer(hasher, extensions=(".jpg", ".png"))
        index = indexer.index(root, output, update_base=True)

        assert sorted(hasher.hashed) == ["d.png", "e.png"]
        assert [r.file_name for r in index.records] == ["a.jpg", "b.jpg", "c.jpg", "d.png", "e.png"]
        assert (tmp_path / ".phototransfer-index-0002.json").is_file()

    def test_without_previous_snapshot(self, tmp_path: Path, output):
        """Test refresh with no snapshot indexes everything."""
        root = tmp_path / "photos"
        make_file(root / "a.jpg")

        hasher = CountingHasher()
        index = make_indexer(hasher).index(root, output, update_base=True)

        assert hasher.hashed == ["a.jpg"]
        assert index.total_count == 1

    def test_reuse_base_registry(self, tmp_path: Path, output):
        """Test cached paths are used instead of walking the tree."""
        root = tmp_path / "photos"
        make_file(root / "a.jpg")
        make_indexer().index(root, output)

        make_file(root / "b.jpg")
        index = make_indexer().index(root, output, reuse_base=True)
        assert [r.file_name for r in index.records] == ["a.jpg"]

        index = make_indexer().index(root, output)
        assert [r.file_name for r in index.records] == ["a.jpg", "b.jpg"]
