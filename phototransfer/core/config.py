"""Configuration dataclasses with validation."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum


INDEX_VERSION = "1.0.0"
INTERMEDIATE_INDEX_VERSION = "1.0.0-intermediate"

DEFAULT_INDEX_FILENAME = ".phototransfer-index.json"
BASE_INDEX_FILENAME = "base-index.json"
CHECKPOINT_SUFFIX = ".progress"
DEFAULT_TARGET_DIRNAME = "phototransfer"

DEFAULT_CHECKPOINT_INTERVAL = 5000
DEFAULT_HASH_CHUNK_SIZE = 1024 * 1024

IMAGE_EXTENSIONS = frozenset({
    ".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tiff", ".tif",
    ".cr3", ".crw", ".cr2", ".jpg_128x96",
})

VIDEO_EXTENSIONS = frozenset({
    ".avi", ".mp4", ".3gp", ".mov", ".mp4_128x96",
})

# .m4a is indexed but has no capture metadata reader
SUPPORTED_EXTENSIONS: tuple[str, ...] = (
    ".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tiff", ".tif",
    ".cr3", ".crw", ".cr2", ".avi", ".mp4", ".3gp", ".m4a", ".mov",
    ".jpg_128x96", ".mp4_128x96",
)

# Dates cameras and filesystems write when no real date was recorded
PLACEHOLDER_DATES = frozenset({
    date(2001, 1, 1),
    date(1980, 1, 1),
    date(1970, 1, 1),
    date(1900, 1, 1),
    date(2000, 1, 1),
})


class TransferMode(Enum):
    """Whether a transfer moves or copies the source file."""
    MOVE = "move"
    COPY = "copy"


class DuplicatePolicy(Enum):
    """How same-named files within one period are handled."""
    KEEP_LARGEST = "largest"   # One file per name, largest wins
    SUFFIX = "suffix"          # Keep all, rename to name(0).ext, name(1).ext


@dataclass(frozen=True, slots=True)
class IndexerConfig:
    """Settings for one indexing run."""
    extensions: tuple[str, ...] = SUPPORTED_EXTENSIONS
    checkpoint_interval: int = DEFAULT_CHECKPOINT_INTERVAL
    follow_symlinks: bool = False
    hash_chunk_size: int = DEFAULT_HASH_CHUNK_SIZE

    def __post_init__(self) -> None:
        if self.checkpoint_interval < 1:
            raise ValueError("Checkpoint interval must be at least 1")
        if self.hash_chunk_size < 1:
            raise ValueError("Hash chunk size must be at least 1")
        if not self.extensions:
            raise ValueError("At least one extension is required")

        normalized = tuple(ext.lower() for ext in self.extensions)
        for ext in normalized:
            if not ext.startswith("."):
                raise ValueError(f"Extension must start with a dot: {ext}")
        object.__setattr__(self, "extensions", normalized)

    @property
    def extension_set(self) -> frozenset[str]:
        return frozenset(self.extensions)


@dataclass(frozen=True, slots=True)
class TransferConfig:
    """Settings for planning and executing one transfer."""
    mode: TransferMode = TransferMode.MOVE
    duplicate_policy: DuplicatePolicy = DuplicatePolicy.KEEP_LARGEST
    dry_run: bool = False

    @classmethod
    def from_flags(
        cls,
        copy: bool = False,
        duplicates: str = "largest",
        dry_run: bool = False,
    ) -> "TransferConfig":
        """Build a config from CLI-style flags."""
        try:
            policy = DuplicatePolicy(duplicates)
        except ValueError:
            raise ValueError(f"Unknown duplicate policy: {duplicates}") from None
        return cls(
            mode=TransferMode.COPY if copy else TransferMode.MOVE,
            duplicate_policy=policy,
            dry_run=dry_run,
        )
