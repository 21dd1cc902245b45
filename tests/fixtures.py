"""Test fixtures.

Builders that write media files to disk with known dates and sizes, and
construct in-memory records for planner and store tests.
"""
from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from PIL import Image

from phototransfer.core.models import DateFact, MediaIndex, MediaRecord


EXIF_DATETIME_ORIGINAL = 36867
EXIF_DATETIME = 306
EXIF_DATETIME_DIGITIZED = 36868


def set_mtime(path: Path, moment: datetime) -> Path:
    """Set access and modification time of a file."""
    stamp = moment.timestamp()
    os.utime(path, (stamp, stamp))
    return path


def make_file(
    path: Path,
    size: int = 16,
    fill: bytes = b"x",
    modified: Optional[datetime] = None,
) -> Path:
    """Write a file of exactly ``size`` bytes."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes((fill * size)[:size])
    if modified is not None:
        set_mtime(path, modified)
    return path


def make_jpeg(
    path: Path,
    date_taken: Optional[datetime] = None,
    tag: int = EXIF_DATETIME_ORIGINAL,
    color: str = "red",
    size: tuple[int, int] = (32, 32),
    modified: Optional[datetime] = None,
) -> Path:
    """Write a JPEG, optionally with an EXIF date in IFD0."""
    path.parent.mkdir(parents=True, exist_ok=True)
    img = Image.new("RGB", size, color=color)
    if date_taken is not None:
        exif = Image.Exif()
        exif[tag] = date_taken.strftime("%Y:%m:%d %H:%M:%S")
        img.save(path, "JPEG", exif=exif.tobytes())
    else:
        img.save(path, "JPEG")
    if modified is not None:
        set_mtime(path, modified)
    return path


def make_record(
    file_path: str,
    file_size: int = 100,
    effective: datetime = datetime(2023, 6, 15, 12, 0, 0),
    file_name: Optional[str] = None,
    digest: str = "0" * 64,
    facts: Optional[list[DateFact]] = None,
) -> MediaRecord:
    """Build a record without touching the filesystem."""
    name = file_name or Path(file_path).name
    return MediaRecord(
        file_path=file_path,
        file_name=name,
        extension=Path(name).suffix.lower(),
        file_size=file_size,
        hash=digest,
        creation_date=effective,
        modification_date=effective,
        effective_date=effective,
        all_dates=facts if facts is not None else [DateFact(effective, "filesystem.created")],
    )


def make_source_record(
    path: Path,
    size: int,
    effective: datetime = datetime(2023, 6, 15, 12, 0, 0),
    fill: bytes = b"x",
) -> MediaRecord:
    """Write a file of ``size`` bytes and build its record."""
    make_file(path, size=size, fill=fill)
    return make_record(str(path), file_size=size, effective=effective)


def make_index(records: list[MediaRecord], working_directory: str = "/photos") -> MediaIndex:
    return MediaIndex.build(
        working_directory,
        records,
        [".jpg", ".png"],
        created_at=datetime(2024, 1, 1, 9, 0, 0),
    )
