"""Date fact extraction from filesystem stats and embedded metadata."""
from __future__ import annotations

import logging
import os
import subprocess
import threading
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from PIL import Image, UnidentifiedImageError

from ..core.config import IMAGE_EXTENSIONS, PLACEHOLDER_DATES, VIDEO_EXTENSIONS
from ..core.models import DateFact
from ..core.protocols import DateFactSource

logger = logging.getLogger(__name__)


# Origin tags
FS_CREATED = "filesystem.created"
FS_MODIFIED = "filesystem.modified"
CAPTURE_ORIGINAL = "capture.original"
CAPTURE_DATETIME = "capture.datetime"
CAPTURE_DIGITIZED = "capture.digitized"
CONTAINER_CREATION = "container.creation"
CONTAINER_MODIFICATION = "container.modification"

EXIF_IFD_POINTER = 0x8769
EXIF_DATE_TAGS = (
    (36867, CAPTURE_ORIGINAL),   # DateTimeOriginal
    (306, CAPTURE_DATETIME),     # DateTime
    (36868, CAPTURE_DIGITIZED),  # DateTimeDigitized
)

CONTAINER_DATE_TAGS = (
    ("CreateDate", CONTAINER_CREATION),
    ("ModifyDate", CONTAINER_MODIFICATION),
)

DATETIME_FORMATS = (
    "%Y:%m:%d %H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
    "%Y:%m:%d %H:%M:%S%z",
)


def is_placeholder_date(moment: datetime) -> bool:
    """Whether a date is one of the known 'no date recorded' sentinels."""
    return moment.date() in PLACEHOLDER_DATES


def make_fact(moment: datetime, origin: str) -> DateFact:
    return DateFact(timestamp=moment, origin=origin, is_placeholder=is_placeholder_date(moment))


def parse_metadata_datetime(value: object) -> Optional[datetime]:
    """Parse an EXIF/QuickTime style datetime string.

    Returns None for empty, zeroed or otherwise unparsable values.
    """
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="ignore")
    if not isinstance(value, str):
        return None

    text = value.strip().strip("\x00").strip()
    if not text:
        return None

    for fmt in DATETIME_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        # Stored facts are naive local-style timestamps
        return parsed.replace(tzinfo=None)
    return None


def _from_timestamp(value: float) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(value)
    except (OverflowError, OSError, ValueError):
        return None


def creation_time(stat: os.stat_result) -> Optional[datetime]:
    """Best available creation time.

    Uses st_birthtime where the platform exposes it, st_ctime otherwise.
    """
    birthtime = getattr(stat, "st_birthtime", None)
    if birthtime:
        return _from_timestamp(birthtime)
    return _from_timestamp(stat.st_ctime)


def modification_time(stat: os.stat_result) -> Optional[datetime]:
    return _from_timestamp(stat.st_mtime)


class FilesystemDateSource:
    """Creation and last-write timestamps from the file's stat info."""

    def applies_to(self, extension: str) -> bool:
        return True

    def collect(self, path: Path, stat: os.stat_result) -> list[DateFact]:
        facts = []
        created = creation_time(stat)
        if created is not None:
            facts.append(make_fact(created, FS_CREATED))
        modified = modification_time(stat)
        if modified is not None:
            facts.append(make_fact(modified, FS_MODIFIED))
        return facts


class ExifDateSource:
    """Capture dates from EXIF, read with Pillow.

    Tags are looked up in IFD0 and in the Exif sub-IFD, since writers
    disagree on where DateTimeOriginal lives.
    """

    def __init__(self, extensions: Iterable[str] = IMAGE_EXTENSIONS):
        self._extensions = frozenset(extensions)

    def applies_to(self, extension: str) -> bool:
        return extension in self._extensions

    def collect(self, path: Path, stat: os.stat_result) -> list[DateFact]:
        try:
            with Image.open(path) as img:
                exif = img.getexif()
                sub_ifd = exif.get_ifd(EXIF_IFD_POINTER)
        except (UnidentifiedImageError, OSError, ValueError, SyntaxError) as e:
            logger.debug("No EXIF for %s: %s", path, e)
            return []

        facts = []
        for tag_id, origin in EXIF_DATE_TAGS:
            raw = sub_ifd.get(tag_id)
            if raw is None:
                raw = exif.get(tag_id)
            moment = parse_metadata_datetime(raw)
            if moment is not None:
                facts.append(make_fact(moment, origin))
        return facts


class ExifToolDaemon:
    """Persistent ExifTool process that handles multiple requests via stdin/stdout.

    Uses exiftool's -stay_open mode so one process serves every file of a
    run. Requests are serialized with a lock.
    """

    def __init__(self, executable: str = "exiftool"):
        """Start the ExifTool daemon process."""
        self._executable = executable
        self._process: Optional[subprocess.Popen] = None
        self._lock = threading.Lock()
        self._start()

    def _start(self) -> None:
        """Start the exiftool process."""
        try:
            self._process = subprocess.Popen(
                [self._executable, "-stay_open", "True", "-@", "-"],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                bufsize=1,  # Line buffered
            )
        except (FileNotFoundError, PermissionError):
            logger.debug("exiftool not available, container dates disabled")
            self._process = None

    @property
    def is_alive(self) -> bool:
        """Check if the daemon process is running."""
        return self._process is not None and self._process.poll() is None

    def read_tags(self, path: Path, tags: Iterable[str]) -> dict[str, str]:
        """Read tag values from a file.

        Returns:
            Mapping of short tag name to raw value, empty if unavailable.
        """
        if not self.is_alive:
            return {}

        args = [f"-{tag}" for tag in tags] + ["-s", "-s", str(path), "-execute"]
        with self._lock:
            try:
                self._process.stdin.write("\n".join(args) + "\n")
                self._process.stdin.flush()

                lines = []
                while True:
                    line = self._process.stdout.readline()
                    if not line or "{ready}" in line:
                        break
                    lines.append(line.rstrip("\n"))
            except (BrokenPipeError, OSError) as e:
                logger.debug("exiftool request failed for %s: %s", path, e)
                return {}

        values = {}
        for line in lines:
            name, sep, value = line.partition(":")
            if sep:
                values[name.strip()] = value.strip()
        return values

    def close(self) -> None:
        """Shutdown the daemon gracefully."""
        if self._process is None:
            return

        try:
            if self._process.poll() is None:
                try:
                    self._process.stdin.write("-stay_open\nFalse\n")
                    self._process.stdin.flush()
                    self._process.wait(timeout=2)
                except (BrokenPipeError, OSError, subprocess.TimeoutExpired):
                    pass
        finally:
            if self._process.poll() is None:
                self._process.kill()
                self._process.wait(timeout=1)
            self._process = None

    def __enter__(self) -> "ExifToolDaemon":
        return self

    def __exit__(self, *args) -> None:
        self.close()


class ContainerDateSource:
    """Creation/modification dates stored in video containers.

    The exiftool daemon is started lazily on the first video.
    """

    def __init__(
        self,
        extensions: Iterable[str] = VIDEO_EXTENSIONS,
        daemon: Optional[ExifToolDaemon] = None,
    ):
        self._extensions = frozenset(extensions)
        self._daemon = daemon
        self._owns_daemon = daemon is None

    def applies_to(self, extension: str) -> bool:
        return extension in self._extensions

    def _get_daemon(self) -> ExifToolDaemon:
        if self._daemon is None:
            self._daemon = ExifToolDaemon()
        return self._daemon

    def collect(self, path: Path, stat: os.stat_result) -> list[DateFact]:
        tags = [f"QuickTime:{name}" for name, _ in CONTAINER_DATE_TAGS]
        values = self._get_daemon().read_tags(path, tags)

        facts = []
        for name, origin in CONTAINER_DATE_TAGS:
            moment = parse_metadata_datetime(values.get(name))
            if moment is not None:
                facts.append(make_fact(moment, origin))
        return facts

    def close(self) -> None:
        if self._owns_daemon and self._daemon is not None:
            self._daemon.close()
            self._daemon = None


class DateSourceCollector:
    """Runs every applicable date source for a file.

    Filesystem timestamps always apply. Metadata sources are chosen by
    extension and each one may fail without affecting the others.
    """

    def __init__(self, sources: Optional[list[DateFactSource]] = None):
        if sources is None:
            sources = [FilesystemDateSource(), ExifDateSource(), ContainerDateSource()]
        self._sources = sources

    def collect(self, path: Path, stat: Optional[os.stat_result] = None) -> list[DateFact]:
        """Collect all date facts for a file."""
        if stat is None:
            stat = path.stat()
        extension = path.suffix.lower()

        facts: list[DateFact] = []
        for source in self._sources:
            if not source.applies_to(extension):
                continue
            try:
                facts.extend(source.collect(path, stat))
            except Exception as e:
                logger.debug("%s failed for %s: %s", type(source).__name__, path, e)
        return facts

    def close(self) -> None:
        """Release resources held by sources (e.g., exiftool process)."""
        for source in self._sources:
            close = getattr(source, "close", None)
            if close is not None:
                close()

    def __enter__(self) -> "DateSourceCollector":
        return self

    def __exit__(self, *args) -> None:
        self.close()
