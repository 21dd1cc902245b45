"""Hash, date fact and date selection engines."""
from .hash_engine import ContentHashEngine
from .metadata import (
    DateSourceCollector,
    FilesystemDateSource,
    ExifDateSource,
    ContainerDateSource,
    is_placeholder_date,
)
from .date_selector import select_effective_date

__all__ = [
    "ContentHashEngine",
    "DateSourceCollector",
    "FilesystemDateSource",
    "ExifDateSource",
    "ContainerDateSource",
    "is_placeholder_date",
    "select_effective_date",
]
