"""Index statistics."""
from __future__ import annotations

from collections import Counter
from typing import Mapping

from ..core.models import MediaIndex, Period


def period_statistics(index: MediaIndex) -> list[tuple[Period, int]]:
    """Record counts per effective-date period, oldest first."""
    counts = Counter(record.period for record in index.records)
    return sorted(counts.items())


def extension_statistics(counts: Mapping[str, int]) -> list[tuple[str, int]]:
    """Extension counts, most common first, then by extension."""
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))


def transferred_count(index: MediaIndex) -> int:
    return sum(1 for record in index.records if record.is_transferred)
