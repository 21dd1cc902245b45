"""Effective date selection.

Picks the single date used to bucket a file into a period. Capture
metadata is trusted over filesystem timestamps when the two disagree by
more than a year, since copied or restored files often carry filesystem
clocks that are far off.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Optional

from ..core.models import DateFact


FILESYSTEM_DRIFT_LIMIT = timedelta(days=365)


def select_effective_date(
    facts: Iterable[DateFact],
    fallback: Optional[datetime] = None,
) -> Optional[datetime]:
    """Choose the effective date from a list of date facts.

    Args:
        facts: Every collected fact for the file.
        fallback: Returned when there are no facts at all
            (normally the filesystem creation time).

    Returns:
        The effective date, or ``fallback`` if nothing was collected.
    """
    facts = list(facts)
    valid = [f for f in facts if not f.is_placeholder]

    if not valid:
        if facts:
            return min(f.timestamp for f in facts)
        return fallback

    capture = [f.timestamp for f in valid if f.group == "capture"]
    filesystem = [f.timestamp for f in valid if f.group == "filesystem"]
    other = [f.timestamp for f in valid if f.group == "other"]

    if capture and filesystem:
        best_capture = min(capture)
        oldest_filesystem = min(filesystem)
        # Filesystem date far older than capture metadata: drop filesystem
        if best_capture - oldest_filesystem > FILESYSTEM_DRIFT_LIMIT:
            return min(capture + other)

    return min(f.timestamp for f in valid)
