"""Merging of submitted time ranges.

Every range set that reaches storage (organizer slots, participant
availability) goes through `merge_time_ranges` first, so stored sets are
always sorted, non-overlapping and non-adjacent.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import NamedTuple


class TimeRange(NamedTuple):
    start_at: datetime
    end_at: datetime


def merge_time_ranges(ranges: Iterable[TimeRange]) -> list[TimeRange]:
    """Return the minimal sorted list of ranges covering the same time as `ranges`.

    Callers guarantee `start_at < end_at` for every input range. Ranges that
    overlap or touch (`next.start_at == current.end_at`) are combined.
    """
    ordered = sorted(ranges, key=lambda r: r.start_at)
    if not ordered:
        return []

    merged: list[TimeRange] = []
    start, end = ordered[0]
    for nxt in ordered[1:]:
        if nxt.start_at <= end:
            if nxt.end_at > end:
                end = nxt.end_at
        else:
            merged.append(TimeRange(start, end))
            start, end = nxt
    merged.append(TimeRange(start, end))
    return merged
