"""
Half-open time ranges ``[start, end)`` and the small algebra the evaluator
needs: overlap, clipping and subtraction of permission cuts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from app.services.local_time import diff_minutes, to_utc


@dataclass(frozen=True)
class TimeRange:
    start: datetime
    end: datetime

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


def make_range(start: datetime, end: datetime) -> TimeRange | None:
    """Build a range, or ``None`` if it would be empty or inverted."""
    if to_utc(end) <= to_utc(start):
        return None
    return TimeRange(start, end)


def duration_minutes(r: TimeRange) -> int:
    return diff_minutes(r.start, r.end)


# Local datetimes sharing one ZoneInfo compare by wall clock, so every
# ordering below goes through UTC.


def overlap_minutes(a: TimeRange, b: TimeRange) -> int:
    start = max(a.start, b.start, key=to_utc)
    end = min(a.end, b.end, key=to_utc)
    if to_utc(end) <= to_utc(start):
        return 0
    return diff_minutes(start, end)


def subtract_one(base: TimeRange, cut: TimeRange) -> list[TimeRange]:
    base_start, base_end = to_utc(base.start), to_utc(base.end)
    cut_start, cut_end = to_utc(cut.start), to_utc(cut.end)
    if cut_end <= base_start or cut_start >= base_end:
        return [base]

    parts: list[TimeRange] = []
    if cut_start > base_start:
        left = make_range(base.start, cut.start)
        if left is not None:
            parts.append(left)
    if cut_end < base_end:
        right = make_range(max(base.start, cut.end, key=to_utc), base.end)
        if right is not None:
            parts.append(right)
    return parts


def subtract_many(ranges: Iterable[TimeRange], cuts: Iterable[TimeRange]) -> list[TimeRange]:
    current = list(ranges)
    for cut in cuts:
        nxt: list[TimeRange] = []
        for r in current:
            nxt.extend(subtract_one(r, cut))
        current = nxt
    return sorted(current, key=lambda r: to_utc(r.start))
