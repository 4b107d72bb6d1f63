"""
Punch normalization and duplicate marking.

A punch is a duplicate when it has the same type as the punch immediately
before it and lies within ``window_minutes`` of it. Only the immediate
predecessor is compared, so a run of three IN punches one minute apart marks
the second as a duplicate of the first and the third as a duplicate of the
second.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable

from app.services.domain import PunchRecord, PunchType
from app.services.local_time import diff_minutes, to_local, to_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizedPunch:
    id: int
    punched_at: datetime
    type: PunchType
    is_duplicate: bool = False
    duplicate_of_id: int | None = None


def normalize_punches(records: Iterable[PunchRecord]) -> list[NormalizedPunch]:
    """Convert to local time and sort by instant, then id."""
    punches = [
        NormalizedPunch(id=r.id, punched_at=to_local(r.punched_at), type=PunchType(r.type))
        for r in records
    ]
    punches.sort(key=lambda p: (to_utc(p.punched_at), p.id))
    return punches


def mark_duplicates(
    punches: list[NormalizedPunch], window_minutes: int
) -> list[NormalizedPunch]:
    """Return copies of ``punches`` with duplicate flags recomputed."""
    marked: list[NormalizedPunch] = []
    for i, cur in enumerate(punches):
        cur = replace(cur, is_duplicate=False, duplicate_of_id=None)
        if i > 0:
            prev = punches[i - 1]
            if cur.type == prev.type and abs(diff_minutes(prev.punched_at, cur.punched_at)) <= window_minutes:
                cur = replace(cur, is_duplicate=True, duplicate_of_id=prev.id)
                logger.debug(
                    "Punch %s (%s at %s) is a duplicate of %s",
                    cur.id, cur.type.value, cur.punched_at.isoformat(), prev.id,
                )
        marked.append(cur)
    return marked


def duplicate_ids(punches: Iterable[NormalizedPunch]) -> list[int]:
    return [p.id for p in punches if p.is_duplicate]


def usable_punches(punches: Iterable[NormalizedPunch]) -> list[NormalizedPunch]:
    return [p for p in punches if not p.is_duplicate]
