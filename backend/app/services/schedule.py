"""
Expected-schedule resolution for one employee-day.

Takes the employee's schedule assignments and the day's exceptions and
returns the ranges during which presence was actually required.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Sequence

from app.services.domain import (
    FULL_DAY_VOIDING_TYPES,
    AssignmentSnapshot,
    ExceptionRecord,
    ExceptionType,
)
from app.services.intervals import TimeRange, make_range, subtract_many
from app.services.local_time import combine_date_and_time_local, weekday_local

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExpectedSchedule:
    blocks: list[TimeRange]
    full_day_absence: bool


def resolve_active_assignment(
    assignments: Iterable[AssignmentSnapshot], day: date
) -> AssignmentSnapshot | None:
    """Pick the covering assignment that started most recently."""
    covering = [a for a in assignments if a.covers(day)]
    if not covering:
        return None
    if len(covering) > 1:
        logger.warning(
            "Overlapping schedule assignments on %s: %s; using the latest start",
            day.isoformat(), [a.id for a in covering],
        )
    return max(covering, key=lambda a: (a.starts_on, a.id))


def has_full_day_absence(exceptions: Iterable[ExceptionRecord]) -> bool:
    return any(e.is_full_day and e.type in FULL_DAY_VOIDING_TYPES for e in exceptions)


def required_blocks(assignment: AssignmentSnapshot | None, day: date) -> list[TimeRange]:
    if assignment is None:
        return []
    weekday = weekday_local(day)
    blocks = sorted(
        (b for b in assignment.blocks if b.weekday == weekday and b.requires_presence),
        key=lambda b: b.start_time,
    )
    ranges: list[TimeRange] = []
    for b in blocks:
        r = make_range(
            combine_date_and_time_local(day, b.start_time),
            combine_date_and_time_local(day, b.end_time),
        )
        if r is None:
            logger.warning(
                "Skipping empty schedule block %s-%s in assignment %s",
                b.start_time, b.end_time, assignment.id,
            )
            continue
        ranges.append(r)
    return ranges


def permission_cuts(exceptions: Iterable[ExceptionRecord], day: date) -> list[TimeRange]:
    cuts: list[TimeRange] = []
    for e in exceptions:
        if e.type != ExceptionType.PERMISSION or e.start_time is None or e.end_time is None:
            continue
        r = make_range(
            combine_date_and_time_local(day, e.start_time),
            combine_date_and_time_local(day, e.end_time),
        )
        if r is not None:
            cuts.append(r)
    return cuts


def resolve_expected_blocks(
    assignments: Sequence[AssignmentSnapshot],
    exceptions: Sequence[ExceptionRecord],
    day: date,
) -> ExpectedSchedule:
    assignment = resolve_active_assignment(assignments, day)
    full_day = has_full_day_absence(exceptions)

    if full_day:
        return ExpectedSchedule(blocks=[], full_day_absence=True)

    expected = required_blocks(assignment, day)
    cuts = permission_cuts(exceptions, day)
    if cuts:
        expected = subtract_many(expected, cuts)
    return ExpectedSchedule(blocks=expected, full_day_absence=False)
