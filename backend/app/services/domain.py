"""
Plain in-memory records the evaluator works on.

These are what the providers hand over after reading the database (or
fixtures); none of them is bound to a session, so an evaluation never touches
persisted state.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date, datetime, time

from app.core.config import settings


class PunchType(str, enum.Enum):
    IN = "IN"
    OUT = "OUT"


class ExceptionType(str, enum.Enum):
    PERMISSION = "PERMISSION"
    ABSENCE = "ABSENCE"
    HOLIDAY = "HOLIDAY"
    VACATION = "VACATION"
    SICK_LEAVE = "SICK_LEAVE"
    OTHER = "OTHER"


FULL_DAY_VOIDING_TYPES: frozenset[ExceptionType] = frozenset(
    {ExceptionType.ABSENCE, ExceptionType.HOLIDAY}
)


@dataclass(frozen=True)
class PunchRecord:
    id: int
    punched_at: datetime
    type: PunchType


@dataclass(frozen=True)
class ScheduleBlockSpec:
    weekday: int
    start_time: time
    end_time: time
    requires_presence: bool = True
    label: str | None = None


@dataclass(frozen=True)
class AssignmentSnapshot:
    id: int
    starts_on: date
    ends_on: date | None
    blocks: tuple[ScheduleBlockSpec, ...] = ()
    template_name: str | None = None

    def covers(self, day: date) -> bool:
        return self.starts_on <= day and (self.ends_on is None or self.ends_on >= day)


@dataclass(frozen=True)
class ExceptionRecord:
    type: ExceptionType
    start_time: time | None = None
    end_time: time | None = None
    id: int | None = None

    @property
    def is_full_day(self) -> bool:
        return self.start_time is None and self.end_time is None

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
        }


@dataclass(frozen=True)
class AttendanceRuleValues:
    late_grace_minutes: int
    early_leave_grace_minutes: int
    min_gap_minutes_to_allow_checkout: int

    @classmethod
    def with_defaults(
        cls,
        late_grace_minutes: int | None = None,
        early_leave_grace_minutes: int | None = None,
        min_gap_minutes_to_allow_checkout: int | None = None,
    ) -> "AttendanceRuleValues":
        return cls(
            late_grace_minutes=(
                late_grace_minutes
                if late_grace_minutes is not None
                else settings.DEFAULT_LATE_GRACE_MINUTES
            ),
            early_leave_grace_minutes=(
                early_leave_grace_minutes
                if early_leave_grace_minutes is not None
                else settings.DEFAULT_EARLY_LEAVE_GRACE_MINUTES
            ),
            min_gap_minutes_to_allow_checkout=(
                min_gap_minutes_to_allow_checkout
                if min_gap_minutes_to_allow_checkout is not None
                else settings.DEFAULT_MIN_GAP_MINUTES_TO_ALLOW_CHECKOUT
            ),
        )


@dataclass(frozen=True)
class EvaluationConfig:
    duplicate_window_minutes: int = field(default_factory=lambda: settings.DUPLICATE_WINDOW_MINUTES)
    missing_pair_gap_minutes: int = field(default_factory=lambda: settings.MISSING_PAIR_GAP_MINUTES)
