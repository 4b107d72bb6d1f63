"""
Local civil time helpers.

Schedule blocks and exceptions are stored as wall-clock times without a date;
punches are stored as UTC instants. Everything the evaluator compares is
first brought into the local zone configured by ``settings.LOCAL_TIMEZONE``.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo

from app.core.config import settings

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class InvalidEvaluationInput(ValueError):
    """Raised before evaluation starts when the caller supplied bad input."""


@lru_cache(maxsize=8)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def local_zone() -> ZoneInfo:
    return _zone(settings.LOCAL_TIMEZONE)


def parse_iso_date(value: date | str | None, field: str = "date") -> date:
    """Accept a ``date`` or a strict ``YYYY-MM-DD`` string."""
    if isinstance(value, datetime):
        raise InvalidEvaluationInput(f'"{field}" must be a date, not a datetime')
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _ISO_DATE_RE.match(value):
        raise InvalidEvaluationInput(f'"{field}" must be YYYY-MM-DD')
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise InvalidEvaluationInput(f'"{field}" is not a valid calendar date') from exc


def combine_date_and_time_local(day: date, t: time) -> datetime:
    return datetime(day.year, day.month, day.day, t.hour, t.minute, t.second, tzinfo=local_zone())


def day_range_utc(day: date) -> tuple[datetime, datetime]:
    """Return ``[start of local day, start of next local day)`` in UTC."""
    start = datetime(day.year, day.month, day.day, tzinfo=local_zone())
    nxt = day + timedelta(days=1)
    end = datetime(nxt.year, nxt.month, nxt.day, tzinfo=local_zone())
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def weekday_local(day: date) -> int:
    """ISO weekday, 1=Monday .. 7=Sunday."""
    return day.isoweekday()


def to_local(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        # naive values coming out of the DB driver are UTC
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(local_zone())


def to_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def diff_minutes(a: datetime, b: datetime) -> int:
    """Signed elapsed minutes from ``a`` to ``b``, halves rounded up.

    Measured on the UTC timeline so DST transitions in the local zone count
    as real elapsed time.
    """
    return math.floor((to_utc(b) - to_utc(a)).total_seconds() / 60 + 0.5)
