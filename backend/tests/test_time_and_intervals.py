"""
Local time helpers and half-open interval arithmetic.

Tests:
  - TestParseIsoDate       : strict YYYY-MM-DD parsing
  - TestLocalDay           : Costa Rica day bounds in UTC, weekday numbering
  - TestDiffMinutes        : signed minute differences, halves rounded up
  - TestRanges             : make_range / overlap / subtraction of cuts
  - TestDaylightSavingZone : arithmetic on the UTC timeline across DST changes
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from app.core.config import settings
from app.services.domain import AssignmentSnapshot
from app.services.evaluator import DayInputs, evaluate_day
from app.services.intervals import (
    TimeRange,
    duration_minutes,
    make_range,
    overlap_minutes,
    subtract_many,
    subtract_one,
)
from app.services.local_time import (
    InvalidEvaluationInput,
    day_range_utc,
    diff_minutes,
    local_zone,
    parse_iso_date,
    to_local,
    weekday_local,
)
from tests.conftest import (
    CONFIG,
    EMPLOYEE_ID,
    MONDAY,
    RULE,
    SATURDAY,
    local,
    punches,
    weekday_blocks,
)


class TestParseIsoDate:
    def test_accepts_iso_string_and_date(self) -> None:
        assert parse_iso_date("2025-03-03") == MONDAY
        assert parse_iso_date(MONDAY) == MONDAY

    @pytest.mark.parametrize("value", ["2025-3-3", "03/03/2025", "2025-03-03T08:00", "", None, 20250303])
    def test_rejects_non_iso_values(self, value) -> None:
        with pytest.raises(InvalidEvaluationInput):
            parse_iso_date(value)

    def test_rejects_impossible_calendar_date(self) -> None:
        """Right shape, wrong calendar."""
        with pytest.raises(InvalidEvaluationInput, match="valid calendar date"):
            parse_iso_date("2025-02-30")

    def test_rejects_datetime(self) -> None:
        with pytest.raises(InvalidEvaluationInput):
            parse_iso_date(datetime(2025, 3, 3, 8, 0))

    def test_error_names_the_field(self) -> None:
        with pytest.raises(InvalidEvaluationInput, match='"from"'):
            parse_iso_date("nope", "from")


class TestLocalDay:
    def test_day_range_is_utc_minus_six(self) -> None:
        start, end = day_range_utc(MONDAY)
        assert start == datetime(2025, 3, 3, 6, 0, tzinfo=timezone.utc)
        assert end == datetime(2025, 3, 4, 6, 0, tzinfo=timezone.utc)
        assert end - start == timedelta(hours=24)

    def test_weekday_is_iso(self) -> None:
        assert weekday_local(MONDAY) == 1
        assert weekday_local(SATURDAY) == 6
        assert weekday_local(date(2025, 3, 9)) == 7

    def test_late_utc_punch_belongs_to_previous_local_day(self) -> None:
        """03:00Z on Tuesday is still Monday 21:00 in Costa Rica."""
        converted = to_local(datetime(2025, 3, 4, 3, 0, tzinfo=timezone.utc))
        assert converted.date() == MONDAY
        assert (converted.hour, converted.minute) == (21, 0)

    def test_naive_values_are_treated_as_utc(self) -> None:
        converted = to_local(datetime(2025, 3, 3, 14, 30))
        assert (converted.hour, converted.minute) == (8, 30)


class TestDiffMinutes:
    def test_sign_follows_order(self) -> None:
        a = local(MONDAY, "08:30")
        b = local(MONDAY, "08:50")
        assert diff_minutes(a, b) == 20
        assert diff_minutes(b, a) == -20

    def test_half_minute_rounds_up(self) -> None:
        a = local(MONDAY, "08:00")
        assert diff_minutes(a, a + timedelta(seconds=30)) == 1
        assert diff_minutes(a, a + timedelta(seconds=29)) == 0
        assert diff_minutes(a, a - timedelta(seconds=30)) == 0
        assert diff_minutes(a, a - timedelta(seconds=31)) == -1


def _r(start: str, end: str) -> TimeRange:
    return TimeRange(local(MONDAY, start), local(MONDAY, end))


class TestRanges:
    def test_make_range_rejects_empty_and_inverted(self) -> None:
        assert make_range(local(MONDAY, "09:00"), local(MONDAY, "09:00")) is None
        assert make_range(local(MONDAY, "10:00"), local(MONDAY, "09:00")) is None
        assert make_range(local(MONDAY, "09:00"), local(MONDAY, "10:00")) == _r("09:00", "10:00")

    def test_duration_and_overlap(self) -> None:
        assert duration_minutes(_r("08:30", "12:00")) == 210
        assert overlap_minutes(_r("08:00", "10:00"), _r("09:30", "11:00")) == 30
        # touching ranges do not overlap
        assert overlap_minutes(_r("08:00", "09:00"), _r("09:00", "10:00")) == 0

    def test_subtract_inner_cut_splits_range(self) -> None:
        assert subtract_one(_r("08:00", "12:00"), _r("09:00", "10:00")) == [
            _r("08:00", "09:00"),
            _r("10:00", "12:00"),
        ]

    def test_subtract_edge_cases(self) -> None:
        base = _r("08:00", "12:00")
        assert subtract_one(base, _r("12:00", "13:00")) == [base]
        assert subtract_one(base, _r("07:00", "08:00")) == [base]
        assert subtract_one(base, _r("07:00", "13:00")) == []
        assert subtract_one(base, _r("07:00", "09:00")) == [_r("09:00", "12:00")]
        assert subtract_one(base, _r("11:00", "13:00")) == [_r("08:00", "11:00")]

    def test_subtract_many_folds_cuts_and_sorts(self) -> None:
        result = subtract_many(
            [_r("13:00", "16:00"), _r("08:00", "12:00")],
            [_r("09:00", "10:00"), _r("14:00", "15:00")],
        )
        assert result == [
            _r("08:00", "09:00"),
            _r("10:00", "12:00"),
            _r("13:00", "14:00"),
            _r("15:00", "16:00"),
        ]

    def test_subtract_many_without_cuts_returns_input(self) -> None:
        ranges = [_r("08:00", "09:00")]
        assert subtract_many(ranges, []) == ranges


@pytest.mark.parametrize(
    "start, end",
    [("08:30", "12:00"), ("13:00", "13:01"), ("00:00", "23:59")],
)
def test_range_overlaps_itself_fully(start: str, end: str) -> None:
    r = _r(start, end)
    assert overlap_minutes(r, r) == duration_minutes(r)


@pytest.mark.parametrize(
    "ranges, cuts",
    [
        ([("08:30", "12:00"), ("13:00", "16:00")], [("10:00", "14:00")]),
        ([("08:30", "12:00")], [("07:00", "08:00"), ("12:00", "13:00")]),
        ([("08:30", "12:00")], [("08:00", "13:00")]),
        ([("08:00", "12:00")], [("09:00", "09:30"), ("09:15", "10:00"), ("11:00", "11:10")]),
    ],
)
def test_subtracting_never_adds_time(ranges, cuts) -> None:
    before = [_r(*pair) for pair in ranges]
    after = subtract_many(before, [_r(*pair) for pair in cuts])
    assert sum(duration_minutes(r) for r in after) <= sum(duration_minutes(r) for r in before)
    assert all(duration_minutes(r) > 0 for r in after)


# ---------------------------------------------------------------------------
# Zones with daylight saving time
# ---------------------------------------------------------------------------

SPRING_FORWARD = date(2025, 3, 9)  # 02:00 -> 03:00 in America/New_York
FALL_BACK = date(2025, 11, 2)  # 02:00 -> 01:00


@pytest.fixture
def new_york(monkeypatch) -> ZoneInfo:
    monkeypatch.setattr(settings, "LOCAL_TIMEZONE", "America/New_York")
    return local_zone()


class TestDaylightSavingZone:
    def test_spring_forward_counts_elapsed_minutes(self, new_york) -> None:
        """01:00 EST to 04:00 EDT is two real hours."""
        assert diff_minutes(local(SPRING_FORWARD, "01:00"), local(SPRING_FORWARD, "04:00")) == 120

    def test_fall_back_repeated_hour(self, new_york) -> None:
        first = datetime(2025, 11, 2, 1, 30, tzinfo=new_york)
        second = datetime(2025, 11, 2, 1, 10, tzinfo=new_york, fold=1)
        assert diff_minutes(first, second) == 40
        # wall clock goes backwards but the range is not inverted
        assert make_range(first, second) is not None
        assert make_range(second, first) is None

    def test_interval_arithmetic_across_transition(self, new_york) -> None:
        block = TimeRange(local(SPRING_FORWARD, "01:00"), local(SPRING_FORWARD, "04:00"))
        assert duration_minutes(block) == 120
        assert overlap_minutes(block, block) == 120

        parts = subtract_one(
            block, TimeRange(local(SPRING_FORWARD, "03:00"), local(SPRING_FORWARD, "03:30"))
        )
        assert [duration_minutes(p) for p in parts] == [60, 30]

    def test_overlap_in_repeated_hour(self, new_york) -> None:
        """A session entirely inside the second 01:xx still overlaps the block."""
        block = TimeRange(
            datetime(2025, 11, 2, 1, 0, tzinfo=new_york),
            datetime(2025, 11, 2, 3, 0, tzinfo=new_york),
        )
        session = TimeRange(
            datetime(2025, 11, 2, 1, 10, tzinfo=new_york, fold=1),
            datetime(2025, 11, 2, 1, 50, tzinfo=new_york, fold=1),
        )
        assert overlap_minutes(block, session) == 40

    def test_late_arrival_on_transition_day(self, new_york) -> None:
        inputs = DayInputs(
            employee_id=EMPLOYEE_ID,
            day=SPRING_FORWARD,
            rule=RULE,
            assignments=[
                AssignmentSnapshot(
                    id=1,
                    starts_on=date(2025, 1, 1),
                    ends_on=None,
                    blocks=weekday_blocks([("01:00", "05:00", True)], weekdays=[7]),
                )
            ],
            exceptions=[],
            punches=punches(SPRING_FORWARD, ("04:00", "IN"), ("05:00", "OUT")),
        )

        incidents = evaluate_day(inputs, CONFIG).incidents
        assert [i.kind.value for i in incidents] == ["LATE_ARRIVAL"]
        assert incidents[0].details.late_minutes == 120
