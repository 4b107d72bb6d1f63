"""
Punch duplicate marking and session reconstruction.

Tests:
  - TestNormalize          : local conversion, (instant, id) ordering
  - TestDuplicates         : window, same-type rule, pairwise chains, idempotence
  - TestReconstruction     : IN/OUT state machine and the anomalies it records
"""

from __future__ import annotations

from app.services.domain import PunchType
from app.services.punches import (
    duplicate_ids,
    mark_duplicates,
    normalize_punches,
    usable_punches,
)
from app.services.sessions import SessionReconstructor, reconstruct_sessions
from tests.conftest import MONDAY, local, punch, punches


def _normalized(*pairs):
    return normalize_punches(punches(MONDAY, *pairs))


def _reconstruct(*pairs, min_gap: int = 11, missing_gap: int = 30):
    usable = usable_punches(mark_duplicates(_normalized(*pairs), 2))
    return reconstruct_sessions(
        usable, min_gap_minutes_to_allow_checkout=min_gap, missing_pair_gap_minutes=missing_gap
    )


class TestNormalize:
    def test_converts_to_local_and_sorts(self) -> None:
        records = [
            punch(3, MONDAY, "16:00", "OUT"),
            punch(1, MONDAY, "08:30", "IN"),
        ]
        result = normalize_punches(records)
        assert [p.id for p in result] == [1, 3]
        assert result[0].punched_at == local(MONDAY, "08:30")
        assert result[0].punched_at.utcoffset().total_seconds() == -6 * 3600

    def test_same_instant_orders_by_id(self) -> None:
        records = [punch(9, MONDAY, "08:30", "IN"), punch(4, MONDAY, "08:30", "OUT")]
        assert [p.id for p in normalize_punches(records)] == [4, 9]


class TestDuplicates:
    def test_same_type_within_window_is_duplicate(self) -> None:
        marked = mark_duplicates(_normalized(("07:00", "IN"), ("07:01", "IN"), ("16:00", "OUT")), 2)
        assert duplicate_ids(marked) == [2]
        assert marked[1].duplicate_of_id == 1
        assert [p.id for p in usable_punches(marked)] == [1, 3]

    def test_window_boundary_is_inclusive(self) -> None:
        marked = mark_duplicates(_normalized(("07:00", "IN"), ("07:02", "IN")), 2)
        assert duplicate_ids(marked) == [2]
        marked = mark_duplicates(_normalized(("07:00", "IN"), ("07:03", "IN")), 2)
        assert duplicate_ids(marked) == []

    def test_different_types_are_never_duplicates(self) -> None:
        marked = mark_duplicates(_normalized(("07:00", "IN"), ("07:01", "OUT")), 2)
        assert duplicate_ids(marked) == []

    def test_chain_compares_each_punch_to_its_predecessor(self) -> None:
        """07:00/07:02/07:04: each is within 2 minutes of the one before it."""
        marked = mark_duplicates(
            _normalized(("07:00", "IN"), ("07:02", "IN"), ("07:04", "IN")), 2
        )
        assert duplicate_ids(marked) == [2, 3]
        assert [p.duplicate_of_id for p in marked] == [None, 1, 2]

    def test_marking_is_idempotent(self) -> None:
        once = mark_duplicates(_normalized(("07:00", "IN"), ("07:01", "IN")), 2)
        twice = mark_duplicates(once, 2)
        assert once == twice
        # stale flags from a wider window are cleared
        assert duplicate_ids(mark_duplicates(mark_duplicates(once, 10), 0)) == []


class TestReconstruction:
    def test_single_complete_session(self) -> None:
        result = _reconstruct(("08:30", "IN"), ("16:00", "OUT"))
        assert len(result.sessions) == 1
        session = result.sessions[0]
        assert session.is_complete
        assert (session.in_at, session.out_at) == (local(MONDAY, "08:30"), local(MONDAY, "16:00"))
        assert (session.in_punch_id, session.out_punch_id) == (1, 2)
        assert result.out_without_in == []
        assert result.in_without_out == []

    def test_out_too_close_to_in_is_ignored(self) -> None:
        """08:40 IN / 08:45 OUT with an 11-minute minimum: the OUT is dropped."""
        result = _reconstruct(("08:40", "IN"), ("08:45", "OUT"), min_gap=11)
        assert result.complete_sessions == []
        assert result.in_without_out == [local(MONDAY, "08:40")]
        assert result.out_without_in == []

    def test_ignored_out_keeps_session_open_for_later_out(self) -> None:
        result = _reconstruct(("08:40", "IN"), ("08:45", "OUT"), ("12:00", "OUT"), min_gap=11)
        assert len(result.complete_sessions) == 1
        assert result.complete_sessions[0].out_at == local(MONDAY, "12:00")

    def test_out_while_idle_is_recorded(self) -> None:
        result = _reconstruct(("07:50", "OUT"), ("08:30", "IN"), ("12:00", "OUT"))
        assert result.out_without_in == [local(MONDAY, "07:50")]
        assert len(result.complete_sessions) == 1

    def test_in_while_open_closes_previous_as_incomplete(self) -> None:
        result = _reconstruct(("08:30", "IN"), ("13:00", "IN"), ("16:00", "OUT"))
        assert [s.is_complete for s in result.sessions] == [False, True]
        assert result.in_without_out == [local(MONDAY, "08:30")]
        # the new IN's time is what gets recorded
        assert result.missing_out_before_next_in == [local(MONDAY, "13:00")]

    def test_short_re_in_gap_is_not_a_missing_out(self) -> None:
        result = _reconstruct(("08:30", "IN"), ("08:50", "IN"), ("16:00", "OUT"), missing_gap=30)
        assert result.missing_out_before_next_in == []
        assert result.in_without_out == [local(MONDAY, "08:30")]

    def test_reconstructor_class_matches_function(self) -> None:
        usable = usable_punches(mark_duplicates(_normalized(("08:30", "IN"), ("16:00", "OUT")), 2))
        by_class = SessionReconstructor(11, 30).run(usable)
        by_function = reconstruct_sessions(usable, 11, 30)
        assert by_class == by_function
        assert by_class.sessions[0].to_dict()["is_complete"] is True
        assert all(p.type in (PunchType.IN, PunchType.OUT) for p in usable)
