"""
Incident classification.

Compares reconstructed sessions with the expected blocks and emits every
applicable incident in a fixed order:

1. no punches on a day with required blocks -> a single ABSENT, nothing else
2. punches but nothing required (and no full-day exception) -> UNSCHEDULED_WORK
3. duplicates -> DUPLICATE_PUNCHES
4. orphan OUTs -> OUT_WITHOUT_IN
5. dangling INs -> IN_WITHOUT_OUT
6. long re-IN gaps -> MISSING_OUT_BEFORE_NEXT_IN
7. with required blocks: LATE_ARRIVAL / MISSING_IN against the first block,
   EARLY_LEAVE / MISSING_OUT against the last one, and one
   ABSENT_DURING_REQUIRED_BLOCK per block no complete session overlaps
8. punches on a full-day ABSENCE/HOLIDAY -> UNSCHEDULED_WORK with the exceptions
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Sequence

from app.schemas.incidents import (
    BlockSnapshot,
    DuplicatePunchesDetails,
    EarlyLeaveDetails,
    EvaluationMeta,
    Incident,
    IncidentKind,
    LateArrivalDetails,
    MissingOutBeforeNextInDetails,
    NoteDetails,
    PunchTimesDetails,
    SessionSnapshot,
    UncoveredBlockDetails,
    UnscheduledWorkDetails,
)
from app.services.domain import AttendanceRuleValues, EvaluationConfig, ExceptionRecord, PunchType
from app.services.intervals import TimeRange, overlap_minutes
from app.services.local_time import diff_minutes, to_utc
from app.services.punches import NormalizedPunch
from app.services.sessions import Reconstruction


@dataclass(frozen=True)
class ClassificationInput:
    employee_id: str
    day: date
    punches: Sequence[NormalizedPunch]
    usable: Sequence[NormalizedPunch]
    reconstruction: Reconstruction
    expected: Sequence[TimeRange]
    full_day_absence: bool
    exceptions: Sequence[ExceptionRecord]
    rule: AttendanceRuleValues
    config: EvaluationConfig


def build_meta(data: ClassificationInput) -> EvaluationMeta:
    return EvaluationMeta(
        employee_id=data.employee_id,
        date=data.day.isoformat(),
        punches=len(data.punches),
        usable_punches=len(data.usable),
        sessions=[SessionSnapshot(**s.to_dict()) for s in data.reconstruction.sessions],
        expected_blocks=[BlockSnapshot(**b.to_dict()) for b in data.expected],
    )


def _iso_times(times) -> list[str]:
    return [t.isoformat() for t in times]


def classify(data: ClassificationInput) -> list[Incident]:
    meta = build_meta(data)
    expected = list(data.expected)
    any_punches = len(data.punches) > 0

    if expected and not any_punches and not data.full_day_absence:
        return [
            Incident(
                kind=IncidentKind.ABSENT,
                details=NoteDetails(
                    note="No punches for a day with required schedule blocks. Collapsed to ABSENT."
                ),
                meta=meta,
            )
        ]

    incidents: list[Incident] = []
    recon = data.reconstruction
    dup_ids = [str(p.id) for p in data.punches if p.is_duplicate]

    if not expected and any_punches and not data.full_day_absence:
        incidents.append(
            Incident(
                kind=IncidentKind.UNSCHEDULED_WORK,
                details=UnscheduledWorkDetails(
                    note="Punches exist but no required schedule blocks for this date.",
                    punch_count=len(data.punches),
                    duplicate_punch_ids=dup_ids,
                ),
            )
        )

    if dup_ids:
        incidents.append(
            Incident(
                kind=IncidentKind.DUPLICATE_PUNCHES,
                details=DuplicatePunchesDetails(
                    duplicate_punch_ids=dup_ids,
                    duplicate_window_minutes=data.config.duplicate_window_minutes,
                ),
            )
        )

    if recon.out_without_in:
        incidents.append(
            Incident(
                kind=IncidentKind.OUT_WITHOUT_IN,
                actual_time=to_utc(recon.out_without_in[0]),
                details=PunchTimesDetails(times=_iso_times(recon.out_without_in)),
            )
        )

    if recon.in_without_out:
        incidents.append(
            Incident(
                kind=IncidentKind.IN_WITHOUT_OUT,
                actual_time=to_utc(recon.in_without_out[0]),
                details=PunchTimesDetails(times=_iso_times(recon.in_without_out)),
            )
        )

    if recon.missing_out_before_next_in:
        incidents.append(
            Incident(
                kind=IncidentKind.MISSING_OUT_BEFORE_NEXT_IN,
                actual_time=to_utc(recon.missing_out_before_next_in[0]),
                details=MissingOutBeforeNextInDetails(
                    times=_iso_times(recon.missing_out_before_next_in),
                    missing_pair_gap_minutes=data.config.missing_pair_gap_minutes,
                ),
            )
        )

    if expected:
        incidents.extend(_schedule_incidents(data, expected))

    if data.full_day_absence and any_punches:
        incidents.append(
            Incident(
                kind=IncidentKind.UNSCHEDULED_WORK,
                details=UnscheduledWorkDetails(
                    note="Punches exist on a full-day ABSENCE/HOLIDAY exception day (evidence kept).",
                    punch_count=len(data.punches),
                    duplicate_punch_ids=dup_ids,
                    exceptions=[e.to_dict() for e in data.exceptions],
                ),
            )
        )

    for incident in incidents:
        incident.meta = meta.model_copy(deep=True)
    return incidents


def _schedule_incidents(data: ClassificationInput, expected: list[TimeRange]) -> list[Incident]:
    incidents: list[Incident] = []
    first_block = expected[0]
    last_block = expected[-1]

    first_in = next((p.punched_at for p in data.usable if p.type == PunchType.IN), None)
    last_out = next((p.punched_at for p in reversed(data.usable) if p.type == PunchType.OUT), None)

    if first_in is not None:
        late = diff_minutes(first_block.start, first_in)
        if late > data.rule.late_grace_minutes:
            incidents.append(
                Incident(
                    kind=IncidentKind.LATE_ARRIVAL,
                    expected_start=to_utc(first_block.start),
                    expected_end=to_utc(first_block.end),
                    actual_time=to_utc(first_in),
                    details=LateArrivalDetails(
                        late_minutes=late, late_grace_minutes=data.rule.late_grace_minutes
                    ),
                )
            )
    else:
        incidents.append(
            Incident(
                kind=IncidentKind.MISSING_IN,
                details=NoteDetails(note="No IN punch found for this date."),
            )
        )

    if last_out is not None:
        early = diff_minutes(last_out, last_block.end)
        if early > data.rule.early_leave_grace_minutes:
            incidents.append(
                Incident(
                    kind=IncidentKind.EARLY_LEAVE,
                    expected_start=to_utc(last_block.start),
                    expected_end=to_utc(last_block.end),
                    actual_time=to_utc(last_out),
                    details=EarlyLeaveDetails(
                        early_minutes=early,
                        early_leave_grace_minutes=data.rule.early_leave_grace_minutes,
                    ),
                )
            )
    else:
        incidents.append(
            Incident(
                kind=IncidentKind.MISSING_OUT,
                details=NoteDetails(note="No OUT punch found for this date."),
            )
        )

    complete = data.reconstruction.complete_sessions
    for block in expected:
        covered = sum(
            overlap_minutes(TimeRange(s.in_at, s.out_at), block) for s in complete
        )
        if covered <= 0:
            incidents.append(
                Incident(
                    kind=IncidentKind.ABSENT_DURING_REQUIRED_BLOCK,
                    expected_start=to_utc(block.start),
                    expected_end=to_utc(block.end),
                    details=UncoveredBlockDetails(
                        note="No session overlap with required block.",
                        block_start=block.start.isoformat(),
                        block_end=block.end.isoformat(),
                    ),
                )
            )
    return incidents
