"""
Single-day attendance evaluation and the range loop built on top of it.

``evaluate_day`` is the pure part: it takes everything already loaded into
memory and returns incidents. ``evaluate_employee_day`` loads the inputs
through the providers first. Neither persists anything; ``evaluate_and_store``
and ``evaluate_range`` do, through the incident sink.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Sequence

from app.core.config import settings
from app.schemas.incidents import Incident
from app.services.domain import (
    AssignmentSnapshot,
    AttendanceRuleValues,
    EvaluationConfig,
    ExceptionRecord,
    PunchRecord,
)
from app.services.incidents import ClassificationInput, classify
from app.services.local_time import InvalidEvaluationInput, day_range_utc, parse_iso_date
from app.services.providers import (
    AttendanceStore,
    ExceptionProvider,
    IncidentSink,
    PunchProvider,
    RuleProvider,
    ScheduleProvider,
)
from app.services.punches import mark_duplicates, normalize_punches, usable_punches
from app.services.schedule import resolve_expected_blocks
from app.services.sessions import reconstruct_sessions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DayInputs:
    employee_id: int
    day: date
    rule: AttendanceRuleValues
    assignments: Sequence[AssignmentSnapshot]
    exceptions: Sequence[ExceptionRecord]
    punches: Sequence[PunchRecord]


@dataclass(frozen=True)
class EvaluationResult:
    incidents: list[Incident]


@dataclass(frozen=True)
class Providers:
    rules: RuleProvider
    schedules: ScheduleProvider
    exceptions: ExceptionProvider
    punches: PunchProvider

    @classmethod
    def from_store(cls, store: AttendanceStore) -> "Providers":
        return cls(rules=store, schedules=store, exceptions=store, punches=store)


def _validate_employee_id(employee_id) -> int:
    if employee_id is None or isinstance(employee_id, bool):
        raise InvalidEvaluationInput('"employee_id" is required')
    try:
        value = int(str(employee_id).strip())
    except ValueError as exc:
        raise InvalidEvaluationInput('"employee_id" must be an integer') from exc
    if value <= 0:
        raise InvalidEvaluationInput('"employee_id" must be positive')
    return value


def evaluate_day(inputs: DayInputs, config: EvaluationConfig | None = None) -> EvaluationResult:
    config = config or EvaluationConfig()

    schedule = resolve_expected_blocks(inputs.assignments, inputs.exceptions, inputs.day)
    punches = mark_duplicates(normalize_punches(inputs.punches), config.duplicate_window_minutes)
    usable = usable_punches(punches)
    reconstruction = reconstruct_sessions(
        usable,
        min_gap_minutes_to_allow_checkout=inputs.rule.min_gap_minutes_to_allow_checkout,
        missing_pair_gap_minutes=config.missing_pair_gap_minutes,
    )

    incidents = classify(
        ClassificationInput(
            employee_id=str(inputs.employee_id),
            day=inputs.day,
            punches=punches,
            usable=usable,
            reconstruction=reconstruction,
            expected=schedule.blocks,
            full_day_absence=schedule.full_day_absence,
            exceptions=inputs.exceptions,
            rule=inputs.rule,
            config=config,
        )
    )
    logger.debug(
        "Evaluated employee=%s date=%s: punches=%d usable=%d sessions=%d expected=%d incidents=%d",
        inputs.employee_id, inputs.day.isoformat(), len(punches), len(usable),
        len(reconstruction.sessions), len(schedule.blocks), len(incidents),
    )
    return EvaluationResult(incidents=incidents)


async def load_day_inputs(providers: Providers, employee_id: int, day: date) -> DayInputs:
    start_utc, end_utc = day_range_utc(day)
    return DayInputs(
        employee_id=employee_id,
        day=day,
        rule=await providers.rules.get_rule(),
        assignments=await providers.schedules.get_assignments(employee_id, day),
        exceptions=await providers.exceptions.get_exceptions(employee_id, day),
        punches=await providers.punches.get_punches(employee_id, start_utc, end_utc),
    )


async def evaluate_employee_day(
    providers: Providers,
    employee_id: int | str | None,
    day: date | str | None,
    config: EvaluationConfig | None = None,
) -> EvaluationResult:
    """
    Evaluate one employee-day.

    Raises:
        InvalidEvaluationInput: bad date or missing/invalid employee id. Nothing
            is read from the providers in that case.
    """
    emp_id = _validate_employee_id(employee_id)
    the_day = parse_iso_date(day)
    inputs = await load_day_inputs(providers, emp_id, the_day)
    return evaluate_day(inputs, config)


async def evaluate_and_store(
    store: AttendanceStore,
    employee_id: int | str | None,
    day: date | str | None,
    config: EvaluationConfig | None = None,
) -> tuple[EvaluationResult, int]:
    result = await evaluate_employee_day(Providers.from_store(store), employee_id, day, config)
    saved = await store.replace_incidents(
        _validate_employee_id(employee_id), parse_iso_date(day), result.incidents
    )
    return result, saved


# --- Range orchestration ---


@dataclass(frozen=True)
class RangePreviewRow:
    employee_id: int
    date: date
    saved: int
    incidents: int
    error: str | None = None


@dataclass
class RangeEvaluationReport:
    days: int
    employees: int
    evaluations: int = 0
    total_saved: int = 0
    failed: int = 0
    preview: list[RangePreviewRow] = field(default_factory=list)


def clamp_max_days(value: int | None) -> int:
    if value is None:
        return settings.RANGE_MAX_DAYS
    return max(1, min(settings.RANGE_MAX_DAYS_LIMIT, int(value)))


def count_days(date_from: date, date_to: date, max_days: int) -> int:
    if date_to < date_from:
        raise InvalidEvaluationInput('"to" must be on or after "from"')
    total = (date_to - date_from).days + 1
    if total > max_days:
        raise InvalidEvaluationInput(f"Range too large ({total} days). Current limit: {max_days}.")
    return total


async def evaluate_range(
    store: AttendanceStore,
    date_from: date | str,
    date_to: date | str,
    employee_id: int | str | None = None,
    config: EvaluationConfig | None = None,
    max_days: int | None = None,
) -> RangeEvaluationReport:
    """
    Evaluate and persist every day in ``[date_from, date_to]`` for one employee,
    or for every active employee when ``employee_id`` is None.

    A failure on one employee-day is logged and counted; the loop carries on.
    """
    start = parse_iso_date(date_from, "from")
    end = parse_iso_date(date_to, "to")
    total_days = count_days(start, end, clamp_max_days(max_days))

    if employee_id is not None:
        employee_ids = [_validate_employee_id(employee_id)]
    else:
        employee_ids = await store.list_active_employee_ids()

    report = RangeEvaluationReport(days=total_days, employees=len(employee_ids))
    logger.info(
        "Range evaluation %s..%s: employees=%d days=%d",
        start.isoformat(), end.isoformat(), len(employee_ids), total_days,
    )

    for emp_id in employee_ids:
        for offset in range(total_days):
            day = start + timedelta(days=offset)
            try:
                result, saved = await evaluate_and_store(store, emp_id, day, config)
            except Exception as exc:
                report.failed += 1
                logger.exception("Evaluation failed for employee=%s date=%s", emp_id, day.isoformat())
                await store.reset()
                row = RangePreviewRow(employee_id=emp_id, date=day, saved=0, incidents=0, error=str(exc))
            else:
                report.evaluations += 1
                report.total_saved += saved
                row = RangePreviewRow(
                    employee_id=emp_id, date=day, saved=saved, incidents=len(result.incidents)
                )
            if len(report.preview) < settings.RANGE_PREVIEW_LIMIT:
                report.preview.append(row)

    logger.info(
        "Range evaluation finished: evaluations=%d saved=%d failed=%d",
        report.evaluations, report.total_saved, report.failed,
    )
    return report
