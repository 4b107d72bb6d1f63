"""
Attendance evaluation API routes.

POST endpoints evaluate and replace stored incidents; GET endpoints read
what has been stored.
"""

import logging
from datetime import date
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.db.session import get_db
from app.db.store import SqlAttendanceStore
from app.schemas.attendance import (
    EvaluateRangeRequest,
    EvaluateRangeResponse,
    EvaluateRequest,
    EvaluateResponse,
    IncidentListResponse,
    IncidentSummaryResponse,
    RangePreviewItem,
    StoredIncidentOut,
    TopEmployeeOut,
    TopSummaryResponse,
)
from app.services.domain import EvaluationConfig
from app.services.evaluator import evaluate_and_store, evaluate_range
from app.services.local_time import InvalidEvaluationInput, parse_iso_date
from app.services.providers import AttendanceStore

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_store(db: AsyncSession = Depends(get_db)) -> AsyncIterator[AttendanceStore]:
    yield SqlAttendanceStore(db)


def _bad_request(exc: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _parse_day(value: str | None, field: str) -> date:
    try:
        return parse_iso_date(value, field)
    except InvalidEvaluationInput as exc:
        raise _bad_request(exc)


def _config(duplicate_window_minutes: int | None, missing_pair_gap_minutes: int | None) -> EvaluationConfig:
    return EvaluationConfig(
        duplicate_window_minutes=(
            duplicate_window_minutes
            if duplicate_window_minutes is not None
            else settings.DUPLICATE_WINDOW_MINUTES
        ),
        missing_pair_gap_minutes=(
            missing_pair_gap_minutes
            if missing_pair_gap_minutes is not None
            else settings.MISSING_PAIR_GAP_MINUTES
        ),
    )


@router.post(
    "/evaluate",
    response_model=EvaluateResponse,
    summary="Evaluate one employee-day and replace its incidents",
)
async def evaluate_attendance(
    body: EvaluateRequest,
    store: AttendanceStore = Depends(get_store),
) -> EvaluateResponse:
    config = _config(body.duplicate_window_minutes, body.missing_pair_gap_minutes)
    try:
        result, saved = await evaluate_and_store(store, body.employee_id, body.date, config)
    except InvalidEvaluationInput as exc:
        raise _bad_request(exc)

    logger.info(
        "Evaluated employee=%s date=%s: incidents=%d saved=%d",
        body.employee_id, body.date.isoformat(), len(result.incidents), saved,
    )
    return EvaluateResponse(
        date=body.date,
        employee_id=str(body.employee_id),
        saved=saved,
        incidents=result.incidents,
    )


@router.post(
    "/evaluate-range",
    response_model=EvaluateRangeResponse,
    summary="Evaluate a date range for one or all active employees",
)
async def evaluate_attendance_range(
    body: EvaluateRangeRequest,
    store: AttendanceStore = Depends(get_store),
) -> EvaluateRangeResponse:
    config = _config(body.duplicate_window_minutes, body.missing_pair_gap_minutes)
    try:
        report = await evaluate_range(
            store,
            body.date_from,
            body.date_to,
            employee_id=body.employee_id,
            config=config,
            max_days=body.max_days,
        )
    except InvalidEvaluationInput as exc:
        raise _bad_request(exc)

    return EvaluateRangeResponse(
        date_from=body.date_from,
        date_to=body.date_to,
        days=report.days,
        employees=report.employees,
        evaluations=report.evaluations,
        total_saved=report.total_saved,
        failed=report.failed,
        preview=[
            RangePreviewItem(
                employee_id=str(row.employee_id),
                date=row.date,
                saved=row.saved,
                incidents=row.incidents,
                error=row.error,
            )
            for row in report.preview
        ],
        note=(
            f"Preview is capped at {settings.RANGE_PREVIEW_LIMIT} rows. "
            "Full incidents are available from /api/attendance/incidents"
        ),
    )


@router.get(
    "/incidents",
    response_model=IncidentListResponse,
    summary="Stored incidents for a date",
)
async def list_attendance_incidents(
    date_: str | None = Query(default=None, alias="date", description="ISO date YYYY-MM-DD"),
    employee_id: int | None = Query(default=None, ge=1),
    store: AttendanceStore = Depends(get_store),
) -> IncidentListResponse:
    day = _parse_day(date_, "date")
    rows = await store.list_incidents(day, employee_id)
    return IncidentListResponse(
        date=day,
        employee_id=str(employee_id) if employee_id is not None else None,
        count=len(rows),
        items=[
            StoredIncidentOut(
                id=row.id,
                employee_id=str(row.employee_id),
                date=row.date,
                incident=row.incident,
                created_at=row.created_at,
            )
            for row in rows
        ],
    )


@router.get(
    "/summary",
    response_model=IncidentSummaryResponse,
    summary="Incident counts per kind for a date range",
)
async def get_attendance_summary(
    date_from: str | None = Query(default=None, alias="from", description="ISO date YYYY-MM-DD"),
    date_to: str | None = Query(default=None, alias="to", description="ISO date YYYY-MM-DD"),
    employee_id: int | None = Query(default=None, ge=1),
    store: AttendanceStore = Depends(get_store),
) -> IncidentSummaryResponse:
    df = _parse_day(date_from, "from")
    dt = _parse_day(date_to, "to")

    counts = await store.count_by_kind(df, dt, employee_id)
    incident_days = await store.count_incident_days(df, dt, employee_id)

    return IncidentSummaryResponse(
        date_from=df,
        date_to=dt,
        employee_id=str(employee_id) if employee_id is not None else None,
        counts=counts,
        incident_days=incident_days,
    )


@router.get(
    "/summary/top",
    response_model=TopSummaryResponse,
    summary="Employees with the most incidents in a date range",
)
async def get_attendance_summary_top(
    date_from: str | None = Query(default=None, alias="from", description="ISO date YYYY-MM-DD"),
    date_to: str | None = Query(default=None, alias="to", description="ISO date YYYY-MM-DD"),
    limit: int = Query(default=10),
    store: AttendanceStore = Depends(get_store),
) -> TopSummaryResponse:
    df = _parse_day(date_from, "from")
    dt = _parse_day(date_to, "to")
    limit = max(1, min(50, limit))

    top = await store.top_employees(df, dt, limit)
    return TopSummaryResponse(
        date_from=df,
        date_to=dt,
        limit=limit,
        items=[
            TopEmployeeOut(
                employee_id=str(t.employee_id),
                name=t.name,
                total=t.total,
                by_incident=t.by_incident,
            )
            for t in top
        ],
    )
