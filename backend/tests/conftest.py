"""
conftest.py: shared fixtures for the attendance evaluator tests.

Strategy:
- The evaluator is exercised against InMemoryAttendanceStore, so no database
  is needed; the API's ``get_store`` dependency is overridden with the same
  store the test filled in.
- Times are written as local (America/Costa_Rica) wall-clock strings and
  converted to UTC instants before they reach the store, the way punches come
  out of PostgreSQL.
- Reference week: Monday 2025-03-03 .. Sunday 2025-03-09.
- SqlAttendanceStore tests use the PostgreSQL from settings.DATABASE_URL with a
  throwaway "qa_" employee per test, and are skipped when it is unreachable.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timezone
from typing import AsyncIterator, Iterable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import delete, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.api.attendance import get_store
from app.core.config import settings
from app.db.models import Employee
from app.main import app
from app.services.domain import (
    AssignmentSnapshot,
    AttendanceRuleValues,
    EvaluationConfig,
    PunchRecord,
    PunchType,
    ScheduleBlockSpec,
)
from app.services.local_time import combine_date_and_time_local
from app.services.providers import InMemoryAttendanceStore

MONDAY = date(2025, 3, 3)
TUESDAY = date(2025, 3, 4)
WEDNESDAY = date(2025, 3, 5)
SATURDAY = date(2025, 3, 8)

EMPLOYEE_ID = 1

# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def t(value: str) -> time:
    hh, mm = value.split(":")
    return time(int(hh), int(mm))


def local(day: date, hhmm: str) -> datetime:
    """Aware local datetime for ``day`` at ``hhmm``."""
    return combine_date_and_time_local(day, t(hhmm))


def punch(punch_id: int, day: date, hhmm: str, kind: str) -> PunchRecord:
    """A punch as the store returns it: UTC instant, IN/OUT type."""
    return PunchRecord(
        id=punch_id,
        punched_at=local(day, hhmm).astimezone(timezone.utc),
        type=PunchType(kind),
    )


def punches(day: date, *pairs: tuple[str, str], first_id: int = 1) -> list[PunchRecord]:
    """``punches(MONDAY, ("08:30", "IN"), ("16:00", "OUT"))``"""
    return [punch(first_id + i, day, hhmm, kind) for i, (hhmm, kind) in enumerate(pairs)]


def weekday_blocks(
    blocks: Iterable[tuple[str, str, bool]], weekdays: Iterable[int] = range(1, 6)
) -> tuple[ScheduleBlockSpec, ...]:
    return tuple(
        ScheduleBlockSpec(weekday=wd, start_time=t(start), end_time=t(end), requires_presence=req)
        for wd in weekdays
        for start, end, req in blocks
    )


# Morning and afternoon required, lunch not.
STANDARD_BLOCKS = weekday_blocks(
    [
        ("08:30", "12:00", True),
        ("12:00", "13:00", False),
        ("13:00", "16:00", True),
    ]
)

STANDARD_ASSIGNMENT = AssignmentSnapshot(
    id=10,
    starts_on=date(2025, 1, 1),
    ends_on=None,
    blocks=STANDARD_BLOCKS,
    template_name="Standard 08:30-16:00",
)

RULE = AttendanceRuleValues(
    late_grace_minutes=5,
    early_leave_grace_minutes=5,
    min_gap_minutes_to_allow_checkout=11,
)

CONFIG = EvaluationConfig(duplicate_window_minutes=2, missing_pair_gap_minutes=30)


# ---------------------------------------------------------------------------
# Store fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> InMemoryAttendanceStore:
    """One active employee on the standard Monday–Friday schedule, no punches."""
    return InMemoryAttendanceStore(
        rule=RULE,
        employees={EMPLOYEE_ID: "Juan Pérez"},
        assignments={EMPLOYEE_ID: [STANDARD_ASSIGNMENT]},
    )


# ---------------------------------------------------------------------------
# HTTP client fixture
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(store: InMemoryAttendanceStore) -> AsyncClient:
    """HTTPX async client with ``get_store`` bound to the test store."""
    app.dependency_overrides[get_store] = lambda: store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.pop(get_store, None)


# ---------------------------------------------------------------------------
# PostgreSQL fixtures (independent of app's get_db)
# ---------------------------------------------------------------------------
_test_engine = create_async_engine(settings.DATABASE_URL, echo=False, poolclass=NullPool)
_TestSession = async_sessionmaker(_test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def pg_session() -> AsyncIterator[AsyncSession]:
    """Session on the app database; skips the test when it is unreachable or not migrated."""
    try:
        async with _TestSession() as session:
            await session.execute(text("SELECT 1 FROM attendance_incidents LIMIT 1"))
    except (OSError, SQLAlchemyError) as exc:
        pytest.skip(f"PostgreSQL not available: {exc}")

    async with _TestSession() as session:
        yield session


@pytest_asyncio.fixture
async def pg_employee(pg_session: AsyncSession) -> AsyncIterator[int]:
    """A qa_ employee for one test; its incidents are removed with it (ON DELETE CASCADE)."""
    uid_short = uuid.uuid4().hex[:8]
    async with _TestSession() as session:
        emp = Employee(
            first_name=f"qa_{uid_short}",
            last_name="Store",
            identification=f"qa_{uid_short}",
            is_active=True,
        )
        session.add(emp)
        await session.commit()
        await session.refresh(emp)
        emp_id = emp.id

    yield emp_id

    async with _TestSession() as session:
        await session.execute(delete(Employee).where(Employee.id == emp_id))
        await session.commit()
