"""
Data access contracts for the evaluator and an in-memory implementation.

The evaluator never imports the database layer; it only talks to these
protocols. ``SqlAttendanceStore`` (app.db.store) implements them on top of
PostgreSQL, ``InMemoryAttendanceStore`` on top of plain lists.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Protocol, Sequence

from app.schemas.incidents import Incident
from app.services.domain import (
    AssignmentSnapshot,
    AttendanceRuleValues,
    ExceptionRecord,
    PunchRecord,
)


class RuleProvider(Protocol):
    async def get_rule(self) -> AttendanceRuleValues: ...


class ScheduleProvider(Protocol):
    async def get_assignments(self, employee_id: int, day: date) -> list[AssignmentSnapshot]: ...


class ExceptionProvider(Protocol):
    async def get_exceptions(self, employee_id: int, day: date) -> list[ExceptionRecord]: ...


class PunchProvider(Protocol):
    async def get_punches(
        self, employee_id: int, start_utc: datetime, end_utc: datetime
    ) -> list[PunchRecord]: ...


class IncidentSink(Protocol):
    async def replace_incidents(
        self, employee_id: int, day: date, incidents: Sequence[Incident]
    ) -> int: ...


@dataclass(frozen=True)
class StoredIncident:
    id: int
    employee_id: int
    date: date
    incident: Incident
    created_at: datetime


@dataclass(frozen=True)
class TopEmployee:
    employee_id: int
    name: str | None
    total: int
    by_incident: dict[str, int]


class AttendanceStore(
    RuleProvider, ScheduleProvider, ExceptionProvider, PunchProvider, IncidentSink, Protocol
):
    async def reset(self) -> None: ...

    async def list_active_employee_ids(self) -> list[int]: ...

    async def list_incidents(self, day: date, employee_id: int | None = None) -> list[StoredIncident]: ...

    async def count_by_kind(
        self, date_from: date, date_to: date, employee_id: int | None = None
    ) -> dict[str, int]: ...

    async def count_incident_days(
        self, date_from: date, date_to: date, employee_id: int | None = None
    ) -> int: ...

    async def top_employees(self, date_from: date, date_to: date, limit: int) -> list[TopEmployee]: ...


@dataclass
class InMemoryAttendanceStore:
    """Fixture-backed store; keyed by employee id and, where relevant, date."""

    rule: AttendanceRuleValues | None = None
    employees: dict[int, str] = field(default_factory=dict)
    inactive_employee_ids: set[int] = field(default_factory=set)
    assignments: dict[int, list[AssignmentSnapshot]] = field(default_factory=dict)
    exceptions: dict[tuple[int, date], list[ExceptionRecord]] = field(default_factory=dict)
    punches: dict[int, list[PunchRecord]] = field(default_factory=dict)
    incidents: dict[tuple[int, date], list[StoredIncident]] = field(default_factory=dict)
    _next_incident_id: int = 1

    async def get_rule(self) -> AttendanceRuleValues:
        return self.rule or AttendanceRuleValues.with_defaults()

    async def get_assignments(self, employee_id: int, day: date) -> list[AssignmentSnapshot]:
        return [a for a in self.assignments.get(employee_id, []) if a.covers(day)]

    async def get_exceptions(self, employee_id: int, day: date) -> list[ExceptionRecord]:
        return list(self.exceptions.get((employee_id, day), []))

    async def get_punches(
        self, employee_id: int, start_utc: datetime, end_utc: datetime
    ) -> list[PunchRecord]:
        rows = [
            p for p in self.punches.get(employee_id, [])
            if start_utc <= p.punched_at < end_utc
        ]
        return sorted(rows, key=lambda p: (p.punched_at, p.id))

    async def replace_incidents(
        self, employee_id: int, day: date, incidents: Sequence[Incident]
    ) -> int:
        now = datetime.now(timezone.utc)
        rows: list[StoredIncident] = []
        for inc in incidents:
            rows.append(
                StoredIncident(
                    id=self._next_incident_id,
                    employee_id=employee_id,
                    date=day,
                    incident=inc,
                    created_at=now,
                )
            )
            self._next_incident_id += 1
        if rows:
            self.incidents[(employee_id, day)] = rows
        else:
            self.incidents.pop((employee_id, day), None)
        return len(rows)

    async def reset(self) -> None:
        return None

    async def list_active_employee_ids(self) -> list[int]:
        return sorted(e for e in self.employees if e not in self.inactive_employee_ids)

    async def list_incidents(self, day: date, employee_id: int | None = None) -> list[StoredIncident]:
        rows = [
            row
            for (emp, d), stored in self.incidents.items()
            if d == day and (employee_id is None or emp == employee_id)
            for row in stored
        ]
        return sorted(rows, key=lambda r: (r.employee_id, r.created_at, r.id))

    def _in_range(self, date_from: date, date_to: date, employee_id: int | None):
        for (emp, d), stored in self.incidents.items():
            if date_from <= d <= date_to and (employee_id is None or emp == employee_id):
                yield emp, d, stored

    async def count_by_kind(
        self, date_from: date, date_to: date, employee_id: int | None = None
    ) -> dict[str, int]:
        counts: Counter[str] = Counter()
        for _, _, stored in self._in_range(date_from, date_to, employee_id):
            counts.update(row.incident.kind.value for row in stored)
        return dict(counts)

    async def count_incident_days(
        self, date_from: date, date_to: date, employee_id: int | None = None
    ) -> int:
        return len({d for _, d, stored in self._in_range(date_from, date_to, employee_id) if stored})

    async def top_employees(self, date_from: date, date_to: date, limit: int) -> list[TopEmployee]:
        per_employee: dict[int, Counter[str]] = {}
        for emp, _, stored in self._in_range(date_from, date_to, None):
            per_employee.setdefault(emp, Counter()).update(row.incident.kind.value for row in stored)
        ranked = sorted(per_employee.items(), key=lambda item: (-sum(item[1].values()), item[0]))
        return [
            TopEmployee(
                employee_id=emp,
                name=self.employees.get(emp),
                total=sum(counts.values()),
                by_incident=dict(counts),
            )
            for emp, counts in ranked[:limit]
        ]
