"""
PostgreSQL-backed attendance store.

Implements every provider the evaluator needs plus the incident sink and the
reporting queries behind the /api/attendance routes. Reads are plain
SELECTs; ``replace_incidents`` deletes and inserts inside one transaction so
a failure never leaves a mix of old and new incidents for a day.
"""

import logging
from datetime import date, datetime
from typing import Sequence

from sqlalchemy import delete, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.db.models import (
    AttendanceIncident,
    AttendancePunch,
    AttendanceRule,
    Employee,
    EmployeeScheduleAssignment,
    ScheduleException,
    ScheduleTemplate,
)
from app.schemas.incidents import DETAILS_BY_KIND, EvaluationMeta, Incident, IncidentKind
from app.services.domain import (
    AssignmentSnapshot,
    AttendanceRuleValues,
    ExceptionRecord,
    ExceptionType,
    PunchRecord,
    PunchType,
    ScheduleBlockSpec,
)
from app.services.providers import StoredIncident, TopEmployee

logger = logging.getLogger(__name__)


def _to_stored(row: AttendanceIncident) -> StoredIncident:
    details = dict(row.details or {})
    meta = details.pop("meta", None)
    kind = IncidentKind(row.incident)
    incident = Incident(
        kind=kind,
        expected_start=row.expected_start,
        expected_end=row.expected_end,
        actual_time=row.actual_time,
        details=DETAILS_BY_KIND[kind].model_validate(details),
        meta=EvaluationMeta.model_validate(meta) if meta is not None else None,
    )
    return StoredIncident(
        id=row.id,
        employee_id=row.employee_id,
        date=row.date,
        incident=incident,
        created_at=row.created_at,
    )


class SqlAttendanceStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    # --- providers ---

    async def get_rule(self) -> AttendanceRuleValues:
        result = await self.db.execute(
            select(AttendanceRule)
            .order_by(AttendanceRule.updated_at.desc(), AttendanceRule.id.desc())
            .limit(1)
        )
        rule = result.scalar_one_or_none()
        if rule is None:
            logger.debug("No attendance_rules row; using default thresholds")
            return AttendanceRuleValues.with_defaults()
        return AttendanceRuleValues.with_defaults(
            late_grace_minutes=rule.late_grace_minutes,
            early_leave_grace_minutes=rule.early_leave_grace_minutes,
            min_gap_minutes_to_allow_checkout=rule.min_gap_minutes_to_allow_checkout,
        )

    async def get_assignments(self, employee_id: int, day: date) -> list[AssignmentSnapshot]:
        result = await self.db.execute(
            select(EmployeeScheduleAssignment)
            .options(
                selectinload(EmployeeScheduleAssignment.template).selectinload(
                    ScheduleTemplate.blocks
                )
            )
            .where(
                EmployeeScheduleAssignment.employee_id == employee_id,
                EmployeeScheduleAssignment.starts_on <= day,
                (EmployeeScheduleAssignment.ends_on.is_(None))
                | (EmployeeScheduleAssignment.ends_on >= day),
            )
            .order_by(EmployeeScheduleAssignment.starts_on.desc(), EmployeeScheduleAssignment.id.desc())
        )
        snapshots: list[AssignmentSnapshot] = []
        for a in result.scalars().all():
            snapshots.append(
                AssignmentSnapshot(
                    id=a.id,
                    starts_on=a.starts_on,
                    ends_on=a.ends_on,
                    template_name=a.template.name,
                    blocks=tuple(
                        ScheduleBlockSpec(
                            weekday=b.weekday,
                            start_time=b.start_time,
                            end_time=b.end_time,
                            requires_presence=b.requires_presence,
                            label=b.label,
                        )
                        for b in a.template.blocks
                    ),
                )
            )
        return snapshots

    async def get_exceptions(self, employee_id: int, day: date) -> list[ExceptionRecord]:
        result = await self.db.execute(
            select(ScheduleException)
            .where(ScheduleException.employee_id == employee_id, ScheduleException.date == day)
            .order_by(ScheduleException.created_at.asc(), ScheduleException.id.asc())
        )
        return [
            ExceptionRecord(
                id=e.id,
                type=ExceptionType(e.type),
                start_time=e.start_time,
                end_time=e.end_time,
            )
            for e in result.scalars().all()
        ]

    async def get_punches(
        self, employee_id: int, start_utc: datetime, end_utc: datetime
    ) -> list[PunchRecord]:
        result = await self.db.execute(
            select(AttendancePunch.id, AttendancePunch.punched_at, AttendancePunch.type)
            .where(
                AttendancePunch.employee_id == employee_id,
                AttendancePunch.punched_at >= start_utc,
                AttendancePunch.punched_at < end_utc,
            )
            .order_by(AttendancePunch.punched_at.asc(), AttendancePunch.id.asc())
        )
        return [
            PunchRecord(id=pid, punched_at=punched_at, type=PunchType(ptype))
            for pid, punched_at, ptype in result.all()
        ]

    # --- sink ---

    async def replace_incidents(
        self, employee_id: int, day: date, incidents: Sequence[Incident]
    ) -> int:
        rows = [
            {
                "employee_id": employee_id,
                "date": day,
                "incident": inc.kind.value,
                "expected_start": inc.expected_start,
                "expected_end": inc.expected_end,
                "actual_time": inc.actual_time,
                "details": inc.details_payload(),
            }
            for inc in incidents
        ]

        # Reads above may have opened an implicit transaction; close it so the
        # replacement runs in its own all-or-nothing unit.
        if self.db.in_transaction():
            await self.db.commit()

        async with self.db.begin():
            await self.db.execute(
                delete(AttendanceIncident).where(
                    AttendanceIncident.employee_id == employee_id,
                    AttendanceIncident.date == day,
                )
            )
            if rows:
                await self.db.execute(insert(AttendanceIncident), rows)

        logger.info(
            "Incidents replaced: employee=%s date=%s saved=%d",
            employee_id, day.isoformat(), len(rows),
        )
        return len(rows)

    async def reset(self) -> None:
        """Roll back whatever a failed evaluation left open on the session."""
        await self.db.rollback()

    # --- reporting ---

    async def list_active_employee_ids(self) -> list[int]:
        result = await self.db.execute(
            select(Employee.id).where(Employee.is_active.is_(True)).order_by(Employee.id)
        )
        return list(result.scalars().all())

    async def list_incidents(self, day: date, employee_id: int | None = None) -> list[StoredIncident]:
        stmt = select(AttendanceIncident).where(AttendanceIncident.date == day)
        if employee_id is not None:
            stmt = stmt.where(AttendanceIncident.employee_id == employee_id)
        stmt = stmt.order_by(
            AttendanceIncident.employee_id.asc(),
            AttendanceIncident.created_at.asc(),
            AttendanceIncident.id.asc(),
        )
        result = await self.db.execute(stmt)
        return [_to_stored(row) for row in result.scalars().all()]

    def _range_filter(self, stmt, date_from: date, date_to: date, employee_id: int | None):
        stmt = stmt.where(AttendanceIncident.date >= date_from, AttendanceIncident.date <= date_to)
        if employee_id is not None:
            stmt = stmt.where(AttendanceIncident.employee_id == employee_id)
        return stmt

    async def count_by_kind(
        self, date_from: date, date_to: date, employee_id: int | None = None
    ) -> dict[str, int]:
        stmt = self._range_filter(
            select(AttendanceIncident.incident, func.count(AttendanceIncident.id)),
            date_from, date_to, employee_id,
        ).group_by(AttendanceIncident.incident)
        result = await self.db.execute(stmt)
        return {kind: int(count) for kind, count in result.all()}

    async def count_incident_days(
        self, date_from: date, date_to: date, employee_id: int | None = None
    ) -> int:
        stmt = self._range_filter(
            select(func.count(func.distinct(AttendanceIncident.date))),
            date_from, date_to, employee_id,
        )
        result = await self.db.execute(stmt)
        return int(result.scalar_one() or 0)

    async def top_employees(self, date_from: date, date_to: date, limit: int) -> list[TopEmployee]:
        total = func.count(AttendanceIncident.id).label("total")
        top_stmt = (
            self._range_filter(
                select(AttendanceIncident.employee_id, total), date_from, date_to, None
            )
            .group_by(AttendanceIncident.employee_id)
            .order_by(total.desc(), AttendanceIncident.employee_id.asc())
            .limit(limit)
        )
        top = (await self.db.execute(top_stmt)).all()
        employee_ids = [emp_id for emp_id, _ in top]
        if not employee_ids:
            return []

        emp_result = await self.db.execute(select(Employee).where(Employee.id.in_(employee_ids)))
        names = {e.id: e.full_name for e in emp_result.scalars().all()}

        breakdown_stmt = (
            self._range_filter(
                select(
                    AttendanceIncident.employee_id,
                    AttendanceIncident.incident,
                    func.count(AttendanceIncident.id),
                ),
                date_from, date_to, None,
            )
            .where(AttendanceIncident.employee_id.in_(employee_ids))
            .group_by(AttendanceIncident.employee_id, AttendanceIncident.incident)
        )
        by_employee: dict[int, dict[str, int]] = {}
        for emp_id, kind, count in (await self.db.execute(breakdown_stmt)).all():
            by_employee.setdefault(emp_id, {})[kind] = int(count)

        return [
            TopEmployee(
                employee_id=emp_id,
                name=names.get(emp_id),
                total=int(count),
                by_incident=by_employee.get(emp_id, {}),
            )
            for emp_id, count in top
        ]
