"""
Seed script: default attendance rule, the base Monday–Friday schedule template
and a demo employee assigned to it.

Usage (inside container):
    python -m app.db.seed
"""

import asyncio
from datetime import date, time

from sqlalchemy import select

from app.db.models import (
    AttendanceRule,
    Employee,
    EmployeeScheduleAssignment,
    ScheduleBlock,
    ScheduleTemplate,
)
from app.db.session import AsyncSessionLocal

BASE_TEMPLATE_NAME = "Base template 7-16"

# (start, end, block_type, requires_presence, label)
BASE_BLOCKS: list[tuple[str, str, str, bool, str]] = [
    ("07:00", "08:30", "GAP", False, "Morning gap"),
    ("08:30", "09:10", "CLASS", True, "Lesson 1"),
    ("09:10", "09:50", "CLASS", True, "Lesson 2"),
    ("09:50", "10:00", "BREAK", True, "Recess"),
    ("10:00", "10:40", "CLASS", True, "Lesson 3"),
    ("10:40", "11:20", "CLASS", True, "Lesson 4"),
    ("11:20", "11:30", "BREAK", True, "Recess"),
    ("11:30", "12:00", "GAP", False, "Pre-lunch gap"),
    ("12:00", "13:00", "BREAK", False, "Lunch"),
    ("13:00", "13:40", "CLASS", True, "Lesson 5"),
    ("13:40", "14:20", "CLASS", True, "Lesson 6"),
    ("14:20", "14:30", "BREAK", True, "Recess"),
    ("14:30", "16:00", "GAP", False, "Afternoon gap"),
]


def _t(value: str) -> time:
    hh, mm = value.split(":")
    return time(int(hh), int(mm))


async def upsert_rule(session) -> AttendanceRule:
    result = await session.execute(select(AttendanceRule).where(AttendanceRule.id == 1))
    rule = result.scalar_one_or_none()
    if rule is None:
        rule = AttendanceRule(id=1)
        session.add(rule)
    rule.late_grace_minutes = 5
    rule.early_leave_grace_minutes = 0
    rule.min_gap_minutes_to_allow_checkout = 11
    await session.flush()
    print(f"Attendance rule ready: {rule!r}")
    return rule


async def create_base_template(session) -> ScheduleTemplate:
    result = await session.execute(
        select(ScheduleTemplate)
        .where(ScheduleTemplate.name == BASE_TEMPLATE_NAME)
        .order_by(ScheduleTemplate.id.desc())
    )
    template = result.scalars().first()
    if template:
        print(f"Template '{BASE_TEMPLATE_NAME}' already exists (id={template.id}), skipping.")
        return template

    template = ScheduleTemplate(name=BASE_TEMPLATE_NAME, valid_from=date(2025, 1, 1))
    session.add(template)
    await session.flush()

    # Monday .. Friday
    for weekday in range(1, 6):
        for start, end, block_type, presence, label in BASE_BLOCKS:
            session.add(
                ScheduleBlock(
                    schedule_template_id=template.id,
                    weekday=weekday,
                    start_time=_t(start),
                    end_time=_t(end),
                    block_type=block_type,
                    requires_presence=presence,
                    label=label,
                )
            )
    await session.flush()
    print(f"Created template '{BASE_TEMPLATE_NAME}' (id={template.id}) with {5 * len(BASE_BLOCKS)} blocks")
    return template


async def assign_demo_employee(session, template: ScheduleTemplate) -> Employee:
    result = await session.execute(select(Employee).where(Employee.identification == "123456789"))
    employee = result.scalar_one_or_none()
    if employee is None:
        employee = Employee(
            first_name="Juan",
            last_name="Pérez",
            identification="123456789",
            email="juan.perez@sada.com",
            is_active=True,
        )
        session.add(employee)
        await session.flush()
        print(f"Created demo employee: id={employee.id}")

    result = await session.execute(
        select(EmployeeScheduleAssignment).where(
            EmployeeScheduleAssignment.employee_id == employee.id,
            EmployeeScheduleAssignment.schedule_template_id == template.id,
        )
    )
    if result.scalar_one_or_none() is None:
        session.add(
            EmployeeScheduleAssignment(
                employee_id=employee.id,
                schedule_template_id=template.id,
                starts_on=date(2025, 1, 1),
            )
        )
        await session.flush()
        print(f"Assigned template id={template.id} to employee id={employee.id}")
    return employee


async def main():
    async with AsyncSessionLocal() as session:
        async with session.begin():
            await upsert_rule(session)
            template = await create_base_template(session)
            await assign_demo_employee(session, template)
            print("Seed complete.")


if __name__ == "__main__":
    asyncio.run(main())
