"""initial: employees, schedules, exceptions, rules, punches, incidents

Revision ID: 0001_initial
Revises:
Create Date: 2025-10-01 00:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_INCIDENT_TYPES = (
    "ABSENT",
    "UNSCHEDULED_WORK",
    "DUPLICATE_PUNCHES",
    "OUT_WITHOUT_IN",
    "IN_WITHOUT_OUT",
    "MISSING_OUT_BEFORE_NEXT_IN",
    "LATE_ARRIVAL",
    "MISSING_IN",
    "EARLY_LEAVE",
    "MISSING_OUT",
    "ABSENT_DURING_REQUIRED_BLOCK",
)


def upgrade() -> None:
    # ENUM types are created by the before_create hook of op.create_table.

    # --- employees ---
    op.create_table(
        "employees",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("first_name", sa.String(120), nullable=False),
        sa.Column("last_name", sa.String(120), nullable=False, server_default=""),
        sa.Column("identification", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("identification"),
    )

    # --- schedule templates and blocks ---
    op.create_table(
        "schedule_templates",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("valid_from", sa.Date(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "schedule_blocks",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("schedule_template_id", sa.Integer(), nullable=False),
        sa.Column("weekday", sa.SmallInteger(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column(
            "block_type",
            sa.Enum("CLASS", "BREAK", "GAP", "ADMIN", "OTHER", name="schedule_block_type_enum"),
            nullable=False,
            server_default="CLASS",
        ),
        sa.Column("requires_presence", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("label", sa.String(120), nullable=True),
        sa.ForeignKeyConstraint(
            ["schedule_template_id"], ["schedule_templates.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_schedule_blocks_template_weekday",
        "schedule_blocks",
        ["schedule_template_id", "weekday"],
    )

    # --- employee_schedule_assignments ---
    op.create_table(
        "employee_schedule_assignments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("employee_id", sa.BigInteger(), nullable=False),
        sa.Column("schedule_template_id", sa.Integer(), nullable=False),
        sa.Column("starts_on", sa.Date(), nullable=False),
        sa.Column("ends_on", sa.Date(), nullable=True),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["schedule_template_id"], ["schedule_templates.id"], ondelete="RESTRICT"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_assignment_employee_starts",
        "employee_schedule_assignments",
        ["employee_id", "starts_on"],
    )

    # --- schedule_exceptions ---
    op.create_table(
        "schedule_exceptions",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("employee_id", sa.BigInteger(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column(
            "type",
            sa.Enum(
                "PERMISSION", "ABSENCE", "HOLIDAY", "VACATION", "SICK_LEAVE", "OTHER",
                name="schedule_exception_type_enum",
            ),
            nullable=False,
        ),
        sa.Column("start_time", sa.Time(), nullable=True),
        sa.Column("end_time", sa.Time(), nullable=True),
        sa.Column("reason", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_schedule_exceptions_employee_date",
        "schedule_exceptions",
        ["employee_id", "date"],
    )

    # --- attendance_rules ---
    op.create_table(
        "attendance_rules",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("late_grace_minutes", sa.Integer(), nullable=True),
        sa.Column("early_leave_grace_minutes", sa.Integer(), nullable=True),
        sa.Column("min_gap_minutes_to_allow_checkout", sa.Integer(), nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    # --- attendance_punches ---
    op.create_table(
        "attendance_punches",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("employee_id", sa.BigInteger(), nullable=False),
        sa.Column("punched_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("type", sa.Enum("IN", "OUT", name="punch_type_enum"), nullable=False),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("employee_id", "punched_at", "type", name="uq_attendance_punch"),
    )
    op.create_index(
        "ix_attendance_punch_employee_time",
        "attendance_punches",
        ["employee_id", "punched_at"],
    )

    # --- attendance_incidents ---
    op.create_table(
        "attendance_incidents",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("employee_id", sa.BigInteger(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("incident", sa.Enum(*_INCIDENT_TYPES, name="incident_type_enum"), nullable=False),
        sa.Column("expected_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expected_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("details", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_attendance_incident_employee_date",
        "attendance_incidents",
        ["employee_id", "date"],
    )
    op.create_index("ix_attendance_incident_date", "attendance_incidents", ["date"])


def downgrade() -> None:
    op.drop_index("ix_attendance_incident_date", table_name="attendance_incidents")
    op.drop_index("ix_attendance_incident_employee_date", table_name="attendance_incidents")
    op.drop_table("attendance_incidents")
    op.drop_index("ix_attendance_punch_employee_time", table_name="attendance_punches")
    op.drop_table("attendance_punches")
    op.drop_table("attendance_rules")
    op.drop_index("ix_schedule_exceptions_employee_date", table_name="schedule_exceptions")
    op.drop_table("schedule_exceptions")
    op.drop_index("ix_assignment_employee_starts", table_name="employee_schedule_assignments")
    op.drop_table("employee_schedule_assignments")
    op.drop_index("ix_schedule_blocks_template_weekday", table_name="schedule_blocks")
    op.drop_table("schedule_blocks")
    op.drop_table("schedule_templates")
    op.drop_table("employees")
    op.execute("DROP TYPE IF EXISTS incident_type_enum")
    op.execute("DROP TYPE IF EXISTS punch_type_enum")
    op.execute("DROP TYPE IF EXISTS schedule_exception_type_enum")
    op.execute("DROP TYPE IF EXISTS schedule_block_type_enum")
