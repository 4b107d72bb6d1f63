import datetime as dt

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    Time,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

PUNCH_TYPES = ("IN", "OUT")
EXCEPTION_TYPES = ("PERMISSION", "ABSENCE", "HOLIDAY", "VACATION", "SICK_LEAVE", "OTHER")
BLOCK_TYPES = ("CLASS", "BREAK", "GAP", "ADMIN", "OTHER")
INCIDENT_TYPES = (
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


class Base(DeclarativeBase):
    pass


class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(120), nullable=False)
    last_name: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    identification: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    assignments: Mapped[list["EmployeeScheduleAssignment"]] = relationship(
        "EmployeeScheduleAssignment", back_populates="employee", lazy="raise"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<Employee id={self.id} identification={self.identification}>"


class ScheduleTemplate(Base):
    __tablename__ = "schedule_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    valid_from: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    blocks: Mapped[list["ScheduleBlock"]] = relationship(
        "ScheduleBlock",
        back_populates="template",
        lazy="raise",
        order_by="ScheduleBlock.start_time",
    )

    def __repr__(self) -> str:
        return f"<ScheduleTemplate id={self.id} name={self.name}>"


class ScheduleBlock(Base):
    __tablename__ = "schedule_blocks"

    __table_args__ = (
        Index("ix_schedule_blocks_template_weekday", "schedule_template_id", "weekday"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    schedule_template_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("schedule_templates.id", ondelete="CASCADE"),
        nullable=False,
    )
    # ISO weekday, 1=Monday .. 7=Sunday
    weekday: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    start_time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    end_time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    block_type: Mapped[str] = mapped_column(
        Enum(*BLOCK_TYPES, name="schedule_block_type_enum"), nullable=False, default="CLASS"
    )
    requires_presence: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    label: Mapped[str | None] = mapped_column(String(120), nullable=True)

    template: Mapped["ScheduleTemplate"] = relationship("ScheduleTemplate", back_populates="blocks")

    def __repr__(self) -> str:
        return (
            f"<ScheduleBlock id={self.id} weekday={self.weekday} "
            f"{self.start_time}-{self.end_time} presence={self.requires_presence}>"
        )


class EmployeeScheduleAssignment(Base):
    __tablename__ = "employee_schedule_assignments"

    __table_args__ = (
        Index("ix_assignment_employee_starts", "employee_id", "starts_on"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )
    schedule_template_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("schedule_templates.id", ondelete="RESTRICT"), nullable=False
    )
    starts_on: Mapped[dt.date] = mapped_column(Date, nullable=False)
    ends_on: Mapped[dt.date | None] = mapped_column(Date, nullable=True)

    employee: Mapped["Employee"] = relationship("Employee", back_populates="assignments")
    template: Mapped["ScheduleTemplate"] = relationship("ScheduleTemplate", lazy="raise")

    def __repr__(self) -> str:
        return (
            f"<EmployeeScheduleAssignment id={self.id} employee_id={self.employee_id} "
            f"starts_on={self.starts_on} ends_on={self.ends_on}>"
        )


class ScheduleException(Base):
    __tablename__ = "schedule_exceptions"

    __table_args__ = (
        Index("ix_schedule_exceptions_employee_date", "employee_id", "date"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    type: Mapped[str] = mapped_column(
        Enum(*EXCEPTION_TYPES, name="schedule_exception_type_enum"), nullable=False
    )
    # Both NULL means the exception covers the whole day
    start_time: Mapped[dt.time | None] = mapped_column(Time, nullable=True)
    end_time: Mapped[dt.time | None] = mapped_column(Time, nullable=True)
    reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<ScheduleException id={self.id} employee_id={self.employee_id} date={self.date} type={self.type}>"


class AttendanceRule(Base):
    __tablename__ = "attendance_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    late_grace_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    early_leave_grace_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    min_gap_minutes_to_allow_checkout: Mapped[int | None] = mapped_column(Integer, nullable=True)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<AttendanceRule id={self.id} late={self.late_grace_minutes} "
            f"early={self.early_leave_grace_minutes} min_gap={self.min_gap_minutes_to_allow_checkout}>"
        )


class AttendancePunch(Base):
    __tablename__ = "attendance_punches"

    __table_args__ = (
        UniqueConstraint("employee_id", "punched_at", "type", name="uq_attendance_punch"),
        Index("ix_attendance_punch_employee_time", "employee_id", "punched_at"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )
    punched_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    type: Mapped[str] = mapped_column(Enum(*PUNCH_TYPES, name="punch_type_enum"), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<AttendancePunch id={self.id} employee_id={self.employee_id} "
            f"punched_at={self.punched_at} type={self.type}>"
        )


class AttendanceIncident(Base):
    __tablename__ = "attendance_incidents"

    __table_args__ = (
        Index("ix_attendance_incident_employee_date", "employee_id", "date"),
        Index("ix_attendance_incident_date", "date"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    incident: Mapped[str] = mapped_column(
        Enum(*INCIDENT_TYPES, name="incident_type_enum"), nullable=False
    )
    expected_start: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expected_end: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    actual_time: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    details: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<AttendanceIncident id={self.id} employee_id={self.employee_id} "
            f"date={self.date} incident={self.incident}>"
        )
