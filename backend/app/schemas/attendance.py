from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.incidents import Incident
from app.services.local_time import parse_iso_date


class EvaluateRequest(BaseModel):
    employee_id: int
    date: date
    duplicate_window_minutes: int | None = None
    missing_pair_gap_minutes: int | None = None

    @field_validator("date", mode="before")
    @classmethod
    def strict_iso_date(cls, v):
        return parse_iso_date(v, "date")

    @field_validator("employee_id")
    @classmethod
    def employee_id_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("duplicate_window_minutes", "missing_pair_gap_minutes")
    @classmethod
    def window_not_negative(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            raise ValueError("must not be negative")
        return v


class EvaluateRangeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date_from: date = Field(alias="from")
    date_to: date = Field(alias="to")
    employee_id: int | None = None
    max_days: int | None = None
    duplicate_window_minutes: int | None = None
    missing_pair_gap_minutes: int | None = None

    @field_validator("date_from", "date_to", mode="before")
    @classmethod
    def strict_iso_date(cls, v, info):
        return parse_iso_date(v, "from" if info.field_name == "date_from" else "to")

    @field_validator("employee_id")
    @classmethod
    def employee_id_positive(cls, v: int | None) -> int | None:
        if v is not None and v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("duplicate_window_minutes", "missing_pair_gap_minutes")
    @classmethod
    def window_not_negative(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            raise ValueError("must not be negative")
        return v


class EvaluateResponse(BaseModel):
    ok: bool = True
    date: date
    employee_id: str
    saved: int
    incidents: list[Incident]


class RangePreviewItem(BaseModel):
    employee_id: str
    date: date
    saved: int
    incidents: int
    error: str | None = None


class EvaluateRangeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    date_from: date = Field(alias="from")
    date_to: date = Field(alias="to")
    days: int
    employees: int
    evaluations: int
    total_saved: int
    failed: int
    preview: list[RangePreviewItem]
    note: str


class StoredIncidentOut(BaseModel):
    id: int
    employee_id: str
    date: date
    incident: Incident
    created_at: datetime


class IncidentListResponse(BaseModel):
    ok: bool = True
    date: date
    employee_id: str | None
    count: int
    items: list[StoredIncidentOut]


class IncidentSummaryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    date_from: date = Field(alias="from")
    date_to: date = Field(alias="to")
    employee_id: str | None
    counts: dict[str, int]
    incident_days: int


class TopEmployeeOut(BaseModel):
    employee_id: str
    name: str | None
    total: int
    by_incident: dict[str, int]


class TopSummaryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    date_from: date = Field(alias="from")
    date_to: date = Field(alias="to")
    limit: int
    items: list[TopEmployeeOut]
