import enum
from datetime import datetime
from typing import Union

from pydantic import BaseModel, model_validator


class IncidentKind(str, enum.Enum):
    ABSENT = "ABSENT"
    UNSCHEDULED_WORK = "UNSCHEDULED_WORK"
    DUPLICATE_PUNCHES = "DUPLICATE_PUNCHES"
    OUT_WITHOUT_IN = "OUT_WITHOUT_IN"
    IN_WITHOUT_OUT = "IN_WITHOUT_OUT"
    MISSING_OUT_BEFORE_NEXT_IN = "MISSING_OUT_BEFORE_NEXT_IN"
    LATE_ARRIVAL = "LATE_ARRIVAL"
    MISSING_IN = "MISSING_IN"
    EARLY_LEAVE = "EARLY_LEAVE"
    MISSING_OUT = "MISSING_OUT"
    ABSENT_DURING_REQUIRED_BLOCK = "ABSENT_DURING_REQUIRED_BLOCK"


class NoteDetails(BaseModel):
    note: str


class UnscheduledWorkDetails(BaseModel):
    note: str
    punch_count: int
    duplicate_punch_ids: list[str] = []
    exceptions: list[dict] | None = None


class DuplicatePunchesDetails(BaseModel):
    duplicate_punch_ids: list[str]
    duplicate_window_minutes: int


class PunchTimesDetails(BaseModel):
    times: list[str]


class MissingOutBeforeNextInDetails(BaseModel):
    times: list[str]
    missing_pair_gap_minutes: int


class LateArrivalDetails(BaseModel):
    late_minutes: int
    late_grace_minutes: int


class EarlyLeaveDetails(BaseModel):
    early_minutes: int
    early_leave_grace_minutes: int


class UncoveredBlockDetails(BaseModel):
    note: str
    block_start: str
    block_end: str


IncidentDetails = Union[
    NoteDetails,
    UnscheduledWorkDetails,
    DuplicatePunchesDetails,
    PunchTimesDetails,
    MissingOutBeforeNextInDetails,
    LateArrivalDetails,
    EarlyLeaveDetails,
    UncoveredBlockDetails,
]

DETAILS_BY_KIND: dict[IncidentKind, type[BaseModel]] = {
    IncidentKind.ABSENT: NoteDetails,
    IncidentKind.UNSCHEDULED_WORK: UnscheduledWorkDetails,
    IncidentKind.DUPLICATE_PUNCHES: DuplicatePunchesDetails,
    IncidentKind.OUT_WITHOUT_IN: PunchTimesDetails,
    IncidentKind.IN_WITHOUT_OUT: PunchTimesDetails,
    IncidentKind.MISSING_OUT_BEFORE_NEXT_IN: MissingOutBeforeNextInDetails,
    IncidentKind.LATE_ARRIVAL: LateArrivalDetails,
    IncidentKind.MISSING_IN: NoteDetails,
    IncidentKind.EARLY_LEAVE: EarlyLeaveDetails,
    IncidentKind.MISSING_OUT: NoteDetails,
    IncidentKind.ABSENT_DURING_REQUIRED_BLOCK: UncoveredBlockDetails,
}


class SessionSnapshot(BaseModel):
    in_at: str | None
    out_at: str | None
    is_complete: bool


class BlockSnapshot(BaseModel):
    start: str
    end: str


class EvaluationMeta(BaseModel):
    employee_id: str
    date: str
    punches: int
    usable_punches: int
    sessions: list[SessionSnapshot]
    expected_blocks: list[BlockSnapshot]


class Incident(BaseModel):
    kind: IncidentKind
    expected_start: datetime | None = None
    expected_end: datetime | None = None
    actual_time: datetime | None = None
    details: IncidentDetails
    meta: EvaluationMeta | None = None

    @model_validator(mode="before")
    @classmethod
    def details_for_kind(cls, data):
        # plain dicts (JSON, JSONB rows) are decoded with the model for their kind
        if isinstance(data, dict) and isinstance(data.get("details"), dict):
            kind = IncidentKind(data.get("kind"))
            data = {**data, "details": DETAILS_BY_KIND[kind].model_validate(data["details"])}
        return data

    @model_validator(mode="after")
    def details_match_kind(self) -> "Incident":
        expected = DETAILS_BY_KIND[self.kind]
        if type(self.details) is not expected:
            raise ValueError(
                f"{self.kind.value} requires {expected.__name__}, got {type(self.details).__name__}"
            )
        return self

    def details_payload(self) -> dict:
        """Details as stored in the JSONB column, with the audit snapshot under ``meta``."""
        payload = self.details.model_dump(mode="json", exclude_none=True)
        if self.meta is not None:
            payload["meta"] = self.meta.model_dump(mode="json")
        return payload
