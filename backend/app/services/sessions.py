"""
Work session reconstruction.

The punch stream is replayed through a two-state machine: either no session
is open (``Idle``) or exactly one is (``SessionOpen``). Every transition also
records the anomalies the classifier later turns into incidents.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Union

from app.services.domain import PunchType
from app.services.local_time import diff_minutes
from app.services.punches import NormalizedPunch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    in_at: datetime
    in_punch_id: int
    out_at: datetime | None = None
    out_punch_id: int | None = None
    is_complete: bool = False

    def to_dict(self) -> dict:
        return {
            "in_at": self.in_at.isoformat(),
            "out_at": self.out_at.isoformat() if self.out_at else None,
            "is_complete": self.is_complete,
        }


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class SessionOpen:
    session: Session


State = Union[Idle, SessionOpen]


@dataclass
class Reconstruction:
    sessions: list[Session] = field(default_factory=list)
    out_without_in: list[datetime] = field(default_factory=list)
    in_without_out: list[datetime] = field(default_factory=list)
    missing_out_before_next_in: list[datetime] = field(default_factory=list)

    @property
    def complete_sessions(self) -> list[Session]:
        return [s for s in self.sessions if s.is_complete and s.out_at is not None]


class SessionReconstructor:
    def __init__(self, min_gap_minutes_to_allow_checkout: int, missing_pair_gap_minutes: int):
        self.min_gap_minutes_to_allow_checkout = min_gap_minutes_to_allow_checkout
        self.missing_pair_gap_minutes = missing_pair_gap_minutes

    def run(self, punches: Iterable[NormalizedPunch]) -> Reconstruction:
        """Replay usable (non-duplicate) punches in chronological order."""
        result = Reconstruction()
        state: State = Idle()

        for punch in punches:
            if punch.type == PunchType.IN:
                state = self._on_in(state, punch, result)
            else:
                state = self._on_out(state, punch, result)

        if isinstance(state, SessionOpen):
            result.in_without_out.append(state.session.in_at)
            result.sessions.append(state.session)
        return result

    def _on_in(self, state: State, punch: NormalizedPunch, result: Reconstruction) -> State:
        if isinstance(state, SessionOpen):
            previous = state.session
            gap = abs(diff_minutes(previous.in_at, punch.punched_at))
            if gap >= self.missing_pair_gap_minutes:
                result.missing_out_before_next_in.append(punch.punched_at)
            result.in_without_out.append(previous.in_at)
            result.sessions.append(previous)
            logger.debug("IN %s re-opened a session left open since %s (gap=%d)", punch.id, previous.in_at, gap)
        return SessionOpen(Session(in_at=punch.punched_at, in_punch_id=punch.id))

    def _on_out(self, state: State, punch: NormalizedPunch, result: Reconstruction) -> State:
        if isinstance(state, Idle):
            result.out_without_in.append(punch.punched_at)
            return state

        session = state.session
        if diff_minutes(session.in_at, punch.punched_at) < self.min_gap_minutes_to_allow_checkout:
            logger.debug("OUT %s ignored: too close to IN %s", punch.id, session.in_punch_id)
            return state

        result.sessions.append(
            Session(
                in_at=session.in_at,
                in_punch_id=session.in_punch_id,
                out_at=punch.punched_at,
                out_punch_id=punch.id,
                is_complete=True,
            )
        )
        return Idle()


def reconstruct_sessions(
    punches: Iterable[NormalizedPunch],
    min_gap_minutes_to_allow_checkout: int,
    missing_pair_gap_minutes: int,
) -> Reconstruction:
    return SessionReconstructor(min_gap_minutes_to_allow_checkout, missing_pair_gap_minutes).run(punches)
