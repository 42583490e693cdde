"""Play session models.

A PlaySession is one player's live traversal state. Engine operations never
mutate a session in place: they return a new one inside a Transition.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import Field

from storydeck.models.story import RecordModel


def utcnow() -> datetime:
    """Current wall-clock time (timezone-aware UTC)."""
    return datetime.now(UTC)


class SessionState(StrEnum):
    """Coarse state of a play session."""

    UNINITIALIZED = "uninitialized"
    IN_PROGRESS = "in_progress"
    # Story reached a terminal slide but enabled quests are still open.
    STUCK = "stuck"
    FINISHED = "finished"


class QuestStatus(RecordModel):
    """Completion latch for one quest."""

    completed: bool = False
    completed_at: datetime | None = None


class HistoryEntry(RecordModel):
    """One applied choice."""

    slide_id: str
    choice_id: str
    timestamp: datetime


class PlaySession(RecordModel):
    """Live state of one player's traversal."""

    session_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    current_slide_id: str | None = None
    player_variables: dict[str, int] = Field(default_factory=dict)
    quest_status: dict[str, QuestStatus] = Field(default_factory=dict)
    history: list[HistoryEntry] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utcnow)


class QuestDelta(RecordModel):
    """A quest that latched to completed during a transition."""

    quest_id: str
    completed_at: datetime


class GuardState(RecordModel):
    """Navigation guard verdict for a session."""

    state: SessionState
    can_exit: bool
    back_allowed: bool
    outstanding: list[str] = Field(default_factory=list)


class Transition(RecordModel):
    """Result of applying one choice."""

    session: PlaySession
    guard: GuardState
    quest_deltas: list[QuestDelta] = Field(default_factory=list)
