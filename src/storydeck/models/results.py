"""Result submission model handed to the ranking dashboard."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from storydeck.models.story import RecordModel


class ResultSubmission(RecordModel):
    """Outcome of one finished play session.

    Elapsed times are seconds measured from the session start.
    """

    nickname: str = Field(min_length=1)
    total_elapsed_time: float = Field(ge=0)
    per_quest_elapsed_time: dict[str, float] = Field(default_factory=dict)
    final_variables: dict[str, int] = Field(default_factory=dict)
    submitted_at: datetime
    session_id: str | None = None
