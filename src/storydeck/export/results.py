"""Result submission and ranking.

A finished session becomes a ResultSubmission handed to the ranking
dashboard. ResultStore is the local stand-in for that collaborator: results
are appended to a JSONL file, one submission per line.
"""

from __future__ import annotations

from pathlib import Path  # noqa: TC003 - used at runtime
from typing import TYPE_CHECKING

from pydantic import ValidationError

from storydeck.engine.guard import ensure_can_exit
from storydeck.models.results import ResultSubmission
from storydeck.models.session import utcnow
from storydeck.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from storydeck.models.session import PlaySession
    from storydeck.models.story import StoryDefinition

log = get_logger(__name__)

DEFAULT_NICKNAME = "anonymous"


def build_result(
    story: StoryDefinition,
    session: PlaySession,
    nickname: str | None,
    *,
    now: datetime | None = None,
    default_nickname: str = DEFAULT_NICKNAME,
) -> ResultSubmission:
    """Summarize a finished session for submission.

    Elapsed times are seconds since ``session.started_at``; per-quest times
    cover completed quests only.

    Raises:
        NavigationBlockedError: If the session may not exit yet.
    """
    ensure_can_exit(story, session)
    now = now or utcnow()
    per_quest = {
        quest_id: (status.completed_at - session.started_at).total_seconds()
        for quest_id, status in session.quest_status.items()
        if status.completed and status.completed_at is not None
    }
    return ResultSubmission(
        nickname=(nickname or "").strip() or default_nickname,
        total_elapsed_time=max((now - session.started_at).total_seconds(), 0.0),
        per_quest_elapsed_time=per_quest,
        final_variables=dict(session.player_variables),
        submitted_at=now,
        session_id=session.session_id,
    )


def rank_results(results: Iterable[ResultSubmission]) -> list[ResultSubmission]:
    """Fastest first. Ties keep submission order."""
    return sorted(results, key=lambda result: result.total_elapsed_time)


def format_elapsed(seconds: float) -> str:
    """Render seconds as ``1m 05s`` or ``42s``."""
    minutes, secs = divmod(int(round(seconds)), 60)
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs}s"


class ResultStore:
    """Append-only JSONL file of result submissions."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def append(self, result: ResultSubmission) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(result.model_dump_json(by_alias=True) + "\n")
        log.info("result_recorded", nickname=result.nickname, total=result.total_elapsed_time)

    def load(self) -> list[ResultSubmission]:
        """Read every stored result in submission order.

        Lines that do not parse are skipped with a warning.
        """
        if not self.path.exists():
            return []
        results: list[ResultSubmission] = []
        with self.path.open("r", encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    results.append(ResultSubmission.model_validate_json(line))
                except ValidationError as e:
                    log.warning(
                        "result_line_invalid", path=str(self.path), line=line_no, error=str(e)
                    )
        return results

    def ranked(self) -> list[ResultSubmission]:
        return rank_results(self.load())
