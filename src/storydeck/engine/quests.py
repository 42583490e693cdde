"""Quest tracker.

Runs synchronously as the last step of every session transition, so quest
status is never stale relative to variables and position. Completion is a
latch: a completed quest is never re-evaluated or reset within a session.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from storydeck.models.session import PlaySession, QuestDelta, QuestStatus
from storydeck.models.story import SceneReachedQuest, ScoreThresholdQuest, StoryDefinition
from storydeck.observability.logging import get_logger

if TYPE_CHECKING:
    from datetime import datetime

log = get_logger(__name__)


def quest_satisfied(
    quest: ScoreThresholdQuest | SceneReachedQuest,
    story: StoryDefinition,
    session: PlaySession,
) -> bool:
    """Evaluate a quest's completion predicate against session state.

    An unknown target variable reads as 0, so a threshold of 0 or less is met
    immediately.
    """
    if isinstance(quest, ScoreThresholdQuest):
        return session.player_variables.get(quest.target_variable, 0) >= quest.target_score

    if session.current_slide_id is None:
        return False
    if session.current_slide_id == quest.target_slide_id:
        return True
    slide = story.get_slide(session.current_slide_id)
    return slide is not None and slide.quest_success


def evaluate_quests(
    story: StoryDefinition,
    session: PlaySession,
    *,
    now: datetime,
) -> list[QuestDelta]:
    """Latch every enabled quest whose predicate now holds.

    Mutates ``session.quest_status`` in place; engine callers pass the copy
    they are building. Quests added after the session started get a status
    entry here.

    Returns:
        The quests that completed during this evaluation.
    """
    deltas: list[QuestDelta] = []
    for quest in story.quests:
        status = session.quest_status.setdefault(quest.id, QuestStatus())
        if status.completed or not quest.enabled:
            continue
        if not quest_satisfied(quest, story, session):
            continue
        status.completed = True
        status.completed_at = now
        deltas.append(QuestDelta(quest_id=quest.id, completed_at=now))
        log.info("quest_completed", quest=quest.id, type=quest.type, session=session.session_id)
        if isinstance(quest, ScoreThresholdQuest) and quest.target_score <= 0:
            log.debug("quest_trivially_met", quest=quest.id, target_score=quest.target_score)
    return deltas


def outstanding_quests(
    story: StoryDefinition,
    session: PlaySession,
) -> list[ScoreThresholdQuest | SceneReachedQuest]:
    """Enabled quests that have not completed yet, in display order."""
    return [
        quest
        for quest in story.quests
        if quest.enabled
        and not session.quest_status.get(quest.id, QuestStatus()).completed
    ]


def all_quests_completed(story: StoryDefinition, session: PlaySession) -> bool:
    """True iff every enabled quest is completed (vacuously true if none)."""
    return not outstanding_quests(story, session)
