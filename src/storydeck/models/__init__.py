"""Pydantic models for stories, play sessions and results.

The story models are also the import/export record format: they dump with
camelCase keys via ``to_record()`` and accept either spelling on input.
"""

from storydeck.models.results import ResultSubmission
from storydeck.models.session import (
    GuardState,
    HistoryEntry,
    PlaySession,
    QuestDelta,
    QuestStatus,
    SessionState,
    Transition,
    utcnow,
)
from storydeck.models.story import (
    PHASE_ORDER,
    CharacterImage,
    Choice,
    Phase,
    Quest,
    RecordModel,
    SceneReachedQuest,
    ScoreThresholdQuest,
    Slide,
    StoryDefinition,
    Variable,
    new_quest_id,
)

__all__ = [
    "PHASE_ORDER",
    "CharacterImage",
    "Choice",
    "GuardState",
    "HistoryEntry",
    "Phase",
    "PlaySession",
    "Quest",
    "QuestDelta",
    "QuestStatus",
    "RecordModel",
    "ResultSubmission",
    "SceneReachedQuest",
    "ScoreThresholdQuest",
    "SessionState",
    "Slide",
    "StoryDefinition",
    "Transition",
    "Variable",
    "new_quest_id",
    "utcnow",
]
