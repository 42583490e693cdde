"""Graph package - story graph storage and slide batch normalization."""

from storydeck.graph.errors import (
    BatchNormalizationError,
    ChoiceNotFoundError,
    QuestExistsError,
    QuestNotFoundError,
    SlideExistsError,
    SlideNotFoundError,
    StoryGraphError,
    VariableExistsError,
    VariableNotFoundError,
)
from storydeck.graph.graph import StoryGraph
from storydeck.graph.normalizer import (
    PHASE_ALIASES,
    normalize_slides,
    parse_phase,
    positional_phase,
)

__all__ = [
    "PHASE_ALIASES",
    "BatchNormalizationError",
    "ChoiceNotFoundError",
    "QuestExistsError",
    "QuestNotFoundError",
    "SlideExistsError",
    "SlideNotFoundError",
    "StoryGraph",
    "StoryGraphError",
    "VariableExistsError",
    "VariableNotFoundError",
    "normalize_slides",
    "parse_phase",
    "positional_phase",
]
