"""Story graph error types.

Raised when an editor operation violates the graph's bookkeeping (unknown
slide, duplicate id, ...). Each error can render itself as feedback text for
the editor, including close-match suggestions for mistyped ids.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from difflib import get_close_matches


class StoryGraphError(Exception):
    """Base class for story graph integrity violations."""

    def to_feedback(self) -> str:
        """Format the error as a short actionable message."""
        return str(self)


def _suggest(wanted: str, available: list[str]) -> list[str]:
    return get_close_matches(wanted, available, n=3, cutoff=0.6)


@dataclass
class SlideNotFoundError(StoryGraphError):
    """Raised when referencing a slide that does not exist.

    Attributes:
        slide_id: The id that was referenced.
        available: Slide ids that do exist.
        context: Operation during which the lookup failed.
    """

    slide_id: str
    available: list[str] = field(default_factory=list)
    context: str = ""

    def __post_init__(self) -> None:
        msg = f"Slide '{self.slide_id}' not found"
        if self.context:
            msg += f" ({self.context})"
        super().__init__(msg)

    def to_feedback(self) -> str:
        lines = [str(self)]
        suggestions = _suggest(self.slide_id, self.available)
        if suggestions:
            lines.append("Did you mean: " + ", ".join(f"'{s}'" for s in suggestions) + "?")
        if self.available:
            shown = sorted(self.available)[:20]
            more = len(self.available) - len(shown)
            lines.append("Known slides: " + ", ".join(shown) + (f" (+{more} more)" if more else ""))
        return "\n".join(lines)


@dataclass
class SlideExistsError(StoryGraphError):
    """Raised when adding a slide whose id is already taken."""

    slide_id: str

    def __post_init__(self) -> None:
        super().__init__(f"Slide '{self.slide_id}' already exists")

    def to_feedback(self) -> str:
        return f"{self}. Use update_slide() to modify it, or pick a different id."


@dataclass
class ChoiceNotFoundError(StoryGraphError):
    """Raised when a choice id is not present on the given slide."""

    slide_id: str
    choice_id: str
    available: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        super().__init__(f"Choice '{self.choice_id}' not found on slide '{self.slide_id}'")


@dataclass
class VariableExistsError(StoryGraphError):
    """Raised when declaring a variable name twice."""

    name: str

    def __post_init__(self) -> None:
        super().__init__(f"Variable '{self.name}' already exists")


@dataclass
class VariableNotFoundError(StoryGraphError):
    """Raised when referencing an undeclared variable."""

    name: str
    available: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        super().__init__(f"Variable '{self.name}' not found")

    def to_feedback(self) -> str:
        suggestions = _suggest(self.name, self.available)
        if suggestions:
            return f"{self}. Did you mean: {', '.join(suggestions)}?"
        return str(self)


@dataclass
class QuestNotFoundError(StoryGraphError):
    """Raised when referencing an unknown quest id."""

    quest_id: str
    available: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        super().__init__(f"Quest '{self.quest_id}' not found")


@dataclass
class QuestExistsError(StoryGraphError):
    """Raised when adding a quest whose id is already taken."""

    quest_id: str

    def __post_init__(self) -> None:
        super().__init__(f"Quest '{self.quest_id}' already exists")


@dataclass
class BatchNormalizationError(StoryGraphError):
    """Raised when a slide batch cannot be normalized into valid slides.

    Nothing from the batch is committed when this is raised.
    """

    reason: str
    index: int | None = None

    def __post_init__(self) -> None:
        where = f" (record {self.index})" if self.index is not None else ""
        super().__init__(f"Cannot normalize slide batch{where}: {self.reason}")
