"""Play session error types.

These indicate a caller asking for a transition the session cannot take.
The session passed in is never modified when one of them is raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field


class SessionError(Exception):
    """Base class for rejected session transitions."""


@dataclass
class InvalidChoiceError(SessionError):
    """Raised when a choice does not belong to the current slide.

    Attributes:
        choice_id: Id of the rejected choice.
        slide_id: Slide the session is on (None when off the graph).
        available: Choice ids offered by the current slide.
    """

    choice_id: str
    slide_id: str | None
    available: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        super().__init__(
            f"Choice '{self.choice_id}' is not offered by slide '{self.slide_id}'"
        )


@dataclass
class SessionFinishedError(SessionError):
    """Raised when applying a choice after traversal has ended."""

    slide_id: str | None

    def __post_init__(self) -> None:
        where = f"slide '{self.slide_id}'" if self.slide_id else "the end of the story"
        super().__init__(f"Session is at {where}; no choices remain")


@dataclass
class NavigationBlockedError(SessionError):
    """Raised when leaving a session while enabled quests are incomplete."""

    outstanding: list[str] = field(default_factory=list)
    reason: str = ""

    def __post_init__(self) -> None:
        msg = self.reason or "Navigation blocked"
        if self.outstanding:
            msg += f": {len(self.outstanding)} quest(s) outstanding"
        super().__init__(msg)
