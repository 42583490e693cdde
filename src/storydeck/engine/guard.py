"""Navigation guard: may a session end, may the player leave it?

Pure policy over (story, session). Nothing here modifies a session; a
refused navigation leaves the caller holding the unchanged session. A story
that reaches its end with quests still open is "stuck": no forward choices,
no way back. Restarting with init_session() is the only way out.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from storydeck.engine.errors import NavigationBlockedError
from storydeck.engine.quests import all_quests_completed, outstanding_quests
from storydeck.models.session import GuardState, PlaySession, SessionState
from storydeck.models.story import StoryDefinition


@dataclass(frozen=True)
class NavigationDecision:
    """Outcome of a back-navigation request."""

    allowed: bool
    reason: str = ""
    outstanding: list[str] = field(default_factory=list)


def is_terminal(story: StoryDefinition, session: PlaySession) -> bool:
    """True when there is no current slide or it offers no choices.

    A current id that names no slide (dangling wiring) counts as terminal.
    """
    slide = story.get_slide(session.current_slide_id)
    return slide is None or slide.is_terminal


def session_state(story: StoryDefinition, session: PlaySession | None) -> SessionState:
    if session is None:
        return SessionState.UNINITIALIZED
    if not is_terminal(story, session):
        return SessionState.IN_PROGRESS
    if all_quests_completed(story, session):
        return SessionState.FINISHED
    return SessionState.STUCK


def can_exit(story: StoryDefinition, session: PlaySession) -> bool:
    """May the session show its ending? Terminal and all quests completed."""
    return is_terminal(story, session) and all_quests_completed(story, session)


def can_navigate_back(story: StoryDefinition, session: PlaySession) -> bool:
    """Back navigation is refused while any enabled quest is incomplete."""
    return all_quests_completed(story, session)


def request_back(story: StoryDefinition, session: PlaySession) -> NavigationDecision:
    """Decide on a back-navigation attempt without touching the session."""
    outstanding = [quest.id for quest in outstanding_quests(story, session)]
    if outstanding:
        return NavigationDecision(
            allowed=False,
            reason="Complete every quest before leaving the story",
            outstanding=outstanding,
        )
    return NavigationDecision(allowed=True)


def ensure_can_exit(story: StoryDefinition, session: PlaySession) -> None:
    """Raise unless the session may show its ending.

    Raises:
        NavigationBlockedError: If the story is still running or quests are open.
    """
    if can_exit(story, session):
        return
    if not is_terminal(story, session):
        raise NavigationBlockedError(reason="Story has not reached an ending")
    raise NavigationBlockedError(
        outstanding=[quest.id for quest in outstanding_quests(story, session)],
        reason="Story finished but quests are incomplete",
    )


def guard_state(story: StoryDefinition, session: PlaySession) -> GuardState:
    outstanding = [quest.id for quest in outstanding_quests(story, session)]
    return GuardState(
        state=session_state(story, session),
        can_exit=can_exit(story, session),
        back_allowed=not outstanding,
        outstanding=outstanding,
    )
