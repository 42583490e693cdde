"""Play session transitions.

Each operation is one atomic transition: it validates first, then builds a
new PlaySession from a deep copy, runs the quest tracker as its last step
and returns the result. The session passed in is never modified, so a
rejected transition leaves the caller's state exactly as it was.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from storydeck.engine.errors import InvalidChoiceError, SessionFinishedError
from storydeck.engine.guard import guard_state
from storydeck.engine.quests import evaluate_quests
from storydeck.models.session import (
    HistoryEntry,
    PlaySession,
    QuestStatus,
    Transition,
    utcnow,
)
from storydeck.models.story import Choice, Slide, StoryDefinition
from storydeck.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

log = get_logger(__name__)


def current_slide(story: StoryDefinition, session: PlaySession) -> Slide | None:
    """The slide the session is on, or None (story over or dangling id)."""
    return story.get_slide(session.current_slide_id)


def init_session(story: StoryDefinition, *, now: datetime | None = None) -> PlaySession:
    """Start (or restart) a play session at the first slide.

    A story without slides yields a session that is terminal immediately.
    """
    now = now or utcnow()
    session = PlaySession(
        current_slide_id=story.first_slide_id,
        player_variables={variable.name: variable.initial for variable in story.variables},
        quest_status={quest.id: QuestStatus() for quest in story.quests},
        history=[],
        started_at=now,
    )
    evaluate_quests(story, session, now=now)
    log.info(
        "session_started",
        session=session.session_id,
        slide=session.current_slide_id,
        quests=len(story.quests),
    )
    return session


def _resolve_choice(slide: Slide, choice: Choice | str) -> Choice | None:
    if isinstance(choice, str):
        return slide.get_choice(choice)
    return choice if choice in slide.choices else None


def apply_choice(
    story: StoryDefinition,
    session: PlaySession,
    choice: Choice | str,
    *,
    now: datetime | None = None,
) -> Transition:
    """Apply one player choice and return the resulting transition.

    Args:
        story: The story being played.
        session: Current session state (left unmodified).
        choice: A Choice from the current slide, or its id.
        now: Timestamp for the history entry and any quest completions.

    Returns:
        Transition holding the new session, guard verdict and the quests that
        completed on this step.

    Raises:
        SessionFinishedError: If the session has no current slide or the
            slide offers no choices.
        InvalidChoiceError: If the choice is not offered by the current slide.
    """
    slide = current_slide(story, session)
    if slide is None or slide.is_terminal:
        raise SessionFinishedError(session.current_slide_id)

    selected = _resolve_choice(slide, choice)
    if selected is None:
        choice_id = choice if isinstance(choice, str) else choice.id
        raise InvalidChoiceError(
            choice_id, slide.id, available=[offered.id for offered in slide.choices]
        )

    now = now or utcnow()
    new_session = session.model_copy(deep=True)

    declared = set(story.variable_names)
    for name, delta in selected.variable_changes.items():
        if name not in declared:
            # Orphaned delta left behind by a removed variable.
            continue
        new_session.player_variables[name] = new_session.player_variables.get(name, 0) + delta

    new_session.history.append(
        HistoryEntry(slide_id=slide.id, choice_id=selected.id, timestamp=now)
    )
    new_session.current_slide_id = selected.next_slide_id

    if selected.next_slide_id is not None and story.get_slide(selected.next_slide_id) is None:
        log.warning(
            "dangling_next_slide",
            slide=slide.id,
            choice=selected.id,
            target=selected.next_slide_id,
        )

    quest_deltas = evaluate_quests(story, new_session, now=now)
    guard = guard_state(story, new_session)
    log.info(
        "choice_applied",
        session=new_session.session_id,
        slide=slide.id,
        choice=selected.id,
        next=new_session.current_slide_id,
        state=guard.state.value,
    )
    return Transition(session=new_session, guard=guard, quest_deltas=quest_deltas)


def replay(
    story: StoryDefinition,
    choice_ids: Iterable[str],
    *,
    now: datetime | None = None,
) -> PlaySession:
    """Start a session and apply a sequence of choice ids to it."""
    session = init_session(story, now=now)
    for choice_id in choice_ids:
        session = apply_choice(story, session, choice_id, now=now).session
    return session
