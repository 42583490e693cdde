"""Traversal engine: play sessions, quest tracking and the navigation guard."""

from storydeck.engine.errors import (
    InvalidChoiceError,
    NavigationBlockedError,
    SessionError,
    SessionFinishedError,
)
from storydeck.engine.guard import (
    NavigationDecision,
    can_exit,
    can_navigate_back,
    ensure_can_exit,
    guard_state,
    is_terminal,
    request_back,
    session_state,
)
from storydeck.engine.quests import (
    all_quests_completed,
    evaluate_quests,
    outstanding_quests,
    quest_satisfied,
)
from storydeck.engine.session import apply_choice, current_slide, init_session, replay

__all__ = [
    "InvalidChoiceError",
    "NavigationBlockedError",
    "NavigationDecision",
    "SessionError",
    "SessionFinishedError",
    "all_quests_completed",
    "apply_choice",
    "can_exit",
    "can_navigate_back",
    "current_slide",
    "ensure_can_exit",
    "evaluate_quests",
    "guard_state",
    "init_session",
    "is_terminal",
    "outstanding_quests",
    "quest_satisfied",
    "replay",
    "request_back",
    "session_state",
]
