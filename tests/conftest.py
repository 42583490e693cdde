"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from storydeck.models import StoryDefinition
from storydeck.observability import clear_log_context
from tests.fixtures.stories import make_branching_story, make_single_slide_story

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture(autouse=True)
def isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's environment out of config resolution."""
    monkeypatch.delenv("STORYDECK_BASE_URL", raising=False)
    monkeypatch.delenv("STORYDECK_PROJECTS_DIR", raising=False)


@pytest.fixture(autouse=True)
def clear_bound_log_context() -> Iterator[None]:
    """Drop project and session tags bound by earlier commands."""
    yield
    clear_log_context()


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def single_slide_story() -> StoryDefinition:
    return make_single_slide_story()


@pytest.fixture
def branching_story() -> StoryDefinition:
    return make_branching_story()
