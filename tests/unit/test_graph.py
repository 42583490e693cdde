"""Tests for the StoryGraph class and its persistence."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest
from pydantic import ValidationError

if TYPE_CHECKING:
    from pathlib import Path

from storydeck.graph import StoryGraph
from storydeck.graph.errors import (
    BatchNormalizationError,
    ChoiceNotFoundError,
    QuestExistsError,
    QuestNotFoundError,
    SlideExistsError,
    SlideNotFoundError,
    VariableExistsError,
    VariableNotFoundError,
)
from storydeck.models import Choice, SceneReachedQuest, ScoreThresholdQuest, Slide, Variable
from tests.fixtures.stories import make_branching_story


@pytest.fixture
def graph() -> StoryGraph:
    return StoryGraph(make_branching_story())


class TestGraphBasics:
    """Test construction and read access."""

    def test_empty_graph(self) -> None:
        """Empty graph has a title and no records."""
        graph = StoryGraph.empty("Untitled")
        data = graph.to_dict()

        assert data["gameTitle"] == "Untitled"
        assert data["slides"] == []
        assert data["variables"] == []
        assert data["quests"] == []

    def test_repr(self, graph: StoryGraph) -> None:
        """Graph repr shows record counts."""
        assert "slides=3" in repr(graph)
        assert "variables=2" in repr(graph)
        assert "quests=2" in repr(graph)

    def test_from_dict_round_trip(self, graph: StoryGraph) -> None:
        """to_dict output loads back into an equal graph."""
        again = StoryGraph.from_dict(graph.to_dict())
        assert again.to_dict() == graph.to_dict()

    def test_read_access_returns_tuples(self, graph: StoryGraph) -> None:
        """Read accessors return immutable tuples."""
        assert isinstance(graph.slides, tuple)
        assert graph.slide_ids() == ["s1", "s2", "s3"]
        assert graph.has_slide("s2")
        assert not graph.has_slide("s9")


class TestPersistence:
    """Test saving and loading story files."""

    def test_save_and_load(self, graph: StoryGraph, tmp_path: Path) -> None:
        """A saved story loads back unchanged."""
        path = tmp_path / "story.json"
        graph.save(path)

        loaded = StoryGraph.load(path)
        assert loaded.to_dict() == graph.to_dict()

    def test_saved_file_uses_record_keys(self, graph: StoryGraph, tmp_path: Path) -> None:
        """Story files use camelCase record keys."""
        path = tmp_path / "story.json"
        graph.save(path)

        data = json.loads(path.read_text())
        assert data["gameTitle"] == "The Bridge"
        assert data["slides"][0]["choices"][0]["nextSlideId"] == "s2"

    def test_save_leaves_no_temp_file(self, graph: StoryGraph, tmp_path: Path) -> None:
        """Atomic save cleans up its temporary file."""
        graph.save(tmp_path / "nested" / "story.json")
        assert sorted(p.name for p in (tmp_path / "nested").iterdir()) == ["story.json"]

    def test_load_missing_file(self, tmp_path: Path) -> None:
        """Loading a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            StoryGraph.load(tmp_path / "missing.json")

    def test_load_invalid_file(self, tmp_path: Path) -> None:
        """Loading malformed JSON raises an error."""
        path = tmp_path / "story.json"
        path.write_text('{"slides": [{"id": "a"}, {"id": "a"}]}')
        with pytest.raises(ValidationError):
            StoryGraph.load(path)


class TestSlideOperations:
    """Test slide create, update and delete."""

    def test_add_slide_appends(self, graph: StoryGraph) -> None:
        """New slides go to the end by default."""
        graph.add_slide(Slide(id="s4"))
        assert graph.slide_ids()[-1] == "s4"

    def test_add_slide_at_index(self, graph: StoryGraph) -> None:
        """Slides can be inserted at a position."""
        graph.add_slide(Slide(id="s0"), index=0)
        assert graph.story.first_slide_id == "s0"

    def test_add_existing_slide_fails(self, graph: StoryGraph) -> None:
        """Adding a duplicate slide id is rejected."""
        with pytest.raises(SlideExistsError, match="s1"):
            graph.add_slide(Slide(id="s1"))

    def test_update_slide(self, graph: StoryGraph) -> None:
        """Updating a slide replaces its fields."""
        updated = graph.update_slide("s2", text="Rewritten")
        assert updated.text == "Rewritten"
        assert graph.get_slide("s2").text == "Rewritten"
        assert graph.get_slide("s2").choices[0].id == "go"

    def test_update_missing_slide(self, graph: StoryGraph) -> None:
        """Updating an unknown slide raises SlideNotFoundError."""
        with pytest.raises(SlideNotFoundError):
            graph.update_slide("s9", text="x")

    def test_update_cannot_change_id(self, graph: StoryGraph) -> None:
        """Updates cannot rename a slide."""
        with pytest.raises(ValueError, match="cannot be changed"):
            graph.update_slide("s2", id="s22")

    def test_remove_slide_reports_dangling_choices(self, graph: StoryGraph) -> None:
        """Removing a slide reports choices that pointed at it."""
        dangling = graph.remove_slide("s3")

        assert sorted(dangling) == [("s1", "flee"), ("s2", "go")]
        # Not repaired: the wiring still names the removed slide
        assert graph.get_slide("s2").choices[0].next_slide_id == "s3"

    def test_remove_missing_slide(self, graph: StoryGraph) -> None:
        """Removing an unknown slide raises SlideNotFoundError."""
        with pytest.raises(SlideNotFoundError):
            graph.remove_slide("s9")

    def test_replace_slides(self, graph: StoryGraph) -> None:
        """All slides can be swapped in one call."""
        graph.replace_slides([Slide(id="a"), Slide(id="b")])
        assert graph.slide_ids() == ["a", "b"]

    def test_replace_slides_is_all_or_nothing(self, graph: StoryGraph) -> None:
        """A failed replace leaves the story untouched."""
        with pytest.raises(BatchNormalizationError):
            graph.replace_slides([Slide(id="a"), Slide(id="a")])
        assert graph.slide_ids() == ["s1", "s2", "s3"]


class TestChoiceOperations:
    """Test choice add and remove."""

    def test_add_choice(self, graph: StoryGraph) -> None:
        """Choices are appended to a slide."""
        graph.add_choice("s2", Choice(id="rest", next_slide_id="s1"))
        assert [c.id for c in graph.get_slide("s2").choices] == ["go", "rest"]

    def test_add_duplicate_choice(self, graph: StoryGraph) -> None:
        """Duplicate choice ids are rejected."""
        with pytest.raises(ValidationError):
            graph.add_choice("s2", Choice(id="go"))

    def test_remove_choice(self, graph: StoryGraph) -> None:
        """Choices can be removed by id."""
        graph.remove_choice("s1", "flee")
        assert [c.id for c in graph.get_slide("s1").choices] == ["fight"]

    def test_remove_missing_choice(self, graph: StoryGraph) -> None:
        """Removing an unknown choice raises an error."""
        with pytest.raises(ChoiceNotFoundError) as exc_info:
            graph.remove_choice("s1", "dance")
        assert exc_info.value.available == ["fight", "flee"]


class TestVariableOperations:
    """Test variable add, update and remove."""

    def test_add_variable(self, graph: StoryGraph) -> None:
        """Variables are appended with their initial value."""
        graph.add_variable(Variable(name="luck", initial=2))
        assert graph.story.variable_names == ["courage", "gold", "luck"]

    def test_add_existing_variable(self, graph: StoryGraph) -> None:
        """Duplicate variable names are rejected."""
        with pytest.raises(VariableExistsError):
            graph.add_variable(Variable(name="gold"))

    def test_update_variable(self, graph: StoryGraph) -> None:
        """A variable's initial value can change."""
        graph.update_variable("gold", initial=9)
        assert graph.variables[1].initial == 9

    def test_update_missing_variable_suggests(self, graph: StoryGraph) -> None:
        """Unknown variables suggest close names."""
        with pytest.raises(VariableNotFoundError) as exc_info:
            graph.update_variable("courag", initial=1)
        assert "courage" in exc_info.value.to_feedback()

    def test_remove_variable_reports_orphans(self, graph: StoryGraph) -> None:
        """Removing a variable reports what still refers to it."""
        orphans = graph.remove_variable("courage")

        assert sorted(orphans) == [("s1", "fight"), ("s1", "flee"), ("s2", "go")]
        assert graph.story.variable_names == ["gold"]


class TestQuestOperations:
    """Test quest add, lookup and remove."""

    def test_add_quest_from_record_gets_id(self, graph: StoryGraph) -> None:
        """Quest records without an id get a generated one."""
        quest_id = graph.add_quest({"type": "sceneReached", "targetSlideId": "s2"})
        assert quest_id.startswith("quest_")
        assert isinstance(graph.get_quest(quest_id), SceneReachedQuest)

    def test_add_quest_model(self, graph: StoryGraph) -> None:
        """Quest models are added as given."""
        quest = ScoreThresholdQuest(id="q_gold", target_variable="gold", target_score=10)
        assert graph.add_quest(quest) == "q_gold"

    def test_add_duplicate_quest(self, graph: StoryGraph) -> None:
        """Duplicate quest ids are rejected."""
        with pytest.raises(QuestExistsError):
            graph.add_quest(SceneReachedQuest(id="q_end", target_slide_id="s1"))

    def test_remove_quest_keeps_other_ids(self, graph: StoryGraph) -> None:
        """Removing a quest leaves other ids alone."""
        graph.remove_quest("q_brave")
        assert [q.id for q in graph.quests] == ["q_end"]
        assert graph.quest_index("q_end") == 0

    def test_get_missing_quest(self, graph: StoryGraph) -> None:
        """Looking up an unknown quest raises QuestNotFoundError."""
        with pytest.raises(QuestNotFoundError):
            graph.get_quest("q_nope")


class TestValidateInvariants:
    """Test the whole-story consistency check."""

    def test_consistent_story(self, graph: StoryGraph) -> None:
        """A well-formed story reports no problems."""
        assert graph.validate_invariants() == []

    def test_reports_dangling_wiring(self, graph: StoryGraph) -> None:
        """Choices pointing at missing slides are reported."""
        graph.remove_slide("s2")
        violations = graph.validate_invariants()
        assert any("next slide 's2' does not exist" in v for v in violations)

    def test_reports_orphaned_variables_and_quest_targets(self, graph: StoryGraph) -> None:
        """Missing variables and quest targets are reported."""
        graph.remove_variable("courage")
        violations = graph.validate_invariants()
        assert any("variable 'courage' is not declared" in v for v in violations)
        assert any("Quest 'q_brave'" in v for v in violations)


class TestErrorFeedback:
    """Test error messages for authors."""

    def test_slide_not_found_suggests_close_ids(self) -> None:
        """Unknown slide ids suggest close matches."""
        error = SlideNotFoundError("slide_1", available=["slide_10", "slide_2", "intro"])
        feedback = error.to_feedback()
        assert "Did you mean" in feedback
        assert "slide_10" in feedback
