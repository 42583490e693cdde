"""Story graph: the authoritative slide/choice/variable/quest definitions.

The graph wraps one StoryDefinition and provides the editor operations on
it. It enforces identity rules strictly:
- Creation is explicit (add_* fails if the id exists)
- Updates require the target to exist
- Removals never cascade into repairs: removing a slide leaves choices that
  pointed at it dangling, removing a variable leaves orphaned deltas. Both
  are reported to the caller and by validate_invariants().
"""

from __future__ import annotations

from pathlib import Path  # noqa: TC003 - used at runtime
from typing import TYPE_CHECKING, Any

from pydantic import TypeAdapter

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
from storydeck.models.story import (
    Choice,
    Quest,
    SceneReachedQuest,
    ScoreThresholdQuest,
    Slide,
    StoryDefinition,
    Variable,
)
from storydeck.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

log = get_logger(__name__)

_quest_adapter: TypeAdapter[ScoreThresholdQuest | SceneReachedQuest] = TypeAdapter(Quest)


class StoryGraph:
    """Editable story definition with referential bookkeeping.

    Attributes:
        _story: The wrapped definition. Mutated in place by editor operations.
    """

    def __init__(self, story: StoryDefinition | None = None) -> None:
        self._story = story if story is not None else StoryDefinition()

    # -------------------------------------------------------------------------
    # Construction / persistence
    # -------------------------------------------------------------------------

    @classmethod
    def empty(cls, title: str = "") -> StoryGraph:
        return cls(StoryDefinition(title=title))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StoryGraph:
        """Create a graph from an import record (camelCase or snake_case keys)."""
        return cls(StoryDefinition.model_validate(data))

    def to_dict(self) -> dict[str, Any]:
        """Export the story as a record (camelCase keys, JSON-compatible)."""
        return self._story.to_record()

    @classmethod
    def load(cls, file_path: Path) -> StoryGraph:
        """Load a story from a JSON file.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            pydantic.ValidationError: If the file is not a valid story record.
        """
        story = StoryDefinition.model_validate_json(file_path.read_text(encoding="utf-8"))
        log.debug("story_loaded", path=str(file_path), slides=len(story.slides))
        return cls(story)

    def save(self, file_path: Path) -> None:
        """Persist the story as JSON (atomic write via temp file + rename)."""
        file_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = file_path.with_suffix(file_path.suffix + ".tmp")
        try:
            tmp_path.write_text(
                self._story.model_dump_json(by_alias=True, indent=2),
                encoding="utf-8",
            )
            tmp_path.replace(file_path)
        except Exception:
            if tmp_path.exists():
                tmp_path.unlink()
            raise
        log.debug("story_saved", path=str(file_path), slides=len(self._story.slides))

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def story(self) -> StoryDefinition:
        """The live definition. Treat as read-only; edit through the graph."""
        return self._story

    @property
    def title(self) -> str:
        return self._story.title

    @property
    def slides(self) -> tuple[Slide, ...]:
        return tuple(self._story.slides)

    @property
    def variables(self) -> tuple[Variable, ...]:
        return tuple(self._story.variables)

    @property
    def quests(self) -> tuple[ScoreThresholdQuest | SceneReachedQuest, ...]:
        return tuple(self._story.quests)

    def slide_ids(self) -> list[str]:
        return [slide.id for slide in self._story.slides]

    def has_slide(self, slide_id: str) -> bool:
        return self._story.get_slide(slide_id) is not None

    def get_slide(self, slide_id: str) -> Slide | None:
        return self._story.get_slide(slide_id)

    def _require_slide(self, slide_id: str, context: str) -> Slide:
        slide = self._story.get_slide(slide_id)
        if slide is None:
            raise SlideNotFoundError(slide_id, available=self.slide_ids(), context=context)
        return slide

    def _slide_index(self, slide_id: str) -> int:
        return self.slide_ids().index(slide_id)

    # -------------------------------------------------------------------------
    # Slide operations
    # -------------------------------------------------------------------------

    def add_slide(self, slide: Slide, *, index: int | None = None) -> None:
        """Add a slide, appended unless *index* is given.

        Raises:
            SlideExistsError: If a slide with the same id exists.
        """
        if self.has_slide(slide.id):
            raise SlideExistsError(slide.id)
        if index is None:
            self._story.slides.append(slide)
        else:
            self._story.slides.insert(index, slide)

    def update_slide(self, slide_id: str, **updates: Any) -> Slide:
        """Update fields of an existing slide and return the new slide.

        Updates are validated by rebuilding the slide; the id itself cannot be
        changed this way.

        Raises:
            SlideNotFoundError: If the slide doesn't exist.
            ValueError: If *updates* tries to change the id.
            pydantic.ValidationError: If the updated slide is invalid.
        """
        slide = self._require_slide(slide_id, "update_slide - slide must exist before updating")
        if "id" in updates and updates["id"] != slide_id:
            raise ValueError("Slide ids cannot be changed with update_slide()")
        updated = Slide.model_validate({**slide.model_dump(), **updates})
        self._story.slides[self._slide_index(slide_id)] = updated
        return updated

    def remove_slide(self, slide_id: str) -> list[tuple[str, str]]:
        """Remove a slide.

        Choices elsewhere that pointed at it are left dangling; repairing them
        (or accepting them as early endings) is the caller's decision.

        Returns:
            ``(slide_id, choice_id)`` pairs of the now-dangling choices.

        Raises:
            SlideNotFoundError: If the slide doesn't exist.
        """
        self._require_slide(slide_id, "remove_slide")
        del self._story.slides[self._slide_index(slide_id)]
        dangling = [
            (slide.id, choice.id)
            for slide in self._story.slides
            for choice in slide.choices
            if choice.next_slide_id == slide_id
        ]
        if dangling:
            log.warning("slide_removed_with_references", slide=slide_id, dangling=len(dangling))
        return dangling

    def replace_slides(self, slides: Iterable[Slide]) -> None:
        """Swap in a whole new slide list at once.

        Used to commit a normalized batch: either every slide is committed or,
        on duplicate ids, none is.

        Raises:
            BatchNormalizationError: If the slides repeat an id.
        """
        new_slides = list(slides)
        seen: set[str] = set()
        for index, slide in enumerate(new_slides):
            if slide.id in seen:
                raise BatchNormalizationError(f"duplicate slide id '{slide.id}'", index=index)
            seen.add(slide.id)
        self._story.slides = new_slides
        log.info("slides_replaced", count=len(new_slides))

    def add_choice(self, slide_id: str, choice: Choice) -> None:
        """Append a choice to a slide.

        Raises:
            SlideNotFoundError: If the slide doesn't exist.
            pydantic.ValidationError: If the choice id is already used on the slide.
        """
        slide = self._require_slide(slide_id, "add_choice")
        self.update_slide(slide_id, choices=[*slide.choices, choice])

    def remove_choice(self, slide_id: str, choice_id: str) -> None:
        """Remove a choice from a slide.

        Raises:
            SlideNotFoundError: If the slide doesn't exist.
            ChoiceNotFoundError: If the slide has no such choice.
        """
        slide = self._require_slide(slide_id, "remove_choice")
        if slide.get_choice(choice_id) is None:
            raise ChoiceNotFoundError(
                slide_id, choice_id, available=[choice.id for choice in slide.choices]
            )
        self.update_slide(slide_id, choices=[c for c in slide.choices if c.id != choice_id])

    # -------------------------------------------------------------------------
    # Variable operations
    # -------------------------------------------------------------------------

    def add_variable(self, variable: Variable) -> None:
        """Declare a variable.

        Raises:
            VariableExistsError: If the name is already declared.
        """
        if variable.name in self._story.variable_names:
            raise VariableExistsError(variable.name)
        self._story.variables.append(variable)

    def update_variable(self, name: str, *, initial: int) -> None:
        """Change a variable's initial value.

        Raises:
            VariableNotFoundError: If the name is not declared.
        """
        names = self._story.variable_names
        if name not in names:
            raise VariableNotFoundError(name, available=names)
        self._story.variables[names.index(name)] = Variable(name=name, initial=initial)

    def remove_variable(self, name: str) -> list[tuple[str, str]]:
        """Remove a variable declaration.

        Choices whose ``variable_changes`` mention it keep those entries; at
        play time they are no-op deltas.

        Returns:
            ``(slide_id, choice_id)`` pairs still referencing the variable.

        Raises:
            VariableNotFoundError: If the name is not declared.
        """
        names = self._story.variable_names
        if name not in names:
            raise VariableNotFoundError(name, available=names)
        del self._story.variables[names.index(name)]
        return [
            (slide.id, choice.id)
            for slide in self._story.slides
            for choice in slide.choices
            if name in choice.variable_changes
        ]

    # -------------------------------------------------------------------------
    # Quest operations
    # -------------------------------------------------------------------------

    def add_quest(self, quest: ScoreThresholdQuest | SceneReachedQuest | dict[str, Any]) -> str:
        """Add a quest and return its id.

        A quest given as a record dict without an id gets a freshly generated
        one, so its identity survives later reordering of the quest list.

        Raises:
            QuestExistsError: If the quest id is already present.
        """
        if isinstance(quest, dict):
            quest = _quest_adapter.validate_python(quest)
        if self._story.get_quest(quest.id) is not None:
            raise QuestExistsError(quest.id)
        self._story.quests.append(quest)
        return quest.id

    def get_quest(self, quest_id: str) -> ScoreThresholdQuest | SceneReachedQuest:
        quest = self._story.get_quest(quest_id)
        if quest is None:
            raise QuestNotFoundError(quest_id, available=[q.id for q in self._story.quests])
        return quest

    def remove_quest(self, quest_id: str) -> None:
        """Remove a quest by id. Other quests keep their ids.

        Raises:
            QuestNotFoundError: If the id is unknown.
        """
        quest = self.get_quest(quest_id)
        self._story.quests.remove(quest)

    def quest_index(self, quest_id: str) -> int:
        """Display position of a quest (0-based)."""
        return self._story.quests.index(self.get_quest(quest_id))

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate_invariants(self) -> list[str]:
        """Check referential integrity and return any violations.

        Checked:
        1. Every non-null ``next_slide_id`` resolves to a slide
        2. Every ``variable_changes`` key names a declared variable
        3. Quests target declared variables / existing slides

        Returns:
            List of violation messages (empty if valid).
        """
        violations: list[str] = []
        slide_ids = set(self.slide_ids())
        variable_names = set(self._story.variable_names)

        for slide in self._story.slides:
            for choice in slide.choices:
                if choice.next_slide_id is not None and choice.next_slide_id not in slide_ids:
                    violations.append(
                        f"Choice '{choice.id}' on slide '{slide.id}': "
                        f"next slide '{choice.next_slide_id}' does not exist"
                    )
                for name in choice.variable_changes:
                    if name not in variable_names:
                        violations.append(
                            f"Choice '{choice.id}' on slide '{slide.id}': "
                            f"variable '{name}' is not declared"
                        )

        for quest in self._story.quests:
            if isinstance(quest, ScoreThresholdQuest):
                if quest.target_variable not in variable_names:
                    violations.append(
                        f"Quest '{quest.id}': target variable '{quest.target_variable}' "
                        "is not declared"
                    )
            elif quest.target_slide_id not in slide_ids:
                violations.append(
                    f"Quest '{quest.id}': target slide '{quest.target_slide_id}' does not exist"
                )

        return violations

    def __repr__(self) -> str:
        return (
            f"StoryGraph(slides={len(self._story.slides)}, "
            f"variables={len(self._story.variables)}, quests={len(self._story.quests)})"
        )
