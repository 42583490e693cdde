"""Story definition models.

These models describe one authored story: its variables, slides, choices
and quests. They double as the import/export record shape, which uses
camelCase keys (``imageLabel``, ``nextSlideId``, ...). Python code reads and
writes the snake_case attributes; both spellings are accepted on input.
"""

from __future__ import annotations

import uuid
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class RecordModel(BaseModel):
    """Base for models serialized with camelCase record keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> dict[str, Any]:
        """Dump to a JSON-compatible dict using record (camelCase) keys."""
        return self.model_dump(mode="json", by_alias=True)


class Phase(StrEnum):
    """Narrative arc phase of a slide."""

    SETUP = "setup"
    RISING = "rising"
    CRISIS = "crisis"
    CLIMAX = "climax"
    RESOLUTION = "resolution"

    @property
    def label(self) -> str:
        return self.value.capitalize()


PHASE_ORDER: tuple[Phase, ...] = (
    Phase.SETUP,
    Phase.RISING,
    Phase.CRISIS,
    Phase.CLIMAX,
    Phase.RESOLUTION,
)


def new_quest_id() -> str:
    """Generate a durable quest identifier."""
    return f"quest_{uuid.uuid4().hex[:12]}"


class Variable(RecordModel):
    """A named integer counter tracked per play session."""

    name: str = Field(min_length=1, description="Unique within a story")
    initial: int = Field(default=0, description="Value at session start")


class Choice(RecordModel):
    """A player-selectable action on a slide."""

    id: str = Field(min_length=1, description="Unique within its slide")
    text: str = ""
    variable_changes: dict[str, int] = Field(
        default_factory=dict,
        description="Variable name -> delta applied when the choice is taken",
    )
    next_slide_id: str | None = Field(
        default=None,
        description="Slide entered next; None ends traversal on selection",
    )


class Slide(RecordModel):
    """One narrative beat: text, portrait reference and outgoing choices."""

    id: str = Field(min_length=1)
    text: str = ""
    image_label: str = Field(default="", description="Portrait label, resolved externally")
    phase: Phase | None = None
    choices: list[Choice] = Field(default_factory=list)
    quest_success: bool = Field(
        default=False,
        description="Entering this slide satisfies every sceneReached quest",
    )

    @property
    def is_terminal(self) -> bool:
        return not self.choices

    def get_choice(self, choice_id: str) -> Choice | None:
        for choice in self.choices:
            if choice.id == choice_id:
                return choice
        return None

    @model_validator(mode="after")
    def choice_ids_unique(self) -> Slide:
        """Reject slides that repeat a choice id."""
        seen: set[str] = set()
        for choice in self.choices:
            if choice.id in seen:
                msg = f"Slide '{self.id}' has duplicate choice id '{choice.id}'"
                raise ValueError(msg)
            seen.add(choice.id)
        return self


class ScoreThresholdQuest(RecordModel):
    """Completed once a variable reaches a target score."""

    id: str = Field(default_factory=new_quest_id, min_length=1)
    type: Literal["scoreThreshold"] = "scoreThreshold"
    enabled: bool = True
    title: str = ""
    target_variable: str
    target_score: int


class SceneReachedQuest(RecordModel):
    """Completed once the player stands on a given slide."""

    id: str = Field(default_factory=new_quest_id, min_length=1)
    type: Literal["sceneReached"] = "sceneReached"
    enabled: bool = True
    title: str = ""
    target_slide_id: str


Quest = Annotated[ScoreThresholdQuest | SceneReachedQuest, Field(discriminator="type")]


class CharacterImage(RecordModel):
    """Portrait asset reference. Asset payloads are carried through untouched."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    label: str = Field(min_length=1)


class StoryDefinition(RecordModel):
    """A complete story: metadata, variables, slides and quests.

    Unknown top-level keys (storage metadata owned by other tools) are kept
    so that import followed by export does not lose them.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    title: str = Field(default="", alias="gameTitle")
    protagonist_name: str = ""
    synopsis: str = ""
    character_images: list[CharacterImage] = Field(default_factory=list)
    variables: list[Variable] = Field(default_factory=list)
    slides: list[Slide] = Field(default_factory=list)
    quests: list[Quest] = Field(default_factory=list)

    @property
    def image_labels(self) -> list[str]:
        return [image.label for image in self.character_images]

    @property
    def variable_names(self) -> list[str]:
        return [variable.name for variable in self.variables]

    @property
    def first_slide_id(self) -> str | None:
        return self.slides[0].id if self.slides else None

    def get_slide(self, slide_id: str | None) -> Slide | None:
        if slide_id is None:
            return None
        for slide in self.slides:
            if slide.id == slide_id:
                return slide
        return None

    def get_quest(self, quest_id: str) -> ScoreThresholdQuest | SceneReachedQuest | None:
        for quest in self.quests:
            if quest.id == quest_id:
                return quest
        return None

    @model_validator(mode="after")
    def identifiers_unique(self) -> StoryDefinition:
        """Reject duplicate slide ids, variable names and quest ids."""
        for label, values in (
            ("slide id", [slide.id for slide in self.slides]),
            ("variable name", self.variable_names),
            ("quest id", [quest.id for quest in self.quests]),
        ):
            seen: set[str] = set()
            for value in values:
                if value in seen:
                    msg = f"Duplicate {label} '{value}'"
                    raise ValueError(msg)
                seen.add(value)
        return self
