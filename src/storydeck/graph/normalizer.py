"""Branch normalizer: raw slide records -> graph-consistent slides.

Accepts hand-authored or generated slide-like records where ids, choice
wiring and phase tags may all be missing, and produces slides that satisfy
the story graph invariants. The algorithm runs in fixed steps:

1. Pass 1 assigns slide/choice ids and default wiring (a choice without a
   target goes to the following slide; on the last slide it ends the story).
2. Pass 2 repairs wiring that still names an id absent from the batch by
   re-pointing it at the following slide. It needs every id from pass 1, so
   the two passes cannot be merged.
3. The narrative arc is forced: missing phases are assigned positionally
   and slide text is prefixed with its phase tag.
4. The last slide loses its choices (terminal-slide invariant).

normalize_slides() is pure and idempotent: its output fed back in comes out
unchanged.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from storydeck.graph.errors import BatchNormalizationError
from storydeck.models.story import PHASE_ORDER, Phase, Slide
from storydeck.observability.logging import get_logger

log = get_logger(__name__)

DEFAULT_IMAGE_LABEL = "default"

# Phase spellings produced by generators, including the Korean
# 기승전결 labels (발단/전개/위기/절정/결말).
PHASE_ALIASES: dict[str, Phase] = {
    "setup": Phase.SETUP,
    "exposition": Phase.SETUP,
    "introduction": Phase.SETUP,
    "발단": Phase.SETUP,
    "rising": Phase.RISING,
    "rising action": Phase.RISING,
    "development": Phase.RISING,
    "전개": Phase.RISING,
    "crisis": Phase.CRISIS,
    "위기": Phase.CRISIS,
    "climax": Phase.CLIMAX,
    "절정": Phase.CLIMAX,
    "resolution": Phase.RESOLUTION,
    "falling action": Phase.RESOLUTION,
    "ending": Phase.RESOLUTION,
    "결말": Phase.RESOLUTION,
}

_PHASE_TAG_RE = re.compile(
    r"^\s*(\[(" + "|".join(p.value for p in PHASE_ORDER) + r")\]|【)",
    re.IGNORECASE,
)

# Record keys for a slide's choices and wiring, in either spelling.
_NEXT_KEYS = ("nextSlideId", "next_slide_id")
_IMAGE_KEYS = ("imageLabel", "image_label")


def parse_phase(value: Any) -> Phase | None:
    """Resolve a phase tag or alias; None if missing or unrecognised."""
    if isinstance(value, Phase):
        return value
    if not isinstance(value, str):
        return None
    return PHASE_ALIASES.get(value.strip().lower())


def positional_phase(index: int, total: int) -> Phase:
    """Phase for slide *index* when the batch is split into five segments.

    The last slide is always the resolution.
    """
    if index == total - 1:
        return Phase.RESOLUTION
    return PHASE_ORDER[index * len(PHASE_ORDER) // total]


def has_phase_tag(text: str) -> bool:
    return bool(_PHASE_TAG_RE.match(text))


def normalize_slides(
    records: Sequence[Mapping[str, Any] | Slide],
    *,
    image_labels: Sequence[str] = (),
    default_image_label: str = DEFAULT_IMAGE_LABEL,
) -> list[Slide]:
    """Normalize a batch of slide records into valid slides.

    Args:
        records: Slide-like mappings (camelCase or snake_case keys) or Slides.
        image_labels: Available portrait labels; the first one is used for
            records without an image label.
        default_image_label: Fallback label when *image_labels* is empty.

    Returns:
        New slides in batch order. An empty batch yields an empty list.

    Raises:
        BatchNormalizationError: If a record is not a mapping or cannot be
            turned into a valid slide. Nothing is returned partially.
    """
    batch = [_as_record(record, index) for index, record in enumerate(records)]
    if not batch:
        return []

    fallback_label = image_labels[0] if image_labels else default_image_label
    _assign_ids_and_wiring(batch, fallback_label)
    _repair_wiring(batch)
    _apply_narrative_arc(batch)
    batch[-1]["choices"] = []

    slides: list[Slide] = []
    for index, record in enumerate(batch):
        try:
            slides.append(Slide.model_validate(record))
        except ValidationError as e:
            raise BatchNormalizationError(str(e), index=index) from e

    log.debug("slides_normalized", count=len(slides))
    return slides


def _as_record(record: Mapping[str, Any] | Slide, index: int) -> dict[str, Any]:
    """Deep-copy a record into a camelCase dict we are free to edit."""
    if isinstance(record, Slide):
        return record.to_record()
    if not isinstance(record, Mapping):
        raise BatchNormalizationError(
            f"expected a mapping, got {type(record).__name__}", index=index
        )
    data = copy.deepcopy(dict(record))
    choices = data.get("choices") or []
    if not isinstance(choices, list) or not all(isinstance(c, Mapping) for c in choices):
        raise BatchNormalizationError("'choices' must be a list of mappings", index=index)
    data["choices"] = [dict(choice) for choice in choices]
    return data


def _pop_first(data: dict[str, Any], keys: tuple[str, ...]) -> Any:
    """Remove every spelling of a key, returning the first non-empty value."""
    found = None
    for key in keys:
        value = data.pop(key, None)
        if found is None and value not in (None, ""):
            found = value
    return found


def _unique_id(candidate: str, taken: set[str]) -> str:
    unique = candidate
    suffix = 2
    while unique in taken:
        unique = f"{candidate}_{suffix}"
        suffix += 1
    taken.add(unique)
    return unique


def _assign_ids_and_wiring(batch: list[dict[str, Any]], fallback_label: str) -> None:
    """Pass 1: slide ids, choice ids, image labels and default wiring."""
    # The first record carrying an explicit id owns it; later duplicates and
    # records without an id get sequence-based ids that avoid every owned id.
    owners: dict[str, int] = {}
    for index, record in enumerate(batch):
        slide_id = record.get("id")
        if isinstance(slide_id, str) and slide_id and slide_id not in owners:
            owners[slide_id] = index
    taken = set(owners)

    for index, record in enumerate(batch):
        slide_id = record.get("id")
        if not (isinstance(slide_id, str) and owners.get(slide_id) == index):
            record["id"] = _unique_id(f"slide_{index + 1}", taken)

    last = len(batch) - 1
    for index, record in enumerate(batch):
        record["imageLabel"] = _pop_first(record, _IMAGE_KEYS) or fallback_label
        choice_owners: dict[str, int] = {}
        for choice_index, choice in enumerate(record["choices"]):
            choice_id = choice.get("id")
            if isinstance(choice_id, str) and choice_id and choice_id not in choice_owners:
                choice_owners[choice_id] = choice_index
        choice_ids = set(choice_owners)
        for choice_index, choice in enumerate(record["choices"]):
            choice_id = choice.get("id")
            if not (isinstance(choice_id, str) and choice_owners.get(choice_id) == choice_index):
                choice["id"] = _unique_id(f"choice_{choice_index + 1}", choice_ids)
            next_id = _pop_first(choice, _NEXT_KEYS)
            if next_id is None and index < last:
                next_id = batch[index + 1]["id"]
            elif index == last:
                next_id = None
            choice["nextSlideId"] = next_id


def _repair_wiring(batch: list[dict[str, Any]]) -> None:
    """Pass 2: re-point wiring that names no slide in the batch."""
    known = {record["id"] for record in batch}
    for index, record in enumerate(batch[:-1]):
        following = batch[index + 1]["id"]
        for choice in record["choices"]:
            target = choice["nextSlideId"]
            if target is not None and target not in known:
                log.debug(
                    "choice_rewired",
                    slide=record["id"],
                    choice=choice["id"],
                    missing=target,
                    to=following,
                )
                choice["nextSlideId"] = following


def _apply_narrative_arc(batch: list[dict[str, Any]]) -> None:
    """Tag every slide with a phase and prefix its text with the tag."""
    total = len(batch)
    for index, record in enumerate(batch):
        phase = parse_phase(record.get("phase")) or positional_phase(index, total)
        record["phase"] = phase.value
        text = str(record.get("text") or "").strip()
        if not has_phase_tag(text):
            text = f"[{phase.label}] {text}".rstrip()
        record["text"] = text
