"""Placeholder slide generator for offline use and tests.

Splits the narrative into paragraphs, one slide per paragraph. Records carry
no ids, wiring or phases; the normalizer assigns them. Deterministic: the
same narrative always yields the same batch.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Sequence

_PARAGRAPH_RE = re.compile(r"\n\s*\n")


class PlaceholderSlideGenerator:
    """Zero-cost generator producing one linear slide per paragraph.

    When variables are declared, every slide also offers a second choice that
    adds one to the variables in rotation, so quests can be exercised.
    """

    def __init__(self, continue_text: str = "Continue", bonus_text: str = "Take a risk") -> None:
        self.continue_text = continue_text
        self.bonus_text = bonus_text

    def generate(
        self,
        narrative: str,
        *,
        image_labels: Sequence[str] = (),
        variables: Sequence[str] = (),
    ) -> list[dict[str, Any]]:
        paragraphs = [p.strip() for p in _PARAGRAPH_RE.split(narrative) if p.strip()]
        records: list[dict[str, Any]] = []
        for index, paragraph in enumerate(paragraphs):
            choices: list[dict[str, Any]] = [{"text": self.continue_text}]
            if variables:
                name = variables[index % len(variables)]
                choices.append({"text": self.bonus_text, "variableChanges": {name: 1}})
            record: dict[str, Any] = {"text": " ".join(paragraph.split()), "choices": choices}
            if image_labels:
                record["imageLabel"] = image_labels[index % len(image_labels)]
            records.append(record)
        return records
