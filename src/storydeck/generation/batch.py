"""Parsing and validation of generated slide batches.

Generators backed by language models answer with text: usually a JSON array,
sometimes wrapped in a markdown code fence or an object with a ``slides`` or
``data`` key. Batches are checked here before they reach the normalizer.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator

_CODE_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)
_OPEN_RE = re.compile(r"[\[{]")
_BATCH_KEYS = ("slides", "data")


class MalformedBatchError(ValueError):
    """Raised when a generated batch is not a non-empty list of slide records."""


def _preview(text: str, limit: int = 200) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def validate_slide_batch(parsed: Any) -> list[dict[str, Any]]:
    """Unwrap and check a parsed batch.

    Accepts a list, or a mapping holding the list under ``slides``/``data``.

    Raises:
        MalformedBatchError: If no list is found, it is empty, or an entry is
            not a mapping.
    """
    slides = parsed
    if isinstance(parsed, Mapping):
        slides = next((parsed[key] for key in _BATCH_KEYS if key in parsed), None)
    if not isinstance(slides, list):
        raise MalformedBatchError("Batch does not contain a list of slides")
    if not slides:
        raise MalformedBatchError("Batch contains no slides")
    for index, record in enumerate(slides):
        if not isinstance(record, Mapping):
            raise MalformedBatchError(
                f"Slide {index} is {type(record).__name__}, expected an object"
            )
    return [dict(record) for record in slides]


def _decoded_candidates(content: str) -> Iterator[Any]:
    """Yield every JSON array or object that decodes at a bracket in ``content``."""
    decoder = json.JSONDecoder()
    for match in _OPEN_RE.finditer(content):
        try:
            value, _ = decoder.raw_decode(content, match.start())
        except json.JSONDecodeError:
            continue
        yield value


def extract_slide_batch(raw: str) -> list[dict[str, Any]]:
    """Extract slide records from generator output text.

    The whole (unfenced) text is tried as JSON first. Otherwise each array or
    object embedded in the text is decoded in order and the first one that
    holds a valid batch wins.

    Raises:
        MalformedBatchError: If no JSON batch can be found or it is invalid.
    """
    content = raw.strip()
    if "```" in content:
        fenced = _CODE_FENCE_RE.search(content)
        if fenced:
            content = fenced.group(1).strip()

    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as e:
        decode_error = e
    else:
        return validate_slide_batch(parsed)

    first_rejection: MalformedBatchError | None = None
    for candidate in _decoded_candidates(content):
        try:
            return validate_slide_batch(candidate)
        except MalformedBatchError as e:
            first_rejection = first_rejection or e
    if first_rejection is not None:
        raise first_rejection
    if _OPEN_RE.search(content) is None:
        raise MalformedBatchError(f"No JSON array found in response: {_preview(content)}")
    raise MalformedBatchError(f"Invalid JSON in batch: {decode_error}")
