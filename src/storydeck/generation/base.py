"""Slide generator protocol.

Slide generation (an AI backend, a template engine, a human editor export)
is an external collaborator. Whatever it is, it turns a narrative into a
batch of raw slide records; ids, wiring and phases may all be missing and
are filled in by the branch normalizer.

Implementations:
    - PlaceholderSlideGenerator (placeholder.py) - offline, deterministic
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence


@runtime_checkable
class SlideGenerator(Protocol):
    """Protocol for slide generation backends."""

    def generate(
        self,
        narrative: str,
        *,
        image_labels: Sequence[str] = (),
        variables: Sequence[str] = (),
    ) -> list[dict[str, Any]]:
        """Produce raw slide records for a narrative.

        Args:
            narrative: Free-form story text to split into slides.
            image_labels: Portrait labels the records may reference.
            variables: Declared variable names choices may change.

        Returns:
            Slide-like records in reading order.
        """
        ...
