"""Generate -> validate -> normalize."""

from __future__ import annotations

from typing import TYPE_CHECKING

from storydeck.generation.batch import validate_slide_batch
from storydeck.graph.normalizer import DEFAULT_IMAGE_LABEL, normalize_slides
from storydeck.observability.logging import get_logger

if TYPE_CHECKING:
    from storydeck.generation.base import SlideGenerator
    from storydeck.models.story import Slide, StoryDefinition

log = get_logger(__name__)


def generate_slides(
    generator: SlideGenerator,
    narrative: str,
    story: StoryDefinition,
    *,
    default_image_label: str = DEFAULT_IMAGE_LABEL,
) -> list[Slide]:
    """Run *generator* for *story* and return normalized slides.

    Nothing is committed to the story; callers pass the result to
    StoryGraph.replace_slides().

    Raises:
        MalformedBatchError: If the generator returned no usable batch.
        BatchNormalizationError: If a record cannot become a slide.
    """
    raw = generator.generate(
        narrative,
        image_labels=story.image_labels,
        variables=story.variable_names,
    )
    records = validate_slide_batch(raw)
    slides = normalize_slides(
        records,
        image_labels=story.image_labels,
        default_image_label=default_image_label,
    )
    log.info("slides_generated", generator=type(generator).__name__, count=len(slides))
    return slides
