"""Slide generation contract, batch parsing and the offline generator."""

from storydeck.generation.base import SlideGenerator
from storydeck.generation.batch import (
    MalformedBatchError,
    extract_slide_batch,
    validate_slide_batch,
)
from storydeck.generation.placeholder import PlaceholderSlideGenerator
from storydeck.generation.runner import generate_slides

__all__ = [
    "MalformedBatchError",
    "PlaceholderSlideGenerator",
    "SlideGenerator",
    "extract_slide_batch",
    "generate_slides",
    "validate_slide_batch",
]
