"""StoryDeck: branching slide stories with quest-gated endings."""

__version__ = "0.1.0"
