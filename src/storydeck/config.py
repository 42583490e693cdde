"""Project configuration loading."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path  # noqa: TC003 - used at runtime
from typing import Any

from ruamel.yaml import YAML

CONFIG_FILE_NAME = "storydeck.yaml"

# Default configuration values
DEFAULT_STORY_FILE = "story.json"
DEFAULT_IMAGE_LABEL = "default"
DEFAULT_BASE_URL = "http://localhost:5173"
DEFAULT_MAX_URL_LENGTH = 8000
DEFAULT_NICKNAME = "anonymous"
DEFAULT_RESULTS_FILE = "results.jsonl"


@dataclass
class ShareConfig:
    """Configuration for share links.

    Attributes:
        base_url: Site root play URLs are built on. STORYDECK_BASE_URL
            overrides the configured value.
        max_url_length: Longest share URL that embeds the story itself.
    """

    base_url: str = DEFAULT_BASE_URL
    max_url_length: int = DEFAULT_MAX_URL_LENGTH

    def get_base_url(self) -> str:
        """Effective base URL: environment first, then config."""
        return os.getenv("STORYDECK_BASE_URL") or self.base_url

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ShareConfig:
        return cls(
            base_url=data.get("base_url", DEFAULT_BASE_URL),
            max_url_length=int(data.get("max_url_length", DEFAULT_MAX_URL_LENGTH)),
        )


@dataclass
class PlayConfig:
    """Configuration for interactive play and result collection."""

    default_nickname: str = DEFAULT_NICKNAME
    results_file: str = DEFAULT_RESULTS_FILE

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlayConfig:
        return cls(
            default_nickname=data.get("default_nickname", DEFAULT_NICKNAME),
            results_file=data.get("results_file", DEFAULT_RESULTS_FILE),
        )


@dataclass
class ProjectConfig:
    """Configuration for a StoryDeck project."""

    name: str
    version: int = 1
    story_file: str = DEFAULT_STORY_FILE
    default_image_label: str = DEFAULT_IMAGE_LABEL
    share: ShareConfig = field(default_factory=ShareConfig)
    play: PlayConfig = field(default_factory=PlayConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProjectConfig:
        """Create config from dictionary.

        Args:
            data: Dictionary containing config fields.

        Returns:
            ProjectConfig instance.
        """
        return cls(
            name=data.get("name", "unnamed"),
            version=data.get("version", 1),
            story_file=data.get("story_file", DEFAULT_STORY_FILE),
            default_image_label=data.get("default_image_label", DEFAULT_IMAGE_LABEL),
            share=ShareConfig.from_dict(dict(data.get("share") or {})),
            play=PlayConfig.from_dict(dict(data.get("play") or {})),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "story_file": self.story_file,
            "default_image_label": self.default_image_label,
            "share": {
                "base_url": self.share.base_url,
                "max_url_length": self.share.max_url_length,
            },
            "play": {
                "default_nickname": self.play.default_nickname,
                "results_file": self.play.results_file,
            },
        }


class ProjectConfigError(Exception):
    """Raised when project configuration cannot be loaded."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load project config at {path}: {reason}")


def load_project_config(project_path: Path) -> ProjectConfig:
    """Load project configuration from storydeck.yaml.

    Args:
        project_path: Path to the project root directory.

    Returns:
        ProjectConfig instance.

    Raises:
        ProjectConfigError: If config cannot be loaded.
    """
    config_path = project_path / CONFIG_FILE_NAME

    if not config_path.exists():
        raise ProjectConfigError(config_path, "File not found")

    yaml = YAML()
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)

        if data is None:
            raise ProjectConfigError(config_path, "Empty file")

        return ProjectConfig.from_dict(dict(data))
    except Exception as e:
        if isinstance(e, ProjectConfigError):
            raise
        raise ProjectConfigError(config_path, str(e)) from e


def save_project_config(project_path: Path, config: ProjectConfig) -> Path:
    """Write storydeck.yaml and return its path."""
    config_path = project_path / CONFIG_FILE_NAME
    yaml = YAML()
    yaml.default_flow_style = False
    with config_path.open("w", encoding="utf-8") as f:
        yaml.dump(config.to_dict(), f)
    return config_path


def create_default_config(name: str, base_url: str | None = None) -> ProjectConfig:
    """Create a default project configuration.

    Args:
        name: Project name.
        base_url: Optional share base URL; the built-in default otherwise.

    Returns:
        ProjectConfig with default values.
    """
    return ProjectConfig(name=name, share=ShareConfig(base_url=base_url or DEFAULT_BASE_URL))
