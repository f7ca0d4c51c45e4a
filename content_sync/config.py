"""
Configuration management for the content sync.

Loads settings from environment variables and defines the
content sources the pipeline knows how to sync.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

SUPPORTED_SOURCE_TYPES = ("github-discussions",)


@dataclass
class TopicConfig:
    """Maps a category in a source to a local output path."""

    category: str
    output_path: str
    slug_from: str = "title"


@dataclass
class SourceConfig:
    """A content source, e.g. a GitHub repository with discussions."""

    name: str
    type: str
    repository: str
    topics: list[TopicConfig] = field(default_factory=list)
    enabled: bool = True
    incremental: bool = True


SPECULUM_PRINCIPUM = SourceConfig(
    name="speculum-principum",
    type="github-discussions",
    repository="terrence-giggy/speculum-principum",
    topics=[
        TopicConfig(category="People", output_path="people/"),
        TopicConfig(category="Organizations", output_path="organizations/"),
    ],
)

# Add new sources here as they are implemented
SOURCES: list[SourceConfig] = [
    SPECULUM_PRINCIPUM,
]


def get_enabled_sources(sources: Optional[list[SourceConfig]] = None) -> list[SourceConfig]:
    """Return all sources marked as enabled."""
    sources = SOURCES if sources is None else sources
    return [source for source in sources if source.enabled]


def get_source_by_name(
    name: str,
    sources: Optional[list[SourceConfig]] = None,
) -> Optional[SourceConfig]:
    """Look up a source by its unique name."""
    sources = SOURCES if sources is None else sources
    for source in sources:
        if source.name == name:
            return source
    return None


def get_all_categories(sources: Optional[list[SourceConfig]] = None) -> list[str]:
    """Unique topic categories across enabled sources, in declaration order."""
    categories: list[str] = []
    for source in get_enabled_sources(sources):
        for topic in source.topics:
            if topic.category not in categories:
                categories.append(topic.category)
    return categories


def validate_source_config(source: SourceConfig) -> list[str]:
    """
    Validate a source configuration.

    Args:
        source: The source configuration to check.

    Returns:
        List of error messages. An empty list means the source is valid.
    """
    errors = []

    if not source.name or not source.name.strip():
        errors.append("Source name is required")

    if source.type not in SUPPORTED_SOURCE_TYPES:
        errors.append(f"Unsupported source type: {source.type}")

    if not source.repository:
        errors.append("Repository is required")
    elif "/" not in source.repository:
        errors.append("Repository must be in owner/repo format")

    if not source.topics:
        errors.append("At least one topic is required")

    for topic in source.topics:
        if not topic.category:
            errors.append("Topic category is required")
        if not topic.output_path:
            errors.append("Topic output_path is required")

    return errors


@dataclass
class Config:
    """
    Central configuration for the sync.

    Loads from environment variables and provides defaults.
    The GitHub token is optional here; the API client refuses
    to make a request without one.
    """

    github_token: Optional[str] = None

    # Paths
    content_root: Path = field(default_factory=lambda: Path.cwd() / "content")

    # Sync behavior
    debug: bool = False
    dry_run: bool = False

    sources: list[SourceConfig] = field(default_factory=lambda: list(SOURCES))

    @property
    def raw_dir(self) -> Path:
        """Directory holding one JSON file per record."""
        return self.content_root / "raw"

    @property
    def state_file(self) -> Path:
        """Path to sync state JSON file."""
        return self.content_root / ".sync-state.json"

    @property
    def has_token(self) -> bool:
        return bool(self.github_token)

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "Config":
        """
        Load configuration from environment variables.

        Args:
            env_file: Optional path to .env file. If not provided,
                     looks for .env in current directory.

        Returns:
            Configured Config instance.
        """
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        # GITHUB_TOKEN wins over GH_TOKEN
        github_token = os.getenv("GITHUB_TOKEN") or os.getenv("GH_TOKEN") or None

        content_root_str = os.getenv("CONTENT_ROOT")
        content_root = Path(content_root_str) if content_root_str else Path.cwd() / "content"

        debug = os.getenv("DEBUG", "false").lower() == "true"
        dry_run = os.getenv("DRY_RUN", "false").lower() == "true"

        return cls(
            github_token=github_token,
            content_root=content_root,
            debug=debug,
            dry_run=dry_run,
        )

    def __post_init__(self):
        if isinstance(self.content_root, str):
            self.content_root = Path(self.content_root)
