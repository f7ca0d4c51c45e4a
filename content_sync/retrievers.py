"""
Content retrievers.

A retriever fetches the items of one topic from a source and converts
them into Records. Each source type has one retriever class.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from rich.console import Console

from content_sync.config import SourceConfig, TopicConfig
from content_sync.github_api import GitHubAPIError, GitHubClient
from content_sync.models import Record
from content_sync.normalizer import discussion_to_record

console = Console()


@dataclass
class RetrievalResult:
    """Result of retrieving a single topic."""

    topic: TopicConfig
    items: list[Record] = field(default_factory=list)
    duration: int = 0  # milliseconds
    # Non-fatal problems, e.g. a missing category
    errors: list[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.items)


class BaseRetriever(ABC):
    """Common behaviour for retrievers."""

    name: str = ""

    def __init__(self, client: GitHubClient):
        self.client = client

    @abstractmethod
    def retrieve(self, source: SourceConfig, topic: TopicConfig) -> RetrievalResult:
        """Retrieve every item of one topic."""

    def retrieve_all(self, source: SourceConfig) -> list[RetrievalResult]:
        """Retrieve each topic of a source in order."""
        return [self.retrieve(source, topic) for topic in source.topics]

    def can_connect(self, source: SourceConfig) -> bool:
        return True


class GitHubDiscussionsRetriever(BaseRetriever):
    """
    Retrieves discussions from one category of a GitHub repository.

    API failures propagate; a missing category or a discussion that
    cannot be converted is reported in the result's errors.
    """

    name = "github-discussions"

    def retrieve(self, source: SourceConfig, topic: TopicConfig) -> RetrievalResult:
        start = time.monotonic()
        result = RetrievalResult(topic=topic)

        category = self.client.get_category(source.repository, topic.category)

        if category is None:
            result.errors.append(
                f'Category "{topic.category}" not found in {source.repository}'
            )
        else:
            discussions = self.client.list_all_discussions(source.repository, category.id)

            for discussion in discussions:
                try:
                    result.items.append(discussion_to_record(discussion, source, topic))
                except (KeyError, TypeError, ValueError) as e:
                    result.errors.append(
                        f"Failed to convert discussion #{discussion.number}: {e}"
                    )

        result.duration = int((time.monotonic() - start) * 1000)
        return result

    def can_connect(self, source: SourceConfig) -> bool:
        """Check that a token is present and the repository is reachable."""
        if not self.client.token:
            return False

        try:
            self.client.list_discussion_categories(source.repository)
        except GitHubAPIError as e:
            console.print(f"[dim]Connection check failed for {source.name}: {e}[/dim]")
            return False

        return True


RETRIEVERS: dict[str, type[BaseRetriever]] = {
    GitHubDiscussionsRetriever.name: GitHubDiscussionsRetriever,
}


def get_retriever(source: SourceConfig, client: GitHubClient) -> BaseRetriever:
    """
    Build the retriever for a source's type.

    Raises:
        ValueError: If no retriever handles the source type.
    """
    retriever_cls = RETRIEVERS.get(source.type)

    if retriever_cls is None:
        raise ValueError(
            f'No retriever available for source type: "{source.type}". '
            f"Available types: {', '.join(RETRIEVERS)}"
        )

    return retriever_cls(client)


def register_retriever(source_type: str, retriever_cls: type[BaseRetriever]) -> None:
    RETRIEVERS[source_type] = retriever_cls


def get_available_retriever_types() -> list[str]:
    return list(RETRIEVERS)
