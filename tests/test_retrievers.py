"""Tests for the retriever registry and the GitHub Discussions retriever."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from content_sync.config import SourceConfig, TopicConfig
from content_sync.github_api import Discussion, DiscussionCategory, Unauthorized
from content_sync.retrievers import (
    BaseRetriever,
    GitHubDiscussionsRetriever,
    RETRIEVERS,
    get_available_retriever_types,
    get_retriever,
    register_retriever,
)

SOURCE = SourceConfig(
    name="test-source",
    type="github-discussions",
    repository="owner/repo",
    topics=[TopicConfig(category="People", output_path="people/")],
)


def _discussion(number: int, title: str) -> Discussion:
    return Discussion(
        id=f"D_{number}",
        number=number,
        title=title,
        body=f"About {title}",
        url=f"https://github.com/owner/repo/discussions/{number}",
        created_at="2025-01-01T00:00:00Z",
        updated_at="2025-01-02T00:00:00Z",
    )


def test_retrieve_converts_discussions():
    client = MagicMock()
    client.get_category.return_value = DiscussionCategory(id="C_1", name="People", slug="people")
    client.list_all_discussions.return_value = [_discussion(1, "Niccolò Machiavelli"), _discussion(2, "Cicero")]

    result = GitHubDiscussionsRetriever(client).retrieve(SOURCE, SOURCE.topics[0])

    assert result.count == 2
    assert [r.slug for r in result.items] == ["niccolo-machiavelli", "cicero"]
    assert result.errors == []
    client.get_category.assert_called_once_with("owner/repo", "People")
    client.list_all_discussions.assert_called_once_with("owner/repo", "C_1")


def test_retrieve_missing_category_reports_error():
    client = MagicMock()
    client.get_category.return_value = None

    result = GitHubDiscussionsRetriever(client).retrieve(SOURCE, SOURCE.topics[0])

    assert result.count == 0
    assert result.errors == ['Category "People" not found in owner/repo']
    client.list_all_discussions.assert_not_called()


def test_retrieve_propagates_api_errors():
    client = MagicMock()
    client.get_category.side_effect = Unauthorized("Authentication failed.", status=401)

    with pytest.raises(Unauthorized):
        GitHubDiscussionsRetriever(client).retrieve(SOURCE, SOURCE.topics[0])


def test_retrieve_all_walks_topics_in_order():
    source = SourceConfig(
        name="s",
        type="github-discussions",
        repository="owner/repo",
        topics=[TopicConfig("People", "people/"), TopicConfig("Organizations", "organizations/")],
    )
    client = MagicMock()
    client.get_category.side_effect = lambda repo, name: DiscussionCategory(id=name, name=name, slug=name)
    client.list_all_discussions.return_value = []

    results = GitHubDiscussionsRetriever(client).retrieve_all(source)

    assert [r.topic.category for r in results] == ["People", "Organizations"]


def test_can_connect_without_token():
    client = MagicMock()
    client.token = None

    assert GitHubDiscussionsRetriever(client).can_connect(SOURCE) is False
    client.list_discussion_categories.assert_not_called()


def test_can_connect_handles_api_error():
    client = MagicMock()
    client.token = "t"
    client.list_discussion_categories.side_effect = Unauthorized("nope", status=401)

    assert GitHubDiscussionsRetriever(client).can_connect(SOURCE) is False


def test_can_connect_success():
    client = MagicMock()
    client.token = "t"
    client.list_discussion_categories.return_value = []

    assert GitHubDiscussionsRetriever(client).can_connect(SOURCE) is True


def test_get_retriever_by_source_type():
    client = MagicMock()
    retriever = get_retriever(SOURCE, client)

    assert isinstance(retriever, GitHubDiscussionsRetriever)
    assert retriever.client is client


def test_get_retriever_unknown_type():
    source = SourceConfig(name="x", type="rss", repository="o/r")
    with pytest.raises(ValueError, match="github-discussions"):
        get_retriever(source, MagicMock())


def test_register_retriever(monkeypatch):
    monkeypatch.setattr("content_sync.retrievers.RETRIEVERS", dict(RETRIEVERS))

    class StaticRetriever(BaseRetriever):
        name = "static"

        def retrieve(self, source, topic):
            raise NotImplementedError

    register_retriever("static", StaticRetriever)

    assert "static" in get_available_retriever_types()
    source = SourceConfig(name="x", type="static", repository="o/r")
    assert isinstance(get_retriever(source, MagicMock()), StaticRetriever)
