"""Shared pytest fixtures."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from content_sync.models import Record
from content_sync.normalizer import generate_checksum
from content_sync.storage import ContentStorage


def make_record(**overrides) -> Record:
    body = overrides.pop("body", "# Test Person\n\nTest content.")
    fields = dict(
        source="test-source",
        source_type="github-discussions",
        category="People",
        title="Test Person",
        slug="test-person",
        external_id=1,
        external_url="https://github.com/test/repo/discussions/1",
        retrieved_at="2025-11-28T12:00:00+00:00",
        updated_at="2025-11-28T10:00:00Z",
        checksum=generate_checksum(body),
        body=body,
    )
    fields.update(overrides)
    return Record(**fields)


def make_response(data=None, status=200, headers=None, reason="OK"):
    """Stand-in for requests.Response."""
    response = MagicMock()
    response.status_code = status
    response.reason = reason
    response.headers = headers or {}
    response.json.return_value = data if data is not None else {}
    return response


@pytest.fixture
def storage(tmp_path):
    """ContentStorage rooted in tmp_path."""
    return ContentStorage(tmp_path / "raw", tmp_path / ".sync-state.json")


@pytest.fixture
def session():
    """Mock requests session; set session.post.return_value / side_effect per test."""
    return MagicMock()
