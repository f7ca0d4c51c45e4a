"""Tests for ContentStorage: record files and the sync state ledger."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from conftest import make_record
from content_sync import storage as storage_module
from content_sync.models import SYNC_STATE_VERSION, SourceSyncState, SyncState
from content_sync.storage import category_dir_name


# ------------------------------------------------------------------
# write / read
# ------------------------------------------------------------------


def test_write_content_creates_pretty_json(storage, tmp_path):
    path = storage.write_content(make_record())

    assert path == tmp_path / "raw" / "people" / "test-person.json"
    text = path.read_text(encoding="utf-8")
    assert "\n  " in text
    data = json.loads(text)
    assert data["title"] == "Test Person"
    assert data["discussionNumber"] == 1
    assert data["sourceType"] == "github-discussions"


def test_write_content_lowercases_and_hyphenates_category(storage, tmp_path):
    path = storage.write_content(make_record(category="Public Figures", slug="x"))
    assert path == tmp_path / "raw" / "public-figures" / "x.json"


def test_write_content_overwrites(storage):
    storage.write_content(make_record(body="Original content"))
    storage.write_content(make_record(body="Updated content"))

    assert storage.read_content("People", "test-person").body == "Updated content"


def test_write_content_keeps_non_ascii(storage):
    path = storage.write_content(make_record(title="Niccolò Machiavelli"))
    assert "Niccolò" in path.read_text(encoding="utf-8")


def test_write_content_failure_keeps_previous_file(storage, tmp_path):
    storage.write_content(make_record(body="Original content"))
    category_dir = tmp_path / "raw" / "people"

    def broken_dump(data, f, **kwargs):
        f.write('{"slug": "test-per')
        raise OSError("disk full")

    with patch.object(storage_module.json, "dump", side_effect=broken_dump):
        with pytest.raises(OSError, match="disk full"):
            storage.write_content(make_record(body="Updated content"))

    assert storage.read_content("People", "test-person").body == "Original content"
    assert [p.name for p in category_dir.iterdir()] == ["test-person.json"]


def test_write_content_leaves_no_temp_file(storage, tmp_path):
    storage.write_content(make_record())
    storage.write_content(make_record(body="again"))

    assert [p.name for p in (tmp_path / "raw" / "people").iterdir()] == ["test-person.json"]


def test_read_content_round_trips_record(storage):
    record = make_record()
    storage.write_content(record)
    assert storage.read_content("People", "test-person") == record


def test_read_content_missing_returns_none(storage):
    assert storage.read_content("People", "nobody") is None


def test_read_content_category_is_case_insensitive(storage):
    storage.write_content(make_record())
    assert storage.read_content("people", "test-person") is not None
    assert storage.read_content("PEOPLE", "test-person") is not None


def test_read_content_propagates_other_errors(storage):
    storage.write_content(make_record())

    with patch("builtins.open", side_effect=PermissionError("denied")):
        with pytest.raises(PermissionError):
            storage.read_content("People", "test-person")


# ------------------------------------------------------------------
# list / exists / delete
# ------------------------------------------------------------------


def test_list_content_skips_invalid_files(storage, tmp_path):
    storage.write_content(make_record(slug="a", title="A"))
    storage.write_content(make_record(slug="b", title="B"))
    (tmp_path / "raw" / "people" / "broken.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "raw" / "people" / "partial.json").write_text('{"slug": "partial"}', encoding="utf-8")

    records = storage.list_content("People")

    assert [r.slug for r in records] == ["a", "b"]


def test_list_content_missing_category_is_empty(storage):
    assert storage.list_content("Nothing") == []


def test_list_slugs_ignores_non_json(storage, tmp_path):
    storage.write_content(make_record(slug="b"))
    storage.write_content(make_record(slug="a"))
    (tmp_path / "raw" / "people" / "notes.txt").write_text("x", encoding="utf-8")

    assert storage.list_slugs("People") == ["a", "b"]


def test_list_categories(storage):
    storage.write_content(make_record(category="People"))
    storage.write_content(make_record(category="Organizations"))

    assert storage.list_categories() == ["organizations", "people"]


def test_content_exists(storage):
    assert not storage.content_exists("People", "test-person")
    storage.write_content(make_record())
    assert storage.content_exists("People", "test-person")


def test_delete_content(storage):
    storage.write_content(make_record())

    assert storage.delete_content("People", "test-person") is True
    assert not storage.content_exists("People", "test-person")
    assert storage.delete_content("People", "test-person") is False


def test_category_dir_name():
    assert category_dir_name("People") == "people"
    assert category_dir_name("Public  Figures") == "public-figures"


# ------------------------------------------------------------------
# sync state
# ------------------------------------------------------------------


def test_get_sync_state_default(storage):
    state = storage.get_sync_state()

    assert state.version == SYNC_STATE_VERSION
    assert state.sources == {}
    assert state.last_full_sync is None


def test_update_and_get_sync_state(storage, tmp_path):
    state = SyncState(
        sources={"src": SourceSyncState(last_sync="2025-01-01T00:00:00Z", checksums={"a": "1"}, last_sync_count=1)},
        last_full_sync="2025-01-01T00:00:00Z",
    )

    storage.update_sync_state(state)

    data = json.loads((tmp_path / ".sync-state.json").read_text(encoding="utf-8"))
    assert data["lastFullSync"] == "2025-01-01T00:00:00Z"
    assert data["sources"]["src"]["lastSyncCount"] == 1
    assert storage.get_sync_state() == state


def test_get_sync_state_migrates_old_version(storage, tmp_path):
    (tmp_path / ".sync-state.json").write_text(
        json.dumps({
            "version": 0,
            "sources": {"src": {"lastSync": None, "checksums": {"a": "1"}, "lastSyncCount": 3}},
            "lastFullSync": None,
        }),
        encoding="utf-8",
    )

    state = storage.get_sync_state()

    assert state.version == SYNC_STATE_VERSION
    assert state.sources["src"].checksums == {"a": "1"}
    assert state.sources["src"].last_sync_count == 3


def test_get_sync_state_applies_registered_migration(storage, tmp_path, monkeypatch):
    (tmp_path / ".sync-state.json").write_text(
        json.dumps({"version": 0, "sources": {}, "lastFullSync": None, "legacy": "2024-01-01"}),
        encoding="utf-8",
    )

    def rename_legacy(data):
        data = dict(data)
        data["lastFullSync"] = data.pop("legacy")
        return data

    monkeypatch.setitem(storage_module.MIGRATIONS, 0, rename_legacy)

    assert storage.get_sync_state().last_full_sync == "2024-01-01"


def test_get_sync_state_corrupt_file_falls_back_to_default(storage, tmp_path):
    (tmp_path / ".sync-state.json").write_text("{oops", encoding="utf-8")

    assert storage.get_sync_state() == SyncState()


def test_get_source_sync_state_default(storage):
    assert storage.get_source_sync_state("unknown") == SourceSyncState()


def test_update_source_sync_state_bumps_last_full_sync(storage):
    storage.update_source_sync_state("src", SourceSyncState(last_sync="t", checksums={"a": "1"}, last_sync_count=1))
    storage.update_source_sync_state("other", SourceSyncState(last_sync="t2"))

    state = storage.get_sync_state()
    assert set(state.sources) == {"src", "other"}
    assert state.last_full_sync is not None
    assert storage.get_source_sync_state("src").checksums == {"a": "1"}
