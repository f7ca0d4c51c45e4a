"""
Local JSON storage for synced records and the sync state ledger.

Records are stored one file per item:

    <base_path>/<category>/<slug>.json

where <category> is the lowercased category name with whitespace
replaced by hyphens.
"""

import json
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from rich.console import Console

from content_sync.models import (
    SYNC_STATE_VERSION,
    Record,
    SourceSyncState,
    SyncState,
)

console = Console()

CONTENT_BASE_DIR = Path("content") / "raw"
SYNC_STATE_PATH = Path("content") / ".sync-state.json"

# Transform applied to a raw ledger dict stored at version N to bring it to N + 1.
# No schema changes yet; versions without an entry are carried over as-is.
MIGRATIONS: dict[int, Callable[[dict], dict]] = {}


def category_dir_name(category: str) -> str:
    """Directory name for a category: "Public Figures" -> "public-figures"."""
    return re.sub(r"\s+", "-", category.lower())


class ContentStorage:
    """
    Reads and writes record JSON files and the sync state ledger.

    Not found is reported as None/False; any other filesystem error
    propagates to the caller.
    """

    def __init__(
        self,
        base_path: Path = CONTENT_BASE_DIR,
        sync_state_path: Path = SYNC_STATE_PATH,
    ):
        self.base_path = Path(base_path)
        self.sync_state_path = Path(sync_state_path)

    # Content operations

    def write_content(self, record: Record) -> Path:
        """
        Write a record to storage, overwriting any existing file.

        Returns:
            The path written to.
        """
        file_path = self.get_file_path(record.category, record.slug)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        # Readers see either the old file or the new one, never a partial write
        tmp_path = file_path.with_name(file_path.name + ".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(record.to_dict(), f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, file_path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

        return file_path

    def read_content(self, category: str, slug: str) -> Optional[Record]:
        """Read a record, or None if it does not exist."""
        file_path = self.get_file_path(category, slug)

        try:
            with open(file_path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None

        return Record.from_dict(data)

    def list_content(self, category: str) -> list[Record]:
        """
        List every readable record in a category.

        Files that fail to parse are skipped with a warning.
        """
        records = []

        for slug in self.list_slugs(category):
            try:
                record = self.read_content(category, slug)
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                console.print(
                    f"[yellow]Warning: Skipping unreadable content file "
                    f"{self.get_file_path(category, slug)}: {e}[/yellow]"
                )
                continue

            if record is not None:
                records.append(record)

        return records

    def list_slugs(self, category: str) -> list[str]:
        """List slugs in a category without parsing the files."""
        category_dir = self.get_category_dir(category)
        if not category_dir.is_dir():
            return []

        return sorted(path.stem for path in category_dir.glob("*.json") if path.is_file())

    def list_categories(self) -> list[str]:
        """Directory names of every stored category."""
        if not self.base_path.is_dir():
            return []

        return sorted(path.name for path in self.base_path.iterdir() if path.is_dir())

    def content_exists(self, category: str, slug: str) -> bool:
        return self.get_file_path(category, slug).is_file()

    def delete_content(self, category: str, slug: str) -> bool:
        """
        Delete a record.

        Returns:
            True if a file was removed, False if there was nothing to remove.
        """
        try:
            self.get_file_path(category, slug).unlink()
        except FileNotFoundError:
            return False
        return True

    # Sync state operations

    def get_sync_state(self) -> SyncState:
        """
        Load the sync state ledger.

        Returns a fresh default state if nothing has been persisted yet.
        """
        try:
            with open(self.sync_state_path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return SyncState()
        except json.JSONDecodeError as e:
            console.print(f"[yellow]Warning: Could not load sync state file: {e}[/yellow]")
            return SyncState()

        if data.get("version") != SYNC_STATE_VERSION:
            data = self._migrate_sync_state(data)

        return SyncState.from_dict(data)

    def update_sync_state(self, state: SyncState) -> None:
        """Overwrite the whole ledger."""
        self.sync_state_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.sync_state_path, "w", encoding="utf-8") as f:
            json.dump(state.to_dict(), f, indent=2)

    def get_source_sync_state(self, source_name: str) -> SourceSyncState:
        state = self.get_sync_state()
        return state.sources.get(source_name) or SourceSyncState()

    def update_source_sync_state(self, source_name: str, source_state: SourceSyncState) -> None:
        """Replace one source's entry and bump last_full_sync."""
        state = self.get_sync_state()
        state.sources[source_name] = source_state
        state.last_full_sync = datetime.now(timezone.utc).isoformat()
        self.update_sync_state(state)

    # Helpers

    def get_category_dir(self, category: str) -> Path:
        return self.base_path / category_dir_name(category)

    def get_file_path(self, category: str, slug: str) -> Path:
        return self.get_category_dir(category) / f"{slug}.json"

    def _migrate_sync_state(self, data: dict) -> dict:
        """Run each migration step from the stored version up to the current one."""
        version = data.get("version")
        if isinstance(version, int):
            for step in range(version, SYNC_STATE_VERSION):
                migrate = MIGRATIONS.get(step)
                if migrate:
                    data = migrate(data)

        return {**data, "version": SYNC_STATE_VERSION}
