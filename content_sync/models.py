"""
Data shapes shared by the sync pipeline.

Records and sync state are persisted as JSON with camelCase keys,
which is what the site's content loader reads at build time.
"""

from dataclasses import dataclass, field
from typing import Optional

SYNC_STATE_VERSION = 1


class SyncStatus:
    """Classification of a record in a sync run."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    ERROR = "error"


@dataclass
class Record:
    """One normalized content item, stored as <category>/<slug>.json."""

    source: str
    source_type: str
    category: str
    title: str
    slug: str
    external_id: int
    external_url: str
    retrieved_at: str
    updated_at: str
    checksum: str
    body: str

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "source": self.source,
            "sourceType": self.source_type,
            "category": self.category,
            "title": self.title,
            "slug": self.slug,
            "discussionNumber": self.external_id,
            "discussionUrl": self.external_url,
            "retrievedAt": self.retrieved_at,
            "updatedAt": self.updated_at,
            "checksum": self.checksum,
            "body": self.body,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Record":
        """
        Create from dictionary.

        Raises:
            KeyError: If a required key is missing.
        """
        return cls(
            source=data["source"],
            source_type=data["sourceType"],
            category=data["category"],
            title=data["title"],
            slug=data["slug"],
            external_id=int(data["discussionNumber"]),
            external_url=data["discussionUrl"],
            retrieved_at=data["retrievedAt"],
            updated_at=data["updatedAt"],
            checksum=data["checksum"],
            body=data["body"],
        )


@dataclass
class SourceSyncState:
    """Sync state for a single source."""

    last_sync: Optional[str] = None
    # slug -> checksum, informational only
    checksums: dict[str, str] = field(default_factory=dict)
    last_sync_count: int = 0

    def to_dict(self) -> dict:
        return {
            "lastSync": self.last_sync,
            "checksums": dict(self.checksums),
            "lastSyncCount": self.last_sync_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SourceSyncState":
        return cls(
            last_sync=data.get("lastSync"),
            checksums=dict(data.get("checksums") or {}),
            last_sync_count=int(data.get("lastSyncCount", 0)),
        )


@dataclass
class SyncState:
    """Overall sync state, one ledger per content root."""

    version: int = SYNC_STATE_VERSION
    sources: dict[str, SourceSyncState] = field(default_factory=dict)
    last_full_sync: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "version": self.version,
            "sources": {
                name: state.to_dict()
                for name, state in self.sources.items()
            },
            "lastFullSync": self.last_full_sync,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SyncState":
        """Create from dictionary."""
        return cls(
            version=int(data.get("version", SYNC_STATE_VERSION)),
            sources={
                name: SourceSyncState.from_dict(source_data)
                for name, source_data in (data.get("sources") or {}).items()
            },
            last_full_sync=data.get("lastFullSync"),
        )


@dataclass
class SyncItemResult:
    """Outcome for a single record in a sync run."""

    slug: str
    title: str
    category: str
    status: str
    error: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "slug": self.slug,
            "title": self.title,
            "category": self.category,
            "status": self.status,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class SyncResult:
    """
    Report for one source, consumed by the CLI and CI automation.

    The shape of to_dict() is a stable contract.
    """

    source: str
    success: bool
    created: list[SyncItemResult] = field(default_factory=list)
    updated: list[SyncItemResult] = field(default_factory=list)
    unchanged: list[SyncItemResult] = field(default_factory=list)
    errors: list[SyncItemResult] = field(default_factory=list)
    duration: int = 0  # milliseconds
    synced_at: str = ""

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "success": self.success,
            "created": [item.to_dict() for item in self.created],
            "updated": [item.to_dict() for item in self.updated],
            "unchanged": [item.to_dict() for item in self.unchanged],
            "errors": [item.to_dict() for item in self.errors],
            "duration": self.duration,
            "syncedAt": self.synced_at,
        }
