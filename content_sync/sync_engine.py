"""
Main sync engine for GitHub Discussions → JSON content.

Orchestrates:
- Retrieval of each configured topic
- Change detection against stored records
- Record writing
- State management
"""

import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from content_sync.config import (
    Config,
    SourceConfig,
    TopicConfig,
    get_enabled_sources,
    get_source_by_name,
)
from content_sync.github_api import GitHubAPIError, GitHubClient
from content_sync.models import (
    Record,
    SourceSyncState,
    SyncItemResult,
    SyncResult,
    SyncStatus,
)
from content_sync.retrievers import get_retriever
from content_sync.storage import ContentStorage, category_dir_name

console = Console()


@dataclass
class DiffResult:
    """Classification of a batch against storage."""

    created: list[SyncItemResult] = field(default_factory=list)
    updated: list[SyncItemResult] = field(default_factory=list)
    unchanged: list[SyncItemResult] = field(default_factory=list)


@dataclass
class BatchResult(DiffResult):
    """Classification plus the records whose write failed."""

    errors: list[SyncItemResult] = field(default_factory=list)


def _item_result(record: Record, status: str, error: Optional[str] = None) -> SyncItemResult:
    return SyncItemResult(
        slug=record.slug,
        title=record.title,
        category=record.category,
        status=status,
        error=error,
    )


class ContentSync:
    """
    Compares freshly normalized records with storage and commits changes.

    Change detection is by checksum only: a record whose body is unchanged
    stays unchanged even if its title or other metadata moved.
    """

    def __init__(self, storage: ContentStorage):
        self.storage = storage

    def _classify(self, records: list[Record], category: str) -> list[tuple[Record, str]]:
        classified = []

        for record in records:
            existing = self.storage.read_content(category, record.slug)

            if existing is None:
                status = SyncStatus.CREATED
            elif existing.checksum != record.checksum:
                status = SyncStatus.UPDATED
            else:
                status = SyncStatus.UNCHANGED

            classified.append((record, status))

        return classified

    def diff(self, records: list[Record], category: str) -> DiffResult:
        """
        Classify records against what is stored for a category.

        Args:
            records: New records, all belonging to category.
            category: Category to compare against.

        Returns:
            DiffResult with created, updated and unchanged items.
        """
        result = DiffResult()

        for record, status in self._classify(records, category):
            self._bucket(result, status).append(_item_result(record, status))

        return result

    def sync(self, records: list[Record], dry_run: bool = False) -> BatchResult:
        """
        Diff a batch and write every created or updated record.

        The batch may span several categories. Each category is diffed
        in full before any of its records is written. A record whose
        write fails is reported in errors instead of created/updated.

        Args:
            records: New records.
            dry_run: Classify only, write nothing.

        Returns:
            BatchResult with each record in exactly one bucket.
        """
        result = BatchResult()

        for category, group in self._group_by_category(records).items():
            self._warn_duplicate_slugs(category, group)

            for record, status in self._classify(group, category):
                if status == SyncStatus.UNCHANGED or dry_run:
                    self._bucket(result, status).append(_item_result(record, status))
                    continue

                try:
                    self.storage.write_content(record)
                except (OSError, TypeError, ValueError) as e:
                    result.errors.append(_item_result(record, SyncStatus.ERROR, str(e)))
                    continue

                self._bucket(result, status).append(_item_result(record, status))

        return result

    @staticmethod
    def _bucket(result: DiffResult, status: str) -> list[SyncItemResult]:
        return {
            SyncStatus.CREATED: result.created,
            SyncStatus.UPDATED: result.updated,
            SyncStatus.UNCHANGED: result.unchanged,
        }[status]

    @staticmethod
    def _group_by_category(records: list[Record]) -> dict[str, list[Record]]:
        """Group records by storage directory, keyed by the first category name seen."""
        groups: dict[str, list[Record]] = {}
        names: dict[str, str] = {}

        for record in records:
            key = category_dir_name(record.category)
            name = names.setdefault(key, record.category)
            groups.setdefault(name, []).append(record)

        return groups

    @staticmethod
    def _warn_duplicate_slugs(category: str, records: list[Record]) -> None:
        counts = Counter(record.slug for record in records)
        for slug, count in counts.items():
            if count > 1:
                console.print(
                    f"[yellow]Warning: {count} records in {category} share slug "
                    f"'{slug}'; the last one written wins[/yellow]"
                )


class SyncEngine:
    """
    Orchestrator for GitHub Discussions → JSON synchronization.

    For each source:
    1. Retrieve every topic through the source's retriever
    2. Diff the records against storage
    3. Write created and updated records
    4. Record the source's sync state
    """

    def __init__(
        self,
        config: Config,
        client: Optional[GitHubClient] = None,
        storage: Optional[ContentStorage] = None,
    ):
        """
        Initialize sync engine.

        Args:
            config: Configuration instance.
            client: GitHub client. Built from config.github_token if omitted.
            storage: Content storage. Built from config paths if omitted.
        """
        self.config = config
        self.client = client or GitHubClient(config.github_token)
        self.storage = storage or ContentStorage(config.raw_dir, config.state_file)
        self.content_sync = ContentSync(self.storage)

    def sync(
        self,
        source_name: Optional[str] = None,
        topic: Optional[str] = None,
        dry_run: bool = False,
        verbose: bool = False,
    ) -> list[SyncResult]:
        """
        Sync every enabled source, or only the named one.

        Args:
            source_name: Restrict to this source.
            topic: Restrict to topics with this category (case-insensitive).
            dry_run: Classify without writing records or state.
            verbose: Print each retrieved and changed item.

        Returns:
            One SyncResult per source that had matching topics.

        Raises:
            ValueError: If source_name does not name a configured source.
        """
        if source_name:
            source = get_source_by_name(source_name, self.config.sources)
            if source is None:
                available = ", ".join(s.name for s in self.config.sources)
                raise ValueError(f'Source "{source_name}" not found. Available sources: {available}')
            sources = [source]
        else:
            sources = get_enabled_sources(self.config.sources)

        console.print("\n[bold blue]🔄 Starting Content Sync[/bold blue]\n")

        if dry_run:
            console.print("[yellow]DRY RUN - no files will be written[/yellow]\n")

        results = []

        for source in sources:
            topics = source.topics
            if topic:
                topics = [t for t in topics if t.category.lower() == topic.lower()]

            if not topics:
                if topic:
                    console.print(f"[yellow]No matching topics for \"{topic}\" in {source.name}[/yellow]")
                else:
                    console.print(f"[yellow]No topics configured for {source.name}[/yellow]")
                continue

            results.append(self.sync_source(source, topics, dry_run=dry_run, verbose=verbose))

        return results

    def sync_source(
        self,
        source: SourceConfig,
        topics: Optional[list[TopicConfig]] = None,
        dry_run: bool = False,
        verbose: bool = False,
    ) -> SyncResult:
        """
        Sync a single source.

        API failures end the source's sync and are returned as a failed
        SyncResult with a single error entry.

        Raises:
            ValueError: If no retriever handles the source type.
        """
        start = time.monotonic()
        topics = source.topics if topics is None else topics

        console.print(f"[cyan]📦 {source.name}[/cyan] [dim]({source.repository})[/dim]")

        retriever = get_retriever(source, self.client)

        try:
            records: list[Record] = []

            for topic in topics:
                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    console=console,
                    transient=True,
                ) as progress:
                    progress.add_task(f"Retrieving {topic.category}...", total=None)
                    retrieval = retriever.retrieve(source, topic)

                for error in retrieval.errors:
                    console.print(f"   [yellow]⚠ {error}[/yellow]")

                console.print(
                    f"   📁 {topic.category}: retrieved {retrieval.count} items "
                    f"[dim]({retrieval.duration}ms)[/dim]"
                )

                if verbose:
                    for item in retrieval.items:
                        console.print(f"      [dim]• {item.title} ({item.slug})[/dim]")

                records.extend(retrieval.items)

            if not records:
                console.print("   [dim]No content retrieved[/dim]")
                return self._result(source, start, success=True)

            batch = self.content_sync.sync(records, dry_run=dry_run)

            if not dry_run:
                self.storage.update_source_sync_state(
                    source.name,
                    SourceSyncState(
                        last_sync=_now(),
                        checksums={record.slug: record.checksum for record in records},
                        last_sync_count=len(records),
                    ),
                )

            result = self._result(
                source,
                start,
                success=not batch.errors,
                created=batch.created,
                updated=batch.updated,
                unchanged=batch.unchanged,
                errors=batch.errors,
            )

        except GitHubAPIError as e:
            console.print(f"   [red]Sync failed: {e}[/red]")
            return self._result(
                source,
                start,
                success=False,
                errors=[
                    SyncItemResult(slug="", title="", category="", status=SyncStatus.ERROR, error=str(e))
                ],
            )

        self._print_source_result(result, verbose)
        return result

    @staticmethod
    def _result(source: SourceConfig, start: float, **kwargs) -> SyncResult:
        return SyncResult(
            source=source.name,
            duration=int((time.monotonic() - start) * 1000),
            synced_at=_now(),
            **kwargs,
        )

    def _print_source_result(self, result: SyncResult, verbose: bool) -> None:
        if result.created:
            console.print(f"   [green]✓ Created: {len(result.created)}[/green]")
            if verbose:
                for item in result.created:
                    console.print(f"      [dim]+ {item.title}[/dim]")

        if result.updated:
            console.print(f"   [green]✓ Updated: {len(result.updated)}[/green]")
            if verbose:
                for item in result.updated:
                    console.print(f"      [dim]~ {item.title}[/dim]")

        if result.unchanged:
            console.print(f"   [blue]ℹ Unchanged: {len(result.unchanged)}[/blue]")

        for item in result.errors:
            console.print(f"   [red]! {item.title}: {item.error}[/red]")

    def print_summary(self, results: list[SyncResult], dry_run: bool = False) -> None:
        """Print sync summary."""
        console.print("\n" + "=" * 50)
        console.print("[bold]Sync Summary[/bold]")
        console.print("=" * 50)

        table = Table(show_header=False, box=None)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="white")

        successful = sum(1 for r in results if r.success)
        table.add_row("Sources", f"{successful}/{len(results)} successful")
        table.add_row("Created", str(sum(len(r.created) for r in results)))
        table.add_row("Updated", str(sum(len(r.updated) for r in results)))
        table.add_row("Unchanged", str(sum(len(r.unchanged) for r in results)))
        table.add_row("Errors", str(sum(len(r.errors) for r in results)))
        table.add_row("Duration", _format_duration(sum(r.duration for r in results)))
        table.add_row("API requests", str(self.client.request_count))

        console.print(table)

        if dry_run:
            console.print("\n[yellow](Dry run - no changes were made)[/yellow]")

        console.print("")

    def status(self) -> None:
        """Print current sync status."""
        console.print("\n[bold]Sync Status[/bold]\n")

        state = self.storage.get_sync_state()

        if not state.sources:
            console.print("[yellow]No sources have been synced yet.[/yellow]")
            console.print("Run 'content-sync sync' to perform initial sync.")
            return

        table = Table(title="Synced Sources")
        table.add_column("Source", style="cyan")
        table.add_column("Last Sync", style="yellow")
        table.add_column("Items", style="green")
        table.add_column("Tracked Checksums", style="blue")

        for name in sorted(state.sources):
            source_state = state.sources[name]
            table.add_row(
                name,
                _format_timestamp(source_state.last_sync),
                str(source_state.last_sync_count),
                str(len(source_state.checksums)),
            )

        console.print(table)

        if state.last_full_sync:
            console.print(f"\nLast sync: {_format_timestamp(state.last_full_sync)}")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _format_timestamp(value: Optional[str]) -> str:
    if not value:
        return "never"
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).strftime("%Y-%m-%d %H:%M UTC")
    except ValueError:
        return value


def _format_duration(ms: int) -> str:
    if ms < 1000:
        return f"{ms}ms"
    return f"{ms / 1000:.2f}s"
