#!/usr/bin/env python3
"""
Content Sync CLI

Usage:
    content-sync                         # Sync all enabled sources
    content-sync sync --dry-run          # Preview changes without writing
    content-sync sync --source NAME      # Sync a single source
    content-sync sync --topic People     # Sync a single topic
    content-sync list-sources            # Show configured sources
    content-sync list [CATEGORY]         # List synced content
    content-sync show CATEGORY SLUG      # Display a synced record
    content-sync status                  # Show sync status
    content-sync delete CATEGORY SLUG    # Remove a synced record
"""

import json
import sys
import traceback
from pathlib import Path
from typing import Optional

import click
from rich.console import Console

from content_sync import __version__
from content_sync.config import Config, get_all_categories, get_enabled_sources
from content_sync.storage import ContentStorage
from content_sync.sync_engine import SyncEngine

console = Console()


def _load_config(ctx: click.Context) -> Config:
    config = Config.from_env()
    if ctx.obj.get("content_root"):
        config.content_root = Path(ctx.obj["content_root"])
    if ctx.obj.get("debug"):
        config.debug = True
    return config


def _storage(config: Config) -> ContentStorage:
    return ContentStorage(config.raw_dir, config.state_file)


def _fail(ctx, error) -> None:
    console.print(f"[red]Error:[/red] {error}")
    if ctx.obj.get("debug"):
        traceback.print_exc()
    sys.exit(1)


@click.group(invoke_without_command=True)
@click.option("--content-root", type=click.Path(file_okay=False), help="Override the content directory")
@click.option("--debug", is_flag=True, help="Enable debug output")
@click.pass_context
def cli(ctx, content_root: Optional[str], debug: bool):
    """
    Content Sync

    Pulls GitHub Discussions into local JSON files.
    """
    ctx.ensure_object(dict)
    ctx.obj["content_root"] = content_root
    ctx.obj["debug"] = debug

    # If no subcommand, run sync
    if ctx.invoked_subcommand is None:
        ctx.invoke(sync)


@cli.command()
@click.option("--source", "source_name", help="Sync a specific source (default: all enabled)")
@click.option("--topic", help="Sync a specific topic, e.g. People")
@click.option("-n", "--dry-run", is_flag=True, help="Preview without writing files")
@click.option("-v", "--verbose", is_flag=True, help="Show each item")
@click.option("--report", type=click.Path(dir_okay=False), help="Write the JSON sync report to this file")
@click.pass_context
def sync(
    ctx,
    source_name: Optional[str] = None,
    topic: Optional[str] = None,
    dry_run: bool = False,
    verbose: bool = False,
    report: Optional[str] = None,
):
    """Sync content from configured sources."""
    try:
        config = _load_config(ctx)
        dry_run = dry_run or config.dry_run

        if not config.has_token:
            console.print("[red]GitHub token not found[/red]")
            console.print("\nPlease set GITHUB_TOKEN or GH_TOKEN environment variable.")
            console.print("[dim]You can create a token at: https://github.com/settings/tokens[/dim]")
            sys.exit(1)

        engine = SyncEngine(config)
        results = engine.sync(
            source_name=source_name,
            topic=topic,
            dry_run=dry_run,
            verbose=verbose,
        )
        engine.print_summary(results, dry_run=dry_run)

        if report:
            report_path = Path(report)
            report_path.parent.mkdir(parents=True, exist_ok=True)
            with open(report_path, "w", encoding="utf-8") as f:
                json.dump([r.to_dict() for r in results], f, indent=2, ensure_ascii=False)
            console.print(f"[dim]Report written to {report_path}[/dim]")

        # Exit with error code if any source failed
        if any(not r.success for r in results):
            sys.exit(1)

    except (json.JSONDecodeError, KeyError) as e:
        # A corrupt or incomplete record file, not a configuration problem
        _fail(ctx, f"Unreadable stored content: {e!r}")
    except ValueError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Sync cancelled.[/yellow]")
        sys.exit(130)
    except Exception as e:
        _fail(ctx, e)


@cli.command("list-sources")
@click.pass_context
def list_sources(ctx):
    """Show configured sources and their status."""
    config = _load_config(ctx)

    console.print("\n[bold]Configured Content Sources[/bold]\n")

    for source in config.sources:
        status = "[green]✓ Enabled[/green]" if source.enabled else "[red]✗ Disabled[/red]"
        console.print(f"  {status}  [bold]{source.name}[/bold]")
        console.print(f"  [dim]   Type:[/dim]   {source.type}")
        console.print(f"  [dim]   Repo:[/dim]   {source.repository}")
        console.print(f"  [dim]   Topics:[/dim] {', '.join(t.category for t in source.topics)}")
        console.print(f"  [dim]   Sync:[/dim]   {'Incremental' if source.incremental else 'Full'}")
        console.print("")

    enabled = get_enabled_sources(config.sources)
    console.print(f"Total: {len(config.sources)} source(s), {len(enabled)} enabled")

    if config.has_token:
        console.print("[green]✓[/green] GitHub token detected")
    else:
        console.print("[yellow]⚠[/yellow] No GitHub token found (set GITHUB_TOKEN or GH_TOKEN)")


@cli.command()
@click.argument("category")
@click.argument("slug")
@click.pass_context
def show(ctx, category: str, slug: str):
    """Display a synced record."""
    storage = _storage(_load_config(ctx))
    record = storage.read_content(category, slug)

    if record is None:
        console.print(f"[red]Content not found: {category}/{slug}[/red]")

        slugs = storage.list_slugs(category)
        if slugs:
            console.print(f'\nAvailable in "{category}":')
            for s in slugs[:10]:
                console.print(f"  • {s}")
            if len(slugs) > 10:
                console.print(f"  ... and {len(slugs) - 10} more")
        else:
            console.print(f'\nNo content found in category "{category}"')
            console.print('Run "sync" first to retrieve content.')
        sys.exit(1)

    console.print(f"\n[bold]{record.title}[/bold]")
    console.print("─" * 60)
    console.print(f"[dim]Source:[/dim]     {record.source}")
    console.print(f"[dim]Category:[/dim]   {record.category}")
    console.print(f"[dim]Slug:[/dim]       {record.slug}")
    console.print(f"[dim]Discussion:[/dim] #{record.external_id}")
    console.print(f"[dim]URL:[/dim]        {record.external_url}")
    console.print(f"[dim]Updated:[/dim]    {record.updated_at}")
    console.print(f"[dim]Retrieved:[/dim]  {record.retrieved_at}")
    console.print(f"[dim]Checksum:[/dim]   {record.checksum[:16]}...")
    console.print("─" * 60)
    console.print(record.body, markup=False)


@cli.command("list")
@click.argument("category", required=False)
@click.option("-v", "--verbose", is_flag=True, help="Show update times")
@click.pass_context
def list_content(ctx, category: Optional[str], verbose: bool):
    """List synced content, optionally for one category."""
    config = _load_config(ctx)
    storage = _storage(config)

    if category:
        records = storage.list_content(category)

        if not records:
            console.print(f'No content in category "{category}"')
            return

        console.print(f"\n[bold]{category}[/bold] ({len(records)} items)\n")
        for record in records:
            console.print(f"  [cyan]{record.slug}[/cyan]")
            console.print(f"    {record.title}")
            if verbose:
                console.print(f"    [dim]Updated: {record.updated_at}[/dim]")
        return

    categories = get_all_categories(config.sources)
    for stored in storage.list_categories():
        if stored not in [c.lower() for c in categories]:
            categories.append(stored)

    console.print("\n[bold]Content Overview[/bold]\n")
    for name in categories:
        console.print(f"  [cyan]{name.lower()}[/cyan]: {len(storage.list_slugs(name))} items")


@cli.command()
@click.pass_context
def status(ctx):
    """Show current sync status."""
    config = _load_config(ctx)
    SyncEngine(config).status()


@cli.command()
@click.argument("category")
@click.argument("slug")
@click.option("--yes", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def delete(ctx, category: str, slug: str, yes: bool):
    """Remove a synced record."""
    storage = _storage(_load_config(ctx))

    if not storage.content_exists(category, slug):
        console.print(f"[yellow]Nothing to delete: {category}/{slug}[/yellow]")
        sys.exit(1)

    if not yes and not click.confirm(f"Delete {category}/{slug}?"):
        console.print("Aborted.")
        return

    storage.delete_content(category, slug)
    console.print(f"[green]Removed: {category}/{slug}[/green]")


@cli.command()
def version():
    """Show version information."""
    console.print(f"Content Sync v{__version__}")


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
