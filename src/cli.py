"""CLI interface for feedvault."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from feedvault.config import FeedvaultConfig, load_config, merge_cli_overrides
from feedvault.feeds.models import FeedDescriptor, ImportStatus, ItemKey
from feedvault.pipeline.dashboard import Dashboard

app = typer.Typer(
    name="feedvault",
    help="Import feeds, save articles to a markdown vault, and keep the two in sync.",
)

console = Console()


class RichProgressSink:
    """Import progress rendered as a rich progress bar."""

    def __init__(self, progress: Progress) -> None:
        self._progress = progress
        self._task = progress.add_task("Fetching articles", total=None)

    def update(self, processed: int, total: int, title: str) -> None:
        self._progress.update(
            self._task,
            completed=processed,
            total=total,
            description=f"Fetching articles: {title}",
        )

    def finish(self, processed: int, failed: int) -> None:
        """No-op; the import command prints its own summary."""

    def clear(self) -> None:
        if self._task in self._progress.task_ids:
            self._progress.remove_task(self._task)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from feedvault import __version__

        console.print(f"feedvault {__version__}")
        raise typer.Exit()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to a .feedvault.toml file."),
    ] = None,
    vault: Annotated[
        Optional[Path],
        typer.Option("--vault", help="Vault directory (overrides config)."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable debug logging."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """feedvault - feeds in, notes out, saved state kept honest."""
    _setup_logging(verbose)
    config = load_config(config_path)
    config = merge_cli_overrides(
        config, vault_directory=str(vault) if vault is not None else None
    )
    ctx.obj = config


def _config(ctx: typer.Context) -> FeedvaultConfig:
    return ctx.obj if isinstance(ctx.obj, FeedvaultConfig) else load_config()


def _read_feeds_file(path: Path) -> list[str]:
    """Read feed URLs from a newline-delimited text file."""
    lines = path.read_text(encoding="utf-8").splitlines()
    return [
        line.strip()
        for line in lines
        if line.strip() and not line.strip().startswith("#")
    ]


@app.command("import")
def import_cmd(
    ctx: typer.Context,
    urls: Annotated[
        Optional[list[str]],
        typer.Argument(help="Feed URLs to import."),
    ] = None,
    feeds_file: Annotated[
        Optional[Path],
        typer.Option(
            "--feeds-file",
            "-f",
            help="Newline-delimited file of feed URLs.",
            exists=True,
            dir_okay=False,
        ),
    ] = None,
    folder: Annotated[
        str,
        typer.Option("--folder", help="Sidebar folder for the new feeds."),
    ] = "",
) -> None:
    """Register new feeds and fetch their articles in the background."""
    all_urls = list(urls or [])
    if feeds_file is not None:
        all_urls.extend(_read_feeds_file(feeds_file))
    all_urls = list(dict.fromkeys(u.strip() for u in all_urls if u.strip()))
    if not all_urls:
        console.print("[yellow]No feed URLs given.[/yellow]")
        raise typer.Exit(1)

    config = _config(ctx)

    async def _run() -> list[FeedDescriptor]:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            console=console,
            transient=True,
        ) as progress:
            dashboard = Dashboard(config, progress=RichProgressSink(progress))
            descriptors = [FeedDescriptor(title=url, url=url, folder=folder) for url in all_urls]
            queued = await dashboard.import_feeds(descriptors)
            if queued:
                console.print(
                    f"Imported {queued} feeds. Articles will be fetched in the background."
                )
            await dashboard.importer.wait()
            await dashboard.close()
            return dashboard.importer.history

    history = asyncio.run(_run())
    failed = [d for d in history if d.import_status == ImportStatus.FAILED]
    console.print(
        f"[green]Background import completed.[/green] Processed {len(history)} feeds."
    )
    if failed:
        console.print(f"[red]{len(failed)} feeds failed:[/red]")
        for descriptor in failed:
            console.print(f"  - {descriptor.title}")


@app.command()
def refresh(
    ctx: typer.Context,
    urls: Annotated[
        Optional[list[str]],
        typer.Argument(help="Feed URLs to refresh. Defaults to all feeds."),
    ] = None,
    folder: Annotated[
        Optional[str],
        typer.Option("--folder", help="Only refresh feeds in this folder and its subfolders."),
    ] = None,
) -> None:
    """Re-fetch feeds (also retries failed imports)."""
    config = _config(ctx)

    async def _run() -> tuple[int, dict[str, str]]:
        dashboard = Dashboard(config)
        if urls:
            total = len(urls)
        elif folder is not None:
            total = len(dashboard.registry.feeds_in_folder(folder))
        else:
            total = len(dashboard.registry.feeds)
        if not total:
            return 0, {}
        failures = await dashboard.refresh_feeds(urls or None, folder=folder)
        return total, failures

    total, failures = asyncio.run(_run())
    if not total:
        message = "No feeds found in the selected folder." if folder else "No feeds registered."
        console.print(f"[yellow]{message}[/yellow]")
        return
    console.print(f"Feeds refreshed: {total - len(failures)}/{total}")
    for url in failures:
        console.print(f"  [red]failed[/red] {url}")
    if failures:
        raise typer.Exit(1)


@app.command("list")
def list_cmd(
    ctx: typer.Context,
    saved: Annotated[
        bool,
        typer.Option("--saved", help="Only show saved items."),
    ] = False,
    feed: Annotated[
        Optional[str],
        typer.Option("--feed", help="Only show items from this feed URL."),
    ] = None,
) -> None:
    """List items."""
    config = _config(ctx)

    async def _run() -> list:
        dashboard = Dashboard(config)
        if saved:
            return await dashboard.saved_items()
        return dashboard.registry.all_items()

    items = asyncio.run(_run())
    if feed:
        items = [i for i in items if i.feed_url == feed]

    table = Table(title="Saved items" if saved else "Items")
    table.add_column("Feed")
    table.add_column("Title")
    table.add_column("Guid", overflow="fold")
    table.add_column("Saved")
    for item in items:
        table.add_row(
            item.feed_title or item.feed_url,
            item.title,
            item.guid,
            item.saved_file_path or "",
        )
    console.print(table)


@app.command()
def save(
    ctx: typer.Context,
    guid: Annotated[str, typer.Argument(help="Guid of the item to save.")],
    feed: Annotated[
        Optional[str],
        typer.Option("--feed", help="Feed URL, when the guid is not unique."),
    ] = None,
    folder: Annotated[
        Optional[str],
        typer.Option("--folder", help="Vault folder (defaults to config)."),
    ] = None,
    full: Annotated[
        Optional[bool],
        typer.Option("--full/--summary", help="Fetch the full article text."),
    ] = None,
) -> None:
    """Save an item to the vault."""
    config = _config(ctx)

    async def _run():
        dashboard = Dashboard(config)
        item = dashboard.registry.find(guid, feed)
        if item is None:
            return None
        return await dashboard.save_article(ItemKey(item.feed_url, item.guid), folder, full_content=full)

    result = asyncio.run(_run())
    if result is None:
        console.print(f"[red]No item with guid {guid}[/red]")
        raise typer.Exit(1)
    if not result.success:
        console.print(f"[red]{result.error}[/red]")
        raise typer.Exit(1)
    console.print(f"Article saved: {result.path}")


@app.command()
def prune(ctx: typer.Context) -> None:
    """Apply each feed's item cap and auto-delete age."""
    config = _config(ctx)

    async def _run() -> int:
        dashboard = Dashboard(config)
        return await dashboard.apply_feed_limits()

    trimmed = asyncio.run(_run())
    console.print(f"Applied item limits: {trimmed} feeds trimmed.")


@app.command()
def reconcile(ctx: typer.Context) -> None:
    """Check saved items against the vault and repair drift."""
    config = _config(ctx)

    async def _run():
        dashboard = Dashboard(config)
        return await dashboard.startup()

    report = asyncio.run(_run())
    console.print(
        f"Checked {report.verified} saved items: "
        f"{report.fixed} paths fixed, {report.cleared} cleared, {report.adopted} adopted."
    )


if __name__ == "__main__":
    app()
