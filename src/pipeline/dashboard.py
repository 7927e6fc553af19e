"""Dashboard: the process-wide context that wires the engine together.

Owns the feed registry and the components that mutate it (import
coordinator, article saver, reconciler) and decides when each
reconciliation pass runs:

- ``fix_paths`` once at startup;
- ``verify`` + ``adopt`` at startup, whenever the saved-items view is
  rendered, and after a quiet period following store modifications;
- targeted cleanup on note deletion, path updates on note rename.

Everything runs on one asyncio event loop, so there is never more than
one writer touching an item at a time.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from datetime import datetime

from feedvault.articles.models import ReconcileReport, SaveResult
from feedvault.articles.reconciler import SavedStateReconciler
from feedvault.articles.saver import ArticleSaver
from feedvault.config import FeedvaultConfig
from feedvault.errors import FeedFetchError
from feedvault.feeds.fetcher import FeedFetcher
from feedvault.feeds.importer import FeedFetchOperation, ImportCoordinator, ImportProgressSink
from feedvault.feeds.models import FeedDescriptor, Item, ItemKey
from feedvault.feeds.services import (
    ItemRegistry,
    dump_dashboard_state,
    limit_feed_items,
    load_dashboard_state,
    write_dashboard_state,
)
from feedvault.store.base import ContentStoreAdapter
from feedvault.store.vault import VaultStore

logger = logging.getLogger(__name__)


class Dashboard:
    """Feeds, items and saved notes for one vault."""

    def __init__(
        self,
        config: FeedvaultConfig,
        *,
        store: ContentStoreAdapter | None = None,
        fetcher: FeedFetchOperation | None = None,
        progress: ImportProgressSink | None = None,
        on_render: Callable[[], None] | None = None,
    ) -> None:
        self._config = config
        self._on_render = on_render
        self._state_dir = config.state_dir
        self._store = store or VaultStore(config.vault_dir)
        self._fetcher = fetcher or FeedFetcher()
        self._registry = ItemRegistry(load_dashboard_state(self._state_dir))
        self._render_count = 0
        self._persist_lock = asyncio.Lock()

        settings = config.to_saving_settings()
        self._saver = ArticleSaver(self._store, settings)
        self._reconciler = SavedStateReconciler(
            self._store,
            settings,
            items_provider=self._registry.all_items,
            debounce_seconds=config.reconcile.debounce_seconds,
            on_reconciled=self._after_reconcile,
        )
        self._importer = ImportCoordinator(
            self._registry,
            self._fetcher,
            persist=self.persist,
            notify_view=self._render,
            progress=progress,
            entry_delay=config.import_.entry_delay,
            max_items=config.import_.max_items,
            persist_every=config.import_.persist_every,
            render_every=config.import_.render_every,
            video_folder=config.media.video_folder,
            podcast_folder=config.media.podcast_folder,
        )

    # ── Components ───────────────────────────────────────────────

    @property
    def registry(self) -> ItemRegistry:
        return self._registry

    @property
    def saver(self) -> ArticleSaver:
        return self._saver

    @property
    def reconciler(self) -> SavedStateReconciler:
        return self._reconciler

    @property
    def importer(self) -> ImportCoordinator:
        return self._importer

    @property
    def render_count(self) -> int:
        """How many times the view was asked to re-render."""
        return self._render_count

    # ── Lifecycle ────────────────────────────────────────────────

    async def startup(self) -> ReconcileReport:
        """Repair stored paths, then reconcile every item against the store."""
        items = self._registry.all_items()
        fixed = await self._reconciler.fix_paths(items)
        report = await self._reconciler.reconcile(items)
        report.fixed = fixed
        if report.changed:
            await self.persist()
        logger.info(
            "Startup reconciliation: %d fixed, %d cleared, %d adopted",
            report.fixed, report.cleared, report.adopted,
        )
        return report

    async def persist(self) -> None:
        """Write a state snapshot. The file write runs in a worker thread."""
        async with self._persist_lock:
            payload = dump_dashboard_state(self._registry.state)
            await asyncio.to_thread(write_dashboard_state, payload, self._state_dir)

    async def close(self) -> None:
        """Stop timers and the import worker, then write the final snapshot."""
        self._reconciler.cancel_pending()
        self._importer.abort()
        await self._importer.wait()
        await self.persist()

    # ── Feeds ────────────────────────────────────────────────────

    async def import_feeds(self, descriptors: Iterable[FeedDescriptor]) -> int:
        """Register feeds and fetch their items in the background."""
        queued = self._importer.enqueue(descriptors)
        if queued:
            await self.persist()
        return queued

    async def refresh_feeds(
        self,
        urls: Iterable[str] | None = None,
        folder: str | None = None,
    ) -> dict[str, str]:
        """Re-fetch feeds, keeping the state of items already known.

        This is also how a failed import is retried. With ``folder``,
        only feeds filed in that folder or its subfolders are refreshed.

        Returns:
            Failed feed URL -> error message.
        """
        if urls is not None:
            targets = list(urls)
        elif folder is not None:
            targets = [f.url for f in self._registry.feeds_in_folder(folder)]
            if not targets:
                logger.info("No feeds found in folder '%s'", folder)
        else:
            targets = [f.url for f in self._registry.feeds]
        failures: dict[str, str] = {}
        for url in targets:
            feed = self._registry.feed(url)
            if feed is None:
                failures[url] = "Feed is not registered"
                continue
            try:
                fetched = await self._fetcher.fetch(url, feed)
            except FeedFetchError as exc:
                failures[url] = str(exc)
                logger.debug("Refresh failed for %s: %s", url, exc)
                continue
            feed.title = fetched.title or feed.title
            feed.media_type = fetched.media_type
            self._registry.replace_items(url, fetched.items[: feed.max_items_limit])

        await self._reconciler.verify(self._registry.all_items())
        await self.persist()
        if failures:
            logger.warning("Failed to refresh %d of %d feeds", len(failures), len(targets))
        return failures

    async def apply_feed_limits(self, now: datetime | None = None) -> int:
        """Trim every feed to its item cap and auto-delete age.

        Returns:
            Number of feeds that lost items.
        """
        trimmed = 0
        for feed in self._registry.feeds:
            kept = limit_feed_items(feed, now)
            if len(kept) != len(feed.items):
                self._registry.replace_items(feed.url, kept)
                trimmed += 1
        if trimmed:
            logger.info("Applied item limits to %d feeds", trimmed)
            await self.persist()
            self._render()
        return trimmed

    # ── Items ────────────────────────────────────────────────────

    def _require(self, key: ItemKey) -> Item:
        item = self._registry.get(key)
        if item is None:
            raise KeyError(key)
        return item

    async def save_article(
        self,
        key: ItemKey,
        folder: str | None = None,
        template: str | None = None,
        full_content: bool | None = None,
    ) -> SaveResult:
        """Save one item to the vault. Raises ``KeyError`` for unknown items."""
        item = self._require(key)
        use_full = self._saver.settings.fetch_full_content if full_content is None else full_content
        if use_full:
            result = await self._saver.save_with_full_content(item, folder, template)
        else:
            result = await self._saver.save(item, folder, template)
        if result.success:
            await self.persist()
        return result

    async def saved_items(self) -> list[Item]:
        """The saved-items view, reconciled before it is shown."""
        report = await self._reconciler.reconcile(self._registry.all_items())
        if report.changed:
            await self.persist()
        return self._registry.saved_items()

    async def mark_read(self, key: ItemKey, read: bool = True) -> Item:
        item = self._require(key)
        item.read = read
        await self.persist()
        return item

    async def toggle_star(self, key: ItemKey) -> Item:
        item = self._require(key)
        item.starred = not item.starred
        await self.persist()
        return item

    # ── External change notifications ────────────────────────────

    async def on_file_deleted(self, path: str) -> list[Item]:
        affected = self._reconciler.file_deleted(path, self._registry.items())
        if affected:
            await self.persist()
        return affected

    async def on_file_renamed(self, old_path: str, new_path: str) -> list[Item]:
        affected = self._reconciler.file_renamed(old_path, new_path, self._registry.items())
        if affected:
            await self.persist()
        return affected

    def on_store_modified(self) -> None:
        self._reconciler.file_modified()

    # ── Private helpers ──────────────────────────────────────────

    def _render(self) -> None:
        self._render_count += 1
        if self._on_render is not None:
            self._on_render()

    async def _after_reconcile(self, report: ReconcileReport) -> None:
        if report.changed:
            await self.persist()
            self._render()
