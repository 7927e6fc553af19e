"""Saved-state reconciliation between items and the notes in the store.

An item's ``saved`` flag, its ``saved_file_path`` and the ``saved`` tag
must agree with what actually exists in the store. Users move and delete
notes outside our control, so drift is expected; the passes here detect
and repair it. All passes are idempotent.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable

from feedvault.articles.models import ArticleSavingSettings, ReconcileReport
from feedvault.articles.templates import normalize_path, note_path
from feedvault.errors import StoreError
from feedvault.feeds.models import Item
from feedvault.store.base import ContentStoreAdapter, ensure_folder_chain

logger = logging.getLogger(__name__)

DEBOUNCE_SECONDS = 300.0

ItemsProvider = Callable[[], Iterable[Item]]
ReconciledCallback = Callable[[ReconcileReport], Awaitable[None] | None]


class SavedStateReconciler:
    """Detects and repairs drift between saved flags and stored notes.

    Args:
        store: The content store notes live in.
        settings: Saving settings (default folder, saved tag).
        items_provider: Returns the current items; used by the debounced
            pass triggered from :meth:`file_modified`.
        debounce_seconds: Quiet period after the last modification
            signal before a full pass runs.
        on_reconciled: Called with the report of each debounced pass.
    """

    def __init__(
        self,
        store: ContentStoreAdapter,
        settings: ArticleSavingSettings,
        *,
        items_provider: ItemsProvider | None = None,
        debounce_seconds: float = DEBOUNCE_SECONDS,
        on_reconciled: ReconciledCallback | None = None,
    ) -> None:
        self._store = store
        self._settings = settings
        self._items_provider = items_provider
        self._debounce_seconds = debounce_seconds
        self._on_reconciled = on_reconciled
        self._timer: asyncio.TimerHandle | None = None
        self._pending: asyncio.Task[ReconcileReport] | None = None

    def expected_path(self, item: Item) -> str:
        return note_path(self._settings.default_folder, item.title)

    # ── Passes ───────────────────────────────────────────────────

    async def fix_paths(self, items: Iterable[Item]) -> int:
        """Repair stored paths that are not in normalized form.

        Runs sequentially because it may rename files.

        Returns:
            Number of items whose state changed.
        """
        changed = 0
        for item in items:
            if not (item.saved and item.saved_file_path):
                continue
            old_path = item.saved_file_path
            normalized = normalize_path(old_path)
            if old_path == normalized:
                continue

            try:
                normalized_exists = bool(normalized) and await self._store.exists(normalized)
                old_exists = not normalized_exists and await self._store.exists(old_path)
            except StoreError as exc:
                logger.warning("Could not check %s: %s", old_path, exc)
                continue

            if normalized_exists:
                item.saved_file_path = normalized
                changed += 1
            elif old_exists:
                if await self._relocate(item, old_path):
                    changed += 1
            else:
                logger.debug("Clearing orphaned saved state for '%s'", item.title)
                item.clear_saved()
                changed += 1

        if changed:
            logger.info("Fixed saved paths for %d items", changed)
        return changed

    async def verify_item(self, item: Item) -> bool:
        """Check one saved item's note still exists, clearing it if not.

        Returns:
            True if the item is (still) saved.
        """
        if not item.saved:
            return False
        if not item.saved_file_path:
            item.clear_saved()
            return False
        try:
            exists = await self._store.exists(item.saved_file_path)
        except StoreError as exc:
            logger.warning("Could not check %s: %s", item.saved_file_path, exc)
            return True
        if not exists:
            logger.debug("Note missing for '%s' at %s", item.title, item.saved_file_path)
            item.clear_saved()
            return False
        return True

    async def verify(self, items: Iterable[Item]) -> int:
        """Verify every saved item concurrently.

        Returns:
            Number of items that were unsaved because their note is gone.
        """
        saved = [item for item in items if item.saved]
        if not saved:
            return 0
        results = await asyncio.gather(*(self.verify_item(item) for item in saved))
        cleared = sum(1 for ok in results if not ok)
        if cleared:
            logger.info("Cleared saved state for %d items with missing notes", cleared)
        return cleared

    async def _adopt_item(self, item: Item) -> bool:
        path = self.expected_path(item)
        try:
            exists = await self._store.exists(path)
        except StoreError as exc:
            logger.warning("Could not check %s: %s", path, exc)
            return False
        if not exists:
            return False
        item.mark_saved(path, add_tag=self._settings.add_saved_tag)
        return True

    async def adopt(self, items: Iterable[Item]) -> int:
        """Mark unsaved items whose note already exists at the expected path.

        Returns:
            Number of items adopted.
        """
        unsaved = [item for item in items if not item.saved]
        if not unsaved:
            return 0
        results = await asyncio.gather(*(self._adopt_item(item) for item in unsaved))
        adopted = sum(1 for ok in results if ok)
        if adopted:
            logger.info("Adopted %d existing notes", adopted)
        return adopted

    async def reconcile(self, items: Iterable[Item]) -> ReconcileReport:
        """Run :meth:`verify` then :meth:`adopt`."""
        items = list(items)
        verified = sum(1 for item in items if item.saved)
        cleared = await self.verify(items)
        adopted = await self.adopt(items)
        return ReconcileReport(verified=verified, cleared=cleared, adopted=adopted)

    # ── External change notifications ────────────────────────────

    def file_deleted(self, path: str, items: Iterable[Item]) -> list[Item]:
        """Unsave just the items backed by a deleted note."""
        path = normalize_path(path)
        affected = [
            item for item in items
            if item.saved and normalize_path(item.saved_file_path) == path
        ]
        for item in affected:
            item.clear_saved()
        if affected:
            logger.info("Note %s deleted; unsaved %d items", path, len(affected))
        return affected

    def file_renamed(self, old_path: str, new_path: str, items: Iterable[Item]) -> list[Item]:
        """Follow a renamed note; the items stay saved."""
        old_path = normalize_path(old_path)
        new_path = normalize_path(new_path)
        affected = [
            item for item in items
            if item.saved and normalize_path(item.saved_file_path) == old_path
        ]
        for item in affected:
            item.saved_file_path = new_path
        if affected:
            logger.debug("Note %s renamed to %s", old_path, new_path)
        return affected

    def file_modified(self) -> None:
        """Schedule a full pass once modifications have been quiet long enough.

        Each call pushes the pass back to ``debounce_seconds`` from now.
        Must be called from inside a running event loop.
        """
        if self._items_provider is None:
            return
        self.cancel_pending()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._debounce_seconds, self._fire)

    @property
    def has_pending(self) -> bool:
        return self._timer is not None

    def cancel_pending(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def wait_pending(self) -> ReconcileReport | None:
        """Wait for a debounced pass that has already started."""
        if self._pending is None:
            return None
        return await self._pending

    def _fire(self) -> None:
        self._timer = None
        self._pending = asyncio.get_running_loop().create_task(self._debounced_pass())

    async def _debounced_pass(self) -> ReconcileReport:
        assert self._items_provider is not None
        report = await self.reconcile(self._items_provider())
        if self._on_reconciled is not None:
            result = self._on_reconciled(report)
            if inspect.isawaitable(result):
                await result
        return report

    # ── Private helpers ──────────────────────────────────────────

    async def _relocate(self, item: Item, old_path: str) -> bool:
        new_path = self.expected_path(item)
        try:
            await ensure_folder_chain(self._store, self._settings.default_folder)
            await self._store.rename(old_path, new_path)
        except StoreError as exc:
            logger.warning("Could not move %s to %s: %s", old_path, new_path, exc)
            return False
        item.saved_file_path = new_path
        return True
