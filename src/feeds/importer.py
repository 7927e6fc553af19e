"""Background import queue for newly discovered feeds.

A bulk import (for example from a subscription list) registers every new
feed immediately with an empty item list and queues it here. A single
worker task then drains the queue in FIFO order, fetching each feed and
filling in its items without blocking the caller.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime
from typing import Any, Protocol

from feedvault.feeds.models import Feed, FeedDescriptor, FetchedFeed, ImportStatus, MediaType
from feedvault.feeds.services import ItemRegistry

logger = logging.getLogger(__name__)

IMPORT_ITEM_LIMIT = 50
PERSIST_EVERY = 5
RENDER_EVERY = 3
ENTRY_DELAY = 0.1

_UNCATEGORIZED = ("", "Uncategorized")

Callback = Callable[[], Awaitable[None] | None]


class FeedFetchOperation(Protocol):
    async def fetch(self, url: str, existing: Feed | None = None) -> FetchedFeed: ...


class ImportProgressSink(Protocol):
    """Receives progress from the import worker (status bar, progress bar, log)."""

    def update(self, processed: int, total: int, title: str) -> None: ...

    def finish(self, processed: int, failed: int) -> None: ...

    def clear(self) -> None: ...


class LoggingProgressSink:
    """Progress sink that only logs."""

    def update(self, processed: int, total: int, title: str) -> None:
        logger.info("Fetching articles: %d/%d - %s", processed, total, title)

    def finish(self, processed: int, failed: int) -> None:
        if failed:
            logger.info("Background import completed. Processed %d feeds (%d failed).", processed, failed)
        else:
            logger.info("Background import completed. Processed %d feeds.", processed)

    def clear(self) -> None:
        pass


async def _maybe_await(callback: Callback | None) -> None:
    if callback is None:
        return
    result = callback()
    if inspect.isawaitable(result):
        await result


class ImportCoordinator:
    """Owns the import queue and its single worker loop.

    Args:
        registry: Feed registry the worker writes fetched items into.
        fetcher: The feed fetch operation.
        persist: Called to write a state snapshot (every
            ``persist_every`` entries and at drain).
        notify_view: Called to re-render (every ``render_every``
            entries and at drain).
        progress: Progress sink; defaults to logging.
        entry_delay: Seconds to pause after each entry.
        max_items: Cap on items kept per imported feed.
        video_folder: Folder assigned to uncategorized video feeds.
        podcast_folder: Folder assigned to uncategorized podcast feeds.
    """

    def __init__(
        self,
        registry: ItemRegistry,
        fetcher: FeedFetchOperation,
        *,
        persist: Callback | None = None,
        notify_view: Callback | None = None,
        progress: ImportProgressSink | None = None,
        entry_delay: float = ENTRY_DELAY,
        max_items: int = IMPORT_ITEM_LIMIT,
        persist_every: int = PERSIST_EVERY,
        render_every: int = RENDER_EVERY,
        video_folder: str = "",
        podcast_folder: str = "",
    ) -> None:
        self._registry = registry
        self._fetcher = fetcher
        self._persist = persist
        self._notify_view = notify_view
        self._progress: ImportProgressSink = progress or LoggingProgressSink()
        self._entry_delay = entry_delay
        self._max_items = max_items
        self._persist_every = max(1, persist_every)
        self._render_every = max(1, render_every)
        self._video_folder = video_folder
        self._podcast_folder = podcast_folder

        self._queue: deque[FeedDescriptor] = deque()
        self._history: list[FeedDescriptor] = []
        self._worker: asyncio.Task[int] | None = None
        self._importing = False
        self._abort = False
        self._processed = 0
        self._failed = 0
        self._total = 0

    # ── Public API ───────────────────────────────────────────────

    @property
    def is_importing(self) -> bool:
        return self._importing

    @property
    def pending(self) -> list[FeedDescriptor]:
        return list(self._queue)

    @property
    def history(self) -> list[FeedDescriptor]:
        """Entries that reached a terminal state, in processing order."""
        return list(self._history)

    def enqueue(self, descriptors: Iterable[FeedDescriptor]) -> int:
        """Register new feeds and queue them for background import.

        Must be called from inside a running event loop. Starts the
        worker when idle; otherwise the running worker picks the new
        entries up after its current backlog.

        Returns:
            Number of descriptors queued.
        """
        queued = 0
        for descriptor in descriptors:
            if self._registry.has_feed(descriptor.url):
                logger.info("Skipping %s: feed already registered", descriptor.url)
                continue
            descriptor.reset()
            self._apply_media_folder(descriptor)
            self._registry.add_feed(descriptor.to_feed())
            self._queue.append(descriptor)
            queued += 1

        if queued:
            self._total += queued
            logger.info("Queued %d feeds for background import", queued)
            if not self._worker_active():
                self._start_worker()
        return queued

    def abort(self) -> None:
        """Stop the worker before its next entry. The current fetch finishes."""
        if self._importing or self._worker_active():
            self._abort = True

    async def wait(self) -> int:
        """Wait for the active worker and return how many entries it processed."""
        if self._worker is None:
            return 0
        return await self._worker

    async def process_next(self) -> FeedDescriptor | None:
        """Process the entry at the head of the queue.

        Returns:
            The processed descriptor (now ``completed`` or ``failed``),
            or None when the queue is empty.
        """
        if not self._queue:
            return None

        descriptor = self._queue.popleft()
        if descriptor.import_status != ImportStatus.PENDING:
            logger.debug("Resetting %s from %s", descriptor.url, descriptor.import_status)
            descriptor.reset()
        descriptor.start()
        self._progress.update(self._processed, self._total, descriptor.title)

        try:
            fetched = await self._fetcher.fetch(descriptor.url)
            self._apply_fetched(descriptor, fetched)
        except Exception as exc:
            descriptor.fail(str(exc))
            self._failed += 1
            logger.debug("Import failed for %s: %s", descriptor.url, exc)
        else:
            descriptor.complete()

        self._processed += 1
        self._history.append(descriptor)
        return descriptor

    async def run(self) -> int:
        """Drain the queue. Only one loop may run at a time.

        Returns:
            Number of entries processed by this run.
        """
        if self._importing:
            return 0
        self._importing = True
        start = self._processed
        try:
            while True:
                while self._queue:
                    if self._abort:
                        logger.info("Background import aborted with %d feeds pending", len(self._queue))
                        break

                    await self.process_next()
                    done = self._processed - start

                    if done % self._persist_every == 0:
                        await _maybe_await(self._persist)
                    if done % self._render_every == 0:
                        await _maybe_await(self._notify_view)

                    await asyncio.sleep(self._entry_delay)

                await _maybe_await(self._persist)
                await _maybe_await(self._notify_view)
                # Entries enqueued during the drain callbacks are picked up here.
                if not self._queue or self._abort:
                    break

            processed = self._processed - start
            self._progress.clear()
            self._progress.finish(processed, self._failed)
            return processed
        finally:
            self._importing = False
            self._abort = False
            if not self._queue:
                self._processed = 0
                self._failed = 0
                self._total = 0

    # ── Private helpers ──────────────────────────────────────────

    def _worker_active(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def _apply_fetched(self, descriptor: FeedDescriptor, fetched: FetchedFeed) -> None:
        feed = self._registry.feed(descriptor.url)
        if feed is None:
            logger.warning("Feed %s was removed during import; discarding items", descriptor.url)
            return
        feed.title = fetched.title or descriptor.title
        feed.last_updated = datetime.now()
        feed.media_type = fetched.media_type
        self._registry.replace_items(descriptor.url, fetched.items[: self._max_items])

    def _start_worker(self) -> None:
        loop = asyncio.get_running_loop()
        self._worker = loop.create_task(self.run(), name="feedvault-import")
        self._worker.add_done_callback(self._log_worker_exit)

    @staticmethod
    def _log_worker_exit(task: asyncio.Task[Any]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background import worker crashed", exc_info=exc)

    def _apply_media_folder(self, descriptor: FeedDescriptor) -> None:
        if descriptor.folder not in _UNCATEGORIZED:
            return
        if descriptor.media_type == MediaType.VIDEO and self._video_folder:
            descriptor.folder = self._video_folder
        elif descriptor.media_type == MediaType.PODCAST and self._podcast_folder:
            descriptor.folder = self._podcast_folder
