"""Tests for the background import coordinator."""

from __future__ import annotations

import asyncio

from feedvault.errors import FeedFetchError
from feedvault.feeds.importer import ImportCoordinator
from feedvault.feeds.models import DashboardState, FeedDescriptor, ImportStatus, MediaType
from feedvault.feeds.services import ItemRegistry
from tests.helpers import ScriptedFetcher, fetched


def _descriptor(n: int, **kwargs) -> FeedDescriptor:
    return FeedDescriptor(title=f"Feed {n}", url=f"https://feed{n}.test/rss", **kwargs)


class RecordingSink:
    def __init__(self) -> None:
        self.updates: list[tuple[int, int, str]] = []
        self.finished: tuple[int, int] | None = None
        self.cleared = False

    def update(self, processed: int, total: int, title: str) -> None:
        self.updates.append((processed, total, title))

    def finish(self, processed: int, failed: int) -> None:
        self.finished = (processed, failed)

    def clear(self) -> None:
        self.cleared = True


def _coordinator(fetcher, registry=None, **kwargs):
    registry = registry or ItemRegistry(DashboardState())
    kwargs.setdefault("entry_delay", 0)
    return registry, ImportCoordinator(registry, fetcher, **kwargs)


class TestEnqueue:
    def test_registers_feeds_immediately(self):
        fetcher = ScriptedFetcher()
        registry, coordinator = _coordinator(fetcher)

        async def _run():
            queued = coordinator.enqueue([_descriptor(1), _descriptor(2)])
            # Feeds are visible before any fetch has run.
            assert [f.url for f in registry.feeds] == [
                "https://feed1.test/rss",
                "https://feed2.test/rss",
            ]
            assert all(f.items == [] for f in registry.feeds)
            assert fetcher.calls == []
            await coordinator.wait()
            return queued

        assert asyncio.run(_run()) == 2
        assert len(coordinator.history) == 2

    def test_skips_registered_urls(self):
        fetcher = ScriptedFetcher({"https://feed1.test/rss": fetched("https://feed1.test/rss")})
        registry, coordinator = _coordinator(fetcher)

        async def _run():
            first = coordinator.enqueue([_descriptor(1)])
            await coordinator.wait()
            second = coordinator.enqueue([_descriptor(1)])
            return first, second

        assert asyncio.run(_run()) == (1, 0)
        assert fetcher.calls == ["https://feed1.test/rss"]

    def test_media_folder_for_uncategorized_feeds(self):
        _, coordinator = _coordinator(
            ScriptedFetcher(), video_folder="Videos", podcast_folder="Podcasts"
        )
        video = _descriptor(1, media_type=MediaType.VIDEO, folder="Uncategorized")
        podcast = _descriptor(2, media_type=MediaType.PODCAST)
        filed = _descriptor(3, media_type=MediaType.VIDEO, folder="Talks")

        async def _run():
            coordinator.enqueue([video, podcast, filed])
            coordinator.abort()
            await coordinator.wait()

        asyncio.run(_run())
        assert video.folder == "Videos"
        assert podcast.folder == "Podcasts"
        assert filed.folder == "Talks"


class TestWorker:
    def test_processes_in_fifo_order(self):
        urls = [f"https://feed{n}.test/rss" for n in range(4)]
        fetcher = ScriptedFetcher({url: fetched(url) for url in urls})
        registry, coordinator = _coordinator(fetcher)

        async def _run():
            coordinator.enqueue([_descriptor(n) for n in range(4)])
            return await coordinator.wait()

        assert asyncio.run(_run()) == 4
        assert fetcher.calls == urls
        assert [d.url for d in coordinator.history] == urls
        assert all(d.import_status == ImportStatus.COMPLETED for d in coordinator.history)
        assert all(len(f.items) == 3 for f in registry.feeds)
        assert registry.feeds[0].title == "Fetched Feed"

    def test_failed_fetch_keeps_empty_feed(self):
        ok = "https://feed1.test/rss"
        bad = "https://feed2.test/rss"
        fetcher = ScriptedFetcher({ok: fetched(ok), bad: FeedFetchError(bad, "HTTP 500")})
        registry, coordinator = _coordinator(fetcher)

        async def _run():
            coordinator.enqueue([_descriptor(1), _descriptor(2)])
            await coordinator.wait()

        asyncio.run(_run())

        failed = coordinator.history[1]
        assert failed.import_status == ImportStatus.FAILED
        assert failed.import_error
        assert registry.has_feed(bad)
        assert registry.feed(bad).items == []
        assert len(registry.feed(ok).items) == 3

    def test_unexpected_exception_marks_failed(self):
        url = "https://feed1.test/rss"
        fetcher = ScriptedFetcher({url: RuntimeError("boom")})
        _, coordinator = _coordinator(fetcher)

        async def _run():
            coordinator.enqueue([_descriptor(1)])
            await coordinator.wait()

        asyncio.run(_run())
        assert coordinator.history[0].import_status == ImportStatus.FAILED
        assert coordinator.history[0].import_error == "boom"

    def test_truncates_to_item_limit(self):
        url = "https://feed1.test/rss"
        fetcher = ScriptedFetcher({url: fetched(url, count=60)})
        registry, coordinator = _coordinator(fetcher)

        async def _run():
            coordinator.enqueue([_descriptor(1)])
            await coordinator.wait()

        asyncio.run(_run())
        assert len(registry.feed(url).items) == 50
        assert registry.feed(url).items[0].guid == f"{url}#0"

    def test_persist_and_render_cadence(self):
        urls = [f"https://feed{n}.test/rss" for n in range(7)]
        fetcher = ScriptedFetcher({url: fetched(url, count=1) for url in urls})
        persisted: list[int] = []
        rendered: list[int] = []
        _, coordinator = _coordinator(
            fetcher,
            persist=lambda: persisted.append(len(coordinator.history)),
            notify_view=lambda: rendered.append(len(coordinator.history)),
        )

        async def _run():
            coordinator.enqueue([_descriptor(n) for n in range(7)])
            await coordinator.wait()

        asyncio.run(_run())
        assert persisted == [5, 7]
        assert rendered == [3, 6, 7]

    def test_async_callbacks_are_awaited(self):
        url = "https://feed1.test/rss"
        fetcher = ScriptedFetcher({url: fetched(url)})
        calls: list[str] = []

        async def persist():
            calls.append("persist")

        _, coordinator = _coordinator(fetcher, persist=persist)

        async def _run():
            coordinator.enqueue([_descriptor(1)])
            await coordinator.wait()

        asyncio.run(_run())
        assert calls == ["persist"]

    def test_enqueue_while_busy_joins_current_run(self):
        urls = [f"https://feed{n}.test/rss" for n in range(3)]
        fetcher = ScriptedFetcher({url: fetched(url) for url in urls})
        _, coordinator = _coordinator(fetcher)

        async def _run():
            coordinator.enqueue([_descriptor(0), _descriptor(1)])
            first_worker = coordinator._worker
            await asyncio.sleep(0)
            assert coordinator.is_importing
            coordinator.enqueue([_descriptor(2)])
            assert coordinator._worker is first_worker
            return await coordinator.wait()

        assert asyncio.run(_run()) == 3
        assert fetcher.calls == urls

    def test_progress_reporting(self):
        urls = [f"https://feed{n}.test/rss" for n in range(2)]
        fetcher = ScriptedFetcher({urls[0]: fetched(urls[0])})
        sink = RecordingSink()
        _, coordinator = _coordinator(fetcher, progress=sink)

        async def _run():
            coordinator.enqueue([_descriptor(0), _descriptor(1)])
            await coordinator.wait()

        asyncio.run(_run())
        assert sink.updates == [(0, 2, "Feed 0"), (1, 2, "Feed 1")]
        assert sink.finished == (2, 1)
        assert sink.cleared is True
        assert coordinator.is_importing is False

    def test_abort_stops_before_next_entry(self):
        urls = [f"https://feed{n}.test/rss" for n in range(3)]
        fetcher = ScriptedFetcher({url: fetched(url) for url in urls})
        _, coordinator = _coordinator(fetcher)

        async def _run():
            coordinator.enqueue([_descriptor(n) for n in range(3)])
            coordinator.abort()
            return await coordinator.wait()

        assert asyncio.run(_run()) == 0
        assert fetcher.calls == []
        assert len(coordinator.pending) == 3
        assert coordinator.is_importing is False

    def test_process_next_on_empty_queue(self):
        _, coordinator = _coordinator(ScriptedFetcher())
        assert asyncio.run(coordinator.process_next()) is None

    def test_back_to_back_enqueue_shares_one_worker(self):
        urls = [f"https://feed{n}.test/rss" for n in range(4)]
        fetcher = ScriptedFetcher({url: fetched(url) for url in urls})
        _, coordinator = _coordinator(fetcher)

        async def _run():
            coordinator.enqueue([_descriptor(0), _descriptor(1)])
            first_worker = coordinator._worker
            # No await in between: the worker has not started running yet.
            coordinator.enqueue([_descriptor(2), _descriptor(3)])
            assert coordinator._worker is first_worker
            return await coordinator.wait()

        assert asyncio.run(_run()) == 4
        assert fetcher.calls == urls
        assert len(coordinator.history) == 4

    def test_requeued_failed_descriptor_is_retried(self):
        bad = "https://feed1.test/rss"
        good = "https://feed2.test/rss"
        fetcher = ScriptedFetcher({bad: FeedFetchError(bad, "HTTP 500"), good: fetched(good)})
        registry, coordinator = _coordinator(fetcher)
        retry = _descriptor(1)

        async def _run():
            coordinator.enqueue([retry])
            await coordinator.wait()
            assert retry.import_status == ImportStatus.FAILED
            registry.remove_feed(bad)
            fetcher.results[bad] = fetched(bad)
            coordinator.enqueue([retry, _descriptor(2)])
            return await coordinator.wait()

        assert asyncio.run(_run()) == 2
        assert retry.import_status == ImportStatus.COMPLETED
        assert retry.import_error is None
        assert len(registry.feed(bad).items) == 3
        assert len(registry.feed(good).items) == 3
        assert coordinator.pending == []

    def test_error_applying_fetch_fails_only_that_entry(self):
        bad = "https://feed1.test/rss"
        good = "https://feed2.test/rss"
        fetcher = ScriptedFetcher({bad: fetched(bad), good: fetched(good)})

        class BrittleRegistry(ItemRegistry):
            def replace_items(self, url, items):
                if url == bad:
                    raise ValueError("corrupt feed")
                return super().replace_items(url, items)

        registry, coordinator = _coordinator(fetcher, registry=BrittleRegistry(DashboardState()))

        async def _run():
            coordinator.enqueue([_descriptor(1), _descriptor(2)])
            return await coordinator.wait()

        assert asyncio.run(_run()) == 2
        assert coordinator.history[0].import_status == ImportStatus.FAILED
        assert coordinator.history[0].import_error == "corrupt feed"
        assert coordinator.history[1].import_status == ImportStatus.COMPLETED
        assert len(registry.feed(good).items) == 3
        assert coordinator.is_importing is False

    def test_stale_status_in_queue_is_reset(self):
        url = "https://feed1.test/rss"
        fetcher = ScriptedFetcher({url: fetched(url)})
        _, coordinator = _coordinator(fetcher)
        descriptor = _descriptor(1, import_status=ImportStatus.FAILED, import_error="old")
        coordinator._queue.append(descriptor)

        processed = asyncio.run(coordinator.process_next())
        assert processed is descriptor
        assert descriptor.import_status == ImportStatus.COMPLETED
        assert descriptor.import_error is None
