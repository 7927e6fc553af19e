"""Test helpers: item builders, a scripted fetcher and a vault that can fail."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from feedvault.errors import FeedFetchError, StoreError
from feedvault.feeds.models import Feed, FetchedFeed, Item, MediaType
from feedvault.store.vault import VaultStore


def make_item(
    guid: str = "guid-1",
    title: str = "Test Article",
    feed_url: str = "https://example.com/feed.xml",
    **kwargs: object,
) -> Item:
    """Build an Item with sensible defaults."""
    defaults: dict[str, object] = {
        "link": f"https://example.com/posts/{guid}",
        "description": "<p>Body of the article.</p>",
        "summary": "Body of the article.",
        "pub_date": datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc),
        "author": "Ada Writer",
        "feed_title": "Example Feed",
    }
    defaults.update(kwargs)
    return Item(feed_url=feed_url, guid=guid, title=title, **defaults)  # type: ignore[arg-type]


class ScriptedFetcher:
    """Feed fetch operation returning canned results, recording call order."""

    def __init__(self, results: dict[str, FetchedFeed | Exception] | None = None) -> None:
        self.results = results or {}
        self.calls: list[str] = []

    async def fetch(self, url: str, existing: Feed | None = None) -> FetchedFeed:
        self.calls.append(url)
        result = self.results.get(url)
        if result is None:
            raise FeedFetchError(url, "HTTP 404")
        if isinstance(result, Exception):
            raise result
        return result


class FlakyVault(VaultStore):
    """VaultStore whose create/ensure_folder can be made to fail."""

    def __init__(self, root: Path) -> None:
        super().__init__(root)
        self.fail_create = False
        self.fail_folders: set[str] = set()

    async def create(self, path: str, content: str) -> str:
        if self.fail_create:
            raise StoreError(f"Disk full: {path}")
        return await super().create(path, content)

    async def ensure_folder(self, path: str) -> None:
        if path in self.fail_folders:
            raise StoreError(f"Permission denied: {path}")
        await super().ensure_folder(path)


def fetched(url: str, count: int = 3, title: str = "Fetched Feed") -> FetchedFeed:
    items = [
        make_item(guid=f"{url}#{i}", title=f"Entry {i}", feed_url=url, feed_title=title)
        for i in range(count)
    ]
    return FetchedFeed(title=title, items=items, media_type=MediaType.ARTICLE)
