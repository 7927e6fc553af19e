"""Item registry and state persistence for feeds.

The registry is the single owner of every feed and item. Other
components look items up by :class:`ItemKey` and mutate the returned
object in place; nothing keeps its own copy.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from datetime import datetime, timedelta, timezone
from pathlib import Path

from feedvault.feeds.models import DashboardState, Feed, Item, ItemKey

logger = logging.getLogger(__name__)


# ===========================================================================
# Registry
# ===========================================================================


class ItemRegistry:
    """Feeds and their items, indexed by ``(feed_url, guid)``."""

    def __init__(self, state: DashboardState) -> None:
        self._state = state
        self._index: dict[ItemKey, Item] = {}
        self._reindex()

    @property
    def state(self) -> DashboardState:
        return self._state

    @property
    def feeds(self) -> list[Feed]:
        return list(self._state.feeds)

    def _reindex(self) -> None:
        self._index = {}
        for feed in self._state.feeds:
            for item in feed.items:
                self._index.setdefault(item.key, item)

    # ── Feeds ────────────────────────────────────────────────────

    def feed(self, url: str) -> Feed | None:
        for feed in self._state.feeds:
            if feed.url == url:
                return feed
        return None

    def feeds_in_folder(self, folder: str) -> list[Feed]:
        """Feeds filed under ``folder`` or any of its subfolders."""
        folder = folder.strip("/")
        if not folder:
            return []
        return [
            f for f in self._state.feeds
            if f.folder == folder or f.folder.startswith(f"{folder}/")
        ]

    def has_feed(self, url: str) -> bool:
        return self.feed(url) is not None

    def add_feed(self, feed: Feed) -> None:
        """Register a feed. Raises ``ValueError`` if the URL is taken."""
        if self.has_feed(feed.url):
            raise ValueError(f"Feed already registered: {feed.url}")
        self._state.feeds.append(feed)
        for item in feed.items:
            self._index.setdefault(item.key, item)

    def remove_feed(self, url: str) -> Feed | None:
        feed = self.feed(url)
        if feed is None:
            return None
        self._state.feeds = [f for f in self._state.feeds if f.url != url]
        self._reindex()
        return feed

    def replace_items(self, url: str, items: list[Item]) -> Feed:
        """Swap a feed's item list. Raises ``KeyError`` for unknown URLs."""
        feed = self.feed(url)
        if feed is None:
            raise KeyError(url)
        feed.items = list(items)
        self._reindex()
        return feed

    # ── Items ────────────────────────────────────────────────────

    def items(self) -> Iterator[Item]:
        for feed in self._state.feeds:
            yield from feed.items

    def all_items(self) -> list[Item]:
        return list(self.items())

    def get(self, key: ItemKey) -> Item | None:
        return self._index.get(key)

    def find(self, guid: str, feed_url: str | None = None) -> Item | None:
        """Look up an item by guid, optionally restricted to one feed."""
        if feed_url is not None:
            return self.get(ItemKey(feed_url, guid))
        for key, item in self._index.items():
            if key.guid == guid:
                return item
        return None

    def saved_items(self) -> list[Item]:
        return [item for item in self.items() if item.saved]


def merge_items(existing: list[Item], fetched: list[Item], limit: int) -> list[Item]:
    """Combine a fresh fetch with the items a feed already holds.

    Items whose guid is already known keep their existing object, and
    with it their read, starred, saved and tag state. Fetched order
    comes first, followed by older items that dropped out of the feed,
    capped at ``limit``.
    """
    known = {item.guid: item for item in existing}
    merged: list[Item] = []
    seen: set[str] = set()
    for item in fetched:
        if item.guid in seen:
            continue
        seen.add(item.guid)
        merged.append(known.get(item.guid, item))
    for item in existing:
        if item.guid not in seen:
            seen.add(item.guid)
            merged.append(item)
    return merged[:limit]


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def limit_feed_items(feed: Feed, now: datetime | None = None) -> list[Item]:
    """Items the feed keeps after its item cap and auto-delete age apply.

    Read and saved items are always kept. Beyond the
    ``max_items_limit`` cap the oldest unread items go first (undated
    ones before any dated one), and with ``auto_delete_duration`` set,
    unread items older than that many days, or without a date, go too.
    Surviving items keep their current order.
    """
    def protected(item: Item) -> bool:
        return item.read or item.saved

    unread = [item for item in feed.items if not protected(item)]
    if feed.max_items_limit > 0 and len(feed.items) > feed.max_items_limit:
        room = max(0, feed.max_items_limit - (len(feed.items) - len(unread)))
        newest = sorted(
            unread,
            key=lambda item: _as_utc(item.pub_date) if item.pub_date else _EPOCH,
            reverse=True,
        )
        unread = newest[:room]

    if feed.auto_delete_duration and feed.auto_delete_duration > 0:
        now = _as_utc(now or datetime.now(timezone.utc))
        cutoff = now - timedelta(days=feed.auto_delete_duration)
        unread = [item for item in unread if item.pub_date and _as_utc(item.pub_date) > cutoff]

    keep = {id(item) for item in unread}
    return [item for item in feed.items if protected(item) or id(item) in keep]


# ===========================================================================
# State I/O
# ===========================================================================

STATE_FILENAME = ".feedvault-state.json"


def load_dashboard_state(state_dir: Path) -> DashboardState:
    """Load the feed registry snapshot from disk."""
    state_path = state_dir / STATE_FILENAME
    if not state_path.exists():
        return DashboardState()
    try:
        data = json.loads(state_path.read_text(encoding="utf-8"))
        return DashboardState.model_validate(data)
    except (json.JSONDecodeError, ValueError, KeyError):
        logger.warning("Corrupt state file at %s, starting fresh", state_path)
        return DashboardState()


def dump_dashboard_state(state: DashboardState) -> str:
    """Stamp ``last_saved`` and serialize the snapshot."""
    state.last_saved = datetime.now()
    return state.model_dump_json(indent=2)


def write_dashboard_state(payload: str, state_dir: Path) -> Path:
    """Atomically write a serialized snapshot. Blocking; no model access."""
    state_path = state_dir / STATE_FILENAME
    state_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = state_path.with_suffix(".tmp")
    tmp_path.write_text(payload, encoding="utf-8")
    tmp_path.replace(state_path)
    return state_path


def save_dashboard_state(state: DashboardState, state_dir: Path) -> Path:
    """Write the feed registry snapshot to disk."""
    return write_dashboard_state(dump_dashboard_state(state), state_dir)
