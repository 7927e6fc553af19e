"""Feeds, items, the item registry and the background import queue."""

from feedvault.feeds.fetcher import FeedFetcher
from feedvault.feeds.importer import (
    ImportCoordinator,
    ImportProgressSink,
    LoggingProgressSink,
)
from feedvault.feeds.models import (
    SAVED_TAG_NAME,
    DashboardState,
    Feed,
    FeedDescriptor,
    FetchedFeed,
    ImportStatus,
    Item,
    ItemKey,
    MediaType,
    Tag,
)
from feedvault.feeds.services import (
    STATE_FILENAME,
    ItemRegistry,
    limit_feed_items,
    load_dashboard_state,
    merge_items,
    save_dashboard_state,
)

__all__ = [
    "DashboardState",
    "Feed",
    "FeedDescriptor",
    "FeedFetcher",
    "FetchedFeed",
    "ImportCoordinator",
    "ImportProgressSink",
    "ImportStatus",
    "Item",
    "ItemKey",
    "ItemRegistry",
    "LoggingProgressSink",
    "MediaType",
    "SAVED_TAG_NAME",
    "STATE_FILENAME",
    "Tag",
    "limit_feed_items",
    "load_dashboard_state",
    "merge_items",
    "save_dashboard_state",
]
