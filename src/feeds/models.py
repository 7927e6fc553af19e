"""Pure data models for feeds, items and the import queue.

All Pydantic models and enums live here. No I/O, no business logic.
Services import from this module; this module only imports from
stdlib, third-party packages and ``feedvault.errors``.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import NamedTuple

from pydantic import BaseModel, Field

from feedvault.errors import ImportStateError

SAVED_TAG_NAME = "saved"
SAVED_TAG_COLOR = "#3498db"

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class MediaType(StrEnum):
    """Kind of content a feed produces."""

    ARTICLE = "article"
    VIDEO = "video"
    PODCAST = "podcast"


class ImportStatus(StrEnum):
    """Lifecycle of a background import queue entry."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


class Tag(BaseModel):
    """A user-visible label on an item."""

    name: str
    color: str = SAVED_TAG_COLOR


def saved_tag() -> Tag:
    return Tag(name=SAVED_TAG_NAME, color=SAVED_TAG_COLOR)


def is_saved_tag(tag: Tag) -> bool:
    return tag.name.lower() == SAVED_TAG_NAME


class ItemKey(NamedTuple):
    """Identity of an item: the feed it came from and its guid."""

    feed_url: str
    guid: str


class Item(BaseModel):
    """A single syndicated entry (article, video or podcast episode).

    ``feed_url`` and ``guid`` form the identity and cannot change once
    the item exists. Content fields are set at fetch time; the read,
    starred, saved and tag fields are the mutable state the rest of
    the system tracks.
    """

    feed_url: str = Field(frozen=True)
    guid: str = Field(frozen=True)
    title: str = ""
    link: str = ""
    description: str = ""
    summary: str = ""
    pub_date: datetime | None = None
    author: str = ""
    feed_title: str = ""
    media_type: MediaType = MediaType.ARTICLE
    video_id: str = ""
    audio_url: str = ""

    read: bool = False
    starred: bool = False
    saved: bool = False
    saved_file_path: str | None = None
    tags: list[Tag] = Field(default_factory=list)

    @property
    def key(self) -> ItemKey:
        return ItemKey(self.feed_url, self.guid)

    def has_tag(self, name: str) -> bool:
        if name.lower() == SAVED_TAG_NAME:
            return any(is_saved_tag(t) for t in self.tags)
        return any(t.name == name for t in self.tags)

    def add_tag(self, tag: Tag) -> bool:
        """Append a tag unless one with the same name is present."""
        if self.has_tag(tag.name):
            return False
        self.tags.append(tag)
        return True

    def mark_saved(self, path: str, *, add_tag: bool) -> None:
        """Record that this item's note exists at ``path``."""
        self.saved = True
        self.saved_file_path = path
        if add_tag:
            self.add_tag(saved_tag())

    def clear_saved(self) -> None:
        """Drop the saved flag, the path and every ``saved`` marker tag."""
        self.saved = False
        self.saved_file_path = None
        self.tags = [t for t in self.tags if not is_saved_tag(t)]


# ---------------------------------------------------------------------------
# Feeds
# ---------------------------------------------------------------------------


class Feed(BaseModel):
    """A remote source and the items most recently fetched from it.

    ``items`` is in fetch order (newest fetch first), not necessarily
    chronological.
    """

    title: str
    url: str
    folder: str = ""
    items: list[Item] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=datetime.now)
    media_type: MediaType = MediaType.ARTICLE
    auto_delete_duration: int | None = None
    max_items_limit: int = 50
    scan_interval: int | None = None


class FeedDescriptor(BaseModel):
    """A newly discovered feed waiting in the background import queue."""

    title: str
    url: str
    folder: str = ""
    media_type: MediaType = MediaType.ARTICLE
    auto_delete_duration: int | None = None
    max_items_limit: int = 50
    scan_interval: int | None = None
    import_status: ImportStatus = ImportStatus.PENDING
    import_error: str | None = None

    def reset(self) -> None:
        """Return the entry to ``pending`` so it can be queued again."""
        self.import_status = ImportStatus.PENDING
        self.import_error = None

    def start(self) -> None:
        self._transition(ImportStatus.PENDING, ImportStatus.PROCESSING)

    def complete(self) -> None:
        self._transition(ImportStatus.PROCESSING, ImportStatus.COMPLETED)

    def fail(self, error: str) -> None:
        self._transition(ImportStatus.PROCESSING, ImportStatus.FAILED)
        self.import_error = error or "Unknown error"

    @property
    def is_terminal(self) -> bool:
        return self.import_status in (ImportStatus.COMPLETED, ImportStatus.FAILED)

    def to_feed(self) -> Feed:
        """Build the empty registry record shown while the import runs."""
        return Feed(
            title=self.title,
            url=self.url,
            folder=self.folder,
            media_type=self.media_type,
            auto_delete_duration=self.auto_delete_duration,
            max_items_limit=self.max_items_limit or 50,
            scan_interval=self.scan_interval,
        )

    def _transition(self, expected: ImportStatus, target: ImportStatus) -> None:
        if self.import_status != expected:
            raise ImportStateError(
                f"Cannot move {self.url} from {self.import_status} to {target}"
            )
        self.import_status = target


class FetchedFeed(BaseModel):
    """What the feed fetch operation returns for one URL."""

    title: str = ""
    items: list[Item] = Field(default_factory=list)
    media_type: MediaType = MediaType.ARTICLE


# ---------------------------------------------------------------------------
# Persisted state
# ---------------------------------------------------------------------------


class DashboardState(BaseModel):
    """Everything written to the state file: the feed registry."""

    feeds: list[Feed] = Field(default_factory=list)
    last_saved: datetime | None = None
