"""RSS/Atom feed fetcher built on feedparser."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import re
from calendar import timegm
from datetime import datetime, timezone

import feedparser

from feedvault.errors import FeedFetchError
from feedvault.feeds.models import Feed, FetchedFeed, Item, MediaType
from feedvault.feeds.services import merge_items

logger = logging.getLogger(__name__)

_USER_AGENT = "feedvault/0.4 (+https://github.com/feedvault/feedvault)"

_YOUTUBE_HOSTS = ("youtube.com", "youtu.be")

_SUMMARY_CHARS = 300


class FeedFetcher:
    """Fetches a feed URL and converts its entries into :class:`Item` objects."""

    def __init__(self, *, user_agent: str = _USER_AGENT) -> None:
        self._user_agent = user_agent

    async def fetch(self, url: str, existing: Feed | None = None) -> FetchedFeed:
        """Fetch and parse one feed.

        Args:
            url: Feed URL.
            existing: The registered feed, if any. Its title is used when
                the remote feed has none, and items it already holds keep
                their read/saved/tag state.

        Returns:
            Title, items (newest fetch order) and detected media type.

        Raises:
            FeedFetchError: On network or parse failure.
        """
        parsed = await asyncio.to_thread(self._parse, url)

        if parsed.bozo and not parsed.entries:
            raise FeedFetchError(url, f"Feed error: {parsed.get('bozo_exception', 'unreadable feed')}")
        status = parsed.get("status")
        if status is not None and status >= 400 and not parsed.entries:
            raise FeedFetchError(url, f"HTTP {status}")

        title = parsed.feed.get("title", "") or (existing.title if existing else "")
        items: list[Item] = []
        for entry in parsed.entries:
            item = self._entry_to_item(entry, feed_url=url, feed_title=title)
            if item is not None:
                items.append(item)

        media_type = _detect_media_type(url, items)
        if existing is not None:
            items = merge_items(existing.items, items, existing.max_items_limit)

        logger.debug("Fetched %d items from %s", len(items), url)
        return FetchedFeed(title=title, items=items, media_type=media_type)

    def _parse(self, url: str) -> feedparser.FeedParserDict:
        try:
            return feedparser.parse(url, agent=self._user_agent)
        except Exception as exc:
            raise FeedFetchError(url, f"Fetch failed: {exc}") from exc

    @staticmethod
    def _entry_to_item(
        entry: feedparser.FeedParserDict,
        *,
        feed_url: str,
        feed_title: str,
    ) -> Item | None:
        """Convert a feedparser entry to an Item."""
        link = entry.get("link", "")
        title = entry.get("title", "")
        if not link and not title:
            return None

        guid = entry.get("id") or link or hashlib.sha256(title.encode()).hexdigest()[:16]
        description = _extract_description(entry)
        summary = _strip_html(entry.get("summary", "") or description)
        if len(summary) > _SUMMARY_CHARS:
            summary = summary[:_SUMMARY_CHARS] + "..."

        media_type = MediaType.ARTICLE
        video_id = entry.get("yt_videoid", "")
        audio_url = ""
        if video_id or _is_youtube(link):
            media_type = MediaType.VIDEO
            video_id = video_id or _youtube_id(link)
        else:
            audio_url = _audio_enclosure(entry)
            if audio_url:
                media_type = MediaType.PODCAST

        return Item(
            feed_url=feed_url,
            guid=guid,
            title=title,
            link=link,
            description=description,
            summary=summary,
            pub_date=_parse_date(entry),
            author=entry.get("author", ""),
            feed_title=feed_title,
            media_type=media_type,
            video_id=video_id,
            audio_url=audio_url,
        )


def _extract_description(entry: feedparser.FeedParserDict) -> str:
    """Best available HTML body for an entry: longest content block, else summary."""
    content_list = entry.get("content", [])
    if content_list:
        best = max(content_list, key=lambda c: len(c.get("value", "")))
        return best.get("value", "")
    return entry.get("summary", "")


def _parse_date(entry: feedparser.FeedParserDict) -> datetime | None:
    for field in ("published_parsed", "updated_parsed"):
        time_struct = entry.get(field)
        if time_struct:
            try:
                return datetime.fromtimestamp(timegm(time_struct), tz=timezone.utc)
            except (ValueError, OverflowError):
                continue
    return None


def _audio_enclosure(entry: feedparser.FeedParserDict) -> str:
    for enclosure in entry.get("enclosures", []):
        if enclosure.get("type", "").startswith("audio/"):
            return enclosure.get("href", "")
    return ""


def _is_youtube(url: str) -> bool:
    return any(host in url for host in _YOUTUBE_HOSTS)


def _youtube_id(url: str) -> str:
    m = re.search(r"(?:v=|youtu\.be/|/shorts/)([\w-]{11})", url)
    return m.group(1) if m else ""


def _detect_media_type(url: str, items: list[Item]) -> MediaType:
    if _is_youtube(url) or any(i.media_type == MediaType.VIDEO for i in items):
        return MediaType.VIDEO
    if any(i.media_type == MediaType.PODCAST for i in items):
        return MediaType.PODCAST
    return MediaType.ARTICLE


def _strip_html(html: str) -> str:
    """Rough HTML tag stripping for feed summaries."""
    text = re.sub(r"<[^>]+>", "", html)
    text = text.replace("&amp;", "&")
    text = text.replace("&lt;", "<")
    text = text.replace("&gt;", ">")
    text = text.replace("&quot;", '"')
    text = text.replace("&#39;", "'")
    text = text.replace("&nbsp;", " ")
    text = re.sub(r"\s+", " ", text)
    return text.strip()
