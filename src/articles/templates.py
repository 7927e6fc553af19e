"""Note rendering: filenames, frontmatter and the body template grammar."""

from __future__ import annotations

import re
from datetime import datetime

from feedvault.articles.extraction import clean_html
from feedvault.articles.markdown import to_markdown
from feedvault.articles.models import DEFAULT_FRONTMATTER, ArticleSavingSettings
from feedvault.feeds.models import SAVED_TAG_NAME, Item, MediaType

_ILLEGAL_FILENAME_CHARS = re.compile(r'[/\\:*?"<>|]')
_MAX_FILENAME_WORDS = 5
_MAX_FILENAME_CHARS = 50
_FALLBACK_FILENAME = "Untitled"


def sanitize_filename(title: str) -> str:
    """Derive a note filename (without extension) from an item title.

    Strips characters illegal on common filesystems, collapses
    whitespace, keeps the first five words and caps the result at 50
    characters.
    """
    cleaned = _ILLEGAL_FILENAME_CHARS.sub("", title)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    shortened = " ".join(cleaned.split(" ")[:_MAX_FILENAME_WORDS])
    shortened = shortened[:_MAX_FILENAME_CHARS].strip()
    return shortened or _FALLBACK_FILENAME


def normalize_path(path: str | None) -> str:
    """Strip leading and trailing path separators."""
    if not path or not path.strip():
        return ""
    return path.strip("/")


def note_path(folder: str, title: str) -> str:
    """Deterministic vault path for an item's note."""
    filename = sanitize_filename(title)
    folder = normalize_path(folder)
    return f"{folder}/{filename}.md" if folder else f"{filename}.md"


def tags_string(item: Item, settings: ArticleSavingSettings) -> str:
    """Comma-separated tag names, with the saved marker appended when configured."""
    tags = ", ".join(tag.name for tag in item.tags)
    if settings.add_saved_tag and SAVED_TAG_NAME not in tags.lower():
        tags = f"{tags}, {SAVED_TAG_NAME}" if tags else SAVED_TAG_NAME
    return tags


def _quoted(value: str) -> str:
    return value.replace('"', '\\"')


def _substitute(template: str, values: dict[str, str]) -> str:
    """Replace every ``{{name}}`` placeholder in a single pass.

    Unknown placeholders stay as they are, and substituted text is never
    re-scanned.
    """

    def replace(m: re.Match[str]) -> str:
        return values.get(m.group(1), m.group(0))

    return re.sub(r"\{\{(\w+)\}\}", replace, template)


def render_frontmatter(
    item: Item,
    settings: ArticleSavingSettings,
    now: datetime | None = None,
) -> str:
    """Render the YAML frontmatter block for a full-content note."""
    template = settings.frontmatter_template or DEFAULT_FRONTMATTER
    now = now or datetime.now()

    frontmatter = _substitute(
        template,
        {
            "title": _quoted(item.title),
            "date": now.isoformat(),
            "tags": tags_string(item, settings),
            "source": _quoted(item.feed_title),
            "link": item.link,
            "author": _quoted(item.author),
            "feedTitle": _quoted(item.feed_title),
            "guid": _quoted(item.guid),
        },
    )

    if item.media_type == MediaType.VIDEO and item.video_id:
        frontmatter = frontmatter.replace(
            "---\n", f'---\nmediaType: video\nvideoId: "{item.video_id}"\n', 1
        )
    elif item.media_type == MediaType.PODCAST and item.audio_url:
        frontmatter = frontmatter.replace(
            "---\n", f'---\nmediaType: podcast\naudioUrl: "{item.audio_url}"\n', 1
        )

    return frontmatter + "\n"


def _long_date(value: datetime | None) -> str:
    if value is None:
        return ""
    return f"{value:%B} {value.day}, {value.year}"


def render_body(item: Item, template: str, settings: ArticleSavingSettings) -> str:
    """Render a note from the body template grammar.

    Placeholders: ``{{title}} {{date}} {{isoDate}} {{link}} {{author}}
    {{source}} {{feedTitle}} {{summary}} {{content}} {{tags}} {{guid}}``.
    ``{{content}}`` is the item's HTML description, cleaned and converted
    to markdown.
    """
    content = to_markdown(clean_html(item.description, item.link))
    return _substitute(
        template,
        {
            "title": item.title,
            "date": _long_date(item.pub_date),
            "isoDate": item.pub_date.isoformat() if item.pub_date else "",
            "link": item.link,
            "author": item.author,
            "source": item.feed_title,
            "feedTitle": item.feed_title,
            "summary": item.summary,
            "content": content,
            "tags": tags_string(item, settings),
            "guid": item.guid,
        },
    )
