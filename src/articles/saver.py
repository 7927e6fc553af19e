"""Article persistence: render an item to a note and write it to the store."""

from __future__ import annotations

import logging

from feedvault.articles.extraction import UrlRewriteFallback, fetch_full_content
from feedvault.articles.markdown import to_markdown
from feedvault.articles.models import ArticleSavingSettings, SaveResult
from feedvault.articles.templates import (
    normalize_path,
    note_path,
    render_body,
    render_frontmatter,
)
from feedvault.errors import FolderCreationError, StoreError
from feedvault.feeds.models import Item
from feedvault.store.base import ContentStoreAdapter, ensure_folder_chain

logger = logging.getLogger(__name__)


class ArticleSaver:
    """Writes items to the content store and stamps them as saved."""

    def __init__(
        self,
        store: ContentStoreAdapter,
        settings: ArticleSavingSettings,
        *,
        fallbacks: list[UrlRewriteFallback] | None = None,
    ) -> None:
        self._store = store
        self._settings = settings
        self._fallbacks = fallbacks

    @property
    def settings(self) -> ArticleSavingSettings:
        return self._settings

    async def save(
        self,
        item: Item,
        folder: str | None = None,
        template: str | None = None,
        raw_content: str | None = None,
    ) -> SaveResult:
        """Render ``item`` and write it to the store.

        An existing note at the same path is replaced (last write wins).
        The item is only marked saved once the write succeeded.

        Args:
            item: The item to save.
            folder: Target folder; defaults to the configured folder.
            template: Body template; defaults to the configured template.
            raw_content: Full-article markdown. When given it is written
                verbatim after the frontmatter instead of the template.

        Returns:
            The outcome, with the written path on success.
        """
        target_folder = normalize_path(folder or self._settings.default_folder or "")
        path = note_path(target_folder, item.title)

        try:
            await ensure_folder_chain(self._store, target_folder)

            if await self._store.exists(path):
                logger.debug("Replacing existing note %s", path)
                await self._store.remove(path)

            content = self._compose(item, template, raw_content)
            written = await self._store.create(path, content)
        except FolderCreationError as exc:
            logger.warning("%s", exc)
            return SaveResult(error=str(exc))
        except StoreError as exc:
            logger.warning("Error saving article '%s': %s", item.title, exc)
            return SaveResult(error=f"Error saving article: {exc}")

        item.mark_saved(written, add_tag=self._settings.add_saved_tag)
        logger.info("Article saved: %s", written)
        return SaveResult(success=True, path=written, used_full_content=raw_content is not None)

    async def save_with_full_content(
        self,
        item: Item,
        folder: str | None = None,
        template: str | None = None,
    ) -> SaveResult:
        """Save the full article text, falling back to the feed's own fields."""
        html = await fetch_full_content(
            item.link,
            fallbacks=self._fallbacks,
            timeout=self._settings.fetch_timeout,
        )
        if not html:
            logger.info("Could not fetch full content for '%s'; saving available content", item.title)
            return await self.save(item, folder, template)

        try:
            markdown = to_markdown(html)
        except Exception as exc:
            logger.warning("Could not convert full content for '%s': %s", item.title, exc)
            return await self.save(item, folder, template)
        if not markdown:
            return await self.save(item, folder, template)
        return await self.save(item, folder, template, raw_content=markdown)

    def _compose(self, item: Item, template: str | None, raw_content: str | None) -> str:
        if raw_content is not None:
            content = ""
            if self._settings.include_frontmatter:
                content += render_frontmatter(item, self._settings)
            return content + raw_content
        body_template = template or self._settings.default_template
        return render_body(item, body_template, self._settings)
