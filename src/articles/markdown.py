"""HTML to markdown conversion for saved notes."""

from __future__ import annotations

from typing import Any

from markdownify import MarkdownConverter


class ArticleMarkdownConverter(MarkdownConverter):
    """markdownify converter that leaves inline math untouched.

    ``<span class="math">`` holds TeX source; converting it would escape
    underscores and asterisks and break the formula, so its raw text is
    emitted instead.
    """

    def convert_span(self, el: Any, text: str, *args: Any, **kwargs: Any) -> str:
        if "math" in (el.get("class") or []):
            return el.get_text()
        return text


def to_markdown(html: str) -> str:
    """Convert an HTML fragment to markdown."""
    if not html:
        return ""
    converter = ArticleMarkdownConverter(heading_style="ATX", bullets="-")
    return converter.convert(html).strip()
