"""Saving articles to the vault and keeping saved state in sync with it."""

from feedvault.articles.extraction import (
    DEFAULT_FALLBACKS,
    UrlRewriteFallback,
    absolutize_urls,
    extract_main_content,
    fetch_full_content,
)
from feedvault.articles.markdown import to_markdown
from feedvault.articles.models import (
    ArticleSavingSettings,
    ReconcileReport,
    SaveResult,
)
from feedvault.articles.reconciler import SavedStateReconciler
from feedvault.articles.saver import ArticleSaver
from feedvault.articles.templates import (
    normalize_path,
    note_path,
    render_body,
    render_frontmatter,
    sanitize_filename,
)

__all__ = [
    "ArticleSaver",
    "ArticleSavingSettings",
    "DEFAULT_FALLBACKS",
    "ReconcileReport",
    "SaveResult",
    "SavedStateReconciler",
    "UrlRewriteFallback",
    "absolutize_urls",
    "extract_main_content",
    "fetch_full_content",
    "normalize_path",
    "note_path",
    "render_body",
    "render_frontmatter",
    "sanitize_filename",
    "to_markdown",
]
