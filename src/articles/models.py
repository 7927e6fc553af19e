"""Data models for article saving and reconciliation."""

from __future__ import annotations

from pydantic import BaseModel

DEFAULT_TEMPLATE = "# {{title}}\n\n{{content}}\n\n[Source]({{link}})"

DEFAULT_FRONTMATTER = """---
title: "{{title}}"
date: {{date}}
tags: [{{tags}}]
source: "{{source}}"
link: {{link}}
author: "{{author}}"
feedTitle: "{{feedTitle}}"
guid: "{{guid}}"
---"""


class ArticleSavingSettings(BaseModel):
    """How saved articles are laid out in the vault."""

    default_folder: str = "RSS articles"
    default_template: str = DEFAULT_TEMPLATE
    include_frontmatter: bool = True
    frontmatter_template: str = ""
    add_saved_tag: bool = True
    fetch_full_content: bool = False
    fetch_timeout: float | None = None


class SaveResult(BaseModel):
    """Outcome of a save attempt. Always safe to inspect."""

    success: bool = False
    path: str = ""
    error: str = ""
    used_full_content: bool = False


class ReconcileReport(BaseModel):
    """Counts from one reconciliation pass."""

    fixed: int = 0
    verified: int = 0
    cleared: int = 0
    adopted: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.fixed or self.cleared or self.adopted)
