"""Local-directory content store (an Obsidian-style vault)."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from feedvault.errors import StoreError
from feedvault.store.base import ContentStoreAdapter

logger = logging.getLogger(__name__)


class VaultStore(ContentStoreAdapter):
    """Content store backed by a directory on disk.

    Blocking filesystem calls run in a worker thread via
    :func:`asyncio.to_thread`.
    """

    def __init__(self, root: Path) -> None:
        self._root = root.expanduser().resolve()

    @property
    def root(self) -> Path:
        return self._root

    # ── Private helpers ──────────────────────────────────────────

    def _resolve(self, path: str) -> Path:
        cleaned = path.strip("/")
        if not cleaned:
            raise StoreError("Empty store path")
        target = (self._root / cleaned).resolve()
        if target != self._root and self._root not in target.parents:
            raise StoreError(f"Path escapes the vault: {path}")
        return target

    def _create(self, path: str, content: str) -> str:
        target = self._resolve(path)
        if target.exists():
            raise StoreError(f"File already exists: {path}")
        if not target.parent.is_dir():
            raise StoreError(f"Folder does not exist: {target.parent.relative_to(self._root)}")
        try:
            with open(target, "x", encoding="utf-8") as f:
                f.write(content)
        except OSError as exc:
            raise StoreError(f"Could not write {path}: {exc}") from exc
        return path.strip("/")

    def _remove(self, path: str) -> None:
        target = self._resolve(path)
        if not target.is_file():
            raise StoreError(f"File not found: {path}")
        try:
            target.unlink()
        except OSError as exc:
            raise StoreError(f"Could not remove {path}: {exc}") from exc

    def _rename(self, old_path: str, new_path: str) -> None:
        source = self._resolve(old_path)
        target = self._resolve(new_path)
        if not source.is_file():
            raise StoreError(f"File not found: {old_path}")
        if target.exists():
            raise StoreError(f"File already exists: {new_path}")
        if not target.parent.is_dir():
            raise StoreError(f"Folder does not exist for {new_path}")
        try:
            source.rename(target)
        except OSError as exc:
            raise StoreError(f"Could not rename {old_path} to {new_path}: {exc}") from exc

    def _ensure_folder(self, path: str) -> None:
        target = self._resolve(path)
        if target.is_dir():
            return
        try:
            target.mkdir()
        except OSError as exc:
            raise StoreError(f"Could not create folder {path}: {exc}") from exc
        logger.debug("Created folder %s", path)

    # ── ContentStoreAdapter ──────────────────────────────────────

    async def exists(self, path: str) -> bool:
        target = self._resolve(path)
        return await asyncio.to_thread(target.exists)

    async def create(self, path: str, content: str) -> str:
        return await asyncio.to_thread(self._create, path, content)

    async def remove(self, path: str) -> None:
        await asyncio.to_thread(self._remove, path)

    async def rename(self, old_path: str, new_path: str) -> None:
        await asyncio.to_thread(self._rename, old_path, new_path)

    async def ensure_folder(self, path: str) -> None:
        await asyncio.to_thread(self._ensure_folder, path)

    async def read(self, path: str) -> str:
        """Return the text content of a file."""
        target = self._resolve(path)
        try:
            return await asyncio.to_thread(target.read_text, encoding="utf-8")
        except OSError as exc:
            raise StoreError(f"Could not read {path}: {exc}") from exc
