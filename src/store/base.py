"""Base class for path-addressed content stores."""

from __future__ import annotations

from abc import ABC, abstractmethod

from feedvault.errors import FolderCreationError, StoreError


class ContentStoreAdapter(ABC):
    """Hierarchical, path-addressed document store.

    Paths are ``/``-separated and relative to the store root. Every
    operation is a coroutine so callers suspend at the I/O boundary
    rather than blocking the event loop.
    """

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Whether a file or folder exists at ``path``."""

    @abstractmethod
    async def create(self, path: str, content: str) -> str:
        """Create a new file and return its path.

        Raises:
            StoreError: If the file already exists or cannot be written.
        """

    @abstractmethod
    async def remove(self, path: str) -> None:
        """Delete the file at ``path``.

        Raises:
            StoreError: If the file is missing or cannot be removed.
        """

    @abstractmethod
    async def rename(self, old_path: str, new_path: str) -> None:
        """Move a file to a new path.

        Raises:
            StoreError: If the source is missing or the target exists.
        """

    @abstractmethod
    async def ensure_folder(self, path: str) -> None:
        """Create a single folder whose parent already exists.

        A no-op when the folder is already present.

        Raises:
            StoreError: If the folder cannot be created.
        """


async def ensure_folder_chain(store: ContentStoreAdapter, folder: str) -> None:
    """Create each missing segment of ``folder``, parent first.

    Raises:
        FolderCreationError: Naming the first segment that could not be created.
    """
    current = ""
    for segment in (s for s in folder.strip("/").split("/") if s):
        current = f"{current}/{segment}" if current else segment
        try:
            if not await store.exists(current):
                await store.ensure_folder(current)
        except StoreError as exc:
            raise FolderCreationError(current) from exc
