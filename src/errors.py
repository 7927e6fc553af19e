"""Exception hierarchy for feedvault.

Network and store failures are normally caught at the pipeline boundary
and turned into result objects; these types are what crosses module
seams before that happens.
"""

from __future__ import annotations


class FeedvaultError(Exception):
    """Base class for all feedvault errors."""


class StoreError(FeedvaultError):
    """A content store operation (create, remove, rename) failed."""


class FolderCreationError(StoreError):
    """A folder in the target chain could not be created."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Failed to create folder: {path}")
        self.path = path


class FeedFetchError(FeedvaultError):
    """Fetching or parsing a remote feed failed."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{reason} ({url})")
        self.url = url
        self.reason = reason


class ImportStateError(FeedvaultError):
    """An import queue entry was moved through an invalid transition."""


class ConfigError(FeedvaultError):
    """Configuration could not be applied."""
