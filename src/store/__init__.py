"""Content store adapters: where saved articles are written."""

from feedvault.store.base import ContentStoreAdapter, ensure_folder_chain
from feedvault.store.vault import VaultStore

__all__ = [
    "ContentStoreAdapter",
    "VaultStore",
    "ensure_folder_chain",
]
