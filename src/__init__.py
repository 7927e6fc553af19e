"""feedvault: import feeds, save articles to a markdown vault, keep both in sync."""

__version__ = "0.4.0"
