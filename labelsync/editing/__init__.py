"""In-memory drafts and dirty tracking for the open episode."""

from labelsync.editing.cache import CacheSnapshot, EditCache

__all__ = ["CacheSnapshot", "EditCache"]
