"""Storage layer for rss_reader."""

from .store import MEMORY_DB, SQLiteStore

__all__ = [
    "MEMORY_DB",
    "SQLiteStore",
]
