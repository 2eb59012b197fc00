"""Data models for rss_reader."""

from .schemas import Article, Feed

__all__ = ["Article", "Feed"]
