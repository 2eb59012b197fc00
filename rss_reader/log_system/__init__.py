"""Logging setup for rss_reader."""

from .unified_logger import UnifiedLogger

__all__ = ["UnifiedLogger"]
