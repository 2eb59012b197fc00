"""MCP tools for rss_reader."""

from .feed_tools import build_feed_tools

__all__ = ["build_feed_tools"]
