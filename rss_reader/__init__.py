"""rss_reader - RSS/OPML feed reader core with an MCP tool server."""

__version__ = "0.1.0"
