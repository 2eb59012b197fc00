"""MCP server package initialization"""

from rss_reader.server.app import create_app, create_mcp_server, main

__all__ = ["create_app", "create_mcp_server", "main"]
