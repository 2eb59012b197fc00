"""Fixtures for MCP protocol tests.

The server runs in-process and is reached through an in-memory client
session, so every call goes through the real MCP request handling.
"""

import pytest
from mcp import types
from mcp.shared.memory import create_connected_server_and_client_session

from rss_reader.config import ServerConfig
from rss_reader.server.app import create_mcp_server
from rss_reader.services.feed_fetcher import FeedFetcher
from rss_reader.services.feed_service import FeedService
from rss_reader.storage.store import SQLiteStore


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def mcp_session(tmp_path):
    """Client session connected to a server with an empty database.

    Yields:
        (session, transport) tuple
    """
    config = ServerConfig(
        db_path=tmp_path / "rss_reader.db",
        export_dir=tmp_path / "export",
        refresh_debounce=0.05,
    )
    service = FeedService(
        store=SQLiteStore(config.db_path),
        fetcher=FeedFetcher(config),
        config=config,
    )
    server = create_mcp_server(config, service)

    try:
        async with create_connected_server_and_client_session(server._mcp_server) as session:
            yield session, "memory"
    finally:
        await service.close()


def extract_text_content(result: types.CallToolResult) -> str:
    """Return the text of the first text block in a tool result."""
    for content in result.content:
        if isinstance(content, types.TextContent):
            return content.text
    raise AssertionError(f"No text content in result: {result}")


def extract_error_text(result: types.CallToolResult) -> str:
    """Return all text blocks of an error result joined together."""
    return " ".join(
        content.text for content in result.content if isinstance(content, types.TextContent)
    )
