"""rss_reader - MCP Server

This module implements the MCP server using FastMCP with multi-transport support
(STDIO, SSE, and Streamable HTTP). The feed service is built once here and
handed to every tool.
"""

import asyncio
import os
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings

from rss_reader.config import ServerConfig, get_config
from rss_reader.log_system.unified_logger import UnifiedLogger
from rss_reader.services.feed_service import FeedService
from rss_reader.tools.feed_tools import build_feed_tools


def create_mcp_server(
    config: Optional[ServerConfig] = None,
    service: Optional[FeedService] = None,
) -> FastMCP:
    """Create and configure the MCP server.

    Args:
        config: Optional server configuration
        service: Optional pre-built feed service (built from config if not given)

    Returns:
        Configured FastMCP server instance
    """
    if config is None:
        config = get_config()

    UnifiedLogger.initialize_default(config)
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"Server config: {config.name} at log level {config.log_level}")

    if service is None:
        service = FeedService.create(config)

    # Configure DNS rebinding protection (disabled by default for development)
    dns_protection = os.getenv("MCP_DNS_REBINDING_PROTECTION", "false").lower() == "true"
    allowed_hosts_env = os.getenv("MCP_ALLOWED_HOSTS", "")
    allowed_hosts = [h.strip() for h in allowed_hosts_env.split(",") if h.strip()] if allowed_hosts_env else []

    logger.info(f"DNS rebinding protection: {'enabled' if dns_protection else 'disabled'}")
    if dns_protection and allowed_hosts:
        logger.info(f"Allowed hosts: {allowed_hosts}")

    mcp_server = FastMCP(
        config.name or "rss_reader",
        transport_security=TransportSecuritySettings(
            enable_dns_rebinding_protection=dns_protection,
            allowed_hosts=allowed_hosts
        )
    )

    register_tools(mcp_server, service)

    logger.info("Server initialization complete")
    return mcp_server


def register_tools(mcp_server: FastMCP, service: FeedService) -> None:
    """Register all feed tools with the server."""
    logger = UnifiedLogger.get_logger(__name__)

    for tool_func in build_feed_tools(service):
        mcp_server.tool(name=tool_func.__name__)(tool_func)
        logger.info(f"Registered feed tool: {tool_func.__name__}")

    logger.info(f"Server '{mcp_server.name}' initialized")


def create_app(config: Optional[ServerConfig] = None) -> Tuple[FastMCP, FeedService]:
    """Build the feed service and the server that exposes it."""
    if config is None:
        config = get_config()
    service = FeedService.create(config)
    return create_mcp_server(config, service), service


@click.command()
@click.option(
    "--port",
    default=3001,
    help="Port to listen on for SSE or Streamable HTTP transport"
)
@click.option(
    "--host",
    default="127.0.0.1",
    help="Host to bind to (use 0.0.0.0 for Docker)"
)
@click.option(
    "--transport",
    type=click.Choice(["stdio", "sse", "streamable-http"]),
    default="stdio",
    help="Transport type (stdio, sse, or streamable-http)"
)
@click.option(
    "--db-path",
    type=click.Path(dir_okay=False),
    default=None,
    help="SQLite database file (overrides RSS_READER_DB_PATH)"
)
def main(port: int, host: str, transport: str, db_path: Optional[str]) -> int:
    """Run the rss_reader server with specified transport."""
    config = get_config()
    if db_path:
        config.db_path = Path(db_path).expanduser()

    server, service = create_app(config)
    logger = UnifiedLogger.get_logger(__name__)

    async def run_server():
        """Inner async function to run the server and manage the event loop."""
        try:
            if transport == "stdio":
                logger.info("Starting server with STDIO transport")
                await server.run_stdio_async()
            elif transport == "sse":
                logger.info(f"Starting server with SSE transport on {host}:{port}")
                server.settings.host = host
                server.settings.port = port
                await server.run_sse_async()
            elif transport == "streamable-http":
                logger.info(f"Starting server with Streamable HTTP transport on {host}:{port}")
                server.settings.host = host
                server.settings.port = port
                server.settings.streamable_http_path = "/mcp"
                await server.run_streamable_http_async()
            else:
                raise ValueError(f"Unknown transport: {transport}")
        finally:
            await service.close()
            UnifiedLogger.close()

    try:
        asyncio.run(run_server())
        return 0
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
        return 0
    except Exception as e:
        logger.error(f"Failed to start server: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
