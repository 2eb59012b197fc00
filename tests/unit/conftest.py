"""Shared fixtures for unit tests."""

from typing import Iterable, Optional, Tuple
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from rss_reader.config import ServerConfig
from rss_reader.services.feed_fetcher import FeedFetcher
from rss_reader.services.feed_service import FeedService
from rss_reader.storage.store import SQLiteStore

# (title, link, pubDate, description)
Item = Tuple[str, str, Optional[str], Optional[str]]


def rss_document(
    items: Iterable[Item],
    title: str = "Test Blog",
    link: str = "https://example.com",
) -> bytes:
    """Build a small RSS 2.0 document."""
    parts = []
    for item_title, item_link, pub_date, description in items:
        parts.append("<item>")
        parts.append(f"<title>{item_title}</title>")
        parts.append(f"<link>{item_link}</link>")
        if pub_date is not None:
            parts.append(f"<pubDate>{pub_date}</pubDate>")
        if description is not None:
            parts.append(f"<description><![CDATA[{description}]]></description>")
        parts.append("</item>")

    return f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>{title}</title>
    <link>{link}</link>
    <description>A test feed</description>
    {''.join(parts)}
  </channel>
</rss>
""".encode("utf-8")


class FakeHTTP:
    """Responses served by the patched httpx client, keyed by URL."""

    def __init__(self):
        self.responses = {}
        self.requested = []

    def serve(self, url: str, body: bytes) -> None:
        self.responses[url] = body

    def fail(self, url: str, error: Exception) -> None:
        self.responses[url] = error


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def http():
    """Patch httpx.AsyncClient in the fetcher.

    URLs without a registered response fail with a connection error.
    """
    fake = FakeHTTP()

    async def mock_get(url, **kwargs):
        fake.requested.append(url)
        value = fake.responses.get(url)
        if value is None:
            raise httpx.ConnectError(f"Connection refused: {url}")
        if isinstance(value, Exception):
            raise value

        mock_response = MagicMock()
        mock_response.status_code = 200
        mock_response.content = value
        mock_response.raise_for_status = MagicMock()
        return mock_response

    with patch("rss_reader.services.feed_fetcher.httpx.AsyncClient") as mock_client:
        mock_instance = AsyncMock()
        mock_instance.get = mock_get
        mock_instance.__aenter__ = AsyncMock(return_value=mock_instance)
        mock_instance.__aexit__ = AsyncMock(return_value=None)
        mock_client.return_value = mock_instance

        yield fake


@pytest.fixture
def config(tmp_path):
    return ServerConfig(
        db_path=tmp_path / "rss_reader.db",
        export_dir=tmp_path / "export",
        refresh_debounce=0.05,
    )


@pytest.fixture
async def store():
    """In-memory store, closed after the test."""
    memory_store = SQLiteStore(":memory:")
    yield memory_store
    await memory_store.close()


@pytest.fixture
async def service(store, config):
    feed_service = FeedService(store=store, fetcher=FeedFetcher(config), config=config)
    yield feed_service
    await feed_service.debouncer.close()
