"""Feed fetching service.

This module downloads feed documents over HTTP and hands them to the parser.
Each feed is fetched on its own; a failing feed never stops the others.
"""

from dataclasses import dataclass
from typing import AsyncIterator, Iterable, Optional

import httpx

from rss_reader.config import ServerConfig
from rss_reader.errors import FeedReaderError, MalformedDocument, NetworkFailure
from rss_reader.log_system.unified_logger import UnifiedLogger
from rss_reader.models.schemas import Feed
from rss_reader.services.feed_parser import FeedContext, ParsedFeed, parse_feed


@dataclass
class FetchResult:
    """Outcome of fetching one feed."""

    feed: Feed
    parsed: Optional[ParsedFeed] = None
    error: Optional[FeedReaderError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class FeedFetcher:
    """Fetches and parses feed documents."""

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or ServerConfig()
        self.transport = transport

    async def download(self, url: str) -> bytes:
        """GET url and return the response body.

        Raises:
            NetworkFailure: On transport errors, unusable URLs or non-2xx responses
        """
        logger = UnifiedLogger.get_logger(__name__)
        logger.info(f"Fetching feed: {url}")

        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=self.config.fetch_timeout,
            headers={"User-Agent": self.config.user_agent},
            transport=self.transport,
        ) as client:
            try:
                response = await client.get(url)
                response.raise_for_status()
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                raise NetworkFailure(url, str(e)) from e

        return response.content

    async def fetch(self, feed: Feed) -> ParsedFeed:
        """Download and parse one feed.

        Args:
            feed: Feed to fetch

        Returns:
            ParsedFeed whose articles belong to feed.id

        Raises:
            NetworkFailure: If the download fails
            MalformedDocument: If the body is not well-formed XML
        """
        body = await self.download(feed.url)
        return parse_feed(body, FeedContext(feed_id=feed.id))

    async def fetch_one(self, feed: Feed) -> FetchResult:
        """Fetch one feed, capturing a failure in the result instead of raising."""
        logger = UnifiedLogger.get_logger(__name__)

        try:
            parsed = await self.fetch(feed)
        except (NetworkFailure, MalformedDocument) as e:
            logger.error(f"Error fetching {feed.url}: {e}")
            return FetchResult(feed=feed, error=e)

        return FetchResult(feed=feed, parsed=parsed)

    async def fetch_each(self, feeds: Iterable[Feed]) -> AsyncIterator[FetchResult]:
        """Fetch feeds one after another.

        The next feed is only requested once the caller has consumed the
        previous result, so callers can persist between fetches.
        """
        for feed in feeds:
            yield await self.fetch_one(feed)
