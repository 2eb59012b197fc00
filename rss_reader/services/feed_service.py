"""Feed service.

FeedService is the single writer for the store. Every mutation loads the
whole collection, changes it and saves it back while holding one lock, then
publishes an ArticlesChanged event so the unread counter and any other
subscriber see the new state.
"""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Union

from rss_reader.config import ServerConfig
from rss_reader.errors import DuplicateFeed, FeedNotFound
from rss_reader.log_system.unified_logger import UnifiedLogger
from rss_reader.models.schemas import Article, Feed
from rss_reader.services.events import (
    ArticlesChanged,
    EventBus,
    FeedRefreshFailed,
    RefreshCompleted,
)
from rss_reader.services.feed_fetcher import FeedFetcher
from rss_reader.services.feed_parser import ParsedFeed, is_valid_url
from rss_reader.services.merge import merge_articles, reapply_state, replace_feed_articles
from rss_reader.services.refresh import RefreshDebouncer
from rss_reader.services.subscriptions import decode_feeds, merge_imported, write_export
from rss_reader.services.unread import UnreadCounter
from rss_reader.storage.store import SQLiteStore

ARTICLE_FILTERS = ("all", "unread", "favorites")


@dataclass
class FeedRefreshResult:
    """Outcome of refreshing one feed."""

    feed_id: str
    articles: List[Article] = field(default_factory=list)
    added: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class LibraryRefreshReport:
    results: List[FeedRefreshResult] = field(default_factory=list)

    @property
    def new_articles(self) -> int:
        return sum(result.added for result in self.results)

    @property
    def failed_feed_ids(self) -> List[str]:
        return [result.feed_id for result in self.results if not result.ok]


@dataclass
class ImportResult:
    imported: List[Feed]
    skipped: int
    feeds: List[Feed]


def _find_feed(feeds: List[Feed], feed_id: str) -> Feed:
    for feed in feeds:
        if feed.id == feed_id:
            return feed
    raise FeedNotFound(f"Feed {feed_id} not found")


class FeedService:
    """Fetch, merge and persist feeds and articles."""

    def __init__(
        self,
        store: SQLiteStore,
        fetcher: FeedFetcher,
        bus: Optional[EventBus] = None,
        counter: Optional[UnreadCounter] = None,
        config: Optional[ServerConfig] = None,
    ):
        self.config = config or ServerConfig()
        self.store = store
        self.fetcher = fetcher
        self.bus = bus or EventBus()
        self.counter = counter or UnreadCounter()
        self.counter.attach(self.bus)
        self.debouncer = RefreshDebouncer(self.refresh_all, delay=self.config.refresh_debounce)
        self._write_lock = asyncio.Lock()
        self._counter_primed = False

    @classmethod
    def create(cls, config: ServerConfig) -> "FeedService":
        """Build a service with the default store and fetcher for config."""
        return cls(
            store=SQLiteStore(config.db_path),
            fetcher=FeedFetcher(config),
            config=config,
        )

    async def close(self) -> None:
        await self.debouncer.close()
        await self.store.close()

    def _publish_articles(
        self,
        reason: str,
        articles: List[Article],
        feed_ids: Optional[Iterable[str]] = None,
    ) -> None:
        self._counter_primed = True
        self.bus.publish(ArticlesChanged(
            reason=reason,
            articles=tuple(articles),
            feed_ids=frozenset(feed_ids) if feed_ids is not None else None,
        ))

    # Feeds

    async def list_feeds(self) -> List[Feed]:
        return await self.store.load_feeds()

    async def get_feed(self, feed_id: str) -> Feed:
        """Raises FeedNotFound if there is no such feed."""
        return _find_feed(await self.store.load_feeds(), feed_id)

    async def add_feed(self, url: str, title: str = "") -> Feed:
        """Subscribe to a feed.

        The feed is fetched once: its channel title is used unless title is
        given, and its articles are stored.

        Args:
            url: Feed document URL
            title: Optional custom title

        Returns:
            The new Feed

        Raises:
            ValueError: If url is not a valid URL
            DuplicateFeed: If url is already subscribed
            NetworkFailure, MalformedDocument: If the first fetch fails
        """
        logger = UnifiedLogger.get_logger(__name__)

        url = url.strip()
        if not is_valid_url(url):
            raise ValueError(f"Invalid feed URL: {url!r}")

        feeds = await self.store.load_feeds()
        if any(feed.url == url for feed in feeds):
            raise DuplicateFeed(f"Already subscribed to {url}")

        feed = Feed(title=title.strip(), url=url)
        parsed = await self.fetcher.fetch(feed)
        feed.title = feed.title or parsed.title or url
        feed.link = parsed.homepage if is_valid_url(parsed.homepage) else None

        async with self._write_lock:
            feeds, articles = await self.store.load()
            if any(f.url == url for f in feeds):
                raise DuplicateFeed(f"Already subscribed to {url}")
            feeds.append(feed)
            articles = merge_articles(articles, parsed.articles)
            await self.store.save(feeds, articles)

        logger.info(f"Subscribed to {url} as {feed.title!r}")
        self._publish_articles("feed_added", articles, [feed.id])
        return feed

    async def update_feed(
        self,
        feed_id: str,
        title: Optional[str] = None,
        url: Optional[str] = None,
        link: Optional[str] = None,
    ) -> Feed:
        """Edit a feed's title, URL or homepage.

        Raises:
            FeedNotFound: If there is no such feed
            ValueError: If url is not a valid URL
            DuplicateFeed: If url belongs to another feed
        """
        if url is not None:
            url = url.strip()
            if not is_valid_url(url):
                raise ValueError(f"Invalid feed URL: {url!r}")

        async with self._write_lock:
            feeds = await self.store.load_feeds()
            feed = _find_feed(feeds, feed_id)
            if url is not None and any(f.url == url and f.id != feed_id for f in feeds):
                raise DuplicateFeed(f"Already subscribed to {url}")

            if title is not None:
                feed.title = title
            if url is not None:
                feed.url = url
            if link is not None:
                feed.link = link or None
            await self.store.save_feeds(feeds)

        return feed

    async def remove_feed(self, feed_id: str) -> int:
        """Unsubscribe and delete the feed's articles.

        Returns:
            Number of articles deleted

        Raises:
            FeedNotFound: If there is no such feed
        """
        logger = UnifiedLogger.get_logger(__name__)

        async with self._write_lock:
            feeds, articles = await self.store.load()
            feed = _find_feed(feeds, feed_id)
            feeds = [f for f in feeds if f.id != feed_id]
            remaining = [a for a in articles if a.feed_id != feed_id]
            await self.store.save(feeds, remaining)

        deleted = len(articles) - len(remaining)
        logger.info(f"Removed feed {feed.url} and {deleted} articles")
        self._publish_articles("feed_removed", remaining, [feed_id])
        return deleted

    # Refresh

    def _apply_channel_metadata(self, feed: Feed, parsed: ParsedFeed) -> bool:
        changed = False
        if not feed.title and parsed.title:
            feed.title = parsed.title
            changed = True
        if not feed.link and is_valid_url(parsed.homepage):
            feed.link = parsed.homepage
            changed = True
        return changed

    async def refresh_feed(self, feed_id: str) -> FeedRefreshResult:
        """Fetch one feed and append its new articles to the store.

        Fetch and parse failures are reported in the result (and as a
        FeedRefreshFailed event); the stored articles are left as they were.

        Raises:
            FeedNotFound: If there is no such feed
        """
        feed = await self.get_feed(feed_id)
        fetched = await self.fetcher.fetch_one(feed)

        if not fetched.ok:
            self.bus.publish(FeedRefreshFailed(feed_id=feed_id, error=str(fetched.error)))
            articles = await self.store.load_articles()
            return FeedRefreshResult(
                feed_id=feed_id,
                articles=[a for a in articles if a.feed_id == feed_id],
                error=str(fetched.error),
            )

        async with self._write_lock:
            feeds, articles = await self.store.load()
            stored_feed = next((f for f in feeds if f.id == feed_id), None)
            if stored_feed is None:
                # Unsubscribed while the fetch was in flight
                return FeedRefreshResult(feed_id=feed_id)
            merged = merge_articles(articles, fetched.parsed.articles)
            if self._apply_channel_metadata(stored_feed, fetched.parsed):
                await self.store.save(feeds, merged)
            else:
                await self.store.save_articles(merged)

        added = len(merged) - len(articles)
        self._publish_articles("feed_refreshed", merged, [feed_id])
        return FeedRefreshResult(
            feed_id=feed_id,
            articles=[a for a in merged if a.feed_id == feed_id],
            added=added,
        )

    async def _refresh_cycle_for(self, feed: Feed, parsed: ParsedFeed) -> FeedRefreshResult:
        async with self._write_lock:
            feeds, articles = await self.store.load()
            prior = [a for a in articles if a.feed_id == feed.id]
            refreshed = reapply_state(parsed.articles, prior)
            updated = replace_feed_articles(articles, feed.id, refreshed)

            stored_feed = next((f for f in feeds if f.id == feed.id), None)
            if stored_feed is None:
                # Unsubscribed while the fetch was in flight
                return FeedRefreshResult(feed_id=feed.id)
            if self._apply_channel_metadata(stored_feed, parsed):
                await self.store.save(feeds, updated)
            else:
                await self.store.save_articles(updated)

        prior_keys = {a.key for a in prior}
        added = sum(1 for a in refreshed if a.key not in prior_keys)
        self._publish_articles("library_refreshed", updated, [feed.id])
        return FeedRefreshResult(
            feed_id=feed.id,
            articles=[a for a in updated if a.feed_id == feed.id],
            added=added,
        )

    async def refresh_all(self) -> LibraryRefreshReport:
        """Refresh every subscribed feed, one complete cycle at a time.

        Each feed is fetched, parsed, reconciled with its stored articles
        (read and favorite flags carried over) and persisted before the next
        feed is fetched. Publishes one RefreshCompleted event.
        """
        logger = UnifiedLogger.get_logger(__name__)

        feeds = await self.store.load_feeds()
        report = LibraryRefreshReport()

        async for fetched in self.fetcher.fetch_each(feeds):
            if not fetched.ok:
                self.bus.publish(FeedRefreshFailed(feed_id=fetched.feed.id, error=str(fetched.error)))
                report.results.append(FeedRefreshResult(
                    feed_id=fetched.feed.id,
                    error=str(fetched.error),
                ))
                continue
            report.results.append(await self._refresh_cycle_for(fetched.feed, fetched.parsed))

        logger.info(
            f"Refreshed {len(report.results)} feeds: {report.new_articles} new articles, "
            f"{len(report.failed_feed_ids)} failures"
        )
        self.bus.publish(RefreshCompleted(
            feeds_refreshed=len(report.results),
            new_articles=report.new_articles,
            failed_feed_ids=tuple(report.failed_feed_ids),
        ))
        return report

    def request_refresh(self) -> None:
        """Ask for a whole-library refresh; bursts collapse into one cycle."""
        self.debouncer.request()

    async def refresh_library(self) -> Optional[LibraryRefreshReport]:
        """Request a whole-library refresh and wait for it to finish.

        Callers arriving within the debounce window share one cycle.

        Returns:
            Report of the cycle, or None if the cycle failed
        """
        return await self.debouncer.request_and_wait()

    # Articles

    async def list_articles(
        self,
        feed_id: Optional[str] = None,
        filter_by: str = "all",
        limit: Optional[int] = None,
    ) -> List[Article]:
        """List articles newest first.

        Args:
            feed_id: Only this feed's articles (None for all feeds)
            filter_by: "all", "unread" or "favorites"
            limit: Maximum number of articles to return

        Raises:
            ValueError: If filter_by is not a known filter
        """
        if filter_by not in ARTICLE_FILTERS:
            raise ValueError(f"Unknown filter {filter_by!r}, expected one of {ARTICLE_FILTERS}")

        articles = await self.store.load_articles()
        if feed_id is not None:
            articles = [a for a in articles if a.feed_id == feed_id]
        if filter_by == "unread":
            articles = [a for a in articles if not a.is_read]
        elif filter_by == "favorites":
            articles = [a for a in articles if a.is_favorite]

        articles.sort(key=lambda a: a.published_date, reverse=True)
        if limit is not None:
            articles = articles[:limit]
        return articles

    async def _update_article(self, article_id: str, reason: str, change) -> Optional[Article]:
        async with self._write_lock:
            articles = await self.store.load_articles()
            target = next((a for a in articles if a.id == article_id), None)
            if target is None:
                return None
            change(target)
            await self.store.save_articles(articles)

        self._publish_articles(reason, articles, [target.feed_id])
        return target

    async def mark_read(self, article_id: str, read: bool = True) -> Optional[Article]:
        """Set an article's read flag.

        Returns:
            Updated Article, or None if there is no such article
        """
        def change(article: Article) -> None:
            article.is_read = read

        return await self._update_article(article_id, "read_changed", change)

    async def toggle_favorite(self, article_id: str) -> Optional[Article]:
        """Flip an article's favorite flag.

        Returns:
            Updated Article, or None if there is no such article
        """
        def change(article: Article) -> None:
            article.is_favorite = not article.is_favorite

        return await self._update_article(article_id, "favorite_changed", change)

    async def mark_all_read(self, feed_id: Optional[str] = None) -> int:
        """Mark every unread article read, optionally only in one feed.

        Returns:
            Number of articles changed
        """
        async with self._write_lock:
            articles = await self.store.load_articles()
            changed = [
                a for a in articles
                if not a.is_read and (feed_id is None or a.feed_id == feed_id)
            ]
            for article in changed:
                article.is_read = True
            if changed:
                await self.store.save_articles(articles)

        if changed:
            self._publish_articles("read_changed", articles, {a.feed_id for a in changed})
        return len(changed)

    async def clear_cache(self) -> int:
        """Delete every stored article. Subscriptions are kept.

        Returns:
            Number of articles deleted
        """
        async with self._write_lock:
            articles = await self.store.load_articles()
            await self.store.save_articles([])

        self._publish_articles("cache_cleared", [])
        return len(articles)

    # Unread counts

    async def _prime_counter(self) -> None:
        if not self._counter_primed:
            self.counter.reset(await self.store.load_articles())
            self._counter_primed = True

    async def unread_count(self, feed_id: str) -> int:
        await self._prime_counter()
        return self.counter.count(feed_id)

    # Import / export

    async def import_feeds(self, data: Union[bytes, str], file_extension: str = "") -> ImportResult:
        """Import subscriptions from OPML or JSON.

        Feeds whose URL is already subscribed are skipped.

        Raises:
            UnrecognizedFormat: If data is neither OPML nor a JSON feed list
        """
        logger = UnifiedLogger.get_logger(__name__)

        decoded = decode_feeds(data, file_extension)

        async with self._write_lock:
            existing = await self.store.load_feeds()
            merged = merge_imported(existing, decoded)
            await self.store.save_feeds(merged)

        imported = merged[len(existing):]
        logger.info(f"Imported {len(imported)} feeds, skipped {len(decoded) - len(imported)}")
        return ImportResult(
            imported=imported,
            skipped=len(decoded) - len(imported),
            feeds=merged,
        )

    async def export_feeds(
        self,
        feed_ids: Optional[Iterable[str]] = None,
        directory: Optional[Union[str, Path]] = None,
    ) -> Path:
        """Write subscriptions to feed.opml.

        Args:
            feed_ids: Only export these feeds (None exports all)
            directory: Target directory (defaults to config.export_dir)

        Raises:
            EmptySelection: If there is nothing to export
        """
        feeds = await self.store.load_feeds()
        if feed_ids is not None:
            wanted = set(feed_ids)
            feeds = [feed for feed in feeds if feed.id in wanted]
        return write_export(feeds, directory or self.config.export_dir)
