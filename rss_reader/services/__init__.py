"""Services for rss_reader."""

from .events import ArticlesChanged, EventBus, FeedRefreshFailed, RefreshCompleted
from .feed_fetcher import FeedFetcher, FetchResult
from .feed_parser import FeedContext, ParsedFeed, parse_date, parse_feed, strip_html
from .feed_service import FeedRefreshResult, FeedService, ImportResult, LibraryRefreshReport
from .merge import dedupe_articles, merge_articles, reapply_state, replace_feed_articles
from .opml import generate_opml, parse_opml
from .refresh import RefreshDebouncer
from .subscriptions import decode_feeds, export_opml, merge_imported, write_export
from .unread import UnreadCounter

__all__ = [
    "ArticlesChanged",
    "EventBus",
    "FeedRefreshFailed",
    "RefreshCompleted",
    "FeedFetcher",
    "FetchResult",
    "FeedContext",
    "ParsedFeed",
    "parse_date",
    "parse_feed",
    "strip_html",
    "FeedRefreshResult",
    "FeedService",
    "ImportResult",
    "LibraryRefreshReport",
    "dedupe_articles",
    "merge_articles",
    "reapply_state",
    "replace_feed_articles",
    "generate_opml",
    "parse_opml",
    "RefreshDebouncer",
    "decode_feeds",
    "export_opml",
    "merge_imported",
    "write_export",
    "UnreadCounter",
]
