"""Per-feed unread counts.

Counts are cached per feed and dropped whenever an ArticlesChanged event names
that feed, then recomputed on the next read.
"""

from typing import Dict, Iterable, List, Optional

from rss_reader.models.schemas import Article
from rss_reader.services.events import ArticlesChanged, EventBus


class UnreadCounter:
    """Unread article counts derived from the in-memory article list."""

    def __init__(self, articles: Iterable[Article] = ()):
        self._articles: List[Article] = list(articles)
        self._counts: Dict[str, int] = {}

    def attach(self, bus: EventBus) -> None:
        """Start following article changes published on bus."""
        bus.subscribe(ArticlesChanged, self.on_articles_changed)

    def on_articles_changed(self, event: ArticlesChanged) -> None:
        self.reset(event.articles, event.feed_ids)

    def reset(self, articles: Iterable[Article], feed_ids: Optional[Iterable[str]] = None) -> None:
        """Replace the article snapshot and invalidate affected feeds.

        Args:
            articles: Full article list after the change
            feed_ids: Feeds whose counts may have changed (None invalidates all)
        """
        self._articles = list(articles)
        if feed_ids is None:
            self._counts.clear()
            return
        for feed_id in feed_ids:
            self._counts.pop(feed_id, None)

    def count(self, feed_id: str) -> int:
        """Number of unread articles in feed_id (0 for unknown feeds)."""
        cached = self._counts.get(feed_id)
        if cached is not None:
            return cached
        value = self.recount(feed_id)
        self._counts[feed_id] = value
        return value

    def recount(self, feed_id: str) -> int:
        """Count from scratch, bypassing the cache."""
        return sum(1 for a in self._articles if a.feed_id == feed_id and not a.is_read)

    def counts(self) -> Dict[str, int]:
        """Unread counts for every feed that has articles."""
        return {feed_id: self.count(feed_id) for feed_id in {a.feed_id for a in self._articles}}

    def is_cached(self, feed_id: str) -> bool:
        return feed_id in self._counts
