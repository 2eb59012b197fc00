"""Change events published by the feed service.

Consumers subscribe to the event types they care about on an EventBus they
were handed explicitly; there is no global notification center.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple, Type

from rss_reader.log_system.unified_logger import UnifiedLogger
from rss_reader.models.schemas import Article


@dataclass(frozen=True)
class ArticlesChanged:
    """The stored article list changed.

    feed_ids names the feeds whose articles were affected; None means all.
    articles is the full article list after the change.
    """

    reason: str
    articles: Tuple[Article, ...]
    feed_ids: Optional[FrozenSet[str]] = None


@dataclass(frozen=True)
class FeedRefreshFailed:
    feed_id: str
    error: str


@dataclass(frozen=True)
class RefreshCompleted:
    """One whole-library refresh cycle finished."""

    feeds_refreshed: int
    new_articles: int
    failed_feed_ids: Tuple[str, ...] = field(default_factory=tuple)


Handler = Callable[[Any], None]


class EventBus:
    """Synchronous publish/subscribe dispatcher keyed by event type."""

    def __init__(self) -> None:
        self._handlers: Dict[Type, List[Handler]] = {}

    def subscribe(self, event_type: Type, handler: Handler) -> Callable[[], None]:
        """Register handler for event_type.

        Returns:
            Callable that removes the subscription
        """
        self._handlers.setdefault(event_type, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def publish(self, event: Any) -> None:
        """Deliver event to every handler subscribed to its type, in order."""
        logger = UnifiedLogger.get_logger(__name__)
        handlers = list(self._handlers.get(type(event), []))
        logger.debug(f"Publishing {type(event).__name__} to {len(handlers)} handlers")
        for handler in handlers:
            handler(event)
