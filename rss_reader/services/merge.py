"""Article reconciliation.

Combines freshly parsed articles with the stored ones. Articles are the same
when they share a feed and a link; ids are never compared.
"""

from typing import Iterable, List

from rss_reader.log_system.unified_logger import UnifiedLogger
from rss_reader.models.schemas import Article


def dedupe_articles(articles: Iterable[Article]) -> List[Article]:
    """Drop repeated links within one batch, keeping the first occurrence."""
    seen = set()
    unique = []
    for article in articles:
        if article.key in seen:
            continue
        seen.add(article.key)
        unique.append(article)
    return unique


def merge_articles(existing: List[Article], incoming: Iterable[Article]) -> List[Article]:
    """Append incoming articles that are not already stored.

    Args:
        existing: Current article list (not modified)
        incoming: Newly parsed articles, in document order

    Returns:
        New list: existing followed by the genuinely new articles
    """
    logger = UnifiedLogger.get_logger(__name__)

    known = {article.key for article in existing}
    added = [article for article in dedupe_articles(incoming) if article.key not in known]

    logger.debug(f"Merge: {len(added)} new of {len(existing) + len(added)} total")
    return list(existing) + added


def reapply_state(newly_fetched: Iterable[Article], prior: Iterable[Article]) -> List[Article]:
    """Carry ids and read/favorite flags from prior articles onto re-fetched ones.

    A re-fetched article keeps the id it was stored under, so ids handed out
    before a refresh stay valid after it.

    Args:
        newly_fetched: Articles from the latest parse (modified in place)
        prior: Articles as they were before the fetch

    Returns:
        The re-fetched articles, deduplicated, with ids and flags restored
    """
    previous = {}
    for article in prior:
        previous.setdefault(article.key, article)

    fetched = dedupe_articles(newly_fetched)
    for article in fetched:
        old = previous.get(article.key)
        if old is not None:
            article.id = old.id
            article.is_read = old.is_read
            article.is_favorite = old.is_favorite
    return fetched


def replace_feed_articles(
    all_articles: List[Article],
    feed_id: str,
    refreshed: List[Article],
) -> List[Article]:
    """Install a feed's refreshed articles as the current version.

    Stored articles of the feed that the refresh also returned are replaced by
    the refreshed records. Stored articles it no longer lists are kept after
    them; articles of other feeds are untouched.

    Args:
        all_articles: Whole stored article list
        feed_id: Feed that was refreshed
        refreshed: Output of reapply_state for that feed

    Returns:
        New whole article list
    """
    refreshed_keys = {article.key for article in refreshed}

    others = [a for a in all_articles if a.feed_id != feed_id]
    retained = [
        a for a in all_articles
        if a.feed_id == feed_id and a.key not in refreshed_keys
    ]
    return others + refreshed + retained
