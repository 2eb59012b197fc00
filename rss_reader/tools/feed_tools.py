"""Feed reader MCP tools.

This module provides MCP tools for managing RSS feeds and articles.

NOTE: Never use Optional parameters in MCP tools - they break MCP clients.
Use empty string "" for optional strings and 0 for optional integers.
"""

from typing import Any, Callable, Dict, List

from mcp.server.fastmcp import Context

from rss_reader.errors import (
    EmptySelection,
    FeedNotFound,
    MalformedDocument,
    NetworkFailure,
    UnrecognizedFormat,
)
from rss_reader.log_system.unified_logger import UnifiedLogger
from rss_reader.models.schemas import Article, Feed
from rss_reader.services.feed_service import ARTICLE_FILTERS, FeedService


def _feed_dict(feed: Feed) -> Dict[str, Any]:
    return feed.to_dict()


def _article_dict(article: Article, include_content: bool = False) -> Dict[str, Any]:
    data = article.to_dict()
    if not include_content:
        data.pop("content")
    return data


def build_feed_tools(service: FeedService) -> List[Callable]:
    """Create the MCP tool functions bound to service.

    Args:
        service: Feed service every tool operates on

    Returns:
        List of async tool functions, ready for registration
    """

    async def add_feed(url: str, title: str = "", ctx: Context = None) -> Dict[str, Any]:
        """Subscribe to an RSS feed.

        The feed is fetched once to validate it, pick up its channel title and
        store its current articles.

        Args:
            url: URL of the RSS document (not the site homepage)
            title: Custom display title (empty string to use the feed's own title)
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with:
            - success: bool
            - feed: object with id, title, url, link
            - error: string if success is False
        """
        logger = UnifiedLogger.get_logger(__name__)
        logger.info(f"add_feed called: url={url}")

        try:
            feed = await service.add_feed(url, title)
        except (ValueError, NetworkFailure, MalformedDocument) as e:
            return {
                "success": False,
                "error": str(e),
            }

        return {
            "success": True,
            "feed": _feed_dict(feed),
            "unread_articles": await service.unread_count(feed.id),
        }

    async def remove_feed(feed_id: str, ctx: Context = None) -> Dict[str, Any]:
        """Unsubscribe from a feed and delete all of its articles.

        This permanently deletes the feed's articles, including favorites.

        Args:
            feed_id: ID of the feed (from list_feeds response)
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with:
            - success: bool
            - articles_deleted: count of articles removed
            - error: string if feed not found
        """
        logger = UnifiedLogger.get_logger(__name__)
        logger.info(f"remove_feed called: feed_id={feed_id}")

        try:
            deleted = await service.remove_feed(feed_id)
        except FeedNotFound as e:
            return {
                "success": False,
                "error": str(e),
            }

        return {
            "success": True,
            "articles_deleted": deleted,
        }

    async def list_feeds(ctx: Context = None) -> Dict[str, Any]:
        """List all subscribed feeds with unread counts.

        Args:
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with:
            - success: bool
            - count: number of feeds
            - feeds: list of feed objects with id, title, url, link, unread_articles
        """
        logger = UnifiedLogger.get_logger(__name__)
        logger.info("list_feeds called")

        feeds = await service.list_feeds()
        results = []
        for feed in feeds:
            data = _feed_dict(feed)
            data["unread_articles"] = await service.unread_count(feed.id)
            results.append(data)

        return {
            "success": True,
            "count": len(results),
            "feeds": results,
        }

    async def update_feed(
        feed_id: str,
        title: str = "",
        url: str = "",
        link: str = "",
        ctx: Context = None,
    ) -> Dict[str, Any]:
        """Edit a feed's title, feed URL or homepage.

        Args:
            feed_id: ID of the feed (from list_feeds response)
            title: New display title (empty string keeps the current one)
            url: New feed document URL (empty string keeps the current one)
            link: New homepage URL (empty string keeps the current one)
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with:
            - success: bool
            - feed: updated feed object with id, title, url, link
            - error: string if the feed was not found or the URL was rejected
        """
        logger = UnifiedLogger.get_logger(__name__)
        logger.info(f"update_feed called: feed_id={feed_id}")

        try:
            feed = await service.update_feed(
                feed_id,
                title=title or None,
                url=url or None,
                link=link or None,
            )
        except (FeedNotFound, ValueError) as e:
            return {
                "success": False,
                "error": str(e),
            }

        return {
            "success": True,
            "feed": _feed_dict(feed),
        }

    async def refresh_feeds(feed_id: str = "", ctx: Context = None) -> Dict[str, Any]:
        """Fetch new articles for one feed or for every feed.

        A single feed's new articles are appended to the store. Refreshing all
        feeds processes them one at a time and keeps read and favorite flags of
        articles that are fetched again, along with their ids. A feed that fails
        to download or parse is reported and does not stop the others. Calls
        that arrive together share a single refresh of all feeds.

        Args:
            feed_id: Refresh only this feed (empty string refreshes all feeds)
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with:
            - success: bool
            - feeds_refreshed: number of feeds processed
            - total_new_articles: new articles across all feeds
            - results: list of per-feed results with feed_id, new_articles, error
        """
        logger = UnifiedLogger.get_logger(__name__)
        logger.info(f"refresh_feeds called: feed_id={feed_id}")

        if feed_id:
            try:
                results = [await service.refresh_feed(feed_id)]
            except FeedNotFound as e:
                return {
                    "success": False,
                    "error": str(e),
                }
        else:
            report = await service.refresh_library()
            if report is None:
                return {
                    "success": False,
                    "error": "Refresh failed, see server log for details",
                }
            results = report.results

        return {
            "success": True,
            "feeds_refreshed": len(results),
            "total_new_articles": sum(r.added for r in results),
            "results": [
                {
                    "feed_id": r.feed_id,
                    "new_articles": r.added,
                    "error": r.error,
                }
                for r in results
            ],
        }

    async def list_articles(
        feed_id: str = "",
        filter_by: str = "all",
        limit: int = 50,
        include_content: bool = False,
        ctx: Context = None,
    ) -> Dict[str, Any]:
        """List articles, newest first.

        Args:
            feed_id: Only articles from this feed (empty string for all feeds)
            filter_by: "all", "unread" or "favorites"
            limit: Maximum number of articles to return (default: 50, 0 for no limit)
            include_content: Include the raw HTML body of each article
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with:
            - success: bool
            - count: number of articles returned
            - articles: list of article objects with id, feed_id, title, summary,
              link, published_date, is_read, is_favorite
        """
        logger = UnifiedLogger.get_logger(__name__)
        logger.info(f"list_articles called: feed_id={feed_id}, filter_by={filter_by}, limit={limit}")

        if filter_by not in ARTICLE_FILTERS:
            return {
                "success": False,
                "error": f"Invalid filter_by: {filter_by}. Use one of {', '.join(ARTICLE_FILTERS)}",
            }

        articles = await service.list_articles(
            feed_id=feed_id or None,
            filter_by=filter_by,
            limit=limit if limit > 0 else None,
        )

        return {
            "success": True,
            "count": len(articles),
            "articles": [_article_dict(a, include_content) for a in articles],
        }

    async def mark_article_read(article_id: str, ctx: Context = None) -> Dict[str, Any]:
        """Mark a specific article as read.

        Args:
            article_id: ID of the article (from list_articles response)
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with:
            - success: bool
            - article: object with id, title, link, is_read, is_favorite (if found)
            - error: string if article not found
        """
        logger = UnifiedLogger.get_logger(__name__)
        logger.info(f"mark_article_read called: article_id={article_id}")

        article = await service.mark_read(article_id, True)
        return _article_result(article, article_id)

    async def mark_article_unread(article_id: str, ctx: Context = None) -> Dict[str, Any]:
        """Mark a specific article as unread.

        Args:
            article_id: ID of the article (from list_articles response)
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with:
            - success: bool
            - article: object with id, title, link, is_read, is_favorite (if found)
            - error: string if article not found
        """
        logger = UnifiedLogger.get_logger(__name__)
        logger.info(f"mark_article_unread called: article_id={article_id}")

        article = await service.mark_read(article_id, False)
        return _article_result(article, article_id)

    async def toggle_favorite(article_id: str, ctx: Context = None) -> Dict[str, Any]:
        """Add an article to favorites, or remove it if it already is one.

        Favorite and read flags survive later refreshes of the feed.

        Args:
            article_id: ID of the article (from list_articles response)
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with:
            - success: bool
            - article: object with id, title, link, is_read, is_favorite (if found)
            - error: string if article not found
        """
        logger = UnifiedLogger.get_logger(__name__)
        logger.info(f"toggle_favorite called: article_id={article_id}")

        article = await service.toggle_favorite(article_id)
        return _article_result(article, article_id)

    async def mark_all_read(feed_id: str = "", ctx: Context = None) -> Dict[str, Any]:
        """Mark all unread articles as read, optionally for one feed only.

        Args:
            feed_id: Only mark articles from this feed (empty string marks all feeds)
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with:
            - success: bool
            - articles_marked_read: count of articles updated
            - error: string if the feed was not found
        """
        logger = UnifiedLogger.get_logger(__name__)
        logger.info(f"mark_all_read called: feed_id={feed_id}")

        if feed_id:
            try:
                await service.get_feed(feed_id)
            except FeedNotFound as e:
                return {
                    "success": False,
                    "error": str(e),
                }

        count = await service.mark_all_read(feed_id or None)
        return {
            "success": True,
            "articles_marked_read": count,
        }

    async def import_feeds(
        content: str,
        file_extension: str = "opml",
        ctx: Context = None,
    ) -> Dict[str, Any]:
        """Import subscriptions from an OPML document or a JSON feed list.

        Feeds whose URL is already subscribed are skipped. Imported feeds have
        no articles until they are refreshed.

        Args:
            content: File contents (OPML XML or a JSON array of {title, url, link})
            file_extension: Format hint, "opml" or "json"; the other format is tried if the hint is wrong
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with:
            - success: bool
            - imported: list of new feed objects
            - skipped: number of feeds already subscribed
            - error: string if the content is neither OPML nor JSON
        """
        logger = UnifiedLogger.get_logger(__name__)
        logger.info(f"import_feeds called: file_extension={file_extension}")

        try:
            result = await service.import_feeds(content, file_extension)
        except UnrecognizedFormat as e:
            return {
                "success": False,
                "error": str(e),
            }

        return {
            "success": True,
            "imported": [_feed_dict(feed) for feed in result.imported],
            "skipped": result.skipped,
        }

    async def export_feeds(ctx: Context = None) -> Dict[str, Any]:
        """Export all subscriptions to an OPML file.

        Args:
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with:
            - success: bool
            - path: location of the written feed.opml file
            - error: string if there is nothing to export
        """
        logger = UnifiedLogger.get_logger(__name__)
        logger.info("export_feeds called")

        try:
            path = await service.export_feeds()
        except EmptySelection as e:
            return {
                "success": False,
                "error": str(e),
            }

        return {
            "success": True,
            "path": str(path),
        }

    async def clear_cache(ctx: Context = None) -> Dict[str, Any]:
        """Delete every stored article, keeping the subscriptions.

        Args:
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with:
            - success: bool
            - articles_deleted: count of articles removed
        """
        logger = UnifiedLogger.get_logger(__name__)
        logger.info("clear_cache called")

        deleted = await service.clear_cache()
        return {
            "success": True,
            "articles_deleted": deleted,
        }

    return [
        add_feed,
        remove_feed,
        list_feeds,
        update_feed,
        refresh_feeds,
        list_articles,
        mark_article_read,
        mark_article_unread,
        toggle_favorite,
        mark_all_read,
        import_feeds,
        export_feeds,
        clear_cache,
    ]


def _article_result(article, article_id: str) -> Dict[str, Any]:
    if article is None:
        return {
            "success": False,
            "error": f"Article with id {article_id} not found",
        }

    return {
        "success": True,
        "article": {
            "id": article.id,
            "title": article.title,
            "link": article.link,
            "is_read": article.is_read,
            "is_favorite": article.is_favorite,
        },
    }
