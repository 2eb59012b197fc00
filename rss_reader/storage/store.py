"""SQLite storage for rss_reader.

Feeds and articles are two whole collections: load() returns everything and
save() replaces everything in one transaction. The service layer owns all
read-modify-write sequences.
Database location: ~/.rss_reader/rss_reader.db (or RSS_READER_DB_PATH env var)
"""

from pathlib import Path
from typing import List, Optional, Tuple, Union

import aiosqlite

from rss_reader.log_system.unified_logger import UnifiedLogger
from rss_reader.models.schemas import Article, Feed

MEMORY_DB = ":memory:"


class SQLiteStore:
    """Article/feed store backed by a single aiosqlite connection."""

    def __init__(self, db_path: Union[str, Path] = MEMORY_DB):
        self.db_path = db_path
        self._connection: Optional[aiosqlite.Connection] = None

    async def connect(self) -> aiosqlite.Connection:
        """Get the connection, opening it and creating tables on first use."""
        if self._connection is None:
            if str(self.db_path) != MEMORY_DB:
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

            connection = await aiosqlite.connect(self.db_path)
            connection.row_factory = aiosqlite.Row
            await self.init_database(connection)
            self._connection = connection

        return self._connection

    async def init_database(self, db: aiosqlite.Connection) -> None:
        """Create tables if they don't exist."""
        await db.execute("""
            CREATE TABLE IF NOT EXISTS feeds (
                id TEXT PRIMARY KEY,
                position INTEGER NOT NULL,
                title TEXT NOT NULL DEFAULT '',
                url TEXT NOT NULL,
                link TEXT
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS articles (
                id TEXT PRIMARY KEY,
                position INTEGER NOT NULL,
                feed_id TEXT NOT NULL,
                title TEXT NOT NULL DEFAULT '',
                summary TEXT NOT NULL DEFAULT '',
                content TEXT NOT NULL DEFAULT '',
                published_date TIMESTAMP NOT NULL,
                link TEXT NOT NULL,
                is_read BOOLEAN DEFAULT FALSE,
                is_favorite BOOLEAN DEFAULT FALSE
            )
        """)

        await db.execute("""
            CREATE INDEX IF NOT EXISTS idx_articles_feed_id ON articles(feed_id)
        """)

        await db.commit()

    async def load_feeds(self) -> List[Feed]:
        """Load every feed in stored order.

        Read failures are logged and yield an empty list.
        """
        logger = UnifiedLogger.get_logger(__name__)

        try:
            db = await self.connect()
            cursor = await db.execute("SELECT * FROM feeds ORDER BY position")
            return [Feed.from_dict(dict(row)) async for row in cursor]
        except (aiosqlite.Error, ValueError, KeyError) as e:
            logger.error(f"Failed to load feeds: {e}")
            return []

    async def load_articles(self) -> List[Article]:
        """Load every article in stored order.

        Read failures are logged and yield an empty list.
        """
        logger = UnifiedLogger.get_logger(__name__)

        try:
            db = await self.connect()
            cursor = await db.execute("SELECT * FROM articles ORDER BY position")
            return [Article.from_dict(dict(row)) async for row in cursor]
        except (aiosqlite.Error, ValueError, KeyError) as e:
            logger.error(f"Failed to load articles: {e}")
            return []

    async def load(self) -> Tuple[List[Feed], List[Article]]:
        return await self.load_feeds(), await self.load_articles()

    async def _replace_feeds(self, db: aiosqlite.Connection, feeds: List[Feed]) -> None:
        await db.execute("DELETE FROM feeds")
        await db.executemany(
            """
            INSERT INTO feeds (id, position, title, url, link)
            VALUES (?, ?, ?, ?, ?)
            """,
            [
                (feed.id, position, feed.title, feed.url, feed.link)
                for position, feed in enumerate(feeds)
            ],
        )

    async def _replace_articles(self, db: aiosqlite.Connection, articles: List[Article]) -> None:
        await db.execute("DELETE FROM articles")
        await db.executemany(
            """
            INSERT INTO articles (
                id, position, feed_id, title, summary, content,
                published_date, link, is_read, is_favorite
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    article.id,
                    position,
                    article.feed_id,
                    article.title,
                    article.summary,
                    article.content,
                    article.published_date.isoformat(),
                    article.link,
                    article.is_read,
                    article.is_favorite,
                )
                for position, article in enumerate(articles)
            ],
        )

    async def save_feeds(self, feeds: List[Feed]) -> None:
        """Replace the stored feed list."""
        db = await self.connect()
        try:
            await self._replace_feeds(db, feeds)
            await db.commit()
        except aiosqlite.Error:
            await db.rollback()
            raise

    async def save_articles(self, articles: List[Article]) -> None:
        """Replace the stored article list."""
        db = await self.connect()
        try:
            await self._replace_articles(db, articles)
            await db.commit()
        except aiosqlite.Error:
            await db.rollback()
            raise

    async def save(self, feeds: List[Feed], articles: List[Article]) -> None:
        """Replace both collections in a single transaction."""
        db = await self.connect()
        try:
            await self._replace_feeds(db, feeds)
            await self._replace_articles(db, articles)
            await db.commit()
        except aiosqlite.Error:
            await db.rollback()
            raise

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
