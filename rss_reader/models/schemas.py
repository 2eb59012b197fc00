"""Data models for rss_reader.

This module defines the core data structures for feeds and articles.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple


def new_id() -> str:
    """Generate a fresh opaque identifier."""
    return str(uuid.uuid4())


def _parse_stored_date(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Feed:
    """Represents a subscribed feed source."""

    title: str
    url: str
    link: Optional[str] = None
    id: str = field(default_factory=new_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "link": self.link,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Feed":
        """Build a Feed from a decoded JSON object.

        Raises:
            ValueError: If the object has no usable feed URL
        """
        if not isinstance(data, dict):
            raise ValueError(f"Feed record must be an object, got {type(data).__name__}")

        url = data.get("url")
        if not isinstance(url, str) or not url.strip():
            raise ValueError("Feed record is missing 'url'")

        link = data.get("link")
        return cls(
            id=str(data.get("id") or new_id()),
            title=str(data.get("title") or ""),
            url=url.strip(),
            link=link if isinstance(link, str) and link else None,
        )


@dataclass
class Article:
    """Represents an article from a feed."""

    feed_id: str
    title: str
    link: str
    summary: str = ""
    content: str = ""
    published_date: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    is_read: bool = False
    is_favorite: bool = False
    id: str = field(default_factory=new_id)

    @property
    def key(self) -> Tuple[str, str]:
        """Dedup key: same link within the same feed means the same article."""
        return (self.feed_id, self.link)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "feed_id": self.feed_id,
            "title": self.title,
            "summary": self.summary,
            "content": self.content,
            "published_date": self.published_date.isoformat(),
            "link": self.link,
            "is_read": self.is_read,
            "is_favorite": self.is_favorite,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Article":
        """Build an Article from a stored row or decoded JSON object."""
        published = data.get("published_date")
        return cls(
            id=str(data.get("id") or new_id()),
            feed_id=str(data["feed_id"]),
            title=str(data.get("title") or ""),
            summary=str(data.get("summary") or ""),
            content=str(data.get("content") or ""),
            published_date=_parse_stored_date(published)
            if published
            else datetime.now(timezone.utc),
            link=str(data["link"]),
            is_read=bool(data.get("is_read", False)),
            is_favorite=bool(data.get("is_favorite", False)),
        )
