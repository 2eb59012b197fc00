"""Feed parser service.

This module parses RSS 2.0 documents into articles. Parsing is driven by a
pull-based XML event iterator feeding an explicit state machine, so item-level
title and link text never leaks into the channel's metadata.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Dict, List, Optional, Union
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup
from lxml import etree

from rss_reader.errors import MalformedDocument
from rss_reader.log_system.unified_logger import UnifiedLogger
from rss_reader.models.schemas import Article

# Tried in order; the first that parses wins.
RSS_DATE_FORMATS = (
    "%a, %d %b %Y %H:%M:%S %z",
    "%a, %d %b %Y %H:%M:%S %Z",
)

_UTC_ZONE_NAMES = ("GMT", "UTC", "UT")

ITEM_FIELDS = ("title", "description", "link", "pubDate")
CHANNEL_FIELDS = ("title", "link")


@dataclass
class FeedContext:
    """Identifies the feed a document is being parsed for."""

    feed_id: str


@dataclass
class ParsedFeed:
    """Result of parsing one feed document."""

    title: Optional[str]
    homepage: Optional[str]
    articles: List[Article]


def _empty_buffers(names) -> Dict[str, str]:
    return {name: "" for name in names}


@dataclass
class ParserState:
    """Where the parser currently is in the document."""

    in_channel: bool = False
    in_item: bool = False
    channel_depth: int = 0
    current_element: str = ""
    channel: Dict[str, str] = field(default_factory=lambda: _empty_buffers(CHANNEL_FIELDS))
    item: Dict[str, str] = field(default_factory=lambda: _empty_buffers(ITEM_FIELDS))


def is_valid_url(value: Optional[str]) -> bool:
    """Check that value is an absolute URL with a scheme and a host.

    The host must also be encodable by httpx, so every accepted URL can be
    requested.
    """
    if not value or any(ch.isspace() for ch in value):
        return False
    try:
        parsed = urlparse(value)
        httpx.URL(value)
    except (ValueError, httpx.InvalidURL):
        return False
    return bool(parsed.scheme) and bool(parsed.netloc)


def strip_html(text: str) -> str:
    """Convert HTML markup to plain preview text.

    Falls back to the original string if the markup cannot be processed.
    """
    if not text:
        return text

    logger = UnifiedLogger.get_logger(__name__)
    try:
        soup = BeautifulSoup(text, "lxml")
        return " ".join(soup.get_text().split())
    except Exception as e:
        logger.debug(f"Could not strip HTML, keeping raw text: {e}")
        return text


def parse_date(text: str) -> datetime:
    """Parse an RSS publication date.

    Args:
        text: Raw pubDate value

    Returns:
        Timezone-aware datetime; the current time if nothing matches
    """
    text = (text or "").strip()

    if text:
        for fmt in RSS_DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
            except ValueError:
                continue
            if parsed.tzinfo is None:
                # %Z also accepts the local zone name, which says nothing about the offset
                if not text.endswith(_UTC_ZONE_NAMES):
                    continue
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed

        # Named US zones (EST, PDT, ...) and dates without a weekday
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError, IndexError, OverflowError):
            parsed = None
        if parsed is not None:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed

        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            parsed = None
        if parsed is not None:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed

    UnifiedLogger.get_logger(__name__).debug(f"Unparseable date {text!r}, using current time")
    return datetime.now(timezone.utc)


def _text_of(element) -> str:
    return str(element.xpath("string()"))


class _FeedStateMachine:
    def __init__(self, context: FeedContext):
        self.context = context
        self.state = ParserState()
        self.articles: List[Article] = []
        self.title: Optional[str] = None
        self.homepage: Optional[str] = None
        self.dropped = 0

    def start(self, element) -> None:
        tag = element.tag
        state = self.state
        state.current_element = tag

        if tag == "channel":
            state.in_channel = True
            state.channel_depth += 1
            state.channel = _empty_buffers(CHANNEL_FIELDS)
        elif tag == "item":
            state.item = _empty_buffers(ITEM_FIELDS)
            state.in_channel = False
            state.in_item = True

    def end(self, element) -> None:
        tag = element.tag
        state = self.state

        if tag == "item" and state.in_item:
            self._finish_item()
            state.in_item = False
            state.in_channel = state.channel_depth > 0
            element.clear()
        elif tag == "channel" and state.channel_depth > 0:
            state.channel_depth -= 1
            state.in_channel = False
            self.title = state.channel["title"].strip() or None
            self.homepage = state.channel["link"].strip() or None
        elif state.in_item:
            if tag in ITEM_FIELDS:
                state.item[tag] += _text_of(element)
        elif state.in_channel and tag in CHANNEL_FIELDS:
            parent = element.getparent()
            if parent is not None and parent.tag == "channel":
                state.channel[tag] += _text_of(element)

        state.current_element = ""

    def _finish_item(self) -> None:
        buffers = self.state.item
        link = buffers["link"].strip()
        if not is_valid_url(link):
            self.dropped += 1
            return

        description = buffers["description"]
        self.articles.append(Article(
            feed_id=self.context.feed_id,
            title=buffers["title"].strip(),
            summary=strip_html(description.strip()),
            content=description,
            published_date=parse_date(buffers["pubDate"]),
            link=link,
        ))


def parse_feed(data: Union[bytes, str], context: FeedContext) -> ParsedFeed:
    """Parse an RSS document into channel metadata and articles.

    Items whose link is not a valid URL are dropped; everything else that is
    odd about a single item (date, markup) is recovered with a default.

    Args:
        data: Raw feed document
        context: Feed the articles belong to

    Returns:
        ParsedFeed with the channel title, homepage and articles in document order

    Raises:
        MalformedDocument: If the document is not well-formed XML
    """
    logger = UnifiedLogger.get_logger(__name__)

    if isinstance(data, str):
        data = data.encode("utf-8")
    if not data.strip():
        raise MalformedDocument(f"Feed {context.feed_id} returned an empty document")

    machine = _FeedStateMachine(context)
    parser = etree.XMLPullParser(
        events=("start", "end"),
        resolve_entities=False,
        no_network=True,
    )

    def drain() -> None:
        for event, element in parser.read_events():
            if event == "start":
                machine.start(element)
            else:
                machine.end(element)

    try:
        parser.feed(data)
        drain()
        parser.close()
        drain()
    except etree.ParseError as e:
        raise MalformedDocument(f"Feed {context.feed_id} is not well-formed XML: {e}") from e

    if machine.dropped:
        logger.debug(f"Dropped {machine.dropped} items with invalid links")
    logger.info(f"Parsed {len(machine.articles)} articles from feed {context.feed_id}")

    return ParsedFeed(
        title=machine.title,
        homepage=machine.homepage,
        articles=machine.articles,
    )
