"""
OPML import/export.

Handles OPML file parsing and generation for feed subscription management.
"""

from datetime import datetime, timezone
from typing import List, Union

from lxml import etree

from rss_reader.errors import InvalidFormat
from rss_reader.log_system.unified_logger import UnifiedLogger
from rss_reader.models.schemas import Feed
from rss_reader.services.feed_parser import is_valid_url

DEFAULT_OPML_TITLE = "RSSReader Subscriptions"


def parse_opml(content: Union[bytes, str]) -> List[Feed]:
    """
    Parse OPML document.

    Args:
        content: OPML XML content.

    Returns:
        Feeds in document order, one per distinct xmlUrl.

    Raises:
        InvalidFormat: If the XML cannot be parsed.
    """
    logger = UnifiedLogger.get_logger(__name__)

    if isinstance(content, str):
        content = content.encode("utf-8")

    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    try:
        root = etree.fromstring(content, parser=parser)
    except etree.XMLSyntaxError as e:
        raise InvalidFormat(f"Invalid OPML format: {e}") from e

    feeds = []
    seen_urls = set()

    # Folders are outlines too; only entries with a usable xmlUrl become feeds
    for outline in root.iter("outline"):
        xml_url = outline.get("xmlUrl")
        if not xml_url or not is_valid_url(xml_url) or xml_url in seen_urls:
            continue
        seen_urls.add(xml_url)

        title = outline.get("text") or outline.get("title") or xml_url
        html_url = outline.get("htmlUrl")

        feeds.append(Feed(
            title=title,
            url=xml_url,
            link=html_url if is_valid_url(html_url) else None,
        ))

    logger.info(f"Parsed {len(feeds)} feeds from OPML")
    return feeds


def generate_opml(feeds: List[Feed], title: str = DEFAULT_OPML_TITLE) -> bytes:
    """
    Generate OPML document from feeds.

    Args:
        feeds: Feeds to write, one outline each.
        title: OPML document title.

    Returns:
        UTF-8 encoded OPML document.
    """
    opml = etree.Element("opml", version="2.0")

    head = etree.SubElement(opml, "head")
    title_elem = etree.SubElement(head, "title")
    title_elem.text = title

    date_created = etree.SubElement(head, "dateCreated")
    date_created.text = datetime.now(timezone.utc).strftime("%a, %d %b %Y %H:%M:%S GMT")

    body = etree.SubElement(opml, "body")

    for feed in feeds:
        feed_title = feed.title or feed.url
        outline = etree.SubElement(
            body,
            "outline",
            type="rss",
            text=feed_title,
            title=feed_title,
            xmlUrl=feed.url,
        )

        if feed.link:
            outline.set("htmlUrl", feed.link)

    return etree.tostring(opml, encoding="utf-8", xml_declaration=True, pretty_print=True)
