"""Subscription import and export.

Export writes an OPML document; import accepts OPML or a JSON array of feed
records and merges the result into the existing feed list by URL.
"""

import json
import os
from pathlib import Path
from typing import Callable, Iterable, List, Tuple, Union

from rss_reader.errors import EmptySelection, InvalidFormat, UnrecognizedFormat
from rss_reader.log_system.unified_logger import UnifiedLogger
from rss_reader.models.schemas import Feed, new_id
from rss_reader.services.feed_parser import is_valid_url
from rss_reader.services.opml import generate_opml, parse_opml

EXPORT_FILENAME = "feed.opml"
OPML_EXTENSIONS = ("opml", "xml")


def export_opml(feeds: Iterable[Feed]) -> bytes:
    """Serialize feeds to OPML, skipping feeds without a URL.

    Raises:
        EmptySelection: If no feed has a URL
    """
    exportable = [feed for feed in feeds if feed.url]
    if not exportable:
        raise EmptySelection("No feeds with a URL to export")
    return generate_opml(exportable)


def write_export(feeds: Iterable[Feed], directory: Union[str, Path]) -> Path:
    """Write the OPML export to feed.opml in directory.

    An existing export is replaced.

    Returns:
        Path of the written file
    """
    logger = UnifiedLogger.get_logger(__name__)

    document = export_opml(feeds)

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / EXPORT_FILENAME
    tmp_path = directory / f".{EXPORT_FILENAME}.tmp"

    tmp_path.write_bytes(document)
    os.replace(tmp_path, path)
    path.chmod(0o644)

    logger.info(f"Exported subscriptions to {path}")
    return path


def _decode_json(data: bytes) -> List[Feed]:
    logger = UnifiedLogger.get_logger(__name__)

    try:
        records = json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError(f"Invalid JSON: {e}") from e

    if not isinstance(records, list):
        raise ValueError("JSON feed list must be an array")

    feeds = []
    for record in records:
        feed = Feed.from_dict(record)
        # Same acceptance rules as OPML outlines
        if not is_valid_url(feed.url):
            logger.debug(f"Skipping JSON feed record with invalid URL {feed.url!r}")
            continue
        if not is_valid_url(feed.link):
            feed.link = None
        feeds.append(feed)
    return feeds


def _normalize_extension(file_extension: str) -> str:
    return file_extension.lower().lstrip(".")


def decode_feeds(data: Union[bytes, str], file_extension: str = "") -> List[Feed]:
    """Decode an import file.

    The extension picks which decoder runs first; the other one is tried if
    the first fails.

    Args:
        data: File contents
        file_extension: Extension hint such as "opml" or "json"

    Returns:
        Decoded feeds

    Raises:
        UnrecognizedFormat: If neither OPML nor JSON decoding succeeds
    """
    logger = UnifiedLogger.get_logger(__name__)

    if isinstance(data, str):
        data = data.encode("utf-8")

    decoders: List[Tuple[str, Callable[[bytes], List[Feed]]]] = [
        ("opml", parse_opml),
        ("json", _decode_json),
    ]
    if _normalize_extension(file_extension) not in OPML_EXTENSIONS:
        decoders.reverse()

    errors = []
    for name, decoder in decoders:
        try:
            feeds = decoder(data)
        except (InvalidFormat, ValueError) as e:
            logger.debug(f"Import is not {name}: {e}")
            errors.append(f"{name}: {e}")
            continue
        logger.info(f"Decoded {len(feeds)} feeds as {name}")
        return feeds

    raise UnrecognizedFormat("Unrecognized subscription format (" + "; ".join(errors) + ")")


def merge_imported(existing: List[Feed], imported: Iterable[Feed]) -> List[Feed]:
    """Append imported feeds whose URL is not already subscribed.

    URLs are compared as exact strings. Imported feeds whose id is already in
    use get a new one.

    Returns:
        New list: existing followed by the accepted imported feeds
    """
    known_urls = {feed.url for feed in existing}
    known_ids = {feed.id for feed in existing}
    merged = list(existing)

    for feed in imported:
        if feed.url in known_urls:
            continue
        if feed.id in known_ids:
            feed.id = new_id()
        known_urls.add(feed.url)
        known_ids.add(feed.id)
        merged.append(feed)

    return merged
