"""Error types for rss_reader.

Document-level failures are raised to the caller; record-level problems
(bad dates, bad item links, markup that cannot be stripped) are recovered
where they happen and never show up here.
"""


class FeedReaderError(Exception):
    """Base class for all rss_reader errors."""


class NetworkFailure(FeedReaderError):
    """Transport or HTTP error while fetching a feed."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to fetch {url}: {reason}")


class MalformedDocument(FeedReaderError):
    """Feed XML is not well-formed."""


class InvalidFormat(FeedReaderError, ValueError):
    """OPML document could not be parsed."""


class UnrecognizedFormat(FeedReaderError, ValueError):
    """Import data is neither OPML nor a JSON feed list."""


class EmptySelection(FeedReaderError):
    """Export requested with no exportable feeds."""


class FeedNotFound(FeedReaderError, LookupError):
    """No feed with the given id."""


class DuplicateFeed(FeedReaderError, ValueError):
    """A feed with the same URL is already subscribed."""
