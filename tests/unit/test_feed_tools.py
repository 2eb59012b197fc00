"""Unit tests for the MCP tool functions."""

import asyncio

import pytest

from rss_reader.server.app import create_mcp_server
from rss_reader.tools.feed_tools import build_feed_tools

from .conftest import rss_document

pytestmark = pytest.mark.anyio

FEED_URL = "https://example.com/feed.xml"

TOOL_NAMES = {
    "add_feed",
    "remove_feed",
    "list_feeds",
    "update_feed",
    "refresh_feeds",
    "list_articles",
    "mark_article_read",
    "mark_article_unread",
    "toggle_favorite",
    "mark_all_read",
    "import_feeds",
    "export_feeds",
    "clear_cache",
}


@pytest.fixture
def tools(service):
    return {tool.__name__: tool for tool in build_feed_tools(service)}


@pytest.fixture
async def subscribed(tools, http):
    http.serve(FEED_URL, rss_document([
        ("One", "https://example.com/1", "Mon, 01 Jan 2024 12:00:00 +0000", "<p>First</p>"),
        ("Two", "https://example.com/2", "Tue, 02 Jan 2024 12:00:00 +0000", "<p>Second</p>"),
    ]))
    result = await tools["add_feed"](url=FEED_URL)
    assert result["success"] is True
    return result["feed"]


def test_all_tools_built(service):
    assert {tool.__name__ for tool in build_feed_tools(service)} == TOOL_NAMES


async def test_server_registers_tools(config, service):
    server = create_mcp_server(config, service)

    tools = await server.list_tools()

    assert {tool.name for tool in tools} == TOOL_NAMES


async def test_add_feed(tools, http):
    http.serve(FEED_URL, rss_document([("One", "https://example.com/1", None, None)]))

    result = await tools["add_feed"](url=FEED_URL)

    assert result["success"] is True
    assert result["feed"]["title"] == "Test Blog"
    assert result["feed"]["url"] == FEED_URL
    assert result["unread_articles"] == 1


async def test_add_feed_errors(tools, http, subscribed):
    duplicate = await tools["add_feed"](url=FEED_URL)
    invalid = await tools["add_feed"](url="not a url")
    unreachable = await tools["add_feed"](url="https://down.example/feed")

    for result in (duplicate, invalid, unreachable):
        assert result["success"] is False
        assert result["error"]


async def test_list_feeds_with_unread(tools, subscribed):
    result = await tools["list_feeds"]()

    assert result["count"] == 1
    assert result["feeds"][0]["id"] == subscribed["id"]
    assert result["feeds"][0]["unread_articles"] == 2


async def test_list_articles(tools, subscribed):
    result = await tools["list_articles"](feed_id=subscribed["id"])

    assert result["success"] is True
    assert [a["title"] for a in result["articles"]] == ["Two", "One"]
    assert "content" not in result["articles"][0]
    assert result["articles"][0]["summary"] == "Second"


async def test_list_articles_with_content_and_limit(tools, subscribed):
    result = await tools["list_articles"](limit=1, include_content=True)

    assert result["count"] == 1
    assert result["articles"][0]["content"] == "<p>Second</p>"


async def test_list_articles_bad_filter(tools):
    result = await tools["list_articles"](filter_by="starred")

    assert result["success"] is False
    assert "starred" in result["error"]


async def test_read_and_favorite_flags(tools, subscribed):
    article_id = (await tools["list_articles"]())["articles"][0]["id"]

    read = await tools["mark_article_read"](article_id=article_id)
    favorite = await tools["toggle_favorite"](article_id=article_id)
    unread = await tools["mark_article_unread"](article_id=article_id)

    assert read["article"]["is_read"] is True
    assert favorite["article"]["is_favorite"] is True
    assert unread["article"]["is_read"] is False

    favorites = await tools["list_articles"](filter_by="favorites")
    assert [a["id"] for a in favorites["articles"]] == [article_id]


async def test_unknown_article(tools):
    result = await tools["mark_article_read"](article_id="missing")

    assert result["success"] is False
    assert "missing" in result["error"]


async def test_mark_all_read(tools, subscribed):
    result = await tools["mark_all_read"](feed_id=subscribed["id"])
    missing = await tools["mark_all_read"](feed_id="missing")

    assert result == {"success": True, "articles_marked_read": 2}
    assert missing["success"] is False


async def test_refresh_feeds(tools, http, subscribed):
    http.serve(FEED_URL, rss_document([
        ("One", "https://example.com/1", None, None),
        ("Three", "https://example.com/3", None, None),
    ]))

    result = await tools["refresh_feeds"]()

    assert result["success"] is True
    assert result["feeds_refreshed"] == 1
    assert result["total_new_articles"] == 1
    assert result["results"][0]["error"] is None


async def test_concurrent_refreshes_share_one_cycle(tools, service, subscribed):
    """Test overlapping whole-library refresh calls coalesce into one cycle."""
    results = await asyncio.gather(*(tools["refresh_feeds"]() for _ in range(3)))

    assert [r["success"] for r in results] == [True, True, True]
    assert all(r["feeds_refreshed"] == 1 for r in results)
    assert service.debouncer.cycles_run == 1


async def test_refresh_single_feed_failure_reported(tools, http, subscribed):
    http.serve(FEED_URL, b"<html><body>Moved</body>")

    result = await tools["refresh_feeds"](feed_id=subscribed["id"])

    assert result["success"] is True
    assert result["results"][0]["new_articles"] == 0
    assert result["results"][0]["error"]


async def test_refresh_unknown_feed(tools):
    result = await tools["refresh_feeds"](feed_id="missing")
    assert result["success"] is False


async def test_import_export(tools, config):
    opml = """<opml version="2.0"><body>
        <outline text="A" xmlUrl="https://a.example/feed"/>
        <outline text="B" xmlUrl="https://b.example/feed"/>
    </body></opml>"""

    imported = await tools["import_feeds"](content=opml)
    again = await tools["import_feeds"](content=opml)
    exported = await tools["export_feeds"]()

    assert [f["title"] for f in imported["imported"]] == ["A", "B"]
    assert again["imported"] == []
    assert again["skipped"] == 2
    assert exported["path"] == str(config.export_dir / "feed.opml")


async def test_import_unrecognized(tools):
    result = await tools["import_feeds"](content="plain text", file_extension="json")
    assert result["success"] is False


async def test_export_empty(tools):
    result = await tools["export_feeds"]()
    assert result["success"] is False


async def test_remove_feed_and_clear_cache(tools, subscribed):
    cleared = await tools["clear_cache"]()
    removed = await tools["remove_feed"](feed_id=subscribed["id"])
    missing = await tools["remove_feed"](feed_id=subscribed["id"])

    assert cleared == {"success": True, "articles_deleted": 2}
    assert removed == {"success": True, "articles_deleted": 0}
    assert missing["success"] is False


async def test_update_feed(tools, subscribed):
    result = await tools["update_feed"](feed_id=subscribed["id"], title="Renamed")

    assert result["success"] is True
    assert result["feed"]["title"] == "Renamed"
    assert result["feed"]["url"] == FEED_URL

    listed = await tools["list_feeds"]()
    assert [f["title"] for f in listed["feeds"]] == ["Renamed"]


async def test_update_feed_errors(tools, http, subscribed):
    other_url = "https://other.example/rss"
    http.serve(other_url, rss_document([]))
    await tools["add_feed"](url=other_url)

    missing = await tools["update_feed"](feed_id="missing", title="X")
    invalid = await tools["update_feed"](feed_id=subscribed["id"], url="not a url")
    taken = await tools["update_feed"](feed_id=subscribed["id"], url=other_url)

    assert missing["success"] is False
    assert invalid["success"] is False
    assert taken["success"] is False
    assert "error" in taken
