"""Tests for API endpoints."""

from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from recast.api import rss_router
from recast.errors import FetchError
from recast.fetch.client import FetchedFeed

SAMPLE_RSS = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:itunes="http://www.itunes.com/dtds/podcast-1.0.dtd">
  <channel>
    <title>Old Show</title>
    <itunes:author>Host</itunes:author>
    <item>
      <guid>ep-2</guid>
      <pubDate>Mon, 15 Jan 2024 10:30:00 GMT</pubDate>
      <enclosure url="https://cdn.example.com/2.mp3" length="10" type="audio/mpeg"/>
    </item>
    <item>
      <guid>ep-1</guid>
      <pubDate>Mon, 01 Jan 2024 10:30:00 GMT</pubDate>
    </item>
  </channel>
</rss>
"""


@pytest_asyncio.fixture
async def test_app():
    """Create a test FastAPI app with all routers."""
    app = FastAPI()
    app.include_router(rss_router)
    return app


@pytest.fixture
def mock_fetch():
    """Patch the origin fetch so no network access happens."""
    with patch("recast.orchestrator.fetch_feed", new_callable=AsyncMock) as mock:
        yield mock


# /rss tests


@pytest.mark.asyncio
async def test_rss_returns_delayed_feed(test_app, mock_fetch):
    """Test /rss returns the transformed feed with an RSS content type."""
    mock_fetch.return_value = FetchedFeed(
        url="https://example.com/feed.xml", status_code=200, content=SAMPLE_RSS
    )

    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get(
            "/rss", params={"url": "https://example.com/feed.xml", "delay": "24"}
        )

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/rss+xml; charset=utf-8"
        assert b"<pubDate>Tue, 16 Jan 2024 10:30:00 GMT</pubDate>" in response.content
        assert b"<pubDate>Tue, 02 Jan 2024 10:30:00 GMT</pubDate>" in response.content
        assert b"<itunes:author>Host</itunes:author>" in response.content
        assert mock_fetch.await_args.args[0] == "https://example.com/feed.xml"


@pytest.mark.asyncio
async def test_rss_accepts_double_encoded_url(test_app, mock_fetch):
    """Test that a percent-encoded url value is decoded before fetching."""
    mock_fetch.return_value = FetchedFeed(
        url="https://example.com/feed.xml", status_code=200, content=SAMPLE_RSS
    )

    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get(
            "/rss?url=https%253A%252F%252Fexample.com%252Ffeed.xml&delay=1"
        )

        assert response.status_code == 200
        assert mock_fetch.await_args.args[0] == "https://example.com/feed.xml"


@pytest.mark.asyncio
async def test_rss_missing_url_returns_400(test_app, mock_fetch):
    """Test /rss without url is a client error, not a validation 422."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/rss", params={"delay": "1"})

        assert response.status_code == 400
        assert response.headers["content-type"].startswith("text/plain")
        assert "missing url" in response.text
        mock_fetch.assert_not_called()


@pytest.mark.asyncio
async def test_rss_invalid_url_returns_400(test_app, mock_fetch):
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get(
            "/rss", params={"url": "file:///etc/passwd", "delay": "1"}
        )

        assert response.status_code == 400
        mock_fetch.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize("params", [{}, {"delay": "soon"}, {"delay": "-2"}])
async def test_rss_invalid_delay_returns_400(test_app, mock_fetch, params):
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get(
            "/rss", params={"url": "https://example.com/feed.xml", **params}
        )

        assert response.status_code == 400
        assert "delay" in response.text
        mock_fetch.assert_not_called()


@pytest.mark.asyncio
async def test_rss_unreachable_origin_returns_502(test_app, mock_fetch):
    mock_fetch.side_effect = FetchError("timed out after 15s")

    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get(
            "/rss", params={"url": "https://example.com/feed.xml", "delay": "1"}
        )

        assert response.status_code == 502
        assert response.text == "failed to load feed: timed out after 15s"


@pytest.mark.asyncio
async def test_rss_malformed_origin_returns_500(test_app, mock_fetch):
    mock_fetch.return_value = FetchedFeed(
        url="https://example.com/feed.xml", status_code=200, content=b"<rss><channel>"
    )

    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get(
            "/rss", params={"url": "https://example.com/feed.xml", "delay": "1"}
        )

        assert response.status_code == 500
        assert response.text.startswith("failed to parse feed")
        assert "<rss" not in response.text
