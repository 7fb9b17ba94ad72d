"""
Pytest configuration and fixtures for QuickFetch test suite.

This module provides shared fixtures and configuration for all tests.
"""

import pytest
import httpx
from fastapi.testclient import TestClient

from quickfetch.main import create_app
from quickfetch.middleware.rate_limiter import RateLimitConfig, RateLimiter
from quickfetch.services.metadata_service import MetadataService
from quickfetch.services.providers import DirectAdapter, VimeoAdapter, YouTubeAdapter


class FakeClock:
    """Controllable replacement for time.time."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers every request it served."""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.requests = []
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for prefix, responder in self.routes.items():
            if str(request.url).startswith(prefix):
                return responder(request)
        return httpx.Response(404, json={"error": "no route"})


YOUTUBE_API = "https://www.googleapis.com/youtube/v3/videos"
VIMEO_OEMBED = "https://vimeo.com/api/oembed.json"


def youtube_payload(
    video_id="dQw4w9WgXcQ",
    title="Example",
    duration="PT3M33S",
    view_count="1000000",
    thumbnails=None,
):
    """Build a YouTube Data API videos.list response."""
    statistics = {}
    if view_count is not None:
        statistics["viewCount"] = view_count

    return {
        "items": [
            {
                "id": video_id,
                "snippet": {
                    "title": title,
                    "description": "An example video",
                    "channelTitle": "Example Channel",
                    "publishedAt": "2009-10-25T06:57:33Z",
                    "thumbnails": thumbnails if thumbnails is not None else {
                        "default": {"url": "https://i.ytimg.com/vi/dQw4w9WgXcQ/default.jpg"},
                        "high": {"url": "https://i.ytimg.com/vi/dQw4w9WgXcQ/hqdefault.jpg"},
                    },
                },
                "contentDetails": {"duration": duration},
                "statistics": statistics,
            }
        ]
    }


def vimeo_payload(**overrides):
    """Build a Vimeo oEmbed response (no duration unless given)."""
    payload = {
        "type": "video",
        "title": "The New Vimeo Player (You Know, For Videos)",
        "author_name": "Vimeo",
        "description": "It may look (mostly) the same on the surface...",
        "thumbnail_url": "https://i.vimeocdn.com/video/452001751-640.jpg",
        "upload_date": "2013-10-15 14:08:29",
        "video_id": 76979871,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def clock():
    """Controllable clock shared by limiter tests."""
    return FakeClock()


@pytest.fixture
def make_limiter(clock):
    """Factory for independent in-memory rate limiters."""
    def _make(max_requests=10, window_ms=60000):
        return RateLimiter(RateLimitConfig(max_requests=max_requests, window_ms=window_ms), clock=clock)
    return _make


@pytest.fixture
def transport():
    """Mock transport with default routes for both HTTP providers."""
    return RecordingTransport({
        YOUTUBE_API: lambda request: httpx.Response(200, json=youtube_payload()),
        VIMEO_OEMBED: lambda request: httpx.Response(200, json=vimeo_payload()),
    })


@pytest.fixture
def make_service(make_limiter, transport):
    """Factory for metadata services wired to the mock transport."""
    def _make(api_key="test-key", limiter=None, max_requests=10):
        client = httpx.AsyncClient(transport=transport)
        adapters = [
            YouTubeAdapter(client, api_key=api_key, timeout=5.0),
            VimeoAdapter(client, timeout=5.0),
            DirectAdapter(),
        ]
        return MetadataService(
            rate_limiter=limiter or make_limiter(max_requests=max_requests),
            adapters=adapters,
            http_client=client,
        )
    return _make


@pytest.fixture
def client(make_service):
    """Test client for an app backed by a mocked metadata service."""
    return TestClient(create_app(make_service()))
