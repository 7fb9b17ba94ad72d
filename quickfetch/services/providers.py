"""
Provider adapters for QuickFetch.

Each adapter turns a provider-native video id into a CanonicalMetadata record.
YouTube and Vimeo are reached over HTTP with a single, time-limited attempt;
direct media links are described without any network access.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import unquote, urlsplit

import httpx

from quickfetch.models.video import CanonicalMetadata, Platform, UNKNOWN_DURATION
from quickfetch.core.exceptions import (
    ConfigurationError, ProviderNotFoundError, ProviderQuotaError, ProviderUnavailableError
)
from quickfetch.services.text_utils import format_duration, parse_iso8601_duration, sanitize_text


logger = logging.getLogger(__name__)


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


class ProviderAdapter(ABC):
    """Base class for all provider adapters."""

    platform: Platform

    @abstractmethod
    async def fetch(self, native_id: str) -> CanonicalMetadata:
        """
        Retrieve and normalize metadata for one video.

        Raises:
            ProviderError: If the provider cannot supply the metadata
            ConfigurationError: If the adapter is missing required settings
        """


class HttpProviderAdapter(ProviderAdapter):
    """Adapter backed by a provider's public HTTP API."""

    def __init__(self, client: httpx.AsyncClient, timeout: float = 10.0):
        self.client = client
        self.timeout = timeout

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET a JSON document, raising httpx errors for transport and status failures."""
        response = await self.client.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()


class YouTubeAdapter(HttpProviderAdapter):
    """YouTube Data API v3 adapter."""

    platform = Platform.YOUTUBE

    API_URL = "https://www.googleapis.com/youtube/v3/videos"
    EMBED_URL = "https://www.youtube.com/embed/{video_id}"
    API_PARTS = "snippet,contentDetails,statistics"

    def __init__(self, client: httpx.AsyncClient, api_key: Optional[str], timeout: float = 10.0):
        super().__init__(client, timeout)
        self.api_key = api_key

    async def fetch(self, native_id: str) -> CanonicalMetadata:
        if not self.api_key:
            raise ConfigurationError(
                setting="YOUTUBE_API_KEY",
                message="YouTube API key not configured. Please add YOUTUBE_API_KEY to .env",
            )

        try:
            payload = await self._get_json(
                self.API_URL,
                params={'part': self.API_PARTS, 'id': native_id, 'key': self.api_key},
            )
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 403:
                raise ProviderQuotaError(
                    "YouTube API quota exceeded or invalid API key",
                    platform=self.platform.value,
                    upstream_status=status,
                )
            # The request URL carries the API key, so never echo httpx's own message.
            raise ProviderUnavailableError(
                f"YouTube API request failed with status code {status}",
                platform=self.platform.value,
                upstream_status=status,
            )
        except httpx.TimeoutException:
            raise ProviderUnavailableError("YouTube API request timed out", platform=self.platform.value)
        except httpx.HTTPError as e:
            raise ProviderUnavailableError(
                f"Failed to fetch YouTube metadata: {e.__class__.__name__}",
                platform=self.platform.value,
            )
        except ValueError:
            raise ProviderUnavailableError(
                "YouTube API returned an invalid response", platform=self.platform.value
            )

        items = payload.get('items') or []
        if not items:
            raise ProviderNotFoundError("Video not found or is private", platform=self.platform.value)

        try:
            return self._normalize(native_id, items[0])
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Unexpected YouTube API payload for {native_id}: {e}")
            raise ProviderUnavailableError(
                "YouTube API returned an unexpected response", platform=self.platform.value
            )

    def _normalize(self, video_id: str, video: Dict[str, Any]) -> CanonicalMetadata:
        snippet = video['snippet']
        content_details = video.get('contentDetails') or {}
        statistics = video.get('statistics') or {}
        thumbnails = snippet.get('thumbnails') or {}

        thumbnail = (thumbnails.get('high') or thumbnails.get('default') or {}).get('url', '')
        view_count = statistics.get('viewCount')

        return CanonicalMetadata(
            id=video_id,
            title=sanitize_text(snippet['title']),
            description=sanitize_text(snippet.get('description')),
            thumbnail_url=thumbnail,
            duration=format_duration(parse_iso8601_duration(content_details.get('duration'))),
            author=sanitize_text(snippet.get('channelTitle')),
            view_count=int(view_count) if view_count is not None else None,
            published_at=snippet['publishedAt'],
            embed_url=self.EMBED_URL.format(video_id=video_id),
            platform=self.platform,
            is_embeddable=True,
        )


class VimeoAdapter(HttpProviderAdapter):
    """Vimeo oEmbed adapter (public videos only, no credential)."""

    platform = Platform.VIMEO

    OEMBED_URL = "https://vimeo.com/api/oembed.json"
    VIDEO_URL = "https://vimeo.com/{video_id}"
    EMBED_URL = "https://player.vimeo.com/video/{video_id}"

    async def fetch(self, native_id: str) -> CanonicalMetadata:
        try:
            data = await self._get_json(
                self.OEMBED_URL, params={'url': self.VIDEO_URL.format(video_id=native_id)}
            )
            return self._normalize(native_id, data)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 404:
                raise ProviderNotFoundError(
                    "Vimeo video not found or is private",
                    platform=self.platform.value,
                    upstream_status=status,
                )
            raise ProviderUnavailableError(
                "Failed to fetch Vimeo metadata", platform=self.platform.value, upstream_status=status
            )
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Vimeo fetch failed for {native_id}: {e}")
            raise ProviderUnavailableError("Failed to fetch Vimeo metadata", platform=self.platform.value)

    def _normalize(self, video_id: str, data: Dict[str, Any]) -> CanonicalMetadata:
        duration = data.get('duration')

        return CanonicalMetadata(
            id=video_id,
            title=sanitize_text(data['title']),
            description=sanitize_text(data.get('description')),
            thumbnail_url=data.get('thumbnail_url') or '',
            duration=format_duration(int(duration)) if duration else UNKNOWN_DURATION,
            author=sanitize_text(data.get('author_name')),
            published_at=self._normalize_upload_date(data.get('upload_date')),
            embed_url=self.EMBED_URL.format(video_id=video_id),
            platform=self.platform,
            is_embeddable=True,
        )

    @staticmethod
    def _normalize_upload_date(upload_date: Optional[str]) -> str:
        # oEmbed reports "YYYY-MM-DD HH:MM:SS"
        if not upload_date:
            return utc_now_iso()
        try:
            return datetime.fromisoformat(upload_date).isoformat()
        except ValueError:
            return upload_date


class DirectAdapter(ProviderAdapter):
    """
    Adapter for direct media file links.

    Nothing is fetched: the file is not verified and could be arbitrary
    content, so the record is derived from the URL alone and is never
    embeddable.
    """

    platform = Platform.DIRECT

    DESCRIPTION = "Direct media file"
    AUTHOR = "Direct Link"
    DEFAULT_TITLE = "video"

    def __init__(self, placeholder_thumbnail: str = "/video-placeholder.png"):
        self.placeholder_thumbnail = placeholder_thumbnail

    async def fetch(self, native_id: str) -> CanonicalMetadata:
        filename = urlsplit(native_id).path.rstrip('/').rsplit('/', 1)[-1]
        title = sanitize_text(unquote(filename)) or self.DEFAULT_TITLE

        return CanonicalMetadata(
            id=native_id,
            title=title,
            description=self.DESCRIPTION,
            thumbnail_url=self.placeholder_thumbnail,
            duration=UNKNOWN_DURATION,
            author=self.AUTHOR,
            published_at=utc_now_iso(),
            embed_url=native_id,
            platform=self.platform,
            is_embeddable=False,
        )
