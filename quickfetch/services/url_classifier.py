"""
URL classification service for QuickFetch.

This module maps a user-supplied URL onto one of the supported providers and
extracts that provider's native video id.
"""

import re
from typing import Dict, List, Optional
from urllib.parse import urlsplit, parse_qs

from quickfetch.models.video import ClassifiedReference, Platform


class UrlClassifier:
    """
    Classify URLs into (platform, native id) pairs.

    Host matching is substring based, so any host containing a provider
    domain qualifies (``m.youtube.com``, ``player.vimeo.com``, ...). Rules are
    evaluated in a fixed order and the first one that applies decides the
    outcome.
    """

    YOUTUBE_SHORT_DOMAIN = 'youtu.be'
    YOUTUBE_DOMAIN = 'youtube.com'
    YOUTUBE_QUERY_PARAM = 'v'
    YOUTUBE_ID_PATTERN = re.compile(r'[A-Za-z0-9_-]{11}')

    VIMEO_DOMAIN = 'vimeo.com'
    VIMEO_ID_PATTERN = re.compile(r'/(\d+)')

    DIRECT_SCHEMES = ('http', 'https')
    DIRECT_EXTENSIONS = frozenset({'mp4', 'webm', 'ogg', 'mov'})

    PLATFORM_CATALOGUE: Dict[Platform, Dict[str, object]] = {
        Platform.YOUTUBE: {
            'name': 'YouTube',
            'domains': [YOUTUBE_DOMAIN, YOUTUBE_SHORT_DOMAIN],
            'features': ['Metadata', 'Embed', 'View Count', 'Duration'],
            'restrictions': 'No downloads - viewing and embedding only via official API',
        },
        Platform.VIMEO: {
            'name': 'Vimeo',
            'domains': [VIMEO_DOMAIN],
            'features': ['Metadata', 'Embed'],
            'restrictions': 'Only public videos - respects privacy settings',
        },
        Platform.DIRECT: {
            'name': 'Direct Media Links',
            'domains': [],
            'features': ['Preview', 'Metadata'],
            'restrictions': 'Only for content you own or have permission to access',
        },
    }

    @classmethod
    def classify(cls, url: str) -> Optional[ClassifiedReference]:
        """
        Classify a URL.

        Args:
            url: Raw URL as supplied by the user

        Returns:
            ClassifiedReference if the URL belongs to a supported provider,
            None if it is malformed or unsupported
        """
        if not url or not isinstance(url, str):
            return None

        url = url.strip()

        try:
            parsed = urlsplit(url)
            host = (parsed.hostname or '').lower()
        except ValueError:
            return None

        # Absolute URLs only
        if not parsed.scheme or not host:
            return None

        if cls.YOUTUBE_SHORT_DOMAIN in host:
            video_id = parsed.path.lstrip('/').split('/', 1)[0]
            return cls._youtube_reference(video_id)

        if cls.YOUTUBE_DOMAIN in host:
            values = parse_qs(parsed.query).get(cls.YOUTUBE_QUERY_PARAM)
            if values:
                return cls._youtube_reference(values[0])

        if cls.VIMEO_DOMAIN in host:
            match = cls.VIMEO_ID_PATTERN.search(parsed.path)
            if not match:
                return None
            return ClassifiedReference(platform=Platform.VIMEO, native_id=match.group(1))

        if parsed.scheme.lower() in cls.DIRECT_SCHEMES:
            if cls.get_extension(parsed.path) in cls.DIRECT_EXTENSIONS:
                return ClassifiedReference(platform=Platform.DIRECT, native_id=url)

        return None

    @classmethod
    def get_extension(cls, path: str) -> Optional[str]:
        """Lower-cased extension of the last path segment, without the dot."""
        segment = path.rsplit('/', 1)[-1]
        if '.' not in segment:
            return None
        return segment.rsplit('.', 1)[-1].lower()

    @classmethod
    def get_supported_platforms(cls) -> List[Dict[str, object]]:
        """Describe every supported platform."""
        return [
            {'platform': platform.value, **details}
            for platform, details in cls.PLATFORM_CATALOGUE.items()
        ]

    @classmethod
    def _youtube_reference(cls, video_id: str) -> Optional[ClassifiedReference]:
        # The id ends up inside provider API URLs, so it must match exactly.
        if not video_id or not cls.YOUTUBE_ID_PATTERN.fullmatch(video_id):
            return None
        return ClassifiedReference(platform=Platform.YOUTUBE, native_id=video_id)


def classify_url(url: str) -> Optional[ClassifiedReference]:
    """Classify a URL into a provider reference."""
    return UrlClassifier.classify(url)


def get_supported_platforms() -> List[Dict[str, object]]:
    """Get the supported platform catalogue."""
    return UrlClassifier.get_supported_platforms()
