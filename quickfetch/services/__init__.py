"""
Services package for QuickFetch.

This package contains URL classification, the provider adapters and the
metadata orchestration service.
"""

from .url_classifier import (
    UrlClassifier,
    classify_url,
    get_supported_platforms,
)

from .providers import (
    ProviderAdapter,
    YouTubeAdapter,
    VimeoAdapter,
    DirectAdapter,
)

from .metadata_service import (
    MetadataOutcome,
    MetadataService,
    build_metadata_service,
)

__all__ = [
    # URL classification
    'UrlClassifier',
    'classify_url',
    'get_supported_platforms',
    # Provider adapters
    'ProviderAdapter',
    'YouTubeAdapter',
    'VimeoAdapter',
    'DirectAdapter',
    # Orchestration
    'MetadataOutcome',
    'MetadataService',
    'build_metadata_service',
]
