"""
Data models package for QuickFetch.

This package contains the Pydantic models shared by the services and the API.
"""

from .video import (
    MAX_TEXT_LENGTH,
    UNKNOWN_DURATION,
    ApiResult,
    CanonicalMetadata,
    ClassifiedReference,
    MetadataRequest,
    Platform,
)

__all__ = [
    'MAX_TEXT_LENGTH',
    'UNKNOWN_DURATION',
    'ApiResult',
    'CanonicalMetadata',
    'ClassifiedReference',
    'MetadataRequest',
    'Platform',
]
