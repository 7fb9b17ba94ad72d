"""
Video-related data models for QuickFetch.

This module contains the platform enum, the classified URL reference, the
canonical metadata record and the API response envelope.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


T = TypeVar("T")

MAX_TEXT_LENGTH = 5000
UNKNOWN_DURATION = "Unknown"


class Platform(str, Enum):
    """Supported video providers."""

    YOUTUBE = "youtube"
    VIMEO = "vimeo"
    DIRECT = "direct"


@dataclass(frozen=True)
class ClassifiedReference:
    """A URL resolved to a provider and that provider's own video id."""

    platform: Platform
    native_id: str


class CanonicalMetadata(BaseModel):
    """Normalized video metadata, identical in shape for every provider."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., description="Provider-native video id (full URL for direct links)")
    title: str = Field(..., max_length=MAX_TEXT_LENGTH, description="Sanitized video title")
    description: str = Field("", max_length=MAX_TEXT_LENGTH, description="Sanitized description")
    thumbnail_url: str = Field(..., description="Thumbnail URL")
    duration: str = Field(..., description="H:MM:SS, M:SS or 'Unknown'")
    author: str = Field(..., description="Channel or uploader name")
    view_count: Optional[int] = Field(None, ge=0, description="View count when the provider exposes it")
    published_at: str = Field(..., description="ISO-8601 publication timestamp")
    embed_url: str = Field(..., description="URL suitable for an embedded player")
    platform: Platform = Field(..., description="Source platform")
    is_embeddable: bool = Field(..., description="Whether the video may be embedded")

    @field_validator('is_embeddable')
    @classmethod
    def validate_is_embeddable(cls, v, info):
        """Direct links are never embeddable."""
        if v and info.data.get('platform') == Platform.DIRECT:
            raise ValueError('Direct media links cannot be embeddable')
        return v

    def to_response(self) -> Dict[str, Any]:
        """Serialize with camelCase keys, omitting absent optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ApiResult(BaseModel, Generic[T]):
    """Tagged success/failure envelope used at the request boundary."""

    success: bool = Field(..., description="Whether the request was successful")
    data: Optional[T] = Field(None, description="Payload on success")
    error: Optional[str] = Field(None, description="Human-readable error on failure")
    message: Optional[str] = Field(None, description="Optional informational message")
    code: Optional[str] = Field(None, description="Machine-readable error code on failure")
    suggestion: Optional[str] = Field(None, description="Suggested action on failure")


class MetadataRequest(BaseModel):
    """Request body for the metadata endpoint."""

    # Typed loosely so a non-string url is reported as invalid input (400)
    # by the service rather than rejected by request validation.
    url: Any = Field(None, description="Video URL to extract metadata from")
