"""
Error handling system for QuickFetch.

This module provides custom exception classes with error codes, HTTP status
mapping and user-friendly suggestions.
"""

from typing import Dict, Any, Optional
from enum import Enum


class ErrorCode(str, Enum):
    """Standardized error codes for consistent error handling."""

    # Input errors
    INVALID_INPUT = "invalid_input"
    UNSUPPORTED_URL = "unsupported_url"

    # Admission errors
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"

    # Operator errors
    MISCONFIGURED = "misconfigured"

    # Provider errors
    PROVIDER_NOT_FOUND = "provider_not_found"
    PROVIDER_QUOTA_EXCEEDED = "provider_quota_exceeded"
    PROVIDER_UNAVAILABLE = "provider_unavailable"

    # System errors
    INTERNAL_ERROR = "internal_error"


class QuickFetchException(Exception):
    """
    Base exception class for all QuickFetch errors.

    Provides structured error information including error codes,
    user-friendly messages, and actionable suggestions.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 400,
        suggestion: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        retryable: bool = False
    ):
        """
        Initialize QuickFetch exception.

        Args:
            message: Human-readable error message
            error_code: Standardized error code
            status_code: HTTP status code
            suggestion: Actionable suggestion for the user
            details: Additional error details
            retryable: Whether the caller may retry later
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.suggestion = suggestion or self._get_default_suggestion()
        self.details = details or {}
        self.retryable = retryable

    def _get_default_suggestion(self) -> str:
        """Get default suggestion based on error code."""
        suggestions = {
            ErrorCode.INVALID_INPUT: "Please provide the video URL as a non-empty string",
            ErrorCode.UNSUPPORTED_URL: "Try a YouTube, Vimeo, or direct media (mp4, webm, ogg, mov) link",
            ErrorCode.RATE_LIMIT_EXCEEDED: "Please wait until the rate limit resets before trying again",
            ErrorCode.PROVIDER_NOT_FOUND: "Check that the video exists and is publicly accessible",
            ErrorCode.PROVIDER_QUOTA_EXCEEDED: "Please try again later",
            ErrorCode.PROVIDER_UNAVAILABLE: "The video provider could not be reached. Please try again later",
        }
        return suggestions.get(self.error_code, "Please try again or contact support if the problem persists")

    @property
    def public_message(self) -> str:
        """Message safe to show to the end user."""
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "success": False,
            "error": self.public_message,
            "code": self.error_code.value,
            "suggestion": self.suggestion,
            "retryable": self.retryable,
        }


# Input Errors
class InvalidInputError(QuickFetchException):
    """Raised when the request does not carry a usable URL string."""

    def __init__(self, message: str = "Invalid URL provided", **kwargs):
        super().__init__(
            message=message,
            error_code=ErrorCode.INVALID_INPUT,
            status_code=400,
            **kwargs
        )


class UnsupportedUrlError(QuickFetchException):
    """Raised when a URL cannot be classified to any supported provider."""

    def __init__(self, url: str, **kwargs):
        super().__init__(
            message="Unsupported video URL. Please provide a YouTube, Vimeo, or direct media link.",
            error_code=ErrorCode.UNSUPPORTED_URL,
            status_code=400,
            **kwargs
        )
        self.details["url"] = url


# Admission Errors
class RateLimitExceededError(QuickFetchException):
    """Raised when a client has used up its quota for the current window."""

    def __init__(self, reset_at: int, limit: int, **kwargs):
        super().__init__(
            message="Rate limit exceeded. Please try again later.",
            error_code=ErrorCode.RATE_LIMIT_EXCEEDED,
            status_code=429,
            retryable=True,
            **kwargs
        )
        self.reset_at = reset_at
        self.limit = limit
        self.details.update({"reset_at": reset_at, "limit": limit})


# Operator Errors
class ConfigurationError(QuickFetchException):
    """Raised when a required setting (such as an API credential) is missing."""

    def __init__(self, setting: str, message: Optional[str] = None, **kwargs):
        super().__init__(
            message=message or f"{setting} is not configured",
            error_code=ErrorCode.MISCONFIGURED,
            status_code=500,
            **kwargs
        )
        self.details["setting"] = setting

    @property
    def public_message(self) -> str:
        # Operators see the real cause in the logs only.
        return "Failed to fetch video metadata"


# Provider Errors
class ProviderError(QuickFetchException):
    """Base class for failures reported by (or while reaching) a video provider."""

    def __init__(
        self,
        message: str,
        platform: str,
        error_code: ErrorCode = ErrorCode.PROVIDER_UNAVAILABLE,
        upstream_status: Optional[int] = None,
        **kwargs
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=500,
            **kwargs
        )
        self.platform = platform
        self.upstream_status = upstream_status
        self.details["platform"] = platform
        if upstream_status is not None:
            self.details["upstream_status"] = upstream_status


class ProviderNotFoundError(ProviderError):
    """Raised when the provider reports the video as missing or private."""

    def __init__(self, message: str, platform: str, **kwargs):
        super().__init__(
            message=message,
            platform=platform,
            error_code=ErrorCode.PROVIDER_NOT_FOUND,
            **kwargs
        )


class ProviderQuotaError(ProviderError):
    """Raised when the provider rejects our credential or quota."""

    def __init__(self, message: str, platform: str, **kwargs):
        super().__init__(
            message=message,
            platform=platform,
            error_code=ErrorCode.PROVIDER_QUOTA_EXCEEDED,
            **kwargs
        )


class ProviderUnavailableError(ProviderError):
    """Raised for any other upstream failure (network, timeout, bad payload)."""

    def __init__(self, message: str, platform: str, **kwargs):
        super().__init__(
            message=message,
            platform=platform,
            error_code=ErrorCode.PROVIDER_UNAVAILABLE,
            **kwargs
        )


# System Errors
class InternalError(QuickFetchException):
    """Raised for unexpected internal errors."""

    def __init__(self, reason: Optional[str] = None, **kwargs):
        super().__init__(
            message="Failed to fetch video metadata",
            error_code=ErrorCode.INTERNAL_ERROR,
            status_code=500,
            retryable=False,
            **kwargs
        )
        if reason:
            self.details["reason"] = reason
