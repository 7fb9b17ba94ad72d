"""
Middleware package for QuickFetch API.

This package contains the fixed-window rate limiter, client identification
and the error handling middleware.
"""

from .rate_limiter import (
    RateLimitConfig,
    RateLimitDecision,
    RateLimiter,
    get_client_id,
    rate_limit_headers,
)
from .error_handler import (
    ErrorHandlingMiddleware,
    http_exception_handler,
    validation_exception_handler,
)

__all__ = [
    'RateLimitConfig',
    'RateLimitDecision',
    'RateLimiter',
    'get_client_id',
    'rate_limit_headers',
    'ErrorHandlingMiddleware',
    'http_exception_handler',
    'validation_exception_handler',
]
