"""
Configuration management for QuickFetch application.
"""
import os
from typing import List, Optional


class Settings:
    """Application settings with environment variable support."""

    def __init__(self):
        """Initialize settings from environment variables."""
        # Rate Limiting Configuration
        self.rate_limit_max_requests: int = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "10"))
        self.rate_limit_window_ms: int = int(os.getenv("RATE_LIMIT_WINDOW_MS", "60000"))
        self.rate_limit_cleanup_interval_ms: int = int(os.getenv("RATE_LIMIT_CLEANUP_INTERVAL_MS", "60000"))

        # Optional shared limiter backend
        self.redis_url: Optional[str] = os.getenv("REDIS_URL") or None

        # Provider Configuration
        self.youtube_api_key: Optional[str] = os.getenv("YOUTUBE_API_KEY") or None
        self.provider_timeout_seconds: float = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "10"))

        # Application settings
        self.environment: str = os.getenv("ENVIRONMENT", "development")
        self.debug: bool = os.getenv("DEBUG", "false").lower() == "true"
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.cors_allow_origins: List[str] = [
            origin.strip()
            for origin in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",")
            if origin.strip()
        ]


# Global settings instance
settings = Settings()
