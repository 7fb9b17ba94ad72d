"""
Metadata orchestration service for QuickFetch.

This module ties together admission control, URL classification and provider
dispatch, and turns every terminal state of a request into a response-ready
outcome (status code, body and quota headers).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

import httpx
from pydantic import ValidationError

from quickfetch.core.config import Settings, settings as default_settings
from quickfetch.core.exceptions import (
    ConfigurationError, InternalError, InvalidInputError, ProviderError,
    QuickFetchException, RateLimitExceededError, UnsupportedUrlError
)
from quickfetch.middleware.rate_limiter import (
    RateLimitConfig, RateLimitDecision, RateLimiter, rate_limit_headers
)
from quickfetch.models.video import ApiResult, CanonicalMetadata, MetadataRequest, Platform
from quickfetch.services.providers import DirectAdapter, ProviderAdapter, VimeoAdapter, YouTubeAdapter
from quickfetch.services.url_classifier import UrlClassifier


logger = logging.getLogger(__name__)


@dataclass
class MetadataOutcome:
    """Framework-neutral result of one metadata request."""
    status_code: int
    body: ApiResult
    headers: Dict[str, str] = field(default_factory=dict)

    def content(self) -> Dict[str, Any]:
        return self.body.model_dump(mode="json", by_alias=True, exclude_none=True)


class MetadataService:
    """
    Orchestrates a metadata request.

    Received -> Admitted | RateLimited -> Classified | Unsupported
    -> Fetched | ProviderFailed
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        adapters: Iterable[ProviderAdapter],
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the service.

        Args:
            rate_limiter: Limiter owned by this service
            adapters: Exactly one adapter per Platform member
            http_client: Client shared by the adapters, closed by aclose()

        Raises:
            ValueError: If the adapters do not cover every platform exactly once
        """
        self.rate_limiter = rate_limiter
        self.http_client = http_client
        self.adapters: Dict[Platform, ProviderAdapter] = {}

        for adapter in adapters:
            if adapter.platform in self.adapters:
                raise ValueError(f"Duplicate adapter for platform '{adapter.platform.value}'")
            self.adapters[adapter.platform] = adapter

        missing = set(Platform) - set(self.adapters)
        if missing:
            names = ", ".join(sorted(platform.value for platform in missing))
            raise ValueError(f"No adapter registered for: {names}")

    async def fetch(self, url: Any) -> CanonicalMetadata:
        """
        Classify a URL and fetch its canonical metadata.

        Args:
            url: Raw URL from the request body

        Returns:
            CanonicalMetadata for the video

        Raises:
            InvalidInputError: If url is missing or not a string
            UnsupportedUrlError: If no provider recognizes the URL
            ConfigurationError: If the provider adapter is misconfigured
            ProviderError: If the provider fails
        """
        if not url or not isinstance(url, str):
            raise InvalidInputError()

        reference = UrlClassifier.classify(url)
        if reference is None:
            raise UnsupportedUrlError(url=url)

        adapter = self.adapters[reference.platform]
        logger.info(f"Fetching {reference.platform.value} metadata for {reference.native_id}")
        return await adapter.fetch(reference.native_id)

    async def handle(self, client_id: str, url: Any) -> MetadataOutcome:
        """
        Run one request through admission, classification and fetching.

        Never raises; every failure becomes an error outcome.
        """
        async def provide_url() -> Any:
            return url

        return await self._handle(client_id, provide_url)

    async def handle_body(self, client_id: str, read_body: Callable[[], Awaitable[bytes]]) -> MetadataOutcome:
        """
        Like handle(), but reads the raw JSON request body only after admission.

        Bodies that are not a JSON object are reported as invalid input and
        still count against the client's quota.
        """
        async def provide_url() -> Any:
            raw = await read_body()
            try:
                return MetadataRequest.model_validate_json(raw or b"").url
            except ValidationError:
                raise InvalidInputError(
                    "Invalid request body",
                    suggestion='Send a JSON body of the form {"url": "<video url>"}',
                )

        return await self._handle(client_id, provide_url)

    async def _handle(self, client_id: str, provide_url: Callable[[], Awaitable[Any]]) -> MetadataOutcome:
        decision = await self.rate_limiter.check(client_id)
        if not decision.allowed:
            exc = RateLimitExceededError(reset_at=decision.reset_at, limit=decision.limit)
            logger.warning(
                f"Rate limit exceeded for client {client_id}",
                extra={"client_id": client_id, "error_code": exc.error_code.value},
            )
            return self._error_outcome(exc, decision)

        try:
            metadata = await self.fetch(await provide_url())
        except (InvalidInputError, UnsupportedUrlError) as e:
            logger.warning(f"Rejected metadata request: {e.message}", extra={"error_code": e.error_code.value})
            return self._error_outcome(e, decision)
        except ConfigurationError as e:
            logger.error(
                f"Metadata service misconfigured: {e.message}",
                extra={"error_code": e.error_code.value, "setting": e.details.get("setting")},
            )
            return self._error_outcome(e, decision)
        except ProviderError as e:
            logger.error(
                f"Provider error: {e.message}",
                extra={"error_code": e.error_code.value, "platform": e.platform},
            )
            return self._error_outcome(e, decision)
        except Exception as e:
            logger.exception(f"Unexpected error fetching metadata: {e}")
            return self._error_outcome(InternalError(reason=str(e)), decision)

        return MetadataOutcome(
            status_code=200,
            body=ApiResult[CanonicalMetadata](success=True, data=metadata),
            headers=rate_limit_headers(decision),
        )

    def supported_platforms(self) -> List[Dict[str, object]]:
        """Catalogue of platforms this service can handle."""
        return [
            entry for entry in UrlClassifier.get_supported_platforms()
            if Platform(entry['platform']) in self.adapters
        ]

    async def aclose(self):
        """Release the shared HTTP client."""
        if self.http_client is not None:
            await self.http_client.aclose()

    @staticmethod
    def _error_outcome(exc: QuickFetchException, decision: RateLimitDecision) -> MetadataOutcome:
        return MetadataOutcome(
            status_code=exc.status_code,
            body=ApiResult(
                success=False,
                error=exc.public_message,
                code=exc.error_code.value,
                suggestion=exc.suggestion,
            ),
            headers=rate_limit_headers(decision),
        )


def build_metadata_service(
    config: Optional[Settings] = None,
    rate_limiter: Optional[RateLimiter] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> MetadataService:
    """
    Build a MetadataService wired from settings.

    Args:
        config: Settings to read (defaults to the global settings)
        rate_limiter: Limiter to use instead of one built from settings
        http_client: Client to use instead of a new httpx.AsyncClient
    """
    config = config or default_settings
    limiter = rate_limiter or RateLimiter(RateLimitConfig(
        max_requests=config.rate_limit_max_requests,
        window_ms=config.rate_limit_window_ms,
        cleanup_interval_ms=config.rate_limit_cleanup_interval_ms,
        redis_url=config.redis_url,
    ))
    client = http_client or httpx.AsyncClient(
        timeout=config.provider_timeout_seconds,
        headers={"User-Agent": "QuickFetch/1.0"},
    )

    adapters = [
        YouTubeAdapter(client, api_key=config.youtube_api_key, timeout=config.provider_timeout_seconds),
        VimeoAdapter(client, timeout=config.provider_timeout_seconds),
        DirectAdapter(),
    ]
    return MetadataService(rate_limiter=limiter, adapters=adapters, http_client=client)
