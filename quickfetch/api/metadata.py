"""
Metadata API endpoints for QuickFetch.

This module provides the POST /api/v1/metadata endpoint together with the
platform catalogue and rate limit statistics.
"""

import time
import logging
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from quickfetch.middleware.rate_limiter import get_client_id
from quickfetch.models.video import MetadataRequest
from quickfetch.services.metadata_service import MetadataService


# Configure logging
logger = logging.getLogger(__name__)

# Create API router
router = APIRouter(prefix="/api/v1", tags=["metadata"])


def get_metadata_service(request: Request) -> MetadataService:
    """Dependency returning the service owned by the application."""
    return request.app.state.metadata_service


@router.post(
    "/metadata",
    responses={
        200: {"description": "Metadata fetched successfully"},
        400: {"description": "Invalid request or unsupported URL"},
        429: {"description": "Rate limit exceeded"},
        500: {"description": "Provider failure or server misconfiguration"},
    },
    summary="Fetch video metadata",
    description="Classify a YouTube, Vimeo or direct media URL and return its normalized metadata.",
    # The body is parsed by the service after admission; documented here only.
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": MetadataRequest.model_json_schema()}},
        }
    }
)
async def get_metadata(
    request: Request,
    service: MetadataService = Depends(get_metadata_service)
) -> JSONResponse:
    """
    Fetch normalized metadata for a video URL.

    This endpoint:
    - Charges the caller's rate limit quota before reading the body
    - Classifies the URL to a supported provider
    - Fetches and normalizes provider metadata
    - Reports quota state in X-RateLimit-* headers

    Args:
        request: Incoming request carrying the JSON body {"url": ...}
        service: MetadataService dependency

    Returns:
        JSONResponse with metadata or error information
    """
    start_time = time.time()
    client_id = get_client_id(request.headers)

    outcome = await service.handle_body(client_id, request.body)

    response_time = (time.time() - start_time) * 1000
    logger.info(
        f"Metadata request from {client_id} finished with {outcome.status_code} "
        f"in {response_time:.2f}ms"
    )

    return JSONResponse(
        status_code=outcome.status_code,
        content=outcome.content(),
        headers=outcome.headers
    )


@router.get(
    "/platforms",
    summary="List supported platforms",
    description="Supported providers with their features and usage restrictions"
)
async def list_platforms(service: MetadataService = Depends(get_metadata_service)) -> JSONResponse:
    """Return the supported platform catalogue."""
    return JSONResponse(
        status_code=200,
        content={"success": True, "data": service.supported_platforms()}
    )


@router.get(
    "/rate-limit/stats",
    summary="Get rate limiter statistics",
    description="Admission counters and configuration of the rate limiter"
)
async def get_rate_limit_stats(service: MetadataService = Depends(get_metadata_service)) -> JSONResponse:
    """Return rate limiter metrics."""
    return JSONResponse(
        status_code=200,
        content={
            "success": True,
            "data": service.rate_limiter.get_metrics(),
            "timestamp": time.time()
        }
    )
