from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

from quickfetch.api.metadata import router as metadata_router
from quickfetch.middleware.error_handler import (
    ErrorHandlingMiddleware, http_exception_handler, validation_exception_handler
)
from quickfetch.services.metadata_service import MetadataService, build_metadata_service
from quickfetch.core.config import settings

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)


def create_app(metadata_service: Optional[MetadataService] = None) -> FastAPI:
    """
    Build the QuickFetch application.

    Args:
        metadata_service: Service to serve requests with; built from settings when omitted
    """
    app = FastAPI(
        title="QuickFetch API",
        description="Video metadata lookup for YouTube, Vimeo and direct media links",
        version="1.0.0",
        debug=settings.debug
    )

    app.state.metadata_service = metadata_service or build_metadata_service(settings)

    # Error handling middleware (should be first)
    app.add_middleware(ErrorHandlingMiddleware)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset", "Retry-After"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    # Include API routers
    app.include_router(metadata_router)

    @app.on_event("startup")
    async def startup_event():
        """Initialize services on startup."""
        logger = logging.getLogger(__name__)
        logger.info("Starting QuickFetch API services")

        await app.state.metadata_service.rate_limiter.start()
        logger.info("Rate limiter started")

        if not settings.youtube_api_key:
            logger.warning("YOUTUBE_API_KEY is not set; YouTube lookups will fail")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Cleanup services on shutdown."""
        logger = logging.getLogger(__name__)
        logger.info("Shutting down QuickFetch API services")

        await app.state.metadata_service.rate_limiter.stop()
        logger.info("Rate limiter stopped")

        await app.state.metadata_service.aclose()
        logger.info("HTTP client closed")

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("quickfetch.main:app", host="0.0.0.0", port=8000)
