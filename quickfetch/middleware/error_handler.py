"""
Error handling middleware for QuickFetch.

This module converts every error that escapes a route into the JSON envelope
used by the API ({"success": false, "error": ...}) and logs it.
"""

import time
import logging
import traceback
from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from quickfetch.core.exceptions import QuickFetchException, InternalError, ErrorCode


logger = logging.getLogger(__name__)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for handling application errors with consistent formatting.

    Catches QuickFetch exceptions raised outside the metadata service's own
    error mapping, as well as anything unexpected.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        """
        Process request and handle any errors that occur.

        Args:
            request: FastAPI request object
            call_next: Next middleware/endpoint in the chain

        Returns:
            Response object with error handling applied
        """
        start_time = time.time()

        try:
            return await call_next(request)

        except QuickFetchException as e:
            return self._handle_quickfetch_exception(request, e, start_time)

        except Exception as e:
            return self._handle_unexpected_exception(request, e, start_time)

    def _handle_quickfetch_exception(
        self,
        request: Request,
        exc: QuickFetchException,
        start_time: float
    ) -> JSONResponse:
        """Handle QuickFetch custom exceptions."""
        response_time = (time.time() - start_time) * 1000

        log_data = {
            "error_code": exc.error_code.value,
            "path": request.url.path,
            "method": request.method,
            "response_time_ms": round(response_time, 2),
        }

        if exc.status_code >= 500:
            logger.error(f"QuickFetch error: {exc.message}", extra=log_data)
        else:
            logger.warning(f"QuickFetch error: {exc.message}", extra=log_data)

        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict()
        )

    def _handle_unexpected_exception(
        self,
        request: Request,
        exc: Exception,
        start_time: float
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        response_time = (time.time() - start_time) * 1000

        logger.error(
            f"Unexpected error: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "response_time_ms": round(response_time, 2),
                "traceback": traceback.format_exc()
            }
        )

        return JSONResponse(
            status_code=500,
            content=InternalError(reason=str(exc)).to_dict()
        )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report unparseable request bodies as invalid input (400)."""
    errors = exc.errors()
    error_detail = errors[0] if errors else {}
    field_name = error_detail.get('loc', ['unknown'])[-1] if error_detail.get('loc') else 'unknown'

    logger.warning(
        f"Validation error: {error_detail.get('msg', 'Validation error')}",
        extra={"field": field_name, "path": request.url.path, "method": request.method}
    )

    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": "Invalid request body",
            "code": ErrorCode.INVALID_INPUT.value,
            "suggestion": 'Send a JSON body of the form {"url": "<video url>"}',
        }
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap framework HTTP errors (404, 405, ...) in the API envelope."""
    logger.warning(
        f"HTTP exception: {exc.detail}",
        extra={"status_code": exc.status_code, "path": request.url.path, "method": request.method}
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail)},
        headers=getattr(exc, "headers", None)
    )
