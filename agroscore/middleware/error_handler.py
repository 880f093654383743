"""
Global error handling middleware.

Exceptions that escape a router are turned into an ``ErrorResponse`` body:
upstream failures keep a client-error status or become 502, plain
``ValueError`` (including pydantic validation of domain models) becomes 400
and anything else is reported as a generic 500.
"""
import logging
from typing import Callable

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from agroscore.api.v1.models.responses import ErrorResponse
from agroscore.infrastructure.external_api_client import ExternalAPIError

logger = logging.getLogger(__name__)


def error_response(status_code: int, error: str, detail: str) -> JSONResponse:
    """Serialize an ErrorResponse with the given status."""
    body = ErrorResponse(error=error, detail=detail)
    return JSONResponse(status_code=status_code, content=body.model_dump())


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Maps exceptions escaping the routers to consistent JSON errors."""

    async def dispatch(self, request: Request, call_next: Callable):
        route = f"{request.method} {request.url.path}"
        context = {"path": request.url.path, "method": request.method}

        try:
            return await call_next(request)

        except ExternalAPIError as e:
            logger.error(
                f"Upstream failure on {route}: {e.message}",
                extra={**context, "upstream_status": e.status_code},
            )
            return error_response(e.http_status, "External API error", e.message)

        except ValueError as e:
            logger.warning(f"Rejected {route}: {e}", extra=context)
            return error_response(status.HTTP_400_BAD_REQUEST, "Invalid request", str(e))

        except Exception as e:
            logger.exception(f"Unhandled exception on {route}: {e}", extra=context)
            return error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Internal server error",
                "An unexpected error occurred",
            )
