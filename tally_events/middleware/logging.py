"""Request logging middleware with correlation ID support."""

import time
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from tally_events.logging.config import get_logger

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Request-ID"


def _request_context(request: Request) -> dict:
    return {
        "method": request.method,
        "path": request.url.path,
        "origin": request.headers.get("origin"),
        "client_host": request.client.host if request.client else None,
    }


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Log every request with a correlation ID.

    The ID is taken from ``X-Request-ID`` when the caller sends one and
    generated otherwise; it is stored on ``request.state`` and echoed in the
    response headers.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Process the request and add logging.

        Args:
            request: The incoming request
            call_next: The next middleware/handler in the chain

        Returns:
            The response from the handler
        """
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id

        start = time.perf_counter()
        logger.info(
            "Request started",
            extra={"correlation_id": correlation_id, "context": _request_context(request)},
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.error(
                "Request failed with exception",
                exc_info=exc,
                extra={
                    "correlation_id": correlation_id,
                    "context": {
                        **_request_context(request),
                        "response_time_ms": round(elapsed_ms, 2),
                    },
                },
            )
            raise

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Request completed",
            extra={
                "correlation_id": correlation_id,
                "context": {
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "response_time_ms": round(elapsed_ms, 2),
                },
            },
        )

        response.headers[CORRELATION_HEADER] = correlation_id
        return response
