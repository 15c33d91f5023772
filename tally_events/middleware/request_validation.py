"""Request validation middleware."""

from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from tally_events.config import settings
from tally_events.exceptions import RequestTooLargeError
from tally_events.handlers.exception_handler import create_error_response


class RequestSizeValidationMiddleware(BaseHTTPMiddleware):
    """
    Reject requests whose declared Content-Length exceeds the limit.

    Runs before the body is read, so oversized uploads are refused with
    413 without being parsed.
    """

    def __init__(self, app, max_size: int | None = None) -> None:
        super().__init__(app)
        self.max_size = max_size or settings.max_request_size_bytes

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Validate request size and process request.

        Args:
            request: The incoming request
            call_next: The next middleware/handler in the chain

        Returns:
            413 error response, or the response from the handler
        """
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit():
            size = int(content_length)
            if size > self.max_size:
                max_kb = self.max_size / 1024
                exc = RequestTooLargeError(
                    message=f"Request size {size / 1024:.1f}KB exceeds maximum {max_kb:.0f}KB",
                    max_size=f"{max_kb:.0f}KB",
                    details={"request_size": f"{size / 1024:.1f}KB"},
                )
                correlation_id = getattr(request.state, "correlation_id", None)
                return create_error_response(
                    error_code=exc.error_code,
                    message=exc.message,
                    status_code=exc.status_code,
                    details=exc.details,
                    correlation_id=correlation_id,
                )

        return await call_next(request)
