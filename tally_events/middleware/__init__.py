"""Middleware components for request processing."""

from tally_events.middleware.logging import LoggingMiddleware
from tally_events.middleware.request_validation import RequestSizeValidationMiddleware

__all__ = [
    "LoggingMiddleware",
    "RequestSizeValidationMiddleware",
]
