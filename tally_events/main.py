"""FastAPI application entry point."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from tally_events.config import settings
from tally_events.dependencies import init_dependencies
from tally_events.exceptions import TallyEventsError
from tally_events.handlers.exception_handler import (
    generic_exception_handler,
    tally_events_exception_handler,
)
from tally_events.logging.config import configure_logging
from tally_events.middleware import LoggingMiddleware, RequestSizeValidationMiddleware
from tally_events.routes import status, track

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Refuse to start without warehouse configuration."""
    init_dependencies()
    yield


app = FastAPI(
    lifespan=lifespan,
    title=settings.api_title,
    version=settings.api_version,
    description="""
## Tally Events API

Edge ingestion endpoint for the Tally Analytics browser SDK.

- `POST /v1/track` accepts a batch of 1-10 events under `{"events": [...]}`
- Events of projects that are not active are dropped silently
- Accepted events are appended to the Tinybird `events` datasource
- CORS is open to every origin; the SDK runs on customer sites
""",
    docs_url="/docs",
    redoc_url="/redoc",
)

# First added = innermost; size check runs after the logger has a correlation ID
app.add_middleware(RequestSizeValidationMiddleware)
app.add_middleware(LoggingMiddleware)

app.add_exception_handler(TallyEventsError, tally_events_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

app.include_router(track.router)
app.include_router(status.router)


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Service information."""
    return {
        "message": f"Welcome to {settings.api_title}",
        "version": settings.api_version,
        "track": "/v1/track",
        "health": "/status",
    }
