"""Public ingestion endpoint for the browser SDK."""

import json

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse

from tally_events.dependencies import get_track_service
from tally_events.exceptions import EventValidationError, MethodNotAllowedError
from tally_events.logging.config import get_logger
from tally_events.schemas.event import AnalyticsEvent, TrackResponse
from tally_events.services.track_service import TrackService
from tally_events.services.validator import validate_batch

logger = get_logger(__name__)

router = APIRouter(prefix="/v1/track", tags=["Tracking"])

ALLOWED_METHODS = "POST, OPTIONS"
DEFAULT_ALLOWED_HEADERS = "Content-Type"


def cors_headers(request: Request | None = None) -> dict[str, str]:
    """
    CORS headers for the tracking endpoint.

    The SDK posts from arbitrary customer origins, so any origin is allowed.
    Requested headers are echoed back verbatim on preflight.
    """
    headers = {"Access-Control-Allow-Origin": "*"}
    if request is not None:
        headers["Access-Control-Allow-Methods"] = ALLOWED_METHODS
        headers["Access-Control-Allow-Headers"] = request.headers.get(
            "access-control-request-headers", DEFAULT_ALLOWED_HEADERS
        )
    return headers


def _reject_constant(token: str) -> None:
    raise ValueError(f"{token} is not valid JSON")


def _decode_body(raw: bytes) -> object:
    try:
        return json.loads(raw, parse_constant=_reject_constant)
    except (UnicodeDecodeError, ValueError) as exc:
        raise EventValidationError(
            message="Invalid JSON body",
            error_code="INVALID_JSON",
        ) from exc


async def read_batch(request: Request) -> list[AnalyticsEvent]:
    """
    Decode and validate the request body.

    Raises:
        EventValidationError: For invalid JSON or a malformed batch
    """
    try:
        return validate_batch(_decode_body(await request.body()))
    except EventValidationError as exc:
        logger.info(
            "Rejected event batch",
            extra={
                "correlation_id": getattr(request.state, "correlation_id", None),
                "context": {"error_code": exc.error_code, "reason": exc.reason},
            },
        )
        raise


@router.options("", status_code=status.HTTP_204_NO_CONTENT)
async def preflight(request: Request) -> Response:
    """Answer CORS preflight requests."""
    return Response(status_code=status.HTTP_204_NO_CONTENT, headers=cors_headers(request))


@router.post(
    "",
    response_model=TrackResponse,
    status_code=status.HTTP_200_OK,
    responses={
        200: {
            "description": "Batch accepted (events of inactive projects are dropped silently)",
            "content": {"application/json": {"example": {"success": True, "received": 2}}},
        },
        400: {
            "description": "Malformed batch",
            "content": {
                "application/json": {
                    "example": {
                        "status": "error",
                        "error_code": "VALIDATION_ERROR",
                        "message": "events.0.project_id: Input should be a valid string",
                        "details": {"reason": "type", "validation_errors": []},
                    }
                }
            },
        },
    },
)
async def track(
    request: Request,
    # Resolved before the service so a bad batch never touches the warehouse
    events: list[AnalyticsEvent] = Depends(read_batch),
    service: TrackService = Depends(get_track_service),
) -> JSONResponse:
    """
    Ingest a batch of 1-10 analytics events.

    The whole batch is rejected with 400 if any event is invalid. Once the
    batch is valid the response is always 200; admission and delivery
    problems are logged server-side only.
    """
    correlation_id = getattr(request.state, "correlation_id", None)
    await service.ingest(events, correlation_id=correlation_id)

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=TrackResponse(received=len(events)).model_dump(),
        headers=cors_headers(),
    )


@router.get("", include_in_schema=False)
async def track_get() -> None:
    """Reject GET; the SDK only POSTs."""
    raise MethodNotAllowedError()
