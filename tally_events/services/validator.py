"""Batch validation for the ingestion endpoint."""

from typing import Any

from pydantic import ValidationError

from tally_events.exceptions import EventValidationError
from tally_events.schemas.event import (
    MAX_EVENTS_PER_BATCH,
    AnalyticsEvent,
    TrackRequest,
)


def _format_field_errors(exc: ValidationError) -> list[dict[str, str]]:
    """Flatten pydantic errors into ``{"field", "message", "type"}`` entries."""
    formatted = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"]) or "request"
        message = "Field is required" if error["type"] == "missing" else error["msg"]
        formatted.append({"field": field, "message": message, "type": error["type"]})
    return formatted


def _check_envelope(payload: Any) -> None:
    if not isinstance(payload, dict):
        raise EventValidationError(message="Request body must be a JSON object")

    events = payload.get("events")
    if events is None:
        raise EventValidationError(
            message="events: Field is required",
            details={"field": "events"},
        )
    if not isinstance(events, list):
        raise EventValidationError(
            message="events: Expected a list of events",
            details={"field": "events"},
        )
    if not 1 <= len(events) <= MAX_EVENTS_PER_BATCH:
        raise EventValidationError(
            message=(
                f"events: Batch must contain between 1 and "
                f"{MAX_EVENTS_PER_BATCH} events (got {len(events)})"
            ),
            details={"field": "events", "count": len(events)},
        )


def validate_batch(payload: Any) -> list[AnalyticsEvent]:
    """
    Validate a decoded ``{"events": [...]}`` body.

    The whole batch is rejected if the envelope is malformed or if any
    single event fails validation; there is no partial acceptance.

    Args:
        payload: Decoded JSON body

    Returns:
        Validated events, in submitted order

    Raises:
        EventValidationError: With reason "structure" for envelope problems
            and "type" for missing or wrongly-typed event fields
    """
    _check_envelope(payload)

    try:
        request = TrackRequest.model_validate(payload)
    except ValidationError as exc:
        errors = _format_field_errors(exc)
        summary = f"{errors[0]['field']}: {errors[0]['message']}"
        if len(errors) > 1:
            summary += f" (and {len(errors) - 1} more errors)"
        raise EventValidationError(
            message=summary,
            reason="type",
            details={"validation_errors": errors},
        ) from exc

    return list(request.events)
