"""Pydantic schemas for the event ingestion API."""

from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import (
    AllowInfNan,
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    StrictStr,
    field_validator,
)

MAX_EVENTS_PER_BATCH = 10

NonEmptyStr = Annotated[StrictStr, Field(min_length=1)]
Number = Union[StrictInt, Annotated[StrictFloat, AllowInfNan(False)]]


class AnalyticsEvent(BaseModel):
    """
    A single analytics event as sent by the browser SDK.

    Validation is strict: strings are never coerced to numbers (or the
    reverse) and booleans are not accepted for integer fields. Optional fields may be
    left out, but an explicit null is rejected, as are NaN and infinities.
    Keys that are not declared here are dropped.
    """

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        json_schema_extra={
            "example": {
                "project_id": "proj_abc123",
                "session_id": "sess_9f8e7d",
                "event_type": "page_view",
                "timestamp": "2025-01-01T00:00:00.000Z",
                "url": "https://example.com/pricing",
                "path": "/pricing",
                "engagement_time_ms": 5000,
                "scroll_depth": 75,
                "is_returning": 1,
            }
        },
    )

    project_id: NonEmptyStr = Field(..., description="Tally project identifier")
    session_id: NonEmptyStr = Field(..., description="Browser session identifier")
    event_type: Literal["page_view", "session_start"] = Field(
        ..., description="Kind of event"
    )
    timestamp: NonEmptyStr = Field(..., description="ISO 8601 client timestamp")

    url: Optional[StrictStr] = None
    path: Optional[StrictStr] = None
    referrer: Optional[StrictStr] = None
    country: Optional[StrictStr] = None
    city: Optional[StrictStr] = None
    user_agent: Optional[StrictStr] = None
    screen_width: Optional[Number] = None
    user_id: Optional[StrictStr] = None

    # V2 enhanced metrics
    engagement_time_ms: Optional[Annotated[StrictInt, Field(ge=0)]] = None
    scroll_depth: Optional[Number] = None
    visitor_id: Optional[StrictStr] = None
    is_returning: Optional[Annotated[StrictInt, Field(ge=0, le=1)]] = None
    utm_source: Optional[StrictStr] = None
    utm_medium: Optional[StrictStr] = None
    utm_campaign: Optional[StrictStr] = None
    utm_term: Optional[StrictStr] = None
    utm_content: Optional[StrictStr] = None
    cta_clicks: Optional[StrictStr] = Field(
        None, description="JSON-serialized list of CTA click records"
    )

    @field_validator("*", mode="before")
    @classmethod
    def reject_null(cls, v):
        """Optional fields may be omitted but not sent as null."""
        if v is None:
            raise ValueError("Field may be omitted but must not be null")
        return v

    def to_record(self) -> dict[str, Any]:
        """Return the warehouse row for this event (unset fields omitted)."""
        return self.model_dump(exclude_none=True)


class TrackRequest(BaseModel):
    """Envelope posted to /v1/track."""

    events: List[AnalyticsEvent] = Field(
        ..., min_length=1, max_length=MAX_EVENTS_PER_BATCH
    )


class TrackResponse(BaseModel):
    """Body returned for every accepted batch."""

    success: bool = True
    received: int = Field(..., ge=0, description="Number of events in the batch")
