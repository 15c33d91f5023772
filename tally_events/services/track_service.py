"""Track service: admission and delivery for validated event batches."""

import asyncio
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from tally_events.exceptions import AdmissionIndeterminateError, DeliveryError
from tally_events.logging.config import get_logger
from tally_events.schemas.event import AnalyticsEvent

logger = get_logger(__name__)


class ProjectActivityChecker(Protocol):
    def is_project_active(self, project_id: str) -> Awaitable[bool]: ...


class EventAppender(Protocol):
    def append_events(self, records: Sequence[Any]) -> Awaitable[None]: ...


@dataclass(frozen=True)
class IngestionOutcome:
    """
    Result of processing one batch after validation.

    Attributes:
        received: Events in the submitted batch
        admitted: Events whose project is active
        dropped_inactive: Events dropped because the project is not active
        dropped_indeterminate: Events dropped because the status check failed
        delivered: Whether admitted events reached the warehouse
        delivery_error: Failure message when delivery was attempted and failed
    """

    received: int
    admitted: int
    dropped_inactive: int
    dropped_indeterminate: int
    delivered: bool
    delivery_error: str | None = None

    def as_log_context(self) -> dict[str, Any]:
        return {
            "received": self.received,
            "admitted": self.admitted,
            "dropped_inactive": self.dropped_inactive,
            "dropped_indeterminate": self.dropped_indeterminate,
            "delivered": self.delivered,
            "delivery_error": self.delivery_error,
        }


class TrackService:
    """
    Orchestrates admission and delivery of a validated batch.

    Every event is checked against the project activity cache; events of
    active projects are forwarded to the warehouse in one call, in the order
    they were submitted. Admission and delivery failures are logged and
    reported in the returned outcome, never raised.
    """

    def __init__(
        self,
        project_cache: ProjectActivityChecker,
        warehouse: EventAppender,
    ) -> None:
        """
        Initialize TrackService.

        Args:
            project_cache: Answers whether a project may ingest events
            warehouse: Client that appends rows to the events datasource
        """
        self.project_cache = project_cache
        self.warehouse = warehouse

    async def _admit(
        self, event: AnalyticsEvent, correlation_id: str | None
    ) -> bool | None:
        """Return the activity flag for the event's project, or None if unknown."""
        try:
            return await self.project_cache.is_project_active(event.project_id)
        except Exception as exc:
            error = AdmissionIndeterminateError(event.project_id, cause=exc)
            logger.warning(
                error.message,
                exc_info=exc,
                extra={
                    "correlation_id": correlation_id,
                    "context": {
                        "error_code": error.error_code,
                        "project_id": event.project_id,
                    },
                },
            )
            return None

    async def ingest(
        self,
        events: Sequence[AnalyticsEvent],
        correlation_id: str | None = None,
    ) -> IngestionOutcome:
        """
        Admit and deliver a batch.

        Args:
            events: Validated events, in submitted order
            correlation_id: Request correlation ID for log lines

        Returns:
            IngestionOutcome describing what happened to the batch
        """
        decisions = await asyncio.gather(
            *(self._admit(event, correlation_id) for event in events)
        )

        admitted = [event for event, active in zip(events, decisions) if active]
        dropped_inactive = sum(1 for active in decisions if active is False)
        dropped_indeterminate = sum(1 for active in decisions if active is None)

        delivered = False
        delivery_error = None
        if admitted:
            try:
                await self.warehouse.append_events(
                    [event.to_record() for event in admitted]
                )
                delivered = True
            except DeliveryError as exc:
                delivery_error = exc.message
                logger.error(
                    "Event delivery failed",
                    exc_info=exc,
                    extra={
                        "correlation_id": correlation_id,
                        "context": {
                            "error_code": exc.error_code,
                            "event_count": len(admitted),
                            **exc.details,
                        },
                    },
                )

        outcome = IngestionOutcome(
            received=len(events),
            admitted=len(admitted),
            dropped_inactive=dropped_inactive,
            dropped_indeterminate=dropped_indeterminate,
            delivered=delivered,
            delivery_error=delivery_error,
        )
        logger.info(
            "Batch processed",
            extra={"correlation_id": correlation_id, "context": outcome.as_log_context()},
        )
        return outcome
