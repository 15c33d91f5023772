"""
Tinybird Events API client.

Appends rows to a Tinybird datasource through ``POST /v0/events`` using
NDJSON bodies. Server errors and transport failures are retried with
exponential backoff; any other non-2xx response fails immediately.
"""

import asyncio
import json
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from tally_events.config import Settings
from tally_events.exceptions import (
    ConfigurationError,
    FatalDeliveryError,
    TransientDeliveryError,
)
from tally_events.logging.config import get_logger

logger = get_logger(__name__)

NDJSON_CONTENT_TYPE = "application/x-ndjson"


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry: ``max_attempts`` total tries, delay doubles from ``base_delay_ms``."""

    max_attempts: int = 3
    base_delay_ms: int = 200

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_ms < 0:
            raise ValueError("base_delay_ms must not be negative")

    def delay_seconds(self, attempt: int) -> float:
        """Delay before the retry that follows 0-based ``attempt``."""
        return self.base_delay_ms * (2**attempt) / 1000


def to_ndjson(records: Sequence[Any]) -> str:
    """
    Encode records as compact JSON, one per line, each ending in a newline.

    Raises:
        ValueError: If a record holds NaN or an infinity
    """
    return "".join(
        json.dumps(record, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
        + "\n"
        for record in records
    )


def build_events_url(api_url: str, datasource: str, wait: bool = True) -> str:
    """Return ``{api_url}/v0/events?name={datasource}&wait=...``."""
    url = httpx.URL(api_url).join("/v0/events")
    return str(
        url.copy_merge_params({"name": datasource, "wait": "true" if wait else "false"})
    )


class TinybirdClient:
    """
    Async client for appending events to a Tinybird datasource.

    A fresh ``httpx.AsyncClient`` is opened per ``append_events`` call; pass
    ``transport`` (for example ``httpx.MockTransport``) to replace the
    network layer.
    """

    def __init__(
        self,
        api_url: str,
        token: str,
        datasource: str,
        transport: httpx.AsyncBaseTransport | None = None,
        retry: RetryPolicy | None = None,
        wait: bool = True,
        timeout: float = 10.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the client.

        Args:
            api_url: Tinybird API base URL (region specific)
            token: Token with append rights on the datasource
            datasource: Target datasource name
            transport: Optional httpx transport override
            retry: Retry policy (3 attempts, 200ms base delay by default)
            wait: Ask Tinybird to acknowledge only once rows are written
            timeout: Per-request timeout in seconds
            sleep: Coroutine used to wait between attempts

        Raises:
            ConfigurationError: If api_url, token or datasource is empty
        """
        missing = [
            name
            for name, value in (
                ("api_url", api_url),
                ("token", token),
                ("datasource", datasource),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                missing, message=f"Missing Tinybird {', '.join(missing)}"
            )

        self.token = token
        self.datasource = datasource
        self.url = build_events_url(api_url, datasource, wait)
        self.retry = retry or RetryPolicy()
        self.timeout = timeout
        self._transport = transport
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        config: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "TinybirdClient":
        """
        Build a client from environment-backed settings.

        Settings are re-read from the environment unless ``config`` is
        given, so missing variables are reported at construction time.

        Raises:
            ConfigurationError: Naming every missing variable
        """
        config = config or Settings()
        missing = [
            env_name
            for env_name, value in (
                ("TINYBIRD_API_URL", config.tinybird_api_url),
                ("TINYBIRD_EVENTS_TOKEN", config.tinybird_events_token),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(missing)

        return cls(
            api_url=config.tinybird_api_url,
            token=config.tinybird_events_token,
            datasource=config.tinybird_events_datasource,
            transport=transport,
            retry=RetryPolicy(
                max_attempts=config.tinybird_max_attempts,
                base_delay_ms=config.tinybird_base_delay_ms,
            ),
            wait=config.tinybird_wait,
            timeout=config.tinybird_timeout_seconds,
        )

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": NDJSON_CONTENT_TYPE,
        }

    async def append_events(self, records: Sequence[Any]) -> None:
        """
        Append records to the datasource.

        Args:
            records: JSON-serializable rows, sent in order

        Raises:
            FatalDeliveryError: On a non-retryable response or once all
                attempts are used up
        """
        if not records:
            return

        body = to_ndjson(records).encode("utf-8")
        attempts = self.retry.max_attempts
        last_error: TransientDeliveryError | None = None

        async with httpx.AsyncClient(
            transport=self._transport, timeout=self.timeout
        ) as client:
            for attempt in range(attempts):
                try:
                    response = await client.post(
                        self.url, content=body, headers=self.headers
                    )
                except httpx.TransportError as exc:
                    last_error = TransientDeliveryError(
                        f"Tinybird request failed: {type(exc).__name__}: {exc}"
                    )
                    last_error.__cause__ = exc
                else:
                    if response.is_success:
                        return

                    detail = response.text[:500] or response.reason_phrase
                    message = (
                        f"Tinybird ingestion failed "
                        f"(status={response.status_code}): {detail}"
                    )
                    if response.status_code < 500:
                        raise FatalDeliveryError(
                            message,
                            upstream_status=response.status_code,
                            attempts=attempt + 1,
                        )
                    last_error = TransientDeliveryError(
                        message, upstream_status=response.status_code
                    )

                if attempt < attempts - 1:
                    delay = self.retry.delay_seconds(attempt)
                    logger.warning(
                        "Tinybird append failed, retrying",
                        extra={
                            "context": {
                                "datasource": self.datasource,
                                "attempt": attempt + 1,
                                "max_attempts": attempts,
                                "delay_ms": round(delay * 1000),
                                "error": last_error.message,
                            }
                        },
                    )
                    if delay > 0:
                        await self._sleep(delay)

        raise FatalDeliveryError(
            f"Tinybird ingestion failed after {attempts} attempts: "
            f"{last_error.message}",
            upstream_status=last_error.upstream_status,
            attempts=attempts,
        ) from last_error
