"""Integration tests for POST /v1/track."""

import json
from unittest.mock import AsyncMock

import pytest
from fastapi import status
from httpx import ASGITransport, AsyncClient, Response

from tally_events.dependencies import get_track_service
from tally_events.exceptions import FatalDeliveryError
from tally_events.main import app
from tally_events.services.track_service import TrackService


@pytest.fixture
def valid_event() -> dict:
    """Minimal V1 event as sent by the SDK."""
    return {
        "project_id": "proj_test",
        "session_id": "sess_test",
        "event_type": "page_view",
        "timestamp": "2025-01-01T00:00:00.000Z",
        "url": "https://example.com/",
        "path": "/",
    }


@pytest.fixture
def v2_fields() -> dict:
    """Every V2 enhanced-metrics field."""
    return {
        "engagement_time_ms": 5000,
        "scroll_depth": 75,
        "visitor_id": "vid_abc123",
        "is_returning": 1,
        "utm_source": "google",
        "utm_medium": "cpc",
        "utm_campaign": "summer_sale",
        "utm_term": "analytics",
        "utm_content": "banner_1",
        "cta_clicks": json.dumps([{"type": "button", "text": "Sign Up", "href": "/signup"}]),
    }


@pytest.fixture
def project_cache() -> AsyncMock:
    """Project cache that reports every project as active."""
    cache = AsyncMock()
    cache.is_project_active = AsyncMock(return_value=True)
    return cache


@pytest.fixture
def warehouse() -> AsyncMock:
    """Warehouse client that accepts everything."""
    client = AsyncMock()
    client.append_events = AsyncMock(return_value=None)
    return client


@pytest.fixture(autouse=True)
def track_service(project_cache, warehouse):
    """Route requests through a TrackService built on the mocks."""
    app.dependency_overrides[get_track_service] = lambda: TrackService(
        project_cache=project_cache, warehouse=warehouse
    )
    yield
    app.dependency_overrides.clear()


async def post_events(payload) -> Response:
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        return await client.post("/v1/track", json=payload)


@pytest.mark.asyncio
async def test_accepts_batch_and_forwards_to_warehouse(valid_event, warehouse):
    """Test a valid single-event batch is forwarded unchanged."""
    response = await post_events({"events": [valid_event]})

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"success": True, "received": 1}
    warehouse.append_events.assert_awaited_once_with([valid_event])


@pytest.mark.asyncio
async def test_forwards_admitted_events_in_order(valid_event, warehouse):
    """Test two admitted events are delivered in one call, in order."""
    first = {**valid_event, "path": "/a"}
    second = {**valid_event, "path": "/b", "event_type": "session_start"}

    response = await post_events({"events": [first, second]})

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"success": True, "received": 2}
    warehouse.append_events.assert_awaited_once_with([first, second])


@pytest.mark.asyncio
async def test_accepts_ten_events(valid_event, warehouse):
    """Test the maximum batch size is accepted."""
    response = await post_events({"events": [valid_event] * 10})

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["received"] == 10
    assert len(warehouse.append_events.call_args[0][0]) == 10


@pytest.mark.asyncio
async def test_rejects_wrong_type_for_required_field(valid_event, warehouse):
    """Test a numeric project_id rejects the batch."""
    response = await post_events({"events": [{**valid_event, "project_id": 123}]})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    data = response.json()
    assert data["status"] == "error"
    assert data["error_code"] == "VALIDATION_ERROR"
    assert data["details"]["reason"] == "type"
    warehouse.append_events.assert_not_called()


@pytest.mark.asyncio
async def test_rejects_missing_required_field(valid_event, warehouse):
    """Test an event without session_id rejects the batch."""
    event = {k: v for k, v in valid_event.items() if k != "session_id"}

    response = await post_events({"events": [event]})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    fields = [e["field"] for e in response.json()["details"]["validation_errors"]]
    assert "events.0.session_id" in fields
    warehouse.append_events.assert_not_called()


@pytest.mark.asyncio
async def test_rejects_unknown_event_type(valid_event, warehouse):
    """Test event_type outside the known set is rejected."""
    response = await post_events({"events": [{**valid_event, "event_type": "click"}]})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    warehouse.append_events.assert_not_called()


@pytest.mark.asyncio
async def test_rejects_empty_and_oversized_batches(valid_event, project_cache, warehouse):
    """Test batches of 0 and 11 events are rejected before admission."""
    empty = await post_events({"events": []})
    too_many = await post_events({"events": [valid_event] * 11})

    assert empty.status_code == status.HTTP_400_BAD_REQUEST
    assert too_many.status_code == status.HTTP_400_BAD_REQUEST
    assert empty.json()["details"]["reason"] == "structure"
    assert too_many.json()["details"]["reason"] == "structure"
    project_cache.is_project_active.assert_not_called()
    warehouse.append_events.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [{}, {"events": "nope"}, {"events": {"project_id": "x"}}, [1, 2]],
)
async def test_rejects_malformed_envelope(payload, warehouse):
    """Test bodies without an events list are rejected."""
    response = await post_events(payload)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["details"]["reason"] == "structure"
    warehouse.append_events.assert_not_called()


@pytest.mark.asyncio
async def test_one_invalid_event_rejects_whole_batch(valid_event, project_cache, warehouse):
    """Test no partial acceptance within a batch."""
    events = [valid_event, {**valid_event, "scroll_depth": "75%"}, valid_event]

    response = await post_events({"events": events})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    project_cache.is_project_active.assert_not_called()
    warehouse.append_events.assert_not_called()


@pytest.mark.asyncio
async def test_rejects_invalid_json(warehouse):
    """Test a non-JSON body is rejected with INVALID_JSON."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        response = await client.post(
            "/v1/track",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["error_code"] == "INVALID_JSON"
    warehouse.append_events.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize("token", ["NaN", "Infinity", "-Infinity"])
async def test_rejects_non_json_number_tokens(valid_event, warehouse, token):
    """Test NaN and infinities are refused before they reach the warehouse."""
    event = json.dumps(valid_event)[:-1] + f', "scroll_depth": {token}}}'
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        response = await client.post(
            "/v1/track",
            content=f'{{"events": [{event}]}}'.encode(),
            headers={"Content-Type": "application/json"},
        )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["error_code"] == "INVALID_JSON"
    warehouse.append_events.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["engagement_time_ms", "referrer", "utm_source"])
async def test_rejects_null_optional_field(valid_event, project_cache, warehouse, field):
    """Test an optional field sent as null rejects the batch."""
    response = await post_events({"events": [{**valid_event, field: None}]})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["details"]["reason"] == "type"
    project_cache.is_project_active.assert_not_called()
    warehouse.append_events.assert_not_called()


@pytest.mark.asyncio
async def test_accepts_v1_event_without_v2_fields(valid_event, warehouse):
    """Test backward compatibility with V1 payloads."""
    response = await post_events({"events": [valid_event]})

    assert response.status_code == status.HTTP_200_OK
    warehouse.append_events.assert_awaited_once_with([valid_event])


@pytest.mark.asyncio
async def test_accepts_v2_event_with_all_fields(valid_event, v2_fields, warehouse):
    """Test every V2 field is accepted and forwarded."""
    event = {**valid_event, **v2_fields}

    response = await post_events({"events": [event]})

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"success": True, "received": 1}
    warehouse.append_events.assert_awaited_once_with([event])


@pytest.mark.asyncio
async def test_accepts_v2_event_with_partial_fields(valid_event, warehouse):
    """Test a subset of V2 fields is accepted."""
    event = {**valid_event, "engagement_time_ms": 3000, "utm_source": "twitter"}

    response = await post_events({"events": [event]})

    assert response.status_code == status.HTTP_200_OK
    warehouse.append_events.assert_awaited_once_with([event])


@pytest.mark.asyncio
async def test_preserves_integer_and_float_numbers(valid_event, warehouse):
    """Test numeric fields keep their JSON type on the way through."""
    event = {**valid_event, "scroll_depth": 42.5, "screen_width": 1440}

    await post_events({"events": [event]})

    forwarded = warehouse.append_events.call_args[0][0][0]
    assert forwarded["scroll_depth"] == 42.5
    assert isinstance(forwarded["screen_width"], int)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "field,value",
    [
        ("engagement_time_ms", "not a number"),
        ("engagement_time_ms", -1),
        ("engagement_time_ms", 1.5),
        ("scroll_depth", "75%"),
        ("is_returning", "yes"),
        ("is_returning", 2),
        ("is_returning", True),
        ("visitor_id", 12345),
        ("utm_source", ["google"]),
        ("cta_clicks", [{"type": "button"}]),
    ],
)
async def test_rejects_wrongly_typed_v2_fields(valid_event, warehouse, field, value):
    """Test each V2 field enforces its declared type."""
    response = await post_events({"events": [{**valid_event, field: value}]})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    warehouse.append_events.assert_not_called()


@pytest.mark.asyncio
async def test_drops_undeclared_fields(valid_event, warehouse):
    """Test unknown keys do not reach the warehouse."""
    response = await post_events({"events": [{**valid_event, "debug": True}]})

    assert response.status_code == status.HTTP_200_OK
    warehouse.append_events.assert_awaited_once_with([valid_event])


@pytest.mark.asyncio
async def test_inactive_project_is_dropped_silently(valid_event, project_cache, warehouse):
    """Test events of inactive projects still get a 200."""
    project_cache.is_project_active.return_value = False
    event = {**valid_event, "project_id": "proj_inactive"}

    response = await post_events({"events": [event]})

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"success": True, "received": 1}
    project_cache.is_project_active.assert_awaited_once_with("proj_inactive")
    warehouse.append_events.assert_not_called()


@pytest.mark.asyncio
async def test_only_active_projects_are_forwarded(valid_event, project_cache, warehouse):
    """Test mixed batches forward only admitted events, in order."""
    project_cache.is_project_active.side_effect = lambda pid: pid != "proj_off"
    first = {**valid_event, "path": "/1"}
    dropped = {**valid_event, "project_id": "proj_off"}
    last = {**valid_event, "path": "/3"}

    response = await post_events({"events": [first, dropped, last]})

    assert response.json() == {"success": True, "received": 3}
    assert project_cache.is_project_active.await_count == 3
    warehouse.append_events.assert_awaited_once_with([first, last])


@pytest.mark.asyncio
async def test_admission_failure_drops_event(valid_event, project_cache, warehouse):
    """Test a failing status lookup drops the event but not the request."""
    project_cache.is_project_active.side_effect = RuntimeError("database down")

    response = await post_events({"events": [valid_event]})

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"success": True, "received": 1}
    warehouse.append_events.assert_not_called()


@pytest.mark.asyncio
async def test_delivery_failure_still_returns_success(valid_event, warehouse):
    """Test warehouse failures are never surfaced to the browser."""
    warehouse.append_events.side_effect = FatalDeliveryError(
        "Tinybird ingestion failed after 3 attempts", upstream_status=503, attempts=3
    )

    response = await post_events({"events": [valid_event]})

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"success": True, "received": 1}
    warehouse.append_events.assert_awaited_once()


@pytest.mark.asyncio
async def test_get_is_not_allowed():
    """Test GET /v1/track returns 405."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        response = await client.get("/v1/track")

    assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED
    assert response.json()["error_code"] == "METHOD_NOT_ALLOWED"
    assert response.headers["Allow"] == "POST, OPTIONS"


@pytest.mark.asyncio
async def test_rejects_oversized_request(valid_event, warehouse):
    """Test bodies over the size limit are refused with 413."""
    event = {**valid_event, "url": "https://example.com/" + "x" * (70 * 1024)}

    response = await post_events({"events": [event]})

    assert response.status_code == status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    assert response.json()["error_code"] == "PAYLOAD_TOO_LARGE"
    warehouse.append_events.assert_not_called()
