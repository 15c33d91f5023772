"""Health check endpoint."""

import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from tally_events.config import settings

_app_start_time = time.time()

router = APIRouter(tags=["Health"])


@router.get("/status")
async def get_status() -> JSONResponse:
    """
    Liveness probe for load balancers and uptime checks.

    Does not touch DynamoDB or Tinybird.
    """
    return JSONResponse(
        status_code=200,
        content={
            "status": "ok",
            "version": settings.api_version,
            "uptime_seconds": int(time.time() - _app_start_time),
        },
    )
