"""Health API Endpoint.

Endpoints:
- GET /v1/health - Liveness with version, uptime and queue counts
"""

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from mediavault import __version__
from mediavault.api.dependencies import get_scheduler
from mediavault.api.routes.images import QueueStatusResponse
from mediavault.core.jobs import JobScheduler

router = APIRouter(prefix="/v1", tags=["health"])

# Module-level startup time (set when module loads)
_module_start_time: float = time.time()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Overall health status")
    version: str = Field(..., description="Application version")
    timestamp: str = Field(..., description="ISO 8601 timestamp")
    uptime_seconds: float = Field(default=0.0, description="Server uptime in seconds")
    queue: QueueStatusResponse = Field(..., description="Background job counts")


@router.get("/health", response_model=HealthResponse)
async def health_check(
    scheduler: JobScheduler = Depends(get_scheduler),
) -> HealthResponse:
    """Always 200 while the process is serving requests."""
    counts = scheduler.get_queue_status()
    return HealthResponse(
        status="healthy",
        version=__version__,
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime_seconds=round(time.time() - _module_start_time, 2),
        queue=QueueStatusResponse(**counts.to_dict()),
    )
