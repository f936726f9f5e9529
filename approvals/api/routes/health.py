"""Health check routes."""

from fastapi import APIRouter, Request
from pydantic import BaseModel

from approvals import __version__
from approvals.core.database import check_database

router = APIRouter(prefix="/health", tags=["Health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str


class ReadyResponse(BaseModel):
    """Readiness check response."""

    status: str
    database: str
    email_worker: str
    pending_emails: int


@router.get(
    "",
    response_model=HealthResponse,
    summary="Health check",
    description="Check if the service is running.",
)
async def health_check() -> HealthResponse:
    """Return service health status."""
    return HealthResponse(status="healthy", version=__version__)


@router.get(
    "/ready",
    response_model=ReadyResponse,
    summary="Readiness check",
    description="Check if the service is ready to receive traffic.",
)
async def readiness_check(request: Request) -> ReadyResponse:
    """Return service readiness status."""
    email_queue = getattr(request.app.state, "email_queue", None)
    running = email_queue is not None and email_queue.running
    database_ok = await check_database()
    return ReadyResponse(
        status="ready" if running and database_ok else "degraded",
        database="connected" if database_ok else "unavailable",
        email_worker="running" if running else "stopped",
        pending_emails=email_queue.pending() if email_queue is not None else 0,
    )


@router.get(
    "/live",
    summary="Liveness check",
    description="Kubernetes liveness probe endpoint.",
)
async def liveness_check() -> dict:
    """Return liveness status."""
    return {"status": "alive"}
