"""Health check endpoints.

Unauthenticated so load balancers and container orchestration can probe them.
"""

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from app.core import check_db_connection, settings

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    message: str = "API is healthy"


class DatabaseHealthResponse(BaseModel):
    """Database connectivity response."""

    status: str
    database: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness probe; does not touch the database."""
    return HealthResponse(status="healthy", version=settings.app_version)


@router.get(
    "/health/database",
    response_model=DatabaseHealthResponse,
    responses={
        status.HTTP_200_OK: {"description": "Database is reachable"},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Database is unavailable"},
    },
)
async def database_health(response: Response) -> DatabaseHealthResponse:
    """
    Readiness probe.

    Returns 503 if the database is unavailable, since no session can be
    issued or validated without it.
    """
    db_healthy = await check_db_connection()

    if not db_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return DatabaseHealthResponse(
        status="healthy" if db_healthy else "unhealthy",
        database="connected" if db_healthy else "disconnected",
    )
