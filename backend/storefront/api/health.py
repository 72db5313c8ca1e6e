"""Health check endpoint: database reachability and signing key status."""

from typing import Literal

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from storefront.core import check_db_connection, settings

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["healthy", "unhealthy"]
    version: str
    database: Literal["connected", "disconnected"]
    # "ephemeral" means sessions will not survive a restart
    signing_key: Literal["configured", "ephemeral"]


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={
        status.HTTP_200_OK: {"description": "Service is healthy"},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Database unreachable"},
    },
)
async def health_check(response: Response) -> HealthResponse:
    """Report service health.

    Login state lives in the database, so without it no one can sign in;
    returns 503 in that case.
    """
    db_healthy = await check_db_connection()
    if not db_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status="healthy" if db_healthy else "unhealthy",
        version=settings.app_version,
        database="connected" if db_healthy else "disconnected",
        signing_key="configured" if settings.jwt_secret_key else "ephemeral",
    )
