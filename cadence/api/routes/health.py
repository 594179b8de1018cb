# cadence/api/routes/health.py
from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel, Field

from cadence.core.config import get_settings

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    status: str = Field(..., description="Overall health status.", examples=["ok"])
    app_name: str = Field(..., examples=["Cadence Scheduler"])
    environment: str = Field(
        ...,
        description="Deployment environment (local/test/dev/prod).",
        examples=["local"],
    )
    timestamp_utc: datetime = Field(
        ...,
        description="Server time (UTC) when this response was generated.",
        examples=["2025-01-01T10:30:00Z"],
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness probe",
    description=(
        "Reports that the scheduler API is up. Does not touch the database or "
        "the calendar provider, so it stays green while those are degraded."
    ),
)
async def health_check() -> HealthResponse:
    settings = get_settings()
    return HealthResponse(
        status="ok",
        app_name=settings.APP_NAME,
        environment=settings.APP_ENV,
        timestamp_utc=datetime.now(tz=timezone.utc),
    )
