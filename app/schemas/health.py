"""Pydantic schemas for health check responses."""

from typing import Literal

from pydantic import Field

from app.schemas.common import CamelModel


class SystemStats(CamelModel):
    """Process-level numbers reported by the health check."""

    uptime_seconds: int = Field(description="Seconds since the API process started")
    max_rss_mb: float | None = Field(
        default=None,
        description="Peak resident memory of the process in MB, when the platform reports it",
    )
    python_version: str


class HealthResponse(CamelModel):
    """Response body for the health check endpoint."""

    success: bool = True
    status: Literal["ok"] = Field(default="ok", description="Service status")
    message: str = "Task Manager API is running"
    timestamp: str = Field(description="Server time (ISO 8601, UTC)")
    environment: str = Field(description="Current app environment (e.g. dev, prod)")
    database: Literal["connected", "disconnected"] | None = Field(
        default=None,
        description="Database connectivity status when check is performed",
    )
    system: SystemStats
