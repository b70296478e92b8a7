"""Health check endpoint: liveness, database connectivity and process stats."""

import logging
import platform
import resource
import sys
import time
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import check_db_connected, get_db
from app.schemas.health import HealthResponse, SystemStats

logger = logging.getLogger(__name__)

router = APIRouter()

_STARTED_AT = time.monotonic()


def _max_rss_mb() -> float | None:
    """Peak RSS in MB (ru_maxrss is KB on Linux, bytes on macOS)."""
    try:
        rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    except (OSError, ValueError):
        return None
    divisor = 1024 * 1024 if sys.platform == "darwin" else 1024
    return round(rss / divisor, 1)


@router.get("", response_model=HealthResponse)
def get_health(db: Session = Depends(get_db)) -> HealthResponse:
    """
    Return service health status, database connectivity and process stats.
    Used by load balancers and monitoring.
    """
    try:
        db_status = "connected" if check_db_connected(db) else "disconnected"
        return HealthResponse(
            timestamp=datetime.now(UTC).isoformat(),
            environment=settings.APP_ENV,
            database=db_status,
            system=SystemStats(
                uptime_seconds=int(time.monotonic() - _STARTED_AT),
                max_rss_mb=_max_rss_mb(),
                python_version=platform.python_version(),
            ),
        )
    except Exception as e:
        logger.exception("Health check failed: %s", e)
        raise HTTPException(status_code=500, detail="Health check failed") from e
