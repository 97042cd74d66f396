"""Health check endpoints.

- /api/health - Service liveness
- /api/health/db - Database connection pool health
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter

from floworx.config import APP_NAME, APP_VERSION
from floworx.infrastructure.database import get_pool_stats

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health_check() -> dict[str, Any]:
    return {
        "status": "healthy",
        "service": APP_NAME,
        "version": APP_VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/health/db")
def database_health() -> dict[str, Any]:
    """
    Connection pool health.

    Reports ``degraded`` when more than 80% of the pool is checked out.
    """
    stats = get_pool_stats()
    usage_percent = stats["usage_percent"]

    return {
        "status": "degraded" if usage_percent > 80 else "healthy",
        "pool": stats,
        "warning": "Pool usage high" if usage_percent > 80 else None,
    }
