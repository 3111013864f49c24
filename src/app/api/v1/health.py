"""Health check endpoints.

Provides liveness (/health) and readiness (/health/ready) checks. The
readiness check covers the database only; external meeting providers and
Google APIs are best-effort and never make the service unready.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from src.app.config import get_settings
from src.app.core.database import get_engine

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check. No external dependencies are checked."""
    settings = get_settings()
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}


async def _check_database() -> dict:
    checks: dict = {"database": "ok"}
    try:
        engine = get_engine()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        checks["database"] = "error"
        checks["database_error"] = str(e)
    return checks


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check: database connectivity and service wiring.

    Returns 200 when the database answers and the scheduling services are
    initialized, 503 otherwise.
    """
    checks = await _check_database()
    checks["services"] = (
        "ok" if getattr(request.app.state, "orchestrator", None) is not None else "not_initialized"
    )
    ready = checks["database"] == "ok" and checks["services"] == "ok"

    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if ready else "degraded",
            "checks": checks,
        },
    )
