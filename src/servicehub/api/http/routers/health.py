"""Health check endpoints for monitoring service availability."""

from typing import Any

from fastapi import APIRouter, Depends
from starlette.responses import JSONResponse

from servicehub.api.http.app_data import ApplicationDependencies
from servicehub.api.http.deps import get_app_dependencies

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: 200 as long as the process is up."""
    return {"status": "healthy", "service": "servicehub"}


@router.get("/ready", response_model=None)
async def readiness(
    app_deps: ApplicationDependencies = Depends(get_app_dependencies),
) -> dict[str, Any] | JSONResponse:
    """Readiness probe: 503 when the database is unreachable.

    Signing keys are reported but not required; a missing snapshot only
    affects Google sign-in and is retried in the background.
    """
    db_healthy = app_deps.database_service.health_check()
    snapshot = app_deps.signing_keys.get_snapshot()

    body = {
        "status": "ready" if db_healthy else "not_ready",
        "checks": {
            "database": {
                "status": "healthy" if db_healthy else "unhealthy",
                "type": "sqlite" if app_deps.config.database.is_sqlite else "postgresql",
            },
            "google_signing_keys": {
                "status": "loaded" if snapshot else "pending",
                "key_count": len(snapshot.kids) if snapshot else 0,
            },
        },
    }
    if not db_healthy:
        return JSONResponse(status_code=503, content=body)
    return body
