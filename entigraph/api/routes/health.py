"""Health & Readiness Probes — liveness and readiness endpoints for container orchestration.

Invariants:
    - GET /health/ always returns 200 if process is up (liveness)
    - GET /health/ready returns 503 until the store has bootstrapped, or if the
      database is unreachable (readiness)

Design Decisions:
    - Separate liveness/readiness: liveness restarts, readiness removes from load balancer
    - In-memory storage has no database to check; readiness then depends on bootstrap only
"""

import logging
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from entigraph.api.dependencies import get_context
from entigraph.services.store_context import StoreContext

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Basic liveness probe. Returns 200 if the process is up."""
    return {
        "status": "healthy",
        "service": "entigraph",
        "version": "0.1.0",
    }


@router.get("/ready")
async def readiness_check(ctx: StoreContext = Depends(get_context)):
    """Readiness probe — store bootstrap plus database connectivity."""
    if not ctx.runtime.bootstrapped:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "reason": "store_restoring"},
        )
    if ctx.db is None:
        return {"status": "ready", "checks": {"database": "not_configured"}}
    if not await ctx.db.health_check():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "reason": "database_unavailable",
            },
        )
    return {"status": "ready", "checks": {"database": "healthy"}}
