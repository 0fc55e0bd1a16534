"""Health & Readiness Probes — liveness and readiness endpoints for container orchestration.

Invariants:
    - GET /health/ always returns 200 if process is up (liveness)
    - GET /health/ready returns 503 if the database is unreachable or the
      agent directory was not built (readiness)
"""

import logging
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from nexus_agents import __version__
import nexus_agents.infrastructure.database as db_module
import nexus_agents.services.agent_directory as agents_module

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Basic liveness probe. Returns 200 if the process is up."""
    return {
        "status": "healthy",
        "service": "nexus-agents",
        "version": __version__,
    }


@router.get("/ready")
async def readiness_check():
    """Readiness probe — database connectivity and agent wiring."""
    manager = db_module.db_manager
    db_ok = await manager.health_check() if manager else False
    agents_ok = agents_module._directory is not None
    if not (db_ok and agents_ok):
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "checks": {
                    "database": "healthy" if db_ok else "unavailable",
                    "agents": "ready" if agents_ok else "not_initialized",
                },
            },
        )
    return {
        "status": "ready",
        "checks": {"database": "healthy", "agents": "ready"},
    }
