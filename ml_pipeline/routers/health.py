"""Health check and status router."""
from typing import Dict

from fastapi import APIRouter, HTTPException

from ml_pipeline.config import settings
from ml_pipeline.database import db
from ml_pipeline.dependencies import all_training_services, artifact_cache
from ml_pipeline.utils.datetime_utils import utc_now
from ml_pipeline.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> Dict[str, str]:
    """
    Simple health check endpoint.

    Returns:
        Status dictionary with "ok" status
    """
    return {"status": "ok"}


@router.get("/status")
async def get_status() -> Dict:
    """
    Comprehensive system status endpoint.

    Returns detailed status of all components:
    - Database connection
    - Training jobs running in this process
    - Artifact cache
    """
    try:
        status = {
            "status": "operational",
            "timestamp": utc_now().isoformat(),
            "version": settings.api_version,
            "components": {}
        }

        connected = await db.ping()
        status["components"]["database"] = {
            "connected": connected,
            "database_url": "configured" if connected else "not connected"
        }

        services = all_training_services()
        status["components"]["training"] = {
            "tenants": len(services),
            "running_jobs": sum(service.running_job_count for service in services)
        }

        status["components"]["artifact_cache"] = {
            "entries": len(artifact_cache),
            "maxsize": artifact_cache.maxsize,
            "hits": artifact_cache.hits,
            "misses": artifact_cache.misses
        }

        if not connected:
            status["status"] = "degraded"

        return status

    except Exception as e:
        logger.error(f"Failed to get system status: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to get system status: {str(e)}"
        )
