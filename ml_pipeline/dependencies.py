"""FastAPI dependencies."""
from collections import OrderedDict
from typing import Optional, Tuple

from fastapi import Header, HTTPException

from ml_pipeline.ai.artifact_cache import ArtifactCache
from ml_pipeline.ai.errors import TenantLimitError
from ml_pipeline.ai.model_store import ModelStore
from ml_pipeline.ai.prediction_service import PredictionService
from ml_pipeline.ai.training_service import TrainingService
from ml_pipeline.config import settings
from ml_pipeline.database import db
from ml_pipeline.utils.logging import get_logger

logger = get_logger(__name__)

# One cache for every tenant; keys are artifact hashes
artifact_cache = ArtifactCache(
    maxsize=settings.artifact_cache_size,
    ttl_seconds=settings.artifact_cache_ttl_seconds,
)

# Least recently used tenant first
_services: "OrderedDict[str, Tuple[TrainingService, PredictionService]]" = OrderedDict()


def _evict_idle_tenant() -> None:
    for tenant_id, (training, _) in _services.items():
        if training.is_idle:
            del _services[tenant_id]
            logger.debug(f"Released services of idle tenant {tenant_id}")
            return
    raise TenantLimitError(
        f"All {settings.max_tenants} tenant slots have training in progress"
    )


def services_for(tenant_id: str) -> Tuple[TrainingService, PredictionService]:
    """
    Training and prediction services of a tenant, created on first use.

    At most ``settings.max_tenants`` tenants are held. When the registry is
    full the least recently used tenant without training in progress is
    released; its state lives in the database, so it is rebuilt on next use.

    Args:
        tenant_id: Tenant identifier

    Returns:
        Tuple of (TrainingService, PredictionService)

    Raises:
        TenantLimitError: If the registry is full and no tenant is idle
    """
    if tenant_id in _services:
        _services.move_to_end(tenant_id)
        return _services[tenant_id]

    if len(_services) >= settings.max_tenants:
        _evict_idle_tenant()

    store = ModelStore(db, tenant_id)
    _services[tenant_id] = (
        TrainingService(store, artifact_cache),
        PredictionService(store, artifact_cache),
    )
    return _services[tenant_id]


def all_training_services():
    return [training for training, _ in _services.values()]


def _tenant_services(x_tenant_id: Optional[str]) -> Tuple[TrainingService, PredictionService]:
    try:
        return services_for(x_tenant_id or settings.default_tenant_id)
    except TenantLimitError as e:
        raise HTTPException(status_code=429, detail=str(e))


async def get_training_service(x_tenant_id: Optional[str] = Header(default=None)) -> TrainingService:
    """
    Dependency to get the caller's training service.

    The tenant comes from the ``X-Tenant-ID`` header, else the default tenant.
    """
    return _tenant_services(x_tenant_id)[0]


async def get_prediction_service(x_tenant_id: Optional[str] = Header(default=None)) -> PredictionService:
    """Dependency to get the caller's prediction service."""
    return _tenant_services(x_tenant_id)[1]
