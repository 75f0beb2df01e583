"""
ML Model Lifecycle Endpoints

Provides API endpoints for:
- Model definition, listing, deployment and deletion
- Training jobs (start, poll, list)
- Predictions (run, list)
- Metric history
"""
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ml_pipeline.ai.ai_config import ai_config
from ml_pipeline.ai.errors import (
    InvalidStateError,
    ModelNotFoundError,
    ModelNotTrainedError,
    TrainingFailure,
    TrainingJobNotFoundError,
    UnsupportedModelTypeError,
    ValidationError,
)
from ml_pipeline.ai.prediction_service import PredictionService
from ml_pipeline.ai.schemas import (
    MetricType,
    ModelStatus,
    ModelType,
    PredictionType,
    TrainingConfig,
    TrainingData,
    TrainingStatus,
)
from ml_pipeline.ai.training_service import TrainingService
from ml_pipeline.config import settings
from ml_pipeline.dependencies import get_prediction_service, get_training_service
from ml_pipeline.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix=f"{settings.api_prefix}/ml", tags=["ml-models"])


class _Request(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, protected_namespaces=())


class CreateModelRequest(_Request):
    """Request model for defining a new model."""
    name: str = Field(min_length=1, description="Display name")
    type: ModelType = Field(description="Model type")
    algorithm: Optional[str] = Field(default=None, description="Algorithm label (default per type)")
    feature_columns: List[str] = Field(default_factory=list)
    target_column: Optional[str] = None
    config_params: Optional[Dict[str, Any]] = Field(default=None, description="Per-type params")
    description: Optional[str] = None


class UpdateModelRequest(_Request):
    """Request model for lifecycle actions on a model."""
    action: Literal["deploy"]


class TrainRequest(_Request):
    """Request model for starting a training job."""
    model_id: str
    training_data: TrainingData
    training_config: Optional[TrainingConfig] = None
    wait: bool = Field(default=False, description="Respond only after the job has finished")


class PredictRequest(_Request):
    """Request model for running a prediction."""
    model_id: str
    input_data: List[Any] = Field(min_length=1, description="Numeric matrix, or a single row")
    prediction_type: PredictionType
    context: Optional[Dict[str, Any]] = None


def _http_error(e: Exception, action: str) -> HTTPException:
    """Map a pipeline error to an HTTPException."""
    if isinstance(e, (ModelNotFoundError, TrainingJobNotFoundError)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (ValidationError, UnsupportedModelTypeError)):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, (InvalidStateError, ModelNotTrainedError)):
        return HTTPException(status_code=409, detail=str(e))
    logger.error(f"{action} failed: {str(e)}", exc_info=True)
    return HTTPException(status_code=500, detail=f"{action} failed: {str(e)}")


# ==================== MODELS ====================

@router.get("/models")
async def list_models(
    model_type: Optional[ModelType] = Query(default=None, alias="type"),
    status: Optional[ModelStatus] = Query(default=None),
    is_production: Optional[bool] = Query(default=None),
    service: TrainingService = Depends(get_training_service)
):
    """
    List models, most recently updated first.

    Args:
        model_type: Filter by model type
        status: Filter by status
        is_production: Filter by production flag
    """
    try:
        models = await service.list_models(model_type=model_type, status=status, is_production=is_production)
        return {
            "success": True,
            "data": [m.to_dict() for m in models],
            "count": len(models)
        }
    except Exception as e:
        raise _http_error(e, "Listing models")


@router.post("/models", status_code=201)
async def create_model(
    request: CreateModelRequest,
    service: TrainingService = Depends(get_training_service)
):
    """Define a new model (status TRAINING until its first training run)."""
    try:
        model = await service.create_model(
            name=request.name,
            model_type=request.type,
            feature_columns=request.feature_columns,
            target_column=request.target_column,
            config_params=request.config_params,
            algorithm=request.algorithm,
            description=request.description,
        )
        return {
            "success": True,
            "data": model.to_dict(),
            "message": "Model created successfully"
        }
    except Exception as e:
        raise _http_error(e, "Model creation")


@router.get("/models/{model_id}")
async def get_model(
    model_id: str,
    service: TrainingService = Depends(get_training_service)
):
    """Get a model with its current metrics."""
    try:
        model = await service.get_model(model_id)
        metrics = await service.get_model_metrics(model_id)
        data = model.to_dict()
        data["metrics"] = metrics.model_dump(exclude_none=True)
        return {"success": True, "data": data}
    except Exception as e:
        raise _http_error(e, "Fetching model")


@router.put("/models/{model_id}")
async def update_model(
    model_id: str,
    request: UpdateModelRequest,
    service: TrainingService = Depends(get_training_service)
):
    """Apply a lifecycle action to a model (currently only ``deploy``)."""
    try:
        model = await service.deploy_model(model_id)
        return {
            "success": True,
            "data": model.to_dict(),
            "message": "Model deployed successfully"
        }
    except Exception as e:
        raise _http_error(e, "Model update")


@router.delete("/models/{model_id}")
async def delete_model(
    model_id: str,
    service: TrainingService = Depends(get_training_service)
):
    """Delete a model along with its jobs, predictions and metrics."""
    try:
        await service.delete_model(model_id)
        return {"success": True, "message": "Model deleted successfully"}
    except Exception as e:
        raise _http_error(e, "Model deletion")


@router.get("/models/{model_id}/metrics/history")
async def get_metric_history(
    model_id: str,
    metric_type: Optional[MetricType] = Query(default=None),
    service: TrainingService = Depends(get_training_service)
):
    """Metric history of a model, newest first."""
    try:
        rows = await service.get_metric_history(model_id, metric_type=metric_type)
        return {
            "success": True,
            "data": [row.to_dict() for row in rows],
            "count": len(rows)
        }
    except Exception as e:
        raise _http_error(e, "Fetching metric history")


# ==================== TRAINING ====================

@router.post("/training", status_code=202)
async def start_training(
    request: TrainRequest,
    service: TrainingService = Depends(get_training_service)
):
    """
    Start a training job.

    The job runs in the background and is returned in status RUNNING unless
    ``wait`` is set, in which case the finished job is returned.
    """
    sample_count = request.training_data.sample_count or 0
    if sample_count < ai_config.min_training_samples:
        raise HTTPException(
            status_code=400,
            detail=(
                f"At least {ai_config.min_training_samples} training samples are required "
                f"(got {sample_count})"
            )
        )

    try:
        job = await service.train_model(
            request.model_id,
            request.training_data,
            request.training_config,
        )
        logger.info(f"Training requested for model {request.model_id}: job {job.id}")
    except Exception as e:
        raise _http_error(e, "Starting training")

    if not request.wait:
        return {
            "success": True,
            "data": job.to_dict(),
            "message": "Training started"
        }

    try:
        job = await service.wait_for_job(job.id)
        return {
            "success": True,
            "data": job.to_dict(),
            "message": "Training completed"
        }
    except TrainingFailure as e:
        job = await service.get_training_job(job.id)
        return {
            "success": False,
            "data": job.to_dict(),
            "message": f"Training failed: {str(e)}"
        }
    except Exception as e:
        raise _http_error(e, "Training")


@router.get("/training")
async def list_training_jobs(
    model_id: Optional[str] = Query(default=None),
    status: Optional[TrainingStatus] = Query(default=None),
    limit: int = Query(default=20, ge=1, le=500),
    service: TrainingService = Depends(get_training_service)
):
    """List training jobs, newest first."""
    try:
        jobs = await service.list_training_jobs(model_id=model_id, status=status, limit=limit)
        return {
            "success": True,
            "data": [job.to_dict() for job in jobs],
            "count": len(jobs)
        }
    except Exception as e:
        raise _http_error(e, "Listing training jobs")


@router.get("/training/{job_id}")
async def get_training_job(
    job_id: str,
    service: TrainingService = Depends(get_training_service)
):
    """Poll a training job."""
    try:
        job = await service.get_training_job(job_id)
        return {"success": True, "data": job.to_dict()}
    except Exception as e:
        raise _http_error(e, "Fetching training job")


# ==================== PREDICTIONS ====================

@router.post("/predictions")
async def create_prediction(
    request: PredictRequest,
    service: PredictionService = Depends(get_prediction_service)
):
    """Run a prediction against a trained or deployed model."""
    try:
        result = await service.predict(
            request.model_id,
            request.input_data,
            request.prediction_type,
            context=request.context,
        )
        return {"success": True, "data": result.model_dump(mode="json")}
    except Exception as e:
        raise _http_error(e, "Prediction")


@router.get("/predictions")
async def list_predictions(
    model_id: Optional[str] = Query(default=None),
    prediction_type: Optional[PredictionType] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    service: PredictionService = Depends(get_prediction_service)
):
    """List recorded predictions, newest first."""
    try:
        predictions = await service.list_predictions(
            model_id=model_id,
            prediction_type=prediction_type,
            limit=limit,
        )
        return {
            "success": True,
            "data": [p.to_dict() for p in predictions],
            "count": len(predictions)
        }
    except Exception as e:
        raise _http_error(e, "Listing predictions")
