"""
Training Service

Owns the Model / TrainingJob lifecycle:
- Model creation with validated per-type params
- Background training (one active job per model, with a deadline)
- Deployment, metrics and history queries, deletion

Training is always explicitly triggered. ``train_model`` validates the
request synchronously, creates a RUNNING job and returns it; the numeric
work runs in a worker thread and the outcome is persisted when it finishes.
"""
import asyncio
import hashlib
from functools import partial
from typing import Any, Dict, List, Optional, Set

from pydantic import ValidationError as PydanticValidationError

from ml_pipeline.ai.artifact_cache import ArtifactCache
from ml_pipeline.ai.errors import (
    InvalidStateError,
    ModelNotFoundError,
    TrainingFailure,
    TrainingInProgressError,
    TrainingJobNotFoundError,
    UnsupportedModelTypeError,
    ValidationError,
)
from ml_pipeline.ai.model_store import ModelStore
from ml_pipeline.ai.models import get_algorithm
from ml_pipeline.ai.schemas import (
    ARTIFACT_STATUSES,
    ModelPerformance,
    ModelStatus,
    TrainingConfig,
    TrainingData,
    TrainingStatus,
    build_params,
    serialize_artifact,
)
from ml_pipeline.config import settings
from ml_pipeline.models import MLModel, ModelMetric, TrainingJob
from ml_pipeline.utils.datetime_utils import utc_now
from ml_pipeline.utils.logging import get_logger

logger = get_logger(__name__)


def _coerce(model_cls, value, label: str):
    """Accept a pydantic instance, a mapping, or None (all defaults)."""
    if isinstance(value, model_cls):
        return value
    try:
        return model_cls.model_validate(value or {})
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid {label}: {e}") from e


def artifact_digest(blob: str) -> str:
    """SHA-256 hex digest of a serialized artifact."""
    return hashlib.sha256(blob.encode("utf-8")).hexdigest()


class TrainingService:
    """
    Orchestrates training jobs against a ModelStore.

    Features:
    - Per-model mutual exclusion (in-process guard plus a RUNNING-job check)
    - Deadline per job (TrainingConfig.timeout_seconds or the settings default)
    - Failures recorded on the job and surfaced as TrainingFailure
    """

    def __init__(
        self,
        store: ModelStore,
        cache: Optional[ArtifactCache] = None,
        default_timeout_seconds: Optional[float] = None
    ):
        """
        Args:
            store: Tenant-scoped persistence store
            cache: Artifact cache shared with the prediction service, if any
            default_timeout_seconds: Job deadline when the config sets none
        """
        self.store = store
        self.cache = cache
        self.default_timeout_seconds = default_timeout_seconds or settings.training_timeout_seconds
        self._tasks: Dict[str, asyncio.Task] = {}
        self._active_models: Set[str] = set()
        logger.debug(f"TrainingService initialized for tenant {store.tenant_id}")

    # ==================== MODELS ====================

    async def create_model(
        self,
        name: str,
        model_type,
        feature_columns: Optional[List[str]] = None,
        target_column: Optional[str] = None,
        config_params: Optional[Dict[str, Any]] = None,
        algorithm: Optional[str] = None,
        description: Optional[str] = None,
        framework: str = "SCIKIT_LEARN",
        user_id: Optional[str] = None
    ) -> MLModel:
        """
        Define a new model in status TRAINING.

        Args:
            name: Display name
            model_type: ModelType (or its value)
            feature_columns: Ordered feature column names
            target_column: Target column name, if any
            config_params: Per-type params (validated against the type's variant)
            algorithm: Free-text algorithm label (default: the type's algorithm)
            description: Optional description
            framework: Free-text framework label
            user_id: Creating user, if known

        Returns:
            The persisted model

        Raises:
            UnsupportedModelTypeError: If the type is unknown
            ValidationError: If the name or params are invalid
        """
        if not name or not name.strip():
            raise ValidationError("Model name is required")

        implementation = get_algorithm(model_type)
        params = build_params(implementation.model_type, config_params)

        model = await self.store.create_model(
            name=name.strip(),
            description=description,
            type=implementation.model_type,
            framework=framework,
            algorithm=algorithm or implementation.algorithm_name,
            feature_columns=list(feature_columns or []),
            target_column=target_column,
            config_params=params.model_dump(),
            status=ModelStatus.TRAINING,
            user_id=user_id,
        )
        logger.info(f"Created {model.type} model '{model.name}' ({model.id})")
        return model

    async def get_model(self, model_id: str) -> MLModel:
        """
        Raises:
            ModelNotFoundError: If the model does not exist
        """
        model = await self.store.get_model(model_id)
        if model is None:
            raise ModelNotFoundError(model_id)
        return model

    async def list_models(
        self,
        model_type=None,
        status=None,
        is_production: Optional[bool] = None
    ) -> List[MLModel]:
        return await self.store.list_models(model_type=model_type, status=status, is_production=is_production)

    async def delete_model(self, model_id: str) -> None:
        """
        Delete a model and everything it owns.

        Raises:
            ModelNotFoundError: If the model does not exist
            TrainingInProgressError: If the model is being trained
        """
        model = await self.get_model(model_id)
        if model_id in self._active_models:
            raise TrainingInProgressError(f"Model {model_id} is being trained and cannot be deleted")
        if not await self.store.delete_model(model_id):
            raise ModelNotFoundError(model_id)
        if self.cache is not None and model.artifact_hash:
            self.cache.invalidate(model.artifact_hash)

    async def deploy_model(self, model_id: str) -> MLModel:
        """
        Mark a trained model as the production model.

        Raises:
            ModelNotFoundError: If the model does not exist
            InvalidStateError: Unless the model is TRAINED
        """
        model = await self.get_model(model_id)
        if ModelStatus(model.status) != ModelStatus.TRAINED:
            raise InvalidStateError(
                f"Model {model_id} is {model.status}; only TRAINED models can be deployed"
            )
        model = await self.store.update_model(model_id, status=ModelStatus.DEPLOYED, is_production=True)
        logger.info(f"Model '{model.name}' ({model_id}) deployed to production")
        return model

    async def get_model_metrics(self, model_id: str) -> ModelPerformance:
        """Current performance fields of a model."""
        model = await self.get_model(model_id)
        return ModelPerformance(
            accuracy=model.accuracy,
            precision=model.precision,
            recall=model.recall,
            f1_score=model.f1_score,
            mse=model.mse,
            mae=model.mae,
            r2_score=model.r2_score,
        )

    async def get_metric_history(self, model_id: str, metric_type=None) -> List[ModelMetric]:
        """Metric rows of a model, newest first."""
        await self.get_model(model_id)
        return await self.store.list_model_metrics(model_id, metric_type=metric_type)

    # ==================== TRAINING ====================

    async def train_model(
        self,
        model_id: str,
        training_data,
        config=None,
        user_id: Optional[str] = None
    ) -> TrainingJob:
        """
        Start a training run in the background.

        Args:
            model_id: Model to train
            training_data: TrainingData (or an equivalent mapping)
            config: TrainingConfig (or mapping); defaults apply when omitted
            user_id: Requesting user, if known

        Returns:
            The RUNNING training job

        Raises:
            ModelNotFoundError: If the model does not exist
            ValidationError: If the data or config is unusable for the model type
            TrainingInProgressError: If the model already has a running job
        """
        data = _coerce(TrainingData, training_data, "training data")
        config = _coerce(TrainingConfig, config, "training config")

        model = await self.get_model(model_id)
        try:
            implementation = get_algorithm(model.type)
        except UnsupportedModelTypeError:
            logger.error(f"Model {model_id} has unsupported type {model.type}")
            raise
        params = build_params(implementation.model_type, model.config_params)
        implementation.validate(data, params)

        if model_id in self._active_models:
            raise TrainingInProgressError(f"Model {model_id} already has a training job running")
        self._active_models.add(model_id)
        try:
            running = await self.store.find_running_job(model_id)
            if running is not None:
                raise TrainingInProgressError(
                    f"Model {model_id} already has a training job running ({running.id})"
                )

            start_time = utc_now()
            job = await self.store.create_training_job(
                model_id,
                user_id=user_id,
                job_name=f"Training {model.name} - {start_time.isoformat()}",
                status=TrainingStatus.RUNNING,
                start_time=start_time,
                training_config=config.model_dump(),
                dataset_size=data.sample_count,
                epochs=config.epochs,
                batch_size=config.batch_size,
                learning_rate=config.learning_rate,
                validation_split=config.validation_split,
            )
        except BaseException:
            self._active_models.discard(model_id)
            raise

        task = asyncio.create_task(
            self._run_job(job, model, implementation, params, data, config),
            name=f"training-{job.id}"
        )
        self._tasks[job.id] = task
        task.add_done_callback(partial(self._on_task_done, job.id, model_id))
        logger.info(f"Training job {job.id} started for model '{model.name}' ({model_id})")
        return job

    async def wait_for_job(self, job_id: str) -> TrainingJob:
        """
        Wait for a job to finish and return it.

        Returns the stored job directly when no task is running for it.

        Raises:
            TrainingFailure: If the run failed, timed out or was cancelled
            TrainingJobNotFoundError: If the job does not exist
        """
        task = self._tasks.get(job_id)
        if task is not None:
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
                raise TrainingFailure("Training cancelled", job_id)
        return await self.get_training_job(job_id)

    async def get_training_job(self, job_id: str) -> TrainingJob:
        job = await self.store.get_training_job(job_id)
        if job is None:
            raise TrainingJobNotFoundError(job_id)
        return job

    async def list_training_jobs(
        self,
        model_id: Optional[str] = None,
        status=None,
        limit: int = 20
    ) -> List[TrainingJob]:
        return await self.store.list_training_jobs(model_id=model_id, status=status, limit=limit)

    def is_training(self, model_id: str) -> bool:
        return model_id in self._active_models

    @property
    def is_idle(self) -> bool:
        """True when no job of this service is starting or running."""
        return not self._active_models and self.running_job_count == 0

    @property
    def running_job_count(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    async def fail_orphaned_jobs(self) -> int:
        """
        Finalize RUNNING jobs that have no task in this process.

        Such jobs are left behind when the process stops mid-training; until
        they are finalized their models cannot be trained again.

        Returns:
            Number of jobs finalized
        """
        orphaned = [
            job for job in await self.store.list_training_jobs(status=TrainingStatus.RUNNING, limit=1000)
            if job.id not in self._tasks
        ]
        for job in orphaned:
            model = await self.store.get_model(job.model_id)
            await self._record_failure(job, model, "Training interrupted by shutdown")
        if orphaned:
            logger.warning(f"Finalized {len(orphaned)} orphaned training job(s)")
        return len(orphaned)

    async def shutdown(self) -> None:
        """Cancel outstanding training tasks and wait for them to finish."""
        pending = [task for task in self._tasks.values() if not task.done()]
        if not pending:
            return
        logger.info(f"Cancelling {len(pending)} running training job(s)...")
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        logger.info("Training jobs cancelled")

    # ==================== INTERNALS ====================

    async def _run_job(self, job, model, implementation, params, data, config) -> TrainingJob:
        timeout = config.timeout_seconds or self.default_timeout_seconds

        logger.info("=" * 60)
        logger.info(f"STARTING {model.type} MODEL TRAINING")
        logger.info("=" * 60)
        logger.info(f"Model: {model.name} ({model.id})")
        logger.info(f"Job: {job.id}")
        logger.info(f"Samples: {data.sample_count}, epochs: {config.epochs}, deadline: {timeout:g}s")

        try:
            loop = asyncio.get_running_loop()
            outcome = await asyncio.wait_for(
                loop.run_in_executor(None, implementation.train, data, config, params),
                timeout=timeout
            )
            return await self._record_success(job, model, outcome, data)
        except asyncio.TimeoutError as e:
            message = f"Training exceeded deadline of {timeout:g}s"
            logger.error(f"Training job {job.id} failed: {message}")
            await self._record_failure(job, model, message)
            raise TrainingFailure(message, job.id) from e
        except asyncio.CancelledError:
            logger.warning(f"Training job {job.id} cancelled")
            await self._record_failure(job, model, "Training cancelled")
            raise
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(f"Training job {job.id} failed: {message}", exc_info=True)
            await self._record_failure(job, model, message)
            raise TrainingFailure(message, job.id) from e
        finally:
            self._active_models.discard(model.id)

    async def _record_success(self, job, model, outcome, data) -> TrainingJob:
        end_time = utc_now()
        blob = serialize_artifact(outcome.artifact)
        performance = outcome.metrics

        job, updated = await self.store.finalize_training(
            job.id,
            job_fields={
                "status": TrainingStatus.COMPLETED,
                "end_time": end_time,
                "duration": (end_time - job.start_time).total_seconds(),
                "validation_accuracy": performance.accuracy,
                "validation_loss": performance.validation_loss,
            },
            model_id=model.id,
            model_fields={
                "status": ModelStatus.TRAINED,
                "accuracy": performance.accuracy,
                "precision": performance.precision,
                "recall": performance.recall,
                "f1_score": performance.f1_score,
                "mse": performance.mse,
                "mae": performance.mae,
                "r2_score": performance.r2_score,
                "model_data": blob,
                "artifact_hash": artifact_digest(blob),
                "training_data_size": data.sample_count,
                "last_training_date": end_time,
                "is_production": False,
            },
            metrics=performance.tracked_metrics().items(),
        )
        if self.cache is not None and model.artifact_hash and model.artifact_hash != updated.artifact_hash:
            self.cache.invalidate(model.artifact_hash)

        logger.info("=" * 60)
        logger.info("MODEL TRAINING COMPLETE!")
        logger.info("=" * 60)
        logger.info(f"Model: {updated.name} ({updated.id}) -> {updated.status}")
        logger.info(f"Accuracy: {performance.accuracy}")
        logger.info(f"Duration: {job.duration:.3f}s")
        return job

    async def _record_failure(self, job, model, message: str) -> None:
        """
        Finalize a job as FAILED.

        A model holding an artifact keeps it (and its status); a model that
        was never trained moves to FAILED.
        """
        end_time = utc_now()
        model_id = None
        model_fields = None
        if model is not None:
            current = await self.store.get_model(model.id)
            if current is not None and not (
                ModelStatus(current.status) in ARTIFACT_STATUSES and current.model_data
            ):
                model_id = current.id
                model_fields = {"status": ModelStatus.FAILED}

        await self.store.finalize_training(
            job.id,
            job_fields={
                "status": TrainingStatus.FAILED,
                "end_time": end_time,
                "duration": (end_time - job.start_time).total_seconds(),
                "error_message": message,
            },
            model_id=model_id,
            model_fields=model_fields,
        )

    def _on_task_done(self, job_id: str, model_id: str, task: asyncio.Task) -> None:
        self._active_models.discard(model_id)
        self._tasks.pop(job_id, None)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None and not isinstance(exc, TrainingFailure):
            logger.error(f"Training job {job_id} ended with an unexpected error: {exc}", exc_info=exc)
