"""
Persistence store for models, training jobs, predictions and metric history.

Every query is scoped to the store's tenant. Returned rows are detached from
their session (the session factory does not expire on commit), so callers
read attributes freely but persist changes only through the store.
"""
import enum
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select, update

from ml_pipeline.ai.errors import ModelNotFoundError, TrainingJobNotFoundError
from ml_pipeline.ai.schemas import DatasetType, MetricType, TrainingStatus
from ml_pipeline.database import Database
from ml_pipeline.models import MLModel, ModelMetric, Prediction, TrainingJob
from ml_pipeline.utils.datetime_utils import utc_now
from ml_pipeline.utils.logging import get_logger

logger = get_logger(__name__)


def _value(value):
    """Enum members are stored by value."""
    return value.value if isinstance(value, enum.Enum) else value


def _normalize(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {key: _value(val) for key, val in fields.items()}


class ModelStore:
    """Tenant-scoped repository over the ML tables."""

    def __init__(self, database: Database, tenant_id: str):
        self._db = database
        self.tenant_id = tenant_id

    @property
    def database(self) -> Database:
        return self._db

    # ==================== MODELS ====================

    async def create_model(self, **fields) -> MLModel:
        now = utc_now()
        model = MLModel(
            tenant_id=self.tenant_id,
            created_at=now,
            updated_at=now,
            **_normalize(fields)
        )
        async with self._db.session() as session:
            session.add(model)
        logger.debug(f"Created model {model.id} ({model.type}) for tenant {self.tenant_id}")
        return model

    async def get_model(self, model_id: str) -> Optional[MLModel]:
        async with self._db.session() as session:
            return await self._load_model(session, model_id)

    async def update_model(self, model_id: str, **fields) -> MLModel:
        """
        Set fields on a model.

        Raises:
            ModelNotFoundError: If the model does not exist for this tenant
        """
        async with self._db.session() as session:
            model = await self._load_model(session, model_id)
            if model is None:
                raise ModelNotFoundError(model_id)
            self._apply(model, fields)
        return model

    async def list_models(
        self,
        model_type=None,
        status=None,
        is_production: Optional[bool] = None
    ) -> List[MLModel]:
        """List models, most recently updated first."""
        query = select(MLModel).where(MLModel.tenant_id == self.tenant_id)
        if model_type is not None:
            query = query.where(MLModel.type == _value(model_type))
        if status is not None:
            query = query.where(MLModel.status == _value(status))
        if is_production is not None:
            query = query.where(MLModel.is_production == is_production)
        query = query.order_by(MLModel.updated_at.desc(), MLModel.created_at.desc())

        async with self._db.session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def delete_model(self, model_id: str) -> bool:
        """
        Delete a model together with its jobs, predictions and metrics.

        Returns:
            False if the model did not exist
        """
        async with self._db.session() as session:
            model = await self._load_model(session, model_id)
            if model is None:
                return False
            await session.delete(model)
        logger.info(f"Deleted model {model_id} and its history")
        return True

    async def increment_usage(self, model_id: str, used_at: Optional[datetime] = None) -> int:
        """
        Atomically bump ``usage_count`` and stamp ``last_used_date``.

        Returns:
            Number of rows updated (0 or 1)
        """
        query = (
            update(MLModel)
            .where(MLModel.tenant_id == self.tenant_id, MLModel.id == model_id)
            .values(
                usage_count=MLModel.usage_count + 1,
                last_used_date=used_at or utc_now(),
                updated_at=MLModel.updated_at,  # usage is not a modification
            )
        )
        async with self._db.session() as session:
            result = await session.execute(query)
            return result.rowcount

    # ==================== TRAINING JOBS ====================

    async def create_training_job(self, model_id: str, **fields) -> TrainingJob:
        now = utc_now()
        job = TrainingJob(
            tenant_id=self.tenant_id,
            model_id=model_id,
            created_at=now,
            updated_at=now,
            **_normalize(fields)
        )
        async with self._db.session() as session:
            session.add(job)
        return job

    async def get_training_job(self, job_id: str) -> Optional[TrainingJob]:
        async with self._db.session() as session:
            return await self._load_job(session, job_id)

    async def update_training_job(self, job_id: str, **fields) -> TrainingJob:
        """
        Set fields on a training job.

        Raises:
            TrainingJobNotFoundError: If the job does not exist for this tenant
        """
        async with self._db.session() as session:
            job = await self._load_job(session, job_id)
            if job is None:
                raise TrainingJobNotFoundError(job_id)
            self._apply(job, fields)
        return job

    async def list_training_jobs(
        self,
        model_id: Optional[str] = None,
        status=None,
        limit: int = 20
    ) -> List[TrainingJob]:
        """List training jobs, newest start first."""
        query = select(TrainingJob).where(TrainingJob.tenant_id == self.tenant_id)
        if model_id is not None:
            query = query.where(TrainingJob.model_id == model_id)
        if status is not None:
            query = query.where(TrainingJob.status == _value(status))
        query = query.order_by(TrainingJob.start_time.desc()).limit(limit)

        async with self._db.session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def find_running_job(self, model_id: str) -> Optional[TrainingJob]:
        """The model's RUNNING job, if any."""
        query = (
            select(TrainingJob)
            .where(
                TrainingJob.tenant_id == self.tenant_id,
                TrainingJob.model_id == model_id,
                TrainingJob.status == TrainingStatus.RUNNING.value,
            )
            .limit(1)
        )
        async with self._db.session() as session:
            result = await session.execute(query)
            return result.scalar_one_or_none()

    async def finalize_training(
        self,
        job_id: str,
        job_fields: Dict[str, Any],
        model_id: Optional[str] = None,
        model_fields: Optional[Dict[str, Any]] = None,
        metrics: Iterable[Tuple[MetricType, float]] = (),
        dataset_type: DatasetType = DatasetType.TRAINING
    ) -> Tuple[TrainingJob, Optional[MLModel]]:
        """
        Write the outcome of a training run in a single transaction.

        Args:
            job_id: Job to finalize
            job_fields: Fields set on the job (status, end_time, results...)
            model_id: Model to update, if any
            model_fields: Fields set on the model
            metrics: (metric type, value) rows appended to the metric history
            dataset_type: Dataset the metrics were evaluated on

        Returns:
            Tuple of (job, model or None)
        """
        now = utc_now()
        model = None
        async with self._db.session() as session:
            job = await self._load_job(session, job_id)
            if job is None:
                raise TrainingJobNotFoundError(job_id)
            self._apply(job, job_fields)

            if model_id is not None:
                model = await self._load_model(session, model_id)
                if model is None:
                    raise ModelNotFoundError(model_id)
                if model_fields:
                    self._apply(model, model_fields)
                for metric_type, value in metrics:
                    session.add(ModelMetric(
                        tenant_id=self.tenant_id,
                        model_id=model_id,
                        metric_type=_value(metric_type),
                        value=value,
                        dataset_type=_value(dataset_type),
                        evaluation_date=now,
                    ))
        return job, model

    # ==================== PREDICTIONS ====================

    async def create_prediction(self, model_id: str, **fields) -> Prediction:
        fields.setdefault("prediction_date", utc_now())
        prediction = Prediction(
            tenant_id=self.tenant_id,
            model_id=model_id,
            **_normalize(fields)
        )
        async with self._db.session() as session:
            session.add(prediction)
        return prediction

    async def list_predictions(
        self,
        model_id: Optional[str] = None,
        prediction_type=None,
        limit: int = 50
    ) -> List[Prediction]:
        """List predictions, newest first."""
        query = select(Prediction).where(Prediction.tenant_id == self.tenant_id)
        if model_id is not None:
            query = query.where(Prediction.model_id == model_id)
        if prediction_type is not None:
            query = query.where(Prediction.prediction_type == _value(prediction_type))
        query = query.order_by(Prediction.prediction_date.desc()).limit(limit)

        async with self._db.session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    # ==================== METRICS ====================

    async def create_model_metric(
        self,
        model_id: str,
        metric_type: MetricType,
        value: float,
        dataset_type: DatasetType = DatasetType.TRAINING
    ) -> ModelMetric:
        metric = ModelMetric(
            tenant_id=self.tenant_id,
            model_id=model_id,
            metric_type=_value(metric_type),
            value=value,
            dataset_type=_value(dataset_type),
            evaluation_date=utc_now(),
        )
        async with self._db.session() as session:
            session.add(metric)
        return metric

    async def list_model_metrics(self, model_id: str, metric_type=None) -> List[ModelMetric]:
        """Metric history of a model, newest first."""
        query = select(ModelMetric).where(
            ModelMetric.tenant_id == self.tenant_id,
            ModelMetric.model_id == model_id,
        )
        if metric_type is not None:
            query = query.where(ModelMetric.metric_type == _value(metric_type))
        query = query.order_by(ModelMetric.evaluation_date.desc(), ModelMetric.id.desc())

        async with self._db.session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    # ==================== HELPERS ====================

    async def _load_model(self, session, model_id: str) -> Optional[MLModel]:
        query = select(MLModel).where(MLModel.tenant_id == self.tenant_id, MLModel.id == model_id)
        result = await session.execute(query)
        return result.scalar_one_or_none()

    async def _load_job(self, session, job_id: str) -> Optional[TrainingJob]:
        query = select(TrainingJob).where(TrainingJob.tenant_id == self.tenant_id, TrainingJob.id == job_id)
        result = await session.execute(query)
        return result.scalar_one_or_none()

    @staticmethod
    def _apply(row, fields: Dict[str, Any]) -> None:
        for key, val in _normalize(fields).items():
            if not hasattr(type(row), key):
                raise AttributeError(f"{type(row).__name__} has no column '{key}'")
            setattr(row, key, val)
        row.updated_at = utc_now()


async def running_job_tenants(database: Database) -> List[str]:
    """Tenants that have at least one RUNNING training job, across the whole database."""
    query = (
        select(TrainingJob.tenant_id)
        .where(TrainingJob.status == TrainingStatus.RUNNING.value)
        .distinct()
        .order_by(TrainingJob.tenant_id)
    )
    async with database.session() as session:
        result = await session.execute(query)
        return list(result.scalars().all())
