"""
Prediction Service

Serves predictions from the artifact of a TRAINED or DEPLOYED model, records
every successful prediction and bumps the model's usage counter.
"""
from typing import Any, Dict, List, Optional

from ml_pipeline.ai.artifact_cache import ArtifactCache
from ml_pipeline.ai.errors import ModelNotFoundError, ModelNotTrainedError, ValidationError
from ml_pipeline.ai.model_store import ModelStore
from ml_pipeline.ai.models import ModelAlgorithm, get_algorithm
from ml_pipeline.ai.schemas import (
    ARTIFACT_STATUSES,
    ModelStatus,
    PredictionResult,
    PredictionType,
    deserialize_artifact,
)
from ml_pipeline.models import MLModel, Prediction
from ml_pipeline.utils.datetime_utils import utc_now
from ml_pipeline.utils.logging import get_logger

logger = get_logger(__name__)


def _prediction_type(value) -> PredictionType:
    try:
        return PredictionType(value)
    except ValueError as e:
        raise ValidationError(f"Unknown prediction type: {value}") from e


class PredictionService:
    """Per-type inference against persisted artifacts."""

    def __init__(self, store: ModelStore, cache: Optional[ArtifactCache] = None):
        """
        Args:
            store: Tenant-scoped persistence store
            cache: Cache of deserialized artifacts keyed by artifact hash
        """
        self.store = store
        self.cache = cache

    async def predict(
        self,
        model_id: str,
        input_data: Any,
        prediction_type,
        context: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None
    ) -> PredictionResult:
        """
        Run a prediction and record it.

        Args:
            model_id: Model to predict with
            input_data: Numeric matrix (a flat list is read as one row)
            prediction_type: PredictionType (or its value)
            context: Free-form context stored with the record
            user_id: Requesting user, if known

        Returns:
            PredictionResult with prediction, confidence, model name and timestamp

        Raises:
            ModelNotFoundError: If the model does not exist
            ModelNotTrainedError: If the model holds no artifact
            ValidationError: If the input or prediction type is invalid
        """
        prediction_type = _prediction_type(prediction_type)

        model = await self.store.get_model(model_id)
        if model is None:
            raise ModelNotFoundError(model_id)
        if ModelStatus(model.status) not in ARTIFACT_STATUSES or not model.model_data:
            raise ModelNotTrainedError(
                f"Model {model_id} is {model.status}; it must be TRAINED or DEPLOYED to predict"
            )

        implementation = get_algorithm(model.type)
        matrix = ModelAlgorithm.input_matrix(input_data)
        artifact = self._load_artifact(model)
        prediction, confidence = implementation.predict(artifact, matrix, model.accuracy)

        timestamp = utc_now()
        record = await self.store.create_prediction(
            model_id,
            user_id=user_id,
            prediction_type=prediction_type,
            input_data=matrix.tolist(),
            output_data=prediction,
            confidence=confidence,
            context=context,
            prediction_date=timestamp,
        )
        await self.store.increment_usage(model_id, timestamp)

        logger.debug(
            f"Prediction {record.id} from model '{model.name}' ({model.type}): "
            f"{prediction} (confidence {confidence:.3f})"
        )
        return PredictionResult(
            prediction=prediction,
            confidence=confidence,
            model_used=model.name,
            timestamp=timestamp,
            prediction_id=record.id,
        )

    async def list_predictions(
        self,
        model_id: Optional[str] = None,
        prediction_type=None,
        limit: int = 50
    ) -> List[Prediction]:
        if prediction_type is not None:
            prediction_type = _prediction_type(prediction_type)
        return await self.store.list_predictions(
            model_id=model_id,
            prediction_type=prediction_type,
            limit=limit,
        )

    def _load_artifact(self, model: MLModel):
        key = model.artifact_hash
        if self.cache is not None and key:
            artifact = self.cache.get(key)
            if artifact is not None:
                logger.debug(f"Artifact cache hit for model {model.id}")
                return artifact

        artifact = deserialize_artifact(model.model_data)
        if self.cache is not None and key:
            self.cache.put(key, artifact)
        return artifact
