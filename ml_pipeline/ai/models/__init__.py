"""
AI models module.

One algorithm class per model type. Callers obtain the implementation for a
model through ``get_algorithm`` and never switch on the type themselves.
"""
from typing import Dict, Type, Union

from ml_pipeline.ai.errors import UnsupportedModelTypeError
from ml_pipeline.ai.models.base import ModelAlgorithm, TrainingOutcome
from ml_pipeline.ai.models.classification import ClassificationModel
from ml_pipeline.ai.models.clustering import ClusteringModel
from ml_pipeline.ai.models.regression import RegressionModel
from ml_pipeline.ai.models.time_series import TimeSeriesModel
from ml_pipeline.ai.schemas import ModelType

ALGORITHMS: Dict[ModelType, Type[ModelAlgorithm]] = {
    ModelType.REGRESSION: RegressionModel,
    ModelType.CLASSIFICATION: ClassificationModel,
    ModelType.TIME_SERIES: TimeSeriesModel,
    ModelType.CLUSTERING: ClusteringModel,
}


def get_algorithm(model_type: Union[ModelType, str]) -> ModelAlgorithm:
    """
    Instantiate the algorithm registered for a model type.

    Args:
        model_type: ModelType member or its string value

    Returns:
        ModelAlgorithm instance

    Raises:
        UnsupportedModelTypeError: If the type is unknown
    """
    try:
        algorithm_cls = ALGORITHMS[ModelType(model_type)]
    except (ValueError, KeyError) as e:
        raise UnsupportedModelTypeError(f"Unsupported model type: {model_type}") from e
    return algorithm_cls()


__all__ = [
    'ALGORITHMS',
    'ClassificationModel',
    'ClusteringModel',
    'ModelAlgorithm',
    'RegressionModel',
    'TimeSeriesModel',
    'TrainingOutcome',
    'get_algorithm',
]
