"""
Common interface of the four model algorithms.

An algorithm validates a dataset, trains on it (producing an artifact plus
metrics) and serves predictions from a previously produced artifact. The
training service and the prediction service only ever talk to this
interface; the concrete class is picked once by ``get_algorithm``.
"""
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from numbers import Real
from typing import Any, Optional, Sequence, Tuple

import numpy as np

from ml_pipeline.ai.ai_config import ai_config
from ml_pipeline.ai.errors import ValidationError
from ml_pipeline.ai.schemas import ModelPerformance, ModelType, TrainingConfig, TrainingData


@dataclass
class TrainingOutcome:
    """Result of a successful training run."""
    artifact: Any
    metrics: ModelPerformance


class ModelAlgorithm(ABC):
    """
    Base class for a type-specific trainer + predictor.

    Subclasses set ``model_type`` and implement ``train`` and ``predict``.
    ``validate`` runs synchronously before a training job is created, so
    everything that can be rejected up front should be rejected there.
    """

    model_type: ModelType
    algorithm_name: str
    requires_features: bool = True

    def validate(self, data: TrainingData, params) -> None:
        """
        Check a dataset before training.

        Args:
            data: Training dataset
            params: Per-type params variant

        Raises:
            ValidationError: If the dataset cannot be trained on
        """
        if self.requires_features:
            self._feature_matrix(data.features)
        if data.target is not None and data.features and len(data.target) != len(data.features):
            raise ValidationError(
                f"Feature/target length mismatch: {len(data.features)} rows, "
                f"{len(data.target)} target values"
            )

    @abstractmethod
    def train(self, data: TrainingData, config: TrainingConfig, params) -> TrainingOutcome:
        """Fit on ``data`` and return the artifact and metrics."""

    @abstractmethod
    def predict(self, artifact, input_data: np.ndarray, accuracy: Optional[float]) -> Tuple[Any, float]:
        """
        Run inference against a trained artifact.

        Args:
            artifact: Artifact variant produced by ``train``
            input_data: 2-D input matrix
            accuracy: Accuracy recorded on the model, if any

        Returns:
            Tuple of (prediction, confidence in [0, 1])
        """

    # ---------------------------------------------------------------- helpers

    @staticmethod
    def _feature_matrix(features: Sequence[Sequence[float]]) -> np.ndarray:
        if not features or not features[0]:
            raise ValidationError("Training data requires a non-empty feature matrix")
        width = len(features[0])
        if any(len(row) != width for row in features):
            raise ValidationError("Feature rows must all have the same length")
        X = np.asarray(features, dtype=float)
        if not np.all(np.isfinite(X)):
            raise ValidationError("Feature matrix contains NaN or infinite values")
        return X

    @staticmethod
    def _numeric_target(data: TrainingData, label: str) -> np.ndarray:
        target = data.target
        if not target:
            raise ValidationError(f"{label} requires numerical target values")
        for value in target:
            if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
                raise ValidationError(
                    f"{label} requires numerical target values (got {value!r})"
                )
        return np.asarray(target, dtype=float)

    @staticmethod
    def input_matrix(input_data: Any) -> np.ndarray:
        """
        Normalize prediction input to a finite 2-D float matrix.

        Raises:
            ValidationError: If the input is empty, ragged or non-numeric
        """
        try:
            X = np.asarray(input_data, dtype=float)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Prediction input must be a numeric matrix: {e}") from e
        if X.ndim == 1:
            X = X.reshape(1, -1)
        if X.ndim != 2 or X.shape[0] == 0 or X.shape[1] == 0:
            raise ValidationError("Prediction input must be a non-empty 2-D matrix")
        if not np.all(np.isfinite(X)):
            raise ValidationError("Prediction input contains NaN or infinite values")
        return X

    @staticmethod
    def bounded_confidence(cap: float, accuracy: Optional[float]) -> float:
        """``min(cap, accuracy)`` with the fallback accuracy, clipped to [0, 1]."""
        if accuracy is None or not math.isfinite(accuracy):
            accuracy = ai_config.fallback_accuracy
        return float(min(1.0, max(0.0, min(cap, accuracy))))
