"""
Linear Regression Model

Ordinary least squares. A single feature column uses the closed-form
slope/intercept formulas; several columns are solved with an intercept
column through numpy's least-squares solver, which reduces to the same fit.
"""
from typing import Optional, Tuple

import numpy as np

from ml_pipeline.ai import metrics
from ml_pipeline.ai.ai_config import ai_config
from ml_pipeline.ai.errors import ValidationError
from ml_pipeline.ai.models.base import ModelAlgorithm, TrainingOutcome
from ml_pipeline.ai.schemas import (
    ModelPerformance,
    ModelType,
    RegressionArtifact,
    TrainingConfig,
    TrainingData,
)
from ml_pipeline.utils.logging import get_logger

logger = get_logger(__name__)


def fit_line(x: np.ndarray, y: np.ndarray) -> Tuple[float, float]:
    """
    Closed-form OLS line through (x, y) pairs.

    slope = (nΣxy − ΣxΣy) / (nΣx² − (Σx)²), intercept = (Σy − slope·Σx) / n.
    When every x is equal the slope is undefined; the fit degrades to the
    horizontal line through the mean of y.

    Returns:
        Tuple of (slope, intercept)
    """
    n = float(len(x))
    sum_x = float(np.sum(x))
    sum_y = float(np.sum(y))
    sum_xy = float(np.sum(x * y))
    sum_xx = float(np.sum(x * x))

    denominator = n * sum_xx - sum_x * sum_x
    if denominator == 0:
        return 0.0, sum_y / n

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n
    return slope, intercept


class RegressionModel(ModelAlgorithm):
    """Linear regression trainer and predictor."""

    model_type = ModelType.REGRESSION
    algorithm_name = "linear_regression"

    def validate(self, data: TrainingData, params) -> None:
        super().validate(data, params)
        self._numeric_target(data, "Regression")

    def train(self, data: TrainingData, config: TrainingConfig, params) -> TrainingOutcome:
        X = self._feature_matrix(data.features)
        y = self._numeric_target(data, "Regression")

        if X.shape[1] == 1:
            slope, intercept = fit_line(X[:, 0], y)
            equation = [slope, intercept]
        else:
            design = np.column_stack([X, np.ones(len(X))])
            solution, *_ = np.linalg.lstsq(design, y, rcond=None)
            equation = [float(v) for v in solution]

        coefficients = np.asarray(equation[:-1])
        predictions = X @ coefficients + equation[-1]

        r2 = metrics.r2_score(y, predictions)
        performance = ModelPerformance(
            mse=metrics.mean_squared_error(y, predictions),
            mae=metrics.mean_absolute_error(y, predictions),
            r2_score=r2,
            accuracy=r2,
        )
        logger.info(
            f"Regression fit on {len(X)} samples, {X.shape[1]} feature(s): "
            f"equation={equation}, R²={r2:.4f}"
        )
        return TrainingOutcome(artifact=RegressionArtifact(equation=equation), metrics=performance)

    def predict(self, artifact: RegressionArtifact, input_data: np.ndarray, accuracy: Optional[float]):
        row = input_data[0]
        coefficients = artifact.coefficients
        if len(row) != len(coefficients):
            raise ValidationError(
                f"Regression model expects {len(coefficients)} feature(s), got {len(row)}"
            )
        prediction = float(np.dot(row, coefficients) + artifact.intercept)
        confidence = self.bounded_confidence(ai_config.regression_confidence_cap, accuracy)
        return prediction, confidence
