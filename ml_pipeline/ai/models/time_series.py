"""Windowed moving-average forecaster."""
from typing import Optional

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from ml_pipeline.ai import metrics
from ml_pipeline.ai.ai_config import ai_config
from ml_pipeline.ai.errors import ValidationError
from ml_pipeline.ai.models.base import ModelAlgorithm, TrainingOutcome
from ml_pipeline.ai.schemas import (
    ModelPerformance,
    ModelType,
    TimeSeriesArtifact,
    TimeSeriesParams,
    TrainingConfig,
    TrainingData,
)
from ml_pipeline.utils.logging import get_logger

logger = get_logger(__name__)


def moving_average_forecast(series: np.ndarray, window_size: int) -> np.ndarray:
    """
    Forecast every position from ``window_size`` onwards.

    The forecast for position i is the mean of series[i - window_size:i].

    Returns:
        Array of len(series) - window_size forecasts
    """
    windows = sliding_window_view(series, window_size)[:-1]
    return windows.mean(axis=1)


class TimeSeriesModel(ModelAlgorithm):
    """Moving-average time-series trainer and predictor."""

    model_type = ModelType.TIME_SERIES
    algorithm_name = "moving_average"
    requires_features = False

    def validate(self, data: TrainingData, params: TimeSeriesParams) -> None:
        super().validate(data, params)
        series = self._numeric_target(data, "Time series")
        if len(series) <= params.window_size:
            raise ValidationError(
                f"Time series requires more than {params.window_size} target values "
                f"(got {len(series)})"
            )

    def train(self, data: TrainingData, config: TrainingConfig, params: TimeSeriesParams) -> TrainingOutcome:
        series = self._numeric_target(data, "Time series")
        window = params.window_size

        predictions = moving_average_forecast(series, window)
        actual = series[window:]

        mse = metrics.mean_squared_error(actual, predictions)
        mae = metrics.mean_absolute_error(actual, predictions)
        peak = float(np.max(actual))
        accuracy = 1.0 - mse / peak if peak != 0 else 0.0

        logger.info(
            f"Moving average (window={window}) over {len(series)} values: "
            f"MSE={mse:.4f}, MAE={mae:.4f}"
        )
        artifact = TimeSeriesArtifact(
            window_size=window,
            last_values=series[-window:].tolist(),
        )
        return TrainingOutcome(
            artifact=artifact,
            metrics=ModelPerformance(mse=mse, mae=mae, accuracy=accuracy),
        )

    def predict(self, artifact: TimeSeriesArtifact, input_data: np.ndarray, accuracy: Optional[float]):
        recent = input_data[0]
        combined = np.concatenate([np.asarray(artifact.last_values, dtype=float), recent])
        window = combined[-artifact.window_size:]
        prediction = [float(window.mean())]
        confidence = self.bounded_confidence(ai_config.time_series_confidence_cap, accuracy)
        return prediction, confidence
