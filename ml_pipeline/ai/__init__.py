"""
AI module for machine learning integration.

This module provides the model lifecycle: model definitions, background
training with per-type algorithms, metrics and prediction serving.
"""

__version__ = "0.1.0"

from ml_pipeline.ai.ai_config import AIConfig, ai_config
from ml_pipeline.ai.artifact_cache import ArtifactCache
from ml_pipeline.ai.model_store import ModelStore
from ml_pipeline.ai.prediction_service import PredictionService
from ml_pipeline.ai.training_service import TrainingService

__all__ = [
    'AIConfig',
    'ai_config',
    'ArtifactCache',
    'ModelStore',
    'PredictionService',
    'TrainingService',
]
