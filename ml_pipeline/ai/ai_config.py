"""
AI Configuration Module

Central configuration for ML training and inference settings.
All model-lifecycle defaults and confidence rules are defined here.
"""
from pydantic import BaseModel, ConfigDict, Field


class AIConfig(BaseModel):
    """
    AI configuration settings.
    
    Controls the default hyperparameters of a training job and the
    confidence bounds reported with predictions.
    """
    
    # Training job defaults
    default_epochs: int = Field(default=100, ge=1, description="Epochs when the caller does not set one")
    default_batch_size: int = Field(default=32, ge=1, description="Mini-batch size for gradient training")
    default_learning_rate: float = Field(default=0.001, gt=0.0, description="Optimizer step size")
    default_validation_split: float = Field(
        default=0.2,
        ge=0.0,
        lt=1.0,
        description="Share of samples held out for validation"
    )
    
    # Algorithm defaults
    default_window_size: int = Field(default=7, ge=1, description="Moving-average window for time series")
    default_clusters: int = Field(default=3, ge=1, description="k for k-means clustering")
    default_hidden_layers: tuple = Field(default=(64, 32), description="Dense layer widths of the classifier")
    default_dropout: float = Field(default=0.2, ge=0.0, lt=1.0, description="Dropout rate of the classifier")
    random_state: int = Field(default=42, description="Seed for reproducible splits and initialization")
    
    # Request limits
    min_training_samples: int = Field(
        default=10,
        ge=1,
        description="Minimum samples accepted by the training endpoint"
    )
    
    # Prediction confidence rules
    regression_confidence_cap: float = Field(default=0.95, ge=0.0, le=1.0)
    time_series_confidence_cap: float = Field(default=0.9, ge=0.0, le=1.0)
    clustering_confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    fallback_accuracy: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Accuracy assumed when a trained model has none recorded"
    )
    
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "default_epochs": 100,
                "default_batch_size": 32,
                "default_learning_rate": 0.001,
                "default_validation_split": 0.2,
                "default_window_size": 7,
                "default_clusters": 3,
                "min_training_samples": 10
            }
        }
    )


# Global AI configuration instance
ai_config = AIConfig()
