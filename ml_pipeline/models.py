"""Database models for the ML pipeline."""
import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


def _new_id() -> str:
    return uuid.uuid4().hex


def _iso(value):
    return value.isoformat() if value else None


class MLModel(Base):
    """A trainable model definition plus its current artifact."""
    __tablename__ = "ml_models"

    id = Column(String(32), primary_key=True, default=_new_id)
    tenant_id = Column(String(100), nullable=False, index=True)
    user_id = Column(String(100), nullable=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(20), nullable=False, index=True)  # ModelType value
    framework = Column(String(50), nullable=False, default="SCIKIT_LEARN")
    algorithm = Column(String(100), nullable=False)
    feature_columns = Column(JSON, nullable=False, default=list)
    target_column = Column(String(200), nullable=True)
    config_params = Column(JSON, nullable=True)
    status = Column(String(20), nullable=False, default="TRAINING", index=True)  # ModelStatus value

    accuracy = Column(Float, nullable=True)
    precision = Column(Float, nullable=True)
    recall = Column(Float, nullable=True)
    f1_score = Column(Float, nullable=True)
    mse = Column(Float, nullable=True)
    mae = Column(Float, nullable=True)
    r2_score = Column(Float, nullable=True)

    model_data = Column(Text, nullable=True)  # Serialized artifact (JSON)
    artifact_hash = Column(String(64), nullable=True)  # SHA-256 of model_data
    training_data_size = Column(Integer, nullable=True)
    last_training_date = Column(DateTime, nullable=True)
    usage_count = Column(Integer, default=0, nullable=False)
    last_used_date = Column(DateTime, nullable=True)
    is_production = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    training_jobs = relationship("TrainingJob", back_populates="model", cascade="all, delete-orphan")
    predictions = relationship("Prediction", back_populates="model", cascade="all, delete-orphan")
    metrics = relationship("ModelMetric", back_populates="model", cascade="all, delete-orphan")

    def to_dict(self, include_artifact: bool = False) -> dict:
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "user_id": self.user_id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "framework": self.framework,
            "algorithm": self.algorithm,
            "feature_columns": list(self.feature_columns or []),
            "target_column": self.target_column,
            "config_params": self.config_params,
            "status": self.status,
            "accuracy": self.accuracy,
            "precision": self.precision,
            "recall": self.recall,
            "f1_score": self.f1_score,
            "mse": self.mse,
            "mae": self.mae,
            "r2_score": self.r2_score,
            "artifact_hash": self.artifact_hash,
            "training_data_size": self.training_data_size,
            "last_training_date": _iso(self.last_training_date),
            "usage_count": self.usage_count,
            "last_used_date": _iso(self.last_used_date),
            "is_production": self.is_production,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_artifact:
            data["model_data"] = self.model_data
        return data

    def __repr__(self):
        return f"<MLModel(id={self.id}, name={self.name}, type={self.type}, status={self.status})>"


class TrainingJob(Base):
    """One training run of a model."""
    __tablename__ = "ml_training_jobs"

    id = Column(String(32), primary_key=True, default=_new_id)
    tenant_id = Column(String(100), nullable=False, index=True)
    user_id = Column(String(100), nullable=True)
    model_id = Column(String(32), ForeignKey("ml_models.id"), nullable=False, index=True)
    job_name = Column(String(300), nullable=False)
    status = Column(String(20), nullable=False, default="RUNNING", index=True)  # TrainingStatus value
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=True)
    duration = Column(Float, nullable=True)  # Seconds

    training_config = Column(JSON, nullable=True)
    dataset_size = Column(Integer, nullable=True)
    epochs = Column(Integer, nullable=True)
    batch_size = Column(Integer, nullable=True)
    learning_rate = Column(Float, nullable=True)
    validation_split = Column(Float, nullable=True)

    validation_accuracy = Column(Float, nullable=True)
    validation_loss = Column(Float, nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    model = relationship("MLModel", back_populates="training_jobs")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "user_id": self.user_id,
            "model_id": self.model_id,
            "job_name": self.job_name,
            "status": self.status,
            "start_time": _iso(self.start_time),
            "end_time": _iso(self.end_time),
            "duration": self.duration,
            "training_config": self.training_config,
            "dataset_size": self.dataset_size,
            "epochs": self.epochs,
            "batch_size": self.batch_size,
            "learning_rate": self.learning_rate,
            "validation_split": self.validation_split,
            "validation_accuracy": self.validation_accuracy,
            "validation_loss": self.validation_loss,
            "error_message": self.error_message,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<TrainingJob(id={self.id}, model_id={self.model_id}, status={self.status})>"


class Prediction(Base):
    """Append-only record of a served prediction."""
    __tablename__ = "ml_predictions"

    id = Column(String(32), primary_key=True, default=_new_id)
    tenant_id = Column(String(100), nullable=False, index=True)
    user_id = Column(String(100), nullable=True)
    model_id = Column(String(32), ForeignKey("ml_models.id"), nullable=False, index=True)
    prediction_type = Column(String(50), nullable=False, index=True)  # PredictionType value
    input_data = Column(JSON, nullable=False)
    output_data = Column(JSON, nullable=True)
    confidence = Column(Float, nullable=False)
    context = Column(JSON, nullable=True)
    prediction_date = Column(DateTime, nullable=False, index=True)

    model = relationship("MLModel", back_populates="predictions")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "user_id": self.user_id,
            "model_id": self.model_id,
            "prediction_type": self.prediction_type,
            "input_data": self.input_data,
            "output_data": self.output_data,
            "confidence": self.confidence,
            "context": self.context,
            "prediction_date": _iso(self.prediction_date),
        }

    def __repr__(self):
        return f"<Prediction(id={self.id}, model_id={self.model_id}, type={self.prediction_type})>"


class ModelMetric(Base):
    """Append-only metric history of a model."""
    __tablename__ = "ml_model_metrics"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(100), nullable=False, index=True)
    model_id = Column(String(32), ForeignKey("ml_models.id"), nullable=False, index=True)
    metric_type = Column(String(20), nullable=False)  # MetricType value
    value = Column(Float, nullable=False)
    dataset_type = Column(String(20), nullable=False, default="TRAINING")  # DatasetType value
    evaluation_date = Column(DateTime, nullable=False, index=True)

    model = relationship("MLModel", back_populates="metrics")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "model_id": self.model_id,
            "metric_type": self.metric_type,
            "value": self.value,
            "dataset_type": self.dataset_type,
            "evaluation_date": _iso(self.evaluation_date),
        }

    def __repr__(self):
        return f"<ModelMetric(model_id={self.model_id}, type={self.metric_type}, value={self.value})>"
