"""
Shared types of the model lifecycle.

Enumerations mirror the status columns stored in the database. Per-type
params and trained artifacts are closed unions discriminated on ``kind``
and carry a ``schema_version`` so stored blobs are validated on the way
back in rather than read as free-form dictionaries.
"""
import enum
import math
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from ml_pipeline.ai.ai_config import ai_config
from ml_pipeline.ai.errors import ValidationError

ARTIFACT_SCHEMA_VERSION = 1


class ModelType(str, enum.Enum):
    REGRESSION = "REGRESSION"
    CLASSIFICATION = "CLASSIFICATION"
    TIME_SERIES = "TIME_SERIES"
    CLUSTERING = "CLUSTERING"


class ModelStatus(str, enum.Enum):
    TRAINING = "TRAINING"
    TRAINED = "TRAINED"
    DEPLOYED = "DEPLOYED"
    FAILED = "FAILED"


# Statuses in which a model holds a serialized artifact
ARTIFACT_STATUSES = frozenset({ModelStatus.TRAINED, ModelStatus.DEPLOYED})


class TrainingStatus(str, enum.Enum):
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class MetricType(str, enum.Enum):
    ACCURACY = "ACCURACY"
    PRECISION = "PRECISION"
    RECALL = "RECALL"
    F1_SCORE = "F1_SCORE"
    MSE = "MSE"
    MAE = "MAE"
    R2_SCORE = "R2_SCORE"
    LOSS = "LOSS"


class DatasetType(str, enum.Enum):
    TRAINING = "TRAINING"
    VALIDATION = "VALIDATION"
    TEST = "TEST"


class PredictionType(str, enum.Enum):
    SALES_FORECAST = "SALES_FORECAST"
    CASH_FLOW_PREDICTION = "CASH_FLOW_PREDICTION"
    PROJECT_TIMELINE = "PROJECT_TIMELINE"
    CUSTOMER_BEHAVIOR = "CUSTOMER_BEHAVIOR"
    ANOMALY_DETECTION = "ANOMALY_DETECTION"
    RISK_ASSESSMENT = "RISK_ASSESSMENT"
    DEMAND_FORECAST = "DEMAND_FORECAST"
    PRICE_OPTIMIZATION = "PRICE_OPTIMIZATION"
    CHURN_PREDICTION = "CHURN_PREDICTION"
    LEAD_SCORING = "LEAD_SCORING"


class _CamelModel(BaseModel):
    """Accepts both snake_case and the dashboard's camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ==================== TRAINING INPUT ====================

class TrainingData(_CamelModel):
    """
    A training dataset: a numeric feature matrix plus an optional target.

    Each algorithm validates the target itself: numbers, binary labels or
    nothing at all.
    """

    features: List[List[float]]
    target: Optional[List[Any]] = None
    feature_names: List[str] = Field(default_factory=list)
    target_name: Optional[str] = None
    sample_count: Optional[int] = None

    @model_validator(mode="after")
    def _fill_sample_count(self) -> "TrainingData":
        if self.sample_count is None:
            self.sample_count = len(self.features) or len(self.target or [])
        return self

    @classmethod
    def from_dataframe(
        cls,
        df,
        feature_columns: List[str],
        target_column: Optional[str] = None
    ) -> "TrainingData":
        """
        Build a dataset from a pandas DataFrame.

        Args:
            df: DataFrame holding the feature and target columns
            feature_columns: Ordered feature column names
            target_column: Optional target column name

        Returns:
            TrainingData with rows in DataFrame order

        Raises:
            ValidationError: If a named column is missing
        """
        missing = [c for c in feature_columns if c not in df.columns]
        if target_column and target_column not in df.columns:
            missing.append(target_column)
        if missing:
            raise ValidationError(f"Columns not found in dataset: {', '.join(missing)}")

        target = None
        if target_column:
            target = df[target_column].tolist()

        features = []
        if feature_columns:
            features = df[feature_columns].to_numpy(dtype=float).tolist()

        return cls(
            features=features,
            target=target,
            feature_names=list(feature_columns),
            target_name=target_column,
            sample_count=len(df),
        )


class TrainingConfig(_CamelModel):
    """Hyperparameters snapshotted onto every training job."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    epochs: int = Field(default_factory=lambda: ai_config.default_epochs, ge=1, le=10000)
    batch_size: int = Field(default_factory=lambda: ai_config.default_batch_size, ge=1)
    learning_rate: float = Field(default_factory=lambda: ai_config.default_learning_rate, gt=0.0, le=1.0)
    validation_split: float = Field(default_factory=lambda: ai_config.default_validation_split, ge=0.0, lt=1.0)
    random_state: int = Field(default_factory=lambda: ai_config.random_state)
    timeout_seconds: Optional[float] = Field(default=None, gt=0.0)


# ==================== PER-TYPE PARAMS ====================

class _VersionedModel(BaseModel):
    model_config = ConfigDict(extra="forbid", protected_namespaces=())

    schema_version: Literal[1] = ARTIFACT_SCHEMA_VERSION


class RegressionParams(_VersionedModel):
    kind: Literal["regression"] = "regression"


class ClassificationParams(_VersionedModel):
    kind: Literal["classification"] = "classification"
    hidden_layers: List[int] = Field(default_factory=lambda: list(ai_config.default_hidden_layers), min_length=1)
    dropout: float = Field(default_factory=lambda: ai_config.default_dropout, ge=0.0, lt=1.0)
    threshold: float = Field(default=0.5, gt=0.0, lt=1.0)


class TimeSeriesParams(_VersionedModel):
    kind: Literal["time_series"] = "time_series"
    window_size: int = Field(default_factory=lambda: ai_config.default_window_size, ge=1)


class ClusteringParams(_VersionedModel):
    kind: Literal["clustering"] = "clustering"
    clusters: int = Field(default_factory=lambda: ai_config.default_clusters, ge=1)
    n_init: int = Field(default=10, ge=1)


ModelParams = Annotated[
    Union[RegressionParams, ClassificationParams, TimeSeriesParams, ClusteringParams],
    Field(discriminator="kind"),
]

PARAMS_BY_TYPE = {
    ModelType.REGRESSION: RegressionParams,
    ModelType.CLASSIFICATION: ClassificationParams,
    ModelType.TIME_SERIES: TimeSeriesParams,
    ModelType.CLUSTERING: ClusteringParams,
}


def build_params(model_type: ModelType, raw: Optional[Mapping[str, Any]] = None):
    """
    Validate free-form params against the closed variant of a model type.

    Args:
        model_type: Type whose params variant applies
        raw: Params as stored on the model or sent by a caller

    Returns:
        The params variant instance

    Raises:
        ValidationError: If a key is unknown, a value is out of range, or
            ``kind`` names another model type
    """
    params_cls = PARAMS_BY_TYPE[ModelType(model_type)]
    data = dict(raw or {})
    expected_kind = params_cls.model_fields["kind"].default
    if data.setdefault("kind", expected_kind) != expected_kind:
        raise ValidationError(
            f"Params kind '{data['kind']}' does not match model type {ModelType(model_type).value}"
        )
    try:
        return params_cls.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid params for {ModelType(model_type).value}: {e}") from e


# ==================== ARTIFACTS ====================

class RegressionArtifact(_VersionedModel):
    kind: Literal["regression"] = "regression"
    equation: List[float] = Field(min_length=2)  # [coef_1, ..., coef_n, intercept]

    @property
    def coefficients(self) -> List[float]:
        return self.equation[:-1]

    @property
    def intercept(self) -> float:
        return self.equation[-1]


class NetworkArchitecture(BaseModel):
    model_config = ConfigDict(extra="forbid")

    input_dim: int = Field(ge=1)
    hidden_layers: List[int]
    activation: Literal["relu"] = "relu"
    output_activation: Literal["logistic"] = "logistic"
    dropout: float = 0.0  # configured rate, applied as l2_penalty
    l2_penalty: float = 0.0


class ClassificationArtifact(_VersionedModel):
    kind: Literal["classification"] = "classification"
    architecture: NetworkArchitecture
    weights: List[List[List[float]]]
    biases: List[List[float]]
    scaler_mean: List[float]
    scaler_scale: List[float]
    threshold: float = 0.5
    history: Dict[str, List[float]] = Field(default_factory=dict)


class TimeSeriesArtifact(_VersionedModel):
    kind: Literal["time_series"] = "time_series"
    window_size: int = Field(ge=1)
    last_values: List[float]


class ClusteringArtifact(_VersionedModel):
    kind: Literal["clustering"] = "clustering"
    k: int = Field(ge=1)
    centroids: List[List[float]]
    clusters: List[int]


Artifact = Annotated[
    Union[RegressionArtifact, ClassificationArtifact, TimeSeriesArtifact, ClusteringArtifact],
    Field(discriminator="kind"),
]

_artifact_adapter = TypeAdapter(Artifact)


def serialize_artifact(artifact) -> str:
    """Serialize an artifact to the JSON blob stored on the model row."""
    return artifact.model_dump_json()


def deserialize_artifact(blob: str):
    """
    Parse a stored artifact blob back into its variant.

    Raises:
        ValidationError: If the blob is not a known, current-version artifact
    """
    try:
        return _artifact_adapter.validate_json(blob)
    except PydanticValidationError as e:
        raise ValidationError(f"Stored artifact is invalid: {e}") from e


# ==================== RESULTS ====================

class ModelPerformance(BaseModel):
    """Performance fields of a model; absent metrics stay None."""

    accuracy: Optional[float] = None
    precision: Optional[float] = None
    recall: Optional[float] = None
    f1_score: Optional[float] = None
    mse: Optional[float] = None
    mae: Optional[float] = None
    r2_score: Optional[float] = None
    log_loss: Optional[float] = None

    @model_validator(mode="after")
    def _drop_non_finite(self) -> "ModelPerformance":
        for name in type(self).model_fields:
            value = getattr(self, name)
            if value is not None and not math.isfinite(value):
                setattr(self, name, None)
        return self

    def tracked_metrics(self) -> Dict[MetricType, float]:
        """Metrics persisted as ModelMetric history rows after a training run."""
        tracked = {
            MetricType.ACCURACY: self.accuracy,
            MetricType.PRECISION: self.precision,
            MetricType.RECALL: self.recall,
            MetricType.F1_SCORE: self.f1_score,
        }
        return {k: v for k, v in tracked.items() if v is not None}

    @property
    def validation_loss(self) -> Optional[float]:
        return self.mse if self.mse is not None else self.log_loss


class PredictionResult(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    prediction: Any
    confidence: float = Field(ge=0.0, le=1.0)
    model_used: str
    timestamp: datetime
    prediction_id: Optional[str] = None
