import json

import pandas as pd
import pytest

from ml_pipeline.ai.errors import ValidationError
from ml_pipeline.ai.schemas import (
    ClassificationParams,
    ClusteringArtifact,
    ModelPerformance,
    ModelType,
    RegressionArtifact,
    TimeSeriesParams,
    TrainingConfig,
    TrainingData,
    build_params,
    deserialize_artifact,
    serialize_artifact,
)


def test_build_params_applies_type_defaults():
    params = build_params(ModelType.TIME_SERIES, None)
    assert isinstance(params, TimeSeriesParams)
    assert params.window_size == 7

    params = build_params("CLASSIFICATION", {"hidden_layers": [16]})
    assert isinstance(params, ClassificationParams)
    assert params.hidden_layers == [16]
    assert params.dropout == pytest.approx(0.2)


def test_build_params_rejects_unknown_keys():
    with pytest.raises(ValidationError):
        build_params(ModelType.REGRESSION, {"learning_rate": 0.1})


def test_build_params_rejects_mismatched_kind():
    with pytest.raises(ValidationError, match="does not match"):
        build_params(ModelType.CLUSTERING, {"kind": "regression"})


def test_build_params_rejects_out_of_range_values():
    with pytest.raises(ValidationError):
        build_params(ModelType.CLUSTERING, {"clusters": 0})


def test_artifact_blob_is_tagged_json():
    blob = serialize_artifact(RegressionArtifact(equation=[2.0, 0.0]))
    payload = json.loads(blob)

    assert payload["kind"] == "regression"
    assert payload["schema_version"] == 1

    artifact = deserialize_artifact(blob)
    assert isinstance(artifact, RegressionArtifact)
    assert artifact.coefficients == [2.0]
    assert artifact.intercept == 0.0


def test_deserialize_picks_variant_by_kind():
    blob = serialize_artifact(ClusteringArtifact(k=1, centroids=[[0.0, 0.0]], clusters=[0, 0]))
    assert isinstance(deserialize_artifact(blob), ClusteringArtifact)


@pytest.mark.parametrize("blob", [
    '{"kind": "forest", "schema_version": 1}',
    '{"kind": "regression", "schema_version": 2, "equation": [1.0, 0.0]}',
    '{"kind": "regression", "schema_version": 1, "equation": [1.0]}',
    'not json',
])
def test_deserialize_rejects_unknown_or_invalid_blobs(blob):
    with pytest.raises(ValidationError):
        deserialize_artifact(blob)


def test_training_config_defaults_and_aliases():
    config = TrainingConfig()
    assert (config.epochs, config.batch_size, config.learning_rate, config.validation_split) == (100, 32, 0.001, 0.2)

    config = TrainingConfig.model_validate({"batchSize": 8, "validationSplit": 0.1})
    assert config.batch_size == 8
    assert config.validation_split == 0.1


def test_training_data_sample_count():
    assert TrainingData(features=[[1], [2]], target=[1, 2]).sample_count == 2
    assert TrainingData(features=[], target=[1, 2, 3]).sample_count == 3


def test_training_data_from_dataframe():
    df = pd.DataFrame({"x": [1, 2, 3], "z": [0.5, 0.1, 0.2], "y": [2, 4, 6]})

    data = TrainingData.from_dataframe(df, ["x", "z"], "y")

    assert data.features == [[1.0, 0.5], [2.0, 0.1], [3.0, 0.2]]
    assert data.target == [2, 4, 6]
    assert data.feature_names == ["x", "z"]
    assert data.sample_count == 3


def test_training_data_from_dataframe_missing_column():
    df = pd.DataFrame({"x": [1, 2, 3]})
    with pytest.raises(ValidationError, match="y"):
        TrainingData.from_dataframe(df, ["x"], "y")


def test_model_performance_drops_non_finite_values():
    performance = ModelPerformance(accuracy=float("nan"), mse=0.5, precision=0.0)

    assert performance.accuracy is None
    assert performance.validation_loss == 0.5
    assert set(performance.tracked_metrics()) == {"PRECISION"}
