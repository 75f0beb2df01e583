import pytest

from ml_pipeline.ai.errors import ModelNotFoundError, ModelNotTrainedError, ValidationError
from ml_pipeline.ai.schemas import ModelStatus, ModelType, PredictionType


async def _trained(training_service, data, model_type, config=None, config_params=None):
    model = await training_service.create_model(
        name=f"{model_type.value.lower()} model",
        model_type=model_type,
        config_params=config_params,
    )
    job = await training_service.train_model(model.id, data, config)
    await training_service.wait_for_job(job.id)
    return await training_service.get_model(model.id)


async def test_regression_prediction(training_service, prediction_service, store, line_data):
    model = await _trained(training_service, line_data, ModelType.REGRESSION)

    result = await prediction_service.predict(
        model.id, [[5]], PredictionType.SALES_FORECAST, context={"region": "north"}, user_id="u-1"
    )

    assert result.prediction == pytest.approx(10.0)
    assert result.confidence == pytest.approx(0.95)
    assert result.model_used == model.name
    assert result.prediction_id is not None

    records = await prediction_service.list_predictions(model_id=model.id)
    assert len(records) == 1
    record = records[0]
    assert record.id == result.prediction_id
    assert record.prediction_type == "SALES_FORECAST"
    assert record.input_data == [[5.0]]
    assert record.output_data == pytest.approx(10.0)
    assert record.context == {"region": "north"}
    assert record.user_id == "u-1"

    model = await store.get_model(model.id)
    assert model.usage_count == 1
    assert model.last_used_date == result.timestamp


async def test_flat_input_is_one_row(training_service, prediction_service, line_data):
    model = await _trained(training_service, line_data, ModelType.REGRESSION)

    result = await prediction_service.predict(model.id, [2], "DEMAND_FORECAST")

    assert result.prediction == pytest.approx(4.0)


async def test_classification_prediction(training_service, prediction_service, binary_data, fast_config):
    model = await _trained(training_service, binary_data, ModelType.CLASSIFICATION, fast_config)

    single = await prediction_service.predict(model.id, [[2.5, 1.2]], PredictionType.CHURN_PREDICTION)
    batch = await prediction_service.predict(
        model.id, [[2.5, 1.2], [-2.5, -1.2]], PredictionType.CHURN_PREDICTION
    )

    assert single.prediction == 1
    assert batch.prediction == [1, 0]
    for result in (single, batch):
        assert 0.0 <= result.confidence <= 1.0


async def test_time_series_prediction(training_service, prediction_service, series_data):
    model = await _trained(
        training_service, series_data, ModelType.TIME_SERIES, config_params={"window_size": 3}
    )

    result = await prediction_service.predict(model.id, [[15]], PredictionType.CASH_FLOW_PREDICTION)

    assert result.prediction == [pytest.approx((14 + 13 + 15) / 3)]
    assert 0.0 <= result.confidence <= 0.9


async def test_clustering_prediction(training_service, prediction_service, cluster_data):
    model = await _trained(training_service, cluster_data, ModelType.CLUSTERING, config_params={"clusters": 2})

    near_origin = await prediction_service.predict(model.id, [[0.1, 0.0]], PredictionType.CUSTOMER_BEHAVIOR)
    far = await prediction_service.predict(model.id, [[9.9, 10.0]], PredictionType.CUSTOMER_BEHAVIOR)

    assert near_origin.prediction != far.prediction
    assert near_origin.confidence == pytest.approx(0.8)


async def test_deployed_model_serves_predictions(training_service, prediction_service, line_data):
    model = await _trained(training_service, line_data, ModelType.REGRESSION)
    await training_service.deploy_model(model.id)

    result = await prediction_service.predict(model.id, [[1]], PredictionType.SALES_FORECAST)

    assert result.prediction == pytest.approx(2.0)


async def test_untrained_model_cannot_predict(training_service, prediction_service, store):
    model = await training_service.create_model(name="pending", model_type=ModelType.REGRESSION)

    with pytest.raises(ModelNotTrainedError):
        await prediction_service.predict(model.id, [[1]], PredictionType.SALES_FORECAST)

    await store.update_model(model.id, status=ModelStatus.FAILED)
    with pytest.raises(ModelNotTrainedError):
        await prediction_service.predict(model.id, [[1]], PredictionType.SALES_FORECAST)

    assert await store.list_predictions(model_id=model.id) == []
    assert (await store.get_model(model.id)).usage_count == 0


async def test_unknown_model(prediction_service):
    with pytest.raises(ModelNotFoundError):
        await prediction_service.predict("missing", [[1]], PredictionType.SALES_FORECAST)


@pytest.mark.parametrize("input_data", [[], [["a"]], [[1.0, 2.0]], [[float("nan")]]])
async def test_invalid_input_records_nothing(training_service, prediction_service, store, line_data, input_data):
    model = await _trained(training_service, line_data, ModelType.REGRESSION)

    with pytest.raises(ValidationError):
        await prediction_service.predict(model.id, input_data, PredictionType.SALES_FORECAST)

    assert await store.list_predictions(model_id=model.id) == []
    assert (await store.get_model(model.id)).usage_count == 0


async def test_unknown_prediction_type(training_service, prediction_service, line_data):
    model = await _trained(training_service, line_data, ModelType.REGRESSION)

    with pytest.raises(ValidationError, match="prediction type"):
        await prediction_service.predict(model.id, [[1]], "WEATHER")


async def test_usage_count_increments_per_prediction(training_service, prediction_service, store, line_data):
    model = await _trained(training_service, line_data, ModelType.REGRESSION)

    for _ in range(3):
        await prediction_service.predict(model.id, [[1]], PredictionType.SALES_FORECAST)

    model = await store.get_model(model.id)
    assert model.usage_count == 3
    assert len(await prediction_service.list_predictions(prediction_type=PredictionType.SALES_FORECAST)) == 3


async def test_artifacts_are_cached_by_hash(training_service, prediction_service, cache, line_data):
    model = await _trained(training_service, line_data, ModelType.REGRESSION)

    await prediction_service.predict(model.id, [[1]], PredictionType.SALES_FORECAST)
    await prediction_service.predict(model.id, [[2]], PredictionType.SALES_FORECAST)

    assert cache.misses == 1
    assert cache.hits == 1
    assert cache.get(model.artifact_hash) is not None
