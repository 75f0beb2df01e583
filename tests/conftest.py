import pytest

from ml_pipeline.ai.artifact_cache import ArtifactCache
from ml_pipeline.ai.model_store import ModelStore
from ml_pipeline.ai.prediction_service import PredictionService
from ml_pipeline.ai.schemas import TrainingConfig, TrainingData
from ml_pipeline.ai.training_service import TrainingService
from ml_pipeline.database import Database


@pytest.fixture
async def database(tmp_path):
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'ml_pipeline_test.db'}")
    await database.connect()
    yield database
    await database.disconnect()


@pytest.fixture
def store(database):
    return ModelStore(database, "tenant-a")


@pytest.fixture
def cache():
    return ArtifactCache(maxsize=16, ttl_seconds=60.0)


@pytest.fixture
async def training_service(store, cache):
    service = TrainingService(store, cache, default_timeout_seconds=60.0)
    yield service
    await service.shutdown()


@pytest.fixture
def prediction_service(store, cache):
    return PredictionService(store, cache)


@pytest.fixture
def line_data():
    return TrainingData(features=[[1], [2], [3], [4]], target=[2, 4, 6, 8])


@pytest.fixture
def binary_data():
    # Two separable groups: label 1 iff x0 + x1 > 0
    features = []
    target = []
    for i in range(40):
        offset = 2.0 + (i % 5) * 0.3
        if i % 2 == 0:
            features.append([offset, offset * 0.5])
            target.append(1)
        else:
            features.append([-offset, -offset * 0.5])
            target.append(0)
    return TrainingData(features=features, target=target)


@pytest.fixture
def series_data():
    return TrainingData(features=[], target=[float(v) for v in [3, 5, 4, 6, 8, 7, 9, 11, 10, 12, 14, 13]])


@pytest.fixture
def cluster_data():
    return TrainingData(features=[[0.0, 0.0], [0.2, 0.1], [10.0, 10.0], [10.1, 9.8]])


@pytest.fixture
def fast_config():
    return TrainingConfig(epochs=20, batch_size=8, learning_rate=0.01)
