import asyncio

import pytest
from fastapi.testclient import TestClient

from ml_pipeline.ai.model_store import ModelStore
from ml_pipeline.ai.schemas import TrainingStatus
from ml_pipeline.config import settings
from ml_pipeline.database import Database
from ml_pipeline.main import app
from ml_pipeline.utils.datetime_utils import utc_now

API = f"{settings.api_prefix}/ml"


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "database_url", f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    with TestClient(app) as client:
        yield client


def _line(n=12):
    return {
        "features": [[float(x)] for x in range(1, n + 1)],
        "target": [2.0 * x for x in range(1, n + 1)],
    }


def _create(client, **overrides):
    body = {"name": "Revenue", "type": "REGRESSION", "featureColumns": ["month"], "targetColumn": "revenue"}
    body.update(overrides)
    response = client.post(f"{API}/models", json=body)
    assert response.status_code == 201
    return response.json()["data"]


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}

    status = client.get("/status").json()
    assert status["status"] == "operational"
    assert status["components"]["database"]["connected"] is True


def test_model_lifecycle(client):
    model = _create(client)
    assert model["status"] == "TRAINING"

    response = client.post(
        f"{API}/training",
        json={"modelId": model["id"], "trainingData": _line(), "wait": True},
    )
    assert response.status_code == 202
    body = response.json()
    assert body["success"] is True
    assert body["data"]["status"] == "COMPLETED"
    job_id = body["data"]["id"]

    job = client.get(f"{API}/training/{job_id}").json()["data"]
    assert job["dataset_size"] == 12

    response = client.put(f"{API}/models/{model['id']}", json={"action": "deploy"})
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "DEPLOYED"

    response = client.post(
        f"{API}/predictions",
        json={"modelId": model["id"], "inputData": [[20]], "predictionType": "SALES_FORECAST"},
    )
    assert response.status_code == 200
    result = response.json()["data"]
    assert result["prediction"] == pytest.approx(40.0)
    assert 0.0 <= result["confidence"] <= 0.95
    assert result["model_used"] == "Revenue"

    detail = client.get(f"{API}/models/{model['id']}").json()["data"]
    assert detail["usage_count"] == 1
    assert detail["is_production"] is True
    assert detail["metrics"]["r2_score"] == pytest.approx(1.0)

    history = client.get(f"{API}/models/{model['id']}/metrics/history").json()
    assert history["count"] == 1
    assert history["data"][0]["metric_type"] == "ACCURACY"

    predictions = client.get(f"{API}/predictions", params={"model_id": model["id"]}).json()
    assert predictions["count"] == 1

    response = client.delete(f"{API}/models/{model['id']}")
    assert response.json() == {"success": True, "message": "Model deleted successfully"}
    assert client.get(f"{API}/models/{model['id']}").status_code == 404


def test_list_models_envelope(client):
    _create(client, name="a")
    _create(client, name="b", type="CLUSTERING", featureColumns=["x", "y"], targetColumn=None)

    body = client.get(f"{API}/models").json()
    assert body["success"] is True
    assert body["count"] == 2

    body = client.get(f"{API}/models", params={"type": "CLUSTERING"}).json()
    assert [m["name"] for m in body["data"]] == ["b"]


def test_tenant_header_scopes_models(client):
    _create(client)

    response = client.get(f"{API}/models", headers={"X-Tenant-ID": "someone-else"})

    assert response.json()["count"] == 0


def test_training_requires_minimum_samples(client):
    model = _create(client)

    response = client.post(
        f"{API}/training",
        json={"modelId": model["id"], "trainingData": _line(4)},
    )

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert "At least" in response.json()["detail"]


def test_training_invalid_target_is_rejected(client):
    model = _create(client, type="CLASSIFICATION")
    data = _line()
    data["target"] = list(range(12))

    response = client.post(f"{API}/training", json={"modelId": model["id"], "trainingData": data})

    assert response.status_code == 400
    jobs = client.get(f"{API}/training", params={"model_id": model["id"]}).json()
    assert jobs["count"] == 0


def test_training_failure_is_reported(client):
    model = _create(client, type="CLUSTERING", configParams={"clusters": 3})
    data = {"features": [[1.0, 1.0]] * 12}

    response = client.post(
        f"{API}/training",
        json={"modelId": model["id"], "trainingData": data, "trainingConfig": {"timeoutSeconds": 0.000001}, "wait": True},
    )

    body = response.json()
    assert response.status_code == 202
    assert body["success"] is False
    assert body["data"]["status"] == "FAILED"
    assert body["message"].startswith("Training failed")


def test_unknown_ids_return_404(client):
    assert client.get(f"{API}/models/missing").status_code == 404
    assert client.get(f"{API}/training/missing").status_code == 404
    response = client.post(
        f"{API}/predictions",
        json={"modelId": "missing", "inputData": [[1]], "predictionType": "SALES_FORECAST"},
    )
    assert response.status_code == 404
    assert response.json()["success"] is False


def test_state_conflicts_return_409(client):
    model = _create(client)

    assert client.put(f"{API}/models/{model['id']}", json={"action": "deploy"}).status_code == 409
    response = client.post(
        f"{API}/predictions",
        json={"modelId": model["id"], "inputData": [[1]], "predictionType": "SALES_FORECAST"},
    )
    assert response.status_code == 409


async def _seed_running_job(database_url, tenant_id):
    database = Database(database_url)
    await database.connect()
    try:
        store = ModelStore(database, tenant_id)
        model = await store.create_model(
            name="Revenue", type="REGRESSION", algorithm="linear_regression", config_params={}
        )
        await store.create_training_job(
            model.id, job_name="interrupted", status=TrainingStatus.RUNNING, start_time=utc_now()
        )
        return model.id
    finally:
        await database.disconnect()


def test_startup_finalizes_interrupted_jobs_of_every_tenant(tmp_path, monkeypatch):
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'api.db'}"
    monkeypatch.setattr(settings, "database_url", database_url)
    model_id = asyncio.run(_seed_running_job(database_url, "acme"))
    headers = {"X-Tenant-ID": "acme"}

    with TestClient(app) as client:
        jobs = client.get(f"{API}/training", params={"model_id": model_id}, headers=headers).json()["data"]
        assert [job["status"] for job in jobs] == ["FAILED"]
        assert jobs[0]["error_message"] == "Training interrupted by shutdown"

        response = client.post(
            f"{API}/training",
            json={"modelId": model_id, "trainingData": _line(), "wait": True},
            headers=headers,
        )
        assert response.status_code == 202
        assert response.json()["data"]["status"] == "COMPLETED"
