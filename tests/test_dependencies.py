from collections import OrderedDict

import pytest

from ml_pipeline import dependencies
from ml_pipeline.ai.errors import TenantLimitError
from ml_pipeline.ai.model_store import ModelStore, running_job_tenants
from ml_pipeline.ai.schemas import TrainingStatus
from ml_pipeline.config import settings
from ml_pipeline.utils.datetime_utils import utc_now


@pytest.fixture
def registry(monkeypatch):
    services = OrderedDict()
    monkeypatch.setattr(dependencies, "_services", services)
    monkeypatch.setattr(settings, "max_tenants", 2)
    return services


def test_services_are_reused_per_tenant(registry):
    first = dependencies.services_for("a")

    assert dependencies.services_for("a") is first
    assert first[0].store.tenant_id == "a"
    assert first[1].store is first[0].store


def test_registry_releases_least_recently_used_idle_tenant(registry):
    dependencies.services_for("a")
    dependencies.services_for("b")
    dependencies.services_for("a")

    dependencies.services_for("c")

    assert list(registry) == ["a", "c"]


def test_registry_keeps_tenants_with_training_in_progress(registry):
    busy, _ = dependencies.services_for("a")
    dependencies.services_for("b")
    busy._active_models.add("model-1")

    dependencies.services_for("c")
    assert list(registry) == ["a", "c"]

    dependencies.services_for("c")[0]._active_models.add("model-2")
    with pytest.raises(TenantLimitError):
        dependencies.services_for("d")
    assert len(registry) == 2


async def test_running_job_tenants_spans_every_tenant(database):
    for tenant_id in ("acme", "globex", "initech"):
        store = ModelStore(database, tenant_id)
        model = await store.create_model(name="m", type="REGRESSION", algorithm="linear_regression")
        status = TrainingStatus.COMPLETED if tenant_id == "initech" else TrainingStatus.RUNNING
        await store.create_training_job(model.id, job_name="j", status=status, start_time=utc_now())

    assert await running_job_tenants(database) == ["acme", "globex"]
