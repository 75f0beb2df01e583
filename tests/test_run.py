import os

import pytest

import run
from ml_pipeline.config import settings


@pytest.fixture
def restore_settings(monkeypatch):
    for name in ("host", "port", "reload", "database_url"):
        monkeypatch.setattr(settings, name, getattr(settings, name))
    monkeypatch.delenv("DATABASE_URL", raising=False)


def test_defaults_come_from_settings(restore_settings):
    args = run.build_parser().parse_args([])

    assert (args.host, args.port, args.reload) == (settings.host, settings.port, settings.reload)
    assert args.database_url is None


def test_overrides_reach_settings_and_environment(restore_settings):
    url = "sqlite+aiosqlite:///./other.db"
    args = run.build_parser().parse_args(["--port", "9100", "--reload", "--database-url", url])

    run.apply_overrides(args)

    assert settings.port == 9100
    assert settings.reload is True
    assert settings.database_url == url
    assert os.environ["DATABASE_URL"] == url
