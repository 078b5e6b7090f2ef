from __future__ import annotations

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from app.api import deps
from app.core.config import Settings
from app.factory import create_app
from tests.fakes import NOW, UTC, FakeHistorySource, row


@pytest.fixture()
def now() -> datetime:
    return NOW


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        _env_file=None,
        env="test",
        debug=True,
        docs_enabled=False,
        secret_key="test_secret_key_must_be_32_chars_minimum",
        cors_origins=["http://localhost"],
        trusted_hosts=["testserver", "localhost"],
        backend_url="http://backend.test",
        backend_timeout_seconds=1.0,
        timezone="UTC",
        max_bars=20,
        max_measurements=3,
    )


@pytest.fixture()
def source() -> FakeHistorySource:
    fake = FakeHistorySource()
    fake.rows["temp"] = [
        row(datetime(2026, 10, 18, 10, 3, tzinfo=UTC), 5.0, max=7.0, min=3.0, total=20.0),
    ]
    fake.rows["hum"] = [
        row(datetime(2026, 10, 18, 9, 20, tzinfo=UTC), 40.0, max=55.0, min=30.0, total=400.0),
        row(datetime(2026, 10, 18, 9, 50, tzinfo=UTC), 60.0, max=65.0, min=50.0, total=600.0),
    ]
    return fake


@pytest.fixture()
def client(settings: Settings, source: FakeHistorySource) -> TestClient:
    app = create_app(settings)
    app.dependency_overrides[deps.get_history_source] = lambda: source
    app.dependency_overrides[deps.get_clock] = lambda: (lambda: NOW)
    with TestClient(app) as client:
        yield client
