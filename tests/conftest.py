from __future__ import annotations

import os

import pytest

for _key, _value in {
    "SECRET_KEY": "test-secret-key-for-signing-tokens-0001",
    "MONGO_URL": "mongodb://localhost:27017",
    "DB_NAME": "cultural_registry_test",
    "CELERY_BROKER_URL": "redis://127.0.0.1:6379/0",
    "CELERY_RESULT_BACKEND": "redis://127.0.0.1:6379/0",
    "STORAGE_PROVIDER": "local",
    "STORAGE_BACKENDS": "local-a=/tmp/cultural-registry-test",
}.items():
    os.environ.setdefault(_key, _value)

from core.storage.registry import BackendRegistry  # noqa: E402
from fakes import FakeDriveStore, FakeProvider  # noqa: E402


@pytest.fixture
def drive_store() -> FakeDriveStore:
    return FakeDriveStore()


@pytest.fixture
def providers() -> dict[str, FakeProvider]:
    return {}


@pytest.fixture
def registry(drive_store: FakeDriveStore, providers: dict[str, FakeProvider]) -> BackendRegistry:
    def _factory(backend):
        return providers.setdefault(backend.id, FakeProvider())

    return BackendRegistry(store=drive_store, provider_factory=_factory)
