from __future__ import annotations

import pytest

from ossbridge.common.config import Settings, get_settings
from tests.services.mock_storage import BASE_BUCKET, MockStorageClient


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture()
def folder_settings() -> Settings:
    return Settings(
        OSS_ACCESS_KEY="test-key",
        OSS_SECRET_KEY="test-secret",
        OSS_BUCKET_NAME=BASE_BUCKET,
    )


@pytest.fixture()
def direct_settings() -> Settings:
    return Settings(OSS_ACCESS_KEY="test-key", OSS_SECRET_KEY="test-secret")


@pytest.fixture()
def mock_storage() -> MockStorageClient:
    storage = MockStorageClient()
    storage.buckets[BASE_BUCKET] = {}
    return storage
