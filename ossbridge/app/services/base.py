from __future__ import annotations

from ossbridge.common.config import Settings, get_settings
from ossbridge.infra.storage.addressing import (
    FOLDER_DELIMITER,
    AddressingStrategy,
    StorageTarget,
    build_addressing,
)
from ossbridge.infra.storage.client import InvalidArgumentError, StorageClient


class ServiceError(Exception):
    """Base class for application service level exceptions."""


class StorageBackendNotConfiguredError(ServiceError):
    """Raised when the storage backend is disabled or missing credentials."""


def build_storage_client(settings: Settings) -> StorageClient:
    """Build the boto3-backed storage client after checking configuration."""
    if not settings.OSS_ENABLED:
        raise StorageBackendNotConfiguredError("Object storage is disabled (OSS_ENABLED)")
    if not settings.OSS_ACCESS_KEY or not settings.OSS_SECRET_KEY:
        raise StorageBackendNotConfiguredError(
            "OSS_ACCESS_KEY and OSS_SECRET_KEY are required"
        )
    from ossbridge.infra.storage.s3_client import S3StorageClient

    return S3StorageClient(settings=settings)


class BaseService:
    """Provides the storage client and addressing shared by storage services."""

    def __init__(
        self,
        *,
        storage_client: StorageClient | None = None,
        addressing: AddressingStrategy | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._storage = storage_client or build_storage_client(self._settings)
        self._addressing = addressing or build_addressing(self._settings)

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def addressing(self) -> AddressingStrategy:
        return self._addressing

    def _container_exists(self, bucket: str) -> bool:
        return self._addressing.container_exists(self._storage, bucket)

    def _ensure_container(self, bucket: str) -> bool:
        """Create the logical bucket when missing; return True if it was created."""
        return self._addressing.ensure_container(self._storage, bucket)

    def _resolve_object(self, bucket: str, key: str) -> StorageTarget:
        """Resolve an object address; an empty key would name the container."""
        if not key or not key.strip(FOLDER_DELIMITER):
            raise InvalidArgumentError("Object key must not be empty")
        return self._addressing.resolve(bucket, key)
