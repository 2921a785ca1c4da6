from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ossbridge.common.config import Settings, get_settings
from ossbridge.infra.storage.addressing import (
    AddressingStrategy,
    build_addressing,
)
from ossbridge.infra.storage.client import StorageClient

from .base import build_storage_client
from .lifecycle_service import LifecycleService
from .multipart_service import MultipartUploadService
from .object_service import ObjectService
from .presign_service import PresignService

startup_logger = logging.getLogger("ossbridge.startup")


@dataclass
class ServiceBundle:
    """Lazily constructs storage services sharing one client and addressing."""

    settings: Settings
    storage_client: StorageClient | None = None
    addressing: AddressingStrategy | None = None
    _objects: ObjectService | None = field(default=None, init=False, repr=False)
    _multipart: MultipartUploadService | None = field(
        default=None, init=False, repr=False
    )
    _lifecycle: LifecycleService | None = field(default=None, init=False, repr=False)
    _presign: PresignService | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.storage_client is None:
            self.storage_client = build_storage_client(self.settings)
        if self.addressing is None:
            self.addressing = build_addressing(self.settings)

    def _kwargs(self) -> dict:
        return {
            "storage_client": self.storage_client,
            "addressing": self.addressing,
            "settings": self.settings,
        }

    def objects(self) -> ObjectService:
        if self._objects is None:
            self._objects = ObjectService(**self._kwargs())
        return self._objects

    def multipart(self) -> MultipartUploadService:
        if self._multipart is None:
            self._multipart = MultipartUploadService(**self._kwargs())
        return self._multipart

    def lifecycle(self) -> LifecycleService:
        if self._lifecycle is None:
            self._lifecycle = LifecycleService(**self._kwargs())
        return self._lifecycle

    def presign(self) -> PresignService:
        if self._presign is None:
            self._presign = PresignService(**self._kwargs())
        return self._presign

    def provision(self) -> list[str]:
        """Prepare the backend the way the configuration describes it.

        Creates the base bucket when folder mode is on, then every expiring
        bucket with its lifecycle rule. Returns the expiring bucket names.
        Errors propagate.
        """
        assert self.storage_client is not None and self.addressing is not None
        for physical_bucket in self.addressing.prepare_backend(self.storage_client):
            startup_logger.info("Created base bucket %s", physical_bucket)

        provisioned = []
        for name, days in self.settings.OSS_EXPIRING_BUCKETS.items():
            self.lifecycle().create_expiring_bucket(name, days)
            startup_logger.info("Expiring bucket %s ready (%s days)", name, days)
            provisioned.append(name)
        return provisioned


def get_service_bundle(settings: Settings | None = None) -> ServiceBundle:
    return ServiceBundle(settings=settings or get_settings())
