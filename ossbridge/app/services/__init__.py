from .base import BaseService, ServiceError, StorageBackendNotConfiguredError
from .bundle import ServiceBundle, get_service_bundle
from .lifecycle_service import BucketProperties, LifecycleRule, LifecycleService
from .multipart_service import (
    MultipartUploadService,
    MultipartUploadSession,
    UploadStatus,
)
from .object_service import ObjectRecord, ObjectService
from .presign_service import PresignService

__all__ = [
    "BaseService",
    "ServiceError",
    "StorageBackendNotConfiguredError",
    "ServiceBundle",
    "get_service_bundle",
    "ObjectService",
    "ObjectRecord",
    "MultipartUploadService",
    "MultipartUploadSession",
    "UploadStatus",
    "LifecycleService",
    "LifecycleRule",
    "BucketProperties",
    "PresignService",
]
