"""Object storage abstraction layer.

This module provides a protocol-based abstraction for object storage backends,
enabling support for S3, MinIO, and other S3-compatible services, plus the
addressing strategies that map logical buckets onto them.
"""

from .addressing import (
    AddressingStrategy,
    DirectAddressing,
    FolderAddressing,
    StorageTarget,
    build_addressing,
)
from .client import (
    AclGrant,
    AlreadyExistsError,
    CompletedPart,
    ConflictError,
    InvalidArgumentError,
    MultipartUpload,
    NotFoundError,
    ObjectAcl,
    ObjectHead,
    ObjectListing,
    ObjectSummary,
    PermissionDeniedError,
    StorageClient,
    StorageError,
    TransientError,
)

__all__ = [
    "AclGrant",
    "AddressingStrategy",
    "AlreadyExistsError",
    "CompletedPart",
    "ConflictError",
    "DirectAddressing",
    "FolderAddressing",
    "InvalidArgumentError",
    "MultipartUpload",
    "NotFoundError",
    "ObjectAcl",
    "ObjectHead",
    "ObjectListing",
    "ObjectSummary",
    "PermissionDeniedError",
    "StorageClient",
    "StorageError",
    "StorageTarget",
    "TransientError",
    "build_addressing",
]
