"""Storage client protocol, data types and error hierarchy.

This module defines the interface the services use to talk to an
S3-compatible backend. Every method works on *physical* bucket and key
names; mapping logical buckets onto folders of a base bucket is handled by
:mod:`ossbridge.infra.storage.addressing` before a call reaches the client.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, BinaryIO, Iterator, Mapping, Protocol, Sequence, Union

ObjectBody = Union[bytes, bytearray, BinaryIO]


class StorageError(RuntimeError):
    """Raised when object storage operations fail.

    ``code`` is the backend error code when one was returned and
    ``operation`` names the backend call that failed.
    """

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        operation: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.operation = operation


class NotFoundError(StorageError):
    """The bucket, object, upload session or configuration does not exist."""


class AlreadyExistsError(StorageError):
    """The bucket or folder already exists and is owned by the caller."""


class InvalidArgumentError(StorageError):
    """The request was rejected as malformed, locally or by the backend."""


class PermissionDeniedError(StorageError):
    """Credentials are missing, invalid or lack access to the target."""


class TransientError(StorageError):
    """Network failure or backend 5xx. Never retried internally."""


class ConflictError(StorageError):
    """The request conflicts with backend or session state."""


@dataclass(frozen=True, slots=True)
class CompletedPart:
    """Represents a completed part in a multipart upload."""

    part_number: int
    etag: str


@dataclass(frozen=True, slots=True)
class MultipartUpload:
    """Result of initiating a multipart upload."""

    upload_id: str
    bucket: str
    object_key: str
    initiated_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ObjectHead:
    """Metadata from a HEAD object request."""

    size_bytes: int
    etag: str | None
    content_type: str | None
    last_modified: datetime | None = None
    expires: datetime | None = None
    metadata: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ObjectSummary:
    """One entry of a bucket listing, keyed by physical key."""

    key: str
    size_bytes: int
    etag: str | None
    last_modified: datetime | None


@dataclass(frozen=True, slots=True)
class ObjectListing:
    """Objects and common prefixes returned by a (possibly delimited) listing."""

    objects: list[ObjectSummary]
    common_prefixes: list[str]


@dataclass(frozen=True, slots=True)
class AclGrant:
    grantee: str
    grantee_type: str
    permission: str


@dataclass(frozen=True, slots=True)
class ObjectAcl:
    owner: str | None
    grants: list[AclGrant]


class StorageClient(Protocol):
    """Protocol defining the interface for object storage backends.

    Implementations raise :class:`StorageError` subclasses, never the
    underlying SDK exceptions.
    """

    def head_bucket(self, *, bucket: str) -> bool:
        """Return True when the bucket exists, False on 404."""
        ...

    def create_bucket(self, *, bucket: str) -> None:
        ...

    def delete_bucket(self, *, bucket: str) -> None:
        ...

    def list_buckets(self) -> list[str]:
        ...

    def list_objects(
        self,
        *,
        bucket: str,
        prefix: str = "",
        delimiter: str | None = None,
        max_keys: int | None = None,
    ) -> ObjectListing:
        """List objects under ``prefix``, following continuation tokens.

        When ``max_keys`` is given only the first page is fetched.
        """
        ...

    def head_object(self, *, bucket: str, object_key: str) -> ObjectHead:
        ...

    def get_object(self, *, bucket: str, object_key: str) -> bytes:
        ...

    def open_object(self, *, bucket: str, object_key: str) -> Any:
        """Return the streaming body of an object; the caller closes it."""
        ...

    def put_object(
        self,
        *,
        bucket: str,
        object_key: str,
        body: ObjectBody,
        content_type: str | None = None,
        expires: datetime | None = None,
        metadata: Mapping[str, str] | None = None,
        server_side_encryption: str | None = None,
    ) -> str | None:
        """Store an object and return its ETag."""
        ...

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        ...

    def delete_objects(self, *, bucket: str, object_keys: Sequence[str]) -> int:
        """Delete keys in batches and return how many were deleted."""
        ...

    def copy_object(
        self,
        *,
        source_bucket: str,
        source_key: str,
        bucket: str,
        object_key: str,
    ) -> None:
        ...

    def put_object_acl(self, *, bucket: str, object_key: str, acl: str) -> None:
        ...

    def get_object_acl(self, *, bucket: str, object_key: str) -> ObjectAcl:
        ...

    def put_object_tagging(
        self, *, bucket: str, object_key: str, tags: Mapping[str, str]
    ) -> None:
        ...

    def get_object_tagging(self, *, bucket: str, object_key: str) -> dict[str, str]:
        ...

    def init_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        content_type: str | None = None,
        metadata: Mapping[str, str] | None = None,
    ) -> MultipartUpload:
        ...

    def upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        body: ObjectBody,
    ) -> CompletedPart:
        ...

    def list_parts(
        self, *, bucket: str, object_key: str, upload_id: str
    ) -> list[CompletedPart]:
        ...

    def list_multipart_uploads(
        self, *, bucket: str, prefix: str = ""
    ) -> list[MultipartUpload]:
        ...

    def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> str | None:
        """Assemble the parts in the given order and return the final ETag."""
        ...

    def abort_multipart_upload(
        self, *, bucket: str, object_key: str, upload_id: str
    ) -> None:
        ...

    def get_bucket_lifecycle(self, *, bucket: str) -> list[dict[str, Any]]:
        """Return the raw lifecycle rules.

        Raises NotFoundError (code ``NoSuchLifecycleConfiguration``) when the
        bucket has no configuration.
        """
        ...

    def put_bucket_lifecycle(
        self, *, bucket: str, rules: Sequence[Mapping[str, Any]]
    ) -> None:
        ...

    def delete_bucket_lifecycle(self, *, bucket: str) -> None:
        ...

    def put_bucket_versioning(self, *, bucket: str, enabled: bool) -> None:
        ...

    def presign(
        self,
        *,
        method: str,
        bucket: str,
        object_key: str,
        expires_in: int,
        params: Mapping[str, Any] | None = None,
    ) -> str:
        """Sign a ``get_object`` or ``put_object`` request."""
        ...

    def object_url(self, *, bucket: str, object_key: str) -> str:
        """Unsigned URL, usable only for publicly readable objects."""
        ...


def iter_chunks(data: bytes, size: int) -> Iterator[bytes]:
    """Split ``data`` into ``size``-byte chunks; the last may be shorter."""
    if size <= 0:
        raise InvalidArgumentError("chunk size must be positive")
    for offset in range(0, len(data), size):
        yield data[offset : offset + size]
