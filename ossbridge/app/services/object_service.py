"""Object service for bucket/folder and single-object operations.

Every operation takes logical bucket and key names, resolves them through
the configured addressing strategy and delegates one call to the backend.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

from ossbridge.app.services.base import BaseService
from ossbridge.infra.storage.client import (
    InvalidArgumentError,
    ObjectAcl,
    ObjectBody,
    ObjectHead,
)

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

SERVER_SIDE_ENCRYPTION_ALGORITHMS = frozenset({"AES256", "aws:kms", "aws:kms:dsse"})

CANNED_ACLS = frozenset(
    {
        "private",
        "public-read",
        "public-read-write",
        "authenticated-read",
        "aws-exec-read",
        "bucket-owner-read",
        "bucket-owner-full-control",
    }
)


@dataclass(frozen=True, slots=True)
class ObjectRecord:
    """An object inside a logical bucket, keyed by its logical key."""

    key: str
    size_bytes: int
    etag: str | None
    last_modified: datetime | None


class ObjectService(BaseService):
    """Application service for logical buckets and the objects inside them."""

    # -- buckets / folders -----------------------------------------------

    def bucket_exists(self, bucket: str) -> bool:
        """True when the logical bucket (or folder) exists."""
        return self._container_exists(bucket)

    def create_bucket(self, bucket: str) -> bool:
        """Create a logical bucket; a no-op when it already exists.

        Returns True when this call created it.
        """
        created = self._ensure_container(bucket)
        if created:
            container = self._addressing.container(bucket)
            logger.info(
                "bucket_created bucket=%s physical_bucket=%s prefix=%s",
                bucket,
                container.bucket,
                container.key,
            )
        return created

    def remove_bucket(self, bucket: str, *, force: bool = False) -> None:
        """Remove a logical bucket.

        A non-empty bucket is only removed with ``force``, which deletes the
        objects under it first.

        Raises:
            NotFoundError: If the bucket does not exist.
            ConflictError: If the bucket is not empty and ``force`` is False.
        """
        deleted = self._addressing.remove_container(self._storage, bucket, force=force)
        logger.info("bucket_removed bucket=%s objects_deleted=%s", bucket, deleted)

    def list_buckets(self) -> list[str]:
        """List top-level logical buckets.

        In folder mode these are the folders directly under the base bucket.
        """
        return self._addressing.list_containers(self._storage)

    def list_objects(self, bucket: str, prefix: str = "") -> list[ObjectRecord]:
        """List objects whose logical key starts with ``prefix``.

        The folder marker is never returned.
        """
        container = self._addressing.container(bucket)
        target = self._addressing.resolve_prefix(bucket, prefix)
        listing = self._storage.list_objects(bucket=target.bucket, prefix=target.key)
        records = []
        for obj in listing.objects:
            if not obj.key.startswith(target.key) or obj.key == container.key:
                continue
            records.append(
                ObjectRecord(
                    key=self._addressing.to_logical_key(bucket, obj.key),
                    size_bytes=obj.size_bytes,
                    etag=obj.etag,
                    last_modified=obj.last_modified,
                )
            )
        return records

    # -- objects ---------------------------------------------------------

    def head_object(self, bucket: str, key: str) -> ObjectHead:
        target = self._resolve_object(bucket, key)
        return self._storage.head_object(bucket=target.bucket, object_key=target.key)

    def get_object(self, bucket: str, key: str) -> bytes:
        target = self._resolve_object(bucket, key)
        return self._storage.get_object(bucket=target.bucket, object_key=target.key)

    def open_object(self, bucket: str, key: str) -> Any:
        """Return a streaming body; close it when done."""
        target = self._resolve_object(bucket, key)
        return self._storage.open_object(bucket=target.bucket, object_key=target.key)

    def put_object(
        self,
        bucket: str,
        key: str,
        data: ObjectBody,
        *,
        content_type: str = DEFAULT_CONTENT_TYPE,
        expires_at: datetime | None = None,
        metadata: Mapping[str, str] | None = None,
    ) -> str | None:
        """Upload an object, creating the logical bucket if needed.

        ``expires_at`` only sets the HTTP ``Expires`` header for caches and
        browsers; it does not delete the object. Use lifecycle rules for that.

        Returns:
            The ETag reported by the backend.
        """
        return self._put(
            bucket,
            key,
            data,
            content_type=content_type,
            expires_at=expires_at,
            metadata=metadata,
        )

    def put_object_with_expiration(
        self,
        bucket: str,
        key: str,
        data: ObjectBody,
        ttl: timedelta,
        *,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> str | None:
        """Upload with an ``Expires`` header of now + ``ttl``."""
        if ttl.total_seconds() <= 0:
            raise InvalidArgumentError(f"ttl must be positive, got {ttl}")
        expires_at = datetime.now(timezone.utc) + ttl
        return self._put(bucket, key, data, content_type=content_type, expires_at=expires_at)

    def put_object_with_encryption(
        self,
        bucket: str,
        key: str,
        data: ObjectBody,
        algorithm: str,
        *,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> str | None:
        """Upload with server-side encryption (``AES256``, ``aws:kms``...)."""
        if algorithm not in SERVER_SIDE_ENCRYPTION_ALGORITHMS:
            raise InvalidArgumentError(
                f"Unknown server-side encryption algorithm {algorithm!r}; "
                f"expected one of {sorted(SERVER_SIDE_ENCRYPTION_ALGORITHMS)}"
            )
        return self._put(
            bucket,
            key,
            data,
            content_type=content_type,
            server_side_encryption=algorithm,
        )

    def _put(
        self,
        bucket: str,
        key: str,
        data: ObjectBody,
        *,
        content_type: str | None,
        expires_at: datetime | None = None,
        metadata: Mapping[str, str] | None = None,
        server_side_encryption: str | None = None,
    ) -> str | None:
        target = self._resolve_object(bucket, key)
        self._ensure_container(bucket)
        return self._storage.put_object(
            bucket=target.bucket,
            object_key=target.key,
            body=data,
            content_type=content_type,
            expires=expires_at,
            metadata=metadata,
            server_side_encryption=server_side_encryption,
        )

    def delete_object(self, bucket: str, key: str) -> None:
        target = self._resolve_object(bucket, key)
        self._storage.delete_object(bucket=target.bucket, object_key=target.key)

    def copy_object(
        self,
        source_bucket: str,
        source_key: str,
        destination_bucket: str,
        destination_key: str,
    ) -> None:
        """Server-side copy; both sides are logical addresses."""
        source = self._resolve_object(source_bucket, source_key)
        destination = self._resolve_object(destination_bucket, destination_key)
        self._ensure_container(destination_bucket)
        self._storage.copy_object(
            source_bucket=source.bucket,
            source_key=source.key,
            bucket=destination.bucket,
            object_key=destination.key,
        )

    # -- acl, tags, versioning -------------------------------------------

    def set_object_acl(self, bucket: str, key: str, acl: str) -> None:
        if acl not in CANNED_ACLS:
            raise InvalidArgumentError(
                f"Unknown canned ACL {acl!r}; expected one of {sorted(CANNED_ACLS)}"
            )
        target = self._resolve_object(bucket, key)
        self._storage.put_object_acl(bucket=target.bucket, object_key=target.key, acl=acl)

    def get_object_acl(self, bucket: str, key: str) -> ObjectAcl:
        target = self._resolve_object(bucket, key)
        return self._storage.get_object_acl(bucket=target.bucket, object_key=target.key)

    def set_object_tags(self, bucket: str, key: str, tags: Mapping[str, str]) -> None:
        """Replace the object's whole tag set with ``tags``."""
        target = self._resolve_object(bucket, key)
        self._storage.put_object_tagging(
            bucket=target.bucket, object_key=target.key, tags=dict(tags)
        )

    def get_object_tags(self, bucket: str, key: str) -> dict[str, str]:
        target = self._resolve_object(bucket, key)
        return self._storage.get_object_tagging(
            bucket=target.bucket, object_key=target.key
        )

    def set_versioning(self, bucket: str, enabled: bool) -> None:
        """Enable or suspend versioning.

        In folder mode this changes the shared base bucket, so every logical
        bucket is affected.
        """
        container = self._addressing.container(bucket)
        self._storage.put_bucket_versioning(bucket=container.bucket, enabled=enabled)
        logger.info(
            "versioning_changed physical_bucket=%s enabled=%s", container.bucket, enabled
        )
