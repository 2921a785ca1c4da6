"""Logical to physical address resolution.

Callers always speak in logical ``(bucket, key)`` pairs. Without a base
bucket those map one to one onto backend buckets. With a base bucket every
logical bucket becomes a folder ``<bucket>/`` inside it, represented on the
backend by a zero-length marker object with that key.

Folder boundaries are always stored and compared with exactly one trailing
``/``; keys never start with ``/``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ossbridge.infra.storage.client import (
    AlreadyExistsError,
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
)

if TYPE_CHECKING:
    from ossbridge.common.config import Settings
    from ossbridge.infra.storage.client import StorageClient

FOLDER_DELIMITER = "/"


@dataclass(frozen=True, slots=True)
class StorageTarget:
    """Physical bucket and key (or key prefix) on the backend."""

    bucket: str
    key: str


def normalize_folder(name: str) -> str:
    """Strip surrounding slashes from a bucket or folder name."""
    cleaned = (name or "").strip().strip(FOLDER_DELIMITER)
    if not cleaned:
        raise InvalidArgumentError(f"Bucket or folder name is empty: {name!r}")
    return cleaned


def normalize_key(key: str) -> str:
    return (key or "").lstrip(FOLDER_DELIMITER)


def _not_empty(logical_bucket: str) -> ConflictError:
    return ConflictError(f"Bucket {logical_bucket!r} is not empty", code="BucketNotEmpty")


class AddressingStrategy(ABC):
    """Maps logical bucket/key pairs onto backend buckets and keys.

    Besides address arithmetic, a strategy owns everything that differs
    between the two modes: how a logical bucket is probed, created, removed
    and enumerated on the backend.
    """

    @abstractmethod
    def container(self, logical_bucket: str) -> StorageTarget:
        """Physical bucket and key prefix that hold a logical bucket.

        The prefix is ``""`` in direct mode and ``"<bucket>/"`` in folder
        mode, which is also the key of the folder marker.
        """

    def resolve(self, logical_bucket: str, logical_key: str = "") -> StorageTarget:
        """Resolve an object address. An empty key denotes the container."""
        container = self.container(logical_bucket)
        return StorageTarget(container.bucket, container.key + normalize_key(logical_key))

    def resolve_prefix(self, logical_bucket: str, prefix: str = "") -> StorageTarget:
        """Resolve a listing prefix inside a logical bucket."""
        return self.resolve(logical_bucket, prefix)

    def to_logical_key(self, logical_bucket: str, physical_key: str) -> str:
        """Inverse of :meth:`resolve` for keys found inside the container."""
        prefix = self.container(logical_bucket).key
        if not physical_key.startswith(prefix):
            raise InvalidArgumentError(
                f"Key {physical_key!r} is outside container {logical_bucket!r}"
            )
        return physical_key[len(prefix) :]

    @abstractmethod
    def container_exists(self, storage: "StorageClient", logical_bucket: str) -> bool:
        ...

    @abstractmethod
    def create_container(self, storage: "StorageClient", logical_bucket: str) -> None:
        """Create the logical bucket; AlreadyExistsError if someone beat us to it."""

    def ensure_container(self, storage: "StorageClient", logical_bucket: str) -> bool:
        """Create the logical bucket when missing; return True if it was created.

        Check-then-create is not atomic. A concurrent creator winning the race
        surfaces as AlreadyExistsError, which counts as success.
        """
        if self.container_exists(storage, logical_bucket):
            return False
        try:
            self.create_container(storage, logical_bucket)
        except AlreadyExistsError:
            return False
        return True

    @abstractmethod
    def remove_container(
        self, storage: "StorageClient", logical_bucket: str, *, force: bool = False
    ) -> int:
        """Remove the logical bucket; return the number of keys deleted.

        Raises:
            NotFoundError: If the bucket does not exist.
            ConflictError: If the bucket is not empty and ``force`` is False.
        """

    @abstractmethod
    def list_containers(self, storage: "StorageClient") -> list[str]:
        """Names of the top-level logical buckets."""

    def prepare_backend(self, storage: "StorageClient") -> list[str]:
        """Create whatever must exist before any logical bucket can.

        Returns the physical buckets this call created.
        """
        return []


class DirectAddressing(AddressingStrategy):
    """Logical buckets are real backend buckets."""

    def container(self, logical_bucket: str) -> StorageTarget:
        return StorageTarget(normalize_folder(logical_bucket), "")

    def container_exists(self, storage: "StorageClient", logical_bucket: str) -> bool:
        return storage.head_bucket(bucket=self.container(logical_bucket).bucket)

    def create_container(self, storage: "StorageClient", logical_bucket: str) -> None:
        storage.create_bucket(bucket=self.container(logical_bucket).bucket)

    def remove_container(
        self, storage: "StorageClient", logical_bucket: str, *, force: bool = False
    ) -> int:
        bucket = self.container(logical_bucket).bucket
        keys = [obj.key for obj in storage.list_objects(bucket=bucket).objects]
        if keys and not force:
            raise _not_empty(logical_bucket)
        if keys:
            storage.delete_objects(bucket=bucket, object_keys=keys)
        storage.delete_bucket(bucket=bucket)
        return len(keys)

    def list_containers(self, storage: "StorageClient") -> list[str]:
        return storage.list_buckets()

    def __repr__(self) -> str:
        return "DirectAddressing()"


class FolderAddressing(AddressingStrategy):
    """Logical buckets are folders inside one base bucket."""

    def __init__(self, base_bucket: str) -> None:
        self._base_bucket = normalize_folder(base_bucket)

    @property
    def base_bucket(self) -> str:
        return self._base_bucket

    def container(self, logical_bucket: str) -> StorageTarget:
        return StorageTarget(
            self._base_bucket, normalize_folder(logical_bucket) + FOLDER_DELIMITER
        )

    def container_exists(self, storage: "StorageClient", logical_bucket: str) -> bool:
        # A folder exists while its marker or any object under it does.
        container = self.container(logical_bucket)
        listing = storage.list_objects(
            bucket=container.bucket, prefix=container.key, max_keys=1
        )
        return bool(listing.objects)

    def create_container(self, storage: "StorageClient", logical_bucket: str) -> None:
        container = self.container(logical_bucket)
        storage.put_object(bucket=container.bucket, object_key=container.key, body=b"")

    def remove_container(
        self, storage: "StorageClient", logical_bucket: str, *, force: bool = False
    ) -> int:
        container = self.container(logical_bucket)
        listing = storage.list_objects(bucket=container.bucket, prefix=container.key)
        keys = [obj.key for obj in listing.objects]
        if not keys:
            raise NotFoundError(
                f"Bucket {logical_bucket!r} does not exist", code="NoSuchBucket"
            )
        if not force and any(key != container.key for key in keys):
            raise _not_empty(logical_bucket)
        storage.delete_objects(bucket=container.bucket, object_keys=keys)
        return len(keys)

    def list_containers(self, storage: "StorageClient") -> list[str]:
        listing = storage.list_objects(
            bucket=self._base_bucket, prefix="", delimiter=FOLDER_DELIMITER
        )
        return [prefix.rstrip(FOLDER_DELIMITER) for prefix in listing.common_prefixes]

    def prepare_backend(self, storage: "StorageClient") -> list[str]:
        if storage.head_bucket(bucket=self._base_bucket):
            return []
        try:
            storage.create_bucket(bucket=self._base_bucket)
        except AlreadyExistsError:
            return []
        return [self._base_bucket]

    def __repr__(self) -> str:
        return f"FolderAddressing(base_bucket={self._base_bucket!r})"


def build_addressing(settings: "Settings") -> AddressingStrategy:
    if settings.OSS_BUCKET_NAME:
        return FolderAddressing(settings.OSS_BUCKET_NAME)
    return DirectAddressing()
