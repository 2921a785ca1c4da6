"""S3-compatible storage client implementation.

This module provides an S3-compatible storage client that works with
AWS S3, MinIO, and other S3-compatible object storage services.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Collection, Mapping, Sequence
from urllib.parse import quote, urlsplit

import boto3
from botocore.config import Config
from botocore.exceptions import (
    ClientError,
    ConnectionError as BotoConnectionError,
    HTTPClientError,
    NoCredentialsError,
    ParamValidationError,
)

from ossbridge.infra.observability.metrics import STORAGE_LATENCY, STORAGE_OPERATIONS
from ossbridge.infra.storage.client import (
    AclGrant,
    AlreadyExistsError,
    CompletedPart,
    ConflictError,
    InvalidArgumentError,
    MultipartUpload,
    NotFoundError,
    ObjectAcl,
    ObjectBody,
    ObjectHead,
    ObjectListing,
    ObjectSummary,
    PermissionDeniedError,
    StorageError,
    TransientError,
)

if TYPE_CHECKING:
    from ossbridge.common.config import Settings

logger = logging.getLogger(__name__)

# S3 DeleteObjects accepts at most 1000 keys per request
DELETE_BATCH_SIZE = 1000
PRESIGNABLE_METHODS = {"get_object": "GET", "put_object": "PUT"}
BUCKET_MISSING_CODES = ("404", "NotFound", "NoSuchBucket")

_ERROR_TYPES_BY_CODE: dict[str, type[StorageError]] = {
    "404": NotFoundError,
    "NotFound": NotFoundError,
    "NoSuchKey": NotFoundError,
    "NoSuchBucket": NotFoundError,
    "NoSuchUpload": NotFoundError,
    "NoSuchLifecycleConfiguration": NotFoundError,
    "NoSuchTagSet": NotFoundError,
    "NoSuchVersion": NotFoundError,
    "BucketAlreadyOwnedByYou": AlreadyExistsError,
    "BucketAlreadyExists": ConflictError,
    "BucketNotEmpty": ConflictError,
    "InvalidPart": ConflictError,
    "OperationAborted": ConflictError,
    "InvalidArgument": InvalidArgumentError,
    "InvalidRequest": InvalidArgumentError,
    "InvalidPartOrder": InvalidArgumentError,
    "EntityTooSmall": InvalidArgumentError,
    "EntityTooLarge": InvalidArgumentError,
    "MalformedACLError": InvalidArgumentError,
    "MalformedXML": InvalidArgumentError,
    "InvalidBucketName": InvalidArgumentError,
    "InvalidStorageClass": InvalidArgumentError,
    "KeyTooLongError": InvalidArgumentError,
    "403": PermissionDeniedError,
    "AccessDenied": PermissionDeniedError,
    "AllAccessDisabled": PermissionDeniedError,
    "SignatureDoesNotMatch": PermissionDeniedError,
    "InvalidAccessKeyId": PermissionDeniedError,
    "ExpiredToken": PermissionDeniedError,
    "InternalError": TransientError,
    "ServiceUnavailable": TransientError,
    "SlowDown": TransientError,
    "RequestTimeout": TransientError,
}


def translate_error(exc: Exception, operation: str) -> StorageError:
    """Map an SDK exception onto the storage error hierarchy.

    The backend code and message are preserved; the caller chains the
    original exception.
    """
    description = operation.replace("_", " ")
    if isinstance(exc, StorageError):
        return exc
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = str(error.get("Code") or "") or None
        message = error.get("Message") or str(exc)
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        error_type = _ERROR_TYPES_BY_CODE.get(code or "")
        if error_type is None and isinstance(status, int) and status >= 500:
            error_type = TransientError
        return (error_type or StorageError)(
            f"Failed to {description}: {message}", code=code, operation=operation
        )
    if isinstance(exc, NoCredentialsError):
        return PermissionDeniedError(
            f"Failed to {description}: {exc}", operation=operation
        )
    if isinstance(exc, ParamValidationError):
        return InvalidArgumentError(
            f"Failed to {description}: {exc}", operation=operation
        )
    if isinstance(exc, (BotoConnectionError, HTTPClientError)):
        return TransientError(f"Failed to {description}: {exc}", operation=operation)
    return StorageError(f"Failed to {description}: {exc}", operation=operation)


def _as_bytes(body: ObjectBody) -> Any:
    if isinstance(body, bytearray):
        return bytes(body)
    return body


class S3StorageClient:
    """S3-compatible object storage client.

    Supports AWS S3, MinIO, and other S3-compatible services.
    Uses boto3 for all storage operations. The client holds no mutable
    state and may be shared between threads.
    """

    def __init__(self, *, settings: "Settings") -> None:
        """Initialize the S3 client with configuration from settings.

        Args:
            settings: Application settings containing OSS configuration.
        """
        self._settings = settings
        self._client = self._build_client(settings)

    @staticmethod
    def _build_client(settings: "Settings") -> Any:
        """Create a boto3 S3 client from settings."""
        addressing_style = "path" if settings.OSS_PATH_STYLE_ACCESS else "virtual"
        config = Config(
            signature_version="s3v4",
            s3={"addressing_style": addressing_style},
            connect_timeout=settings.OSS_CONNECT_TIMEOUT,
            retries={"max_attempts": 1, "mode": "standard"},
        )

        return boto3.client(
            "s3",
            endpoint_url=settings.OSS_ENDPOINT,
            region_name=settings.OSS_REGION,
            aws_access_key_id=settings.OSS_ACCESS_KEY,
            aws_secret_access_key=settings.OSS_SECRET_KEY,
            config=config,
        )

    def _call(
        self,
        operation: str,
        func: Callable[..., Any],
        *,
        expected_codes: Collection[str] = (),
        **params: Any,
    ) -> Any:
        """Invoke one backend call with metrics, logging and error translation.

        Failures whose backend code is in ``expected_codes`` are outcomes the
        caller handles (a missing bucket, no lifecycle configuration) and are
        logged at DEBUG instead of WARNING.
        """
        start = time.perf_counter()
        try:
            response = func(**params)
        except Exception as exc:
            error = translate_error(exc, operation)
            STORAGE_OPERATIONS.labels(operation, type(error).__name__).inc()
            level = logging.DEBUG if error.code in expected_codes else logging.WARNING
            logger.log(
                level,
                "storage_call_failed operation=%s bucket=%s key=%s code=%s",
                operation,
                params.get("Bucket"),
                params.get("Key"),
                error.code,
                extra={
                    "extra": {
                        "operation": operation,
                        "bucket": params.get("Bucket"),
                        "key": params.get("Key"),
                        "code": error.code,
                        "error": str(error),
                    }
                },
            )
            if error is exc:
                raise
            raise error from exc
        finally:
            STORAGE_LATENCY.labels(operation).observe(time.perf_counter() - start)

        STORAGE_OPERATIONS.labels(operation, "ok").inc()
        logger.debug(
            "storage_call operation=%s bucket=%s key=%s",
            operation,
            params.get("Bucket"),
            params.get("Key"),
        )
        return response

    def _paginate(self, operation: str, **params: Any) -> list[dict[str, Any]]:
        paginator = self._client.get_paginator(operation)
        return self._call(
            operation, lambda **p: list(paginator.paginate(**p)), **params
        )

    # -- buckets ---------------------------------------------------------

    def head_bucket(self, *, bucket: str) -> bool:
        """Return True when the bucket exists, False on 404."""
        try:
            self._call(
                "head_bucket",
                self._client.head_bucket,
                expected_codes=BUCKET_MISSING_CODES,
                Bucket=bucket,
            )
        except NotFoundError:
            return False
        return True

    def create_bucket(self, *, bucket: str) -> None:
        params: dict[str, Any] = {"Bucket": bucket}
        region = self._settings.OSS_REGION
        if region and region != "us-east-1":
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}
        # Callers treat an existing bucket of ours as success.
        self._call(
            "create_bucket",
            self._client.create_bucket,
            expected_codes=("BucketAlreadyOwnedByYou",),
            **params,
        )

    def delete_bucket(self, *, bucket: str) -> None:
        self._call("delete_bucket", self._client.delete_bucket, Bucket=bucket)

    def list_buckets(self) -> list[str]:
        response = self._call("list_buckets", self._client.list_buckets)
        return [item["Name"] for item in response.get("Buckets", [])]

    # -- objects ---------------------------------------------------------

    def list_objects(
        self,
        *,
        bucket: str,
        prefix: str = "",
        delimiter: str | None = None,
        max_keys: int | None = None,
    ) -> ObjectListing:
        """List objects under ``prefix``, following continuation tokens."""
        params: dict[str, Any] = {"Bucket": bucket, "Prefix": prefix}
        if delimiter:
            params["Delimiter"] = delimiter
        if max_keys is not None:
            params["MaxKeys"] = int(max_keys)
            pages = [
                self._call("list_objects_v2", self._client.list_objects_v2, **params)
            ]
        else:
            pages = self._paginate("list_objects_v2", **params)

        objects: list[ObjectSummary] = []
        common_prefixes: list[str] = []
        for page in pages:
            for item in page.get("Contents", []) or []:
                objects.append(
                    ObjectSummary(
                        key=item["Key"],
                        size_bytes=int(item.get("Size") or 0),
                        etag=item.get("ETag"),
                        last_modified=item.get("LastModified"),
                    )
                )
            for entry in page.get("CommonPrefixes", []) or []:
                common_prefixes.append(entry["Prefix"])
        return ObjectListing(objects=objects, common_prefixes=common_prefixes)

    def head_object(self, *, bucket: str, object_key: str) -> ObjectHead:
        """Get object metadata without downloading the content."""
        response = self._call(
            "head_object", self._client.head_object, Bucket=bucket, Key=object_key
        )
        size = response.get("ContentLength")
        return ObjectHead(
            size_bytes=int(size) if size is not None else 0,
            etag=response.get("ETag"),
            content_type=response.get("ContentType"),
            last_modified=response.get("LastModified"),
            expires=response.get("Expires"),
            metadata=dict(response.get("Metadata") or {}),
        )

    def get_object(self, *, bucket: str, object_key: str) -> bytes:
        def _read(**params: Any) -> bytes:
            response = self._client.get_object(**params)
            body = response["Body"]
            try:
                return body.read()
            finally:
                body.close()

        return self._call("get_object", _read, Bucket=bucket, Key=object_key)

    def open_object(self, *, bucket: str, object_key: str) -> Any:
        """Return the streaming body of an object; the caller closes it."""
        response = self._call(
            "get_object", self._client.get_object, Bucket=bucket, Key=object_key
        )
        return response["Body"]

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
        params: dict[str, Any] = {
            "Bucket": bucket,
            "Key": object_key,
            "Body": _as_bytes(body),
        }
        if content_type:
            params["ContentType"] = content_type
        if expires is not None:
            params["Expires"] = expires
        if metadata:
            params["Metadata"] = dict(metadata)
        if server_side_encryption:
            params["ServerSideEncryption"] = server_side_encryption

        response = self._call("put_object", self._client.put_object, **params)
        return response.get("ETag")

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        """Delete an object from storage."""
        self._call(
            "delete_object", self._client.delete_object, Bucket=bucket, Key=object_key
        )

    def delete_objects(self, *, bucket: str, object_keys: Sequence[str]) -> int:
        deleted = 0
        keys = list(object_keys)
        for offset in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[offset : offset + DELETE_BATCH_SIZE]
            response = self._call(
                "delete_objects",
                self._client.delete_objects,
                Bucket=bucket,
                Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
            )
            errors = response.get("Errors") or []
            if errors:
                first = errors[0]
                code = first.get("Code")
                error_type = _ERROR_TYPES_BY_CODE.get(code or "", StorageError)
                raise error_type(
                    f"Failed to delete {len(errors)} object(s), first "
                    f"{first.get('Key')!r}: {first.get('Message')}",
                    code=code,
                    operation="delete_objects",
                )
            deleted += len(batch)
        return deleted

    def copy_object(
        self,
        *,
        source_bucket: str,
        source_key: str,
        bucket: str,
        object_key: str,
    ) -> None:
        self._call(
            "copy_object",
            self._client.copy_object,
            Bucket=bucket,
            Key=object_key,
            CopySource={"Bucket": source_bucket, "Key": source_key},
        )

    # -- acl and tags ----------------------------------------------------

    def put_object_acl(self, *, bucket: str, object_key: str, acl: str) -> None:
        self._call(
            "put_object_acl",
            self._client.put_object_acl,
            Bucket=bucket,
            Key=object_key,
            ACL=acl,
        )

    def get_object_acl(self, *, bucket: str, object_key: str) -> ObjectAcl:
        response = self._call(
            "get_object_acl",
            self._client.get_object_acl,
            Bucket=bucket,
            Key=object_key,
        )
        owner = response.get("Owner") or {}
        grants = []
        for grant in response.get("Grants", []) or []:
            grantee = grant.get("Grantee") or {}
            grants.append(
                AclGrant(
                    grantee=grantee.get("ID")
                    or grantee.get("URI")
                    or grantee.get("EmailAddress")
                    or "",
                    grantee_type=grantee.get("Type", ""),
                    permission=grant.get("Permission", ""),
                )
            )
        return ObjectAcl(owner=owner.get("ID") or owner.get("DisplayName"), grants=grants)

    def put_object_tagging(
        self, *, bucket: str, object_key: str, tags: Mapping[str, str]
    ) -> None:
        self._call(
            "put_object_tagging",
            self._client.put_object_tagging,
            Bucket=bucket,
            Key=object_key,
            Tagging={
                "TagSet": [{"Key": str(k), "Value": str(v)} for k, v in tags.items()]
            },
        )

    def get_object_tagging(self, *, bucket: str, object_key: str) -> dict[str, str]:
        try:
            response = self._call(
                "get_object_tagging",
                self._client.get_object_tagging,
                expected_codes=("NoSuchTagSet",),
                Bucket=bucket,
                Key=object_key,
            )
        except NotFoundError as exc:
            if exc.code == "NoSuchTagSet":
                return {}
            raise
        return {tag["Key"]: tag["Value"] for tag in response.get("TagSet", []) or []}

    # -- multipart -------------------------------------------------------

    def init_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        content_type: str | None = None,
        metadata: Mapping[str, str] | None = None,
    ) -> MultipartUpload:
        """Initialize a multipart upload session."""
        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key}
        if content_type:
            params["ContentType"] = content_type
        if metadata:
            params["Metadata"] = dict(metadata)

        response = self._call(
            "create_multipart_upload", self._client.create_multipart_upload, **params
        )

        upload_id = response.get("UploadId")
        if not upload_id:
            raise StorageError(
                "S3 response missing UploadId", operation="create_multipart_upload"
            )

        return MultipartUpload(
            upload_id=str(upload_id),
            bucket=bucket,
            object_key=object_key,
        )

    def upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        body: ObjectBody,
    ) -> CompletedPart:
        response = self._call(
            "upload_part",
            self._client.upload_part,
            Bucket=bucket,
            Key=object_key,
            UploadId=upload_id,
            PartNumber=int(part_number),
            Body=_as_bytes(body),
        )
        etag = response.get("ETag")
        if not etag:
            raise StorageError("S3 response missing ETag", operation="upload_part")
        return CompletedPart(part_number=int(part_number), etag=str(etag))

    def list_parts(
        self, *, bucket: str, object_key: str, upload_id: str
    ) -> list[CompletedPart]:
        pages = self._paginate(
            "list_parts", Bucket=bucket, Key=object_key, UploadId=upload_id
        )
        parts = [
            CompletedPart(part_number=int(item["PartNumber"]), etag=str(item["ETag"]))
            for page in pages
            for item in page.get("Parts", []) or []
        ]
        return sorted(parts, key=lambda p: p.part_number)

    def list_multipart_uploads(
        self, *, bucket: str, prefix: str = ""
    ) -> list[MultipartUpload]:
        pages = self._paginate("list_multipart_uploads", Bucket=bucket, Prefix=prefix)
        return [
            MultipartUpload(
                upload_id=str(item["UploadId"]),
                bucket=bucket,
                object_key=item["Key"],
                initiated_at=item.get("Initiated"),
            )
            for page in pages
            for item in page.get("Uploads", []) or []
        ]

    def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> str | None:
        """Complete a multipart upload by combining the parts as given."""
        multipart_payload = {
            "Parts": [
                {"ETag": part.etag, "PartNumber": int(part.part_number)}
                for part in parts
            ]
        }

        response = self._call(
            "complete_multipart_upload",
            self._client.complete_multipart_upload,
            Bucket=bucket,
            Key=object_key,
            UploadId=upload_id,
            MultipartUpload=multipart_payload,
        )
        return response.get("ETag")

    def abort_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
    ) -> None:
        """Abort a multipart upload and clean up uploaded parts."""
        self._call(
            "abort_multipart_upload",
            self._client.abort_multipart_upload,
            Bucket=bucket,
            Key=object_key,
            UploadId=upload_id,
        )

    # -- bucket configuration --------------------------------------------

    def get_bucket_lifecycle(self, *, bucket: str) -> list[dict[str, Any]]:
        response = self._call(
            "get_bucket_lifecycle_configuration",
            self._client.get_bucket_lifecycle_configuration,
            expected_codes=("NoSuchLifecycleConfiguration",),
            Bucket=bucket,
        )
        return list(response.get("Rules", []) or [])

    def put_bucket_lifecycle(
        self, *, bucket: str, rules: Sequence[Mapping[str, Any]]
    ) -> None:
        self._call(
            "put_bucket_lifecycle_configuration",
            self._client.put_bucket_lifecycle_configuration,
            Bucket=bucket,
            LifecycleConfiguration={"Rules": [dict(rule) for rule in rules]},
        )

    def delete_bucket_lifecycle(self, *, bucket: str) -> None:
        self._call(
            "delete_bucket_lifecycle",
            self._client.delete_bucket_lifecycle,
            Bucket=bucket,
        )

    def put_bucket_versioning(self, *, bucket: str, enabled: bool) -> None:
        self._call(
            "put_bucket_versioning",
            self._client.put_bucket_versioning,
            Bucket=bucket,
            VersioningConfiguration={"Status": "Enabled" if enabled else "Suspended"},
        )

    # -- urls ------------------------------------------------------------

    def presign(
        self,
        *,
        method: str,
        bucket: str,
        object_key: str,
        expires_in: int,
        params: Mapping[str, Any] | None = None,
    ) -> str:
        """Generate a presigned URL for ``get_object`` or ``put_object``."""
        http_method = PRESIGNABLE_METHODS.get(method)
        if http_method is None:
            raise InvalidArgumentError(
                f"Cannot presign {method!r}; expected one of "
                f"{sorted(PRESIGNABLE_METHODS)}",
                operation="generate_presigned_url",
            )
        request_params: dict[str, Any] = {"Bucket": bucket, "Key": object_key}
        if params:
            request_params.update(params)

        url = self._call(
            "generate_presigned_url",
            self._client.generate_presigned_url,
            ClientMethod=method,
            Params=request_params,
            ExpiresIn=expires_in,
            HttpMethod=http_method,
        )

        if not url:
            raise StorageError(
                "Generated presigned URL is empty", operation="generate_presigned_url"
            )

        return str(url)

    def object_url(self, *, bucket: str, object_key: str) -> str:
        """Unsigned URL, usable only for publicly readable objects."""
        quoted_key = quote(object_key, safe="/~")
        custom_domain = self._settings.OSS_CUSTOM_DOMAIN
        if custom_domain:
            base = custom_domain.rstrip("/")
            if "://" not in base:
                base = f"https://{base}"
            if self._settings.OSS_PATH_STYLE_ACCESS:
                return f"{base}/{bucket}/{quoted_key}"
            return f"{base}/{quoted_key}"

        endpoint = urlsplit(self._settings.OSS_ENDPOINT)
        if self._settings.OSS_PATH_STYLE_ACCESS:
            return f"{endpoint.scheme}://{endpoint.netloc}/{bucket}/{quoted_key}"
        return f"{endpoint.scheme}://{bucket}.{endpoint.netloc}/{quoted_key}"
