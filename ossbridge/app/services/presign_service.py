"""Presigned and public URLs for objects in logical buckets."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

from ossbridge.app.services.base import BaseService
from ossbridge.infra.storage.client import InvalidArgumentError


def _expires_seconds(expires_in: int | timedelta) -> int:
    if isinstance(expires_in, timedelta):
        seconds = int(expires_in.total_seconds())
    else:
        seconds = int(expires_in)
    if seconds <= 0:
        raise InvalidArgumentError(f"expires_in must be positive, got {expires_in}")
    return seconds


class PresignService(BaseService):
    """Issues time-bounded GET/PUT URLs. Holds no state of its own.

    The TTL is passed to the signer unchanged. The backend, not this class,
    rejects URLs whose TTL exceeds its maximum (7 days for SigV4).
    """

    def _ttl(self, expires_in: int | timedelta | None) -> int:
        if expires_in is None:
            return int(self._settings.OSS_PRESIGN_EXPIRES_SECONDS)
        return _expires_seconds(expires_in)

    def presign_get(
        self,
        bucket: str,
        key: str,
        expires_in: int | timedelta | None = None,
        *,
        filename: str | None = None,
    ) -> str:
        """Presigned download URL, optionally forcing a download filename."""
        target = self._resolve_object(bucket, key)
        params: dict[str, Any] = {}
        if filename:
            # Escape quotes in filename for Content-Disposition header
            safe_filename = filename.replace('"', '\\"')
            params["ResponseContentDisposition"] = (
                f'attachment; filename="{safe_filename}"'
            )
        return self._storage.presign(
            method="get_object",
            bucket=target.bucket,
            object_key=target.key,
            expires_in=self._ttl(expires_in),
            params=params,
        )

    def presign_put(
        self,
        bucket: str,
        key: str,
        expires_in: int | timedelta | None = None,
        *,
        content_type: str | None = None,
    ) -> str:
        """Presigned upload URL.

        The logical bucket is not created here; in folder mode the object
        itself makes the folder visible once uploaded.
        """
        target = self._resolve_object(bucket, key)
        params: dict[str, Any] = {}
        if content_type:
            params["ContentType"] = content_type
        return self._storage.presign(
            method="put_object",
            bucket=target.bucket,
            object_key=target.key,
            expires_in=self._ttl(expires_in),
            params=params,
        )

    def object_url(self, bucket: str, key: str) -> str:
        """Unsigned URL; only works for publicly readable objects."""
        target = self._resolve_object(bucket, key)
        return self._storage.object_url(bucket=target.bucket, object_key=target.key)
