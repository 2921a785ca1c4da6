"""Multipart upload coordination.

A session moves ``INITIATED -> UPLOADING -> COMPLETED | ABORTED``. The
backend is the source of truth for uploaded parts; the session keeps the
client-side list so a caller can complete without another round trip, and
:meth:`MultipartUploadService.resume` rebuilds it after a crash.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Mapping, Sequence

from ossbridge.app.services.base import BaseService
from ossbridge.infra.storage.addressing import StorageTarget
from ossbridge.infra.storage.client import (
    CompletedPart,
    ConflictError,
    InvalidArgumentError,
    MultipartUpload,
    ObjectBody,
    iter_chunks,
)

logger = logging.getLogger(__name__)

# Maximum part number allowed by S3
MAX_PART_NUMBER = 10000
# S3 minimum size for every part except the last
MIN_PART_SIZE_BYTES = 5 * 1024 * 1024


class UploadStatus(str, enum.Enum):
    INITIATED = "INITIATED"
    UPLOADING = "UPLOADING"
    COMPLETED = "COMPLETED"
    ABORTED = "ABORTED"


TERMINAL_STATUSES = frozenset({UploadStatus.COMPLETED, UploadStatus.ABORTED})


@dataclass
class MultipartUploadSession:
    """Client-side view of one backend multipart upload."""

    upload_id: str
    bucket: str
    key: str
    target: StorageTarget
    status: UploadStatus = UploadStatus.INITIATED
    _parts: dict[int, CompletedPart] = field(default_factory=dict, repr=False)
    etag: str | None = None

    @property
    def parts(self) -> list[CompletedPart]:
        """Uploaded parts in ascending part-number order."""
        return [self._parts[number] for number in sorted(self._parts)]

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def _record(self, part: CompletedPart) -> None:
        # Re-uploading a part number supersedes its previous ETag on the backend.
        self._parts[part.part_number] = part
        self.status = UploadStatus.UPLOADING


def _check_part_number(part_number: int) -> None:
    if not 1 <= int(part_number) <= MAX_PART_NUMBER:
        raise InvalidArgumentError(
            f"part_number must be between 1 and {MAX_PART_NUMBER}, got {part_number}"
        )


class MultipartUploadService(BaseService):
    """Drives multipart uploads against logical bucket/key addresses."""

    def initiate(
        self,
        bucket: str,
        key: str,
        *,
        content_type: str | None = None,
        metadata: Mapping[str, str] | None = None,
    ) -> MultipartUploadSession:
        """Start an upload, creating the logical bucket if it is missing."""
        target = self._resolve_object(bucket, key)
        self._ensure_container(bucket)
        upload = self._storage.init_multipart_upload(
            bucket=target.bucket,
            object_key=target.key,
            content_type=content_type,
            metadata=metadata,
        )
        logger.info(
            "multipart_initiated bucket=%s key=%s upload_id=%s",
            bucket,
            key,
            upload.upload_id,
        )
        return MultipartUploadSession(
            upload_id=upload.upload_id, bucket=bucket, key=key, target=target
        )

    def resume(self, bucket: str, key: str, upload_id: str) -> MultipartUploadSession:
        """Rebuild a session from the parts the backend already holds.

        Raises:
            NotFoundError: If the upload was completed, aborted or never existed.
        """
        target = self._addressing.resolve(bucket, key)
        session = MultipartUploadSession(
            upload_id=upload_id, bucket=bucket, key=key, target=target
        )
        for part in self._storage.list_parts(
            bucket=target.bucket, object_key=target.key, upload_id=upload_id
        ):
            session._record(part)
        return session

    def upload_part(
        self, session: MultipartUploadSession, part_number: int, data: ObjectBody
    ) -> CompletedPart:
        """Upload one part.

        The backend enforces the minimum part size when the upload is
        completed; its error is propagated as-is.
        """
        self._check_active(session)
        _check_part_number(part_number)
        part = self._storage.upload_part(
            bucket=session.target.bucket,
            object_key=session.target.key,
            upload_id=session.upload_id,
            part_number=int(part_number),
            body=data,
        )
        session._record(part)
        return part

    def list_parts(self, session: MultipartUploadSession) -> list[CompletedPart]:
        """Parts held by the backend, ascending. Does not touch the session."""
        return self._storage.list_parts(
            bucket=session.target.bucket,
            object_key=session.target.key,
            upload_id=session.upload_id,
        )

    def list_uploads(self, bucket: str) -> list[MultipartUpload]:
        """In-progress uploads inside a logical bucket, with logical keys."""
        container = self._addressing.container(bucket)
        uploads = self._storage.list_multipart_uploads(
            bucket=container.bucket, prefix=container.key
        )
        return [
            MultipartUpload(
                upload_id=upload.upload_id,
                bucket=bucket,
                object_key=self._addressing.to_logical_key(bucket, upload.object_key),
                initiated_at=upload.initiated_at,
            )
            for upload in uploads
        ]

    def complete(
        self,
        session: MultipartUploadSession,
        parts: Sequence[CompletedPart] | None = None,
    ) -> str | None:
        """Assemble the object from ``parts`` (default: the tracked parts).

        Raises:
            InvalidArgumentError: If the list is empty or not strictly
                ascending by part number.
            ConflictError: If a tracked part is missing from ``parts`` or
                the backend reports a stale ETag.
        """
        self._check_active(session)
        chosen = list(parts) if parts is not None else session.parts
        if not chosen:
            raise InvalidArgumentError("At least one part is required to complete")
        for previous, current in zip(chosen, chosen[1:]):
            if current.part_number <= previous.part_number:
                raise InvalidArgumentError(
                    "Parts must be sorted ascending by part number without duplicates",
                    code="InvalidPartOrder",
                )
        for part in chosen:
            _check_part_number(part.part_number)

        supplied = {part.part_number for part in chosen}
        missing = sorted(n for n in session._parts if n not in supplied)
        if missing:
            raise ConflictError(
                f"Part list omits uploaded parts {missing}", code="InvalidPart"
            )

        etag = self._storage.complete_multipart_upload(
            bucket=session.target.bucket,
            object_key=session.target.key,
            upload_id=session.upload_id,
            parts=chosen,
        )
        session.status = UploadStatus.COMPLETED
        session.etag = etag
        logger.info(
            "multipart_completed bucket=%s key=%s upload_id=%s parts=%s",
            session.bucket,
            session.key,
            session.upload_id,
            len(chosen),
        )
        return etag

    def abort(self, session: MultipartUploadSession) -> None:
        """Abort the upload and release the stored parts."""
        self._check_active(session)
        self._storage.abort_multipart_upload(
            bucket=session.target.bucket,
            object_key=session.target.key,
            upload_id=session.upload_id,
        )
        session.status = UploadStatus.ABORTED
        logger.info(
            "multipart_aborted bucket=%s key=%s upload_id=%s",
            session.bucket,
            session.key,
            session.upload_id,
        )

    def upload(
        self,
        bucket: str,
        key: str,
        data: bytes,
        *,
        part_size: int = MIN_PART_SIZE_BYTES,
        content_type: str | None = None,
    ) -> str | None:
        """Upload ``data`` in ``part_size`` chunks; abort on any failure."""
        session = self.initiate(bucket, key, content_type=content_type)
        try:
            for number, chunk in enumerate(iter_chunks(data, part_size), start=1):
                self.upload_part(session, number, chunk)
            if not session.parts:
                self.upload_part(session, 1, b"")
            return self.complete(session)
        except Exception:
            if not session.is_terminal:
                self.abort(session)
            raise

    @staticmethod
    def _check_active(session: MultipartUploadSession) -> None:
        if session.is_terminal:
            raise ConflictError(
                f"Upload {session.upload_id} is already {session.status.value.lower()}",
                code="NoSuchUpload",
            )
