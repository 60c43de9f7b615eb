"""Upload storage for player identity photos.

Two interchangeable backends implement :class:`UploadStore`: the local
filesystem (development and small deployments) and S3. Both return a
:class:`~spark_registration.models.StoredUpload` whose ``reference`` is the
backend key used later for deletion.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Protocol

from botocore.exceptions import BotoCoreError, ClientError

from .errors import UploadFailure
from .models import StoredUpload

log = logging.getLogger(__name__)

UPLOAD_NAMESPACE = "team-ids"


@dataclass(slots=True)
class UploadedFile:
    field_name: str
    filename: str
    content_type: str | None
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class UploadStore(Protocol):
    async def store(self, upload: UploadedFile, key: str) -> StoredUpload: ...

    async def delete(self, reference: str) -> bool: ...


def sanitize_filename(filename: str, *, fallback: str = "attachment") -> str:
    base = filename or fallback
    cleaned = re.sub(r"[^A-Za-z0-9._-]", "_", base)
    return cleaned[:120] or fallback


def _slug(value: str) -> str:
    slug = re.sub(r"[^A-Za-z0-9]+", "-", value.strip().lower()).strip("-")
    return slug[:60] or "unnamed"


def build_upload_key(
    team_name: str,
    team_id: str,
    player_name: str,
    player_index: int,
    filename: str,
) -> str:
    suffix = PurePosixPath(sanitize_filename(filename)).suffix.lower()
    return (
        f"{UPLOAD_NAMESPACE}/{_slug(team_name)}-{team_id}/"
        f"player-{player_index}-{_slug(player_name)}{suffix}"
    )


class LocalUploadStore:
    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    def _path_for(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if self._root.resolve() not in path.parents:
            raise ValueError(f"Upload key escapes upload root: {key}")
        return path

    def _write(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def store(self, upload: UploadedFile, key: str) -> StoredUpload:
        path = self._path_for(key)
        try:
            await asyncio.to_thread(self._write, path, upload.data)
        except OSError as exc:
            log.error("Failed to write upload %s: %s", key, exc)
            raise UploadFailure() from exc
        return StoredUpload(reference=key, url=str(path), original_name=upload.filename)

    async def delete(self, reference: str) -> bool:
        try:
            path = self._path_for(reference)
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except (OSError, ValueError) as exc:
            log.warning("Failed to delete upload %s: %s", reference, exc)
            return False
        return True


class S3UploadStore:
    def __init__(self, s3_client, bucket: str, prefix: str = "") -> None:
        self._s3 = s3_client
        self._bucket = bucket
        self._prefix = prefix.strip("/")

    def _object_key(self, key: str) -> str:
        return f"{self._prefix}/{key}" if self._prefix else key

    async def store(self, upload: UploadedFile, key: str) -> StoredUpload:
        object_key = self._object_key(key)
        try:
            await asyncio.to_thread(
                self._s3.put_object,
                Bucket=self._bucket,
                Key=object_key,
                Body=upload.data,
                ContentType=upload.content_type or "application/octet-stream",
                Metadata={"original_name": sanitize_filename(upload.filename)},
            )
        except (BotoCoreError, ClientError) as exc:
            log.error("Failed to upload %s to bucket %s: %s", object_key, self._bucket, exc)
            raise UploadFailure() from exc
        return StoredUpload(
            reference=object_key,
            url=f"s3://{self._bucket}/{object_key}",
            original_name=upload.filename,
        )

    async def delete(self, reference: str) -> bool:
        try:
            await asyncio.to_thread(
                self._s3.delete_object, Bucket=self._bucket, Key=reference
            )
        except (BotoCoreError, ClientError) as exc:
            log.warning(
                "Failed to delete upload %s from bucket %s: %s",
                reference,
                self._bucket,
                exc,
            )
            return False
        return True


async def rollback_uploads(store: UploadStore, uploads: Iterable[StoredUpload]) -> int:
    """Delete every stored upload; return how many deletions failed."""
    references = [upload.reference for upload in uploads]
    if not references:
        return 0
    results = await asyncio.gather(
        *(store.delete(reference) for reference in references),
        return_exceptions=True,
    )
    failures = 0
    for reference, result in zip(references, results):
        if isinstance(result, BaseException):
            log.error("Rollback delete raised for %s: %s", reference, result)
            failures += 1
        elif result is False:
            failures += 1
    if failures:
        log.warning("Rollback left %d of %d uploads behind", failures, len(references))
    return failures


__all__ = [
    "UPLOAD_NAMESPACE",
    "UploadedFile",
    "UploadStore",
    "LocalUploadStore",
    "S3UploadStore",
    "sanitize_filename",
    "build_upload_key",
    "rollback_uploads",
]
