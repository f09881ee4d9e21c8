from __future__ import annotations

import logging
import re
import time
from uuid import uuid4

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool

from recuerdos.core.config import Settings
from recuerdos.core.errors import StorageUnavailable

logger = logging.getLogger(__name__)

KEY_PREFIX = "recuerdos"
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def build_storage_key(user_id: int, filename: str | None) -> str:
    """Return a fresh, collision-resistant key for a user's photo."""
    safe_name = _UNSAFE_FILENAME_CHARS.sub("_", (filename or "").rsplit("/", 1)[-1]).strip("._")
    if not safe_name:
        safe_name = "foto"
    millis = int(time.time() * 1000)
    return f"{KEY_PREFIX}/{user_id}/{millis}-{uuid4().hex[:8]}-{safe_name[:100]}"


def _error_code(exc: Exception) -> str:
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code", "UnknownError")
    return exc.__class__.__name__


class ObjectStorage:
    """S3-compatible bucket holding the memory photos.

    boto3 is blocking, so the public coroutine methods push each call onto the
    thread pool.
    """

    def __init__(self, client, bucket_name: str, public_base_url: str) -> None:
        self.client = client
        self.bucket_name = bucket_name
        self.public_base_url = public_base_url.rstrip("/")

    @classmethod
    def from_settings(cls, settings: Settings) -> "ObjectStorage":
        if not settings.storage_configured:
            raise ValueError(
                "STORAGE_ENDPOINT_URL, STORAGE_BUCKET_NAME, STORAGE_ACCESS_KEY_ID and "
                "STORAGE_SECRET_ACCESS_KEY are required."
            )
        client = boto3.client(
            "s3",
            endpoint_url=settings.STORAGE_ENDPOINT_URL,
            aws_access_key_id=settings.STORAGE_ACCESS_KEY_ID,
            aws_secret_access_key=settings.STORAGE_SECRET_ACCESS_KEY,
            region_name=settings.STORAGE_REGION,
            config=Config(
                signature_version="s3v4",
                connect_timeout=settings.STORAGE_TIMEOUT_SECONDS,
                read_timeout=settings.STORAGE_TIMEOUT_SECONDS,
                # an upload must not be repeated behind our back
                retries={"total_max_attempts": 1, "mode": "standard"},
            ),
        )
        public_base_url = settings.STORAGE_PUBLIC_BASE_URL or (
            f"{settings.STORAGE_ENDPOINT_URL.rstrip('/')}/{settings.STORAGE_BUCKET_NAME}"
        )
        return cls(client, settings.STORAGE_BUCKET_NAME, public_base_url)

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    def _put(self, key: str, data: bytes, content_type: str) -> None:
        self.client.put_object(
            Bucket=self.bucket_name,
            Key=key,
            Body=data,
            ContentType=content_type,
        )

    def _delete(self, key: str) -> None:
        self.client.delete_object(Bucket=self.bucket_name, Key=key)

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        try:
            await run_in_threadpool(self._put, key, data, content_type)
        except (BotoCoreError, ClientError) as exc:
            logger.warning("storage event=upload_failed key=%s code=%s", key, _error_code(exc))
            raise StorageUnavailable("Error al subir imagen") from exc
        return self.public_url(key)

    async def delete(self, key: str) -> None:
        try:
            await run_in_threadpool(self._delete, key)
        except (BotoCoreError, ClientError) as exc:
            logger.warning("storage event=delete_failed key=%s code=%s", key, _error_code(exc))
            raise StorageUnavailable("Error al eliminar imagen") from exc


async def discard_blob(storage: ObjectStorage | None, key: str, reason: str) -> None:
    """Remove a blob nothing references any more; failures are only logged."""
    if storage is None:
        logger.warning("storage event=orphaned_blob key=%s reason=%s detail=storage_not_configured", key, reason)
        return
    try:
        await storage.delete(key)
    except StorageUnavailable:
        logger.warning("storage event=orphaned_blob key=%s reason=%s", key, reason)
