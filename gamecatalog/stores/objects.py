"""Object store gateway (S3).

Uploads/downloads/deletes binary payloads by key and issues public and
time-limited signed URLs. Signed URLs are cached in Redis when available.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
import time
from typing import Any
from uuid import uuid4

from botocore.exceptions import ClientError

from gamecatalog.settings import Settings
from gamecatalog.stores.redis import RedisStore

logger = logging.getLogger("uvicorn.error")

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


@dataclass(frozen=True)
class UploadResult:
    key: str
    location: str


@dataclass(frozen=True)
class ObjectInfo:
    """Object headers: content type plus user metadata (lower-cased keys)."""

    key: str
    content_type: str | None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class StoredObject:
    key: str
    body: bytes
    content_type: str | None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class UploadFile:
    """A file handed over by an upload handler."""

    file_name: str
    content_type: str
    body: bytes


def build_object_key(folder: str, file_name: str) -> str:
    """Build a unique key: <folder>/<epoch millis>-<uuid4>.<ext>."""
    ext = file_name.rsplit(".", 1)[-1] if "." in file_name else "bin"
    return f"{folder.strip('/')}/{int(time.time() * 1000)}-{uuid4()}.{ext}"


class ObjectStore:
    """S3-backed object store for one bucket."""

    def __init__(self, s3: Any, settings: Settings, cache: RedisStore | None = None):
        self._s3 = s3
        self._cache = cache
        self.bucket = settings.s3_bucket
        self.region = settings.aws_region
        self.public_base_url = settings.s3_public_base_url.rstrip("/")
        self.default_signed_ttl = settings.signed_url_ttl_seconds

    async def upload(
        self,
        key: str,
        body: bytes,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> UploadResult:
        params: dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": body,
            "ContentType": content_type,
        }
        if metadata:
            params["Metadata"] = metadata
        await self._s3.put_object(**params)
        return UploadResult(key=key, location=f"s3://{self.bucket}/{key}")

    async def upload_many(self, files: list[UploadFile], folder: str) -> list[str]:
        """Upload several files concurrently under generated keys.

        Returns:
            Keys in the same order as `files`.
        """

        async def _one(f: UploadFile) -> str:
            key = build_object_key(folder, f.file_name)
            await self.upload(key, f.body, f.content_type)
            return key

        return list(await asyncio.gather(*(_one(f) for f in files)))

    async def head(self, key: str) -> ObjectInfo | None:
        """Fetch object headers, or None if the object does not exist."""
        try:
            result = await self._s3.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if str(e.response.get("Error", {}).get("Code")) in _MISSING_CODES:
                return None
            raise
        return ObjectInfo(
            key=key,
            content_type=result.get("ContentType"),
            metadata=dict(result.get("Metadata") or {}),
        )

    async def download(self, key: str) -> StoredObject:
        result = await self._s3.get_object(Bucket=self.bucket, Key=key)
        async with result["Body"] as stream:
            body = await stream.read()
        return StoredObject(
            key=key,
            body=body,
            content_type=result.get("ContentType"),
            metadata=dict(result.get("Metadata") or {}),
        )

    async def delete(self, key: str) -> None:
        # S3 DeleteObject succeeds for keys that do not exist.
        await self._s3.delete_object(Bucket=self.bucket, Key=key)

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    async def signed_url(self, key: str, expires_in: int | None = None) -> str:
        """Time-limited GET URL for a private object."""
        expires_in = expires_in or self.default_signed_ttl

        if self._cache is not None:
            try:
                cached = await self._cache.get_signed_url_cache(key, expires_in)
                if cached:
                    return cached
            except Exception as e:
                logger.warning(f"Redis cache read failed: {e}")

        url = await self._s3.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=expires_in,
        )

        if self._cache is not None:
            try:
                await self._cache.set_signed_url_cache(key, expires_in, url)
            except Exception as e:
                logger.warning(f"Redis cache write failed: {e}")
        return url
