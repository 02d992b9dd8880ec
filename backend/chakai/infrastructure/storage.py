from __future__ import annotations

import logging
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool

from ..domain.errors import InvalidEventError, StorageError
from ..domain.repositories import ImageStorage

logger = logging.getLogger(__name__)

IMAGE_PREFIX = "event/"


class S3ImageStorage(ImageStorage):
    """Event images live under ``event/<filename>``; uploading the same name overwrites."""

    def __init__(self, *, bucket: str, region: str, client: Any | None = None) -> None:
        self.bucket = bucket
        self.region = region
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client("s3", region_name=self.region)
        return self._client

    def key_for(self, filename: str) -> str:
        # Keep only the final path component so callers cannot escape the prefix.
        name = filename.replace("\\", "/").rsplit("/", 1)[-1].strip()
        if not name or name in {".", ".."}:
            raise InvalidEventError("invalid image filename")
        return IMAGE_PREFIX + name

    def url_for(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    async def upload(self, filename: str, content: bytes, content_type: str | None) -> str:
        key = self.key_for(filename)
        extra: dict[str, Any] = {}
        if content_type:
            extra["ContentType"] = content_type
        try:
            await run_in_threadpool(
                self.client.put_object, Bucket=self.bucket, Key=key, Body=content, **extra
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("image upload failed for %s: %s", key, exc)
            raise StorageError("failed to upload image") from exc
        return self.url_for(key)
