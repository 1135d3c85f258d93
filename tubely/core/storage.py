from __future__ import annotations

import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, BinaryIO

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import Settings


class ObjectStoreError(Exception):
    """Raised when the remote object store rejects or cannot complete a request."""


class ObjectStore(ABC):
    """Durable storage for finished video artefacts.

    ``put`` is a single synchronous transfer; writing to an existing key
    replaces the object. ``presign`` is independent of ``put`` and succeeds
    for keys that do not exist yet.
    """

    @abstractmethod
    def put(self, bucket: str, key: str, content: BinaryIO, content_type: str) -> None: ...

    @abstractmethod
    def presign(self, bucket: str, key: str, ttl_s: int) -> str: ...


class S3ObjectStore(ObjectStore):
    def __init__(self, client: Any):
        self.client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3ObjectStore":
        client = boto3.client(
            "s3",
            region_name=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
        )
        return cls(client)

    def put(self, bucket: str, key: str, content: BinaryIO, content_type: str) -> None:
        try:
            self.client.put_object(Bucket=bucket, Key=key, Body=content, ContentType=content_type)
        except (BotoCoreError, ClientError) as exc:
            raise ObjectStoreError(f"put s3://{bucket}/{key} failed: {exc}") from exc

    def presign(self, bucket: str, key: str, ttl_s: int) -> str:
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=ttl_s,
            )
        except (BotoCoreError, ClientError) as exc:
            raise ObjectStoreError(f"failed to get presigned url: {exc}") from exc


class LocalObjectStore(ObjectStore):
    """Filesystem-backed object store suitable for development."""

    def __init__(self, base_path: Path):
        self.base_path = base_path
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _resolve(self, bucket: str, key: str) -> Path:
        root = (self.base_path / bucket).resolve()
        target = (root / key).resolve()
        if root not in target.parents:
            raise ObjectStoreError(f"key escapes bucket: {key}")
        return target

    def put(self, bucket: str, key: str, content: BinaryIO, content_type: str) -> None:
        target = self._resolve(bucket, key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("wb") as handle:
                shutil.copyfileobj(content, handle)
        except OSError as exc:
            raise ObjectStoreError(f"put {target} failed: {exc}") from exc

    def presign(self, bucket: str, key: str, ttl_s: int) -> str:
        return self._resolve(bucket, key).as_uri()


def get_object_store(settings: Settings) -> ObjectStore:
    if settings.object_store_backend == "s3":
        return S3ObjectStore.from_settings(settings)
    if settings.object_store_backend == "local":
        return LocalObjectStore(base_path=Path(settings.local_object_store_path))
    raise ValueError(f"Unsupported object store backend: {settings.object_store_backend}")


__all__ = [
    "ObjectStore",
    "ObjectStoreError",
    "S3ObjectStore",
    "LocalObjectStore",
    "get_object_store",
]
