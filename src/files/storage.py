"""Binary object storage for revision attachments."""
from functools import lru_cache
from typing import Dict, Optional, Protocol, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from src.config import settings


class StorageError(Exception):
    pass


class ObjectStore(Protocol):
    """Path-addressed binary store issuing time-limited signed URLs."""

    def put_object(self, key: str, content: bytes, content_type: str) -> None:
        ...

    def delete_object(self, key: str) -> None:
        ...

    def generate_signed_url(self, key: str, expires_in: int) -> str:
        ...


class S3ObjectStore:
    """S3 (or S3-compatible) bucket."""

    def __init__(
        self,
        bucket_name: Optional[str] = None,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        client=None,
    ):
        self.bucket_name = bucket_name or settings.REVISION_FILES_BUCKET
        if not self.bucket_name:
            raise ValueError("REVISION_FILES_BUCKET must be set for S3 storage")
        self._client = client or boto3.client(
            "s3",
            region_name=region or settings.AWS_REGION,
            endpoint_url=endpoint_url or settings.S3_ENDPOINT_URL,
        )

    def put_object(self, key: str, content: bytes, content_type: str) -> None:
        try:
            self._client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=content,
                ContentType=content_type,
                CacheControl="max-age=3600",
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"S3 upload failed for {key}: {e}") from e

    def delete_object(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket_name, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"S3 delete failed for {key}: {e}") from e

    def generate_signed_url(self, key: str, expires_in: int) -> str:
        try:
            return self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket_name, "Key": key},
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Signed URL generation failed for {key}: {e}") from e


class InMemoryObjectStore:
    """Dict-backed store for tests and local runs."""

    def __init__(self, bucket_name: str = "test-revision-files"):
        self.bucket_name = bucket_name
        self.objects: Dict[str, Tuple[bytes, str]] = {}

    def put_object(self, key: str, content: bytes, content_type: str) -> None:
        if key in self.objects:
            raise StorageError(f"Object already exists: {key}")
        self.objects[key] = (content, content_type)

    def delete_object(self, key: str) -> None:
        self.objects.pop(key, None)

    def generate_signed_url(self, key: str, expires_in: int) -> str:
        return f"memory://{self.bucket_name}/{key}?expires_in={expires_in}"


@lru_cache
def _default_store() -> ObjectStore:
    if settings.STORAGE_BACKEND == "memory":
        return InMemoryObjectStore()
    return S3ObjectStore()


def get_object_store() -> ObjectStore:
    """FastAPI dependency for the configured object store."""
    return _default_store()
