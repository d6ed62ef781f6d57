"""
Storage abstraction for Cloudflare R2 (S3-compatible) and in-memory testing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

import boto3
from botocore.config import Config


class StorageClient(Protocol):
    """Defines the operations the diagnostics need from object storage."""

    def list_keys(self, max_keys: int = 5) -> list[tuple[str, int]]:
        ...

    def public_url(self, key: str) -> Optional[str]:
        ...


def join_public_url(public_base: Optional[str], key: str) -> Optional[str]:
    if not public_base:
        return None
    return f"{public_base.rstrip('/')}/{key.lstrip('/')}"


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    public_base_url: Optional[str] = "https://pub-test.r2.dev"
    stored_objects: dict = None

    def __post_init__(self):
        if self.stored_objects is None:
            self.stored_objects = {}

    def list_keys(self, max_keys: int = 5) -> list[tuple[str, int]]:
        keys = sorted(self.stored_objects)[:max_keys]
        return [(key, len(self.stored_objects[key])) for key in keys]

    def public_url(self, key: str) -> Optional[str]:
        return join_public_url(self.public_base_url, key)


@dataclass
class R2StorageClient:
    """
    S3-compatible storage client for Cloudflare R2.
    """

    bucket: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: Optional[str] = None

    def __post_init__(self):
        # R2 ignores regions but botocore requires one; "auto" is what R2 documents.
        config = Config(signature_version="s3v4")
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name="auto",
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def list_keys(self, max_keys: int = 5) -> list[tuple[str, int]]:
        response = self._client.list_objects_v2(Bucket=self.bucket, MaxKeys=max_keys)
        return [(obj["Key"], obj.get("Size", 0)) for obj in response.get("Contents", [])]

    def public_url(self, key: str) -> Optional[str]:
        return join_public_url(self.public_base_url, key)
