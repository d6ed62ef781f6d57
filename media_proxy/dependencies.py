"""
Dependency wiring for the FastAPI app and the maintenance scripts.
"""

from __future__ import annotations

import httpx
from fastapi import Depends

from media_proxy.config import Settings, get_settings
from media_proxy.db import DbClient, InMemoryDbClient, PostgresDbClient
from media_proxy.resolver import ProxyResolver
from media_proxy.storage import InMemoryStorageClient, R2StorageClient, StorageClient

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_http_client: httpx.AsyncClient | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so in-memory state persists across calls.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.r2_bucket_name:
        _storage_client = InMemoryStorageClient(
            public_base_url=settings.r2_public_url
        )
    else:
        _storage_client = R2StorageClient(
            bucket=settings.r2_bucket_name,
            endpoint=settings.r2_endpoint or "",
            access_key_id=settings.r2_access_key_id or "",
            secret_access_key=settings.r2_secret_access_key or "",
            public_base_url=settings.r2_public_url,
        )
    return _storage_client


def get_http_client() -> httpx.AsyncClient:
    """
    Return the shared client used for upstream image fetches.
    """
    global _http_client
    if _http_client is None or _http_client.is_closed:
        # Redirects are not followed; every fetched host must pass the allow-list.
        _http_client = httpx.AsyncClient()
    return _http_client


async def close_http_client() -> None:
    global _http_client
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None


def get_resolver(settings: Settings = Depends(get_settings)) -> ProxyResolver:
    return ProxyResolver.from_settings(settings)
