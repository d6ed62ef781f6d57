"""
Storage configuration diagnostics.

Reports what object-storage settings the service is running with, flags
placeholder or missing values, and optionally probes the bucket.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Optional

from botocore.exceptions import BotoCoreError, ClientError

from media_proxy.config import Settings
from media_proxy.storage import StorageClient, join_public_url

logger = logging.getLogger(__name__)

FindingLevel = Literal["ok", "warning", "error"]

SAMPLE_KEY = "avatars/example.jpg"


@dataclass(frozen=True)
class StorageFinding:
    level: FindingLevel
    message: str


def is_placeholder_url(public_url: Optional[str], placeholder: str) -> bool:
    return bool(public_url) and bool(placeholder) and placeholder in public_url


def _mask(secret: Optional[str]) -> str:
    if not secret:
        return "NOT SET"
    return f"set ({secret[:8]}...)"


def diagnose_storage(settings: Settings) -> list[StorageFinding]:
    findings: list[StorageFinding] = []
    storage_type = (settings.storage_type or "").lower()

    if storage_type == "local":
        findings.append(
            StorageFinding(
                "warning",
                "STORAGE_TYPE is 'local': uploads are saved under ./uploads and "
                "served from localhost URLs",
            )
        )
        return findings
    if storage_type != "s3":
        findings.append(
            StorageFinding(
                "error",
                f"STORAGE_TYPE is {settings.storage_type!r}; expected 's3' for R2 storage",
            )
        )
        return findings

    findings.append(StorageFinding("ok", "S3/R2 storage is enabled"))

    if settings.r2_access_key_id and settings.r2_secret_access_key:
        findings.append(
            StorageFinding(
                "ok", f"R2 credentials are {_mask(settings.r2_access_key_id)}"
            )
        )
    else:
        findings.append(
            StorageFinding("error", "Missing R2 credentials; uploads will fail")
        )

    if settings.r2_bucket_name:
        findings.append(StorageFinding("ok", f"Bucket name: {settings.r2_bucket_name}"))
    else:
        findings.append(
            StorageFinding("error", "Bucket name not set; uploads will fail")
        )

    if settings.r2_endpoint:
        findings.append(StorageFinding("ok", f"Endpoint: {settings.r2_endpoint}"))
    else:
        findings.append(
            StorageFinding("warning", "Endpoint not set; defaulting to AWS S3")
        )

    public_url = settings.r2_public_url
    if not public_url:
        findings.append(
            StorageFinding(
                "error", "R2_PUBLIC_URL not set; public image URLs cannot be built"
            )
        )
    elif is_placeholder_url(public_url, settings.public_url_placeholder):
        findings.append(
            StorageFinding(
                "error",
                "R2_PUBLIC_URL is a placeholder; copy the bucket's public "
                "r2.dev URL from the Cloudflare dashboard",
            )
        )
    else:
        findings.append(StorageFinding("ok", f"Public URL: {public_url}"))
        findings.append(
            StorageFinding(
                "ok",
                f"New uploads resolve to {join_public_url(public_url, SAMPLE_KEY)}",
            )
        )
    return findings


def probe_bucket(storage: StorageClient, max_keys: int = 5) -> list[StorageFinding]:
    """List a few keys to confirm the bucket is reachable with the credentials."""
    try:
        keys = storage.list_keys(max_keys=max_keys)
    except (BotoCoreError, ClientError) as exc:
        logger.warning("Bucket probe failed: %s", exc)
        return [StorageFinding("error", f"Could not list bucket: {exc}")]

    findings = [StorageFinding("ok", f"Bucket reachable; listed {len(keys)} object(s)")]
    for key, size in keys:
        findings.append(
            StorageFinding("ok", f"{key} ({size / 1024:.2f} KB) -> {storage.public_url(key)}")
        )
    return findings


def has_errors(findings: list[StorageFinding]) -> bool:
    return any(finding.level == "error" for finding in findings)
