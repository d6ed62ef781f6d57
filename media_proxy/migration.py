"""
Rewrite persisted legacy localhost upload URLs to object-storage URLs.

``http://localhost:3003/uploads/avatars/a1.jpg`` becomes
``<public base>/avatars/a1.jpg``. Only the host and ``/uploads/`` prefix
are replaced, so running the migration again finds nothing left to update.

A persistence error on one record is logged and counted, and the pass moves
on to the next record. Configuration errors abort before any record is read.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

from media_proxy.db import IMAGE_COLLECTIONS, DbClient, ImageCollection
from media_proxy.diagnostics import is_placeholder_url
from media_proxy.errors import ConfigurationError

logger = logging.getLogger(__name__)

LEGACY_MARKER = "localhost"
UPLOAD_PATH_PATTERN = re.compile(r"/uploads/(.+)$")


@dataclass
class PassResult:
    collection: str
    found: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0


@dataclass
class MigrationReport:
    passes: list[PassResult] = field(default_factory=list)
    dry_run: bool = False

    @property
    def total_updated(self) -> int:
        return sum(p.updated for p in self.passes)

    @property
    def total_failed(self) -> int:
        return sum(p.failed for p in self.passes)

    def summary_lines(self) -> list[str]:
        verb = "would update" if self.dry_run else "updated"
        return [
            f"{p.collection}: {p.found} found, {p.updated} {verb}, "
            f"{p.skipped} skipped, {p.failed} failed"
            for p in self.passes
        ]


def validate_public_base(public_url: Optional[str], placeholder: str) -> str:
    if not public_url or not public_url.strip():
        raise ConfigurationError("R2_PUBLIC_URL is not configured")
    if is_placeholder_url(public_url, placeholder):
        raise ConfigurationError(
            f"R2_PUBLIC_URL still contains the placeholder {placeholder!r}"
        )
    return public_url.strip().rstrip("/")


def rewrite_legacy_url(value: str, public_base: str) -> Optional[str]:
    """Return the object-storage URL for ``value``, or None if it has no upload path."""
    match = UPLOAD_PATH_PATTERN.search(value)
    if not match:
        return None
    return f"{public_base}/{match.group(1)}"


def migrate_collection(
    db: DbClient,
    collection: ImageCollection,
    public_base: str,
    *,
    dry_run: bool = False,
) -> PassResult:
    result = PassResult(collection=collection.name)
    records = db.find_image_refs(collection, LEGACY_MARKER)
    result.found = len(records)
    logger.info("Found %d %s with localhost URLs", result.found, collection.name)

    for record in records:
        new_url = rewrite_legacy_url(record.value or "", public_base)
        if new_url is None:
            logger.info(
                "Skipping %s %s: no /uploads/ path in %s",
                collection.table,
                record.record_id,
                record.value,
            )
            result.skipped += 1
            continue
        if dry_run:
            result.updated += 1
            logger.info(
                "Would update %s: %s -> %s",
                record.label or record.record_id,
                record.value,
                new_url,
            )
            continue
        try:
            db.update_image_ref(collection, record.record_id, new_url)
        except Exception:
            logger.exception(
                "Failed to update %s %s", collection.table, record.record_id
            )
            result.failed += 1
            continue
        result.updated += 1
        logger.info(
            "Updated %s: %s -> %s",
            record.label or record.record_id,
            record.value,
            new_url,
        )
    return result


def run_migration(
    db: DbClient,
    public_url: Optional[str],
    *,
    placeholder: str = "YOUR_PUB_ID",
    dry_run: bool = False,
    collections: Iterable[ImageCollection] = IMAGE_COLLECTIONS,
) -> MigrationReport:
    """
    Run the profile-image, service-image and category-icon passes in order.

    Raises ConfigurationError before touching the database when the public
    base URL is missing or still a placeholder.
    """
    public_base = validate_public_base(public_url, placeholder)
    logger.info("R2 public URL: %s", public_base)

    report = MigrationReport(dry_run=dry_run)
    for collection in collections:
        report.passes.append(
            migrate_collection(db, collection, public_base, dry_run=dry_run)
        )
    return report
