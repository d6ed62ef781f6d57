"""
Rewrite localhost upload URLs in the database to R2 public URLs.

Images uploaded while the backend used local storage were saved as
http://localhost:3003/uploads/<path>. This rewrites user avatars, service
images and category icons to <R2_PUBLIC_URL>/<path>. Safe to run repeatedly.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from media_proxy.config import get_settings
from media_proxy.dependencies import get_db_client
from media_proxy.errors import ConfigurationError
from media_proxy.migration import run_migration


logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Migrate localhost image URLs to R2")
    parser.add_argument(
        "--public-url",
        default=None,
        help="R2 public base URL (defaults to R2_PUBLIC_URL)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report how many records would be updated without saving",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    settings = get_settings()
    public_url = args.public_url or settings.r2_public_url

    if not settings.database_url and not settings.use_in_memory_backends:
        logger.error(
            "DATABASE_URL is not configured; set it, or set "
            "MEDIA_PROXY_USE_IN_MEMORY_BACKENDS=true to run against an in-memory store"
        )
        return 1

    try:
        report = run_migration(
            get_db_client(),
            public_url,
            placeholder=settings.public_url_placeholder,
            dry_run=args.dry_run,
        )
    except ConfigurationError as exc:
        logger.error("%s", exc)
        logger.error("Set R2_PUBLIC_URL, e.g. https://pub-abc123def456.r2.dev")
        return 1

    for line in report.summary_lines():
        logger.info(line)
    if report.total_failed:
        logger.error("%d record(s) failed to update", report.total_failed)
        return 1
    if report.dry_run:
        logger.info("Would update %d records", report.total_updated)
    else:
        logger.info("Updated %d records", report.total_updated)
    return 0


if __name__ == "__main__":
    sys.exit(main())
