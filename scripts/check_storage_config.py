"""
Report the object-storage configuration the service is running with.

With --probe, also lists a few objects in the bucket to confirm the
credentials and endpoint work.
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
from media_proxy.dependencies import get_storage_client
from media_proxy.diagnostics import diagnose_storage, has_errors, probe_bucket


logger = logging.getLogger(__name__)

_LOG_LEVELS = {"ok": logging.INFO, "warning": logging.WARNING, "error": logging.ERROR}


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Check storage configuration")
    parser.add_argument(
        "--probe",
        action="store_true",
        help="List objects in the bucket to test connectivity",
    )
    parser.add_argument("--max-keys", type=int, default=5)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    findings = diagnose_storage(get_settings())
    if args.probe and not has_errors(findings):
        findings.extend(probe_bucket(get_storage_client(), max_keys=args.max_keys))

    for finding in findings:
        logger.log(_LOG_LEVELS[finding.level], finding.message)
    return 1 if has_errors(findings) else 0


if __name__ == "__main__":
    sys.exit(main())
