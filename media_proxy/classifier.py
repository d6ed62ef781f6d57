"""
Classification of stored image references.

A persisted image reference is one of: a client-side ``blob:`` preview, a
public object-storage URL, or anything else (relative upload paths and
legacy localhost URLs) that must be resolved through the proxy. Matching is
purely prefix/substring based so it never touches the network.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional
from urllib.parse import quote

BLOB_SCHEME = "blob:"
DEFAULT_OBJECT_STORAGE_MARKERS = ("r2.dev", "r2.cloudflarestorage.com")
DEFAULT_PROXY_PATH = "/api/image-proxy"


class ImageDisposition(str, Enum):
    PASSTHROUGH_EPHEMERAL = "PASSTHROUGH_EPHEMERAL"
    PASSTHROUGH_REMOTE = "PASSTHROUGH_REMOTE"
    NEEDS_RESOLUTION = "NEEDS_RESOLUTION"


def classify_image_reference(
    raw: Optional[str],
    object_storage_markers: Iterable[str] = DEFAULT_OBJECT_STORAGE_MARKERS,
) -> Optional[ImageDisposition]:
    """
    Decide how an image reference should be served.

    Returns None for empty input (there is no image to render).
    """
    if not raw:
        return None
    if raw.startswith(BLOB_SCHEME):
        return ImageDisposition.PASSTHROUGH_EPHEMERAL
    if any(marker and marker in raw for marker in object_storage_markers):
        return ImageDisposition.PASSTHROUGH_REMOTE
    return ImageDisposition.NEEDS_RESOLUTION


def normalize_proxy_target(raw: str) -> str:
    if raw.startswith("http"):
        return raw
    return "/" + raw.lstrip("/")


def display_url(
    raw: Optional[str],
    object_storage_markers: Iterable[str] = DEFAULT_OBJECT_STORAGE_MARKERS,
    proxy_path: str = DEFAULT_PROXY_PATH,
) -> str:
    """Return the URL a client should render for ``raw``."""
    disposition = classify_image_reference(raw, object_storage_markers)
    if disposition is None:
        return ""
    if disposition is not ImageDisposition.NEEDS_RESOLUTION:
        return raw
    target = normalize_proxy_target(raw)
    return f"{proxy_path}?url={quote(target, safe='')}"
