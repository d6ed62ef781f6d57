"""
Resolution of image references to upstream URLs the proxy may fetch.

Resolution is a pure string/URL transformation followed by an allow-list
check; the proxy never fetches from a host that is not allow-listed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence
from urllib.parse import SplitResult, quote, urljoin, urlsplit

from media_proxy.config import Settings
from media_proxy.errors import HostNotAllowedError, InvalidUrlError, MissingInputError

DEFAULT_DEV_HOSTS = ("localhost:3001", "localhost:3002", "localhost:3003")
DEFAULT_API_SUFFIX = "/api/v1"
UPLOADS_PREFIX = "/uploads"

_DEFAULT_PORTS = {"http": 80, "https": 443}


def url_host(parts: SplitResult) -> str:
    """
    Return ``hostname[:port]`` for a split URL, eliding the scheme's default
    port. Raises ValueError for an unparseable port.
    """
    hostname = parts.hostname or ""
    if not hostname:
        return ""
    if ":" in hostname:
        hostname = f"[{hostname}]"
    port = parts.port
    if port is None or port == _DEFAULT_PORTS.get(parts.scheme.lower()):
        return hostname
    return f"{hostname}:{port}"


def _configured_host(base_url: str) -> str:
    try:
        host = url_host(urlsplit(base_url))
    except ValueError:
        host = ""
    if host:
        return host
    for scheme in ("http://", "https://"):
        if base_url.startswith(scheme):
            return base_url[len(scheme):].split("/", 1)[0]
    return base_url.split("/", 1)[0]


def build_allowed_hosts(
    base_url: str,
    dev_hosts: Iterable[str] = DEFAULT_DEV_HOSTS,
    extra_hosts: Iterable[str] = (),
) -> frozenset[str]:
    hosts = {h.strip().lower() for h in dev_hosts if h and h.strip()}
    hosts.update(h.strip().lower() for h in extra_hosts if h and h.strip())
    configured = _configured_host(base_url).lower()
    if configured:
        hosts.add(configured)
    return frozenset(hosts)


def strip_api_suffix(base_url: str, suffix: str = DEFAULT_API_SUFFIX) -> str:
    trimmed = base_url.rstrip("/")
    if suffix and trimmed.endswith(suffix.rstrip("/")):
        trimmed = trimmed[: -len(suffix.rstrip("/"))]
    return trimmed.rstrip("/")


@dataclass(frozen=True)
class ProxyResolver:
    """Builds upstream URLs against a backend base and enforces the allow-list."""

    backend_base_url: str
    allowed_hosts: frozenset[str]
    api_version_suffix: str = DEFAULT_API_SUFFIX
    backend_origin: str = field(init=False)

    def __post_init__(self):
        object.__setattr__(
            self,
            "backend_origin",
            strip_api_suffix(self.backend_base_url, self.api_version_suffix),
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProxyResolver":
        return cls.create(
            settings.backend_api_url,
            dev_hosts=settings.dev_allowed_hosts,
            extra_hosts=settings.extra_allowed_hosts,
            api_version_suffix=settings.api_version_suffix,
        )

    @classmethod
    def create(
        cls,
        backend_base_url: str,
        *,
        dev_hosts: Iterable[str] = DEFAULT_DEV_HOSTS,
        extra_hosts: Iterable[str] = (),
        api_version_suffix: str = DEFAULT_API_SUFFIX,
    ) -> "ProxyResolver":
        return cls(
            backend_base_url=backend_base_url,
            allowed_hosts=build_allowed_hosts(
                backend_base_url, dev_hosts, extra_hosts
            ),
            api_version_suffix=api_version_suffix,
        )

    def resolve(self, target: Optional[str]) -> str:
        """
        Resolve an absolute ``http(s)`` URL or a backend-relative path.

        Relative paths always get exactly one leading slash before joining,
        so ``uploads/a.png``, ``/uploads/a.png`` and ``//uploads/a.png`` all
        resolve to the same URL.
        """
        if not target:
            raise MissingInputError()
        if target.lower().startswith(("http://", "https://")):
            url = target
        else:
            url = urljoin(self.backend_base_url, "/" + target.lstrip("/"))
        return self._check(url)

    def resolve_upload_path(self, segments: Sequence[str]) -> str:
        """Build ``<backend origin>/uploads/<segments>`` for the path form."""
        parts = [segment for segment in segments if segment]
        if not parts:
            raise MissingInputError("Missing image path")
        if any(segment in (".", "..") for segment in parts):
            raise InvalidUrlError("Invalid image path")
        path = "/".join(quote(segment) for segment in parts)
        return self._check(f"{self.backend_origin}{UPLOADS_PREFIX}/{path}")

    def _check(self, url: str) -> str:
        try:
            parts = urlsplit(url)
            host = url_host(parts)
        except ValueError as exc:
            raise InvalidUrlError(str(exc)) from exc
        if parts.scheme.lower() not in _DEFAULT_PORTS or not host:
            raise InvalidUrlError(f"Cannot resolve {url!r}")
        if host.lower() not in self.allowed_hosts:
            raise HostNotAllowedError(host)
        return url
