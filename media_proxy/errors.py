"""
Error types raised by the resolver, proxy and migration utility.

Each proxy error carries the HTTP status and the client-safe message the
route layer sends back; nothing else about the failure leaks to callers.
"""

from __future__ import annotations

from typing import Optional


class MediaProxyError(Exception):
    status_code: int = 500
    message: str = "Proxy error"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail or self.message)
        self.detail = detail


class MissingInputError(MediaProxyError):
    status_code = 400
    message = "Missing url parameter"


class InvalidUrlError(MediaProxyError):
    status_code = 400
    message = "Invalid url"


class HostNotAllowedError(MediaProxyError):
    status_code = 403
    message = "Host not allowed"

    def __init__(self, host: str):
        super().__init__(f"Host not allowed: {host}")
        self.host = host


class UpstreamFailureError(MediaProxyError):
    message = "Upstream fetch failed"

    def __init__(self, upstream_status: Optional[int], url: str):
        super().__init__(f"Upstream returned {upstream_status} for {url}")
        self.upstream_status = upstream_status
        self.url = url
        # Only propagate real error statuses; anything else is a bad gateway.
        if upstream_status and upstream_status >= 400:
            self.status_code = upstream_status
        else:
            self.status_code = 502


class UnexpectedProxyError(MediaProxyError):
    status_code = 500
    message = "Proxy error"


class ConfigurationError(Exception):
    """Raised when the migration utility's preconditions are not met."""
