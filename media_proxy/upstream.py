"""
Upstream image fetching for the proxy endpoints.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from media_proxy.errors import UpstreamFailureError

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "image/jpeg"


@dataclass
class UpstreamImage:
    """An open upstream response; the caller must close it once streamed."""

    url: str
    response: httpx.Response

    @property
    def content_type(self) -> str:
        return self.response.headers.get("content-type") or DEFAULT_CONTENT_TYPE

    def iter_bytes(self):
        return self.response.aiter_bytes()

    async def aclose(self) -> None:
        await self.response.aclose()


async def open_upstream_image(
    client: httpx.AsyncClient, url: str, *, user_agent: str | None = None
) -> UpstreamImage:
    """
    Issue a single GET for ``url`` and return the open streaming response.

    Raises UpstreamFailureError for non-2xx statuses or empty (204) bodies.
    No retries are attempted.
    """
    headers = {"Accept": "image/*", "Cache-Control": "no-store"}
    if user_agent:
        headers["User-Agent"] = user_agent

    logger.info("Proxying image request: %s", url)
    request = client.build_request("GET", url, headers=headers)
    response = await client.send(request, stream=True)
    if not response.is_success or response.status_code == 204:
        await response.aclose()
        logger.warning(
            "Upstream image request failed: %s %s", response.status_code, url
        )
        raise UpstreamFailureError(response.status_code, url)
    return UpstreamImage(url=url, response=response)
