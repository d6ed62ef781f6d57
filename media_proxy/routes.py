"""
HTTP routes for the same-origin image proxy.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse
from starlette.background import BackgroundTask

from media_proxy.classifier import classify_image_reference, display_url
from media_proxy.config import Settings, get_settings
from media_proxy.dependencies import get_http_client, get_resolver
from media_proxy.errors import (
    InvalidUrlError,
    MediaProxyError,
    MissingInputError,
    UnexpectedProxyError,
    UpstreamFailureError,
)
from media_proxy.resolver import ProxyResolver
from media_proxy.schemas import ErrorResponse, ImageUrlResponse
from media_proxy.upstream import UpstreamImage, open_upstream_image

logger = logging.getLogger(__name__)

router = APIRouter()

QUERY_CACHE_CONTROL = "public, max-age=86400, s-maxage=86400"
UPLOAD_CACHE_CONTROL = "public, max-age=31536000"

_UPLOAD_PATH_MESSAGES = {
    MissingInputError: "Missing image path",
    InvalidUrlError: "Invalid image path",
}


def _json_error(exc: MediaProxyError) -> JSONResponse:
    body = ErrorResponse(error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


async def _stream_body(upstream: UpstreamImage):
    try:
        async for chunk in upstream.iter_bytes():
            yield chunk
    except httpx.HTTPError:
        # Headers are already sent; the client sees a truncated body.
        logger.exception("Image stream interrupted: %s", upstream.url)
    finally:
        await upstream.aclose()


def _image_response(upstream: UpstreamImage, cache_control: str) -> StreamingResponse:
    # The background close also runs when the client disconnects before the
    # body generator starts, so the upstream connection always returns to the pool.
    return StreamingResponse(
        _stream_body(upstream),
        status_code=200,
        headers={
            "Content-Type": upstream.content_type,
            "Cache-Control": cache_control,
        },
        background=BackgroundTask(upstream.aclose),
    )


@router.get("/image-proxy")
async def proxy_image(
    url: Optional[str] = Query(None, description="Absolute URL or backend-relative path"),
    resolver: ProxyResolver = Depends(get_resolver),
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
):
    """
    Fetch an allow-listed image and stream it back from our own origin.
    """
    try:
        if not url:
            raise MissingInputError()
        target = resolver.resolve(url)
        upstream = await open_upstream_image(
            client, target, user_agent=settings.upstream_user_agent
        )
    except MediaProxyError as exc:
        logger.info("Image proxy rejected %r: %s", url, exc)
        return _json_error(exc)
    except Exception:
        logger.exception("Image proxy error for %r", url)
        return _json_error(UnexpectedProxyError())
    return _image_response(upstream, QUERY_CACHE_CONTROL)


@router.get("/image-proxy/{image_path:path}")
async def proxy_upload(
    image_path: str,
    resolver: ProxyResolver = Depends(get_resolver),
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
):
    """
    Serve ``/uploads/<image_path>`` from the backend origin.
    """
    try:
        target = resolver.resolve_upload_path(image_path.split("/"))
        upstream = await open_upstream_image(
            client, target, user_agent=settings.upstream_user_agent
        )
    except UpstreamFailureError:
        return PlainTextResponse("Image not found", status_code=404)
    except MediaProxyError as exc:
        logger.info("Image proxy rejected upload path %r: %s", image_path, exc)
        message = _UPLOAD_PATH_MESSAGES.get(type(exc), exc.message)
        return PlainTextResponse(message, status_code=exc.status_code)
    except Exception:
        logger.exception("Image proxy error for upload path %r", image_path)
        return PlainTextResponse("Internal Server Error", status_code=500)
    return _image_response(upstream, UPLOAD_CACHE_CONTROL)


@router.get("/image-url", response_model=ImageUrlResponse)
def image_url(
    ref: Optional[str] = Query(None, description="Stored image reference"),
    settings: Settings = Depends(get_settings),
):
    markers = settings.object_storage_markers
    return ImageUrlResponse(
        reference=ref,
        disposition=classify_image_reference(ref, markers),
        url=display_url(
            ref, markers, proxy_path=f"{settings.api_prefix}/image-proxy"
        ),
    )
