"""
FastAPI application entry point for the image proxy service.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from media_proxy.config import get_settings
from media_proxy.dependencies import close_http_client
from media_proxy.routes import router


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_http_client()


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Media Proxy", version="0.1.0", lifespan=lifespan)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
