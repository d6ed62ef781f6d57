"""
Pydantic schemas for the image proxy API.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel

from media_proxy.classifier import ImageDisposition


class ErrorResponse(BaseModel):
    success: Literal[False] = False
    error: str


class ImageUrlResponse(BaseModel):
    reference: Optional[str] = None
    disposition: Optional[ImageDisposition] = None
    url: str
