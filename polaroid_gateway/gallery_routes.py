"""
Gallery routes.

Provides endpoints for:
- Listing saved result images (most recent first)
- Saving and deleting a result URL
- Downloading a selection of images as a zip archive
"""

from __future__ import annotations

import logging
import time
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from .dependencies import get_state
from .image_utils import build_zip_archive
from .state import GatewayState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/gallery", tags=["gallery"])


class GalleryImagePayload(BaseModel):
    imageUrl: Optional[str] = None


class GalleryDownloadPayload(BaseModel):
    urls: List[str] = []
    zipName: Optional[str] = None


class GalleryListResponse(BaseModel):
    images: List[str]


class GallerySaveResponse(BaseModel):
    success: bool
    count: int


@router.get("/list", response_model=GalleryListResponse)
async def list_images(state: GatewayState = Depends(get_state)) -> GalleryListResponse:
    images = await state.recorder.images()
    return GalleryListResponse(images=images)


@router.post("/save", response_model=GallerySaveResponse)
async def save_image(
    payload: GalleryImagePayload,
    state: GatewayState = Depends(get_state),
):
    if not payload.imageUrl:
        raise HTTPException(status_code=400, detail="No image URL provided")

    if not await state.recorder.record(payload.imageUrl):
        return JSONResponse({"error": "Failed to save image"}, status_code=500)
    return GallerySaveResponse(success=True, count=await state.recorder.count())


@router.post("/delete")
async def delete_image(
    payload: GalleryImagePayload,
    state: GatewayState = Depends(get_state),
) -> JSONResponse:
    if not payload.imageUrl:
        raise HTTPException(status_code=400, detail="No image URL provided")
    removed = await state.recorder.delete(payload.imageUrl)
    return JSONResponse({"success": removed})


@router.post("/download")
async def download_images(
    payload: GalleryDownloadPayload,
    state: GatewayState = Depends(get_state),
) -> Response:
    if not payload.urls:
        raise HTTPException(status_code=400, detail="No images selected")

    zip_name = payload.zipName or f"polaroid-collection-{int(time.time() * 1000)}.zip"
    content, skipped = await build_zip_archive(
        payload.urls,
        timeout=state.config.request_timeout,
        transport=state.http_transport,
    )
    if skipped:
        logger.warning(f"Skipped {len(skipped)} of {len(payload.urls)} images while building {zip_name}")
    return Response(
        content=content,
        media_type="application/zip",
        headers={
            "Content-Disposition": f'attachment; filename="{zip_name}"',
            "X-Skipped-Images": str(len(skipped)),
        },
    )
