"""Image helpers: upload compression and gallery zip export."""

from __future__ import annotations

import io
import logging
import zipfile
from typing import List, Optional, Sequence, Tuple

import httpx
from PIL import Image, ImageOps

logger = logging.getLogger(__name__)

MAX_UPLOAD_WIDTH = 1024
JPEG_QUALITY = 80


def get_file_extension(url: str) -> str:
    """Extension of the last path segment of ``url``, ``png`` when there is none."""
    filename = url.split("?", 1)[0].rstrip("/").split("/")[-1]
    parts = filename.split(".")
    return parts[-1] if len(parts) > 1 and parts[-1] else "png"


def scaled_size(width: int, height: int, max_width: int = MAX_UPLOAD_WIDTH) -> Tuple[int, int]:
    if width <= max_width:
        return width, height
    ratio = max_width / width
    return max_width, max(1, round(height * ratio))


def compress_image(data: bytes, max_width: int = MAX_UPLOAD_WIDTH, quality: int = JPEG_QUALITY) -> bytes:
    """
    Downscale an image to at most ``max_width`` pixels wide and re-encode it as JPEG.

    Aspect ratio is preserved; images already narrow enough keep their size.

    Raises:
        ValueError: data is empty or not a readable image
    """
    if not data:
        raise ValueError("empty image")
    try:
        with Image.open(io.BytesIO(data)) as im:
            im = ImageOps.exif_transpose(im)
            if im.mode not in ("RGB", "L"):
                im = im.convert("RGB")
            size = scaled_size(im.width, im.height, max_width)
            if size != im.size:
                im = im.resize(size, resample=Image.Resampling.LANCZOS)
            out = io.BytesIO()
            im.save(out, format="JPEG", quality=quality)
    except OSError as e:
        raise ValueError(f"unreadable image: {e}") from e
    logger.debug(f"Compressed image {len(data)} -> {out.tell()} bytes at {size[0]}x{size[1]}")
    return out.getvalue()


async def build_zip_archive(
    urls: Sequence[str],
    timeout: float = 30.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Tuple[bytes, List[str]]:
    """
    Download ``urls`` and pack them into a zip archive.

    Images that fail to download are skipped.

    Returns:
        Tuple of (zip bytes, list of URLs that were skipped)
    """
    buffer = io.BytesIO()
    skipped: List[str] = []
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True, transport=transport) as client:
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for index, url in enumerate(urls, start=1):
                try:
                    response = await client.get(url)
                    response.raise_for_status()
                except httpx.HTTPError as e:
                    logger.error(f"Error adding image to zip: {url}: {e}")
                    skipped.append(url)
                    continue
                archive.writestr(f"polaroid-image-{index}.{get_file_extension(url)}", response.content)
    return buffer.getvalue(), skipped
