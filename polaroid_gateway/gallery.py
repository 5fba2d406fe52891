"""Gallery persistence: a bounded, most-recent-first list of generated image URLs."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from pathlib import Path
from typing import Callable, List, Optional, Protocol

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)

MAX_GALLERY_IMAGES = 30

Mutation = Callable[[List[str]], List[str]]


class GalleryStorage(Protocol):
    """
    Persistence collaborator for the gallery.

    ``update`` performs a read-modify-write and must serialize concurrent
    writers itself.
    """

    async def load(self) -> List[str]: ...

    async def update(self, mutate: Mutation) -> List[str]: ...


class FileGalleryStorage:
    """Gallery stored as a JSON array in a single file."""

    def __init__(self, path: Path):
        self.path = Path(path).resolve()
        self._lock = asyncio.Lock()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Initialized file gallery storage at {self.path}")

    async def load(self) -> List[str]:
        if not self.path.exists():
            await self._write([])
            return []

        async with aiofiles.open(self.path, "r", encoding="utf-8") as fh:
            content = await fh.read()
        try:
            images = json.loads(content or "[]")
        except json.JSONDecodeError:
            logger.error(f"Gallery file {self.path} is not valid JSON, resetting it")
            await self._write([])
            return []
        if not isinstance(images, list):
            logger.error(f"Gallery file {self.path} does not hold a list, resetting it")
            await self._write([])
            return []
        return [str(url) for url in images]

    async def update(self, mutate: Mutation) -> List[str]:
        async with self._lock:
            images = mutate(await self.load())
            await self._write(images)
            return images

    async def _write(self, images: List[str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f".{self.path.name}.{uuid.uuid4().hex}.tmp")
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as fh:
            await fh.write(json.dumps(images))
        await aiofiles.os.replace(tmp_path, self.path)
        logger.debug(f"Wrote {len(images)} gallery images to {self.path}")


class MemoryGalleryStorage:
    """In-process gallery, used when no durable store is configured."""

    def __init__(self, images: Optional[List[str]] = None):
        self._images: List[str] = list(images or [])
        self._lock = asyncio.Lock()
        logger.info("Initialized in-memory gallery storage")

    async def load(self) -> List[str]:
        return list(self._images)

    async def update(self, mutate: Mutation) -> List[str]:
        async with self._lock:
            self._images = mutate(list(self._images))
            return list(self._images)


def create_gallery_storage(storage_type: str, data_dir: Path) -> GalleryStorage:
    """Select the gallery storage once at startup from configuration."""
    storage_type = (storage_type or "file").lower()
    logger.info(f"Using gallery storage type: {storage_type}")
    if storage_type == "database":
        logger.warning("No database gallery backend is available, using in-memory storage; the gallery is lost on restart")
        return MemoryGalleryStorage()
    if storage_type == "memory":
        return MemoryGalleryStorage()
    if storage_type != "file":
        logger.warning(f"Unknown storage type {storage_type!r}, falling back to file storage")
    return FileGalleryStorage(Path(data_dir) / "gallery.json")


class GalleryRecorder:
    """Prepends finished result URLs to the gallery, keeping the newest ``limit`` entries."""

    def __init__(self, storage: GalleryStorage, limit: int = MAX_GALLERY_IMAGES):
        self.storage = storage
        self.limit = limit

    async def images(self) -> List[str]:
        return await self.storage.load()

    async def record(self, url: str) -> bool:
        """
        Add ``url`` at the head of the gallery. Duplicates are kept.

        Returns:
            True if the gallery was written, False otherwise
        """
        try:
            images = await self.storage.update(lambda current: ([url] + current)[: self.limit])
        except (OSError, ValueError) as e:
            logger.error(f"Failed to save gallery image {url[:50]}: {e}")
            return False
        logger.info(f"Saved gallery image, gallery now holds {len(images)} images")
        return True

    async def count(self) -> int:
        return len(await self.storage.load())

    async def delete(self, url: str) -> bool:
        """Remove every occurrence of ``url``; False if it was not in the gallery."""
        removed = False

        def _remove(current: List[str]) -> List[str]:
            nonlocal removed
            remaining = [item for item in current if item != url]
            removed = len(remaining) != len(current)
            return remaining

        try:
            await self.storage.update(_remove)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to delete gallery image {url[:50]}: {e}")
            return False
        if not removed:
            logger.info(f"Gallery image not found for deletion: {url[:50]}")
        return removed
