"""User reviews stored as a JSON array in a flat file."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import List

import aiofiles
from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


class Review(BaseModel):
    id: str
    name: str
    comment: str
    rating: int = Field(ge=1, le=5)
    date: str


class ReviewPayload(BaseModel):
    name: str
    comment: str
    rating: int = Field(ge=1, le=5)

    @field_validator("name", "comment")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value.strip()


class ReviewStore:
    """Append-only review list; reviews are never edited or removed."""

    def __init__(self, path: Path):
        self.path = Path(path).resolve()
        self._lock = asyncio.Lock()

    async def _ensure_file(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            async with aiofiles.open(self.path, "w", encoding="utf-8") as fh:
                await fh.write("[]")

    async def load(self) -> List[Review]:
        await self._ensure_file()
        async with aiofiles.open(self.path, "r", encoding="utf-8") as fh:
            content = await fh.read()
        try:
            raw = json.loads(content or "[]")
            return [Review.model_validate(item) for item in raw]
        except (json.JSONDecodeError, TypeError, ValidationError) as e:
            logger.error(f"Error reading reviews file {self.path}: {e}")
            return []

    async def add(self, payload: ReviewPayload) -> Review:
        review = Review(
            id=str(int(time.time() * 1000)),
            name=payload.name,
            comment=payload.comment,
            rating=payload.rating,
            date=datetime.now(timezone.utc).isoformat(),
        )
        async with self._lock:
            reviews = await self.load()
            reviews.append(review)
            async with aiofiles.open(self.path, "w", encoding="utf-8") as fh:
                await fh.write(json.dumps([item.model_dump() for item in reviews]))
        logger.info(f"Saved review {review.id} from {review.name}")
        return review
