"""Shared fixtures for gateway tests."""

import asyncio
import io
from unittest.mock import AsyncMock

import pytest
from PIL import Image

from polaroid_gateway.gallery import GalleryRecorder, MemoryGalleryStorage
from polaroid_gateway.gateway_client import OutputItem, RunData, UploadData


class VirtualClock:
    """Clock whose sleeps advance time instantly and are recorded."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def monotonic(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


def make_image_bytes(width=64, height=32, mode="RGB", fmt="PNG"):
    color = (200, 120, 40, 255) if mode == "RGBA" else (200, 120, 40)
    buffer = io.BytesIO()
    Image.new(mode, (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def clock():
    return VirtualClock()


@pytest.fixture
def gateway():
    """Gateway double that walks one task from upload to a single png result."""
    mock = AsyncMock()
    mock.upload.return_value = UploadData(fileName="abc123")
    mock.run.return_value = RunData(taskId="t-1")
    mock.status.side_effect = ["RUNNING", "RUNNING", "SUCCESS"]
    mock.outputs.return_value = [OutputItem(fileUrl="https://x/y.png", fileType="png")]
    return mock


@pytest.fixture
def recorder():
    return GalleryRecorder(MemoryGalleryStorage())
