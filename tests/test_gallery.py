"""Tests for gallery storage and recording."""

import asyncio
import json
import logging
from unittest.mock import AsyncMock

import pytest

from polaroid_gateway.gallery import (
    FileGalleryStorage,
    GalleryRecorder,
    MemoryGalleryStorage,
    create_gallery_storage,
)


@pytest.fixture
def gallery_path(tmp_path):
    return tmp_path / "gallery.json"


@pytest.fixture
def file_recorder(gallery_path):
    return GalleryRecorder(FileGalleryStorage(gallery_path))


@pytest.mark.asyncio
async def test_record_prepends_newest(file_recorder, gallery_path):
    assert await file_recorder.record("https://x/1.png")
    assert await file_recorder.record("https://x/2.png")

    assert await file_recorder.images() == ["https://x/2.png", "https://x/1.png"]
    assert json.loads(gallery_path.read_text()) == ["https://x/2.png", "https://x/1.png"]


@pytest.mark.asyncio
async def test_gallery_is_bounded(file_recorder):
    for i in range(35):
        await file_recorder.record(f"https://x/{i}.png")

    images = await file_recorder.images()
    assert len(images) == 30
    assert images[0] == "https://x/34.png"
    assert images[-1] == "https://x/5.png"


@pytest.mark.asyncio
async def test_duplicates_are_kept(recorder):
    await recorder.record("https://x/same.png")
    await recorder.record("https://x/same.png")

    assert await recorder.count() == 2


@pytest.mark.asyncio
async def test_concurrent_records_are_not_lost(file_recorder):
    await asyncio.gather(*(file_recorder.record(f"https://x/{i}.png") for i in range(10)))

    assert await file_recorder.count() == 10


@pytest.mark.asyncio
async def test_missing_file_is_created(gallery_path):
    storage = FileGalleryStorage(gallery_path)

    assert await storage.load() == []
    assert gallery_path.read_text() == "[]"


@pytest.mark.asyncio
async def test_corrupt_file_is_reset(gallery_path, file_recorder):
    gallery_path.write_text("{not json")

    assert await file_recorder.images() == []
    assert json.loads(gallery_path.read_text()) == []


@pytest.mark.asyncio
async def test_non_list_file_is_reset(gallery_path, file_recorder):
    gallery_path.write_text('{"images": []}')

    assert await file_recorder.images() == []


@pytest.mark.asyncio
async def test_delete(recorder):
    await recorder.record("https://x/1.png")
    await recorder.record("https://x/2.png")

    assert await recorder.delete("https://x/1.png")
    assert await recorder.images() == ["https://x/2.png"]
    assert not await recorder.delete("https://x/missing.png")


@pytest.mark.asyncio
async def test_record_reports_storage_failure():
    storage = AsyncMock()
    storage.update.side_effect = OSError("read-only file system")

    assert await GalleryRecorder(storage).record("https://x/1.png") is False


@pytest.mark.asyncio
async def test_custom_limit():
    recorder = GalleryRecorder(MemoryGalleryStorage(), limit=2)
    for i in range(3):
        await recorder.record(f"https://x/{i}.png")

    assert await recorder.images() == ["https://x/2.png", "https://x/1.png"]


@pytest.mark.parametrize(
    "storage_type, expected",
    [
        ("file", FileGalleryStorage),
        ("FILE", FileGalleryStorage),
        ("memory", MemoryGalleryStorage),
        ("database", MemoryGalleryStorage),
        ("unknown", FileGalleryStorage),
    ],
)
def test_create_gallery_storage(tmp_path, storage_type, expected):
    assert isinstance(create_gallery_storage(storage_type, tmp_path), expected)


@pytest.mark.asyncio
async def test_writes_leave_no_temporary_files(file_recorder, gallery_path):
    for i in range(3):
        await file_recorder.record(f"https://x/{i}.png")

    assert [p.name for p in gallery_path.parent.iterdir()] == ["gallery.json"]


def test_database_storage_warns_about_memory_fallback(tmp_path, caplog):
    with caplog.at_level(logging.WARNING, logger="polaroid_gateway.gallery"):
        create_gallery_storage("database", tmp_path)

    assert "lost on restart" in caplog.text


def test_memory_storage_does_not_warn(tmp_path, caplog):
    with caplog.at_level(logging.WARNING, logger="polaroid_gateway.gallery"):
        create_gallery_storage("memory", tmp_path)

    assert caplog.text == ""
