"""
End-to-end writes through a real ExifTool process.

Skipped when exiftool is not on PATH. Fixture images are generated with Pillow.
"""
import shutil

import pytest

PIL = pytest.importorskip("PIL.Image")

from metatag_backend.adapters.tools.exiftool import ExifTool
from metatag_backend.features.metadata import MetadataWriterService
from metatag_backend.routes.handlers import WriteImageMetadataHandler

pytestmark = pytest.mark.skipif(shutil.which("exiftool") is None, reason="exiftool not installed")


def _make_image(tmp_path, name, fmt):
    path = tmp_path / name
    PIL.new("RGB", (16, 16), color=(200, 120, 40)).save(str(path), format=fmt)
    return str(path)


async def _with_service(fn):
    service = MetadataWriterService(ExifTool(timeout_ms=15000), timeout_ms=15000)
    try:
        return await fn(service)
    finally:
        await service.shutdown()


@pytest.mark.asyncio
async def test_jpeg_write_then_read(tmp_path):
    path = _make_image(tmp_path, "a.jpg", "JPEG")

    async def run(service):
        handler = WriteImageMetadataHandler(service)
        out = await handler.handle(
            {
                "filePath": path,
                "metadata": {
                    "tags": ["Vacation"],
                    "description": "Sunset",
                    "people": ["Alice"],
                    "location": "Nice, France",
                },
                "overwrite": True,
            }
        )
        back = await service.read_for_image(path)
        return out, back

    out, back = await _with_service(run)
    assert out["success"] is True, out
    assert "JPG" in out["message"]
    assert back.ok, back.error
    assert back.data.tags == ["Vacation", "Alice"]
    assert back.data.description == "Sunset"
    assert back.data.location == "Nice, France"


@pytest.mark.asyncio
async def test_jpeg_merge_keywords(tmp_path):
    path = _make_image(tmp_path, "b.jpg", "JPEG")

    async def run(service):
        first = await service.write_for_image(path, {"tags": ["a", "b"]}, overwrite=True)
        second = await service.write_for_image(path, {"tags": ["b", "c"]}, overwrite=False)
        back = await service.read_for_image(path)
        return first, second, back

    first, second, back = await _with_service(run)
    assert first.ok and second.ok
    assert back.data.tags == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_png_description_roundtrip(tmp_path):
    path = _make_image(tmp_path, "c.png", "PNG")

    async def run(service):
        res = await service.write_for_image(path, {"description": "Line one\nLine two", "tags": ["png"]})
        back = await service.read_for_image(path)
        return res, back

    res, back = await _with_service(run)
    assert res.ok, res.error
    assert back.data.description == "Line one\nLine two"
    assert back.data.tags == ["png"]


@pytest.mark.asyncio
async def test_corrupt_file_is_reported(tmp_path):
    path = tmp_path / "broken.jpg"
    path.write_bytes(b"this is not an image")

    async def run(service):
        return await WriteImageMetadataHandler(service).handle({"filePath": str(path), "metadata": {"tags": ["x"]}})

    out = await _with_service(run)
    assert out["success"] is False
    assert out["errorCode"] == -32005
    assert out["errorData"]["cause"]
