import sys
from typing import Any, Optional

import pytest

from .repo_root import REPO_ROOT

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


class FakeExifTool:
    """
    In-memory stand-in for the ExifTool adapter.

    Writes land in ``store`` (path -> tag dict) and reads return them, so a
    write followed by a read behaves like the real tool. Set ``read_result`` /
    ``write_result`` to force a specific Result, or ``*_raises`` to raise.
    """

    def __init__(self):
        from metatag_backend.shared import Result

        self._result = Result
        self.store: dict[str, dict[str, Any]] = {}
        self.read_result = None
        self.write_result = None
        self.read_raises: Optional[BaseException] = None
        self.write_raises: Optional[BaseException] = None
        self.reads: list[str] = []
        self.writes: list[tuple[str, dict, list]] = []
        self.end_calls = 0

    async def read(self, path):
        self.reads.append(path)
        if self.read_raises is not None:
            raise self.read_raises
        if self.read_result is not None:
            return self.read_result
        return self._result.Ok({"SourceFile": path, **self.store.get(path, {})})

    async def write(self, path, metadata, options=None):
        self.writes.append((path, dict(metadata), list(options or [])))
        if self.write_raises is not None:
            raise self.write_raises
        if self.write_result is not None:
            return self.write_result
        self.store.setdefault(path, {}).update(metadata)
        return self._result.Ok(True)

    async def end(self, timeout=5.0):
        self.end_calls += 1
        return self._result.Ok(True)


@pytest.fixture
def fake_exiftool():
    return FakeExifTool()


@pytest.fixture
def writer(fake_exiftool):
    from metatag_backend.features.metadata import MetadataWriterService

    return MetadataWriterService(fake_exiftool, timeout_ms=5000, check_permissions=True)


@pytest.fixture
def image_file(tmp_path):
    """Factory for placeholder image files; content is never parsed by the fake tool."""

    def _make(name="photo.jpg", content=b"\xff\xd8\xff\xd9"):
        p = tmp_path / name
        p.write_bytes(content)
        return str(p)

    return _make
