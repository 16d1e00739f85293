"""Image metadata read/write feature."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .mapping import ImageMetadata
    from .writer import MetadataWriterService

__all__ = ["ImageMetadata", "MetadataWriterService", "classify_tool_failure"]


def __getattr__(name: str):
    if name == "MetadataWriterService":
        from .writer import MetadataWriterService as _MetadataWriterService

        return _MetadataWriterService
    if name == "ImageMetadata":
        from .mapping import ImageMetadata as _ImageMetadata

        return _ImageMetadata
    if name == "classify_tool_failure":
        from .classify import classify_tool_failure as _classify_tool_failure

        return _classify_tool_failure
    raise AttributeError(name)
