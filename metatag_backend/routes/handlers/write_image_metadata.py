"""
writeImageMetadata tool handler.
"""
from __future__ import annotations

from typing import Any, Optional

from metatag_backend.config import (
    MAX_DESCRIPTION_LENGTH,
    MAX_KEYWORD_ENTRIES,
    MAX_KEYWORD_LENGTH,
    MAX_LOCATION_LENGTH,
)
from metatag_backend.features.metadata import MetadataWriterService
from metatag_backend.shared import Result, errors, get_logger, new_request_id, request_id_var

from ..core import _tool_response, validate_write_request

logger = get_logger(__name__)

TOOL_NAME = "writeImageMetadata"

TOOL_DESCRIPTION = (
    "Write tags, description, people and location into a JPG, PNG or HEIC image. "
    "filePath must be absolute. With overwrite=false, tags and people are merged "
    "into the keywords already stored in the file."
)

_KEYWORD_LIST_SCHEMA = {
    "type": "array",
    "items": {"type": "string", "minLength": 1, "maxLength": MAX_KEYWORD_LENGTH},
    "maxItems": MAX_KEYWORD_ENTRIES,
}

INPUT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "filePath": {
            "type": "string",
            "minLength": 1,
            "description": "Absolute path of the image file",
        },
        "metadata": {
            "type": "object",
            "properties": {
                "tags": {**_KEYWORD_LIST_SCHEMA, "description": "Keywords for the image"},
                "description": {
                    "type": "string",
                    "maxLength": MAX_DESCRIPTION_LENGTH,
                    "description": "Caption describing the image",
                },
                "people": {**_KEYWORD_LIST_SCHEMA, "description": "Names of people shown; stored as keywords"},
                "location": {
                    "type": "string",
                    "maxLength": MAX_LOCATION_LENGTH,
                    "description": "Where the image was taken",
                },
            },
        },
        "overwrite": {
            "type": "boolean",
            "default": True,
            "description": "Replace existing values (true) or merge keywords with what is stored (false)",
        },
    },
    "required": ["filePath", "metadata"],
}


def _requested_path(params: Any) -> Optional[str]:
    if isinstance(params, dict) and isinstance(params.get("filePath"), str):
        return params["filePath"]
    return None


class WriteImageMetadataHandler:
    """
    Validates a writeImageMetadata call, runs the writer and builds the response.

    ``handle`` never raises: every outcome is a response object carrying the
    requested filePath.
    """

    name = TOOL_NAME

    def __init__(self, writer: MetadataWriterService):
        self.writer = writer

    async def handle(self, params: Any) -> dict[str, Any]:
        file_path = _requested_path(params)
        token = request_id_var.set(new_request_id())
        try:
            try:
                result = await self._handle(params)
            except Exception as exc:
                logger.exception("Unhandled error in %s for %s", TOOL_NAME, file_path)
                result = errors.internal_error(exc)
            if result.ok:
                logger.info("%s succeeded for %s", TOOL_NAME, file_path)
            else:
                logger.warning("%s failed for %s: [%s] %s", TOOL_NAME, file_path, result.code, result.error)
            return _tool_response(result, file_path)
        finally:
            request_id_var.reset(token)

    async def _handle(self, params: Any) -> Result[bool]:
        request = validate_write_request(params)
        if not request.ok or request.data is None:
            return request.cast_err()

        req = request.data
        logger.debug(
            "%s: %s (overwrite=%s, fields=%s)",
            TOOL_NAME,
            req.file_path,
            req.overwrite,
            sorted(req.metadata.to_dict()),
        )
        return await self.writer.write_for_image(req.file_path, req.metadata, overwrite=req.overwrite)
