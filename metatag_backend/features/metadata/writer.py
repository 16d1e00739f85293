"""
Metadata writer: app-level read/write on top of the ExifTool adapter.

Every public coroutine returns a Result whose error code is one of the
``ErrorCode`` taxonomy values; ExifTool failure text is classified here and
nowhere else above the adapter.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional, Union

from ...adapters.tools.exiftool import OVERWRITE_ORIGINAL, ExifTool
from ...config import CHECK_FILE_PERMISSIONS, EXIFTOOL_TIMEOUT_MS
from ...shared import (
    ErrorCode,
    Result,
    errors,
    file_extension,
    get_logger,
    is_supported_image,
    log_success,
    timer,
)
from .classify import classify_tool_failure
from .mapping import FieldSet, ImageMetadata, build_field_set, merge_with_existing, metadata_from_fields

logger = get_logger(__name__)

_TAXONOMY_CODES = frozenset(code.value for code in ErrorCode)

MetadataInput = Union[ImageMetadata, dict[str, Any]]


class MetadataWriterService:
    """
    Reads and writes tags, description, people and location in image files.

    Holds one ExifTool handle for its whole lifetime; call ``shutdown()`` once
    when the service stops.
    """

    def __init__(
        self,
        exiftool: Optional[ExifTool] = None,
        *,
        timeout_ms: Optional[int] = None,
        check_permissions: Optional[bool] = None,
    ):
        self.timeout_ms = int(timeout_ms) if timeout_ms is not None else int(EXIFTOOL_TIMEOUT_MS)
        self.check_permissions = CHECK_FILE_PERMISSIONS if check_permissions is None else bool(check_permissions)
        self.exiftool = exiftool if exiftool is not None else ExifTool(timeout_ms=self.timeout_ms)
        self._shut_down = False
        logger.info("ExifTool handle created, task timeout %sms", self.timeout_ms)

    # ── read ──────────────────────────────────────────────────────────────

    async def read_raw(self, path: str) -> Result[dict[str, Any]]:
        """
        Read every tag ExifTool reports for a file.

        Returns:
            Result with tag name -> value, or FILE_NOT_FOUND / EXIFTOOL_TIMEOUT /
            EXIFTOOL_PROCESS_ERROR / METADATA_READ_FAILED
        """
        if not _is_existing_file(path):
            return errors.file_not_found(path)

        logger.debug("Reading metadata for %s", path)
        try:
            with timer(f"exiftool read {path}", logger):
                res = await self.exiftool.read(path)
        except Exception as exc:
            logger.error("ExifTool read raised for %s: %s", path, exc)
            return classify_tool_failure(exc, operation="read", path=path, timeout_ms=self.timeout_ms)

        if res.ok:
            return Result.Ok(dict(res.data or {}))

        logger.error("Error reading metadata for %s: %s", path, res.error)
        return classify_tool_failure(
            res.error,
            operation="read",
            path=path,
            timeout_ms=self.timeout_ms,
            stderr=(res.meta or {}).get("stderr"),
        )

    async def read_for_image(self, path: str) -> Result[ImageMetadata]:
        """Tags, description and location as stored in the file (people folds into tags)."""
        logger.debug("Reading %s image metadata: %s", file_extension(path).upper() or "?", path)
        raw = await self.read_raw(path)
        if not raw.ok:
            return raw.cast_err()
        return Result.Ok(metadata_from_fields(raw.data or {}))

    # ── write ─────────────────────────────────────────────────────────────

    async def write_for_image(self, path: str, metadata: MetadataInput, overwrite: bool = True) -> Result[bool]:
        """
        Write an app metadata record into an image.

        Args:
            path: Absolute path of a jpg/jpeg/png/heic file
            metadata: Record to write; empty fields are skipped
            overwrite: When False, keep what is on disk and merge keywords

        Returns:
            Result with True when ExifTool wrote, False when there was nothing to write
        """
        try:
            res = await self._write_for_image(path, metadata, overwrite)
        except Exception as exc:
            logger.exception("Unexpected error while writing metadata to %s", path)
            return errors.metadata_write_failed(path, exc)
        if not res.ok and res.code not in _TAXONOMY_CODES:
            return errors.metadata_write_failed(path, res.error)
        return res

    async def _write_for_image(self, path: str, metadata: MetadataInput, overwrite: bool) -> Result[bool]:
        precondition = self._check_write_preconditions(path)
        if precondition is not None:
            return precondition

        ext = file_extension(path)
        logger.debug("Writing %s image metadata: %s", ext.upper(), path)

        incoming = metadata if isinstance(metadata, ImageMetadata) else ImageMetadata.from_dict(metadata)
        fields = build_field_set(incoming)
        if not fields:
            logger.info("No metadata to write for %s", path)
            return Result.Ok(False)

        if not overwrite:
            fields = await self._merge_existing(path, incoming, fields)

        logger.debug("Writing fields to %s: %s", path, sorted(fields))
        try:
            with timer(f"exiftool write {path}", logger):
                res = await self.exiftool.write(path, fields, [OVERWRITE_ORIGINAL])
        except Exception as exc:
            logger.error("ExifTool write raised for %s: %s", path, exc)
            return classify_tool_failure(exc, operation="write", path=path, timeout_ms=self.timeout_ms, fmt=ext)

        if not res.ok:
            logger.error("Failed to write metadata to %s: %s", path, res.error)
            return classify_tool_failure(
                res.error,
                operation="write",
                path=path,
                timeout_ms=self.timeout_ms,
                fmt=ext,
                stderr=(res.meta or {}).get("stderr"),
            )

        log_success(logger, f"Metadata written to {path}")
        return Result.Ok(True)

    def _check_write_preconditions(self, path: str) -> Optional[Result[bool]]:
        if not _is_existing_file(path):
            return errors.file_not_found(path)

        ext = file_extension(path)
        if not is_supported_image(path):
            return errors.unsupported_format(path, ext)

        if self.check_permissions:
            if not os.access(path, os.R_OK):
                return errors.file_access_denied(path, "read")
            if not os.access(path, os.W_OK):
                return errors.file_access_denied(path, "write")
        return None

    async def _merge_existing(self, path: str, incoming: ImageMetadata, fields: FieldSet) -> FieldSet:
        existing = await self.read_for_image(path)
        if existing.ok and existing.data is not None:
            return merge_with_existing(fields, incoming, existing.data)
        if existing.code != ErrorCode.FILE_NOT_FOUND:
            # The write still goes ahead with the incoming fields only.
            logger.warning("Failed to read existing metadata for non-overwrite mode: %s", existing.error)
        return fields

    # ── lifecycle ─────────────────────────────────────────────────────────

    async def shutdown(self) -> None:
        """Stop the ExifTool process. Logs failures, never raises; later calls do nothing."""
        if self._shut_down:
            logger.debug("Metadata writer already shut down")
            return
        self._shut_down = True
        try:
            res = await self.exiftool.end()
        except Exception as exc:
            logger.error("Error terminating ExifTool process: %s", exc)
            return
        if not res.ok:
            logger.error("Error terminating ExifTool process: %s", res.error)
            return
        logger.info("ExifTool process terminated")


def _is_existing_file(path: str) -> bool:
    if not path or "\x00" in str(path):
        return False
    try:
        return Path(str(path)).is_file()
    except OSError:
        return False
