"""
Validation of inbound tool-call parameters.

Guarantees:
- Never raises to handlers (returns Result)
- Path absoluteness is checked before the metadata shape
- Nothing here touches the filesystem or ExifTool
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Optional

from ...config import (
    MAX_DESCRIPTION_LENGTH,
    MAX_KEYWORD_ENTRIES,
    MAX_KEYWORD_LENGTH,
    MAX_LOCATION_LENGTH,
)
from ...features.metadata.mapping import ImageMetadata
from ...shared import Result, errors


@dataclass(frozen=True)
class WriteRequest:
    """A validated writeImageMetadata call."""
    file_path: str
    metadata: ImageMetadata
    overwrite: bool = True


# (field, singular label used in messages)
_LIST_FIELDS = (("tags", "Tag"), ("people", "Person name"))
# (field, label, max length)
_TEXT_FIELDS = (
    ("description", "Description", MAX_DESCRIPTION_LENGTH),
    ("location", "Location", MAX_LOCATION_LENGTH),
)


def _validate_file_path(value: Any) -> Result[str]:
    if not isinstance(value, str) or not value:
        return errors.invalid_metadata("filePath must be a non-empty string", field="filePath")
    if "\x00" in value:
        return errors.invalid_metadata("filePath contains a NUL byte", field="filePath")
    if not os.path.isabs(value):
        return errors.relative_path_not_allowed(value)
    return Result.Ok(value)


def _validate_string_list(name: str, label: str, value: Any) -> Optional[Result[Any]]:
    if value is None:
        return None
    if not isinstance(value, list):
        return errors.invalid_metadata(f"{name} must be an array of strings", field=name)

    non_strings = [v for v in value if not isinstance(v, str)]
    if non_strings:
        return errors.invalid_metadata(
            f"{name} must contain only strings",
            field=name,
            invalidValues=[repr(v) for v in non_strings],
        )

    if len(value) > MAX_KEYWORD_ENTRIES:
        return errors.invalid_metadata(
            f"Too many {name}: {len(value)} (maximum {MAX_KEYWORD_ENTRIES})",
            field=name,
            count=len(value),
            maxCount=MAX_KEYWORD_ENTRIES,
        )

    blanks = [v for v in value if not v.strip()]
    if blanks:
        return errors.invalid_metadata(
            f"{label} must not be an empty string",
            field=name,
            invalidValues=blanks,
        )

    for entry in value:
        if len(entry) > MAX_KEYWORD_LENGTH:
            return errors.invalid_metadata(
                f"{label} exceeds {MAX_KEYWORD_LENGTH} characters: '{entry}' ({len(entry)} characters)",
                field=name,
                value=entry,
                length=len(entry),
                maxLength=MAX_KEYWORD_LENGTH,
            )
    return None


def _validate_text(name: str, label: str, max_length: int, value: Any) -> Optional[Result[Any]]:
    if value is None:
        return None
    if not isinstance(value, str):
        return errors.invalid_metadata(f"{name} must be a string", field=name)
    if len(value) > max_length:
        return errors.invalid_metadata(
            f"{label} is too long: {len(value)} characters (maximum {max_length})",
            field=name,
            length=len(value),
            maxLength=max_length,
        )
    return None


def _validate_metadata(value: Any) -> Result[ImageMetadata]:
    if value is None:
        value = {}
    if not isinstance(value, dict):
        return errors.invalid_metadata("metadata must be an object", field="metadata")

    for name, label in _LIST_FIELDS:
        err = _validate_string_list(name, label, value.get(name))
        if err is not None:
            return err
    for name, label, max_length in _TEXT_FIELDS:
        err = _validate_text(name, label, max_length, value.get(name))
        if err is not None:
            return err
    return Result.Ok(ImageMetadata.from_dict(value))


def _validate_overwrite(value: Any) -> Result[bool]:
    if value is None:
        return Result.Ok(True)
    if not isinstance(value, bool):
        return errors.invalid_metadata("overwrite must be a boolean", field="overwrite")
    return Result.Ok(value)


def validate_write_request(params: Any) -> Result[WriteRequest]:
    """
    Validate writeImageMetadata arguments.

    Returns:
        Result.Ok(WriteRequest), or RELATIVE_PATH_NOT_ALLOWED / INVALID_METADATA
    """
    if not isinstance(params, dict):
        return errors.invalid_metadata("arguments must be an object", field="arguments")

    path_res = _validate_file_path(params.get("filePath"))
    if not path_res.ok:
        return path_res.cast_err()

    meta_res = _validate_metadata(params.get("metadata"))
    if not meta_res.ok:
        return meta_res.cast_err()

    overwrite_res = _validate_overwrite(params.get("overwrite"))
    if not overwrite_res.ok:
        return overwrite_res.cast_err()

    return Result.Ok(
        WriteRequest(
            file_path=path_res.data or "",
            metadata=meta_res.data or ImageMetadata(),
            overwrite=bool(overwrite_res.data),
        )
    )
