"""
Mapping between the application metadata record and ExifTool tag names.

Write mapping (one app field fans out to several standards):

    tags + people  -> Keywords (IPTC), Subject (XMP-dc)        one deduplicated list
    description    -> ImageDescription (EXIF), Caption-Abstract (IPTC), Description (XMP)
    location       -> Location, XMP-photoshop:Location

Tags and people share the keyword list, so a read returns them merged as
``tags``; ``people`` is never populated on read.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional

from ...utils import dedupe_preserving_order

KEYWORDS_IPTC = "Keywords"
SUBJECT_XMP = "Subject"
DESCRIPTION_EXIF = "ImageDescription"
CAPTION_IPTC = "Caption-Abstract"
DESCRIPTION_XMP = "Description"
LOCATION_SHORT = "Location"
LOCATION_XMP_PHOTOSHOP = "XMP-photoshop:Location"

KEYWORD_FIELDS = (KEYWORDS_IPTC, SUBJECT_XMP)
DESCRIPTION_FIELDS = (DESCRIPTION_EXIF, CAPTION_IPTC, DESCRIPTION_XMP)
LOCATION_FIELDS = (LOCATION_SHORT, LOCATION_XMP_PHOTOSHOP)

# Highest priority first
DESCRIPTION_READ_PRIORITY = (DESCRIPTION_XMP, CAPTION_IPTC, DESCRIPTION_EXIF)
LOCATION_READ_PRIORITY = (LOCATION_SHORT, LOCATION_XMP_PHOTOSHOP)
KEYWORD_READ_PRIORITY = (KEYWORDS_IPTC, SUBJECT_XMP)

FieldSet = dict[str, Any]


@dataclass
class ImageMetadata:
    """Descriptive metadata exchanged with clients. All fields are optional."""

    tags: Optional[list[str]] = None
    description: Optional[str] = None
    people: Optional[list[str]] = None
    location: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "ImageMetadata":
        """Build from an already validated request payload."""
        data = data or {}
        tags = data.get("tags")
        people = data.get("people")
        return cls(
            tags=list(tags) if tags is not None else None,
            description=data.get("description"),
            people=list(people) if people is not None else None,
            location=data.get("location"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Only the fields that carry a value."""
        out: dict[str, Any] = {}
        if self.tags:
            out["tags"] = list(self.tags)
        if self.description:
            out["description"] = self.description
        if self.people:
            out["people"] = list(self.people)
        if self.location:
            out["location"] = self.location
        return out

    def keywords(self) -> list[str]:
        """Tags followed by people, deduplicated."""
        return dedupe_preserving_order([*(self.tags or []), *(self.people or [])])

    def is_empty(self) -> bool:
        return not self.to_dict()


def build_field_set(metadata: ImageMetadata) -> FieldSet:
    """Translate an app record into ExifTool tags. Empty fields are left out."""
    fields: FieldSet = {}
    keywords = metadata.keywords()
    if keywords:
        _set_keywords(fields, keywords)
    if metadata.description:
        _set_description(fields, metadata.description)
    if metadata.location:
        _set_location(fields, metadata.location)
    return fields


def merge_keywords(existing: Iterable[str], new: Iterable[str]) -> list[str]:
    """Existing values first in their order, then new values not already present."""
    return dedupe_preserving_order([*existing, *new])


def merge_with_existing(fields: FieldSet, incoming: ImageMetadata, existing: ImageMetadata) -> FieldSet:
    """
    Combine a field set with what is already on disk (non-overwrite writes).

    Keywords are merged additively when the request carries any; keyword
    fields are left alone otherwise. Description and location already on disk
    are carried forward when the request leaves them out.
    """
    merged: FieldSet = dict(fields)

    existing_keywords = existing.keywords()
    if existing_keywords and incoming.keywords():
        _set_keywords(merged, merge_keywords(existing_keywords, incoming.keywords()))

    if not incoming.description and existing.description:
        _set_description(merged, existing.description)

    if not incoming.location and existing.location:
        _set_location(merged, existing.location)

    return merged


def metadata_from_fields(raw: dict[str, Any]) -> ImageMetadata:
    """
    Apply read priority to an ExifTool record.

    - tags: Keywords if present, otherwise Subject; deduplicated
    - description: Description, then Caption-Abstract, then ImageDescription
    - location: Location, then XMP-photoshop:Location
    """
    raw = raw or {}
    result = ImageMetadata()

    for key in KEYWORD_READ_PRIORITY:
        values = _as_string_list(raw.get(key))
        if values:
            result.tags = dedupe_preserving_order(values)
            break

    result.description = _first_text(raw, DESCRIPTION_READ_PRIORITY)
    result.location = _first_text(raw, LOCATION_READ_PRIORITY)
    return result


def _set_keywords(fields: FieldSet, keywords: list[str]) -> None:
    for key in KEYWORD_FIELDS:
        fields[key] = list(keywords)


def _set_description(fields: FieldSet, description: str) -> None:
    for key in DESCRIPTION_FIELDS:
        fields[key] = description


def _set_location(fields: FieldSet, location: str) -> None:
    for key in LOCATION_FIELDS:
        fields[key] = location


def _as_string_list(value: Any) -> list[str]:
    # ExifTool returns a bare scalar for single-entry lists and numbers for numeric keywords.
    if value is None:
        return []
    items = value if isinstance(value, (list, tuple)) else [value]
    out: list[str] = []
    for item in items:
        if item is None:
            continue
        text = str(item).strip()
        if text:
            out.append(text)
    return out


def _first_text(raw: dict[str, Any], keys: Iterable[str]) -> Optional[str]:
    for key in keys:
        value = raw.get(key)
        if value is None:
            continue
        text = str(value)
        if text.strip():
            return text
    return None
