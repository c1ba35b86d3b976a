"""Enumerations for the media-catalog data model."""

from __future__ import annotations

from enum import Enum


class Medium(str, Enum):
    """Top-level MIME category of a stored file."""

    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    TEXT = "text"
    BINARY = "binary"


class TypeFilter(str, Enum):
    """Restriction applied when listing a folder.

    IMAGE and VIDEO keep only records whose content type has that top-level
    MIME category; ALL applies no restriction.
    """

    ALL = "all"
    IMAGE = "image"
    VIDEO = "video"

    @classmethod
    def parse(cls, value: str | TypeFilter | None) -> TypeFilter:
        """Parse a query-string value; unknown or empty values mean ALL."""
        if isinstance(value, TypeFilter):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.ALL

    @property
    def medium(self) -> Medium | None:
        """Medium this filter keeps; None for ALL."""
        if self is TypeFilter.ALL:
            return None
        return Medium(self.value)

    @property
    def mime_prefix(self) -> str | None:
        medium = self.medium
        return f"{medium.value}/" if medium is not None else None


class IngestOutcome(str, Enum):
    """What an ingestion call did."""

    INGESTED = "ingested"  # New blob and record written
    DUPLICATE = "duplicate"  # Identical content already catalogued; nothing written
