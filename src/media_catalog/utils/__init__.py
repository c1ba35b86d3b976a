"""Utility modules for media-catalog."""

from media_catalog.utils.content_type import (
    DEFAULT_CONTENT_TYPE,
    medium_of,
    sniff_content_type,
    sniff_content_type_from_path,
)

__all__ = [
    "DEFAULT_CONTENT_TYPE",
    "medium_of",
    "sniff_content_type",
    "sniff_content_type_from_path",
]
