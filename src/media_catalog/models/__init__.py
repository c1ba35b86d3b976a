"""Database models for media-catalog."""

from media_catalog.models.base import Base
from media_catalog.models.enums import IngestOutcome, Medium, TypeFilter
from media_catalog.models.file_record import FileRecord
from media_catalog.models.folder import FolderRecord

__all__ = [
    "Base",
    "FileRecord",
    "FolderRecord",
    "IngestOutcome",
    "Medium",
    "TypeFilter",
]
