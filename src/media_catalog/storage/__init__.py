"""Content stores for ingested bytes."""

from media_catalog.storage.base import ContentStore, normalize_storage_path
from media_catalog.storage.filesystem import FilesystemContentStore
from media_catalog.storage.memory import InMemoryContentStore

__all__ = [
    "ContentStore",
    "FilesystemContentStore",
    "InMemoryContentStore",
    "normalize_storage_path",
]
