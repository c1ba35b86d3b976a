"""Catalog services: folder resolution, ingestion, and queries."""

from media_catalog.services.catalog_query import CatalogQueryEngine, CursorToken, FilePage
from media_catalog.services.catalog_writer import CatalogWriter, IngestResult
from media_catalog.services.folder_resolver import FolderResolver

__all__ = [
    "CatalogQueryEngine",
    "CatalogWriter",
    "CursorToken",
    "FilePage",
    "FolderResolver",
    "IngestResult",
]
