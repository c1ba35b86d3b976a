"""Clients for talking to a running catalog service."""

from media_catalog.clients.catalog_api import CatalogApiClient, UploadResult

__all__ = ["CatalogApiClient", "UploadResult"]
