"""Async HTTP client for the catalog API, used by viewers and uploaders."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any
from uuid import UUID

import httpx

from media_catalog.config import settings
from media_catalog.errors import (
    CatalogError,
    FileNotFound,
    InputInvalid,
    InvalidCursor,
    StoreUnavailable,
)
from media_catalog.models.enums import IngestOutcome, TypeFilter
from media_catalog.schemas import ROOT_FOLDER_SEGMENT, FileOut, FolderOut, Page

logger = logging.getLogger(__name__)

_ERROR_CODES: dict[str, type[CatalogError]] = {
    "invalid_cursor": InvalidCursor,
    "input_invalid": InputInvalid,
    "file_not_found": FileNotFound,
    "store_unavailable": StoreUnavailable,
}


@dataclass(frozen=True)
class UploadResult:
    download_url: str
    outcome: IngestOutcome


class CatalogApiClient:
    """Async client for the catalog HTTP API.

    Implements the same ``list_files`` signature as the in-process context,
    so a ``CatalogBrowser`` can page over either.
    """

    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        base_url: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=timeout,
        )
        self._owns_client = client is None

    async def __aenter__(self) -> CatalogApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def list_folders(self) -> list[FolderOut]:
        body = await self._request("GET", "/api/folders")
        return [FolderOut.model_validate(item) for item in body["data"]]

    async def get_folder_name(self, folder_id: UUID | None) -> str:
        body = await self._request("GET", f"/api/folder-name/{_folder_segment(folder_id)}")
        return body["name"]

    async def list_files(
        self,
        folder_id: UUID | None,
        page_size: int,
        cursor: str = "",
        type_filter: TypeFilter | str = TypeFilter.ALL,
    ) -> Page[FileOut]:
        params: dict[str, Any] = {
            "pageSize": page_size,
            "filter": TypeFilter.parse(type_filter).value,
        }
        if cursor:
            params["pageToken"] = cursor
        body = await self._request(
            "GET", f"/api/files/{_folder_segment(folder_id)}", params=params
        )
        return Page(
            records=[FileOut.model_validate(item) for item in body["data"]],
            next_cursor=body.get("nextPageToken") or "",
        )

    async def upload_file(
        self,
        folder_label: str,
        relative_path: str,
        data: bytes,
        content_type: str | None = None,
    ) -> UploadResult:
        filename = relative_path.rsplit("/", 1)[-1]
        form = {
            "folder_name": folder_label,
            "relative_path": relative_path,
            "mime_type": content_type or "",
        }
        files = {"file": (filename, data, content_type or "application/octet-stream")}
        body = await self._request("POST", "/api/upload/file", data=form, files=files)
        return UploadResult(
            download_url=body["download_url"], outcome=IngestOutcome(body["status"])
        )

    async def correct_content_type(self, file_id: UUID, content_type: str) -> None:
        await self._request(
            "POST",
            "/api/update/file-metadata",
            json={"id": str(file_id), "mime_type": content_type},
        )

    async def delete_file(self, file_id: UUID) -> None:
        await self._request("DELETE", f"/api/files/record/{file_id}")

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        start_time = time.time()
        response = await self._client.request(method, url, **kwargs)
        elapsed = (time.time() - start_time) * 1000  # ms
        logger.debug("[API] %s %s → %d (%.0fms)", method, url, response.status_code, elapsed)

        if response.is_success:
            return response.json()

        error = _error_from_response(response)
        if error is not None:
            raise error
        response.raise_for_status()
        return {}


def _folder_segment(folder_id: UUID | None) -> str:
    return str(folder_id) if folder_id is not None else ROOT_FOLDER_SEGMENT


def _error_from_response(response: httpx.Response) -> CatalogError | None:
    """Map an API error body back onto the catalog error taxonomy."""
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    error_cls = _ERROR_CODES.get(body.get("code", ""))
    if error_cls is None:
        return None
    return error_cls(body.get("error", response.reason_phrase))
