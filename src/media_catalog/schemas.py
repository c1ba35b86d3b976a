"""Wire schemas for the catalog API and the page type shared by query and pagination."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, TypeVar
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_serializer, field_validator

RecordT = TypeVar("RecordT")

# Folder path segment that addresses uncategorized (root) files
ROOT_FOLDER_SEGMENT = "root"


@dataclass
class Page(Generic[RecordT]):
    """One page of a forward-only listing.

    ``next_cursor`` is empty on the last page.
    """

    records: list[RecordT] = field(default_factory=list)
    next_cursor: str = ""

    @property
    def has_next(self) -> bool:
        return bool(self.next_cursor)


class _CatalogModel(BaseModel):
    """Validates from ORM rows or API JSON; serializes to the camelCase API shape."""

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    def to_api(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class FileOut(_CatalogModel):
    """A file record as returned by the API."""

    id: UUID = Field(validation_alias=AliasChoices("file_id", "id"), serialization_alias="id")
    name: str
    mime_type: str = Field(
        validation_alias=AliasChoices("content_type", "mimeType"),
        serialization_alias="mimeType",
    )
    storage_path: str = Field(
        validation_alias=AliasChoices("storage_path", "storagePath"),
        serialization_alias="storagePath",
    )
    download_url: str = Field(
        validation_alias=AliasChoices("retrieval_url", "downloadUrl"),
        serialization_alias="downloadUrl",
    )
    folder_id: UUID | None = Field(
        default=None,
        validation_alias=AliasChoices("folder_id", "folderId"),
        serialization_alias="folderId",
    )
    hash: str = Field(validation_alias=AliasChoices("content_hash", "hash"))
    size_bytes: int = Field(
        default=0,
        validation_alias=AliasChoices("size_bytes", "sizeBytes"),
        serialization_alias="sizeBytes",
    )
    created_at: datetime = Field(
        validation_alias=AliasChoices("created_at", "createdAt"),
        serialization_alias="createdAt",
    )

    @field_validator("folder_id", mode="before")
    @classmethod
    def _root_folder(cls, value: Any) -> Any:
        # Root files carry "" on the wire
        return value or None

    @field_serializer("folder_id")
    def _serialize_folder_id(self, folder_id: UUID | None) -> str:
        return str(folder_id) if folder_id is not None else ""


class FolderOut(_CatalogModel):
    """A folder record as returned by the API."""

    id: UUID = Field(validation_alias=AliasChoices("folder_id", "id"), serialization_alias="id")
    name: str
    created_at: datetime = Field(
        validation_alias=AliasChoices("created_at", "createdAt"),
        serialization_alias="createdAt",
    )


class FileMetadataUpdate(BaseModel):
    """Body of the content-type correction request."""

    id: UUID
    mime_type: str
