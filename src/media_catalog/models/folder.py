"""Folder model: a logical grouping of files."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from media_catalog.models.base import Base

if TYPE_CHECKING:
    from media_catalog.models.file_record import FileRecord


class FolderRecord(Base):
    """A logical folder, independent of any directory layout in the blob store.

    ``name`` is the human label (e.g. an event name). It is indexed but not
    unique: two concurrent first uploads under a new label may both create
    a folder. Lookups by name always pick the oldest.
    """

    __tablename__ = "folders"

    folder_id: Mapped[UUID] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(512), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    # Relationships
    files: Mapped[list[FileRecord]] = relationship(back_populates="folder")
