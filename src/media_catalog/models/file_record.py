"""FileRecord model: one ingested file."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from media_catalog.models.base import Base

if TYPE_CHECKING:
    from media_catalog.models.folder import FolderRecord


class FileRecord(Base):
    """Catalog entry for one stored blob.

    Everything except ``content_type`` is immutable after creation.
    ``content_hash`` is the deduplication key across the whole catalog, not
    per folder: identical bytes uploaded into a second folder resolve to the
    record created under the first one.

    ``folder_id`` is NULL for files uploaded without a folder label.
    """

    __tablename__ = "files"
    __table_args__ = (
        # Listing a folder newest-first
        Index("ix_files_folder_id_created_at", "folder_id", "created_at"),
    )

    file_id: Mapped[UUID] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(1024))
    content_type: Mapped[str] = mapped_column(String(255))
    storage_path: Mapped[str] = mapped_column(String(2048))
    retrieval_url: Mapped[str] = mapped_column(String(4096))
    folder_id: Mapped[UUID | None] = mapped_column(ForeignKey("folders.folder_id"))
    content_hash: Mapped[str] = mapped_column(String(64), index=True)
    size_bytes: Mapped[int] = mapped_column(BigInteger, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    # Relationships
    folder: Mapped[FolderRecord | None] = relationship(back_populates="files")
