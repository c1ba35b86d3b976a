"""Catalog query engine: newest-first folder listings with opaque cursors.

Ordering is ``created_at DESC`` with ``file_id DESC`` as the tiebreak, so a
cursor chain never skips or repeats a record unless new records land
exactly on a page boundary between fetches. A cursor names the last record
of the previous page (keyset pagination: "continue strictly after this
record"). It is bound to the folder and filter it was issued for; replaying
it against another combination raises ``InvalidCursor``.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from media_catalog.errors import InputInvalid, InvalidCursor, store_errors
from media_catalog.models.enums import TypeFilter
from media_catalog.models.file_record import FileRecord
from media_catalog.schemas import Page

logger = logging.getLogger(__name__)

FilePage = Page[FileRecord]


@dataclass(frozen=True)
class CursorToken:
    """Decoded form of a page cursor."""

    folder_id: UUID | None
    type_filter: TypeFilter
    boundary_id: UUID

    def encode(self) -> str:
        payload = {
            "f": str(self.folder_id) if self.folder_id is not None else "",
            "t": self.type_filter.value,
            "b": self.boundary_id.hex,
        }
        raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    @classmethod
    def decode(cls, cursor: str) -> CursorToken:
        """Parse a cursor string.

        Raises:
            InvalidCursor: If the token is not one this engine issued.
        """
        try:
            padded = cursor + "=" * (-len(cursor) % 4)
            payload = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
            folder, type_value, boundary = payload["f"], payload["t"], payload["b"]
            if not all(isinstance(v, str) for v in (folder, type_value, boundary)):
                raise TypeError("cursor fields must be strings")
            return cls(
                folder_id=UUID(folder) if folder else None,
                type_filter=TypeFilter(type_value),
                boundary_id=UUID(boundary),
            )
        except (binascii.Error, UnicodeError, ValueError, KeyError, TypeError) as e:
            raise InvalidCursor(f"Malformed cursor: {cursor!r}") from e


class CatalogQueryEngine:
    """List catalog records for one folder.

    Usage:
        async with session_factory() as session:
            engine = CatalogQueryEngine(session)
            page = await engine.list_files(folder_id, page_size=20)
            more = await engine.list_files(folder_id, 20, cursor=page.next_cursor)
    """

    def __init__(self, session: AsyncSession, *, max_page_size: int = 1000) -> None:
        self._session = session
        self._max_page_size = max_page_size

    async def list_files(
        self,
        folder_id: UUID | None,
        page_size: int,
        cursor: str = "",
        type_filter: TypeFilter | str = TypeFilter.ALL,
    ) -> FilePage:
        """Return up to ``page_size`` records and the cursor for the next page.

        Args:
            folder_id: Folder to list; None lists root (uncategorized) files.
            page_size: Maximum records to return (clamped to the configured maximum).
            cursor: Empty for the first page, else a ``next_cursor`` from a
                previous call with the same folder and filter.
            type_filter: ``all``, ``image`` or ``video``.

        Raises:
            InputInvalid: If ``page_size`` is less than 1.
            InvalidCursor: If the cursor is malformed, was issued for another
                folder/filter, or its boundary record no longer exists.
            StoreUnavailable: If the document store cannot be reached.
        """
        if page_size < 1:
            raise InputInvalid(f"page_size must be positive, got {page_size}")
        page_size = min(page_size, self._max_page_size)
        type_filter = TypeFilter.parse(type_filter)

        stmt = select(FileRecord)
        if folder_id is None:
            stmt = stmt.where(FileRecord.folder_id.is_(None))
        else:
            stmt = stmt.where(FileRecord.folder_id == folder_id)

        prefix = type_filter.mime_prefix
        if prefix is not None:
            stmt = stmt.where(FileRecord.content_type.startswith(prefix, autoescape=True))

        if cursor:
            boundary = await self._resolve_boundary(cursor, folder_id, type_filter)
            stmt = stmt.where(
                or_(
                    FileRecord.created_at < boundary.created_at,
                    and_(
                        FileRecord.created_at == boundary.created_at,
                        FileRecord.file_id < boundary.file_id,
                    ),
                )
            )

        # One extra row tells us whether another page exists
        stmt = stmt.order_by(FileRecord.created_at.desc(), FileRecord.file_id.desc()).limit(
            page_size + 1
        )

        with store_errors("list files"):
            result = await self._session.execute(stmt)
        rows = list(result.scalars().all())

        records = rows[:page_size]
        next_cursor = ""
        if len(rows) > page_size:
            next_cursor = CursorToken(folder_id, type_filter, records[-1].file_id).encode()

        logger.debug(
            "Listed %d file(s) for folder %s (filter=%s, cursor=%s, more=%s)",
            len(records), folder_id, type_filter.value, bool(cursor), bool(next_cursor),
        )
        return FilePage(records=records, next_cursor=next_cursor)

    async def get_file(self, file_id: UUID) -> FileRecord | None:
        with store_errors("file get"):
            return await self._session.get(FileRecord, file_id)

    async def find_by_storage_path(self, storage_path: str) -> FileRecord | None:
        stmt = select(FileRecord).where(FileRecord.storage_path == storage_path).limit(1)
        with store_errors("storage path lookup"):
            result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def _resolve_boundary(
        self, cursor: str, folder_id: UUID | None, type_filter: TypeFilter
    ) -> FileRecord:
        token = CursorToken.decode(cursor)
        if token.folder_id != folder_id or token.type_filter is not type_filter:
            raise InvalidCursor(
                f"Cursor was issued for folder {token.folder_id} / filter "
                f"{token.type_filter.value}, not {folder_id} / {type_filter.value}"
            )

        with store_errors("cursor lookup"):
            boundary = await self._session.get(FileRecord, token.boundary_id)
        if boundary is None:
            logger.warning("Cursor boundary record %s no longer exists", token.boundary_id)
            raise InvalidCursor(f"Cursor boundary record {token.boundary_id} was deleted")
        return boundary
