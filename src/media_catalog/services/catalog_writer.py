"""Catalog writer: the content-addressed ingestion pipeline.

ingest = fingerprint → dedup lookup → resolve folder → store blob → write record

Identical bytes are stored once across the whole catalog. A repeat ingest,
from any folder and under any path, returns the first record untouched;
the folder of the repeat submission is discarded.

Blob store and document store are not written transactionally. If the
record write fails after the blob was stored, the blob is deleted again
(best effort) and the failure is surfaced as ``PersistFailure``, or as
``OrphanedBlobFailure`` when that delete fails too.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import NoReturn
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from media_catalog.errors import (
    FileNotFound,
    InputInvalid,
    OrphanedBlobFailure,
    PersistFailure,
    store_errors,
)
from media_catalog.hashing import content_fingerprint
from media_catalog.models.enums import IngestOutcome
from media_catalog.models.file_record import FileRecord
from media_catalog.notifications import (
    FILE_ADDED,
    FILE_DELETED,
    FILE_UPDATED,
    Broadcaster,
    change_event,
)
from media_catalog.services.folder_resolver import FolderResolver, utcnow
from media_catalog.storage.base import ContentStore, normalize_storage_path
from media_catalog.utils.content_type import sniff_content_type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestResult:
    """Outcome of one successful ingest call."""

    outcome: IngestOutcome
    record: FileRecord

    @property
    def retrieval_url(self) -> str:
        return self.record.retrieval_url

    @property
    def is_duplicate(self) -> bool:
        return self.outcome is IngestOutcome.DUPLICATE


def file_name_from_path(relative_path: str) -> str:
    """Return the last segment of a slash-separated relative path."""
    return relative_path.rstrip("/").rsplit("/", 1)[-1]


def build_storage_path(folder_id: UUID | None, relative_path: str) -> str:
    """Join folder id and relative path; root files keep the bare relative path."""
    if folder_id is None:
        return normalize_storage_path(relative_path)
    return normalize_storage_path(f"{folder_id}/{relative_path}")


class CatalogWriter:
    """Write-side operations on the catalog.

    Usage:
        async with session_factory() as session:
            writer = CatalogWriter(session, content_store, notifier=broadcaster)
            result = await writer.ingest("Spring Recital", "day1/IMG_0001.jpg", data)
            print(result.retrieval_url)
    """

    def __init__(
        self,
        session: AsyncSession,
        content_store: ContentStore,
        *,
        notifier: Broadcaster | None = None,
        deterministic_folder_ids: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session = session
        self._store = content_store
        self._notifier = notifier
        self._clock = clock
        self._folders = FolderResolver(
            session, deterministic_ids=deterministic_folder_ids, clock=clock
        )

    async def ingest(
        self,
        folder_label: str,
        relative_path: str,
        data: bytes,
        content_type: str | None = None,
        *,
        content_hash: str | None = None,
    ) -> IngestResult:
        """Ingest one file.

        Args:
            folder_label: Human folder label; empty means the root.
            relative_path: Path of the file below the folder, e.g. ``day1/a.jpg``.
            data: File content.
            content_type: MIME type; sniffed from ``data`` when omitted.
            content_hash: Fingerprint of ``data`` if the caller already computed
                it while streaming the upload.

        Returns:
            The new record (INGESTED) or the existing one with identical
            content (DUPLICATE).

        Raises:
            InputInvalid: If ``relative_path`` is empty or escapes its folder.
            StoreUnavailable: If the document store cannot be reached.
            BlobWriteFailure: If the content store rejects the bytes.
            PersistFailure: If the record could not be written (blob removed).
            OrphanedBlobFailure: If the record could not be written and the
                blob could not be removed either.
        """
        relative_path = relative_path.replace("\\", "/").strip().strip("/")
        if not relative_path:
            raise InputInvalid("relative_path is required")
        relative_path = normalize_storage_path(relative_path)

        fingerprint = content_hash or content_fingerprint(data)

        # 1. Dedup on content, catalog-wide
        existing = await self.find_by_hash(fingerprint)
        if existing is not None:
            logger.info(
                "File with hash %s already exists as %s, returning existing URL",
                fingerprint[:12], existing.file_id,
            )
            return IngestResult(IngestOutcome.DUPLICATE, existing)

        # 2. Folder (may commit a new FolderRecord on its own)
        folder_id = await self._folders.resolve(folder_label)

        name = file_name_from_path(relative_path)
        if not content_type:
            content_type = sniff_content_type(data, filename=name)
        storage_path = build_storage_path(folder_id, relative_path)

        # 3. Blob
        address = await self._store.put(storage_path, data, content_type)
        try:
            await self._store.make_public(address)
        except Exception as e:
            # The blob is stored and addressable; only public access degraded
            logger.warning("Could not grant public read for %s: %s", address, e)
        retrieval_url = self._store.public_url(address)

        # 4. Record
        record = FileRecord(
            file_id=uuid4(),
            name=name,
            content_type=content_type,
            storage_path=address,
            retrieval_url=retrieval_url,
            folder_id=folder_id,
            content_hash=fingerprint,
            size_bytes=len(data),
            created_at=self._clock(),
        )
        try:
            self._session.add(record)
            await self._session.commit()
        except (SQLAlchemyError, OSError) as e:
            await self._compensate(address, e)

        logger.info(
            "Ingested %s into folder %s as %s (%s, %d bytes)",
            relative_path, folder_id, record.file_id, content_type, len(data),
        )
        self._notify(FILE_ADDED, record)
        return IngestResult(IngestOutcome.INGESTED, record)

    async def find_by_hash(self, content_hash: str) -> FileRecord | None:
        """Return the oldest record with this fingerprint, if any."""
        stmt = (
            select(FileRecord)
            .where(FileRecord.content_hash == content_hash)
            .order_by(FileRecord.created_at, FileRecord.file_id)
            .limit(1)
        )
        with store_errors("dedup lookup"):
            result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def correct_content_type(self, file_id: UUID, content_type: str) -> FileRecord:
        """Replace a record's content type, the only field mutable after creation.

        Raises:
            InputInvalid: If ``content_type`` is empty.
            FileNotFound: If no record has ``file_id``.
        """
        content_type = content_type.strip()
        if not content_type:
            raise InputInvalid("content_type is required")

        record = await self._get(file_id)
        record.content_type = content_type
        with store_errors("content type update"):
            await self._session.commit()

        logger.info("File %s content type updated to %s", file_id, content_type)
        self._notify(FILE_UPDATED, record)
        return record

    async def delete(self, file_id: UUID) -> None:
        """Delete a file's blob and then its record.

        Raises:
            FileNotFound: If no record has ``file_id``.
        """
        record = await self._get(file_id)
        await self._store.delete(record.storage_path)
        with store_errors("file delete"):
            await self._session.delete(record)
            await self._session.commit()

        logger.info("File %s deleted (%s)", file_id, record.storage_path)
        self._notify(FILE_DELETED, record)

    async def _get(self, file_id: UUID) -> FileRecord:
        with store_errors("file get"):
            record = await self._session.get(FileRecord, file_id)
        if record is None:
            raise FileNotFound(f"File {file_id} not found")
        return record

    async def _compensate(self, address: str, cause: Exception) -> NoReturn:
        """Undo the blob write after a failed record write, then raise."""
        logger.error(
            "Failed to save file record for %s: %s. Attempting to delete blob.", address, cause
        )
        try:
            await self._session.rollback()
        except SQLAlchemyError as e:
            logger.warning("Rollback after failed record write also failed: %s", e)

        try:
            await self._store.delete(address)
        except Exception as e:
            logger.error("Failed to delete orphaned blob %s: %s", address, e)
            raise OrphanedBlobFailure(
                f"Failed to save file record for {address}: {cause}", storage_path=address
            ) from cause

        raise PersistFailure(
            f"Failed to save file record for {address}: {cause}", storage_path=address
        ) from cause

    def _notify(self, kind: str, record: FileRecord) -> None:
        if self._notifier is not None:
            self._notifier.publish(
                change_event(kind, folder_id=record.folder_id, file_id=record.file_id)
            )
