"""Folder resolution: map a human folder label to a stable folder id.

Lookup-then-create is not atomic. Two concurrent first uploads under the
same new label can both miss the lookup and both create a folder; later
lookups then pick the oldest. With ``deterministic_ids`` the id is derived
from the label, so concurrent creators collide on the primary key and the
loser adopts the winner's row instead.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Final
from uuid import UUID, uuid4, uuid5

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from media_catalog.errors import store_errors
from media_catalog.models.folder import FolderRecord

logger = logging.getLogger(__name__)

# Namespace for label-derived folder ids
FOLDER_NAMESPACE: Final[UUID] = UUID("6f1c7a52-2b8e-4f5e-9a43-0d9b1e7c2a61")

# Name reported for ids that have no folder record
UNKNOWN_FOLDER_NAME: Final[str] = "Unknown Folder"


def utcnow() -> datetime:
    return datetime.now(UTC)


class FolderResolver:
    """Resolve, name and list logical folders.

    Usage:
        async with session_factory() as session:
            folder_id = await FolderResolver(session).resolve("Spring Recital")
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        deterministic_ids: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session = session
        self._deterministic_ids = deterministic_ids
        self._clock = clock

    async def resolve(self, label: str) -> UUID | None:
        """Return the id of the folder named ``label``, creating it if absent.

        An empty label returns None: the file is uncategorized at the root.

        Raises:
            StoreUnavailable: If the document store cannot be reached.
        """
        label = label.strip()
        if not label:
            logger.debug("No folder label, using root")
            return None

        existing = await self.find_by_name(label)
        if existing is not None:
            logger.debug("Found existing folder '%s' with id %s", label, existing.folder_id)
            return existing.folder_id

        folder_id = uuid5(FOLDER_NAMESPACE, label) if self._deterministic_ids else uuid4()
        folder = FolderRecord(folder_id=folder_id, name=label, created_at=self._clock())

        with store_errors("create folder"):
            self._session.add(folder)
            try:
                await self._session.commit()
            except IntegrityError:
                # Only reachable with deterministic ids: a concurrent creator won
                await self._session.rollback()
                logger.info("Folder '%s' created concurrently, reusing %s", label, folder_id)
                return folder_id

        logger.info("Created new folder '%s' with id %s", label, folder_id)
        return folder_id

    async def find_by_name(self, label: str) -> FolderRecord | None:
        stmt = (
            select(FolderRecord)
            .where(FolderRecord.name == label)
            .order_by(FolderRecord.created_at, FolderRecord.folder_id)
            .limit(1)
        )
        with store_errors("folder lookup"):
            result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_name(self, folder_id: UUID | None) -> str:
        """Return the folder's display name.

        The root (None) has an empty name; ids without a record report
        ``UNKNOWN_FOLDER_NAME`` rather than failing.
        """
        if folder_id is None:
            return ""
        with store_errors("folder get"):
            folder = await self._session.get(FolderRecord, folder_id)
        if folder is None:
            return UNKNOWN_FOLDER_NAME
        return folder.name

    async def list_folders(self) -> list[FolderRecord]:
        """Return all folders, newest first."""
        stmt = select(FolderRecord).order_by(
            FolderRecord.created_at.desc(), FolderRecord.folder_id.desc()
        )
        with store_errors("folder list"):
            result = await self._session.execute(stmt)
        return list(result.scalars().all())
