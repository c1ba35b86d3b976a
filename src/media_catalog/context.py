"""Process-wide handles for the document store, blob store and notifier.

A ``CatalogContext`` is built once at startup, passed to whatever needs
the stores, treated as read-only while serving, and closed at shutdown.
Each catalog operation opens its own short-lived session from it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from media_catalog.config import Settings
from media_catalog.config import settings as default_settings
from media_catalog.db import create_engine, create_session_factory, init_db
from media_catalog.models.enums import TypeFilter
from media_catalog.notifications import Broadcaster
from media_catalog.services.catalog_query import CatalogQueryEngine, FilePage
from media_catalog.services.catalog_writer import CatalogWriter
from media_catalog.services.folder_resolver import FolderResolver
from media_catalog.storage.base import ContentStore
from media_catalog.storage.filesystem import FilesystemContentStore

logger = logging.getLogger(__name__)


@dataclass
class CatalogContext:
    """Explicit dependencies shared by the catalog services."""

    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    content_store: ContentStore
    broadcaster: Broadcaster

    def writer(self, session: AsyncSession) -> CatalogWriter:
        return CatalogWriter(
            session,
            self.content_store,
            notifier=self.broadcaster,
            deterministic_folder_ids=self.settings.deterministic_folder_ids,
        )

    def query_engine(self, session: AsyncSession) -> CatalogQueryEngine:
        return CatalogQueryEngine(session, max_page_size=self.settings.max_page_size)

    def folders(self, session: AsyncSession) -> FolderResolver:
        return FolderResolver(session, deterministic_ids=self.settings.deterministic_folder_ids)

    async def list_files(
        self,
        folder_id: UUID | None,
        page_size: int,
        cursor: str = "",
        type_filter: TypeFilter | str = TypeFilter.ALL,
    ) -> FilePage:
        """Run one listing query in its own session (in-process page source)."""
        async with self.session_factory() as session:
            return await self.query_engine(session).list_files(
                folder_id, page_size, cursor, type_filter
            )

    async def init_db(self) -> None:
        await init_db(self.engine)

    async def aclose(self) -> None:
        self.broadcaster.close()
        await self.engine.dispose()
        logger.info("Catalog context closed")


def create_context(
    settings: Settings | None = None,
    *,
    engine: AsyncEngine | None = None,
    content_store: ContentStore | None = None,
) -> CatalogContext:
    """Build a context from settings; ``engine``/``content_store`` override the defaults."""
    settings = settings or default_settings
    engine = engine or create_engine(settings)
    if content_store is None:
        content_store = FilesystemContentStore(settings.blob_root, settings.public_base_url)
    return CatalogContext(
        settings=settings,
        engine=engine,
        session_factory=create_session_factory(engine),
        content_store=content_store,
        broadcaster=Broadcaster(settings.notification_queue_size),
    )
