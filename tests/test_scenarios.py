"""End-to-end catalog scenarios across ingestion, querying and paging.

Run with: pytest tests/test_scenarios.py -v
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from conftest import create_test_image
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from media_catalog.context import CatalogContext
from media_catalog.models import FileRecord, FolderRecord, IngestOutcome
from media_catalog.pagination import CatalogBrowser
from media_catalog.services.catalog_query import CatalogQueryEngine

if TYPE_CHECKING:
    from conftest import MakeWriter


class TestFirstUploadsIntoNewFolder:
    """Empty folder E1; A, then B with A's bytes, then distinct C."""

    async def test_dedup_then_newest_first_paging(
        self, make_writer: MakeWriter, db_session: AsyncSession
    ) -> None:
        writer = make_writer()
        bytes_a = create_test_image(color="red")
        bytes_c = create_test_image(color="green")

        a = await writer.ingest("E1", "a.jpg", bytes_a)
        assert a.outcome is IngestOutcome.INGESTED
        f1 = a.record.folder_id
        folder = await db_session.get(FolderRecord, f1)
        assert folder is not None
        assert folder.name == "E1"
        r1 = a.record

        b = await writer.ingest("E1", "other/path/b.jpg", bytes_a)
        assert b.outcome is IngestOutcome.DUPLICATE
        assert b.retrieval_url == r1.retrieval_url
        count = await db_session.execute(select(func.count()).select_from(FileRecord))
        assert count.scalar_one() == 1

        c = await writer.ingest("E1", "c.jpg", bytes_c)
        assert c.outcome is IngestOutcome.INGESTED
        assert c.record.folder_id == f1
        r2 = c.record

        engine = CatalogQueryEngine(db_session)
        page1 = await engine.list_files(f1, 1)
        assert [r.file_id for r in page1.records] == [r2.file_id]
        assert page1.next_cursor != ""

        page2 = await engine.list_files(f1, 1, page1.next_cursor)
        assert [r.file_id for r in page2.records] == [r1.file_id]
        assert page2.next_cursor == ""

    async def test_browser_sees_the_same_pages(
        self, make_writer: MakeWriter, catalog: CatalogContext
    ) -> None:
        writer = make_writer()
        r1 = (await writer.ingest("E1", "a.jpg", create_test_image(color="red"))).record
        await writer.ingest("E1", "b.jpg", create_test_image(color="red"))
        r2 = (await writer.ingest("E1", "c.jpg", create_test_image(color="green"))).record

        browser = CatalogBrowser(catalog, r1.folder_id, page_size=1)
        await browser.open()
        assert [r.file_id for r in browser.cache.records] == [r2.file_id]
        assert browser.cache.has_next

        assert await browser.cache.go_to_next()
        assert [r.file_id for r in browser.cache.records] == [r1.file_id]
        assert not browser.cache.has_next
        assert browser.cache.estimated_page_count == 2


class TestRepeatBatchUpload:
    async def test_second_run_ingests_nothing(
        self, make_writer: MakeWriter, db_session: AsyncSession
    ) -> None:
        writer = make_writer()
        batch = {f"day1/{i}.txt": f"programme page {i}".encode() for i in range(4)}

        first = [await writer.ingest("Gala", path, data) for path, data in batch.items()]
        second = [await writer.ingest("Gala", path, data) for path, data in batch.items()]

        assert all(r.outcome is IngestOutcome.INGESTED for r in first)
        assert all(r.outcome is IngestOutcome.DUPLICATE for r in second)
        assert [r.record.file_id for r in first] == [r.record.file_id for r in second]
        count = await db_session.execute(select(func.count()).select_from(FileRecord))
        assert count.scalar_one() == 4
