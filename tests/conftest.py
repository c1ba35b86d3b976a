"""Shared pytest fixtures for media-catalog tests."""

from __future__ import annotations

import io
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pytest
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from media_catalog.config import Settings
from media_catalog.context import CatalogContext, create_context
from media_catalog.models import Base
from media_catalog.services.catalog_writer import CatalogWriter
from media_catalog.storage.memory import InMemoryContentStore

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


# In-memory SQLite shared across sessions through a single static connection
TEST_DATABASE_URL = "sqlite+aiosqlite://"

TEST_MEDIA_URL = "http://test/media"


class StepClock:
    """Deterministic clock: every call is one second after the previous one."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)):
        self.now = start or datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
        self.step = step

    def __call__(self) -> datetime:
        self.now += self.step
        return self.now


def create_test_image(
    width: int = 16,
    height: int = 16,
    format: str = "JPEG",
    color: str | tuple[int, int, int] = "red",
) -> bytes:
    """Create a minimal test image."""
    img = Image.new("RGB", (width, height), color=color)
    buffer = io.BytesIO()
    img.save(buffer, format=format)
    return buffer.getvalue()


def create_test_video(seed: int = 0) -> bytes:
    """Create bytes that sniff as MP4 (an ftyp box followed by filler)."""
    return b"\x00\x00\x00\x18ftypisom\x00\x00\x02\x00isomiso2" + seed.to_bytes(4, "big") * 8


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=TEST_DATABASE_URL,
        blob_root=tmp_path / "blobs",
        public_base_url=TEST_MEDIA_URL,
        log_level="DEBUG",
    )


@pytest.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a test database engine with all tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def content_store() -> InMemoryContentStore:
    return InMemoryContentStore(TEST_MEDIA_URL)


@pytest.fixture
async def catalog(
    test_settings: Settings,
    test_engine: AsyncEngine,
    content_store: InMemoryContentStore,
) -> AsyncGenerator[CatalogContext, None]:
    """A catalog context over the in-memory database and blob store."""
    ctx = create_context(test_settings, engine=test_engine, content_store=content_store)
    yield ctx
    await ctx.aclose()


@pytest.fixture
async def db_session(catalog: CatalogContext) -> AsyncGenerator[AsyncSession, None]:
    async with catalog.session_factory() as session:
        yield session


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


# Type aliases for factory fixtures
MakeWriter = Callable[..., CatalogWriter]


@pytest.fixture
def make_writer(
    catalog: CatalogContext,
    db_session: AsyncSession,
    content_store: InMemoryContentStore,
    clock: StepClock,
) -> MakeWriter:
    """Factory fixture for writers sharing the test session, store and clock."""

    def _make(
        *,
        session: AsyncSession | None = None,
        store: Any = None,
        deterministic_folder_ids: bool = False,
    ) -> CatalogWriter:
        return CatalogWriter(
            session or db_session,
            store if store is not None else content_store,
            notifier=catalog.broadcaster,
            deterministic_folder_ids=deterministic_folder_ids,
            clock=clock,
        )

    return _make
