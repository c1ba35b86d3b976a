"""FastAPI application for media-catalog."""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated, Any
from uuid import UUID

from fastapi import (
    APIRouter,
    Depends,
    FastAPI,
    File,
    Form,
    Query,
    Request,
    UploadFile,
    WebSocket,
    WebSocketDisconnect,
)
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.ext.asyncio import AsyncSession

from media_catalog import __version__
from media_catalog.config import Settings
from media_catalog.config import settings as default_settings
from media_catalog.context import CatalogContext, create_context
from media_catalog.errors import (
    CatalogError,
    FileNotFound,
    InputInvalid,
    InvalidCursor,
    StoreUnavailable,
)
from media_catalog.hashing import CHUNK_SIZE, read_and_fingerprint
from media_catalog.logging_setup import configure_logging
from media_catalog.models.enums import TypeFilter
from media_catalog.schemas import ROOT_FOLDER_SEGMENT, FileMetadataUpdate, FileOut, FolderOut

logger = logging.getLogger(__name__)

_STATUS_CODES: dict[type[CatalogError], int] = {
    InputInvalid: 400,
    InvalidCursor: 400,
    FileNotFound: 404,
    StoreUnavailable: 503,
}

# Sent when the broadcaster drops a change feed subscriber ("try again later")
CHANGE_FEED_CLOSED = 1013

router = APIRouter()


def error_code(error: CatalogError) -> str:
    """``InvalidCursor`` → ``invalid_cursor``."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", type(error).__name__).lower()


def get_context(request: Request) -> CatalogContext:
    return request.app.state.context


async def get_session(
    context: Annotated[CatalogContext, Depends(get_context)],
) -> AsyncIterator[AsyncSession]:
    """Dependency for getting one async session per request."""
    async with context.session_factory() as session:
        yield session


ContextDep = Annotated[CatalogContext, Depends(get_context)]
SessionDep = Annotated[AsyncSession, Depends(get_session)]


def parse_folder_id(raw: str) -> UUID | None:
    """Path segment → folder id; ``root`` addresses uncategorized files."""
    raw = raw.strip()
    if raw in ("", ROOT_FOLDER_SEGMENT):
        return None
    try:
        return UUID(raw)
    except ValueError as e:
        raise InputInvalid(f"Invalid folder id: {raw!r}") from e


@router.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


@router.get("/api/folders")
async def list_folders(context: ContextDep, session: SessionDep) -> dict[str, Any]:
    folders = await context.folders(session).list_folders()
    return {"data": [FolderOut.model_validate(folder).to_api() for folder in folders]}


@router.get("/api/folder-name/{folder_id}")
async def get_folder_name(
    folder_id: str, context: ContextDep, session: SessionDep
) -> dict[str, str]:
    name = await context.folders(session).get_name(parse_folder_id(folder_id))
    return {"name": name}


@router.get("/api/files/{folder_id}")
async def list_files(
    folder_id: str,
    context: ContextDep,
    session: SessionDep,
    page_size: Annotated[int | None, Query(alias="pageSize")] = None,
    page_token: Annotated[str, Query(alias="pageToken")] = "",
    filter_type: Annotated[str, Query(alias="filter")] = TypeFilter.ALL.value,
) -> dict[str, Any]:
    """List a folder newest-first; ``nextPageToken`` is empty on the last page."""
    if page_size is None or page_size < 1:
        page_size = context.settings.default_page_size
    page = await context.query_engine(session).list_files(
        parse_folder_id(folder_id),
        page_size,
        cursor=page_token,
        type_filter=TypeFilter.parse(filter_type),
    )
    return {
        "data": [FileOut.model_validate(record).to_api() for record in page.records],
        "nextPageToken": page.next_cursor,
    }


async def _upload_chunks(upload: UploadFile) -> AsyncIterator[bytes]:
    while chunk := await upload.read(CHUNK_SIZE):
        yield chunk


@router.post("/api/upload/file")
async def upload_file(
    context: ContextDep,
    session: SessionDep,
    file: Annotated[UploadFile, File()],
    relative_path: Annotated[str, Form()],
    folder_name: Annotated[str, Form()] = "",
    mime_type: Annotated[str, Form()] = "",
) -> dict[str, str]:
    """Ingest one uploaded file; identical content returns the existing URL."""
    try:
        data, content_hash = await read_and_fingerprint(_upload_chunks(file))
    finally:
        await file.close()

    result = await context.writer(session).ingest(
        folder_name,
        relative_path,
        data,
        mime_type or None,
        content_hash=content_hash,
    )
    return {"download_url": result.retrieval_url, "status": result.outcome.value}


@router.post("/api/update/file-metadata")
async def update_file_metadata(
    body: FileMetadataUpdate, context: ContextDep, session: SessionDep
) -> dict[str, str]:
    await context.writer(session).correct_content_type(body.id, body.mime_type)
    return {"message": "File metadata updated successfully"}


@router.delete("/api/files/record/{file_id}")
async def delete_file(file_id: UUID, context: ContextDep, session: SessionDep) -> dict[str, str]:
    await context.writer(session).delete(file_id)
    return {"message": "File deleted successfully"}


@router.websocket("/ws")
async def change_feed(websocket: WebSocket) -> None:
    """Push catalog change events to the client until either side goes away.

    A subscriber dropped by the broadcaster is closed with code 1013 so the
    client reconnects and re-syncs instead of waiting on a silent socket.
    """
    context: CatalogContext = websocket.app.state.context
    # Subscribe before accepting so no event published after the handshake is missed
    subscription = context.broadcaster.subscribe()
    await websocket.accept()

    async def pump() -> None:
        async for event in subscription:
            await websocket.send_json(event)

    async def drain() -> None:
        # Clients have nothing to say; reading only detects disconnects
        while True:
            message = await websocket.receive_text()
            logger.debug("Ignoring client message: %s", message)

    sender = asyncio.create_task(pump())
    receiver = asyncio.create_task(drain())
    try:
        await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        context.broadcaster.unsubscribe(subscription)
        for task in (sender, receiver):
            task.cancel()
        await asyncio.gather(sender, receiver, return_exceptions=True)

    if receiver.done() and not receiver.cancelled():
        error = receiver.exception()
        if error is not None and not isinstance(error, WebSocketDisconnect):
            logger.warning("WebSocket receive failed: %s", error)
        else:
            logger.debug("WebSocket client disconnected")
        return

    if not sender.cancelled() and sender.exception() is not None:
        logger.warning("WebSocket send failed: %s", sender.exception())
        return

    logger.info("Change feed subscription ended; closing WebSocket")
    await websocket.close(code=CHANGE_FEED_CLOSED)


async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
    status_code = next(
        (code for cls, code in _STATUS_CODES.items() if isinstance(exc, cls)), 500
    )
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status_code,
        content={"error": str(exc), "code": error_code(exc)},
    )


def create_app(
    settings: Settings | None = None,
    *,
    context: CatalogContext | None = None,
) -> FastAPI:
    """Build the app.

    With ``context`` the app serves from an existing context (and leaves
    closing it to the caller); otherwise one is created at startup and
    closed at shutdown.
    """
    settings = settings or (context.settings if context else default_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan handler."""
        configure_logging(settings.log_level)
        ctx = context or create_context(settings)
        app.state.context = ctx
        await ctx.init_db()
        yield
        if context is None:
            await ctx.aclose()

    app = FastAPI(
        title="media-catalog",
        description="Content-addressed media ingestion and paginated catalog browsing",
        version=__version__,
        lifespan=lifespan,
    )
    if context is not None:
        app.state.context = context
    app.include_router(router)
    app.add_exception_handler(CatalogError, catalog_error_handler)
    app.mount(
        "/media",
        StaticFiles(directory=settings.blob_root, check_dir=False),
        name="media",
    )
    return app


app = create_app()
