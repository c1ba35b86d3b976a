"""Client-side random-access paging over a forward-only cursor chain.

The catalog query engine can only answer "the page after cursor C". To
jump straight to page 7, the cache walks forward from the furthest page it
already knows, recording every cursor it discovers, so each page costs one
query the first time and none to locate afterwards.

Cursors are only valid for the (folder, filter) they were issued under.
``PaginationCursorCache.reset`` discards everything; ``CatalogBrowser``
calls it on every folder or filter change and on change notifications.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol
from uuid import UUID

from media_catalog.errors import CatalogError, InvalidCursor
from media_catalog.models.enums import TypeFilter
from media_catalog.notifications import Event
from media_catalog.schemas import Page

logger = logging.getLogger(__name__)

DEFAULT_PAGE_ESTIMATE = 5

PageFetcher = Callable[[str], Awaitable[Page[Any]]]


class PaginationCursorCache:
    """Memoized cursor chain for one (folder, filter, page size) listing.

    State:
        - ``_cursors``: arena indexed by page - 1; page 1 is always ``""``.
          Entries are None only for gaps, which forward walks never leave.
        - ``_history``: stack of the cursors that were current before each
          ``go_to_next``; ``go_to_previous`` pops it.
        - ``navigating``: a forward discovery walk is in progress.

    Every cached cursor was valid when discovered. Nothing re-validates it
    later; a cursor whose boundary record has since been deleted surfaces as
    ``InvalidCursor`` and makes the cache restart from page 1.
    """

    def __init__(
        self, fetch_page: PageFetcher, *, initial_page_estimate: int = DEFAULT_PAGE_ESTIMATE
    ) -> None:
        self._fetch = fetch_page
        self._initial_estimate = initial_page_estimate
        self._generation = 0
        self.reset()

    def reset(self) -> None:
        """Forget every cursor and return to an unloaded page 1."""
        self._generation += 1
        self._cursors: list[str | None] = [""]
        self._history: list[str] = []
        self._estimate = self._initial_estimate
        self.last_page: int | None = None
        self.current_page = 1
        self.current_cursor = ""
        self.records: list[Any] = []
        self.next_cursor = ""
        self.navigating = False
        self.error: CatalogError | None = None

    # ── Queries ──────────────────────────────────────────────────────────────

    def cursor_of(self, page: int) -> str | None:
        """Return the cached cursor that loads ``page``, if known."""
        if page < 1 or page > len(self._cursors):
            return None
        return self._cursors[page - 1]

    @property
    def known_pages(self) -> int:
        """Highest page number whose cursor is cached."""
        return len(self._cursors)

    @property
    def previous_cursors(self) -> list[str]:
        return list(self._history)

    @property
    def has_previous(self) -> bool:
        return bool(self._history)

    @property
    def has_next(self) -> bool:
        return bool(self.next_cursor)

    @property
    def estimated_page_count(self) -> int:
        """Page count to display; exact once the last page has been seen."""
        if self.last_page is not None:
            return self.last_page
        return max(self._estimate, self.current_page + (1 if self.next_cursor else 0))

    @property
    def page_numbers(self) -> list[int]:
        return list(range(1, self.estimated_page_count + 1))

    def is_page_disabled(self, page: int) -> bool:
        """Whether a page link should be inert.

        The current page is always disabled. While a discovery walk runs,
        pages beyond the known boundary are disabled too, so walks never overlap.
        """
        return page == self.current_page or (self.navigating and self.cursor_of(page) is None)

    # ── Navigation ───────────────────────────────────────────────────────────

    async def load(self) -> None:
        """(Re)load the current page."""
        try:
            page = await self._query(self.current_cursor)
        except InvalidCursor:
            await self._restart()
            return
        self._show(page)

    async def go_to_next(self) -> bool:
        """Advance one page. Returns False when there is no next page."""
        if self.navigating or not self.next_cursor:
            return False

        cursor = self.next_cursor
        try:
            page = await self._query(cursor)
        except InvalidCursor:
            await self._restart()
            return False

        self._history.append(self.current_cursor)
        self.current_page += 1
        self.current_cursor = cursor
        self._remember(self.current_page, cursor)
        self._show(page)
        return True

    async def go_to_previous(self) -> bool:
        """Go back one page using the exact cursor that was current before."""
        if self.navigating or not self._history:
            return False

        cursor = self._history[-1]
        try:
            page = await self._query(cursor)
        except InvalidCursor:
            await self._restart()
            return False

        self._history.pop()
        self.current_page -= 1
        self.current_cursor = cursor
        self._show(page)
        return True

    async def go_to_page(self, target: int) -> bool:
        """Jump to page ``target``.

        A cached page loads directly. An unknown page further ahead is
        reached by walking forward and recording every cursor on the way;
        if the chain ends first, the cache stays on the last real page and
        returns False.
        """
        if target < 1:
            return False
        if target == self.current_page:
            return True
        if self.navigating:
            return False

        cached = self.cursor_of(target)
        if cached is not None:
            try:
                page = await self._query(cached)
            except InvalidCursor:
                await self._restart()
                return False
            self._land(target, cached, page)
            return True

        if target > self.current_page:
            return await self._walk(self.current_page, self.current_cursor, target)
        # Unreachable while every visited page stays cached; start over from page 1
        return await self._walk(1, "", target)

    async def _walk(self, start_page: int, start_cursor: str, target: int) -> bool:
        generation = self._generation
        page_no, cursor = start_page, start_cursor
        self.navigating = True
        logger.debug("Discovering cursors from page %d to %d", start_page, target)
        try:
            while True:
                # Skip stretches whose cursors are already known
                known = self.cursor_of(page_no + 1)
                if page_no < target and known is not None:
                    page_no, cursor = page_no + 1, known
                    continue

                page = await self._query(cursor)
                if generation != self._generation:
                    # Reset while we were waiting; our cursors belong to a stale listing
                    return False

                if page_no == target or not page.next_cursor:
                    self._land(page_no, cursor, page)
                    return page_no == target

                page_no, cursor = page_no + 1, page.next_cursor
                self._remember(page_no, cursor)
        except InvalidCursor:
            if generation == self._generation:
                self.navigating = False
                await self._restart()
            return False
        finally:
            if generation == self._generation:
                self.navigating = False

    # ── Internals ────────────────────────────────────────────────────────────

    async def _query(self, cursor: str) -> Page[Any]:
        try:
            page = await self._fetch(cursor)
        except InvalidCursor:
            raise
        except CatalogError as e:
            # Leave discovered cursors alone; the page can be retried
            self.error = e
            raise
        self.error = None
        return page

    async def _restart(self) -> None:
        logger.warning("Cursor no longer resolves, restarting from page 1")
        self.reset()
        page = await self._query("")
        self._show(page)

    def _remember(self, page: int, cursor: str) -> None:
        if page > len(self._cursors):
            self._cursors.extend([None] * (page - len(self._cursors)))
        self._cursors[page - 1] = cursor

    def _land(self, page_no: int, cursor: str, page: Page[Any]) -> None:
        self.current_page = page_no
        self.current_cursor = cursor
        # Replay: the cursor before page k is the one that loads page k-1
        self._history = [self.cursor_of(i) or "" for i in range(1, page_no)]
        self._show(page)

    def _show(self, page: Page[Any]) -> None:
        self.records = list(page.records)
        self.next_cursor = page.next_cursor
        if page.next_cursor:
            self._remember(self.current_page + 1, page.next_cursor)
            self._estimate = max(self._estimate, self.current_page + 1)
            if self.last_page is not None and self.last_page <= self.current_page:
                self.last_page = None
        else:
            self.last_page = self.current_page


class CatalogSource(Protocol):
    """Anything that can list a folder page: the in-process context or the API client."""

    async def list_files(
        self,
        folder_id: UUID | None,
        page_size: int,
        cursor: str = "",
        type_filter: TypeFilter | str = TypeFilter.ALL,
    ) -> Page[Any]: ...


class CatalogBrowser:
    """A viewer's paged view of one folder.

    Usage:
        browser = CatalogBrowser(context, folder_id, page_size=20)
        await browser.open()
        await browser.cache.go_to_page(4)
        await browser.set_filter(TypeFilter.IMAGE)  # back to page 1, fresh cursors
    """

    def __init__(
        self,
        source: CatalogSource,
        folder_id: UUID | None,
        *,
        page_size: int,
        type_filter: TypeFilter | str = TypeFilter.ALL,
        initial_page_estimate: int = DEFAULT_PAGE_ESTIMATE,
    ) -> None:
        self._source = source
        self.folder_id = folder_id
        self.page_size = page_size
        self.type_filter = TypeFilter.parse(type_filter)
        self.cache = PaginationCursorCache(
            self._fetch, initial_page_estimate=initial_page_estimate
        )

    async def _fetch(self, cursor: str) -> Page[Any]:
        return await self._source.list_files(
            self.folder_id, self.page_size, cursor, self.type_filter
        )

    async def open(self) -> None:
        await self.cache.load()

    async def set_filter(self, type_filter: TypeFilter | str) -> None:
        type_filter = TypeFilter.parse(type_filter)
        if type_filter is self.type_filter:
            return
        self.type_filter = type_filter
        await self._resync()

    async def set_folder(self, folder_id: UUID | None) -> None:
        if folder_id == self.folder_id:
            return
        self.folder_id = folder_id
        await self._resync()

    async def handle_notification(self, event: Event) -> bool:
        """Re-sync from page 1 if ``event`` may affect this folder.

        Events without a ``folderId`` are treated as affecting every folder.
        """
        if "folderId" in event:
            browsed = str(self.folder_id) if self.folder_id is not None else ""
            if event["folderId"] != browsed:
                return False
        logger.info("Change notification for folder %s, re-syncing", self.folder_id)
        await self._resync()
        return True

    async def _resync(self) -> None:
        self.cache.reset()
        await self.cache.load()
