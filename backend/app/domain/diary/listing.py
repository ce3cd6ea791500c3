"""Paginated diary listing: incremental loads, previews and body expansion."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from ...infra.logging import get_logger
from ...infra.metrics import MetricsClient, get_metrics_client
from ..errors import DiaryError
from .models import DEFAULT_DISPLAY_TIMEZONE, EntryPreview
from .store_client import DiaryStoreClient

__all__ = [
    "DEFAULT_BLUR_LENGTH",
    "DEFAULT_PAGE_SIZE",
    "DEFAULT_SCROLL_THRESHOLD",
    "ListingController",
    "ListingPage",
]

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 10
DEFAULT_BLUR_LENGTH = 100
DEFAULT_SCROLL_THRESHOLD = 100
NOT_VERIFIED_MESSAGE = "Access has not been verified"


@dataclass
class ListingPage:
    """Client-side listing state, owned by a single ``ListingController``."""

    loaded_entries: List[EntryPreview] = field(default_factory=list)
    expanded_id: Optional[str] = None
    full_body_cache: Dict[str, str] = field(default_factory=dict)
    end_reached: bool = False
    loading: bool = False
    error_message: str = ""

    @property
    def entry_ids(self) -> List[str]:
        return [entry.entry_id for entry in self.loaded_entries]

    def body_for(self, entry: EntryPreview) -> str:
        """Text to show for ``entry``: the full body once expanded, else the preview."""

        if entry.entry_id == self.expanded_id:
            return self.full_body_cache.get(entry.entry_id, entry.preview)
        return entry.preview


class ListingController:
    """Owns the paginated view over the diary store.

    Every reset bumps a generation counter; a fetch started under an older
    generation, or after ``close()``, is dropped instead of applied.
    """

    def __init__(
        self,
        store: DiaryStoreClient,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        blur_length: int = DEFAULT_BLUR_LENGTH,
        scroll_threshold: int = DEFAULT_SCROLL_THRESHOLD,
        display_timezone: str = DEFAULT_DISPLAY_TIMEZONE,
        access_check: Callable[[], bool] = lambda: True,
        metrics: MetricsClient | None = None,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self._store = store
        self._page_size = page_size
        self._blur_length = blur_length
        self._scroll_threshold = scroll_threshold
        self._display_timezone = display_timezone
        self._access_check = access_check
        self._metrics = metrics or get_metrics_client()
        self._generation = 0
        self._closed = False
        self._body_fetches: Dict[str, asyncio.Task[str]] = {}
        self.state = ListingPage()

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def blur_length(self) -> int:
        return self._blur_length

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Page loading
    # ------------------------------------------------------------------
    async def load_first_page(self) -> None:
        if not self._may_query():
            return
        generation = self._reset_generation()
        self.state.loaded_entries = []
        self.state.end_reached = False
        self.state.loading = True
        self.state.error_message = ""
        await self._load_page(generation, offset=0)

    async def load_next_page(self) -> None:
        if self.state.end_reached or self.state.loading:
            return
        if not self._may_query():
            return
        self.state.loading = True
        await self._load_page(self._generation, offset=len(self.state.loaded_entries))

    async def load_all(self) -> None:
        """Fetch every entry in one request; later page loads become no-ops."""

        if not self._may_query():
            return
        generation = self._reset_generation()
        self.state.loading = True
        try:
            rows = await self._store.list_entries(
                offset=0, limit=None, preview_length=self._blur_length
            )
        except DiaryError as exc:
            self._fail(generation, exc, operation="load_all")
            return
        if not self._is_current(generation):
            logger.debug("listing_stale_result_discarded", extra={"operation": "load_all"})
            return
        self.state.loaded_entries = _unique(rows, known=())
        self.state.end_reached = True
        self.state.loading = False
        self.state.error_message = ""
        self._metrics.increment("listing_load_all_total")
        logger.info(
            "listing_all_loaded", extra={"count": len(self.state.loaded_entries)}
        )

    async def on_scroll(
        self, scroll_top: float, viewport_height: float, content_height: float
    ) -> bool:
        """Load the next page when the viewport is near the bottom.

        Returns True when a page load was started by this call.
        """

        distance = content_height - (scroll_top + viewport_height)
        if distance > self._scroll_threshold:
            return False
        if self.state.loading or self.state.end_reached:
            return False
        if not self._may_query():
            return False
        await self.load_next_page()
        return True

    async def _load_page(self, generation: int, *, offset: int) -> None:
        try:
            rows = await self._store.list_entries(
                offset=offset, limit=self._page_size, preview_length=self._blur_length
            )
        except DiaryError as exc:
            self._fail(generation, exc, operation="load_page")
            return
        if not self._is_current(generation):
            logger.debug(
                "listing_stale_result_discarded",
                extra={"operation": "load_page", "offset": offset},
            )
            return
        current = self.state.loaded_entries
        fresh = _unique(rows, known={entry.entry_id for entry in current})
        self.state.loaded_entries = current + fresh
        if len(rows) < self._page_size:
            self.state.end_reached = True
        self.state.loading = False
        self.state.error_message = ""
        self._metrics.increment("listing_page_loads_total")
        logger.info(
            "listing_page_loaded",
            extra={
                "offset": offset,
                "returned": len(rows),
                "appended": len(fresh),
                "end_reached": self.state.end_reached,
            },
        )

    # ------------------------------------------------------------------
    # Expansion
    # ------------------------------------------------------------------
    async def expand(self, entry_id: str) -> None:
        self.state.expanded_id = entry_id
        if entry_id in self.state.full_body_cache:
            return
        preview = self._find(entry_id)
        if preview is not None and not preview.has_more:
            self.state.full_body_cache[entry_id] = preview.preview
            return
        if not self._may_query():
            return
        task = self._body_fetches.get(entry_id)
        if task is None:
            task = asyncio.ensure_future(self._fetch_body(entry_id))
            self._body_fetches[entry_id] = task
        try:
            await task
        except DiaryError as exc:
            if not self._closed:
                self.state.error_message = exc.message
            logger.warning(
                "listing_body_fetch_failed",
                extra={"entry_id": entry_id, "error": exc.message},
            )

    def collapse(self) -> None:
        self.state.expanded_id = None

    def created_label(self, entry: EntryPreview) -> str:
        """``created_at`` rendered in the display timezone."""

        return entry.display_time(self._display_timezone)

    def is_fetching_body(self, entry_id: str) -> bool:
        return entry_id in self._body_fetches

    async def _fetch_body(self, entry_id: str) -> str:
        me = asyncio.current_task()
        try:
            body = await self._store.fetch_body(entry_id)
            if not self._closed and self._body_fetches.get(entry_id) is me:
                self.state.full_body_cache[entry_id] = body
                self._metrics.increment("listing_body_fetch_total")
            return body
        finally:
            if self._body_fetches.get(entry_id) is me:
                del self._body_fetches[entry_id]

    # ------------------------------------------------------------------
    # Invalidation + teardown
    # ------------------------------------------------------------------
    def evict(self, entry_id: str) -> None:
        """Forget everything cached for a deleted entry."""

        self.state.full_body_cache.pop(entry_id, None)
        self._body_fetches.pop(entry_id, None)
        if self.state.expanded_id == entry_id:
            self.state.expanded_id = None

    def reset(self) -> None:
        """Drop all loaded state, e.g. on logout."""

        self._reset_generation()
        self._body_fetches.clear()
        self.state = ListingPage()

    def close(self) -> None:
        self._closed = True
        self._body_fetches.clear()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _may_query(self) -> bool:
        if self._closed:
            return False
        if not self._access_check():
            self.state.error_message = NOT_VERIFIED_MESSAGE
            logger.warning("listing_query_blocked_unverified")
            return False
        return True

    def _reset_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _is_current(self, generation: int) -> bool:
        return not self._closed and generation == self._generation

    def _fail(self, generation: int, exc: DiaryError, *, operation: str) -> None:
        logger.warning(
            "listing_fetch_failed",
            extra={"operation": operation, "error": exc.message},
        )
        if not self._is_current(generation):
            return
        self.state.loading = False
        self.state.error_message = exc.message

    def _find(self, entry_id: str) -> Optional[EntryPreview]:
        for entry in self.state.loaded_entries:
            if entry.entry_id == entry_id:
                return entry
        return None


def _unique(rows: Iterable[EntryPreview], *, known: Iterable[str]) -> List[EntryPreview]:
    seen = set(known)
    result: List[EntryPreview] = []
    for row in rows:
        if row.entry_id in seen:
            continue
        seen.add(row.entry_id)
        result.append(row)
    return result
