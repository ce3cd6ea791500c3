"""Add/delete operations that resynchronize the listing after each mutation."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

from ...infra.logging import get_logger
from ...infra.metrics import MetricsClient, get_metrics_client
from ..errors import DiaryError, ValidationError
from .listing import ListingController
from .models import DiaryEntry
from .store_client import DiaryStoreClient

__all__ = ["DEFAULT_SUCCESS_FLASH_SECONDS", "EntryEditor", "EntryForm"]

logger = get_logger(__name__)

DEFAULT_SUCCESS_FLASH_SECONDS = 1.6


@dataclass
class EntryForm:
    """Input fields of the new-entry form."""

    title: str = ""
    body: str = ""

    def clear(self) -> None:
        self.title = ""
        self.body = ""


class EntryEditor:
    """Mutation operations over the store.

    Prior listing state is never patched optimistically: a successful
    mutation is followed by ``load_first_page`` on the listing controller.
    """

    def __init__(
        self,
        store: DiaryStoreClient,
        listing: ListingController,
        *,
        success_flash_seconds: float = DEFAULT_SUCCESS_FLASH_SECONDS,
        metrics: MetricsClient | None = None,
    ) -> None:
        self._store = store
        self._listing = listing
        self._flash_seconds = success_flash_seconds
        self._metrics = metrics or get_metrics_client()
        self._flash_handle: Optional[asyncio.TimerHandle] = None
        self.form = EntryForm()
        self.success_visible = False
        self.error_message = ""

    async def add_entry(
        self, title: Optional[str] = None, body: Optional[str] = None
    ) -> Optional[DiaryEntry]:
        """Insert an entry; returns the stored entry or None on failure.

        ``title`` and ``body`` default to the current form fields.
        """

        if title is None:
            title = self.form.title
        if body is None:
            body = self.form.body
        try:
            title, body = _validated(title, body)
        except ValidationError as exc:
            self.error_message = exc.message
            return None
        self.error_message = ""
        try:
            entry = await self._store.insert(title=title, body=body)
        except DiaryError as exc:
            self.error_message = exc.message
            self._metrics.increment("diary_add_failed_total")
            logger.warning("diary_add_failed", extra={"error": exc.message})
            return None
        self.form.clear()
        self._show_success()
        self._metrics.increment("diary_add_total")
        logger.info("diary_entry_added", extra={"entry_id": entry.entry_id})
        await self._listing.load_first_page()
        return entry

    async def delete_entry(self, entry_id: str) -> bool:
        self.error_message = ""
        try:
            await self._store.delete(entry_id)
        except DiaryError as exc:
            self.error_message = exc.message
            self._metrics.increment("diary_delete_failed_total")
            logger.warning(
                "diary_delete_failed",
                extra={"entry_id": entry_id, "error": exc.message},
            )
            return False
        self._listing.evict(entry_id)
        self._metrics.increment("diary_delete_total")
        logger.info("diary_entry_deleted", extra={"entry_id": entry_id})
        await self._listing.load_first_page()
        return True

    def close(self) -> None:
        if self._flash_handle is not None:
            self._flash_handle.cancel()
            self._flash_handle = None
        self.success_visible = False

    def _show_success(self) -> None:
        self.success_visible = True
        if self._flash_handle is not None:
            self._flash_handle.cancel()
        loop = asyncio.get_running_loop()
        self._flash_handle = loop.call_later(self._flash_seconds, self._clear_success)

    def _clear_success(self) -> None:
        self.success_visible = False
        self._flash_handle = None


def _validated(title: str, body: str) -> tuple[str, str]:
    missing = [
        name for name, value in (("title", title), ("body", body)) if not value.strip()
    ]
    if missing:
        raise ValidationError(
            "Title and content are both required", details={"fields": missing}
        )
    return title, body
