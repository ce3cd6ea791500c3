"""Async query surface the listing view uses to reach the diary store."""

from __future__ import annotations

import asyncio
from typing import Callable, List, Optional, Protocol, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from ..errors import StoreError
from .gateway import DiaryStoreGateway
from .models import DiaryEntry, EntryPreview

__all__ = ["DiaryStoreClient", "GatewayDiaryStoreClient"]

T = TypeVar("T")


class DiaryStoreClient(Protocol):  # pragma: no cover - interface only
    """Remote entry store as seen from the client; every call may suspend."""

    async def list_entries(
        self, *, offset: int, limit: Optional[int], preview_length: int
    ) -> List[EntryPreview]: ...

    async def fetch_body(self, entry_id: str) -> str: ...

    async def insert(self, *, title: str, body: str) -> DiaryEntry: ...

    async def delete(self, entry_id: str) -> None: ...

    async def aclose(self) -> None: ...


class GatewayDiaryStoreClient(DiaryStoreClient):
    """In-process client that runs a blocking gateway off the event loop."""

    def __init__(self, gateway: DiaryStoreGateway) -> None:
        self._gateway = gateway

    async def list_entries(
        self, *, offset: int, limit: Optional[int], preview_length: int
    ) -> List[EntryPreview]:
        return await self._call(
            lambda: self._gateway.list_entries(
                offset=offset, limit=limit, preview_length=preview_length
            )
        )

    async def fetch_body(self, entry_id: str) -> str:
        return await self._call(lambda: self._gateway.get_body(entry_id))

    async def insert(self, *, title: str, body: str) -> DiaryEntry:
        return await self._call(
            lambda: self._gateway.create_entry(title=title, body=body)
        )

    async def delete(self, entry_id: str) -> None:
        await self._call(lambda: self._gateway.delete_entry(entry_id))

    async def aclose(self) -> None:
        return None

    async def _call(self, fn: Callable[[], T]) -> T:
        try:
            return await asyncio.to_thread(fn)
        except KeyError as exc:
            raise StoreError(str(exc.args[0]) if exc.args else "Entry not found") from exc
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
