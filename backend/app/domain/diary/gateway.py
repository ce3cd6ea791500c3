"""Diary store gateway implementations."""

from __future__ import annotations

import threading
from itertools import count
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple

from sqlalchemy import (
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    Text,
    delete,
    func,
    insert,
    select,
)
from sqlalchemy.engine import Engine

from ...infra.db import get_engine
from ...infra.logging import get_logger
from .models import DiaryEntry, EntryPreview, utcnow

__all__ = [
    "DIARY_TABLE_NAME",
    "DiaryStoreGateway",
    "InMemoryDiaryStoreGateway",
    "SqlDiaryStoreGateway",
    "build_diary_store_gateway",
    "build_diary_table",
]

logger = get_logger(__name__)

DIARY_TABLE_NAME = "diary"


def build_diary_table(metadata: MetaData) -> Table:
    """Declare the ``diary`` table: ``uuid``, ``name``, ``content``, ``created_at``."""

    return Table(
        DIARY_TABLE_NAME,
        metadata,
        Column("uuid", String(36), primary_key=True),
        Column("name", Text, nullable=False),
        Column("content", Text, nullable=False),
        Column(
            "created_at",
            DateTime(timezone=False),
            nullable=False,
            server_default=func.now(),
        ),
    )


class DiaryStoreGateway(Protocol):  # pragma: no cover
    """Single-table CRUD surface over diary rows; no multi-row transactions."""

    def list_entries(
        self, *, offset: int, limit: Optional[int], preview_length: int
    ) -> List[EntryPreview]: ...

    def count_entries(self) -> int: ...

    def get_body(self, entry_id: str) -> str: ...

    def create_entry(self, *, title: str, body: str) -> DiaryEntry: ...

    def delete_entry(self, entry_id: str) -> None: ...


class InMemoryDiaryStoreGateway(DiaryStoreGateway):
    """Simple in-memory store used for local development and tests."""

    def __init__(self, *, clock: Callable[[], Any] = utcnow) -> None:
        self._clock = clock
        self._entries: Dict[str, Tuple[int, DiaryEntry]] = {}
        self._sequence = count()
        self._lock = threading.Lock()

    def list_entries(
        self, *, offset: int, limit: Optional[int], preview_length: int
    ) -> List[EntryPreview]:
        with self._lock:
            ordered = sorted(
                self._entries.values(),
                key=lambda item: (item[1].created_at, item[0]),
                reverse=True,
            )
        start = max(offset, 0)
        window = ordered[start:] if limit is None else ordered[start : start + limit]
        return [entry.to_preview(preview_length) for _, entry in window]

    def count_entries(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_body(self, entry_id: str) -> str:
        with self._lock:
            record = self._entries.get(entry_id)
        if record is None:
            raise KeyError(f"Entry {entry_id} not found")
        return record[1].body

    def create_entry(self, *, title: str, body: str) -> DiaryEntry:
        entry = DiaryEntry.new(title=title, body=body, timestamp=self._clock())
        with self._lock:
            self._entries[entry.entry_id] = (next(self._sequence), entry)
        return entry

    def delete_entry(self, entry_id: str) -> None:
        with self._lock:
            if self._entries.pop(entry_id, None) is None:
                raise KeyError(f"Entry {entry_id} not found")


class SqlDiaryStoreGateway(DiaryStoreGateway):
    """SQLAlchemy-backed adapter over the hosted ``diary`` table.

    Previews are truncated inside the query (``substr``/``length``) so list
    calls never ship full bodies; the remainder comes from ``get_body``.
    """

    def __init__(
        self,
        engine: Optional[Engine] = None,
        *,
        table: Optional[Table] = None,
        clock: Callable[[], Any] = utcnow,
    ) -> None:
        self._engine = engine or get_engine()
        self._clock = clock
        if table is not None:
            self._diary = table
        else:
            self._diary = Table(
                DIARY_TABLE_NAME, MetaData(), autoload_with=self._engine
            )

    def list_entries(
        self, *, offset: int, limit: Optional[int], preview_length: int
    ) -> List[EntryPreview]:
        c = self._diary.c
        stmt = (
            select(
                c.uuid,
                c.name,
                c.created_at,
                func.substr(c.content, 1, preview_length).label("preview"),
                (func.length(c.content) > preview_length).label("has_more"),
            )
            .order_by(c.created_at.desc(), c.uuid.desc())
            .offset(max(offset, 0))
        )
        if limit is not None:
            stmt = stmt.limit(max(limit, 1))
        with self._engine.begin() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [_row_to_preview(row) for row in rows]

    def count_entries(self) -> int:
        stmt = select(func.count()).select_from(self._diary)
        with self._engine.begin() as conn:
            return int(conn.execute(stmt).scalar_one())

    def get_body(self, entry_id: str) -> str:
        stmt = select(self._diary.c.content).where(self._diary.c.uuid == entry_id)
        with self._engine.begin() as conn:
            row = conn.execute(stmt).first()
        if row is None:
            raise KeyError(f"Entry {entry_id} not found")
        return row[0]

    def create_entry(self, *, title: str, body: str) -> DiaryEntry:
        entry = DiaryEntry.new(title=title, body=body, timestamp=self._clock())
        stmt = (
            insert(self._diary)
            .values(
                uuid=entry.entry_id,
                name=entry.title,
                content=entry.body,
                created_at=entry.created_at,
            )
            .returning(self._diary)
        )
        with self._engine.begin() as conn:
            row = conn.execute(stmt).mappings().first()
        if row is None:  # pragma: no cover - defensive
            raise RuntimeError("failed to insert diary entry")
        return _row_to_entry(row)

    def delete_entry(self, entry_id: str) -> None:
        stmt = delete(self._diary).where(self._diary.c.uuid == entry_id)
        with self._engine.begin() as conn:
            result = conn.execute(stmt)
        if result.rowcount == 0:
            raise KeyError(f"Entry {entry_id} not found")


def build_diary_store_gateway(
    *,
    prefer_sql: bool = True,
    fallback_to_memory: bool = False,
) -> DiaryStoreGateway:
    """Factory that returns the desired diary store implementation."""

    if prefer_sql:
        try:
            return SqlDiaryStoreGateway()
        except Exception:
            if not fallback_to_memory:
                raise
            logger.warning("sql_diary_store_unavailable_falling_back", exc_info=True)
    return InMemoryDiaryStoreGateway()


def _row_to_entry(row: Mapping[str, Any]) -> DiaryEntry:
    return DiaryEntry(
        entry_id=row["uuid"],
        title=row["name"],
        body=row["content"],
        created_at=row["created_at"],
    )


def _row_to_preview(row: Mapping[str, Any]) -> EntryPreview:
    return EntryPreview(
        entry_id=row["uuid"],
        title=row["name"],
        created_at=row["created_at"],
        preview=row["preview"] or "",
        has_more=bool(row["has_more"]),
    )
