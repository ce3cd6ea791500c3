"""Diary entry data models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4
from zoneinfo import ZoneInfo

__all__ = [
    "DEFAULT_DISPLAY_TIMEZONE",
    "DiaryEntry",
    "EntryPreview",
    "STORE_KEY_HEADER",
    "StoreCredentials",
    "as_utc",
    "format_created_at",
    "utcnow",
]

DEFAULT_DISPLAY_TIMEZONE = "Asia/Shanghai"
STORE_KEY_HEADER = "x-store-key"


def utcnow() -> datetime:
    """Return a naive UTC timestamp, the form the store keeps ``created_at`` in."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc(value: datetime) -> datetime:
    """Interpret an offset-less store timestamp as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_created_at(
    value: datetime, tz_name: str = DEFAULT_DISPLAY_TIMEZONE
) -> str:
    """Render ``created_at`` as ``YYYY/M/D HH:MM:SS`` in the display timezone."""

    local = as_utc(value).astimezone(ZoneInfo(tz_name))
    return f"{local.year}/{local.month}/{local.day} {local:%H:%M:%S}"


@dataclass(frozen=True)
class DiaryEntry:
    """A stored diary row. Rows are inserted or deleted, never edited."""

    entry_id: str
    title: str
    body: str
    created_at: datetime

    @classmethod
    def new(
        cls,
        *,
        title: str,
        body: str,
        entry_id: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> "DiaryEntry":
        return cls(
            entry_id=entry_id or str(uuid4()),
            title=title,
            body=body,
            created_at=timestamp or utcnow(),
        )

    def to_preview(self, preview_length: int) -> "EntryPreview":
        return EntryPreview(
            entry_id=self.entry_id,
            title=self.title,
            created_at=self.created_at,
            preview=self.body[:preview_length],
            has_more=len(self.body) > preview_length,
        )


@dataclass(frozen=True)
class EntryPreview:
    """List row: the body truncated to the preview length plus a has-more flag."""

    entry_id: str
    title: str
    created_at: datetime
    preview: str
    has_more: bool = False

    def display_time(self, tz_name: str = DEFAULT_DISPLAY_TIMEZONE) -> str:
        return format_created_at(self.created_at, tz_name)


@dataclass(frozen=True)
class StoreCredentials:
    """Connection details the verify endpoint reveals after a successful check."""

    url: str
    key: str
