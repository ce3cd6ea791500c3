"""Diary entry endpoints: list, single-body fetch, insert and delete."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.exc import SQLAlchemyError

from ...api.dependencies import get_diary_gateway, get_settings, require_store_key
from ...config import Settings
from ...domain.diary.gateway import DiaryStoreGateway
from ...domain.diary.models import DiaryEntry, EntryPreview
from ...domain.errors import EntryNotFound, StoreError
from ...infra.logging import get_logger
from ...infra.metrics import get_metrics_client

router = APIRouter(
    prefix="/api/diary",
    tags=["diary"],
    dependencies=[Depends(require_store_key)],
)
logger = get_logger(__name__)
metrics = get_metrics_client()

MAX_PAGE_SIZE = 100
MAX_PREVIEW_LENGTH = 2000
EntryId = Annotated[str, Path(..., min_length=1, max_length=64)]


class DiaryCreateRequest(BaseModel):
    title: str = Field(..., description="Entry title.")
    body: str = Field(..., description="Free-text entry content.")

    @model_validator(mode="after")
    def _require_text(self) -> "DiaryCreateRequest":
        if not self.title.strip():
            raise ValueError("title must not be blank")
        if not self.body.strip():
            raise ValueError("body must not be blank")
        return self


class DiaryPreviewItem(BaseModel):
    id: str
    title: str
    created_at: datetime
    preview: str
    has_more: bool = False


class DiaryListResponse(BaseModel):
    items: List[DiaryPreviewItem] = Field(default_factory=list)
    offset: int
    limit: Optional[int] = None
    preview_length: int
    total: int


class DiaryBodyResponse(BaseModel):
    id: str
    body: str


class DiaryEntryResponse(BaseModel):
    id: str
    title: str
    body: str
    created_at: datetime


class DiaryDeleteResponse(BaseModel):
    id: str
    deleted: bool = True


@router.get("", response_model=DiaryListResponse, summary="List entries, newest first")
def list_entries(
    offset: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1, le=MAX_PAGE_SIZE),
    preview_length: Optional[int] = Query(None, ge=1, le=MAX_PREVIEW_LENGTH),
    load_all: bool = Query(False, alias="all", description="Return every entry."),
    gateway: DiaryStoreGateway = Depends(get_diary_gateway),
    settings: Settings = Depends(get_settings),
) -> DiaryListResponse:
    metrics.increment("diary_list_http_total")
    length = preview_length or settings.listing.blur_length
    window = None if load_all else (limit or settings.listing.page_size)
    try:
        previews = gateway.list_entries(
            offset=offset, limit=window, preview_length=length
        )
        total = gateway.count_entries()
    except SQLAlchemyError as exc:
        raise _store_failure(exc) from exc
    return DiaryListResponse(
        items=[_serialize_preview(preview) for preview in previews],
        offset=offset,
        limit=window,
        preview_length=length,
        total=total,
    )


@router.get("/{entry_id}", response_model=DiaryBodyResponse, summary="Fetch full body")
def get_entry_body(
    entry_id: EntryId,
    gateway: DiaryStoreGateway = Depends(get_diary_gateway),
) -> DiaryBodyResponse:
    try:
        body = gateway.get_body(entry_id)
    except KeyError as exc:
        raise _not_found(entry_id) from exc
    except SQLAlchemyError as exc:
        raise _store_failure(exc) from exc
    return DiaryBodyResponse(id=entry_id, body=body)


@router.post(
    "",
    response_model=DiaryEntryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Insert an entry",
)
def create_entry(
    payload: DiaryCreateRequest,
    gateway: DiaryStoreGateway = Depends(get_diary_gateway),
) -> DiaryEntryResponse:
    try:
        entry = gateway.create_entry(title=payload.title, body=payload.body)
    except SQLAlchemyError as exc:
        raise _store_failure(exc) from exc
    metrics.increment("diary_entries_created_total")
    logger.info("diary_entry_created", extra={"entry_id": entry.entry_id})
    return _serialize_entry(entry)


@router.delete(
    "/{entry_id}", response_model=DiaryDeleteResponse, summary="Delete an entry"
)
def delete_entry(
    entry_id: EntryId,
    gateway: DiaryStoreGateway = Depends(get_diary_gateway),
) -> DiaryDeleteResponse:
    try:
        gateway.delete_entry(entry_id)
    except KeyError as exc:
        raise _not_found(entry_id) from exc
    except SQLAlchemyError as exc:
        raise _store_failure(exc) from exc
    metrics.increment("diary_entries_deleted_total")
    logger.info("diary_entry_deleted", extra={"entry_id": entry_id})
    return DiaryDeleteResponse(id=entry_id)


def _serialize_preview(preview: EntryPreview) -> DiaryPreviewItem:
    return DiaryPreviewItem(
        id=preview.entry_id,
        title=preview.title,
        created_at=preview.created_at,
        preview=preview.preview,
        has_more=preview.has_more,
    )


def _serialize_entry(entry: DiaryEntry) -> DiaryEntryResponse:
    return DiaryEntryResponse(
        id=entry.entry_id,
        title=entry.title,
        body=entry.body,
        created_at=entry.created_at,
    )


def _not_found(entry_id: str) -> HTTPException:
    error = EntryNotFound(
        f"Entry '{entry_id}' not found", details={"entry_id": entry_id}
    )
    return HTTPException(status_code=error.status_code, detail=error.to_detail())


def _store_failure(exc: Exception) -> HTTPException:
    logger.error("diary_store_query_failed", extra={"error": str(exc)})
    error = StoreError(str(exc))
    return HTTPException(status_code=error.status_code, detail=error.to_detail())
