"""Diary entry domain package."""

from .gateway import (
    DiaryStoreGateway,
    InMemoryDiaryStoreGateway,
    SqlDiaryStoreGateway,
    build_diary_store_gateway,
    build_diary_table,
)
from .listing import ListingController, ListingPage
from .models import DiaryEntry, EntryPreview, StoreCredentials, format_created_at
from .mutations import EntryEditor, EntryForm
from .store_client import DiaryStoreClient, GatewayDiaryStoreClient

__all__ = [
    "DiaryEntry",
    "DiaryStoreClient",
    "DiaryStoreGateway",
    "EntryEditor",
    "EntryForm",
    "EntryPreview",
    "GatewayDiaryStoreClient",
    "InMemoryDiaryStoreGateway",
    "ListingController",
    "ListingPage",
    "SqlDiaryStoreGateway",
    "StoreCredentials",
    "build_diary_store_gateway",
    "build_diary_table",
    "format_created_at",
]
