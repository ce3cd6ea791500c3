"""Tests for add/delete and the listing resync that follows them."""

from __future__ import annotations

import asyncio

import pytest

from backend.app.domain.diary.listing import ListingController
from backend.app.domain.diary.mutations import EntryEditor
from backend.app.domain.errors import StoreError
from backend.app.infra.metrics import InMemoryMetricsClient
from tests.helpers.fakes import FakeStoreClient

pytestmark = [pytest.mark.diary]


def _editor(store: FakeStoreClient, *, flash: float = 1.6, metrics=None):
    metrics = metrics or InMemoryMetricsClient()
    listing = ListingController(
        store, page_size=10, blur_length=100, metrics=metrics
    )
    editor = EntryEditor(store, listing, success_flash_seconds=flash, metrics=metrics)
    return editor, listing


@pytest.mark.parametrize(
    "title, body",
    [("", "content"), ("title", "   "), (" ", "\n")],
)
def test_add_with_blank_field_is_rejected_locally(title, body):
    store = FakeStoreClient()
    editor, _ = _editor(store)
    editor.form.title = title
    editor.form.body = body

    result = asyncio.run(editor.add_entry())

    assert result is None
    assert editor.error_message == "Title and content are both required"
    assert store.insert_calls == []
    assert store.list_calls == []
    assert (editor.form.title, editor.form.body) == (title, body)


def test_added_entry_is_first_after_resync():
    store = FakeStoreClient()
    store.seed(12)
    editor, listing = _editor(store)

    async def scenario():
        await listing.load_first_page()
        await listing.load_next_page()
        editor.form.title = "T"
        editor.form.body = "C"
        entry = await editor.add_entry()
        return entry, editor.success_visible

    entry, flashed = asyncio.run(scenario())

    assert entry is not None and entry.title == "T"
    assert flashed is True
    assert (editor.form.title, editor.form.body) == ("", "")
    first = listing.state.loaded_entries[0]
    assert (first.entry_id, first.title, first.preview) == (entry.entry_id, "T", "C")
    assert len(listing.state.loaded_entries) == 10
    assert listing.state.end_reached is False
    assert store.list_calls[-1][0] == 0


def test_success_indicator_clears_after_delay():
    store = FakeStoreClient()
    editor, _ = _editor(store, flash=0.01)

    async def scenario():
        editor.form.title = "T"
        editor.form.body = "C"
        await editor.add_entry()
        shown = editor.success_visible
        await asyncio.sleep(0.05)
        return shown

    assert asyncio.run(scenario()) is True
    assert editor.success_visible is False


def test_add_failure_keeps_form_and_listing():
    store = FakeStoreClient()
    store.seed(3)
    editor, listing = _editor(store)

    async def scenario():
        await listing.load_first_page()
        store.fail_with["insert"] = StoreError("insert violates row-level security")
        editor.form.title = "T"
        editor.form.body = "C"
        return await editor.add_entry()

    result = asyncio.run(scenario())

    assert result is None
    assert editor.error_message == "insert violates row-level security"
    assert editor.success_visible is False
    assert (editor.form.title, editor.form.body) == ("T", "C")
    assert len(store.list_calls) == 1
    assert len(listing.state.loaded_entries) == 3


def test_delete_evicts_cache_and_expansion_then_resyncs():
    store = FakeStoreClient()
    entries = store.seed(5, body="g" * 150)
    target = entries[-1]
    editor, listing = _editor(store)

    async def scenario():
        await listing.load_first_page()
        await listing.expand(target.entry_id)
        assert target.entry_id in listing.state.full_body_cache
        return await editor.delete_entry(target.entry_id)

    assert asyncio.run(scenario()) is True
    assert target.entry_id not in listing.state.entry_ids
    assert target.entry_id not in listing.state.full_body_cache
    assert listing.state.expanded_id is None
    assert len(listing.state.loaded_entries) == 4
    assert store.list_calls[-1][0] == 0


def test_delete_keeps_other_expansion():
    store = FakeStoreClient()
    keep, drop = store.seed(2, body="h" * 150)
    editor, listing = _editor(store)

    async def scenario():
        await listing.load_first_page()
        await listing.expand(drop.entry_id)
        await listing.expand(keep.entry_id)
        await editor.delete_entry(drop.entry_id)

    asyncio.run(scenario())

    assert listing.state.expanded_id == keep.entry_id
    assert keep.entry_id in listing.state.full_body_cache
    assert drop.entry_id not in listing.state.full_body_cache


def test_delete_failure_leaves_state_untouched():
    store = FakeStoreClient()
    entries = store.seed(2, body="i" * 150)
    editor, listing = _editor(store)

    async def scenario():
        await listing.load_first_page()
        await listing.expand(entries[0].entry_id)
        store.fail_with["delete"] = StoreError("permission denied for table diary")
        return await editor.delete_entry(entries[0].entry_id)

    assert asyncio.run(scenario()) is False
    assert editor.error_message == "permission denied for table diary"
    assert listing.state.expanded_id == entries[0].entry_id
    assert entries[0].entry_id in listing.state.full_body_cache
    assert len(listing.state.loaded_entries) == 2
    assert len(store.list_calls) == 1


def test_close_cancels_pending_flash():
    store = FakeStoreClient()
    editor, _ = _editor(store, flash=10)

    async def scenario():
        editor.form.title = "T"
        editor.form.body = "C"
        await editor.add_entry()
        editor.close()

    asyncio.run(scenario())

    assert editor.success_visible is False


def test_add_accepts_title_and_body_directly():
    store = FakeStoreClient()
    editor, listing = _editor(store)
    editor.form.title = "draft title"

    async def scenario():
        return await editor.add_entry("Rainy Sunday", "Stayed in and read.")

    entry = asyncio.run(scenario())

    assert entry is not None
    assert store.insert_calls == [("Rainy Sunday", "Stayed in and read.")]
    assert listing.state.loaded_entries[0].title == "Rainy Sunday"


def test_add_with_blank_argument_ignores_filled_form():
    store = FakeStoreClient()
    editor, _ = _editor(store)
    editor.form.title = "T"
    editor.form.body = "C"

    result = asyncio.run(editor.add_entry("T", "  "))

    assert result is None
    assert editor.error_message == "Title and content are both required"
    assert store.insert_calls == []


def test_mutations_are_counted():
    metrics = InMemoryMetricsClient()
    store = FakeStoreClient()
    editor, _ = _editor(store, metrics=metrics)

    async def scenario():
        entry = await editor.add_entry("T", "C")
        await editor.delete_entry(entry.entry_id)
        store.fail_with["delete"] = StoreError("permission denied")
        await editor.delete_entry(entry.entry_id)

    asyncio.run(scenario())

    assert metrics.snapshot("diary_") == {
        "diary_add_total": 1,
        "diary_delete_failed_total": 1,
        "diary_delete_total": 1,
    }
