"""Tests for the paginated listing controller."""

from __future__ import annotations

import asyncio

import pytest

from backend.app.domain.diary.listing import NOT_VERIFIED_MESSAGE, ListingController
from backend.app.domain.errors import StoreError
from backend.app.infra.metrics import InMemoryMetricsClient
from tests.helpers.fakes import FakeStoreClient

pytestmark = [pytest.mark.diary]


def _controller(store: FakeStoreClient, **kwargs) -> ListingController:
    kwargs.setdefault("page_size", 10)
    kwargs.setdefault("blur_length", 100)
    kwargs.setdefault("metrics", InMemoryMetricsClient())
    return ListingController(store, **kwargs)


def _titles(controller: ListingController) -> list[str]:
    return [entry.title for entry in controller.state.loaded_entries]


def test_pages_through_25_entries_in_pages_of_10():
    store = FakeStoreClient()
    store.seed(25)
    controller = _controller(store)

    async def scenario():
        await controller.load_first_page()
        sizes = [(len(controller.state.loaded_entries), controller.state.end_reached)]
        for _ in range(2):
            await controller.load_next_page()
            sizes.append(
                (len(controller.state.loaded_entries), controller.state.end_reached)
            )
        await controller.load_next_page()
        return sizes

    sizes = asyncio.run(scenario())

    assert sizes == [(10, False), (20, False), (25, True)]
    assert [call[0] for call in store.list_calls] == [0, 10, 20]
    assert len(controller.state.loaded_entries) == 25
    assert _titles(controller)[0] == "Entry 25"
    assert _titles(controller)[-1] == "Entry 1"


def test_exact_multiple_needs_one_empty_page_to_finish():
    store = FakeStoreClient()
    store.seed(10)
    controller = _controller(store)

    async def scenario():
        await controller.load_first_page()
        first_end = controller.state.end_reached
        await controller.load_next_page()
        return first_end

    assert asyncio.run(scenario()) is False
    assert controller.state.end_reached is True
    assert len(controller.state.loaded_entries) == 10


def test_long_entry_preview_expands_once_and_stays_cached():
    store = FakeStoreClient()
    (entry,) = store.seed(1, body="a" * 150)
    controller = _controller(store)

    async def scenario():
        await controller.load_first_page()
        await controller.expand(entry.entry_id)
        controller.collapse()
        await controller.expand(entry.entry_id)

    asyncio.run(scenario())

    preview = controller.state.loaded_entries[0]
    assert preview.preview == "a" * 100
    assert preview.has_more is True
    assert store.body_calls == [entry.entry_id]
    assert controller.state.full_body_cache[entry.entry_id] == "a" * 150
    assert controller.state.expanded_id == entry.entry_id
    assert controller.state.body_for(preview) == "a" * 150


def test_collapse_keeps_cache_and_shows_preview():
    store = FakeStoreClient()
    (entry,) = store.seed(1, body="b" * 150)
    controller = _controller(store)

    async def scenario():
        await controller.load_first_page()
        await controller.expand(entry.entry_id)
        controller.collapse()

    asyncio.run(scenario())

    preview = controller.state.loaded_entries[0]
    assert controller.state.expanded_id is None
    assert entry.entry_id in controller.state.full_body_cache
    assert controller.state.body_for(preview) == "b" * 100


def test_short_entry_expands_without_fetch():
    store = FakeStoreClient()
    (entry,) = store.seed(1, body="short")
    controller = _controller(store)

    async def scenario():
        await controller.load_first_page()
        await controller.expand(entry.entry_id)

    asyncio.run(scenario())

    assert store.body_calls == []
    assert controller.state.full_body_cache[entry.entry_id] == "short"


def test_concurrent_expand_of_same_entry_fetches_once():
    store = FakeStoreClient()
    (entry,) = store.seed(1, body="c" * 150)
    controller = _controller(store)

    async def scenario():
        await controller.load_first_page()
        store.body_gate = asyncio.Event()
        first = asyncio.create_task(controller.expand(entry.entry_id))
        second = asyncio.create_task(controller.expand(entry.entry_id))
        await asyncio.sleep(0)
        in_flight = controller.is_fetching_body(entry.entry_id)
        store.body_gate.set()
        await asyncio.gather(first, second)
        return in_flight

    assert asyncio.run(scenario()) is True
    assert store.body_calls == [entry.entry_id]
    assert controller.is_fetching_body(entry.entry_id) is False
    assert controller.state.full_body_cache[entry.entry_id] == "c" * 150


def test_scroll_near_bottom_loads_once_while_in_flight():
    store = FakeStoreClient()
    store.seed(25)
    controller = _controller(store)

    async def scenario():
        await controller.load_first_page()
        store.list_gate = asyncio.Event()
        pending = asyncio.create_task(controller.on_scroll(900, 100, 1050))
        await asyncio.sleep(0)
        assert controller.state.loading is True
        repeated = [await controller.on_scroll(950, 100, 1050) for _ in range(5)]
        await controller.load_next_page()
        store.list_gate.set()
        started = await pending
        return started, repeated

    started, repeated = asyncio.run(scenario())

    assert started is True
    assert repeated == [False] * 5
    assert [call[0] for call in store.list_calls] == [0, 10]
    ids = controller.state.entry_ids
    assert len(ids) == 20
    assert len(set(ids)) == 20
    assert controller.state.loading is False


def test_scroll_far_from_bottom_does_nothing():
    store = FakeStoreClient()
    store.seed(25)
    controller = _controller(store, scroll_threshold=100)

    async def scenario():
        await controller.load_first_page()
        return await controller.on_scroll(0, 500, 2000)

    assert asyncio.run(scenario()) is False
    assert len(store.list_calls) == 1


def test_entries_shifted_by_a_new_insert_are_not_duplicated():
    store = FakeStoreClient()
    store.seed(25)
    controller = _controller(store)

    async def scenario():
        await controller.load_first_page()
        store.gateway.create_entry(title="Late arrival", body="x")
        await controller.load_next_page()

    asyncio.run(scenario())

    ids = controller.state.entry_ids
    assert len(ids) == len(set(ids)) == 19
    assert "Late arrival" not in _titles(controller)


def test_load_all_marks_end_and_blocks_paging_until_first_page():
    store = FakeStoreClient()
    store.seed(25)
    controller = _controller(store)

    async def scenario():
        await controller.load_all()
        after_all = (len(controller.state.loaded_entries), controller.state.end_reached)
        await controller.load_next_page()
        await controller.load_next_page()
        calls_after_all = len(store.list_calls)
        await controller.load_first_page()
        return after_all, calls_after_all

    after_all, calls_after_all = asyncio.run(scenario())

    assert after_all == (25, True)
    assert calls_after_all == 1
    assert store.list_calls[0] == (0, None, 100)
    assert len(controller.state.loaded_entries) == 10
    assert controller.state.end_reached is False


def test_reset_discards_in_flight_page():
    store = FakeStoreClient()
    store.seed(25)
    controller = _controller(store)

    async def scenario():
        await controller.load_first_page()
        store.list_gate = asyncio.Event()
        pending = asyncio.create_task(controller.load_next_page())
        await asyncio.sleep(0)
        controller.reset()
        store.list_gate.set()
        await pending

    asyncio.run(scenario())

    assert controller.state.loaded_entries == []
    assert controller.state.loading is False


def test_close_discards_in_flight_results():
    store = FakeStoreClient()
    (entry,) = store.seed(1, body="d" * 150)
    controller = _controller(store)

    async def scenario():
        await controller.load_first_page()
        store.list_gate = asyncio.Event()
        store.body_gate = asyncio.Event()
        page = asyncio.create_task(controller.load_first_page())
        body = asyncio.create_task(controller.expand(entry.entry_id))
        await asyncio.sleep(0)
        controller.close()
        store.list_gate.set()
        store.body_gate.set()
        await asyncio.gather(page, body)
        await controller.load_first_page()

    asyncio.run(scenario())

    assert controller.closed is True
    assert controller.state.loaded_entries == []
    assert controller.state.full_body_cache == {}
    assert len(store.list_calls) == 2


def test_store_error_is_surfaced_and_loaded_entries_kept():
    store = FakeStoreClient()
    store.seed(25)
    controller = _controller(store)

    async def scenario():
        await controller.load_first_page()
        store.fail_with["list"] = StoreError("relation \"diary\" is unavailable")
        await controller.load_next_page()

    asyncio.run(scenario())

    assert controller.state.error_message == 'relation "diary" is unavailable'
    assert controller.state.loading is False
    assert controller.state.end_reached is False
    assert len(controller.state.loaded_entries) == 10


def test_body_fetch_error_is_surfaced():
    store = FakeStoreClient()
    (entry,) = store.seed(1, body="e" * 150)
    controller = _controller(store)

    async def scenario():
        await controller.load_first_page()
        store.fail_with["body"] = StoreError("fetch failed")
        await controller.expand(entry.entry_id)

    asyncio.run(scenario())

    assert controller.state.error_message == "fetch failed"
    assert entry.entry_id not in controller.state.full_body_cache
    assert controller.is_fetching_body(entry.entry_id) is False


def test_no_queries_until_access_is_verified():
    store = FakeStoreClient()
    (entry,) = store.seed(3, body="f" * 150)[:1]
    verified = {"value": False}
    controller = _controller(store, access_check=lambda: verified["value"])

    async def scenario():
        await controller.load_first_page()
        await controller.load_all()
        await controller.expand(entry.entry_id)
        blocked_message = controller.state.error_message
        verified["value"] = True
        await controller.load_first_page()
        return blocked_message

    blocked_message = asyncio.run(scenario())

    assert blocked_message == NOT_VERIFIED_MESSAGE
    assert store.body_calls == []
    assert len(store.list_calls) == 1
    assert len(controller.state.loaded_entries) == 3
    assert controller.state.error_message == ""


def test_invalid_page_size_is_rejected():
    with pytest.raises(ValueError):
        ListingController(FakeStoreClient(), page_size=0)


def test_created_label_uses_display_timezone():
    store = FakeStoreClient()
    store.seed(1)
    shanghai = _controller(store)
    utc = _controller(store, display_timezone="UTC")

    asyncio.run(shanghai.load_first_page())
    entry = shanghai.state.loaded_entries[0]

    # Seeded at 08:00 UTC.
    assert shanghai.created_label(entry) == "2025/1/1 16:00:00"
    assert utc.created_label(entry) == "2025/1/1 08:00:00"


def test_scroll_reports_no_load_when_access_is_not_verified():
    store = FakeStoreClient()
    store.seed(25)
    verified = {"value": True}
    controller = _controller(store, access_check=lambda: verified["value"])

    async def scenario():
        await controller.load_first_page()
        verified["value"] = False
        return await controller.on_scroll(950, 100, 1050)

    assert asyncio.run(scenario()) is False
    assert len(store.list_calls) == 1
    assert controller.state.error_message == NOT_VERIFIED_MESSAGE


def test_scroll_after_close_reports_no_load():
    store = FakeStoreClient()
    store.seed(25)
    controller = _controller(store)

    async def scenario():
        await controller.load_first_page()
        controller.close()
        return await controller.on_scroll(950, 100, 1050)

    assert asyncio.run(scenario()) is False
    assert len(store.list_calls) == 1


def test_page_loads_and_body_fetches_are_counted():
    metrics = InMemoryMetricsClient()
    store = FakeStoreClient()
    entries = store.seed(15, body="g" * 150)
    controller = _controller(store, metrics=metrics)

    async def scenario():
        await controller.load_first_page()
        await controller.load_next_page()
        await controller.expand(entries[-1].entry_id)
        await controller.load_all()

    asyncio.run(scenario())

    assert metrics.snapshot("listing_") == {
        "listing_body_fetch_total": 1,
        "listing_load_all_total": 1,
        "listing_page_loads_total": 2,
    }
