# tests/test_catalog_synchronizer.py

"""Tests for CatalogSynchronizer loading, fallback and connectivity."""

import asyncio
import tempfile
import unittest
from pathlib import Path
from typing import Any

from shelfsync.clients.errors import HttpError, NetworkError, RequestTimeoutError
from shelfsync.models.product import Product
from shelfsync.services.catalog_synchronizer import (
    CatalogSynchronizer,
    CatalogViewState,
    SyncPhase,
)
from shelfsync.services.fetch_outcome import FallbackToCache, Fetched, FetchFailed
from shelfsync.storage.durable_store import DurableStore


def _row(pid: int, title: str = "Item", category: str = "misc") -> dict[str, Any]:
    """API-shaped product row."""
    return {
        "id": pid,
        "title": f"{title} {pid}",
        "price": 10.0,
        "category": category,
        "description": "",
        "image": "",
        "rating": {"rate": 4.0, "count": 1},
    }


def _product(pid: int, title: str = "Cached") -> Product:
    return Product(id=pid, title=f"{title} {pid}", price=5.0, category="misc")


class FakeClient:
    """Stub catalog client returning canned payloads or raising."""

    def __init__(self) -> None:
        self.products: Any = [_row(i) for i in range(1, 11)]
        self.categories: Any = ["electronics", "jewelery"]
        self.product_error: Exception | None = None
        self.category_error: Exception | None = None
        self.product_delay = 0.0
        self.product_calls = 0
        self.category_calls = 0
        self.detail_calls = 0

    async def fetch_products(self) -> Any:
        self.product_calls += 1
        if self.product_delay:
            await asyncio.sleep(self.product_delay)
        if self.product_error is not None:
            raise self.product_error
        return self.products

    async def fetch_categories(self) -> Any:
        self.category_calls += 1
        if self.category_error is not None:
            raise self.category_error
        return self.categories

    async def fetch_product_by_id(self, product_id: int) -> Any:
        self.detail_calls += 1
        if self.product_error is not None:
            raise self.product_error
        return _row(product_id, "Remote")

    async def close(self) -> None:
        return None


class SynchronizerTestCase(unittest.IsolatedAsyncioTestCase):
    """Shared fixtures: a fake client and a real on-disk store."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.store = DurableStore(Path(self._tmp.name) / "store.db")
        self.client = FakeClient()
        self.sync = CatalogSynchronizer(
            self.client, self.store, page_size=8,  # type: ignore[arg-type]
        )

    def tearDown(self) -> None:
        self.store.close()
        self._tmp.cleanup()


class TestFetchProducts(SynchronizerTestCase):
    """Network success, offline fallback and hard failure."""

    async def test_success_replaces_items_and_writes_through(self) -> None:
        """A successful fetch adopts the payload and caches it."""
        outcome = await self.sync.fetch_products()

        self.assertIsInstance(outcome, Fetched)
        state = self.sync.state
        self.assertEqual(len(state.items), 10)
        self.assertFalse(state.offline)
        self.assertIsNone(state.error)
        self.assertFalse(state.loading)
        self.assertIsNotNone(state.last_synced_at)
        snapshot = self.store.load_catalog()
        assert snapshot is not None
        self.assertEqual(len(snapshot.products), 10)

    async def test_failure_without_cache_sets_error(self) -> None:
        """No cache: items stay empty, error set, not offline."""
        self.client.product_error = NetworkError("Network request failed")

        outcome = await self.sync.fetch_products()

        self.assertIsInstance(outcome, FetchFailed)
        state = self.sync.state
        self.assertEqual(state.items, ())
        self.assertEqual(state.error, "Network request failed")
        self.assertFalse(state.offline)
        self.assertEqual(state.phase, SyncPhase.ERROR)

    async def test_failure_with_cache_falls_back_offline(self) -> None:
        """Prior cache of 20: adopt those 20, offline, no error."""
        cached = [_product(i) for i in range(1, 21)]
        self.store.save_catalog(cached, timestamp=1_700_000_000_000)
        self.client.product_error = RequestTimeoutError(10.0)

        outcome = await self.sync.fetch_products()

        self.assertIsInstance(outcome, FallbackToCache)
        state = self.sync.state
        self.assertEqual(list(state.items), cached)
        self.assertTrue(state.offline)
        self.assertIsNone(state.error)
        self.assertEqual(state.phase, SyncPhase.OFFLINE)

    async def test_failure_never_overwrites_snapshot(self) -> None:
        """The persisted snapshot survives a failed fetch."""
        self.store.save_catalog([_product(1)], timestamp=7)
        self.client.product_error = HttpError(500)

        await self.sync.fetch_products()

        snapshot = self.store.load_catalog()
        assert snapshot is not None
        self.assertEqual(snapshot.timestamp, 7)
        self.assertEqual([p.id for p in snapshot.products], [1])

    async def test_failure_leaves_loaded_items_untouched(self) -> None:
        """Without a cache, existing in-memory items survive a failure."""
        await self.sync.fetch_products()
        self.store.clear()
        self.client.product_error = HttpError(502)

        await self.sync.fetch_products()

        self.assertEqual(len(self.sync.state.items), 10)
        self.assertIsNotNone(self.sync.state.error)

    async def test_malformed_payload_is_a_failure(self) -> None:
        """A non-list payload is treated like a network failure."""
        self.client.products = {"unexpected": True}

        outcome = await self.sync.fetch_products()

        self.assertIsInstance(outcome, FetchFailed)
        self.assertIsNone(self.store.load_catalog())

    async def test_success_clears_previous_offline_and_error(self) -> None:
        """Recovery after failure resets the flags."""
        self.client.product_error = NetworkError("down")
        await self.sync.fetch_products()
        self.client.product_error = None

        await self.sync.fetch_products()

        self.assertIsNone(self.sync.state.error)
        self.assertFalse(self.sync.state.offline)
        self.assertEqual(self.sync.state.phase, SyncPhase.IDLE)

    async def test_loading_flag_while_in_flight(self) -> None:
        """loading is set during the fetch and blocks load_more."""
        self.client.products = [_row(i) for i in range(1, 21)]
        await self.sync.fetch_products()
        self.client.product_delay = 0.05

        task = asyncio.ensure_future(self.sync.fetch_products())
        await asyncio.sleep(0.01)
        self.assertTrue(self.sync.state.loading)
        self.assertEqual(self.sync.state.phase, SyncPhase.FETCHING)
        self.assertFalse(self.sync.load_more_products())
        await task
        self.assertFalse(self.sync.state.loading)
        self.assertTrue(self.sync.load_more_products())

    async def test_loading_held_until_overlapping_fetches_finish(self) -> None:
        """A fast fetch finishing first does not clear loading."""
        self.client.products = [_row(i) for i in range(1, 21)]
        self.client.product_delay = 0.2
        slow = asyncio.ensure_future(self.sync.fetch_products())
        await asyncio.sleep(0.01)
        self.client.product_delay = 0.0

        await self.sync.fetch_products()

        self.assertFalse(slow.done())
        self.assertTrue(self.sync.state.loading)
        self.assertFalse(self.sync.load_more_products())
        await slow
        self.assertFalse(self.sync.state.loading)
        self.assertTrue(self.sync.load_more_products())


class TestCategories(SynchronizerTestCase):
    """Category fetch is independent and non-fatal."""

    async def test_success_sets_categories(self) -> None:
        """Categories are adopted and cached."""
        await self.sync.fetch_categories()
        self.assertEqual(
            self.sync.state.categories, ("electronics", "jewelery")
        )
        self.assertEqual(
            self.store.load_categories(), ("electronics", "jewelery")
        )

    async def test_failure_is_swallowed(self) -> None:
        """A category failure never sets error or offline."""
        self.client.category_error = NetworkError("boom")
        outcome = await self.sync.fetch_categories()
        self.assertIsInstance(outcome, FetchFailed)
        self.assertIsNone(self.sync.state.error)
        self.assertFalse(self.sync.state.offline)
        self.assertEqual(self.sync.state.categories, ())

    async def test_failure_uses_cached_categories(self) -> None:
        """Cached categories are used when the fetch fails."""
        self.store.save_categories(["books"])
        self.client.category_error = HttpError(404)
        outcome = await self.sync.fetch_categories()
        self.assertIsInstance(outcome, FallbackToCache)
        self.assertEqual(self.sync.state.categories, ("books",))

    async def test_category_failure_does_not_block_products(self) -> None:
        """Products still load when categories fail in the same sync."""
        self.client.category_error = NetworkError("boom")
        await self.sync.sync()
        self.assertEqual(len(self.sync.state.items), 10)
        self.assertIsNone(self.sync.state.error)


class TestLoadCached(SynchronizerTestCase):
    """Cache-first display."""

    async def test_populates_empty_state(self) -> None:
        """Cached data is shown when nothing is loaded."""
        self.store.save_catalog([_product(1), _product(2)], timestamp=1000)
        self.store.save_categories(["misc"])

        await self.sync.load_cached()

        state = self.sync.state
        self.assertEqual([p.id for p in state.items], [1, 2])
        self.assertEqual(state.categories, ("misc",))
        self.assertFalse(state.offline)
        self.assertEqual(state.phase, SyncPhase.IDLE)

    async def test_never_overwrites_populated_state(self) -> None:
        """A late cache read does not clobber network results."""
        self.store.save_catalog([_product(99)], timestamp=1)
        await self.sync.fetch_products()
        # fetch wrote through, so seed a stale cache again
        self.store.save_catalog([_product(99)], timestamp=1)

        adopted = await self.sync.load_cached_products()

        self.assertFalse(adopted)
        self.assertEqual(len(self.sync.state.items), 10)

    async def test_empty_cache_is_ignored(self) -> None:
        """No cache leaves state empty."""
        self.assertFalse(await self.sync.load_cached_products())
        self.assertFalse(await self.sync.load_cached_categories())
        self.assertEqual(self.sync.state.items, ())


class TestViewIntents(SynchronizerTestCase):
    """Query/category/page intents go through the view."""

    async def test_query_and_category_reset_page(self) -> None:
        """Filter changes collapse the window to page one."""
        self.client.products = [_row(i, "Shirt", "men's clothing") for i in range(1, 21)]
        await self.sync.fetch_products()
        self.sync.load_more_products()
        self.assertEqual(self.sync.state.page, 2)

        self.sync.set_search_query("shirt 1")
        state = self.sync.state
        self.assertEqual(state.page, 1)
        # Shirt 1, Shirt 10..19
        self.assertEqual(len(state.filtered_items), 11)
        self.assertTrue(state.has_more)

        self.sync.load_more_products()
        self.sync.set_selected_category("women's clothing")
        state = self.sync.state
        self.assertEqual(state.page, 1)
        self.assertEqual(state.filtered_items, ())
        self.assertFalse(state.has_more)

    async def test_clear_error(self) -> None:
        """clear_error dismisses the error."""
        self.client.product_error = NetworkError("down")
        await self.sync.fetch_products()
        self.sync.clear_error()
        self.assertIsNone(self.sync.state.error)

    async def test_listeners_receive_snapshots(self) -> None:
        """Subscribers see every committed state."""
        seen: list[CatalogViewState] = []
        unsubscribe = self.sync.subscribe(seen.append)
        await self.sync.fetch_products()
        self.assertTrue(any(s.loading for s in seen))
        self.assertEqual(len(seen[-1].items), 10)

        unsubscribe()
        count = len(seen)
        self.sync.set_search_query("x")
        self.assertEqual(len(seen), count)

    async def test_failing_listener_does_not_block_others(self) -> None:
        """A raising listener is logged, others still run."""
        seen: list[CatalogViewState] = []

        def _broken(_state: CatalogViewState) -> None:
            raise RuntimeError("listener bug")

        self.sync.subscribe(_broken)
        self.sync.subscribe(seen.append)
        with self.assertLogs("shelfsync.sync", level="ERROR"):
            self.sync.set_search_query("x")
        self.assertEqual(len(seen), 1)


class TestRefreshAndRetry(SynchronizerTestCase):
    """User-driven refresh and retry."""

    async def test_refresh_offline_makes_no_request(self) -> None:
        """Offline refresh ends immediately with state unchanged."""
        await self.sync.fetch_products()
        before = self.sync.state
        calls = self.client.product_calls

        await self.sync.refresh(connected=False)

        self.assertEqual(self.client.product_calls, calls)
        self.assertEqual(self.client.category_calls, 0)
        self.assertFalse(self.sync.state.refreshing)
        self.assertEqual(self.sync.state.items, before.items)

    async def test_refresh_online_fetches_both(self) -> None:
        """Online refresh runs both fetches and clears refreshing."""
        refreshing_seen: list[bool] = []
        self.sync.subscribe(lambda s: refreshing_seen.append(s.refreshing))

        await self.sync.refresh(connected=True)

        self.assertEqual(self.client.product_calls, 1)
        self.assertEqual(self.client.category_calls, 1)
        self.assertIn(True, refreshing_seen)
        self.assertFalse(self.sync.state.refreshing)
        self.assertFalse(self.sync.state.loading)

    async def test_refresh_uses_last_known_connectivity(self) -> None:
        """Without an argument, the last reported connectivity decides."""
        self.sync.on_connectivity_change(False)
        await self.sync.refresh()
        self.assertEqual(self.client.product_calls, 0)

    async def test_retry_clears_error_and_refetches(self) -> None:
        """retry dismisses the error and re-attempts both fetches."""
        self.client.product_error = NetworkError("down")
        await self.sync.fetch_products()
        self.client.product_error = None

        await self.sync.retry()

        self.assertIsNone(self.sync.state.error)
        self.assertEqual(len(self.sync.state.items), 10)
        self.assertEqual(self.client.category_calls, 1)

    async def test_retry_joins_reconnect_sync(self) -> None:
        """retry during a reconnect sync waits for it instead of refetching."""
        self.client.product_delay = 0.05
        self.assertIsNotNone(self.sync.on_connectivity_change(True))

        await self.sync.retry()

        self.assertEqual(self.client.product_calls, 1)
        self.assertEqual(self.client.category_calls, 1)
        self.assertFalse(self.sync.state.loading)
        self.assertEqual(len(self.sync.state.items), 10)


class TestConnectivity(SynchronizerTestCase):
    """One fetch per online transition."""

    async def test_online_transition_fetches_once(self) -> None:
        """Repeated online reports spawn a single sync."""
        task = self.sync.on_connectivity_change(True)
        self.assertIsNotNone(task)
        self.assertIsNone(self.sync.on_connectivity_change(True))
        await self.sync.wait_idle()
        self.assertEqual(self.client.product_calls, 1)
        self.assertEqual(self.client.category_calls, 1)

    async def test_offline_rearms_latch(self) -> None:
        """online → offline → online triggers a second sync."""
        self.sync.on_connectivity_change(True)
        await self.sync.wait_idle()
        self.assertIsNone(self.sync.on_connectivity_change(False))
        self.assertTrue(self.sync.state.offline)
        self.assertIsNotNone(self.sync.on_connectivity_change(True))
        await self.sync.wait_idle()
        self.assertEqual(self.client.product_calls, 2)

    async def test_going_offline_sets_flag(self) -> None:
        """An offline report marks the session offline."""
        self.sync.on_connectivity_change(False)
        self.assertTrue(self.sync.state.offline)
        self.assertEqual(self.client.product_calls, 0)


class TestGetProduct(SynchronizerTestCase):
    """Detail lookup."""

    async def test_in_memory_first(self) -> None:
        """Loaded products are served without a request."""
        await self.sync.fetch_products()
        product = await self.sync.get_product(3)
        assert product is not None
        self.assertEqual(product.title, "Item 3")
        self.assertEqual(self.client.detail_calls, 0)

    async def test_falls_back_to_network(self) -> None:
        """Unknown ids are fetched individually."""
        product = await self.sync.get_product(42)
        assert product is not None
        self.assertEqual(product.title, "Remote 42")
        self.assertEqual(self.client.detail_calls, 1)

    async def test_not_found(self) -> None:
        """A failing detail request yields None."""
        self.client.product_error = HttpError(404)
        self.assertIsNone(await self.sync.get_product(42))


if __name__ == "__main__":
    unittest.main()
