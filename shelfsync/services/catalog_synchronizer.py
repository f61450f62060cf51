# shelfsync/services/catalog_synchronizer.py

"""Cache-first, network-refresh loading of the catalog.

The synchronizer is the single owner of catalog state.  Every network or
storage call runs as an awaited task, but each state transition is
applied in one synchronous step between awaits, so concurrent
completions interleave safely without ever splitting a transition.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from shelfsync.clients.catalog_client import CatalogClient
from shelfsync.clients.errors import CatalogClientError
from shelfsync.filters.catalog_view import CatalogView
from shelfsync.filters.product_validator import ProductValidator
from shelfsync.models.product import Product
from shelfsync.services.fetch_outcome import (
    FallbackToCache,
    Fetched,
    FetchFailed,
    FetchOutcome,
)
from shelfsync.storage.durable_store import DurableStore

logger = logging.getLogger("shelfsync.sync")


class SyncPhase(Enum):
    """Coarse lifecycle phase, derived from the state flags."""

    IDLE = "idle"
    LOADING_CACHE = "loading_cache"
    FETCHING = "fetching"
    REFRESHING = "refreshing"
    OFFLINE = "offline"
    ERROR = "error"


@dataclass(frozen=True)
class CatalogViewState:
    """Read-only snapshot of the catalog handed to the presentation layer."""

    query: str
    category: str | None
    items: tuple[Product, ...]
    filtered_items: tuple[Product, ...]
    visible_items: tuple[Product, ...]
    page: int
    visible_count: int
    has_more: bool
    categories: tuple[str, ...]
    loading: bool
    refreshing: bool
    offline: bool
    error: str | None
    phase: SyncPhase
    last_synced_at: datetime | None


StateListener = Callable[[CatalogViewState], Any]


class CatalogSynchronizer:
    """Orchestrates cache loads, network fetches and offline fallback."""

    def __init__(
        self,
        client: CatalogClient,
        store: DurableStore,
        page_size: int | None = None,
    ) -> None:
        self._client = client
        self._store = store
        self._view = CatalogView(page_size)
        self._categories: tuple[str, ...] = ()
        self._fetches = 0
        self._loading_cache = False
        self._refreshing = False
        self._offline = False
        self._error: str | None = None
        self._last_synced_at: datetime | None = None

        self._connected: bool | None = None
        self._fetch_latch = False
        self._tasks: set[asyncio.Task[None]] = set()
        self._listeners: list[StateListener] = []

    # ── Read side ────────────────────────────────────────

    @property
    def loading(self) -> bool:
        """A non-refresh product fetch is in flight."""
        return self._fetches > 0 and not self._refreshing

    @property
    def phase(self) -> SyncPhase:
        if self._refreshing:
            return SyncPhase.REFRESHING
        if self.loading:
            return SyncPhase.FETCHING
        if self._loading_cache:
            return SyncPhase.LOADING_CACHE
        if self._error is not None:
            return SyncPhase.ERROR
        if self._offline:
            return SyncPhase.OFFLINE
        return SyncPhase.IDLE

    @property
    def connected(self) -> bool | None:
        """Last connectivity reported, ``None`` before the first report."""
        return self._connected

    @property
    def state(self) -> CatalogViewState:
        view = self._view
        return CatalogViewState(
            query=view.query,
            category=view.category,
            items=view.items,
            filtered_items=view.filtered_items,
            visible_items=view.visible_items,
            page=view.page,
            visible_count=view.visible_count,
            has_more=view.has_more,
            categories=self._categories,
            loading=self.loading,
            refreshing=self._refreshing,
            offline=self._offline,
            error=self._error,
            phase=self.phase,
            last_synced_at=self._last_synced_at,
        )

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register *listener* for every committed transition."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.state
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.error("State listener %r failed", listener, exc_info=True)

    # ── View intents ─────────────────────────────────────

    def set_search_query(self, query: str) -> None:
        self._view.set_query(query)
        self._notify()

    def set_selected_category(self, category: str | None) -> None:
        self._view.set_category(category)
        self._notify()

    def load_more_products(self) -> bool:
        """Grow the visible window; no-op while a fetch is in flight."""
        grew = self._view.load_more(busy=self._fetches > 0)
        if grew:
            self._notify()
        return grew

    def set_refreshing(self, refreshing: bool) -> None:
        self._refreshing = refreshing
        self._notify()

    def clear_error(self) -> None:
        self._error = None
        self._notify()

    # ── Cache loads ──────────────────────────────────────

    async def load_cached(self) -> None:
        """Load cached products and categories for instant display."""
        self._loading_cache = True
        self._notify()
        try:
            await asyncio.gather(
                self.load_cached_products(),
                self.load_cached_categories(),
            )
        finally:
            self._loading_cache = False
            self._notify()

    async def load_cached_products(self) -> bool:
        """Adopt the cached snapshot if nothing is loaded yet.

        A populated in-memory set is never replaced: a slow cache read
        must not clobber a network result that arrived first.
        """
        snapshot = await asyncio.to_thread(self._store.load_catalog)
        if snapshot is None or not snapshot.products:
            return False
        if not self._view.is_empty():
            logger.debug("Cached catalog ignored, items already loaded")
            return False
        self._view.set_items(snapshot.products)
        self._last_synced_at = snapshot.captured_at
        logger.info(
            "Loaded %d cached products from %s",
            len(snapshot.products),
            snapshot.captured_at.isoformat(timespec="seconds"),
        )
        self._notify()
        return True

    async def load_cached_categories(self) -> bool:
        """Adopt cached categories if none are loaded yet."""
        cached = await asyncio.to_thread(self._store.load_categories)
        if not cached or self._categories:
            return False
        self._categories = cached
        self._notify()
        return True

    # ── Network fetches ──────────────────────────────────

    async def fetch_products(self) -> FetchOutcome[Product]:
        """Fetch the catalog, falling back to the cached snapshot."""
        self._fetches += 1
        self._error = None
        self._notify()
        try:
            outcome = await self._synchronize_products()
        finally:
            self._fetches -= 1

        if isinstance(outcome, Fetched):
            self._view.set_items(outcome.items)
            self._offline = False
            self._last_synced_at = datetime.now()
        elif isinstance(outcome, FallbackToCache):
            self._view.set_items(outcome.items)
            self._offline = True
            if outcome.timestamp is not None:
                self._last_synced_at = datetime.fromtimestamp(
                    outcome.timestamp / 1000
                )
        else:
            self._error = outcome.message
        self._notify()
        return outcome

    async def _synchronize_products(self) -> FetchOutcome[Product]:
        try:
            payload = await self._client.fetch_products()
            products, _dropped = ProductValidator.parse_products(payload)
        except CatalogClientError as exc:
            snapshot = await asyncio.to_thread(self._store.load_catalog)
            if snapshot is not None:
                logger.warning(
                    "Product fetch failed (%s), using %d cached products",
                    exc,
                    len(snapshot.products),
                )
                return FallbackToCache(
                    items=snapshot.products,
                    reason=str(exc),
                    timestamp=snapshot.timestamp,
                )
            logger.warning("Product fetch failed with no cache: %s", exc)
            return FetchFailed(message=str(exc) or "Failed to fetch products")

        await asyncio.to_thread(self._store.save_catalog, products)
        logger.info("Fetched %d products", len(products))
        return Fetched(items=tuple(products))

    async def fetch_categories(self) -> FetchOutcome[str]:
        """Fetch categories; failures are logged and never surfaced."""
        outcome = await self._synchronize_categories()
        if isinstance(outcome, (Fetched, FallbackToCache)):
            self._categories = outcome.items
            self._notify()
        else:
            logger.warning("Categories unavailable: %s", outcome.message)
        return outcome

    async def _synchronize_categories(self) -> FetchOutcome[str]:
        try:
            payload = await self._client.fetch_categories()
            categories = ProductValidator.parse_categories(payload)
        except CatalogClientError as exc:
            cached = await asyncio.to_thread(self._store.load_categories)
            if cached is not None:
                logger.warning(
                    "Category fetch failed (%s), using cached categories",
                    exc,
                )
                return FallbackToCache(items=cached, reason=str(exc))
            return FetchFailed(
                message=str(exc) or "Failed to fetch categories"
            )

        await asyncio.to_thread(self._store.save_categories, categories)
        return Fetched(items=tuple(categories))

    async def sync(self) -> None:
        """Fetch products and categories concurrently."""
        await asyncio.gather(self.fetch_products(), self.fetch_categories())

    async def refresh(self, connected: bool | None = None) -> None:
        """User pull-to-refresh.

        Offline (per *connected*, or the last reported connectivity) ends
        immediately without a network attempt.
        """
        online = connected if connected is not None else self._connected
        self.set_refreshing(True)
        try:
            if online is False:
                logger.info("Refresh skipped while offline")
                return
            if self._tasks:
                # A reconnect sync is already in flight; join it.
                await self.wait_idle()
            else:
                await self.sync()
        finally:
            self.set_refreshing(False)

    async def retry(self) -> None:
        """Dismiss the current error and re-attempt both fetches."""
        self.clear_error()
        if self._tasks:
            await self.wait_idle()
        else:
            await self.sync()

    async def get_product(self, product_id: int) -> Product | None:
        """Product detail lookup: in-memory first, then the network."""
        product = self._view.find(product_id)
        if product is not None:
            return product
        try:
            payload = await self._client.fetch_product_by_id(product_id)
        except CatalogClientError as exc:
            logger.warning("Product %d not found: %s", product_id, exc)
            return None
        return ProductValidator.parse_product(payload)

    # ── Connectivity ─────────────────────────────────────

    def on_connectivity_change(
        self, connected: bool,
    ) -> asyncio.Task[None] | None:
        """React to a connectivity report.

        Going offline re-arms the one-shot fetch latch; the first
        "online" report after that spawns exactly one :meth:`sync`.
        Repeated reports of the same connectivity are ignored.  Returns
        the spawned task, if any.
        """
        if connected == self._connected:
            return None
        self._connected = connected
        self._offline = not connected
        if not connected:
            self._fetch_latch = False
            self._notify()
            return None

        self._notify()
        if self._fetch_latch:
            return None
        self._fetch_latch = True
        logger.info("Connectivity available, syncing catalog")
        task = asyncio.get_running_loop().create_task(self.sync())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait for any connectivity-triggered syncs still running."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
