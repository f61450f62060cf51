# shelfsync/services/catalog_store.py

"""Process-wide state owner: read-only state plus a fixed set of intents."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from shelfsync.clients.catalog_client import CatalogClient
from shelfsync.models.product import Product
from shelfsync.services.catalog_synchronizer import (
    CatalogSynchronizer,
    CatalogViewState,
)
from shelfsync.services.connectivity import ConnectivityMonitor
from shelfsync.services.favorites_register import FavoritesRegister
from shelfsync.services.fetch_outcome import FetchOutcome
from shelfsync.storage.durable_store import DurableStore

logger = logging.getLogger("shelfsync.store")


@dataclass(frozen=True)
class StoreState:
    """Everything the presentation layer may read."""

    catalog: CatalogViewState
    favorites: tuple[Product, ...]
    favorites_loading: bool


StoreListener = Callable[[StoreState], Any]


class CatalogStore:
    """Composes the client, durable store, synchronizer and favorites.

    The presentation layer never mutates state directly; it reads
    :attr:`state` (or subscribes) and calls the intent methods below.
    """

    def __init__(
        self,
        client: CatalogClient | None = None,
        store: DurableStore | None = None,
        monitor: ConnectivityMonitor | None = None,
        db_path: Path | None = None,
        page_size: int | None = None,
    ) -> None:
        self.client = client or CatalogClient()
        self.store = store or DurableStore(db_path)
        self.monitor = monitor or ConnectivityMonitor(self.client.base_url)
        self.sync = CatalogSynchronizer(self.client, self.store, page_size)
        self.favorites = FavoritesRegister(self.store)
        self._listeners: list[StoreListener] = []
        self._unsubscribers: list[Callable[[], None]] = [
            self.sync.subscribe(lambda _state: self._notify()),
            self.favorites.subscribe(lambda _items: self._notify()),
        ]

    async def __aenter__(self) -> "CatalogStore":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ── Read side ────────────────────────────────────────

    @property
    def state(self) -> StoreState:
        return StoreState(
            catalog=self.sync.state,
            favorites=self.favorites.items(),
            favorites_loading=self.favorites.loading,
        )

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register *listener* for every state change."""
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
                logger.error("Store listener %r failed", listener, exc_info=True)

    # ── Lifecycle ────────────────────────────────────────

    async def start(self, connected: bool | None = None) -> None:
        """Show cached data first, then refresh from the network.

        Connectivity is probed unless *connected* is given.  The
        synchronizer stays subscribed to the monitor until :meth:`close`.
        """
        await asyncio.gather(
            self.sync.load_cached(),
            self.favorites.load(),
        )
        if connected is None:
            connected = await self.monitor.check()
        else:
            self.monitor.set_connected(connected)

        self._unsubscribers.append(
            self.monitor.subscribe(self.sync.on_connectivity_change)
        )
        task = self.sync.on_connectivity_change(connected)
        if task is not None:
            await task

    async def close(self) -> None:
        """Detach listeners, finish pending syncs and release resources."""
        self.monitor.stop()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        await self.sync.wait_idle()
        await self.client.close()
        await asyncio.to_thread(self.store.close)

    # ── Catalog intents ──────────────────────────────────

    def set_search_query(self, query: str) -> None:
        self.sync.set_search_query(query)

    def set_selected_category(self, category: str | None) -> None:
        self.sync.set_selected_category(category)

    def load_more_products(self) -> bool:
        return self.sync.load_more_products()

    def set_refreshing(self, refreshing: bool) -> None:
        self.sync.set_refreshing(refreshing)

    def clear_error(self) -> None:
        self.sync.clear_error()

    async def fetch_products(self) -> FetchOutcome[Product]:
        return await self.sync.fetch_products()

    async def fetch_categories(self) -> FetchOutcome[str]:
        return await self.sync.fetch_categories()

    async def load_cached_products(self) -> bool:
        return await self.sync.load_cached_products()

    async def load_cached_categories(self) -> bool:
        return await self.sync.load_cached_categories()

    async def refresh(self) -> None:
        """Pull-to-refresh, re-probing connectivity first.

        The probe result only gates the fetch; it is not reported as a
        connectivity transition, so an offline refresh leaves state as is.
        """
        connected = await self.monitor.probe()
        await self.sync.refresh(connected)

    async def retry(self) -> None:
        await self.sync.retry()

    async def get_product(self, product_id: int) -> Product | None:
        return await self.sync.get_product(product_id)

    # ── Favorites intents ────────────────────────────────

    async def load_favorites(self) -> tuple[Product, ...]:
        return await self.favorites.load()

    async def add_favorite(self, product: Product) -> tuple[Product, ...]:
        return await self.favorites.add(product)

    async def remove_favorite(self, product_id: int) -> tuple[Product, ...]:
        return await self.favorites.remove(product_id)

    async def toggle_favorite(self, product: Product) -> bool:
        return await self.favorites.toggle(product)

    def is_favorite(self, product_id: int) -> bool:
        return self.favorites.is_favorite(product_id)
