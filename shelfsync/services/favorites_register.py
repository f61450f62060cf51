# shelfsync/services/favorites_register.py

"""Deduplicated, persisted set of user-marked products."""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from shelfsync.models.product import Product
from shelfsync.storage.durable_store import DurableStore

logger = logging.getLogger("shelfsync.favorites")

FavoritesListener = Callable[[tuple[Product, ...]], Any]


def _unique(products: list[Product]) -> tuple[Product, ...]:
    """First occurrence of each id wins."""
    seen: set[int] = set()
    kept: list[Product] = []
    for product in products:
        if product.id not in seen:
            seen.add(product.id)
            kept.append(product)
    return tuple(kept)


class FavoritesRegister:
    """Owns the favorites list; every mutation is written through.

    Mutations are serialised so a read-modify-write never races another
    one.  The durable write happens before the in-memory commit, and both
    complete before the mutating call returns.
    """

    def __init__(self, store: DurableStore) -> None:
        self._store = store
        self._items: tuple[Product, ...] = ()
        self._loaded = False
        self._lock = asyncio.Lock()
        self._listeners: list[FavoritesListener] = []
        self.loading = False

    def subscribe(self, listener: FavoritesListener) -> Callable[[], None]:
        """Register *listener* for every change to the favorites list."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._items)
            except Exception:
                logger.error(
                    "Favorites listener %r failed", listener, exc_info=True
                )

    # ── Queries ──────────────────────────────────────────

    def items(self) -> tuple[Product, ...]:
        """Favorites in the order they were added."""
        return self._items

    def is_favorite(self, product_id: int) -> bool:
        return any(p.id == product_id for p in self._items)

    # ── Mutations ────────────────────────────────────────

    async def load(self) -> tuple[Product, ...]:
        """Read the persisted favorites into memory."""
        self.loading = True
        self._notify()
        try:
            stored = await asyncio.to_thread(self._store.load_favorites)
        finally:
            self.loading = False
        self._items = _unique(stored)
        self._loaded = True
        logger.info("Loaded %d favorites", len(self._items))
        self._notify()
        return self._items

    async def add(self, product: Product) -> tuple[Product, ...]:
        """Append *product* unless its id is already present."""
        async with self._lock:
            await self._ensure_loaded()
            await self._add(product)
            return self._items

    async def remove(self, product_id: int) -> tuple[Product, ...]:
        """Drop the product with *product_id*; absent ids are a no-op."""
        async with self._lock:
            await self._ensure_loaded()
            await self._remove(product_id)
            return self._items

    async def toggle(self, product: Product) -> bool:
        """Flip favorite status.  Returns the new state."""
        async with self._lock:
            await self._ensure_loaded()
            if self.is_favorite(product.id):
                await self._remove(product.id)
                return False
            await self._add(product)
            return True

    # Callers hold self._lock.

    async def _add(self, product: Product) -> None:
        if self.is_favorite(product.id):
            logger.debug("Product %d already a favorite", product.id)
            return
        await self._commit(self._items + (product,))
        logger.info("Added favorite %d", product.id)

    async def _remove(self, product_id: int) -> None:
        remaining = tuple(p for p in self._items if p.id != product_id)
        if len(remaining) == len(self._items):
            logger.debug("Product %d was not a favorite", product_id)
            return
        await self._commit(remaining)
        logger.info("Removed favorite %d", product_id)

    async def _ensure_loaded(self) -> None:
        if not self._loaded:
            self._items = _unique(
                await asyncio.to_thread(self._store.load_favorites)
            )
            self._loaded = True

    async def _commit(self, items: tuple[Product, ...]) -> None:
        saved = await asyncio.to_thread(self._store.save_favorites, items)
        if not saved:
            logger.warning(
                "Favorites kept in memory only, persisting failed"
            )
        self._items = items
        self._notify()
