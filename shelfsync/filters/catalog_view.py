# shelfsync/filters/catalog_view.py

"""Filtered, incrementally paginated window over the catalog."""

import logging
from collections.abc import Iterable

from shelfsync.config.settings import Settings
from shelfsync.filters.product_filter import ProductFilter
from shelfsync.models.product import Product

logger = logging.getLogger("shelfsync.filters")


class CatalogView:
    """Derives ``filtered_items`` and the visible page window.

    The inputs (full items, query, category) are only changed through
    :meth:`set_items`, :meth:`set_query` and :meth:`set_category`.  Each
    of them recomputes the filtered tuple and collapses the window back
    to the first page, so a larger window is never shown against a
    shorter, newly filtered list.
    """

    def __init__(self, page_size: int | None = None) -> None:
        self.page_size: int = page_size or Settings.ITEMS_PER_PAGE
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1")
        self._items: tuple[Product, ...] = ()
        self._query: str = ""
        self._category: str | None = None
        self._filtered: tuple[Product, ...] = ()
        self._page: int = 1

    # ── Inputs ───────────────────────────────────────────

    @property
    def items(self) -> tuple[Product, ...]:
        return self._items

    @property
    def query(self) -> str:
        return self._query

    @property
    def category(self) -> str | None:
        return self._category

    def set_items(self, items: Iterable[Product]) -> None:
        """Replace the full item set wholesale."""
        self._items = tuple(items)
        self._recompute()

    def set_query(self, query: str) -> None:
        """Change the free-text search query."""
        self._query = query
        self._recompute()

    def set_category(self, category: str | None) -> None:
        """Change the selected category (``None`` clears it)."""
        self._category = category
        self._recompute()

    # ── Derived view ─────────────────────────────────────

    @property
    def filtered_items(self) -> tuple[Product, ...]:
        return self._filtered

    @property
    def page(self) -> int:
        return self._page

    @property
    def visible_count(self) -> int:
        return min(self._page * self.page_size, len(self._filtered))

    @property
    def visible_items(self) -> tuple[Product, ...]:
        return self._filtered[: self.visible_count]

    @property
    def has_more(self) -> bool:
        return self._page * self.page_size < len(self._filtered)

    def is_empty(self) -> bool:
        return not self._items

    def load_more(self, busy: bool = False) -> bool:
        """Grow the window by one page.

        No-op when a fetch is in flight (``busy``) or nothing is left.
        Returns whether the window grew.
        """
        if busy or not self.has_more:
            return False
        self._page += 1
        logger.debug(
            "Loaded page %d (%d of %d visible)",
            self._page,
            self.visible_count,
            len(self._filtered),
        )
        return True

    def find(self, product_id: int) -> Product | None:
        """Look up a product in the full item set by id."""
        for product in self._items:
            if product.id == product_id:
                return product
        return None

    def _recompute(self) -> None:
        self._filtered = tuple(
            ProductFilter.filter_catalog(
                self._items, self._query, self._category
            )
        )
        self._page = 1
