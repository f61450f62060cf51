# shelfsync/filters/product_filter.py

"""Search-query and category filtering over the catalog."""

import logging
from collections.abc import Iterable

from shelfsync.models.product import Product

logger = logging.getLogger("shelfsync.filters")


class ProductFilter:
    """Filter catalog products by free-text query and category."""

    @staticmethod
    def filter_catalog(
        products: Iterable[Product],
        query: str,
        category: str | None,
    ) -> list[Product]:
        """Return the products matching both the query and the category.

        The query is a case-insensitive substring match on the title and
        is skipped when empty.  The category is an exact match and is
        skipped when ``None``.  Input order is preserved.
        """
        filtered = list(products)

        if query:
            needle = query.lower()
            filtered = [p for p in filtered if needle in p.title.lower()]

        if category is not None:
            filtered = [p for p in filtered if p.category == category]

        logger.debug(
            "Filter query=%r category=%r kept %d products",
            query,
            category,
            len(filtered),
        )
        return filtered
