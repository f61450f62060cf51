# shelfsync/filters/product_validator.py

"""Payload validation: turn decoded JSON into Products, dropping bad rows."""

import logging
from typing import Any, cast

from shelfsync.clients.errors import DecodeError
from shelfsync.models.product import Product

logger = logging.getLogger("shelfsync.filters")


class ProductValidator:
    """Validate catalog payloads and drop entries missing essential fields."""

    @staticmethod
    def parse_products(payload: Any) -> tuple[list[Product], int]:
        """Decode a product-list payload.

        Entries that fail to decode, have an empty title, a negative
        price, an out-of-range rating or a repeated id are dropped.

        Returns the valid products and the count of dropped entries.
        Raises :class:`DecodeError` when the payload is not a list.
        """
        if not isinstance(payload, list):
            raise DecodeError(
                f"Expected a product list, got {type(payload).__name__}"
            )

        valid: list[Product] = []
        seen_ids: set[int] = set()
        dropped = 0

        for entry in cast(list[object], payload):
            product = ProductValidator.parse_product(entry)
            if product is None:
                dropped += 1
                continue
            if product.id in seen_ids:
                logger.debug("Dropped duplicate product id=%d", product.id)
                dropped += 1
                continue
            seen_ids.add(product.id)
            valid.append(product)

        if dropped:
            logger.info(
                "Validation dropped %d invalid catalog entries",
                dropped,
            )

        return valid, dropped

    @staticmethod
    def parse_product(entry: Any) -> Product | None:
        """Decode a single product entry, or ``None`` if it is invalid."""
        if not isinstance(entry, dict):
            logger.debug("Dropped non-object catalog entry: %r", entry)
            return None
        try:
            product = Product.from_dict(cast(dict[str, Any], entry))
        except (KeyError, TypeError, ValueError) as exc:
            logger.debug("Dropped undecodable catalog entry: %s", exc)
            return None

        if not product.title.strip():
            logger.debug("Dropped product id=%d with empty title", product.id)
            return None
        if product.price < 0:
            logger.debug(
                "Dropped product id=%d with negative price", product.id
            )
            return None
        if not 0 <= product.rating.rate <= 5 or product.rating.count < 0:
            logger.debug(
                "Dropped product id=%d with out-of-range rating",
                product.id,
            )
            return None
        return product

    @staticmethod
    def parse_categories(payload: Any) -> list[str]:
        """Decode a category-list payload, keeping first-seen order.

        Raises :class:`DecodeError` when the payload is not a list.
        """
        if not isinstance(payload, list):
            raise DecodeError(
                f"Expected a category list, got {type(payload).__name__}"
            )
        categories: list[str] = []
        for entry in cast(list[object], payload):
            if isinstance(entry, str) and entry and entry not in categories:
                categories.append(entry)
        return categories
