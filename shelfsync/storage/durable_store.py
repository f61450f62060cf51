# shelfsync/storage/durable_store.py

"""SQLite-backed key/value store for the catalog cache and favorites."""

import json
import logging
import sqlite3
import threading
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any, cast

from shelfsync.clients.errors import DecodeError
from shelfsync.config.settings import Settings
from shelfsync.filters.product_validator import ProductValidator
from shelfsync.models.catalog_snapshot import CatalogSnapshot, now_ms
from shelfsync.models.product import Product

logger = logging.getLogger("shelfsync.storage")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS kv_store (
    key        TEXT PRIMARY KEY,
    value      TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""

_MISSING = object()


class DurableStore:
    """Persists three independent records: catalog, categories, favorites.

    Every write replaces one key inside its own transaction, so a record
    is either the previous value or the new one, never a mix.  Reads of
    missing or corrupt keys degrade to "never cached" instead of raising.
    """

    def __init__(
        self, db_path: Path | None = None,
    ) -> None:
        path = db_path or Settings.STORE_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(
            str(path), check_same_thread=False,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)
        self.settings = Settings()
        logger.debug("DurableStore opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()

    # ── Catalog snapshot ─────────────────────────────────

    def save_catalog(
        self,
        products: Iterable[Product],
        timestamp: int | None = None,
    ) -> bool:
        """Persist the full catalog with its capture timestamp."""
        items = [p.to_dict() for p in products]
        record = {
            "products": items,
            "timestamp": timestamp if timestamp is not None else now_ms(),
        }
        saved = self._write(self.settings.PRODUCTS_CACHE_KEY, record)
        if saved:
            logger.info("Cached catalog snapshot of %d products", len(items))
        return saved

    def load_catalog(self) -> CatalogSnapshot | None:
        """Return the cached snapshot, or ``None`` if absent or corrupt."""
        record = self._read(self.settings.PRODUCTS_CACHE_KEY)
        if record is _MISSING:
            return None
        if not isinstance(record, dict):
            logger.warning("Discarding malformed catalog cache record")
            return None

        data = cast(dict[str, Any], record)
        timestamp = data.get("timestamp")
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            logger.warning("Discarding catalog cache without a timestamp")
            return None
        try:
            products, dropped = ProductValidator.parse_products(
                data.get("products")
            )
        except DecodeError:
            logger.warning("Discarding catalog cache without a product list")
            return None
        if dropped:
            logger.warning(
                "Catalog cache contained %d unreadable products", dropped
            )
        return CatalogSnapshot(
            products=tuple(products), timestamp=int(timestamp),
        )

    # ── Categories ───────────────────────────────────────

    def save_categories(self, categories: Iterable[str]) -> bool:
        """Persist the category labels in display order."""
        return self._write(
            self.settings.CATEGORIES_CACHE_KEY, list(categories)
        )

    def load_categories(self) -> tuple[str, ...] | None:
        """Return cached categories, or ``None`` if absent or corrupt."""
        record = self._read(self.settings.CATEGORIES_CACHE_KEY)
        if record is _MISSING:
            return None
        try:
            return tuple(ProductValidator.parse_categories(record))
        except DecodeError:
            logger.warning("Discarding malformed categories cache record")
            return None

    # ── Favorites ────────────────────────────────────────

    def save_favorites(self, products: Iterable[Product]) -> bool:
        """Persist the full favorites list."""
        return self._write(
            self.settings.FAVORITES_KEY,
            [p.to_dict() for p in products],
        )

    def load_favorites(self) -> list[Product]:
        """Return stored favorites; empty when absent or corrupt."""
        record = self._read(self.settings.FAVORITES_KEY)
        if record is _MISSING:
            return []
        try:
            favorites, dropped = ProductValidator.parse_products(record)
        except DecodeError:
            logger.warning("Discarding malformed favorites record")
            return []
        if dropped:
            logger.warning(
                "Favorites record contained %d unreadable entries", dropped
            )
        return favorites

    # ── Maintenance ──────────────────────────────────────

    def clear(self, key: str | None = None) -> int:
        """Delete one key (or every key).  Returns rows removed."""
        try:
            with self._lock:
                if key is None:
                    cur = self._conn.execute("DELETE FROM kv_store")
                else:
                    cur = self._conn.execute(
                        "DELETE FROM kv_store WHERE key = ?", (key,),
                    )
                self._conn.commit()
        except sqlite3.Error as exc:
            logger.warning("Failed to clear store (key=%s): %s", key, exc)
            return 0
        logger.info("Store cleared (key=%s, %d rows)", key, cur.rowcount)
        return cur.rowcount

    def updated_at(self, key: str) -> datetime | None:
        """When *key* was last written, if ever."""
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT updated_at FROM kv_store WHERE key = ?",
                    (key,),
                ).fetchone()
        except sqlite3.Error as exc:
            logger.warning("Failed to read %s timestamp: %s", key, exc)
            return None
        return datetime.fromisoformat(row[0]) if row else None

    # ── Raw access ───────────────────────────────────────

    def _write(self, key: str, value: object) -> bool:
        payload = json.dumps(value, ensure_ascii=False)
        ts = datetime.now().isoformat()
        try:
            with self._lock:
                with self._conn:
                    self._conn.execute(
                        "INSERT INTO kv_store (key, value, updated_at) "
                        "VALUES (?, ?, ?) "
                        "ON CONFLICT(key) DO UPDATE SET "
                        "value=excluded.value, updated_at=excluded.updated_at",
                        (key, payload, ts),
                    )
        except sqlite3.Error as exc:
            logger.warning("Failed to write %s: %s", key, exc)
            return False
        logger.debug("Wrote %s (%d bytes)", key, len(payload))
        return True

    def _read(self, key: str) -> object:
        """Decoded value for *key*, or ``_MISSING``."""
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT value FROM kv_store WHERE key = ?", (key,),
                ).fetchone()
        except sqlite3.Error as exc:
            logger.warning("Failed to read %s: %s", key, exc)
            return _MISSING
        if row is None:
            return _MISSING
        try:
            return json.loads(row[0])
        except json.JSONDecodeError as exc:
            logger.warning("Corrupt JSON under %s: %s", key, exc)
            return _MISSING
