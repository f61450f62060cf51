# shelfsync/models/catalog_snapshot.py

"""Timestamped copy of the catalog persisted for offline use."""

import time
from dataclasses import dataclass
from datetime import datetime

from shelfsync.models.product import Product


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CatalogSnapshot:
    """The last successfully fetched catalog and when it was captured."""

    products: tuple[Product, ...]
    timestamp: int  # epoch milliseconds

    @property
    def captured_at(self) -> datetime:
        """Capture time as a local datetime."""
        return datetime.fromtimestamp(self.timestamp / 1000)
