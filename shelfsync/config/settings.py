# shelfsync/config/settings.py

"""Central configuration for the shelfsync catalog engine."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the shelfsync catalog engine."""

    # --- Remote catalog ---
    API_BASE_URL: str = os.getenv(
        "SHELFSYNC_API_BASE_URL", "https://fakestoreapi.com"
    ).rstrip("/")
    PRODUCTS_ENDPOINT: str = "/products"
    CATEGORIES_ENDPOINT: str = "/products/categories"
    REQUEST_TIMEOUT: float = float(
        os.getenv("SHELFSYNC_REQUEST_TIMEOUT", "10")
    )                                   # Seconds before a request is cancelled

    # --- HTTP transport ---
    # TLS profile for the curl_cffi session
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": "application/json",
    }

    # --- Pagination ---
    ITEMS_PER_PAGE: int = 8

    # --- Connectivity ---
    CONNECTIVITY_PROBE_TIMEOUT: float = 5.0
    CONNECTIVITY_POLL_INTERVAL: float = 30.0
    CONNECTIVITY_SLOW_MS: float = 5000.0

    # --- Storage keys ---
    PRODUCTS_CACHE_KEY: str = "products_cache"
    CATEGORIES_CACHE_KEY: str = "categories_cache"
    FAVORITES_KEY: str = "favorites"

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_DIR: Path = Path(
        os.getenv("SHELFSYNC_DATA_DIR", str(BASE_DIR / "data"))
    )
    STORE_PATH: Path = DATA_DIR / "shelfsync.db"
    LOGS_DIR: Path = BASE_DIR / "logs"
