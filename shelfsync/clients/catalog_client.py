# shelfsync/clients/catalog_client.py

"""Async HTTP accessor for the remote product catalog."""

import asyncio
import logging
from typing import Any

from curl_cffi.requests import AsyncSession
from curl_cffi.requests.exceptions import RequestException, Timeout

from shelfsync.clients.errors import (
    DecodeError,
    HttpError,
    NetworkError,
    RequestTimeoutError,
)
from shelfsync.config.settings import Settings

logger = logging.getLogger("shelfsync.client")


class CatalogClient:
    """Issues one GET per call against the catalog API.

    Failures are classified into :mod:`shelfsync.clients.errors`; there
    are no retries here, retry policy belongs to the synchronizer.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.settings = Settings()
        self.base_url: str = (base_url or self.settings.API_BASE_URL).rstrip("/")
        self.timeout: float = (
            timeout if timeout is not None else self.settings.REQUEST_TIMEOUT
        )
        self.session: AsyncSession | None = None

    async def __aenter__(self) -> "CatalogClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _get_session(self) -> AsyncSession:
        if self.session is None:
            self.session = AsyncSession(
                impersonate=self.settings.IMPERSONATE_BROWSER
            )
        return self.session

    async def close(self) -> None:
        """Close the underlying HTTP session, if one was opened."""
        if self.session is not None:
            await self.session.close()
            self.session = None

    # ── Endpoints ────────────────────────────────────────

    async def fetch_products(self) -> Any:
        """GET ``/products``: the full product list."""
        return await self._get_json(self.settings.PRODUCTS_ENDPOINT)

    async def fetch_categories(self) -> Any:
        """GET ``/products/categories``: the category labels."""
        return await self._get_json(self.settings.CATEGORIES_ENDPOINT)

    async def fetch_product_by_id(self, product_id: int) -> Any:
        """GET ``/products/{id}``: a single product."""
        return await self._get_json(
            f"{self.settings.PRODUCTS_ENDPOINT}/{product_id}"
        )

    # ── Transport ────────────────────────────────────────

    async def _get_json(
        self, path: str, timeout: float | None = None,
    ) -> Any:
        """GET *path* and return the decoded JSON body."""
        url = f"{self.base_url}{path}"
        limit = timeout if timeout is not None else self.timeout
        session = self._get_session()

        try:
            resp = await asyncio.wait_for(
                session.get(
                    url,
                    headers=self.settings.DEFAULT_HEADERS,
                    timeout=limit,
                ),
                timeout=limit,
            )
        except (asyncio.TimeoutError, Timeout) as exc:
            logger.warning("GET %s timed out after %.1fs", url, limit)
            raise RequestTimeoutError(limit) from exc
        except RequestException as exc:
            logger.warning("GET %s failed: %s", url, exc)
            raise NetworkError(f"Network request failed: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            logger.warning("GET %s returned HTTP %d", url, resp.status_code)
            raise HttpError(resp.status_code)

        try:
            payload = resp.json()
        except ValueError as exc:
            logger.warning("GET %s returned undecodable JSON: %s", url, exc)
            raise DecodeError(f"Invalid JSON from {path}") from exc

        logger.debug("GET %s -> HTTP %d", url, resp.status_code)
        return payload
