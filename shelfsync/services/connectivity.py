# shelfsync/services/connectivity.py

"""Connectivity probing and online/offline transition events."""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from curl_cffi.requests import AsyncSession

from shelfsync.config.settings import Settings

logger = logging.getLogger("shelfsync.connectivity")

ConnectivityListener = Callable[[bool], Any]


@dataclass
class ConnectivityResult:
    """Result of a single connectivity probe."""

    url: str
    status: str  # "ok", "slow", "down"
    latency_ms: float
    message: str

    @property
    def connected(self) -> bool:
        return self.status != "down"


async def probe_connectivity(
    url: str | None = None,
    timeout: float | None = None,
) -> ConnectivityResult:
    """GET *url* (the catalog base URL by default) and time the answer.

    Transport failures, timeouts and 5xx answers report "down"; any
    other HTTP response means the catalog host is reachable.
    """
    settings = Settings()
    target = url or settings.API_BASE_URL
    limit = timeout or settings.CONNECTIVITY_PROBE_TIMEOUT

    start = time.monotonic()
    try:
        async with AsyncSession(
            impersonate=settings.IMPERSONATE_BROWSER
        ) as session:
            resp = await asyncio.wait_for(
                session.get(
                    target,
                    headers=settings.DEFAULT_HEADERS,
                    timeout=limit,
                ),
                timeout=limit,
            )
        elapsed_ms = (time.monotonic() - start) * 1000
    except Exception as exc:
        elapsed_ms = (time.monotonic() - start) * 1000
        return ConnectivityResult(
            url=target,
            status="down",
            latency_ms=elapsed_ms,
            message=str(exc)[:80] or type(exc).__name__,
        )

    if resp.status_code >= 500:
        return ConnectivityResult(
            url=target,
            status="down",
            latency_ms=elapsed_ms,
            message=f"HTTP {resp.status_code}",
        )

    if elapsed_ms > settings.CONNECTIVITY_SLOW_MS:
        return ConnectivityResult(
            url=target,
            status="slow",
            latency_ms=elapsed_ms,
            message="High latency",
        )

    return ConnectivityResult(
        url=target,
        status="ok",
        latency_ms=elapsed_ms,
        message="",
    )


class ConnectivityMonitor:
    """Tracks connectivity and emits a callback on every transition."""

    def __init__(self, url: str | None = None) -> None:
        self.url = url
        self._connected: bool | None = None
        self._listeners: list[ConnectivityListener] = []
        self._stopped = asyncio.Event()
        self.last_result: ConnectivityResult | None = None

    @property
    def is_connected(self) -> bool | None:
        """Last known connectivity, ``None`` before the first report."""
        return self._connected

    def subscribe(self, listener: ConnectivityListener) -> Callable[[], None]:
        """Register *listener*; it receives ``True``/``False`` on changes."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_connected(self, connected: bool) -> bool:
        """Record connectivity; notify listeners only on a transition.

        Returns whether a transition happened.
        """
        if connected == self._connected:
            return False
        self._connected = connected
        logger.info("Connectivity changed: %s", "online" if connected else "offline")
        for listener in list(self._listeners):
            try:
                listener(connected)
            except Exception:
                logger.error(
                    "Connectivity listener %r failed", listener, exc_info=True
                )
        return True

    async def check(self) -> bool:
        """Probe once, record the result and report any transition."""
        connected = await self.probe()
        self.set_connected(connected)
        return connected

    async def probe(self) -> bool:
        """Probe once and record the result without notifying listeners."""
        result = await probe_connectivity(self.url)
        self.last_result = result
        logger.debug(
            "Connectivity probe %s: %s (%.0fms) %s",
            result.url,
            result.status,
            result.latency_ms,
            result.message,
        )
        return result.connected

    async def watch(self, interval: float | None = None) -> None:
        """Poll :meth:`check` every *interval* seconds until :meth:`stop`."""
        period = interval or Settings.CONNECTIVITY_POLL_INTERVAL
        self._stopped.clear()
        while not self._stopped.is_set():
            await self.check()
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=period)
            except asyncio.TimeoutError:
                continue

    def stop(self) -> None:
        """Stop a running :meth:`watch` loop."""
        self._stopped.set()
