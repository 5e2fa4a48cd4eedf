"""Source adapter contract.

Any object with ``name``, ``config`` and an async ``fetch_signals(since)``
returning a ConnectorResult is an adapter; registration happens through
AdapterRegistry, not inheritance. HttpSourceAdapter is an optional base
that supplies timing, rate limiting and the never-raise guarantee.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, runtime_checkable

import httpx

from stealth.schemas.ingestion import ConnectorResult
from stealth.schemas.signal import RawSignal

logger = logging.getLogger(__name__)

USER_AGENT = "StealthDiscovery/0.1 (+registry monitoring)"


class AdapterConfigError(ValueError):
    """Raised when an adapter configuration is invalid."""


@dataclass
class AdapterConfig:
    name: str
    display_name: str
    enabled: bool = True
    rate_limit: int = 10  # requests per minute
    timeout_seconds: float = 120.0
    base_url: str | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise AdapterConfigError("Adapter name is required")
        if self.rate_limit <= 0:
            raise AdapterConfigError(
                f"{self.name}: rate_limit must be positive, got {self.rate_limit}"
            )
        if self.timeout_seconds <= 0:
            raise AdapterConfigError(
                f"{self.name}: timeout_seconds must be positive, got {self.timeout_seconds}"
            )


@runtime_checkable
class SourceAdapter(Protocol):
    name: str
    config: AdapterConfig

    async def fetch_signals(self, since: datetime | None) -> ConnectorResult: ...


class RateLimiter:
    """Enforces a minimum gap of 60 / rate_limit seconds between calls.

    State is per instance, so each adapter throttles independently.
    """

    def __init__(
        self,
        rate_limit: int,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.interval = 60.0 / rate_limit
        self._clock = clock
        self._sleep = sleep
        self._last: float | None = None
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        async with self._lock:
            if self._last is not None:
                delay = self.interval - (self._clock() - self._last)
                if delay > 0:
                    await self._sleep(delay)
            self._last = self._clock()


class HttpSourceAdapter(ABC):
    """Base for registry adapters that talk HTTP.

    Subclasses implement ``collect``, appending to ``signals`` as records are
    converted. Any exception it raises is turned into an error entry and the
    signals appended before it are still returned. Errors appended along the
    way make the result partial rather than failed.
    """

    def __init__(self, config: AdapterConfig) -> None:
        self.config = config
        self.name = config.name
        self.rate_limiter = RateLimiter(config.rate_limit)

    @abstractmethod
    async def collect(
        self,
        client: httpx.AsyncClient,
        since: datetime | None,
        signals: list[RawSignal],
        errors: list[str],
    ) -> None:
        """Fetch upstream records and append the converted signals."""

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT},
            timeout=httpx.Timeout(30.0),
            follow_redirects=True,
        )

    async def get(self, client: httpx.AsyncClient, url: str, **kwargs) -> httpx.Response:
        """Rate-limited GET; raises httpx errors for the caller to record."""
        await self.rate_limiter.wait()
        response = await client.get(url, **kwargs)
        response.raise_for_status()
        return response

    async def fetch_signals(self, since: datetime | None) -> ConnectorResult:
        start = time.perf_counter()
        errors: list[str] = []
        signals: list[RawSignal] = []
        try:
            async with self.client() as client:
                await self.collect(client, since, signals, errors)
        except httpx.HTTPError as e:
            logger.warning("%s: upstream error: %s", self.name, e)
            errors.append(f"{self.name}: {type(e).__name__}: {e}")
        except Exception as e:
            logger.exception("%s: fetch failed", self.name)
            errors.append(f"{self.name}: {e}")

        return ConnectorResult(
            success=not errors,
            signals_discovered=len(signals),
            signals=signals,
            errors=errors,
            duration_ms=int((time.perf_counter() - start) * 1000),
        )
