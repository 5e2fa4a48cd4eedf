"""Ingestion orchestrator: run adapters concurrently and aggregate their results.

Each adapter runs in its own task with its own timeout and exception
boundary, so one adapter failing or hanging never affects the others.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from stealth.config import get_settings
from stealth.ingestion.base import SourceAdapter
from stealth.ingestion.registry import AdapterRegistry
from stealth.schemas.ingestion import ConnectorResult

logger = logging.getLogger(__name__)


@dataclass
class AggregateResult:
    total_signals: int = 0
    results: dict[str, ConnectorResult] = field(default_factory=dict)

    @property
    def errors(self) -> list[str]:
        return [error for result in self.results.values() for error in result.errors]

    @property
    def success(self) -> bool:
        return all(result.success for result in self.results.values())


def default_since() -> datetime:
    return datetime.now(UTC) - timedelta(days=get_settings().ingest_default_since_days)


class IngestionOrchestrator:
    """Runs registered adapters, all enabled ones or a single named one."""

    def __init__(self, registry: AdapterRegistry) -> None:
        self.registry = registry

    async def run_all(self, since: datetime | None = None) -> AggregateResult:
        """Run every enabled adapter concurrently."""
        since = since or default_since()
        adapters = self.registry.enabled()
        if not adapters:
            logger.warning("No enabled adapters")
            return AggregateResult()

        async with asyncio.TaskGroup() as tg:
            tasks = {
                adapter.name: tg.create_task(self._run_safely(adapter, since), name=adapter.name)
                for adapter in adapters
            }
        return self._aggregate({name: task.result() for name, task in tasks.items()})

    async def run_one(self, name: str, since: datetime | None = None) -> AggregateResult:
        """Run a single adapter by name (targeted backfill).

        Raises:
            UnknownAdapterError: If ``name`` is not registered.
        """
        adapter = self.registry.get(name)
        result = await self._run_safely(adapter, since or default_since())
        return self._aggregate({name: result})

    async def _run_safely(self, adapter: SourceAdapter, since: datetime) -> ConnectorResult:
        """Run one adapter under its timeout. Never raises."""
        timeout = adapter.config.timeout_seconds
        start = time.perf_counter()
        logger.info("Adapter %s starting (since=%s)", adapter.name, since.isoformat())
        try:
            result = await asyncio.wait_for(adapter.fetch_signals(since), timeout=timeout)
        except asyncio.TimeoutError:
            elapsed_ms = int((time.perf_counter() - start) * 1000)
            logger.error("Adapter %s timed out after %.1fs", adapter.name, elapsed_ms / 1000)
            return ConnectorResult(
                success=False,
                errors=[f"{adapter.name}: timed out after {timeout:g}s"],
                duration_ms=elapsed_ms,
            )
        except Exception as exc:
            elapsed_ms = int((time.perf_counter() - start) * 1000)
            logger.exception("Adapter %s raised", adapter.name)
            return ConnectorResult(
                success=False,
                errors=[f"{adapter.name}: {exc}"],
                duration_ms=elapsed_ms,
            )

        logger.info(
            "Adapter %s finished: %d signals, %d errors in %dms",
            adapter.name,
            result.signals_discovered,
            len(result.errors),
            result.duration_ms,
        )
        return result

    @staticmethod
    def _aggregate(results: dict[str, ConnectorResult]) -> AggregateResult:
        return AggregateResult(
            total_signals=sum(len(r.signals) for r in results.values()),
            results=results,
        )
