"""Adapter registry: adapter name -> (config, factory).

Adapters are constructed lazily and kept for the lifetime of the registry,
so per-instance state (rate limiter, token and term caches) survives across
runs that share a registry.

Configuration comes from adapters.yaml with environment overrides:
- INGEST_USE_SAMPLE_ADAPTER=1: registry holds only the offline sample adapter
- INGEST_<NAME>_ENABLED=true|false
- INGEST_<NAME>_RATE_LIMIT=<requests per minute>
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from stealth.config import get_settings
from stealth.ingestion.adapters import (
    ArenaAdapter,
    CefcAdapter,
    IpAustraliaAdapter,
    NswPlanningAdapter,
    QldEpaAdapter,
    SampleAdapter,
)
from stealth.ingestion.base import AdapterConfig, AdapterConfigError, SourceAdapter
from stealth.schemas.ingestion import ConnectorStatus

logger = logging.getLogger(__name__)

_CONFIG_PATH = Path(__file__).parent / "adapters.yaml"

AdapterFactory = Callable[[AdapterConfig], SourceAdapter]

ADAPTER_FACTORIES: dict[str, AdapterFactory] = {
    "nsw_planning": NswPlanningAdapter,
    "arena": ArenaAdapter,
    "cefc": CefcAdapter,
    "qld_epa": QldEpaAdapter,
    "ip_australia": IpAustraliaAdapter,
}


class UnknownAdapterError(KeyError):
    """Raised when an adapter name is not registered."""

    def __str__(self) -> str:
        return f"Unknown adapter: {self.args[0]}" if self.args else "Unknown adapter"


@lru_cache(maxsize=1)
def load_adapter_file() -> dict[str, dict[str, Any]]:
    """Raw per-adapter settings from adapters.yaml.

    Raises:
        FileNotFoundError: If adapters.yaml is missing.
        AdapterConfigError: If the YAML is malformed or has no ``adapters`` mapping.
    """
    try:
        with _CONFIG_PATH.open() as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise AdapterConfigError(f"Adapter config YAML is malformed: {exc}") from exc
    adapters = data.get("adapters")
    if not isinstance(adapters, dict):
        raise AdapterConfigError("adapters.yaml must contain an 'adapters' mapping")
    return adapters


def _env_flag(name: str) -> bool | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip().lower() in ("1", "true", "yes")


def build_adapter_config(name: str, raw: dict[str, Any]) -> AdapterConfig:
    """AdapterConfig from YAML values plus INGEST_<NAME>_* overrides."""
    prefix = f"INGEST_{name.upper()}"
    enabled = _env_flag(f"{prefix}_ENABLED")
    rate_limit = os.getenv(f"{prefix}_RATE_LIMIT")
    try:
        return AdapterConfig(
            name=name,
            display_name=raw.get("display_name") or name,
            enabled=raw.get("enabled", True) if enabled is None else enabled,
            rate_limit=int(rate_limit) if rate_limit else int(raw.get("rate_limit", 10)),
            timeout_seconds=float(
                raw.get("timeout_seconds") or get_settings().ingest_adapter_timeout
            ),
            base_url=raw.get("base_url"),
        )
    except AdapterConfigError:
        raise
    except (TypeError, ValueError) as exc:
        raise AdapterConfigError(f"{name}: invalid adapter config: {exc}") from exc


class AdapterRegistry:
    """Adapters available to the orchestrator, keyed by unique name."""

    def __init__(self) -> None:
        self._configs: dict[str, AdapterConfig] = {}
        self._factories: dict[str, AdapterFactory] = {}
        self._instances: dict[str, SourceAdapter] = {}

    def register(self, config: AdapterConfig, factory: AdapterFactory) -> None:
        """Register an adapter factory.

        Raises:
            ValueError: If the name is already registered.
        """
        if config.name in self._configs:
            raise ValueError(f"Adapter '{config.name}' is already registered")
        self._configs[config.name] = config
        self._factories[config.name] = factory

    def get(self, name: str) -> SourceAdapter:
        """Adapter instance by name, built on first use.

        Raises:
            UnknownAdapterError: If no adapter with that name is registered.
        """
        if name not in self._configs:
            raise UnknownAdapterError(name)
        if name not in self._instances:
            self._instances[name] = self._factories[name](self._configs[name])
        return self._instances[name]

    def config(self, name: str) -> AdapterConfig:
        if name not in self._configs:
            raise UnknownAdapterError(name)
        return self._configs[name]

    def names(self) -> list[str]:
        return list(self._configs)

    def enabled(self) -> list[SourceAdapter]:
        return [self.get(name) for name, cfg in self._configs.items() if cfg.enabled]

    def describe(self) -> list[ConnectorStatus]:
        return [
            ConnectorStatus(
                name=cfg.name,
                display_name=cfg.display_name,
                enabled=cfg.enabled,
                rate_limit=cfg.rate_limit,
                timeout_seconds=cfg.timeout_seconds,
                base_url=cfg.base_url,
            )
            for cfg in self._configs.values()
        ]

    def __contains__(self, name: object) -> bool:
        return name in self._configs

    def __len__(self) -> int:
        return len(self._configs)


def build_default_registry() -> AdapterRegistry:
    """Registry for the running service, per adapters.yaml and environment."""
    registry = AdapterRegistry()
    if _env_flag("INGEST_USE_SAMPLE_ADAPTER"):
        registry.register(
            AdapterConfig(name="sample", display_name="Sample Data", rate_limit=60),
            SampleAdapter,
        )
        return registry

    for name, raw in load_adapter_file().items():
        factory = ADAPTER_FACTORIES.get(name)
        if factory is None:
            logger.warning("adapters.yaml lists %r but no adapter implements it", name)
            continue
        registry.register(build_adapter_config(name, raw or {}), factory)
    return registry
