"""Scheduler factory: selects the active scheduler adapter by name.

Usage::

    from vine_harvester.scheduler.factory import get_scheduler

    adapter = get_scheduler("cloud_scheduler", config)
    adapter.get_job("weather")

The adapter name is read from the ``SCHEDULER_BACKEND`` environment
variable via ``AppConfig.scheduler_backend``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from vine_harvester.scheduler.base import SchedulerAdapter, SchedulerConfig, SchedulerError

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

CLOUD_SCHEDULER = "cloud_scheduler"
MEMORY = "memory"

# Lazy imports keep httpx out of processes that only use the in-memory adapter.
_ADAPTER_REGISTRY: dict[str, Callable[[], type[SchedulerAdapter]]] = {}


def _register_builtin_adapters() -> None:
    def _cloud_scheduler() -> type[SchedulerAdapter]:
        from vine_harvester.scheduler.cloud_scheduler import CloudSchedulerAdapter

        return CloudSchedulerAdapter

    def _memory() -> type[SchedulerAdapter]:
        from vine_harvester.scheduler.memory import InMemorySchedulerAdapter

        return InMemorySchedulerAdapter

    _ADAPTER_REGISTRY[CLOUD_SCHEDULER] = _cloud_scheduler
    _ADAPTER_REGISTRY[MEMORY] = _memory


def _ensure_registry() -> None:
    if not _ADAPTER_REGISTRY:
        _register_builtin_adapters()


def register_scheduler(name: str, loader: Callable[[], type[SchedulerAdapter]]) -> None:
    """Register (or replace) a scheduler adapter.

    Args:
        name: Adapter identifier.
        loader: Zero-arg callable returning the adapter class.

    Raises:
        ValueError: If the name is empty.
    """
    if not name:
        msg = "Scheduler name must be non-empty"
        raise ValueError(msg)
    _ensure_registry()
    _ADAPTER_REGISTRY[name] = loader
    logger.debug("Registered scheduler adapter: %s", name)


def get_scheduler(name: str, config: SchedulerConfig | None = None) -> SchedulerAdapter:
    """Create and return a scheduler adapter instance.

    Args:
        name: Adapter identifier (``"cloud_scheduler"`` or ``"memory"``).
        config: Optional ``SchedulerConfig``; defaults to one carrying
            just the adapter name.

    Raises:
        SchedulerError: If the name is not registered or *config*
            names a different adapter.
    """
    _ensure_registry()

    loader = _ADAPTER_REGISTRY.get(name)
    if loader is None:
        available = ", ".join(sorted(_ADAPTER_REGISTRY))
        msg = f"Unknown scheduler adapter: {name!r}. Available: {available}"
        raise SchedulerError(msg)

    adapter_cls = loader()

    if config is None:
        config = SchedulerConfig(name=name)
    elif config.name != name:
        msg = f"SchedulerConfig.name {config.name!r} does not match requested adapter {name!r}"
        raise SchedulerError(msg)

    logger.info("Creating scheduler adapter: %s", name)
    return adapter_cls(config)


def list_schedulers() -> list[str]:
    """Return the names of all registered scheduler adapters."""
    _ensure_registry()
    return sorted(_ADAPTER_REGISTRY)
