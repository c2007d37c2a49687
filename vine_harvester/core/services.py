"""Service wiring: builds the store, scheduler and engines from ``AppConfig``.

``function_app.py`` builds one ``Services`` per worker process and
hands requests to it; tests build their own with the in-memory
scheduler and a temporary SQLite file.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from vine_harvester.core.config import AppConfig
from vine_harvester.models.datasource import DataSourceRegistry
from vine_harvester.query.correlation import CorrelationEngine
from vine_harvester.scheduler.base import SchedulerAdapter, SchedulerConfig
from vine_harvester.scheduler.factory import get_scheduler
from vine_harvester.scheduler.reconciler import JobReconciler, ReconcileResult
from vine_harvester.storage.base import ObservationStore, VineyardRepository
from vine_harvester.storage.sql import create_store

logger = logging.getLogger("vine_harvester.core.services")


@dataclass(slots=True)
class Services:
    config: AppConfig
    registry: DataSourceRegistry
    store: ObservationStore
    vineyards: VineyardRepository
    scheduler: SchedulerAdapter
    engine: CorrelationEngine
    reconciler: JobReconciler

    def reconcile(self) -> ReconcileResult:
        """Run one reconciliation pass; failures are logged, never raised."""
        result = self.reconciler.reconcile_all(self.registry)
        for name, exc in sorted(result.failed.items()):
            logger.error("Data source not scheduled | source=%s | error=%s", name, exc)
        return result


def build_services(config: AppConfig) -> Services:
    """Wire every component from *config*.

    Raises:
        ConfigValidationError: If the registry file is invalid.
    """
    config.apply_logging()
    registry = (
        DataSourceRegistry.from_yaml(config.config_path) if config.config_path else DataSourceRegistry()
    )
    store, vineyards = create_store(config.database_url)
    scheduler = get_scheduler(
        config.scheduler_backend,
        SchedulerConfig(
            name=config.scheduler_backend,
            project_id=config.scheduler_project_id or "local",
            location_id=config.scheduler_location_id or "local",
            api_base_url=config.scheduler_api_base_url,
            access_token=config.scheduler_access_token,
        ),
    )
    parallel = min(config.parallel_ingestions, registry.parallel_ingestions)
    logger.info(
        "Services built | scheduler=%s | sources=%d | parallel_ingestions=%d",
        config.scheduler_backend,
        len(registry),
        parallel,
    )
    return Services(
        config=config,
        registry=registry,
        store=store,
        vineyards=vineyards,
        scheduler=scheduler,
        engine=CorrelationEngine(store, vineyards, max_workers=parallel),
        reconciler=JobReconciler(scheduler, max_workers=config.reconcile_workers),
    )
