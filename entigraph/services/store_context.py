"""Store Context — builds and owns the RootStore, storage, persistence runtime, and GC scheduler.

Invariants:
    - One context per process (per FastAPI app); routes reach it through app.state
    - start(): bootstrap restore (startup GC included) strictly before the scheduler starts
    - stop(): scheduler stopped before the final flush; database disposed last;
      the final flush runs even when stopping the scheduler raised
    - Modules are registered before bootstrap so their state and collections restore

Design Decisions:
    - The registry and module factories come from the embedding application;
      settings supply namespace, version, throttle, and GC policies
    - No storage passed in -> SqlBlobStorage over settings.database_url
"""

import logging
from dataclasses import dataclass
from typing import Callable

from entigraph.config import Settings
from entigraph.core.domain_types import Clock, now_ms
from entigraph.core.entities_store import EntitiesStore
from entigraph.core.garbage_collector import GCReport
from entigraph.core.repository_protocols import BlobStorage
from entigraph.core.schema_registry import SchemaRegistry
from entigraph.core.store_module import RootStore, StoreModule
from entigraph.infrastructure.blob_storage import SqlBlobStorage
from entigraph.infrastructure.database import DatabaseSessionManager, init_db
from entigraph.services.gc_scheduler import GCScheduler
from entigraph.services.persistence_runtime import PersistenceRuntime

logger = logging.getLogger(__name__)

ModuleFactory = Callable[[EntitiesStore], StoreModule]


@dataclass
class StoreContext:
    """Everything the shell needs around one RootStore."""
    root: RootStore
    storage: BlobStorage
    runtime: PersistenceRuntime
    scheduler: GCScheduler
    db: DatabaseSessionManager | None = None
    startup_report: GCReport | None = None

    async def start(self) -> GCReport:
        if self.db is not None and self.db.engine.url.get_backend_name() == "sqlite":
            await self.db.create_all()
        self.startup_report = await self.runtime.bootstrap()
        logger.info(
            f"Store ready: {self.root.entities.count()} entities, "
            f"startup GC removed {self.startup_report.total}",
        )
        self.scheduler.start()
        return self.startup_report

    async def stop(self) -> None:
        try:
            await self.scheduler.stop()
        finally:
            try:
                await self.runtime.close()
            finally:
                if self.db is not None:
                    await self.db.dispose()


def build_context(
    settings: Settings,
    registry: SchemaRegistry,
    module_factories: list[ModuleFactory] | None = None,
    storage: BlobStorage | None = None,
    clock: Clock = now_ms,
) -> StoreContext:
    """Wire a StoreContext from settings. Raises configuration errors eagerly."""
    root = RootStore(
        registry,
        settings.policy_table(),
        clock=clock,
        reclaim_orphan_cycles=settings.gc_reclaim_orphan_cycles,
    )
    for factory in module_factories or []:
        root.register_module(factory(root.entities))

    db = None
    if storage is None:
        db = init_db(
            settings.database_url,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
        )
        storage = SqlBlobStorage(db)

    runtime = PersistenceRuntime(
        root,
        storage,
        namespace=settings.storage_namespace,
        version=settings.persistence_version,
        throttle_ms=settings.persist_throttle_ms,
    )
    scheduler = GCScheduler(root.gc, settings.gc_interval_seconds, runtime)
    return StoreContext(root, storage, runtime, scheduler, db)
