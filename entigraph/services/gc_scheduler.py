"""GC Scheduler — periodic steady-state garbage collection on the event loop.

Invariants:
    - At most one background loop per scheduler; start() twice is a no-op
    - A pass never runs while the persistence runtime is restoring
    - A failing pass is logged and the loop keeps its schedule, whatever it raised
    - stop() cancels the loop and waits for it to finish

Design Decisions:
    - Passes run inline on the loop (core is synchronous and bounded by snapshot size);
      removals reach storage through the runtime's throttled writes
"""

import asyncio
import logging

from entigraph.core.domain_types import GCPass
from entigraph.core.errors import EntiGraphError
from entigraph.core.garbage_collector import GarbageCollector, GCReport
from entigraph.services.persistence_runtime import PersistenceRuntime

logger = logging.getLogger(__name__)


class GCScheduler:
    """Runs GarbageCollector.run_steady_state() every `interval_seconds`."""

    def __init__(
        self,
        collector: GarbageCollector,
        interval_seconds: float,
        runtime: PersistenceRuntime | None = None,
    ) -> None:
        self.collector = collector
        self.interval_seconds = interval_seconds
        self.runtime = runtime
        self.last_report: GCReport | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> GCReport | None:
        """One steady-state pass, or None when skipped during restore."""
        if self.runtime is not None and self.runtime.is_restoring:
            logger.debug("GC skipped: restore in progress")
            return None
        report = self.collector.run_steady_state()
        self.last_report = report
        return report

    def start(self) -> None:
        if self.running:
            return
        if self.interval_seconds <= 0:
            logger.info("GC scheduler disabled (interval <= 0)")
            return
        self._task = asyncio.create_task(self._loop())
        logger.info(f"GC scheduler started: every {self.interval_seconds}s")

    async def stop(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("GC scheduler stopped")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.run_once()
            except EntiGraphError as e:
                logger.error(
                    f"Scheduled GC failed: {e.message}",
                    extra={"gc_pass": GCPass.STEADY_STATE.value, "error_code": e.code},
                )
            except Exception:
                logger.exception(
                    "Scheduled GC raised unexpectedly",
                    extra={"gc_pass": GCPass.STEADY_STATE.value},
                )
