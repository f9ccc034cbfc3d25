"""Persistence Runtime — versioned bootstrap restore and throttled channel writes.

Invariants:
    - is_restoring is True from the start of bootstrap() until startup GC has run
    - Bootstrap order: load blobs -> state -> collections -> entities -> run_startup GC
      -> clear is_restoring; only then are change subscriptions attached
    - A missing version stamp on empty storage is written; a stored version different
      from the configured one (or channel data without a version) wipes all three
      channels and the stamp in one delete_many call
    - A malformed blob is treated as empty state: full wipe, cold start
    - Mutations never write directly: they schedule one coalesced write per throttle
      window; flush() writes only channels whose text changed
    - Flushes never overlap: diff, write, and mark_written run under one lock, and a
      flush repeats until nothing changed during its own write
    - Mutations observed while is_restoring are ignored

Design Decisions:
    - Storage IO is awaited here; the processor and stores stay synchronous
    - Background flush failures are logged, not raised (no caller to receive them);
      flush() called directly propagates StorageError
"""

import asyncio
import logging
from typing import Callable

from entigraph.core.domain_types import CHANNEL_RESTORE_ORDER, Channel
from entigraph.core.errors import EntiGraphError, PersistenceError
from entigraph.core.garbage_collector import GCReport
from entigraph.core.persistence_processor import PersistenceProcessor
from entigraph.core.repository_protocols import BlobStorage
from entigraph.core.store_module import RootStore

logger = logging.getLogger(__name__)


class PersistenceRuntime:
    """Binds a RootStore to BlobStorage under one namespace and version."""

    def __init__(
        self,
        root: RootStore,
        storage: BlobStorage,
        namespace: str = "entigraph",
        version: int = 1,
        throttle_ms: int = 1000,
    ) -> None:
        self.root = root
        self.storage = storage
        self.namespace = namespace
        self.version = version
        self.throttle_ms = throttle_ms
        self.processor = PersistenceProcessor()
        self.is_restoring = False
        self.bootstrapped = False
        self._unsubscribers: list[Callable[[], None]] = []
        self._pending: asyncio.TimerHandle | None = None
        self._flush_task: asyncio.Task | None = None
        self._write_lock = asyncio.Lock()

    # --- Keys ------------------------------------------------------------------

    def key(self, channel: Channel) -> str:
        return f"{self.namespace}:{channel.value}"

    @property
    def version_key(self) -> str:
        return f"{self.namespace}:version"

    @property
    def all_keys(self) -> list[str]:
        return [self.key(c) for c in CHANNEL_RESTORE_ORDER] + [self.version_key]

    # --- Bootstrap -------------------------------------------------------------

    async def bootstrap(self) -> GCReport:
        """Restore persisted state, run startup GC, then start observing changes."""
        self.is_restoring = True
        try:
            stored = await self.storage.read_many(self.all_keys)
            blobs = {c: stored.get(self.key(c)) for c in CHANNEL_RESTORE_ORDER}

            stored_version = stored.get(self.version_key)
            if not self._version_matches(stored_version, blobs):
                logger.warning(
                    f"Persisted version {stored_version!r} != "
                    f"{self.version}: discarding all channels",
                )
                await self._wipe()
                blobs = {}
            elif stored_version is None:
                await self.storage.write_many({self.version_key: str(self.version)})

            try:
                counts = self.processor.restore(self.root, blobs)
                logger.info(
                    f"Restored state={counts[Channel.STATE]} "
                    f"collections={counts[Channel.COLLECTIONS]} "
                    f"entities={counts[Channel.ENTITIES]}",
                )
            except PersistenceError as e:
                logger.warning(
                    f"Discarding persisted state: {e.message}",
                    extra={"channel": e.channel, "error_code": e.code},
                )
                self.root.reset()
                await self._wipe()
                blobs = {}

            self.processor.forget()
            self.processor.mark_written({c: b for c, b in blobs.items() if b is not None})
            report = self.root.gc.run_startup()
        finally:
            self.is_restoring = False

        self._attach()
        self.bootstrapped = True
        await self.flush()
        return report

    def _version_matches(self, stored_version: str | None, blobs: dict) -> bool:
        if stored_version is None:
            return all(blob is None for blob in blobs.values())
        return stored_version == str(self.version)

    async def _wipe(self) -> None:
        await self.storage.delete_many(self.all_keys)
        await self.storage.write_many({self.version_key: str(self.version)})

    # --- Change tracking -------------------------------------------------------

    def _attach(self) -> None:
        self._detach()
        self._unsubscribers.append(self.root.entities.subscribe(self._on_change))
        for module in self.root:
            self._unsubscribers.append(module.subscribe(self._on_change))
            for collection in module.collections().values():
                self._unsubscribers.append(collection.subscribe(self._on_change))

    def _detach(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def _on_change(self, *_: object) -> None:
        if self.is_restoring:
            return
        self.schedule_write()

    def schedule_write(self) -> None:
        """Coalesce writes: at most one pending flush per throttle window."""
        if self._pending is not None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; write deferred until flush()")
            return
        self._pending = loop.call_later(self.throttle_ms / 1000, self._start_flush)

    @property
    def has_pending_write(self) -> bool:
        return self._pending is not None

    def _start_flush(self) -> None:
        self._pending = None
        self._flush_task = asyncio.ensure_future(self._flush_in_background())

    async def _flush_in_background(self) -> None:
        try:
            await self.flush()
        except EntiGraphError as e:
            logger.error(
                f"Background persistence write failed: {e.message}",
                extra={"error_code": e.code},
            )

    # --- Writes ----------------------------------------------------------------

    async def flush(self) -> list[Channel]:
        """Write every changed channel now. Returns the channels written."""
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        written: list[Channel] = []
        async with self._write_lock:
            while True:
                try:
                    writes = self.processor.pending_writes(self.root)
                except PersistenceError as e:
                    logger.error(
                        f"Cannot serialize channel: {e.message}",
                        extra={"channel": e.channel, "error_code": e.code},
                    )
                    return written
                if not writes:
                    return written
                await self.storage.write_many(
                    {self.key(c): text for c, text in writes.items()},
                )
                self.processor.mark_written(writes)
                logger.debug(f"Persisted channels: {', '.join(c.value for c in writes)}")
                written.extend(c for c in writes if c not in written)

    async def close(self) -> None:
        """Stop observing, cancel the timer, await in-flight work, final flush."""
        self._detach()
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        if self._flush_task is not None and not self._flush_task.done():
            await self._flush_task
        if self.bootstrapped:
            await self.flush()
