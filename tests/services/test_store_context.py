"""Store Context & Settings — wiring the RootStore, storage, runtime, and scheduler.

Invariants:
    - Settings build the GC policy table (explicit entries + default)
    - Misconfigured policies fail when the context is built, not at first GC
    - Without injected storage the context persists to the configured database
    - stop() still flushes when a scheduled pass blew up in a store listener
"""

import asyncio
import json

import pytest

from entigraph.config import Settings
from entigraph.core.domain_types import StoreEventKind
from entigraph.core.errors import GCPolicyError
from entigraph.core.gc_policy import GCPolicy
from entigraph.infrastructure import database
from entigraph.infrastructure.blob_storage import InMemoryBlobStorage, SqlBlobStorage
from entigraph.services.store_context import build_context


# --- Settings -----------------------------------------------------------------

def test_policy_table_from_settings():
    settings = Settings(
        gc_policies={"post": {"ttl": 5, "max": 1}},
        gc_default_ttl_ms=100, gc_default_max=9,
    )
    table = settings.policy_table()
    assert table.for_type("post") == GCPolicy(5, 1)
    assert table.for_type("viewer") == GCPolicy(100, 9)


def test_policies_parsed_from_env(monkeypatch):
    monkeypatch.setenv("GC_POLICIES", '{"post": {"ttl": 60000, "max": 50}}')
    assert Settings().policy_table().for_type("post") == GCPolicy(60_000, 50)


def test_postgres_url_gets_async_driver():
    settings = Settings(database_url="postgresql://u:p@db:5432/graph")
    assert settings.database_url == "postgresql+asyncpg://u:p@db:5432/graph"


# --- Context ------------------------------------------------------------------

async def test_context_with_injected_storage(registry, clock, feed_module_cls):
    settings = Settings(gc_interval_seconds=0, storage_namespace="ctx")
    storage = InMemoryBlobStorage()
    ctx = build_context(settings, registry, [feed_module_cls], storage, clock)

    assert ctx.db is None
    assert ctx.root.module("feed").name == "feed"

    await ctx.start()
    assert ctx.runtime.bootstrapped
    assert ctx.startup_report.total == 0
    assert storage.data["ctx:version"] == "1"
    await ctx.stop()


def test_policy_for_unknown_type_fails_fast(registry):
    settings = Settings(gc_policies={"photo": {"ttl": 1, "max": 1}})
    with pytest.raises(GCPolicyError):
        build_context(settings, registry, storage=InMemoryBlobStorage())


async def test_context_persists_to_sqlite(tmp_path, registry, clock, feed_module_cls):
    settings = Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'ctx.db'}",
        gc_interval_seconds=0,
    )
    ctx = build_context(settings, registry, [feed_module_cls], clock=clock)
    assert isinstance(ctx.storage, SqlBlobStorage)

    await ctx.start()
    ctx.root.entities.merge("post", {"id": "1", "viewer": {"id": "10"}})
    await ctx.stop()

    restarted = build_context(settings, registry, [feed_module_cls], clock=clock)
    await restarted.start()
    assert restarted.root.entities.has("post", "1")
    assert restarted.root.entities.has("viewer", "10")
    await restarted.stop()


async def test_stop_flushes_after_listener_failure_in_scheduled_gc(
    registry, clock, feed_module_cls, caplog,
):
    settings = Settings(
        gc_interval_seconds=0.01, persist_throttle_ms=10_000, storage_namespace="ctx",
    )
    storage = InMemoryBlobStorage()
    ctx = build_context(settings, registry, [feed_module_cls], storage, clock)
    await ctx.start()

    def listener(event):
        if event.kind is StoreEventKind.REMOVE:
            raise RuntimeError("listener bug")

    ctx.root.entities.subscribe(listener)
    ctx.root.entities.merge("post", {"id": "1", "viewer": {"id": "10"}})
    ctx.root.entities.merge("viewer", {"id": "stray"})
    await asyncio.sleep(0.05)

    assert ctx.scheduler.running
    assert "Scheduled GC raised unexpectedly" in caplog.text

    await ctx.stop()

    persisted = json.loads(storage.data["ctx:entities"])
    assert "1" in persisted["post"]
    assert "stray" not in persisted["viewer"]


async def test_each_context_owns_its_database(tmp_path, registry):
    settings = Settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'own.db'}")
    first = build_context(settings, registry)
    second = build_context(settings, registry)

    assert first.db is not second.db
    assert not hasattr(database, "db_manager")

    await first.db.dispose()
    await second.db.dispose()
