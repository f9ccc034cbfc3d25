"""Garbage Collector — composes graph build, walk, and TTL/LRU analysis into cleanup passes.

Invariants:
    - Each pass reads one snapshot at invocation and removes in one store mutation
    - Passes never abort on a malformed record; it is excluded and the pass proceeds
    - Collections are never touched: they skip ids that no longer hydrate
    - run_startup() = graph then TTL; LRU is steady-state only
    - process_graph() is idempotent: a second run without merges removes nothing

Design Decisions:
    - Receives store/registry/policies explicitly (no ambient lookup)
    - Returns a GCReport per pass so the shell can log/expose what was evicted
"""

import logging
from dataclasses import dataclass, field

from entigraph.core.domain_types import Clock, GCPass, now_ms
from entigraph.core.entities_store import EntitiesStore
from entigraph.core.gc_analyzer import find_expired, find_overflow
from entigraph.core.gc_graph import build_graph
from entigraph.core.gc_policy import GCPolicyTable
from entigraph.core.gc_walker import unreachable_ids, walk_graph
from entigraph.core.schema_registry import SchemaRegistry

logger = logging.getLogger(__name__)


@dataclass
class GCReport:
    """What one pass (or composite pass) removed, per type key."""
    gc_pass: GCPass
    removed: dict[str, list[str]] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(len(ids) for ids in self.removed.values())

    def merge(self, other: "GCReport") -> None:
        for type_key, ids in other.removed.items():
            self.removed.setdefault(type_key, []).extend(ids)

    def to_dict(self) -> dict:
        return {"pass": self.gc_pass.value, "removed": self.removed, "total": self.total}


class GarbageCollector:
    """Reachability, TTL and LRU eviction over an EntitiesStore."""

    def __init__(
        self,
        store: EntitiesStore,
        registry: SchemaRegistry,
        policies: GCPolicyTable,
        clock: Clock = now_ms,
        reclaim_orphan_cycles: bool = False,
    ) -> None:
        self.store = store
        self.registry = registry
        self.policies = policies
        self._clock = clock
        self.reclaim_orphan_cycles = reclaim_orphan_cycles

    def process_graph(self) -> GCReport:
        """Remove every node not reachable from a root."""
        graph = build_graph(self.store.snapshot(), self.registry)
        results = walk_graph(graph, self.reclaim_orphan_cycles)
        retained = sum(len(r.retained) for r in results.values())
        if retained:
            logger.info(
                f"GC graph: {retained} node(s) kept on rootless cycles",
                extra={"gc_pass": GCPass.GRAPH.value},
            )
        return self._remove(GCPass.GRAPH, unreachable_ids(results))

    def process_ttl(self) -> GCReport:
        """Remove records whose accessedAt is past their type's TTL."""
        expired = find_expired(self.store.snapshot(), self.policies, self._clock())
        return self._remove(GCPass.TTL, expired)

    def process_lru(self) -> GCReport:
        """Trim buckets above their type's max size, least recently accessed first."""
        overflow = find_overflow(self.store.snapshot(), self.policies)
        return self._remove(GCPass.LRU, overflow)

    def run_startup(self) -> GCReport:
        report = GCReport(GCPass.STARTUP)
        report.merge(self.process_graph())
        report.merge(self.process_ttl())
        return report

    def run_steady_state(self) -> GCReport:
        report = GCReport(GCPass.STEADY_STATE)
        report.merge(self.process_graph())
        report.merge(self.process_ttl())
        report.merge(self.process_lru())
        return report

    def run(self, gc_pass: GCPass) -> GCReport:
        """Dispatch a pass by name."""
        handlers = {
            GCPass.GRAPH: self.process_graph,
            GCPass.TTL: self.process_ttl,
            GCPass.LRU: self.process_lru,
            GCPass.STARTUP: self.run_startup,
            GCPass.STEADY_STATE: self.run_steady_state,
        }
        return handlers[gc_pass]()

    def _remove(self, gc_pass: GCPass, targets: dict[str, list[str]]) -> GCReport:
        removed = self.store.remove_many(targets) if targets else {}
        report = GCReport(gc_pass, removed)
        if report.total:
            logger.info(
                f"GC {gc_pass.value}: removed {report.total} record(s)",
                extra={"gc_pass": gc_pass.value, "removed": report.total},
            )
        return report
