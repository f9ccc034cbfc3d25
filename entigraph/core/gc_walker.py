"""GC Graph Walker — reachability from root nodes over a built GCGraph.

Invariants:
    - Traversal starts at every root node; a visited set makes it cycle-safe and
      linear in edge count
    - Iterative (explicit stack): graph depth never hits the recursion limit
    - The reachable/unreachable partition is a set result independent of root order
    - Isolated nodes are always unreachable
    - Unvisited nodes that still have parents can only hang off rootless cycles
      (any other ancestor chain ends at a root); these are `retained` unless
      reclaim_orphan_cycles is set, in which case they are unreachable too

Design Decisions:
    - Rootless cycles are kept by default: a self-referencing pair with no outside
      parent has parents and children, so it is not isolated and is not reclaimed
"""

from dataclasses import dataclass, field

from entigraph.core.domain_types import EntityKey, NodeType
from entigraph.core.gc_graph import GCGraph


@dataclass
class WalkResult:
    """Reachability partition for one type-key bucket (sets of ids)."""
    roots: set[str] = field(default_factory=set)
    reachable: set[str] = field(default_factory=set)
    unreachable: set[str] = field(default_factory=set)
    retained: set[str] = field(default_factory=set)


def visit_from_roots(graph: GCGraph) -> set[EntityKey]:
    """Keys reachable from any root, roots included."""
    visited: set[EntityKey] = set()
    for root in graph.nodes_of(NodeType.ROOT):
        if root.key in visited:
            continue
        stack = [root.key]
        while stack:
            key = stack.pop()
            if key in visited:
                continue
            visited.add(key)
            stack.extend(c for c in graph.nodes[key].children if c not in visited)
    return visited


def walk_graph(
    graph: GCGraph, reclaim_orphan_cycles: bool = False,
) -> dict[str, WalkResult]:
    """Partition every node of `graph` per type key."""
    visited = visit_from_roots(graph)
    results: dict[str, WalkResult] = {k: WalkResult() for k in graph.type_keys}

    for node in graph:
        result = results[node.type_key]
        if node.node_type is NodeType.ROOT:
            result.roots.add(node.entity_id)
        if node.key in visited:
            result.reachable.add(node.entity_id)
        elif node.parents and not reclaim_orphan_cycles:
            result.retained.add(node.entity_id)
        else:
            result.unreachable.add(node.entity_id)
    return results


def unreachable_ids(results: dict[str, WalkResult]) -> dict[str, list[str]]:
    """Flatten walk results to {type_key: sorted unreachable ids}, empty buckets dropped."""
    return {
        type_key: sorted(result.unreachable)
        for type_key, result in results.items()
        if result.unreachable
    }
