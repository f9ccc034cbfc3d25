"""GC Graph Builder — reconstructs parent/child relations from a snapshot and the schema registry.

Invariants:
    - Nodes live in an arena keyed by (type_key, id); edges are keys, never object pointers
    - Every edge parent -> child has the symmetric child <- parent back-edge
    - Edge lists are deduplicated and keep first-seen order
    - References to ids absent from the snapshot are dropped silently (not errors)
    - After build, each node is root | internal | leaf | isolated by parent/child counts
    - Malformed records and buckets without a schema are excluded (logged); build continues

Design Decisions:
    - Derived structure: rebuilt for each pass, never stored or persisted
    - Cycles need no special casing here; the walker's visited set handles them
"""

import logging
from dataclasses import dataclass, field
from typing import Iterator

from entigraph.core.domain_types import META_KEY, EntityKey, NodeType, normalize_id
from entigraph.core.schema_registry import SchemaRegistry

logger = logging.getLogger(__name__)


@dataclass
class GCNode:
    """One entity in the GC graph."""
    type_key: str
    entity_id: str
    parents: list[EntityKey] = field(default_factory=list)
    children: list[EntityKey] = field(default_factory=list)
    node_type: NodeType = NodeType.ISOLATED
    meta: dict | None = None

    @property
    def key(self) -> EntityKey:
        return (self.type_key, self.entity_id)

    def classify(self) -> NodeType:
        if self.parents and self.children:
            self.node_type = NodeType.INTERNAL
        elif self.parents:
            self.node_type = NodeType.LEAF
        elif self.children:
            self.node_type = NodeType.ROOT
        else:
            self.node_type = NodeType.ISOLATED
        return self.node_type


class GCGraph:
    """Id-indexed adjacency arena."""

    def __init__(self) -> None:
        self.nodes: dict[EntityKey, GCNode] = {}
        self._edges: set[tuple[EntityKey, EntityKey]] = set()

    def add_node(self, type_key: str, entity_id: str, meta: dict | None = None) -> GCNode:
        key = (type_key, entity_id)
        node = self.nodes.get(key)
        if node is None:
            node = GCNode(type_key, entity_id, meta=meta)
            self.nodes[key] = node
        return node

    def add_edge(self, parent: EntityKey, child: EntityKey) -> bool:
        """Add parent -> child and its back-edge. False if duplicate or unknown."""
        if (parent, child) in self._edges:
            return False
        if parent not in self.nodes or child not in self.nodes:
            return False
        self._edges.add((parent, child))
        self.nodes[parent].children.append(child)
        self.nodes[child].parents.append(parent)
        return True

    def classify(self) -> None:
        for node in self.nodes.values():
            node.classify()

    def get(self, key: EntityKey) -> GCNode | None:
        return self.nodes.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[GCNode]:
        return iter(self.nodes.values())

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    def nodes_of(self, node_type: NodeType) -> list[GCNode]:
        return [n for n in self.nodes.values() if n.node_type is node_type]

    @property
    def type_keys(self) -> list[str]:
        return list(dict.fromkeys(type_key for type_key, _ in self.nodes))


def build_graph(snapshot: dict[str, dict[str, dict]], registry: SchemaRegistry) -> GCGraph:
    """Build and classify the GC graph for `snapshot`."""
    graph = GCGraph()
    records: dict[EntityKey, dict] = {}

    for type_key, bucket in snapshot.items():
        if type_key not in registry:
            logger.warning(
                f"GC graph: skipping bucket '{type_key}' without schema",
                extra={"type_key": type_key},
            )
            continue
        if not isinstance(bucket, dict):
            logger.warning(
                f"GC graph: skipping malformed bucket '{type_key}'",
                extra={"type_key": type_key},
            )
            continue
        for raw_id, record in bucket.items():
            entity_id = normalize_id(raw_id)
            if entity_id is None or not isinstance(record, dict):
                logger.warning(
                    f"GC graph: excluding malformed '{type_key}' record {raw_id!r}",
                    extra={"type_key": type_key},
                )
                continue
            meta = record.get(META_KEY)
            graph.add_node(type_key, entity_id, meta if isinstance(meta, dict) else None)
            records[(type_key, entity_id)] = record

    for key, record in records.items():
        schema = registry.get(key[0])
        for _, reference_field, relation in schema.reference_fields():
            for child_id in _reference_ids(record.get(reference_field), relation.is_many):
                graph.add_edge(key, (relation.schema, child_id))

    graph.classify()
    return graph


def _reference_ids(value: object, is_many: bool) -> list[str]:
    if value is None:
        return []
    if is_many:
        if not isinstance(value, list):
            return []
        candidates = value
    else:
        candidates = [value]
    return [i for i in map(normalize_id, candidates) if i is not None]
