"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - TypeKey and EntityId are plain strings at runtime; ids are always string-normalized
    - EntityKey (type_key, entity_id) is the only way a node is addressed in the GC graph
    - All valid categorical states encoded as Enums, no raw string matching
    - Timestamps are integer milliseconds from the injected clock

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders (snapshot + HTTP responses)
"""

import time
from enum import Enum
from typing import Callable, NewType


# ─── Identity Types ──────────────────────────────────────────────

TypeKey = NewType("TypeKey", str)
EntityId = NewType("EntityId", str)
EntityKey = tuple[str, str]

Clock = Callable[[], int]


# ─── Wire Format Keys ────────────────────────────────────────────

META_KEY = "_meta"
CREATED_AT = "createdAt"
UPDATED_AT = "updatedAt"
ACCESSED_AT = "accessedAt"


# ─── Defaults ────────────────────────────────────────────────────

DEFAULT_GC_TTL_MS = 7 * 24 * 60 * 60 * 1000      # one week
DEFAULT_GC_MAX = 1000
DEFAULT_COLLECTION_LIMIT = 20
DEFAULT_PERSIST_THROTTLE_MS = 1000


# ─── Enums ───────────────────────────────────────────────────────

class Cardinality(str, Enum):
    """Relation cardinality — decides the `<name>Id` vs `<name>Ids` field."""
    ONE = "one"
    MANY = "many"


class NodeType(str, Enum):
    """GC graph node classification by parent/child counts."""
    ROOT = "root"            # no parents, >= 1 child
    INTERNAL = "internal"    # >= 1 parent, >= 1 child
    LEAF = "leaf"            # >= 1 parent, no children
    ISOLATED = "isolated"    # no parents, no children


class Channel(str, Enum):
    """Independently diffed persistence streams."""
    STATE = "state"
    COLLECTIONS = "collections"
    ENTITIES = "entities"


class GCPass(str, Enum):
    """Named garbage collection passes (used in reports, logs, HTTP routes)."""
    GRAPH = "graph"
    TTL = "ttl"
    LRU = "lru"
    STARTUP = "startup"
    STEADY_STATE = "steady_state"


class StoreEventKind(str, Enum):
    """Mutation kinds emitted by the entities store."""
    MERGE = "merge"
    TOUCH = "touch"
    REMOVE = "remove"
    RESET = "reset"


# Restore order is fixed: plain state, then collection ids, then entities.
CHANNEL_RESTORE_ORDER: tuple[Channel, ...] = (
    Channel.STATE, Channel.COLLECTIONS, Channel.ENTITIES,
)


# ─── Helpers ─────────────────────────────────────────────────────

def now_ms() -> int:
    """Default clock: wall time in integer milliseconds."""
    return int(time.time() * 1000)


def normalize_id(value: object) -> str | None:
    """Coerce an id to its canonical string form, or None if unusable.

    Ints and integral floats map to the same string ("10" for 10 and 10.0).
    Booleans are rejected even though bool subclasses int.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return None
    if isinstance(value, str):
        return value if value else None
    return None
