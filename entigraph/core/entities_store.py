"""Entities Store — the normalized snapshot: type key -> id -> plain record.

Invariants:
    - The snapshot is the single source of truth; every view is derived from it
    - Records change only through merge / merge_normalized / touch / remove / reset
    - Merge shallow-merges: new fields win, unspecified fields keep their prior value
    - createdAt is set on first insertion only; updatedAt/accessedAt move on every merge
    - get_entity never raises for a missing id; it returns None
    - Every mutation emits exactly one StoreEvent, after the snapshot is consistent

Design Decisions:
    - Reads hand out copies (get_record, snapshot, hydrated models) so callers cannot
      bypass the merge path by mutating returned dicts
    - Keyed watchers (type_key, id) receive data mutations only; accessedAt touches
      go to store-wide listeners (persistence) but not to watchers
"""

import copy
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from entigraph.core.domain_types import (
    ACCESSED_AT,
    CREATED_AT,
    META_KEY,
    UPDATED_AT,
    Clock,
    EntityKey,
    StoreEventKind,
    normalize_id,
    now_ms,
)
from entigraph.core.errors import MissingEntityIdError
from entigraph.core.hydration import EntityAccessor, EntityView
from entigraph.core.normalizer import normalize
from entigraph.core.schema_registry import SchemaRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreEvent:
    """One snapshot mutation and the (type_key, id) pairs it touched."""
    kind: StoreEventKind
    keys: tuple[EntityKey, ...] = ()


StoreListener = Callable[[StoreEvent], None]


class EntitiesStore:
    """Normalized in-memory entity snapshot with access metadata."""

    def __init__(self, registry: SchemaRegistry, clock: Clock = now_ms) -> None:
        self.registry = registry
        self._clock = clock
        self._buckets: dict[str, dict[str, dict]] = {}
        self._listeners: list[StoreListener] = []
        self._watchers: dict[EntityKey, list[StoreListener]] = {}
        self._accessor = EntityAccessor(self)

    # --- Writes ----------------------------------------------------------------

    def merge(self, type_key: str, payload: object) -> list[str]:
        """Normalize `payload` and merge every resulting record.

        Returns the top-level ids of `type_key` found in the payload, in order.
        """
        normalized = normalize(self.registry, type_key, payload)
        now = self._clock()
        keys: list[EntityKey] = []
        for bucket_type, records in normalized.buckets.items():
            for entity_id, fields in records.items():
                self._write(bucket_type, entity_id, fields, now)
                keys.append((bucket_type, entity_id))
        if keys:
            self._emit(StoreEvent(StoreEventKind.MERGE, tuple(keys)))
        return normalized.ids

    def merge_normalized(
        self,
        type_key: str,
        entity_id: object,
        fields: dict,
        meta: dict | None = None,
    ) -> str:
        """Merge an already-normalized record. `meta` keeps persisted timestamps."""
        self.registry.get(type_key)
        key = normalize_id(entity_id)
        if key is None:
            raise MissingEntityIdError(type_key)
        self._write(type_key, key, fields, self._clock(), meta)
        self._emit(StoreEvent(StoreEventKind.MERGE, ((type_key, key),)))
        return key

    def merge_snapshot(self, snapshot: dict[str, dict[str, dict]]) -> int:
        """Merge a whole normalized snapshot, keeping each record's `_meta`.

        Buckets without a schema are skipped and logged. Returns records merged.
        """
        now = self._clock()
        keys: list[EntityKey] = []
        for type_key, records in snapshot.items():
            if type_key not in self.registry:
                logger.warning(
                    f"Skipping {len(records)} stored '{type_key}' records: no schema",
                    extra={"type_key": type_key},
                )
                continue
            for raw_id, record in records.items():
                entity_id = normalize_id(raw_id)
                if entity_id is None or not isinstance(record, dict):
                    logger.warning(
                        f"Skipping malformed stored '{type_key}' record {raw_id!r}",
                        extra={"type_key": type_key},
                    )
                    continue
                fields = {k: v for k, v in record.items() if k != META_KEY}
                self._write(type_key, entity_id, fields, now, record.get(META_KEY))
                keys.append((type_key, entity_id))
        if keys:
            self._emit(StoreEvent(StoreEventKind.MERGE, tuple(keys)))
        return len(keys)

    def _write(
        self,
        type_key: str,
        entity_id: str,
        fields: dict,
        now: int,
        meta: dict | None = None,
    ) -> None:
        bucket = self._buckets.setdefault(type_key, {})
        existing = bucket.get(entity_id)
        record = {**existing, **fields} if existing else dict(fields)
        record.pop(META_KEY, None)
        if isinstance(meta, dict):
            record[META_KEY] = {
                CREATED_AT: meta.get(CREATED_AT, now),
                UPDATED_AT: meta.get(UPDATED_AT, now),
                ACCESSED_AT: meta.get(ACCESSED_AT, now),
            }
        else:
            previous = (existing or {}).get(META_KEY) or {}
            record[META_KEY] = {
                CREATED_AT: previous.get(CREATED_AT, now),
                UPDATED_AT: now,
                ACCESSED_AT: now,
            }
        bucket[entity_id] = record

    def touch(self, type_key: str, entity_ids: Iterable[object]) -> list[str]:
        """Refresh accessedAt for existing records. Returns ids touched."""
        touched = self._touch(type_key, entity_ids)
        if touched:
            self._emit(StoreEvent(
                StoreEventKind.TOUCH, tuple((type_key, i) for i in touched),
            ))
        return touched

    def _touch(self, type_key: str, entity_ids: Iterable[object]) -> list[str]:
        bucket = self._buckets.get(type_key)
        if not bucket:
            return []
        now = self._clock()
        touched = []
        for raw_id in entity_ids:
            entity_id = normalize_id(raw_id)
            record = bucket.get(entity_id) if entity_id is not None else None
            if record is None:
                continue
            meta = record.setdefault(META_KEY, {})
            meta[ACCESSED_AT] = now
            touched.append(entity_id)
        return touched

    def remove(self, type_key: str, entity_ids: Iterable[object]) -> list[str]:
        """Remove records of one type. Unknown ids are ignored."""
        return self.remove_many({type_key: list(entity_ids)}).get(type_key, [])

    def remove_many(self, targets: dict[str, Iterable[object]]) -> dict[str, list[str]]:
        """Remove records across buckets as one mutation (one REMOVE event)."""
        removed: dict[str, list[str]] = {}
        for type_key, entity_ids in targets.items():
            bucket = self._buckets.get(type_key)
            if not bucket:
                continue
            for raw_id in entity_ids:
                entity_id = normalize_id(raw_id)
                if entity_id is not None and bucket.pop(entity_id, None) is not None:
                    removed.setdefault(type_key, []).append(entity_id)
            if not bucket:
                del self._buckets[type_key]
        if removed:
            keys = tuple(
                (type_key, entity_id)
                for type_key, ids in removed.items() for entity_id in ids
            )
            self._emit(StoreEvent(StoreEventKind.REMOVE, keys))
        return removed

    def reset(self) -> None:
        """Drop every record."""
        keys = tuple(
            (type_key, entity_id)
            for type_key, bucket in self._buckets.items() for entity_id in bucket
        )
        self._buckets = {}
        self._emit(StoreEvent(StoreEventKind.RESET, keys))

    # --- Reads -----------------------------------------------------------------

    def get_record(self, type_key: str, entity_id: object) -> dict | None:
        key = normalize_id(entity_id)
        record = self._buckets.get(type_key, {}).get(key) if key is not None else None
        return copy.deepcopy(record) if record is not None else None

    def get_entity(self, type_key: str, entity_id: object, touch: bool = True) -> Any | None:
        """Hydrate one record through its schema's model factory, or None."""
        schema = self.registry.get(type_key)
        key = normalize_id(entity_id)
        if key is None or key not in self._buckets.get(type_key, {}):
            return None
        if touch:
            self.touch(type_key, [key])
        return self._hydrate(type_key, key, schema)

    def get_entities(
        self, type_key: str, entity_ids: Iterable[object], touch: bool = True,
    ) -> list[Any]:
        """Hydrate many ids in order, skipping those that do not exist."""
        schema = self.registry.get(type_key)
        bucket = self._buckets.get(type_key, {})
        keys = [k for k in map(normalize_id, entity_ids) if k is not None and k in bucket]
        if touch and keys:
            self.touch(type_key, keys)
        return [self._hydrate(type_key, key, schema) for key in keys]

    def _hydrate(self, type_key: str, entity_id: str, schema) -> Any:
        factory = schema.model or EntityView
        record = copy.deepcopy(self._buckets[type_key][entity_id])
        return factory(type_key, record, self._accessor, schema)

    def has(self, type_key: str, entity_id: object) -> bool:
        key = normalize_id(entity_id)
        return key is not None and key in self._buckets.get(type_key, {})

    def ids(self, type_key: str) -> list[str]:
        return list(self._buckets.get(type_key, {}))

    @property
    def type_keys(self) -> list[str]:
        return list(self._buckets)

    def count(self, type_key: str | None = None) -> int:
        if type_key is not None:
            return len(self._buckets.get(type_key, {}))
        return sum(len(bucket) for bucket in self._buckets.values())

    def snapshot(self) -> dict[str, dict[str, dict]]:
        """Deep copy of the full snapshot (wire format)."""
        return copy.deepcopy(self._buckets)

    # --- Notifications ---------------------------------------------------------

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Receive every StoreEvent. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def watch(
        self, type_key: str, entity_id: object, callback: StoreListener,
    ) -> Callable[[], None]:
        """Receive data mutations (merge/remove/reset) of one entity."""
        key = (type_key, normalize_id(entity_id) or "")
        self._watchers.setdefault(key, []).append(callback)

        def unwatch() -> None:
            callbacks = self._watchers.get(key, [])
            if callback in callbacks:
                callbacks.remove(callback)
            if not callbacks:
                self._watchers.pop(key, None)

        return unwatch

    def _emit(self, event: StoreEvent) -> None:
        for listener in list(self._listeners):
            listener(event)
        if event.kind is StoreEventKind.TOUCH or not self._watchers:
            return
        for key in event.keys:
            for callback in list(self._watchers.get(key, [])):
                callback(event)
