"""Hydration — turns normalized records into read-only models that resolve their relations.

Invariants:
    - A hydrated model never holds a strong reference to the EntitiesStore
    - Relation access goes back through the store on every read (no cached related models)
    - Resolving an id that was evicted or never merged yields None (one) or is skipped (many)
    - Once the store is garbage collected, every relation resolves to None / []

Design Decisions:
    - weakref accessor over back-pointer: the store alone owns record lifetime
    - Factory signature `model(type_key, record, accessor, schema)` shared by EntityView
      and custom factories, dispatched per type key by the schema registry
"""

import copy
import weakref
from typing import TYPE_CHECKING, Any, Iterable

from entigraph.core.domain_types import META_KEY

if TYPE_CHECKING:
    from entigraph.core.entities_store import EntitiesStore
    from entigraph.core.schema_registry import EntitySchema


class EntityAccessor:
    """Non-owning, read-only handle on an EntitiesStore."""

    __slots__ = ("_store_ref",)

    def __init__(self, store: "EntitiesStore") -> None:
        self._store_ref = weakref.ref(store)

    @property
    def alive(self) -> bool:
        return self._store_ref() is not None

    def resolve(self, type_key: str, entity_id: str | None) -> Any | None:
        store = self._store_ref()
        if store is None or entity_id is None:
            return None
        return store.get_entity(type_key, entity_id)

    def resolve_many(self, type_key: str, entity_ids: Iterable[str]) -> list[Any]:
        store = self._store_ref()
        if store is None:
            return []
        resolved = (store.get_entity(type_key, entity_id) for entity_id in entity_ids)
        return [model for model in resolved if model is not None]


class EntityView:
    """Default hydrated model: plain fields as attributes, relations resolved lazily."""

    __slots__ = ("_type_key", "_record", "_accessor", "_schema")

    def __init__(
        self,
        type_key: str,
        record: dict,
        accessor: EntityAccessor,
        schema: "EntitySchema",
    ) -> None:
        self._type_key = type_key
        self._record = record
        self._accessor = accessor
        self._schema = schema

    @property
    def type_key(self) -> str:
        return self._type_key

    @property
    def id(self) -> str | None:
        return self._schema.extract_id(self._record)

    @property
    def meta(self) -> dict:
        return dict(self._record.get(META_KEY) or {})

    def __getattr__(self, name: str) -> Any:
        # Unset slots and dunder probes (copy, pickle) must not reach _schema
        if name.startswith("_"):
            raise AttributeError(name)
        relation = self._schema.relations.get(name)
        if relation is not None:
            reference = self._record.get(self._schema.reference_field(name))
            if relation.is_many:
                return self._accessor.resolve_many(relation.schema, reference or [])
            return self._accessor.resolve(relation.schema, reference)
        try:
            return self._record[name]
        except KeyError:
            raise AttributeError(
                f"'{self._type_key}' entity has no field '{name}'"
            ) from None

    def __getitem__(self, key: str) -> Any:
        return self._record[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self._record.get(key, default)

    def to_dict(self) -> dict:
        return copy.deepcopy(self._record)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EntityView):
            return NotImplemented
        return self._type_key == other._type_key and self._record == other._record

    def __repr__(self) -> str:
        return f"EntityView({self._type_key!r}, id={self.id!r})"
