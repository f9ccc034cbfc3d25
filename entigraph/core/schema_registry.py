"""Schema Registry — declarative relation schemas and identity extraction per type key.

Invariants:
    - One schema per type key; duplicates are a configuration error
    - Relations name their target by type key, so schemas may form cycles (post -> viewer -> post)
    - get() on an unknown type key raises; there is never a default schema
    - validate() fails if any relation targets an unregistered type key

Design Decisions:
    - Factory table (type_key -> model factory) instead of a model class hierarchy
    - Reference field names are fixed by the wire format: `<relation>Id` / `<relation>Ids`
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

from entigraph.core.domain_types import Cardinality, normalize_id
from entigraph.core.errors import (
    DuplicateSchemaError,
    MissingEntityIdError,
    RegistryValidationError,
    SchemaNotRegisteredError,
)

IdExtractor = Callable[[dict], object]
ModelFactory = Callable[..., Any]


@dataclass(frozen=True)
class Relation:
    """A relation field pointing at another type key."""
    schema: str
    cardinality: Cardinality = Cardinality.ONE

    @property
    def is_many(self) -> bool:
        return self.cardinality is Cardinality.MANY


def one(type_key: str) -> Relation:
    return Relation(type_key, Cardinality.ONE)


def many(type_key: str) -> Relation:
    return Relation(type_key, Cardinality.MANY)


@dataclass
class EntitySchema:
    """Schema for one entity type.

    `id_attribute` is either the name of the id field or a callable that
    receives the raw record and returns its id. `model` is called as
    `model(type_key, record, accessor, schema)` to hydrate a record; None
    means the default `EntityView`.
    """
    type_key: str
    relations: dict[str, Relation] = field(default_factory=dict)
    id_attribute: str | IdExtractor = "id"
    model: ModelFactory | None = None

    def extract_id(self, raw: dict) -> str | None:
        if callable(self.id_attribute):
            value = self.id_attribute(raw)
        else:
            value = raw.get(self.id_attribute)
        return normalize_id(value)

    def require_id(self, raw: dict) -> str:
        entity_id = self.extract_id(raw)
        if entity_id is None:
            raise MissingEntityIdError(self.type_key)
        return entity_id

    def reference_field(self, relation_name: str) -> str:
        relation = self.relations[relation_name]
        return f"{relation_name}Ids" if relation.is_many else f"{relation_name}Id"

    def reference_fields(self) -> Iterator[tuple[str, str, Relation]]:
        """Yield (relation_name, reference_field, relation) for every relation."""
        for name, relation in self.relations.items():
            yield name, self.reference_field(name), relation


class SchemaRegistry:
    """Type key -> EntitySchema table. Must be populated before any merge."""

    def __init__(self, schemas: list[EntitySchema] | None = None) -> None:
        self._schemas: dict[str, EntitySchema] = {}
        for schema in schemas or []:
            self.register(schema)

    def register(self, schema: EntitySchema) -> EntitySchema:
        if schema.type_key in self._schemas:
            raise DuplicateSchemaError(schema.type_key)
        self._schemas[schema.type_key] = schema
        return schema

    def get(self, type_key: str) -> EntitySchema:
        try:
            return self._schemas[type_key]
        except KeyError:
            raise SchemaNotRegisteredError(type_key) from None

    def __contains__(self, type_key: object) -> bool:
        return type_key in self._schemas

    def __iter__(self) -> Iterator[EntitySchema]:
        return iter(self._schemas.values())

    def __len__(self) -> int:
        return len(self._schemas)

    @property
    def type_keys(self) -> list[str]:
        return list(self._schemas)

    def validate(self) -> None:
        """Check every relation target is registered."""
        dangling = sorted({
            f"{schema.type_key}.{name} -> {relation.schema}"
            for schema in self._schemas.values()
            for name, relation in schema.relations.items()
            if relation.schema not in self._schemas
        })
        if dangling:
            raise RegistryValidationError(dangling)
