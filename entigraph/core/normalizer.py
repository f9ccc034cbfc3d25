"""Normalizer — flattens nested raw payloads into per-type buckets of plain records.

Invariants:
    - Pure: no store access, no clock, no IO; output is a fresh NormalizedPayload
    - Depth-first: nested relation payloads land in their own bucket before the parent
    - Relation fields are replaced by `<relation>Id` / `<relation>Ids`; bodies never embed
    - `many` references are deduplicated, first-seen order preserved
    - Records without a usable id are skipped (logged), never fatal
    - An incoming `_meta` block is ignored; metadata belongs to the store

Design Decisions:
    - Scalars in relation fields are taken as ids already (payloads often mix both);
      top-level scalars name no record and are skipped
    - Repeated occurrences of one entity in a payload shallow-merge, later fields win
"""

import logging
from dataclasses import dataclass, field

from entigraph.core.domain_types import META_KEY, normalize_id
from entigraph.core.schema_registry import EntitySchema, Relation, SchemaRegistry

logger = logging.getLogger(__name__)


@dataclass
class NormalizedPayload:
    """Result of normalizing one raw payload."""
    type_key: str
    ids: list[str] = field(default_factory=list)
    buckets: dict[str, dict[str, dict]] = field(default_factory=dict)

    @property
    def record_count(self) -> int:
        return sum(len(bucket) for bucket in self.buckets.values())


def normalize(
    registry: SchemaRegistry, type_key: str, payload: object,
) -> NormalizedPayload:
    """Normalize a dict or list of dicts of `type_key`.

    Raises SchemaNotRegisteredError when `type_key` (or any relation target
    reached while walking) has no schema.
    """
    registry.get(type_key)
    result = NormalizedPayload(type_key=type_key)
    items = payload if isinstance(payload, list) else [payload]
    for item in items:
        if not isinstance(item, dict):
            logger.warning(
                f"Skipping top-level non-record value for '{type_key}': {item!r}",
                extra={"type_key": type_key},
            )
            continue
        entity_id = _normalize_entity(registry, type_key, item, result.buckets)
        if entity_id is not None and entity_id not in result.ids:
            result.ids.append(entity_id)
    return result


def _normalize_entity(
    registry: SchemaRegistry,
    type_key: str,
    raw: object,
    buckets: dict[str, dict[str, dict]],
) -> str | None:
    schema = registry.get(type_key)
    if not isinstance(raw, dict):
        entity_id = normalize_id(raw)
        if entity_id is None and raw is not None:
            logger.warning(
                f"Skipping non-record value for '{type_key}': {raw!r}",
                extra={"type_key": type_key},
            )
        return entity_id

    entity_id = schema.extract_id(raw)
    if entity_id is None:
        logger.warning(
            f"Skipping '{type_key}' record without id",
            extra={"type_key": type_key},
        )
        return None

    flat = _flatten(registry, schema, raw, buckets)
    bucket = buckets.setdefault(type_key, {})
    existing = bucket.get(entity_id)
    bucket[entity_id] = {**existing, **flat} if existing else flat
    return entity_id


def _flatten(
    registry: SchemaRegistry,
    schema: EntitySchema,
    raw: dict,
    buckets: dict[str, dict[str, dict]],
) -> dict:
    flat: dict = {}
    for key, value in raw.items():
        if key == META_KEY:
            continue
        relation = schema.relations.get(key)
        if relation is None:
            flat[key] = value
            continue
        reference_field = schema.reference_field(key)
        if relation.is_many:
            flat[reference_field] = _normalize_many(registry, relation, value, buckets)
            continue
        if value is None:
            flat[reference_field] = None
            continue
        if isinstance(value, list):
            logger.warning(
                f"'{schema.type_key}.{key}' expects one '{relation.schema}', got a list",
                extra={"type_key": schema.type_key},
            )
            continue
        related_id = _normalize_entity(registry, relation.schema, value, buckets)
        if related_id is not None:
            flat[reference_field] = related_id
    return flat


def _normalize_many(
    registry: SchemaRegistry,
    relation: Relation,
    value: object,
    buckets: dict[str, dict[str, dict]],
) -> list[str]:
    if value is None:
        return []
    items = value if isinstance(value, list) else [value]
    ids: list[str] = []
    seen: set[str] = set()
    for item in items:
        related_id = _normalize_entity(registry, relation.schema, item, buckets)
        if related_id is None or related_id in seen:
            continue
        seen.add(related_id)
        ids.append(related_id)
    return ids
