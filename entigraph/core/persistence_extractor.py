"""Persistence Extractor — produces the serializable snapshot of each channel.

Invariants:
    - Output is JSON-safe: None, bool, int, float, str, lists, str-keyed dicts only
    - state: public plain attributes of each module; private attributes, computed
      properties, collections, service references, callables and other instances
      are excluded
    - collections: snapshot form only (ids + pagination), never live instances or models
    - entities: a deep copy of the EntitiesStore snapshot
    - Pure with respect to the stores: reading never mutates (no accessedAt refresh)
"""

import logging
import math

from entigraph.core.domain_types import Channel
from entigraph.core.entity_collection import EntityCollection, EntityCollectionGroup
from entigraph.core.store_module import RootStore, StoreModule

logger = logging.getLogger(__name__)

COLLECTION_KIND = "collection"
GROUP_KIND = "group"

_EXCLUDED = object()


def to_plain(value: object) -> object:
    """Plain JSON-safe copy of `value`, or the _EXCLUDED marker."""
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else _EXCLUDED
    if isinstance(value, (list, tuple)):
        items = [to_plain(v) for v in value]
        return _EXCLUDED if any(i is _EXCLUDED for i in items) else items
    if isinstance(value, dict):
        if not all(isinstance(k, str) for k in value):
            return _EXCLUDED
        plain = {k: to_plain(v) for k, v in value.items()}
        return _EXCLUDED if any(v is _EXCLUDED for v in plain.values()) else plain
    return _EXCLUDED


def is_plain(value: object) -> bool:
    return to_plain(value) is not _EXCLUDED


def extract_module_state(module: StoreModule) -> dict:
    state = {}
    for key, value in vars(module).items():
        if key.startswith("_"):
            continue
        plain = to_plain(value)
        if plain is _EXCLUDED:
            if not isinstance(value, (EntityCollection, EntityCollectionGroup)):
                logger.debug(f"Not persisting {module.name}.{key}: not a plain value")
            continue
        state[key] = plain
    return state


def extract_state(root: RootStore) -> dict[str, dict]:
    return {module.name: extract_module_state(module) for module in root}


def extract_module_collections(module: StoreModule) -> dict[str, dict]:
    collections = {}
    for key, collection in module.collections().items():
        if isinstance(collection, EntityCollectionGroup):
            collections[key] = {
                "kind": GROUP_KIND,
                "groups": {g: s.to_dict() for g, s in collection.snapshot().items()},
            }
        else:
            collections[key] = {"kind": COLLECTION_KIND, **collection.snapshot().to_dict()}
    return collections


def extract_collections(root: RootStore) -> dict[str, dict]:
    return {module.name: extract_module_collections(module) for module in root}


def extract_entities(root: RootStore) -> dict[str, dict[str, dict]]:
    return root.entities.snapshot()


def extract_channels(root: RootStore) -> dict[Channel, dict]:
    return {
        Channel.STATE: extract_state(root),
        Channel.COLLECTIONS: extract_collections(root),
        Channel.ENTITIES: extract_entities(root),
    }
