"""Persistence Serializer — channel snapshot <-> stored text, and restore into live stores.

Invariants:
    - serialize_channel is deterministic (sorted keys, compact separators): equal
      snapshots always produce equal text, which is what channel diffing compares
    - deserialize_channel validates the whole blob (schemas/persisted.py); any
      decode or validation failure raises PersistenceError
    - Entities are restored through EntitiesStore.merge_snapshot (the normal merge
      path), keeping persisted `_meta` timestamps
    - Collections restore ids and pagination only; models hydrate lazily later
    - Unknown modules, fields or collections in a blob are skipped (logged)
"""

import json
import logging

from pydantic import ValidationError

from entigraph.core.domain_types import META_KEY, Channel
from entigraph.core.entity_collection import (
    CollectionSnapshot,
    EntityCollection,
    EntityCollectionGroup,
)
from entigraph.core.errors import PersistenceError
from entigraph.core.store_module import RootStore
from entigraph.schemas.persisted import (
    CollectionsChannel,
    EntitiesChannel,
    RecordMeta,
    StateChannel,
    StoredCollectionBody,
    StoredCollectionGroup,
)

logger = logging.getLogger(__name__)

_ADAPTERS = {
    Channel.STATE: StateChannel,
    Channel.COLLECTIONS: CollectionsChannel,
    Channel.ENTITIES: EntitiesChannel,
}


def serialize_channel(channel: Channel, payload: dict) -> str:
    try:
        return json.dumps(
            payload, sort_keys=True, separators=(",", ":"),
            ensure_ascii=False, allow_nan=False,
        )
    except (TypeError, ValueError) as e:
        raise PersistenceError(
            f"Channel '{channel.value}' is not serializable: {e}", channel.value,
        ) from e


def deserialize_channel(channel: Channel, blob: str | None) -> dict:
    """Decode and validate one channel blob. Missing blob -> empty channel."""
    if blob is None:
        return {}
    try:
        raw = json.loads(blob)
    except (TypeError, ValueError) as e:
        raise PersistenceError(
            f"Channel '{channel.value}' is not valid JSON: {e}", channel.value,
        ) from e
    try:
        validated = _ADAPTERS[channel].validate_python(raw)
    except ValidationError as e:
        raise PersistenceError(
            f"Channel '{channel.value}' failed validation: {e.error_count()} error(s)",
            channel.value,
        ) from e
    if channel is Channel.COLLECTIONS:
        return {
            module: {name: entry.model_dump(by_alias=True) for name, entry in entries.items()}
            for module, entries in validated.items()
        }
    if channel is Channel.ENTITIES:
        _check_meta(validated)
    return validated


def _check_meta(entities: dict[str, dict[str, dict]]) -> None:
    for type_key, bucket in entities.items():
        for entity_id, record in bucket.items():
            meta = record.get(META_KEY)
            if meta is None:
                continue
            try:
                RecordMeta.model_validate(meta)
            except ValidationError as e:
                raise PersistenceError(
                    f"Malformed _meta on {type_key} '{entity_id}'", Channel.ENTITIES.value,
                ) from e


# --- Restore ------------------------------------------------------------------

def restore_state(root: RootStore, data: dict[str, dict]) -> int:
    """Assign stored plain fields back onto registered modules. Returns fields set."""
    restored = 0
    modules = root.modules
    for module_name, fields in data.items():
        module = modules.get(module_name)
        if module is None:
            logger.warning(f"Restore: skipping state for unknown module '{module_name}'")
            continue
        current = vars(module)
        for key, value in fields.items():
            existing = current.get(key)
            if key.startswith("_") or key not in current or isinstance(
                existing, (EntityCollection, EntityCollectionGroup),
            ):
                logger.debug(f"Restore: skipping field {module_name}.{key}")
                continue
            setattr(module, key, value)
            restored += 1
    return restored


def restore_collections(root: RootStore, data: dict[str, dict[str, dict]]) -> int:
    """Restore collection ids + pagination. Returns collections restored."""
    restored = 0
    modules = root.modules
    for module_name, entries in data.items():
        module = modules.get(module_name)
        if module is None:
            logger.warning(f"Restore: skipping collections for unknown module '{module_name}'")
            continue
        live = module.collections()
        for name, entry in entries.items():
            collection = live.get(name)
            kind = entry.get("kind")
            if isinstance(collection, EntityCollectionGroup) and kind == "group":
                group = StoredCollectionGroup.model_validate(entry)
                collection.restore({
                    key: _to_snapshot(body) for key, body in group.groups.items()
                })
            elif isinstance(collection, EntityCollection) and kind == "collection":
                collection.restore(_to_snapshot(StoredCollectionBody.model_validate(entry)))
            else:
                logger.warning(f"Restore: no matching collection {module_name}.{name}")
                continue
            restored += 1
    return restored


def restore_entities(root: RootStore, data: dict[str, dict[str, dict]]) -> int:
    """Re-insert stored records through the merge path. Returns records merged."""
    return root.entities.merge_snapshot(data)


def _to_snapshot(body: StoredCollectionBody) -> CollectionSnapshot:
    return CollectionSnapshot.from_dict(body.model_dump(by_alias=True))
