"""Entity Routes — merge raw payloads and inspect the normalized snapshot.

Invariants:
    - POST merges through EntitiesStore.merge (normalizer path), never writes records directly
    - GET of one entity refreshes its accessedAt, like any hydrated read
    - Unknown type key -> 404 SCHEMA_NOT_REGISTERED; unknown id -> 404 ENTITY_NOT_FOUND
    - Snapshot reads do not touch accessedAt

Design Decisions:
    - /snapshot is a single path segment, so it cannot collide with /{type_key}/{entity_id}
"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, status

from entigraph.api.dependencies import get_context
from entigraph.core.errors import EntityNotFoundError
from entigraph.schemas.api import MergeResponse, SnapshotResponse
from entigraph.services.store_context import StoreContext

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/entities", tags=["entities"])


@router.get("/snapshot", response_model=SnapshotResponse)
async def get_snapshot(ctx: StoreContext = Depends(get_context)):
    """Full normalized snapshot in wire format."""
    store = ctx.root.entities
    return SnapshotResponse(
        entities=store.snapshot(),
        counts={type_key: store.count(type_key) for type_key in store.type_keys},
    )


@router.post(
    "/{type_key}", response_model=MergeResponse,
    status_code=status.HTTP_201_CREATED,
)
async def merge_payload(
    type_key: str,
    payload: dict[str, Any] | list[Any] = Body(...),
    ctx: StoreContext = Depends(get_context),
):
    """Normalize and merge a raw payload (one record or a list)."""
    ids = ctx.root.entities.merge(type_key, payload)
    logger.info(
        f"Merged {len(ids)} '{type_key}' record(s)", extra={"type_key": type_key},
    )
    return MergeResponse(type_key=type_key, ids=ids)


@router.get("/{type_key}/{entity_id}")
async def get_entity(
    type_key: str, entity_id: str, ctx: StoreContext = Depends(get_context),
) -> dict[str, Any]:
    """One normalized record; refreshes accessedAt."""
    store = ctx.root.entities
    ctx.root.registry.get(type_key)
    if not store.touch(type_key, [entity_id]):
        raise EntityNotFoundError(type_key, entity_id)
    return store.get_record(type_key, entity_id)
