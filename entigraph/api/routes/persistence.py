"""Persistence Routes — force the throttled write to happen now.

Invariants:
    - flush writes only channels whose serialized text changed; an idle store writes nothing
    - Storage failures surface as 503 STORAGE_ERROR through the global handler
"""

from fastapi import APIRouter, Depends

from entigraph.api.dependencies import get_context
from entigraph.schemas.api import FlushResponse
from entigraph.services.store_context import StoreContext

router = APIRouter(prefix="/api/v1/persistence", tags=["persistence"])


@router.post("/flush", response_model=FlushResponse)
async def flush(ctx: StoreContext = Depends(get_context)):
    """Write pending channel changes immediately."""
    return FlushResponse(written=await ctx.runtime.flush())
