"""GC Routes — run a garbage collection pass on demand.

Invariants:
    - Pass names are the GCPass values (graph, ttl, lru, startup, steady_state);
      anything else fails request validation
    - A pass is refused (409) while a persistence restore is in progress
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from entigraph.api.dependencies import get_context
from entigraph.core.domain_types import GCPass
from entigraph.schemas.api import GCReportResponse
from entigraph.services.store_context import StoreContext

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/gc", tags=["gc"])


@router.post("/{gc_pass}", response_model=GCReportResponse)
async def run_gc_pass(gc_pass: GCPass, ctx: StoreContext = Depends(get_context)):
    """Run one GC pass and report what it removed."""
    if ctx.runtime.is_restoring:
        raise HTTPException(
            status.HTTP_409_CONFLICT, detail="Restore in progress",
        )
    report = ctx.root.gc.run(gc_pass)
    logger.info(
        f"Manual GC {gc_pass.value}: removed {report.total}",
        extra={"gc_pass": gc_pass.value, "removed": report.total},
    )
    return GCReportResponse.model_validate(report.to_dict())
