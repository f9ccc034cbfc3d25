"""API Schemas — response models for the entity, GC, and persistence endpoints.

Invariants:
    - Entity records are returned in wire format (`<rel>Id` / `<rel>Ids`, `_meta`)
    - GC reports list removed ids per type key, sorted as the walker emits them

Design Decisions:
    - Merge request bodies are untyped JSON (dict or list): their shape is defined by
      the registered schema at runtime, not by a static model
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from entigraph.core.domain_types import Channel, GCPass


class MergeResponse(BaseModel):
    """Top-level ids merged from one payload."""
    type_key: str
    ids: list[str]


class SnapshotResponse(BaseModel):
    """Full normalized snapshot plus per-type record counts."""
    entities: dict[str, dict[str, dict[str, Any]]]
    counts: dict[str, int]


class GCReportResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    gc_pass: GCPass = Field(alias="pass")
    removed: dict[str, list[str]]
    total: int


class FlushResponse(BaseModel):
    written: list[Channel]
