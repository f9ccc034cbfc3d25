"""Persisted Schemas — pydantic models validating stored channel blobs before restore.

Invariants:
    - Field aliases match the wire format (hasNoMore, pageNumber, createdAt, ...)
    - A blob that fails validation is malformed as a whole; nothing is partially restored
    - Collection entries are discriminated by `kind` (single collection vs group)

Design Decisions:
    - Entity records stay loosely typed (dict[str, Any]): their fields are schema-defined
      at runtime by the registry, only the bucket shape is checked here
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class StoredCollectionBody(BaseModel):
    """Collection snapshot shape: ids and pagination only."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    items: list[str] = []
    limit: int = Field(20, ge=0)
    has_no_more: bool = Field(False, alias="hasNoMore")
    reversed: bool = False
    page_number: int = Field(0, ge=0, alias="pageNumber")


class StoredCollection(StoredCollectionBody):
    kind: Literal["collection"] = "collection"


class StoredCollectionGroup(BaseModel):
    model_config = ConfigDict(extra="ignore")

    kind: Literal["group"] = "group"
    groups: dict[str, StoredCollectionBody] = {}


StoredCollectionEntry = Annotated[
    Union[StoredCollection, StoredCollectionGroup], Field(discriminator="kind"),
]


class RecordMeta(BaseModel):
    """`_meta` block of a normalized record."""
    model_config = ConfigDict(populate_by_name=True)

    created_at: int = Field(alias="createdAt")
    updated_at: int = Field(alias="updatedAt")
    accessed_at: int = Field(alias="accessedAt")


StateChannel = TypeAdapter(dict[str, dict[str, Any]])
CollectionsChannel = TypeAdapter(dict[str, dict[str, StoredCollectionEntry]])
EntitiesChannel = TypeAdapter(dict[str, dict[str, dict[str, Any]]])
