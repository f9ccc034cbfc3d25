"""Entity Collection — ordered, paginated list of ids over the EntitiesStore.

Invariants:
    - A collection stores ids only; models are hydrated on every `list` read
    - Ids that no longer hydrate (evicted, never merged) are skipped, never raised
    - GC never mutates items/pagination; only set/append/prepend/reset/restore do
    - Snapshot shape is {items, limit, hasNoMore, reversed, pageNumber}

Design Decisions:
    - hasNoMore is derived from the last page size: a short page means the end
    - prepend does not count as a page (new items arriving at the head of a feed)
    - EntityCollectionGroup lazily creates one collection per group key for
      multi-list modules (e.g. comments per post)
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

from entigraph.core.domain_types import DEFAULT_COLLECTION_LIMIT
from entigraph.core.entities_store import EntitiesStore

CollectionListener = Callable[["EntityCollection"], None]


@dataclass
class CollectionSnapshot:
    """Serializable collection state — ids and pagination only."""
    items: list[str] = field(default_factory=list)
    limit: int = DEFAULT_COLLECTION_LIMIT
    has_no_more: bool = False
    reversed: bool = False
    page_number: int = 0

    def to_dict(self) -> dict:
        return {
            "items": list(self.items),
            "limit": self.limit,
            "hasNoMore": self.has_no_more,
            "reversed": self.reversed,
            "pageNumber": self.page_number,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CollectionSnapshot":
        return cls(
            items=[str(i) for i in data.get("items", [])],
            limit=data.get("limit", DEFAULT_COLLECTION_LIMIT),
            has_no_more=data.get("hasNoMore", False),
            reversed=data.get("reversed", False),
            page_number=data.get("pageNumber", 0),
        )


class EntityCollection:
    """Paginated id list of one entity type."""

    def __init__(
        self,
        store: EntitiesStore,
        type_key: str,
        limit: int = DEFAULT_COLLECTION_LIMIT,
        reversed: bool = False,
    ) -> None:
        store.registry.get(type_key)
        self._store = store
        self.type_key = type_key
        self._state = CollectionSnapshot(limit=limit, reversed=reversed)
        self._listeners: list[CollectionListener] = []

    # --- Mutations -------------------------------------------------------------

    def set(self, payload: object) -> list[str]:
        """Replace items with the payload's ids (first page)."""
        ids = self._store.merge(self.type_key, payload)
        self._state.items = list(ids)
        self._state.page_number = 1
        self._state.has_no_more = len(ids) < self._state.limit
        self._notify()
        return ids

    def append(self, payload: object) -> list[str]:
        """Add the next page at the tail; ids already present keep their place."""
        ids = self._store.merge(self.type_key, payload)
        present = set(self._state.items)
        self._state.items.extend(i for i in ids if i not in present)
        self._state.page_number += 1
        self._state.has_no_more = len(ids) < self._state.limit
        self._notify()
        return ids

    def prepend(self, payload: object) -> list[str]:
        """Put the payload's ids first, moving any existing occurrence."""
        ids = self._store.merge(self.type_key, payload)
        incoming = set(ids)
        self._state.items = list(ids) + [i for i in self._state.items if i not in incoming]
        self._notify()
        return ids

    def reset(self) -> None:
        self._state.items = []
        self._state.page_number = 0
        self._state.has_no_more = False
        self._notify()

    # --- Reads -----------------------------------------------------------------

    @property
    def ids(self) -> list[str]:
        return list(self._state.items)

    @property
    def has_no_more(self) -> bool:
        return self._state.has_no_more

    @property
    def page_number(self) -> int:
        return self._state.page_number

    @property
    def limit(self) -> int:
        return self._state.limit

    @property
    def reversed(self) -> bool:
        return self._state.reversed

    def __len__(self) -> int:
        return len(self._state.items)

    # --- Snapshot --------------------------------------------------------------

    def snapshot(self) -> CollectionSnapshot:
        return CollectionSnapshot(
            items=list(self._state.items),
            limit=self._state.limit,
            has_no_more=self._state.has_no_more,
            reversed=self._state.reversed,
            page_number=self._state.page_number,
        )

    def restore(self, snapshot: CollectionSnapshot) -> None:
        """Restore ids and pagination. Entities may arrive later."""
        self._state = CollectionSnapshot(
            items=list(snapshot.items),
            limit=snapshot.limit,
            has_no_more=snapshot.has_no_more,
            reversed=snapshot.reversed,
            page_number=snapshot.page_number,
        )
        self._notify()

    # --- Notifications ---------------------------------------------------------

    def subscribe(self, listener: CollectionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # Defined last: the name shadows the builtin for the rest of the class body.
    @property
    def list(self) -> list[Any]:
        """Hydrated models in display order; un-hydratable ids are skipped."""
        ids = self._state.items[::-1] if self._state.reversed else self._state.items
        return self._store.get_entities(self.type_key, ids)


class EntityCollectionGroup:
    """One EntityCollection per group key, created on first access."""

    def __init__(
        self,
        store: EntitiesStore,
        type_key: str,
        limit: int = DEFAULT_COLLECTION_LIMIT,
        reversed: bool = False,
    ) -> None:
        store.registry.get(type_key)
        self._store = store
        self.type_key = type_key
        self.limit = limit
        self.reversed = reversed
        self._collections: dict[str, EntityCollection] = {}
        self._listeners: list[CollectionListener] = []

    def __getitem__(self, group_key: object) -> EntityCollection:
        key = str(group_key)
        collection = self._collections.get(key)
        if collection is None:
            collection = EntityCollection(
                self._store, self.type_key, self.limit, self.reversed,
            )
            collection.subscribe(self._forward)
            self._collections[key] = collection
        return collection

    def __contains__(self, group_key: object) -> bool:
        return str(group_key) in self._collections

    def __iter__(self) -> Iterator[str]:
        return iter(self._collections)

    def __len__(self) -> int:
        return len(self._collections)

    def reset(self) -> None:
        for collection in self._collections.values():
            collection.reset()

    def snapshot(self) -> dict[str, CollectionSnapshot]:
        return {key: c.snapshot() for key, c in self._collections.items()}

    def restore(self, snapshots: dict[str, CollectionSnapshot]) -> None:
        for key, snapshot in snapshots.items():
            self[key].restore(snapshot)

    def subscribe(self, listener: CollectionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _forward(self, collection: EntityCollection) -> None:
        for listener in list(self._listeners):
            listener(collection)
