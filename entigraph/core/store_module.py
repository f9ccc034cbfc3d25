"""Store Modules — domain modules with plain persisted fields and entity collections, plus the root context.

Invariants:
    - Public plain attributes of a StoreModule form its `state` channel entry
    - EntityCollection / EntityCollectionGroup attributes form its `collections` entry
    - Assigning a public attribute emits a FieldChange to subscribers
    - RootStore validates registry and policy table before anything can merge
    - Components receive the RootStore (or its parts) explicitly; no global lookup

Design Decisions:
    - Attribute assignment is the field-change hook, so modules read like plain classes
    - Computed values are properties (class-level) and never appear in instance state
"""

from dataclasses import dataclass
from typing import Callable, Iterator

from entigraph.core.domain_types import Clock, now_ms
from entigraph.core.entities_store import EntitiesStore
from entigraph.core.entity_collection import EntityCollection, EntityCollectionGroup
from entigraph.core.garbage_collector import GarbageCollector
from entigraph.core.gc_policy import GCPolicyTable
from entigraph.core.schema_registry import SchemaRegistry

AnyCollection = EntityCollection | EntityCollectionGroup


@dataclass(frozen=True)
class FieldChange:
    """A public attribute of a module was assigned."""
    module: str
    field: str


FieldListener = Callable[[FieldChange], None]


class StoreModule:
    """Base for domain modules ("ducks") persisted through the state/collections channels."""

    def __init__(self, name: str, entities: EntitiesStore) -> None:
        object.__setattr__(self, "_listeners", [])
        self._name = name
        self._entities = entities

    @property
    def name(self) -> str:
        return self._name

    @property
    def entities(self) -> EntitiesStore:
        return self._entities

    def __setattr__(self, key: str, value: object) -> None:
        super().__setattr__(key, value)
        if key.startswith("_") or isinstance(value, (EntityCollection, EntityCollectionGroup)):
            return
        change = FieldChange(self._name, key)
        for listener in list(self._listeners):
            listener(change)

    def subscribe(self, listener: FieldListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def collections(self) -> dict[str, AnyCollection]:
        return {
            key: value for key, value in vars(self).items()
            if not key.startswith("_")
            and isinstance(value, (EntityCollection, EntityCollectionGroup))
        }

    def reset(self) -> None:
        """Reset collections. Modules with plain fields override to reset those too."""
        for collection in self.collections().values():
            collection.reset()


class RootStore:
    """Explicit context: registry, policies, entities store, GC, and modules."""

    def __init__(
        self,
        registry: SchemaRegistry,
        policies: GCPolicyTable | None = None,
        clock: Clock = now_ms,
        reclaim_orphan_cycles: bool = False,
    ) -> None:
        registry.validate()
        self.policies = policies or GCPolicyTable()
        self.policies.validate_against(registry)
        self.registry = registry
        self.clock = clock
        self.entities = EntitiesStore(registry, clock)
        self.gc = GarbageCollector(
            self.entities, registry, self.policies, clock, reclaim_orphan_cycles,
        )
        self._modules: dict[str, StoreModule] = {}

    def register_module(self, module: StoreModule) -> StoreModule:
        if module.name in self._modules:
            raise ValueError(f"Module '{module.name}' is already registered")
        if module.entities is not self.entities:
            raise ValueError(f"Module '{module.name}' is bound to another entities store")
        self._modules[module.name] = module
        return module

    def module(self, name: str) -> StoreModule:
        return self._modules[name]

    @property
    def modules(self) -> dict[str, StoreModule]:
        return dict(self._modules)

    def __iter__(self) -> Iterator[StoreModule]:
        return iter(self._modules.values())

    def reset(self) -> None:
        """Explicit reset: drop every entity and reset every module."""
        self.entities.reset()
        for module in self._modules.values():
            module.reset()
