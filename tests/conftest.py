"""Root conftest — shared schemas, clock, and store fixtures.

Invariants:
    - Every test gets a fresh registry, a controllable clock, and fresh stores
    - The clock only moves when a test calls advance()

Design Decisions:
    - One small schema set covers every shape: feed -> many post, post -> one viewer,
      post -> many comment, comment -> one viewer, and viewer -> one post (a cycle)
    - FeedModule is handed out as a fixture (tests/ is not a package)
"""

import os

import pytest

from entigraph.core.entities_store import EntitiesStore
from entigraph.core.entity_collection import EntityCollection, EntityCollectionGroup
from entigraph.core.schema_registry import EntitySchema, SchemaRegistry, many, one
from entigraph.core.store_module import RootStore, StoreModule

# Ensure tests never touch a real database by accident
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///test.db")

START_MS = 1_000_000


class FakeClock:
    """Injected clock returning a fixed millisecond time."""

    def __init__(self, now: int = START_MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


class FeedModule(StoreModule):
    """Module with plain fields, a paginated post list, and comments per post."""

    def __init__(self, entities: EntitiesStore) -> None:
        super().__init__("feed", entities)
        self.filter = "all"
        self.seen = []
        self.posts = EntityCollection(entities, "post", limit=2)
        self.comments = EntityCollectionGroup(entities, "comment", limit=2)


def build_registry() -> SchemaRegistry:
    return SchemaRegistry([
        EntitySchema("feed", {"posts": many("post")}),
        EntitySchema("post", {"viewer": one("viewer"), "comments": many("comment")}),
        EntitySchema("comment", {"author": one("viewer")}),
        EntitySchema("viewer", {"pinnedPost": one("post")}),
    ])


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry():
    return build_registry()


@pytest.fixture
def store(registry, clock):
    return EntitiesStore(registry, clock)


@pytest.fixture
def feed_module_cls():
    return FeedModule


@pytest.fixture
def make_root(registry, clock):
    """Build a RootStore with FeedModule registered; call again to simulate a restart."""
    def _make(policies=None, reclaim_orphan_cycles=False):
        root = RootStore(
            registry, policies, clock=clock,
            reclaim_orphan_cycles=reclaim_orphan_cycles,
        )
        root.register_module(FeedModule(root.entities))
        return root
    return _make


@pytest.fixture
def root(make_root):
    return make_root()


@pytest.fixture
def feed_payload():
    """Feed 'home' -> posts 1, 2; post 1 -> viewer 10 and comments c1, c2."""
    return {
        "id": "home",
        "posts": [
            {
                "id": "1",
                "title": "First",
                "viewer": {"id": "10", "name": "Anna"},
                "comments": [
                    {"id": "c1", "text": "hi", "author": {"id": "11", "name": "Bo"}},
                    {"id": "c2", "text": "yo", "author": "10"},
                ],
            },
            {"id": "2", "title": "Second", "viewer": "11"},
        ],
    }
