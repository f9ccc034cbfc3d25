"""Persistence Extractor — JSON-safe channel snapshots from live stores.

Invariants:
    - state keeps public plain fields only
    - collections are ids + pagination, tagged by kind
    - extraction never refreshes accessedAt
"""

import math

from entigraph.core.domain_types import Channel
from entigraph.core.persistence_extractor import (
    extract_channels,
    extract_collections,
    extract_entities,
    extract_module_state,
    extract_state,
    is_plain,
    to_plain,
)
from entigraph.core.store_module import StoreModule


class ProfileModule(StoreModule):
    def __init__(self, entities):
        super().__init__("profile", entities)
        self.theme = "dark"
        self.counts = {"a": 1, "nested": [1.5, None, True]}
        self.point = (1, 2)
        self.callback = print
        self.service = object()
        self.tags = {"x"}
        self.ratio = math.nan
        self._token = "secret"

    @property
    def display(self):
        return self.theme.upper()


def test_state_keeps_only_plain_public_fields(root):
    module = root.register_module(ProfileModule(root.entities))
    assert extract_module_state(module) == {
        "theme": "dark",
        "counts": {"a": 1, "nested": [1.5, None, True]},
        "point": [1, 2],
    }


def test_state_per_module(root):
    assert extract_state(root) == {"feed": {"filter": "all", "seen": []}}


def test_collections_snapshot_shape(root):
    feed = root.module("feed")
    feed.posts.set([{"id": "1"}])
    feed.comments["1"].set([{"id": "c1"}, {"id": "c2"}])

    assert extract_collections(root) == {"feed": {
        "posts": {
            "kind": "collection", "items": ["1"], "limit": 2,
            "hasNoMore": True, "reversed": False, "pageNumber": 1,
        },
        "comments": {"kind": "group", "groups": {"1": {
            "items": ["c1", "c2"], "limit": 2,
            "hasNoMore": False, "reversed": False, "pageNumber": 1,
        }}},
    }}


def test_entities_extraction_is_a_copy_and_does_not_touch(root, clock):
    root.entities.merge("viewer", {"id": "10"})
    clock.advance(50)

    entities = extract_entities(root)
    entities["viewer"]["10"]["name"] = "changed"

    record = root.entities.get_record("viewer", "10")
    assert "name" not in record
    assert record["_meta"]["accessedAt"] == clock.now - 50


def test_extract_channels_covers_all_three(root):
    assert set(extract_channels(root)) == {
        Channel.STATE, Channel.COLLECTIONS, Channel.ENTITIES,
    }


def test_to_plain_rejects_non_json_values():
    assert not is_plain({1: "int key"})
    assert not is_plain([math.inf])
    assert not is_plain(b"bytes")
    assert to_plain({"a": (1, [2])}) == {"a": [1, [2]]}
