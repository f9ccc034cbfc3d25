"""Entities Store — merge semantics, access metadata, reads, and change events.

Invariants:
    - createdAt set once; updatedAt and accessedAt move on every merge
    - Shallow merge keeps fields the new payload does not mention
    - Reads hand out copies; get_entity of a missing id is None
    - Listeners see every mutation; keyed watchers do not see touches
"""

import pytest

from entigraph.core.domain_types import StoreEventKind
from entigraph.core.errors import MissingEntityIdError, SchemaNotRegisteredError


# --- Merge --------------------------------------------------------------------

def test_merge_stamps_meta(store, clock):
    store.merge("viewer", {"id": "10", "name": "Anna"})
    assert store.get_record("viewer", "10")["_meta"] == {
        "createdAt": clock.now, "updatedAt": clock.now, "accessedAt": clock.now,
    }


def test_second_merge_keeps_created_at_and_old_fields(store, clock):
    start = clock.now
    store.merge("viewer", {"id": "10", "name": "Anna", "age": 30})
    clock.advance(500)
    store.merge("viewer", {"id": "10", "name": "Anne"})

    record = store.get_record("viewer", "10")
    assert record["name"] == "Anne"
    assert record["age"] == 30
    assert record["_meta"] == {
        "createdAt": start,
        "updatedAt": start + 500,
        "accessedAt": start + 500,
    }


def test_merge_returns_top_level_ids(store, feed_payload):
    assert store.merge("feed", feed_payload) == ["home"]
    assert store.count() == 7
    assert store.count("post") == 2


def test_merge_normalized_coerces_id(store):
    assert store.merge_normalized("post", 5, {"id": 5, "viewerId": "10"}) == "5"
    assert store.get_record("post", "5")["viewerId"] == "10"


def test_merge_normalized_requires_id(store):
    with pytest.raises(MissingEntityIdError):
        store.merge_normalized("post", None, {"title": "x"})


def test_merge_snapshot_keeps_persisted_meta(store):
    meta = {"createdAt": 1, "updatedAt": 2, "accessedAt": 3}
    merged = store.merge_snapshot({
        "viewer": {"10": {"id": "10", "_meta": meta}},
        "photo": {"1": {"id": "1"}},
    })
    assert merged == 1
    assert store.get_record("viewer", "10")["_meta"] == meta
    assert "photo" not in store.type_keys


def test_merge_snapshot_skips_malformed_records(store, caplog):
    merged = store.merge_snapshot({"viewer": {"10": "not a record", "11": {"id": "11"}}})
    assert merged == 1
    assert store.ids("viewer") == ["11"]
    assert "malformed" in caplog.text


# --- Reads --------------------------------------------------------------------

def test_get_entity_missing_returns_none(store):
    assert store.get_entity("post", "nope") is None


def test_get_entity_unknown_type_raises(store):
    with pytest.raises(SchemaNotRegisteredError):
        store.get_entity("photo", "1")


def test_get_entity_refreshes_accessed_at(store, clock):
    start = clock.now
    store.merge("viewer", {"id": "10"})
    clock.advance(100)
    store.get_entity("viewer", "10")
    meta = store.get_record("viewer", "10")["_meta"]
    assert meta["accessedAt"] == start + 100
    assert meta["updatedAt"] == start


def test_get_entity_without_touch(store, clock):
    start = clock.now
    store.merge("viewer", {"id": "10"})
    clock.advance(100)
    store.get_entity("viewer", "10", touch=False)
    assert store.get_record("viewer", "10")["_meta"]["accessedAt"] == start


def test_get_entities_skips_missing_and_keeps_order(store):
    store.merge("viewer", [{"id": "1"}, {"id": "2"}])
    assert [v.id for v in store.get_entities("viewer", ["2", "x", 1])] == ["2", "1"]


def test_get_record_is_a_copy(store):
    store.merge("viewer", {"id": "10", "tags": ["a"]})
    store.get_record("viewer", "10")["tags"].append("b")
    assert store.get_record("viewer", "10")["tags"] == ["a"]


def test_snapshot_is_a_copy(store):
    store.merge("viewer", {"id": "10"})
    store.snapshot()["viewer"].clear()
    assert store.has("viewer", "10")


# --- Removal ------------------------------------------------------------------

def test_remove_many_drops_empty_buckets(store):
    store.merge("viewer", [{"id": "1"}, {"id": "2"}])
    store.merge("comment", {"id": "c"})

    removed = store.remove_many({"viewer": ["1", "2", "3"], "comment": []})

    assert removed == {"viewer": ["1", "2"]}
    assert store.type_keys == ["comment"]


def test_reset_clears_everything(store, feed_payload):
    store.merge("feed", feed_payload)
    store.reset()
    assert store.count() == 0
    assert store.snapshot() == {}


# --- Notifications ------------------------------------------------------------

def test_listener_sees_each_mutation_once(store):
    events = []
    unsubscribe = store.subscribe(events.append)

    store.merge("post", {"id": "1", "viewer": {"id": "10"}})
    store.touch("post", ["1"])
    store.remove("post", ["1"])
    unsubscribe()
    store.reset()

    assert [e.kind for e in events] == [
        StoreEventKind.MERGE, StoreEventKind.TOUCH, StoreEventKind.REMOVE,
    ]
    assert set(events[0].keys) == {("post", "1"), ("viewer", "10")}


def test_watch_ignores_touches(store):
    store.merge("viewer", {"id": "10"})
    seen = []
    unwatch = store.watch("viewer", 10, seen.append)

    store.touch("viewer", ["10"])
    store.merge("viewer", {"id": "10", "name": "Anna"})
    store.merge("viewer", {"id": "11"})
    store.remove("viewer", ["10"])
    unwatch()
    store.merge("viewer", {"id": "10"})

    assert [e.kind for e in seen] == [StoreEventKind.MERGE, StoreEventKind.REMOVE]


def test_touch_of_missing_ids_emits_nothing(store):
    events = []
    store.subscribe(events.append)
    assert store.touch("viewer", ["nope"]) == []
    assert events == []
