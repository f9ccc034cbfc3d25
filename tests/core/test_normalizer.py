"""Normalizer — nested payloads flatten into per-type buckets with reference fields.

Invariants:
    - Relation bodies never embed; they become `<rel>Id` / `<rel>Ids`
    - Many-references dedupe in first-seen order
    - Records without an id are skipped; incoming `_meta` is ignored
"""

import pytest

from entigraph.core.errors import SchemaNotRegisteredError
from entigraph.core.normalizer import normalize


def test_post_with_nested_viewer(registry):
    result = normalize(registry, "post", {"id": "101", "viewer": {"id": "10", "name": "Anna"}})

    assert result.ids == ["101"]
    assert result.buckets["post"]["101"] == {"id": "101", "viewerId": "10"}
    assert result.buckets["viewer"]["10"] == {"id": "10", "name": "Anna"}


def test_many_relation_dedupes_in_first_seen_order(registry):
    result = normalize(registry, "post", {
        "id": "1",
        "comments": [{"id": 2}, {"id": 1}, {"id": 2}],
    })
    assert result.buckets["post"]["1"]["commentsIds"] == ["2", "1"]
    assert set(result.buckets["comment"]) == {"1", "2"}


def test_scalar_relation_value_is_taken_as_id(registry):
    result = normalize(registry, "post", {"id": "1", "viewer": 10, "comments": ["a", "b"]})
    assert result.buckets["post"]["1"] == {"id": "1", "viewerId": "10", "commentsIds": ["a", "b"]}
    assert "viewer" not in result.buckets


def test_null_relations(registry):
    result = normalize(registry, "post", {"id": "1", "viewer": None, "comments": None})
    assert result.buckets["post"]["1"] == {"id": "1", "viewerId": None, "commentsIds": []}


def test_list_for_one_relation_is_dropped(registry, caplog):
    result = normalize(registry, "post", {"id": "1", "viewer": [{"id": "10"}]})
    assert "viewerId" not in result.buckets["post"]["1"]
    assert "expects one 'viewer'" in caplog.text


def test_record_without_id_is_skipped(registry, caplog):
    result = normalize(registry, "post", [{"title": "anonymous"}, {"id": "2"}])
    assert result.ids == ["2"]
    assert list(result.buckets["post"]) == ["2"]
    assert "without id" in caplog.text


def test_top_level_scalars_are_skipped(registry, caplog):
    result = normalize(registry, "post", ["999", {"id": "1"}, 1000])
    assert result.ids == ["1"]
    assert list(result.buckets["post"]) == ["1"]
    assert "top-level non-record" in caplog.text


def test_incoming_meta_is_ignored(registry):
    result = normalize(registry, "viewer", {"id": "10", "_meta": {"createdAt": 1}})
    assert result.buckets["viewer"]["10"] == {"id": "10"}


def test_repeated_entity_shallow_merges(registry):
    result = normalize(registry, "post", [
        {"id": "1", "viewer": {"id": "10", "name": "Anna"}},
        {"id": "2", "viewer": {"id": "10", "age": 30}},
    ])
    assert result.buckets["viewer"]["10"] == {"id": "10", "name": "Anna", "age": 30}
    assert result.ids == ["1", "2"]


def test_nested_two_levels(registry, feed_payload):
    result = normalize(registry, "feed", feed_payload)

    assert result.buckets["feed"]["home"] == {"id": "home", "postsIds": ["1", "2"]}
    assert result.buckets["comment"]["c1"]["authorId"] == "11"
    assert result.buckets["viewer"]["11"] == {"id": "11", "name": "Bo"}
    assert result.record_count == 7


def test_unknown_type_key_raises(registry):
    with pytest.raises(SchemaNotRegisteredError):
        normalize(registry, "photo", {"id": "1"})
