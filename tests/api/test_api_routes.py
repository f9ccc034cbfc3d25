"""API Routes — health, entity merge/inspect, GC passes, and persistence flush.

Invariants:
    - Merges go through normalization; records come back in wire format
    - Unknown type keys and ids map to structured 404 errors
    - Invalid GC pass names and non-JSON-object bodies are 400 VALIDATION_ERROR
    - Flush reports exactly the channels written
"""

import json
import logging


# --- Health -------------------------------------------------------------------

async def test_liveness(client):
    res = await client.get("/api/v1/health/")
    assert res.status_code == 200
    assert res.json()["service"] == "entigraph"


async def test_readiness_without_database(client):
    res = await client.get("/api/v1/health/ready")
    assert res.status_code == 200
    assert res.json() == {"status": "ready", "checks": {"database": "not_configured"}}


async def test_readiness_before_bootstrap(app, client):
    app.state.context.runtime.bootstrapped = False
    res = await client.get("/api/v1/health/ready")
    assert res.status_code == 503
    assert res.json()["reason"] == "store_restoring"


# --- Entities -----------------------------------------------------------------

async def test_merge_and_read_back(client):
    res = await client.post(
        "/api/v1/entities/post",
        json={"id": "101", "viewer": {"id": "10", "name": "Anna"}},
    )
    assert res.status_code == 201
    assert res.json() == {"type_key": "post", "ids": ["101"]}

    post = (await client.get("/api/v1/entities/post/101")).json()
    assert post["viewerId"] == "10"
    assert set(post["_meta"]) == {"createdAt", "updatedAt", "accessedAt"}

    viewer = (await client.get("/api/v1/entities/viewer/10")).json()
    assert viewer["name"] == "Anna"


async def test_merge_list_payload(client):
    res = await client.post("/api/v1/entities/viewer", json=[{"id": 1}, {"id": 2}])
    assert res.json()["ids"] == ["1", "2"]


async def test_read_refreshes_accessed_at(client, clock):
    await client.post("/api/v1/entities/viewer", json={"id": "10"})
    clock.advance(1000)
    viewer = (await client.get("/api/v1/entities/viewer/10")).json()
    assert viewer["_meta"]["accessedAt"] == viewer["_meta"]["updatedAt"] + 1000


async def test_unknown_entity_is_404(client):
    res = await client.get("/api/v1/entities/post/nope")
    assert res.status_code == 404
    body = res.json()["error"]
    assert body["code"] == "ENTITY_NOT_FOUND"
    assert body["context"]["entity_id"] == "nope"


async def test_not_found_logs_at_info_with_entity_context(client, caplog):
    with caplog.at_level(logging.INFO, logger="entigraph.api.error_handlers"):
        await client.get("/api/v1/entities/post/nope")

    record = next(r for r in caplog.records if r.name == "entigraph.api.error_handlers")
    assert record.levelno == logging.INFO
    assert record.type_key == "post"
    assert record.entity_id == "nope"
    assert record.channel is None


async def test_unknown_type_is_404(client):
    res = await client.post("/api/v1/entities/photo", json={"id": "1"})
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "SCHEMA_NOT_REGISTERED"


async def test_scalar_body_is_validation_error(client):
    res = await client.post("/api/v1/entities/post", json="just a string")
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_snapshot_counts(client, feed_payload):
    await client.post("/api/v1/entities/feed", json=feed_payload)
    body = (await client.get("/api/v1/entities/snapshot")).json()
    assert body["counts"] == {"viewer": 2, "comment": 2, "post": 2, "feed": 1}
    assert body["entities"]["feed"]["home"]["postsIds"] == ["1", "2"]


# --- GC -----------------------------------------------------------------------

async def test_graph_pass_over_http(client, feed_payload):
    await client.post("/api/v1/entities/feed", json=feed_payload)
    await client.post("/api/v1/entities/viewer", json={"id": "stray"})

    res = await client.post("/api/v1/gc/graph")

    assert res.status_code == 200
    assert res.json() == {"pass": "graph", "removed": {"viewer": ["stray"]}, "total": 1}
    assert (await client.get("/api/v1/entities/viewer/stray")).status_code == 404


async def test_unknown_pass_is_validation_error(client):
    res = await client.post("/api/v1/gc/compact")
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_gc_refused_while_restoring(app, client):
    app.state.context.runtime.is_restoring = True
    res = await client.post("/api/v1/gc/ttl")
    assert res.status_code == 409


# --- Persistence --------------------------------------------------------------

async def test_flush_writes_changed_channels(client, blob_storage):
    await client.post("/api/v1/entities/viewer", json={"id": "10"})

    res = await client.post("/api/v1/persistence/flush")

    assert res.json() == {"written": ["entities"]}
    assert "10" in json.loads(blob_storage.data["api:entities"])["viewer"]
    assert (await client.post("/api/v1/persistence/flush")).json() == {"written": []}
