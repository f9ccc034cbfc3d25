"""API test fixtures — app built by create_app() over in-memory storage.

Invariants:
    - Every test gets a fresh app, store, and storage
    - The store context is started before requests and stopped afterwards

Design Decisions:
    - httpx ASGITransport does not run the lifespan, so the fixture starts the
      context itself (same calls the lifespan makes)
"""

import pytest
from httpx import ASGITransport, AsyncClient

from entigraph.config import Settings
from entigraph.infrastructure.blob_storage import InMemoryBlobStorage
from entigraph.main import create_app


@pytest.fixture
def blob_storage():
    return InMemoryBlobStorage()


@pytest.fixture
async def app(registry, clock, feed_module_cls, blob_storage):
    settings = Settings(
        gc_interval_seconds=0, persist_throttle_ms=10_000,
        storage_namespace="api", log_format="text",
    )
    app = create_app(registry, [feed_module_cls], blob_storage, settings, clock)
    await app.state.context.start()
    yield app
    await app.state.context.stop()


@pytest.fixture
async def client(app):
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c
