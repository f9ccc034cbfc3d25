"""entigraph API — FastAPI application factory and entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map EntiGraphError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - The store context is bootstrapped (restore + startup GC) in the lifespan,
      before the first request is served; it is flushed and closed on shutdown

Design Decisions:
    - create_app() factory: the schema registry and store modules belong to the
      embedding application, so they are parameters, not imports
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from entigraph.api.error_handlers import register_error_handlers
from entigraph.api.routes import entities, gc, health, persistence
from entigraph.config import Settings, get_settings
from entigraph.core.domain_types import Clock, now_ms
from entigraph.core.repository_protocols import BlobStorage
from entigraph.core.schema_registry import SchemaRegistry
from entigraph.infrastructure.observability import setup_logging
from entigraph.services.store_context import ModuleFactory, build_context

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    context = app.state.context
    await context.start()
    logger.info("entigraph API started")
    yield
    logger.info("entigraph API shutting down")
    await context.stop()


def create_app(
    registry: SchemaRegistry | None = None,
    module_factories: list[ModuleFactory] | None = None,
    storage: BlobStorage | None = None,
    settings: Settings | None = None,
    clock: Clock = now_ms,
) -> FastAPI:
    """Build the API around one RootStore."""
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format)

    app = FastAPI(title="entigraph API", version="0.1.0", lifespan=lifespan)
    app.state.context = build_context(
        settings,
        registry or SchemaRegistry(),
        module_factories,
        storage,
        clock,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(entities.router)
    app.include_router(gc.router)
    app.include_router(persistence.router)

    register_error_handlers(app)
    return app
