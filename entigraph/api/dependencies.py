"""Route Dependencies — access to the per-app StoreContext.

Invariants:
    - The context is created by create_app() and started by the lifespan; routes never build one
"""

from fastapi import Request

from entigraph.services.store_context import StoreContext


def get_context(request: Request) -> StoreContext:
    return request.app.state.context
