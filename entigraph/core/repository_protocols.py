"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell; dependency arrows point inward only
    - All IO operations accessed through Protocol types
    - Implementations provided by shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, no inheritance hierarchy
    - Async in Protocol: boundary methods are async because implementations do IO,
      but core pure functions are never async themselves; the shell awaits storage
      and hands results to the synchronous core
"""

from typing import Protocol


class BlobStorage(Protocol):
    """Key -> text storage for persisted channels and the version stamp."""
    async def read(self, key: str) -> str | None: ...
    async def read_many(self, keys: list[str]) -> dict[str, str | None]: ...
    async def write_many(self, entries: dict[str, str]) -> None: ...
    async def delete_many(self, keys: list[str]) -> None: ...
