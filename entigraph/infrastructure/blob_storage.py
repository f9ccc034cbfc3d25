"""Blob Storage — BlobStorage implementations (in-memory and SQLAlchemy-backed).

Invariants:
    - write_many and delete_many are all-or-nothing (one transaction for SQL)
    - read of a missing key returns None, never raises
    - SQL failures surface as StorageError via DatabaseSessionManager

Design Decisions:
    - InMemoryBlobStorage doubles as the test fake and the "no database" mode
"""

import logging

from sqlalchemy import delete, select

from entigraph.infrastructure.database import DatabaseSessionManager
from entigraph.models.persisted_blob import PersistedBlob

logger = logging.getLogger(__name__)


class InMemoryBlobStorage:
    """Dict-backed storage; content is lost with the process."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})
        self.writes = 0

    async def read(self, key: str) -> str | None:
        return self.data.get(key)

    async def read_many(self, keys: list[str]) -> dict[str, str | None]:
        return {key: self.data.get(key) for key in keys}

    async def write_many(self, entries: dict[str, str]) -> None:
        self.data.update(entries)
        self.writes += 1

    async def delete_many(self, keys: list[str]) -> None:
        for key in keys:
            self.data.pop(key, None)


class SqlBlobStorage:
    """persisted_blobs table through the async session manager."""

    def __init__(self, db: DatabaseSessionManager) -> None:
        self._db = db

    async def read(self, key: str) -> str | None:
        return (await self.read_many([key]))[key]

    async def read_many(self, keys: list[str]) -> dict[str, str | None]:
        async with self._db.session() as session:
            result = await session.execute(
                select(PersistedBlob).where(PersistedBlob.key.in_(keys)),
            )
            found = {row.key: row.value for row in result.scalars()}
        return {key: found.get(key) for key in keys}

    async def write_many(self, entries: dict[str, str]) -> None:
        if not entries:
            return
        async with self._db.session() as session:
            for key, value in entries.items():
                await session.merge(PersistedBlob(key=key, value=value))
            await session.commit()
        logger.debug(f"Wrote {len(entries)} blob(s)")

    async def delete_many(self, keys: list[str]) -> None:
        async with self._db.session() as session:
            await session.execute(
                delete(PersistedBlob).where(PersistedBlob.key.in_(keys)),
            )
            await session.commit()
