"""ORM Models — SQLAlchemy declarative models for persisted storage.

Invariants:
    - All models inherit from Base (db/base.py)
    - Entities are not mapped to tables: the normalized snapshot is stored as channel text

Design Decisions:
    - Models imported here so Base.metadata is complete for create_all() and alembic
"""

from entigraph.models.persisted_blob import PersistedBlob  # noqa: F401
