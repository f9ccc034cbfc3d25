"""Persisted Blob ORM — one row per storage key (channel text or version stamp).

Invariants:
    - key is the primary key: `<namespace>:<channel>` or `<namespace>:version`
    - value is the full serialized channel text; rows are overwritten, never appended

Design Decisions:
    - Text column over JSON: the serializer's exact text is what channel diffing compares
"""

from datetime import datetime, timezone

from sqlalchemy import String, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from entigraph.db.base import Base


class PersistedBlob(Base):
    """A stored channel blob."""
    __tablename__ = "persisted_blobs"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
