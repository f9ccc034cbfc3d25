"""Persistence Processor — per-channel diffing for writes, fixed-order restore for reads.

Invariants:
    - Each channel is diffed against the text last written (or loaded) for it;
      unchanged channels produce no write
    - Restore order is fixed: state, then collections, then entities
    - Every channel blob is decoded and validated before anything is applied, so a
      malformed blob raises PersistenceError without touching live stores
    - Synchronous and IO-free: the runtime layer does storage reads/writes
"""

import logging

from entigraph.core.domain_types import CHANNEL_RESTORE_ORDER, Channel
from entigraph.core.persistence_extractor import extract_channels
from entigraph.core.persistence_serializer import (
    deserialize_channel,
    restore_collections,
    restore_entities,
    restore_state,
    serialize_channel,
)
from entigraph.core.store_module import RootStore

logger = logging.getLogger(__name__)

_RESTORERS = {
    Channel.STATE: restore_state,
    Channel.COLLECTIONS: restore_collections,
    Channel.ENTITIES: restore_entities,
}


class PersistenceProcessor:
    """Tracks last-written text per channel and applies ordered restores."""

    def __init__(self) -> None:
        self._last_written: dict[Channel, str] = {}

    def serialize(self, root: RootStore) -> dict[Channel, str]:
        return {
            channel: serialize_channel(channel, payload)
            for channel, payload in extract_channels(root).items()
        }

    def pending_writes(self, root: RootStore) -> dict[Channel, str]:
        """Serialized channels whose text differs from the last write."""
        return {
            channel: text for channel, text in self.serialize(root).items()
            if self._last_written.get(channel) != text
        }

    def mark_written(self, writes: dict[Channel, str]) -> None:
        self._last_written.update(writes)

    def prime(self, root: RootStore) -> None:
        """Treat the current state as already stored (after a restore)."""
        self._last_written = self.serialize(root)

    def forget(self) -> None:
        self._last_written = {}

    def last_written(self, channel: Channel) -> str | None:
        return self._last_written.get(channel)

    def restore(self, root: RootStore, blobs: dict[Channel, str | None]) -> dict[Channel, int]:
        """Validate all blobs, then apply them in restore order. Returns counts per channel."""
        decoded = {
            channel: deserialize_channel(channel, blobs.get(channel))
            for channel in CHANNEL_RESTORE_ORDER
        }
        counts: dict[Channel, int] = {}
        for channel in CHANNEL_RESTORE_ORDER:
            counts[channel] = _RESTORERS[channel](root, decoded[channel])
            logger.debug(f"Restored channel '{channel.value}': {counts[channel]}")
        return counts
