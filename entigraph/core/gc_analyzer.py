"""GC Analyzer — TTL expiry and LRU overflow selection per type-key bucket.

Invariants:
    - Read-only: never mutates the snapshot; the collector performs removal
    - TTL: expired iff accessedAt < now - ttl (the boundary itself is not expired)
    - TTL: a record without metadata / accessedAt is already expired
    - LRU: only when count > max; the oldest count - max by accessedAt are selected
    - LRU: missing accessedAt sorts as 0; ties keep snapshot (insertion) order
    - A malformed record (not a dict, non-numeric accessedAt) is excluded and logged;
      the rest of the bucket is still analyzed
"""

import logging

from entigraph.core.domain_types import ACCESSED_AT, META_KEY
from entigraph.core.gc_policy import GCPolicyTable

logger = logging.getLogger(__name__)


def _accessed_at(record: object) -> int | float | None:
    """accessedAt of a record, None when absent. Raises ValueError if malformed."""
    if not isinstance(record, dict):
        raise ValueError("record is not a mapping")
    meta = record.get(META_KEY)
    if not isinstance(meta, dict):
        return None
    value = meta.get(ACCESSED_AT)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"accessedAt is not numeric: {value!r}")
    return value


def _timestamps(type_key: str, bucket: dict) -> list[tuple[str, int | float | None]]:
    stamped = []
    for entity_id, record in bucket.items():
        try:
            stamped.append((entity_id, _accessed_at(record)))
        except ValueError as e:
            logger.warning(
                f"GC analyzer: excluding '{type_key}' record {entity_id!r}: {e}",
                extra={"type_key": type_key, "entity_id": entity_id},
            )
    return stamped


def find_expired(
    snapshot: dict[str, dict[str, dict]], policies: GCPolicyTable, now: int,
) -> dict[str, list[str]]:
    """Ids whose accessedAt is older than their type's TTL."""
    expired: dict[str, list[str]] = {}
    for type_key, bucket in snapshot.items():
        if not isinstance(bucket, dict):
            continue
        threshold = now - policies.for_type(type_key).ttl_ms
        ids = [
            entity_id for entity_id, accessed in _timestamps(type_key, bucket)
            if accessed is None or accessed < threshold
        ]
        if ids:
            expired[type_key] = ids
    return expired


def find_overflow(
    snapshot: dict[str, dict[str, dict]], policies: GCPolicyTable,
) -> dict[str, list[str]]:
    """Least recently accessed ids beyond each type's max bucket size."""
    overflow: dict[str, list[str]] = {}
    for type_key, bucket in snapshot.items():
        if not isinstance(bucket, dict):
            continue
        limit = policies.for_type(type_key).max_count
        stamped = _timestamps(type_key, bucket)
        excess = len(stamped) - limit
        if excess <= 0:
            continue
        oldest_first = sorted(stamped, key=lambda item: item[1] or 0)
        overflow[type_key] = [entity_id for entity_id, _ in oldest_first[:excess]]
    return overflow
