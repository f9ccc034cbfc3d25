"""GC Policy — per-type TTL and bucket-size limits with a default fallback.

Invariants:
    - for_type() is total: unknown type keys get the default policy
    - ttl_ms and max_count are non-negative integers
    - A policy entry for a type key without a schema is a configuration error
"""

from dataclasses import dataclass, field

from entigraph.core.domain_types import DEFAULT_GC_MAX, DEFAULT_GC_TTL_MS
from entigraph.core.errors import GCPolicyError
from entigraph.core.schema_registry import SchemaRegistry


@dataclass(frozen=True)
class GCPolicy:
    """Eviction limits for one bucket."""
    ttl_ms: int = DEFAULT_GC_TTL_MS
    max_count: int = DEFAULT_GC_MAX

    @classmethod
    def from_dict(cls, data: dict) -> "GCPolicy":
        """Build from the config shape `{ttl: ms, max: int}`."""
        return cls(
            ttl_ms=int(data.get("ttl", DEFAULT_GC_TTL_MS)),
            max_count=int(data.get("max", DEFAULT_GC_MAX)),
        )


@dataclass
class GCPolicyTable:
    """type_key -> GCPolicy, plus the default entry."""
    policies: dict[str, GCPolicy] = field(default_factory=dict)
    default: GCPolicy = field(default_factory=GCPolicy)

    def __post_init__(self) -> None:
        self._check(None, self.default)
        for type_key, policy in self.policies.items():
            self._check(type_key, policy)

    @staticmethod
    def _check(type_key: str | None, policy: GCPolicy) -> None:
        label = type_key or "default"
        if policy.ttl_ms < 0:
            raise GCPolicyError(f"GC policy '{label}' has negative ttl", type_key)
        if policy.max_count < 0:
            raise GCPolicyError(f"GC policy '{label}' has negative max", type_key)

    def for_type(self, type_key: str) -> GCPolicy:
        return self.policies.get(type_key, self.default)

    def validate_against(self, registry: SchemaRegistry) -> None:
        unknown = sorted(k for k in self.policies if k not in registry)
        if unknown:
            raise GCPolicyError(
                f"GC policies for unregistered types: {', '.join(unknown)}",
                unknown[0],
            )

    @classmethod
    def from_config(
        cls, policies: dict[str, dict], default: dict | None = None,
    ) -> "GCPolicyTable":
        return cls(
            policies={k: GCPolicy.from_dict(v) for k, v in policies.items()},
            default=GCPolicy.from_dict(default or {}),
        )
