"""GC Policy — per-type limits with a total default lookup.

Invariants:
    - for_type() falls back to the default entry
    - Negative limits and policies for unregistered types are configuration errors
"""

import pytest

from entigraph.core.domain_types import DEFAULT_GC_MAX, DEFAULT_GC_TTL_MS
from entigraph.core.errors import GCPolicyError
from entigraph.core.gc_policy import GCPolicy, GCPolicyTable


def test_for_type_falls_back_to_default():
    table = GCPolicyTable({"post": GCPolicy(ttl_ms=5, max_count=1)})
    assert table.for_type("post") == GCPolicy(5, 1)
    assert table.for_type("viewer") == GCPolicy(DEFAULT_GC_TTL_MS, DEFAULT_GC_MAX)


def test_from_config_shape():
    table = GCPolicyTable.from_config({"post": {"ttl": 60_000, "max": 50}}, {"max": 7})
    assert table.for_type("post") == GCPolicy(60_000, 50)
    assert table.default == GCPolicy(DEFAULT_GC_TTL_MS, 7)


@pytest.mark.parametrize("policy", [GCPolicy(ttl_ms=-1), GCPolicy(max_count=-1)])
def test_negative_limits_rejected(policy):
    with pytest.raises(GCPolicyError):
        GCPolicyTable({"post": policy})


def test_negative_default_rejected():
    with pytest.raises(GCPolicyError):
        GCPolicyTable(default=GCPolicy(ttl_ms=-5))


def test_validate_against_registry(registry):
    GCPolicyTable({"post": GCPolicy()}).validate_against(registry)
    with pytest.raises(GCPolicyError) as exc:
        GCPolicyTable({"photo": GCPolicy()}).validate_against(registry)
    assert exc.value.context.type_key == "photo"
