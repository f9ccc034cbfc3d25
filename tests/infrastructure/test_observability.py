"""Structured Logging — JSON formatter fields and setup idempotence.

Invariants:
    - Base fields always present; domain extras only when set
    - setup_logging replaces its own handler instead of stacking
"""

import json
import logging

from entigraph.infrastructure.observability import JSONFormatter, setup_logging


def _record(**extra):
    record = logging.LogRecord("entigraph.test", logging.INFO, __file__, 1, "removed %d", (3,), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_base_fields():
    payload = json.loads(JSONFormatter().format(_record()))
    assert payload["level"] == "INFO"
    assert payload["logger"] == "entigraph.test"
    assert payload["message"] == "removed 3"
    assert "type_key" not in payload


def test_json_formatter_domain_extras():
    payload = json.loads(JSONFormatter().format(
        _record(type_key="post", gc_pass="graph", removed=3, channel=None),
    ))
    assert payload["type_key"] == "post"
    assert payload["gc_pass"] == "graph"
    assert payload["removed"] == 3
    assert "channel" not in payload


def test_setup_logging_does_not_stack_handlers():
    before = len(logging.root.handlers)
    setup_logging("DEBUG", "text")
    setup_logging("INFO", "json")
    assert len(logging.root.handlers) <= before + 1
    assert logging.root.level == logging.INFO
    assert isinstance(logging.root.handlers[-1].formatter, JSONFormatter)
