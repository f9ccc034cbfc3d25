"""entigraph — normalized in-memory entity graph with garbage collection and snapshot persistence.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)

Design Decisions:
    - Empty __init__.py: explicit imports only, no star exports
"""
