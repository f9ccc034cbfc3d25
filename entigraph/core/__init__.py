"""Core Layer — pure domain logic, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - Storage is reached only through core/repository_protocols.py

Design Decisions:
    - Functional core separated from imperative shell: the normalized graph, GC and
      persistence diffing are synchronous; the shell awaits storage around them
"""
