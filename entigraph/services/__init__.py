"""Services Layer — persistence runtime, GC scheduler, and store context wiring.

Invariants:
    - Services await storage IO and call into the synchronous core
    - The restore flag (PersistenceRuntime.is_restoring) gates writes and scheduled GC

Design Decisions:
    - One file per runtime concern; StoreContext is the only place they are assembled
"""
