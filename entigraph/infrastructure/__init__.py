"""Infrastructure Layer — database session manager, blob storage, and logging.

Invariants:
    - Infrastructure implements core protocols; it never holds domain logic
    - All SQLAlchemy failures mapped to StorageError

Design Decisions:
    - Storage adapters satisfy core/repository_protocols.BlobStorage structurally
"""
