"""
Photo blob storage.

Key classes:
- PhotoBlobStore: SQLite-backed keyed binary store, migrated in place
"""

from .store import SCHEMA_VERSION, PhotoBlobStore

__all__ = [
    "PhotoBlobStore",
    "SCHEMA_VERSION",
]
