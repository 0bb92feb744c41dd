"""
Record store for settings and collections.

Key classes:
- RecordStore: one atomically-written JSON file per record key
"""

from .file_ops import read_json, remove_file, write_json_atomic
from .store import RecordStore

__all__ = [
    "RecordStore",
    # Low-level file operations
    "read_json",
    "write_json_atomic",
    "remove_file",
]
