"""
Key/value record store.

Each key is stored as its own JSON file:

    {base_path}/
      gift_settings_v1.json
      gift_jar_v1.json
      ...

Writes are atomic per key. There are no transactions across keys.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from ..exceptions import StorageReadError, StorageWriteError
from ..models import RecordKey
from .file_ops import ensure_directory, read_json, remove_file, write_json_atomic

logger = logging.getLogger(__name__)


class RecordStore:
    """Persistence for small JSON documents keyed by well-known names.

    Contract:
    - get(key, default): never fails the caller; missing or corrupt
      records yield ``default``
    - set(key, document): full overwrite, atomic from the caller's view
    - remove(key): deletes the record if present
    """

    def __init__(self, base_path: Path | str):
        """Initialize the record store.

        Args:
            base_path: Directory for record files. Created on first write.
        """
        self.base_path = Path(base_path).expanduser()

    def _path(self, key: RecordKey | str) -> Path:
        name = key.value if isinstance(key, RecordKey) else key
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            raise ValueError(f"Invalid record key: {name!r}")
        return self.base_path / f"{name}.json"

    async def get(self, key: RecordKey | str, default: Any = None) -> Any:
        """Read a record, falling back to ``default``.

        Args:
            key: Record key
            default: Value returned for missing, blank or corrupt records

        Returns:
            The stored document or ``default``
        """
        path = self._path(key)
        try:
            return await read_json(path, default)
        except StorageReadError as e:
            logger.warning(f"Corrupt record {e.key}, using default: {e.details.get('cause')}")
            return default

    async def set(self, key: RecordKey | str, document: Any) -> None:
        """Overwrite a record with ``document``.

        Raises:
            StorageWriteError: If the document cannot be written
        """
        path = self._path(key)
        await write_json_atomic(path, document)
        logger.debug(f"Record {path.stem} written")

    async def remove(self, key: RecordKey | str) -> bool:
        """Delete a record.

        Returns:
            True if the record existed
        """
        return await remove_file(self._path(key))

    async def ensure_ready(self) -> None:
        """Create the backing directory up front.

        Raises:
            StorageWriteError: If the directory cannot be created
        """
        try:
            await ensure_directory(self.base_path)
        except StorageWriteError:
            logger.error(f"Record store directory unavailable: {self.base_path}")
            raise
