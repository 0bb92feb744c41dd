"""
JSON file operations for the record store.

Provides:
- Atomic writes using temp file + fsync + rename
- Reads that distinguish "missing" from "corrupt"
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from ..exceptions import StorageReadError, StorageWriteError


async def ensure_directory(path: Path) -> None:
    """Ensure directory exists, creating if necessary.

    Args:
        path: Directory path to ensure exists
    """
    try:
        await aiofiles.os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise StorageWriteError("create_directory", str(path), e) from e


async def read_json(path: Path, default: Any = None) -> Any:
    """Read a JSON document.

    Args:
        path: Path to JSON file
        default: Returned when the file does not exist or is blank

    Returns:
        Parsed JSON value, or ``default``

    Raises:
        StorageReadError: If the file exists but cannot be read or parsed
    """
    try:
        if not await aiofiles.os.path.exists(path):
            return default
        async with aiofiles.open(path, encoding="utf-8") as f:
            content = await f.read()
        return json.loads(content) if content.strip() else default
    except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
        raise StorageReadError(path.stem, e) from e


async def write_json_atomic(path: Path, data: Any) -> None:
    """Write a JSON document atomically using temp file + rename.

    Args:
        path: Target path for JSON file
        data: JSON-serializable value

    Raises:
        StorageWriteError: If serialization or any file operation fails
    """
    await ensure_directory(path.parent)

    fd, temp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=".tmp_",
        suffix=".json",
    )
    try:
        os.close(fd)
        async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(data, ensure_ascii=False))
            await f.flush()
            os.fsync(f.fileno())

        await aiofiles.os.replace(temp_path, path)
    except Exception as e:
        try:
            await aiofiles.os.remove(temp_path)
        except OSError:
            pass
        raise StorageWriteError("write_json", str(path), e) from e


async def remove_file(path: Path) -> bool:
    """Remove a file if it exists.

    Returns:
        True if the file was removed, False if it didn't exist
    """
    try:
        if await aiofiles.os.path.exists(path):
            await aiofiles.os.remove(path)
            return True
        return False
    except OSError as e:
        raise StorageWriteError("remove", str(path), e) from e
