"""
SQLite photo blob store.

Photos live in a single ``photos`` table keyed by photo id. The database is
opened lazily on first use and upgraded in place: a ``schema_meta`` table
records the schema version and each pending migration step runs once, in
order. Steps are idempotent and never drop rows.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import aiosqlite

from ..exceptions import StorageReadError, StorageWriteError
from ..models import Photo

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

PHOTO_READ_COLUMNS = ("id", "data", "mime", "created_at")


# =============================================================================
# Schema migrations
# =============================================================================


async def _create_photos_table(conn: aiosqlite.Connection) -> None:
    """v1: the photos table."""
    await conn.execute("""
        CREATE TABLE IF NOT EXISTS photos (
            id TEXT NOT NULL PRIMARY KEY,
            data BLOB NOT NULL,
            mime TEXT,
            created_at TEXT
        )
    """)


async def _add_size_column(conn: aiosqlite.Connection) -> None:
    """v2: size_bytes column, backfilled from stored data."""
    async with conn.execute("PRAGMA table_info(photos)") as cursor:
        columns = [col[1] for col in await cursor.fetchall()]

    if "size_bytes" not in columns:
        await conn.execute("ALTER TABLE photos ADD COLUMN size_bytes INTEGER")

    await conn.execute("UPDATE photos SET size_bytes = length(data) WHERE size_bytes IS NULL")
    await conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_photos_created ON photos (created_at)"
    )


MIGRATIONS: dict[int, Callable[[aiosqlite.Connection], Awaitable[None]]] = {
    1: _create_photos_table,
    2: _add_size_column,
}


class PhotoBlobStore:
    """
    Keyed binary storage for photo bytes.

    Contract:
    - put(photo): upsert by id; raises StorageWriteError on failure
    - get(id): Photo or None, never an error for unknown ids
    - delete(id): True if a row was removed
    """

    def __init__(self, db_path: str | Path):
        """
        Initialize the blob store. No I/O happens until first use.

        Args:
            db_path: SQLite file path, or ":memory:"
        """
        self.db_path = db_path
        self.conn: aiosqlite.Connection | None = None
        self._open_lock = asyncio.Lock()

    async def __aenter__(self) -> PhotoBlobStore:
        await self._connection()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _connection(self) -> aiosqlite.Connection:
        """Return the open connection, opening and migrating on first use."""
        if self.conn is not None:
            return self.conn

        async with self._open_lock:
            if self.conn is not None:
                return self.conn

            conn = None
            try:
                if str(self.db_path) != ":memory:":
                    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
                conn = await aiosqlite.connect(str(self.db_path))
                await self._migrate(conn)
            except (aiosqlite.Error, OSError) as e:
                if conn is not None:
                    await conn.close()
                raise StorageWriteError("open_photo_store", str(self.db_path), e) from e

            self.conn = conn
            logger.info(f"Photo store opened: {self.db_path}")
            return conn

    async def close(self) -> None:
        """Close the connection. The next operation reopens it."""
        if self.conn:
            await self.conn.close()
            self.conn = None

    # =========================================================================
    # Schema Management
    # =========================================================================

    async def _migrate(self, conn: aiosqlite.Connection) -> None:
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_meta (
                key TEXT PRIMARY KEY,
                value TEXT
            )
        """)
        version = await self._get_schema_version(conn)

        if version > SCHEMA_VERSION:
            logger.warning(
                f"Photo store schema v{version} is newer than supported v{SCHEMA_VERSION}"
            )
            return

        for target in range(version + 1, SCHEMA_VERSION + 1):
            logger.info(f"Migrating photo store to schema v{target}")
            await MIGRATIONS[target](conn)
            await self._set_schema_version(conn, target)

        await conn.commit()

    async def _get_schema_version(self, conn: aiosqlite.Connection) -> int:
        """Get the schema version (0 for a fresh or pre-versioned database)."""
        async with conn.execute("SELECT value FROM schema_meta WHERE key = 'version'") as cursor:
            row = await cursor.fetchone()
            return int(row[0]) if row else 0

    async def _set_schema_version(self, conn: aiosqlite.Connection, version: int) -> None:
        await conn.execute(
            """
            INSERT INTO schema_meta (key, value) VALUES ('version', ?)
            ON CONFLICT (key) DO UPDATE SET value = excluded.value
            """,
            (str(version),),
        )

    async def schema_version(self) -> int:
        """Current schema version of the opened database."""
        conn = await self._connection()
        return await self._get_schema_version(conn)

    # =========================================================================
    # Photo Operations
    # =========================================================================

    async def put(self, photo: Photo) -> None:
        """Store a photo, replacing any existing photo with the same id.

        Raises:
            StorageWriteError: If the write is rejected
        """
        conn = await self._connection()
        try:
            await conn.execute(
                """
                INSERT INTO photos (id, data, mime, created_at, size_bytes)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (id) DO UPDATE SET
                    data = excluded.data,
                    mime = excluded.mime,
                    created_at = excluded.created_at,
                    size_bytes = excluded.size_bytes
                """,
                (photo.id, photo.data, photo.mime, photo.created_at, photo.size_bytes),
            )
            await conn.commit()
        except aiosqlite.Error as e:
            raise StorageWriteError("put_photo", photo.id, e) from e

    async def get(self, photo_id: str) -> Photo | None:
        """Fetch a photo by id.

        Returns:
            The photo, or None if no photo has that id
        """
        conn = await self._connection()
        columns = ", ".join(PHOTO_READ_COLUMNS)
        try:
            async with conn.execute(
                f"SELECT {columns} FROM photos WHERE id = ?", (photo_id,)
            ) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageReadError(photo_id, e) from e

        if row is None:
            return None
        return Photo(id=row[0], data=bytes(row[1]), mime=row[2] or "image/jpeg", created_at=row[3] or "")

    async def delete(self, photo_id: str) -> bool:
        """Delete a photo by id.

        Returns:
            True if a photo was removed, False if none had that id

        Raises:
            StorageWriteError: If the delete is rejected
        """
        conn = await self._connection()
        try:
            cursor = await conn.execute("DELETE FROM photos WHERE id = ?", (photo_id,))
            removed = cursor.rowcount > 0
            await cursor.close()
            await conn.commit()
        except aiosqlite.Error as e:
            raise StorageWriteError("delete_photo", photo_id, e) from e
        return removed

    async def list_ids(self) -> list[str]:
        """All stored photo ids, oldest first."""
        conn = await self._connection()
        async with conn.execute("SELECT id FROM photos ORDER BY created_at, id") as cursor:
            return [row[0] for row in await cursor.fetchall()]

    async def count(self) -> int:
        conn = await self._connection()
        async with conn.execute("SELECT COUNT(*) FROM photos") as cursor:
            row = await cursor.fetchone()
            return row[0] if row else 0

    async def total_size(self) -> int:
        """Sum of stored photo sizes in bytes."""
        conn = await self._connection()
        async with conn.execute("SELECT COALESCE(SUM(size_bytes), 0) FROM photos") as cursor:
            row = await cursor.fetchone()
            return row[0] if row else 0

    async def clear(self) -> int:
        """Delete every photo.

        Returns:
            Number of photos removed
        """
        conn = await self._connection()
        try:
            cursor = await conn.execute("DELETE FROM photos")
            removed = cursor.rowcount
            await cursor.close()
            await conn.commit()
        except aiosqlite.Error as e:
            raise StorageWriteError("clear_photos", str(self.db_path), e) from e
        logger.info(f"Cleared {removed} photos")
        return removed
