"""
Backup export and import.

A backup is one JSON document holding settings, every collection and the
bytes of every referenced photo (as data URLs). Import validates the whole
document before touching either store, writes photos first and then
replaces settings and collections wholesale.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import aiofiles

from ..exceptions import ImportValidationError, StorageReadError
from ..models import (
    COLLECTION_KEYS,
    Collection,
    Photo,
    Record,
    Settings,
    day_iso,
    load_records,
    now_iso,
)
from ..records import write_json_atomic
from ..repository import KeepsakeRepository
from .data_url import decode_data_url, encode_data_url
from .types import BACKUP_VERSION, BackupPhoto, BackupSnapshot, ImportReport

logger = logging.getLogger(__name__)

DEFAULT_PHOTO_MIME = "image/jpeg"


class BackupCodec:
    """
    Serializes repository state to a backup document and restores it.

    Usage:

        >>> codec = BackupCodec(repo)
        >>> path = await codec.write(Path("~/Downloads").expanduser())
        >>> report = await codec.read(path)
    """

    def __init__(self, repository: KeepsakeRepository):
        self.repository = repository

    # =========================================================================
    # Export
    # =========================================================================

    async def export(self) -> BackupSnapshot:
        """Snapshot settings, collections and referenced photos.

        Missing photo blobs are skipped. Nothing is mutated.
        """
        repo = self.repository
        exported_at = now_iso()
        photos: list[BackupPhoto] = []
        for photo_id in repo.referenced_photo_ids():
            photo = await repo.blobs.get(photo_id)
            if photo is None:
                logger.debug(f"Skipping missing photo {photo_id} in export")
                continue
            mime = photo.mime or DEFAULT_PHOTO_MIME
            photos.append(
                BackupPhoto(
                    id=photo.id,
                    mime=mime,
                    created_at=photo.created_at or exported_at,
                    data_url=encode_data_url(photo.data, mime),
                )
            )

        snapshot = BackupSnapshot(
            exported_at=exported_at,
            settings=repo.settings.to_dict(),
            jar=[r.to_dict() for r in repo.list_records(Collection.JAR)],
            museum=[r.to_dict() for r in repo.list_records(Collection.MUSEUM)],
            journal=[r.to_dict() for r in repo.list_records(Collection.JOURNAL)],
            messages=[r.to_dict() for r in repo.list_records(Collection.MESSAGES)],
            photos=photos,
        )
        logger.info(f"Exported backup with {len(photos)} photo(s)")
        return snapshot

    def filename(self) -> str:
        return f"{self.repository.config.backup_prefix}-{day_iso()}.json"

    async def write(self, directory: str | Path) -> Path:
        """Export and write the backup file into ``directory``.

        Returns:
            Path of the written file
        """
        snapshot = await self.export()
        path = Path(directory) / self.filename()
        await write_json_atomic(path, snapshot.to_dict())
        logger.info(f"Wrote backup to {path}")
        return path

    # =========================================================================
    # Import
    # =========================================================================

    @staticmethod
    def validate(document: dict[str, Any] | str | bytes) -> dict[str, Any]:
        """Parse and structurally check a backup document.

        Raises:
            ImportValidationError: If the document cannot be imported
        """
        if isinstance(document, (str, bytes, bytearray)):
            try:
                document = json.loads(document)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise ImportValidationError(f"not valid JSON ({e})") from e

        if not isinstance(document, dict):
            raise ImportValidationError("top level must be an object")

        version = document.get("version")
        if version is not None:
            if isinstance(version, bool) or not isinstance(version, int):
                raise ImportValidationError("version must be an integer", "version")
            if version != BACKUP_VERSION:
                raise ImportValidationError(f"unsupported version {version}", "version")

        settings = document.get("settings")
        if settings is not None and not isinstance(settings, dict):
            raise ImportValidationError("must be an object", "settings")

        for name in [c.value for c in Collection] + ["photos"]:
            value = document.get(name)
            if value is not None and not isinstance(value, list):
                raise ImportValidationError("must be a list", name)

        return document

    @staticmethod
    def _decode_photo(item: Any) -> Photo | None:
        if not isinstance(item, dict):
            return None
        photo_id = item.get("id")
        if not isinstance(photo_id, str) or not photo_id:
            return None
        try:
            data, url_mime = decode_data_url(item.get("dataUrl"))
        except ValueError as e:
            logger.warning(f"Skipping photo {photo_id}: {e}")
            return None

        mime = item.get("mime")
        if not isinstance(mime, str) or not mime:
            mime = url_mime or DEFAULT_PHOTO_MIME
        created_at = item.get("createdAt")
        return Photo(
            id=photo_id,
            data=data,
            mime=mime,
            created_at=created_at if isinstance(created_at, str) else "",
        )

    async def import_snapshot(self, document: dict[str, Any] | str | bytes) -> ImportReport:
        """Restore a backup document, replacing the current state.

        Args:
            document: Parsed document, or its JSON text

        Returns:
            ImportReport with photo and record counts

        Raises:
            ImportValidationError: If the document is malformed (nothing written)
            StorageWriteError: If a store rejects a write
        """
        data = self.validate(document)
        repo = self.repository

        raw_settings = data.get("settings")
        if raw_settings is None:
            settings = repo.default_settings()
        else:
            settings = Settings.from_dict(raw_settings, repo.default_settings())

        collections: dict[Collection, list[Record]] = {}
        for collection in COLLECTION_KEYS:
            documents = data.get(collection.value)
            if documents is None:
                collections[collection] = repo.default_records(collection)
            else:
                collections[collection] = load_records(collection, documents)

        report = ImportReport()
        photos: list[Photo] = []
        for item in data.get("photos") or []:
            photo = self._decode_photo(item)
            if photo is None:
                report.photos_skipped += 1
            else:
                photos.append(photo)

        for photo in photos:
            await repo.blobs.put(photo)
            report.photos_restored += 1

        await repo.restore(settings, collections)
        report.records_restored = {c.value: len(items) for c, items in collections.items()}

        logger.info(
            f"Imported backup: {report.photos_restored} photo(s) restored, "
            f"{report.photos_skipped} skipped"
        )
        return report

    async def read(self, path: str | Path) -> ImportReport:
        """Import a backup file.

        Raises:
            StorageReadError: If the file cannot be read
            ImportValidationError: If its content is malformed
        """
        path = Path(path)
        try:
            async with aiofiles.open(path, "rb") as f:
                content = await f.read()
        except OSError as e:
            raise StorageReadError(str(path), e) from e
        return await self.import_snapshot(content)
