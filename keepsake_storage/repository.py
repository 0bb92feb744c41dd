"""
Keepsake repository.

Owns the in-memory collections (jar, museum, journal, messages) and the
settings singleton, and funnels every mutation through methods that keep
two rules:

- every mutation re-persists the whole owning collection
- photo blobs are written before the record that references them, and
  deleted together with the record (or reference) that owned them

Photo ids are never shared between records.
"""

from __future__ import annotations

import dataclasses
import random
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from .blobs import PhotoBlobStore
from .config import StorageConfig
from .exceptions import BlobNotFoundError, CodecError, StorageWriteError, ValidationError
from .imaging import CompressedImage, ImageSource, compress
from .logging_utils import StorageLoggerAdapter, get_storage_logger
from .models import (
    COLLECTION_KEYS,
    PHOTO_COLLECTIONS,
    Collection,
    Entry,
    JarNote,
    Message,
    MicroNote,
    Photo,
    Record,
    RecordKey,
    Settings,
    SortMode,
    clean_photo_ids,
    day_iso,
    example_records,
    load_records,
    new_id,
    now_iso,
    parse_collection,
)
from .outbound import OutboundChannel, OutboundResult, format_outgoing, send_outbound
from .records import RecordStore

logger = get_storage_logger("repository")

EMPTY_JAR_TEXT = "There are no notes in the jar. Add one."
MISSING_DATE = "0000-00-00"

ENTRY_COLLECTIONS = (Collection.MUSEUM, Collection.JOURNAL)


@dataclass
class SendResult:
    """A stored message and the outcome of delivering it."""

    message: Message
    outbound: OutboundResult | None = None


def _field(fields: Mapping[str, Any], name: str) -> str:
    value = fields.get(name)
    return "" if value is None else str(value).strip()


class KeepsakeRepository:
    """
    Domain operations over the keepsake collections.

    Usage:

        >>> async with await KeepsakeRepository.open(StorageConfig.load()) as repo:
        ...     entry = await repo.create("journal", {"title": "Picnic"}, [photo_bytes])
        ...     await repo.delete("journal", entry.id)
    """

    def __init__(self, config: StorageConfig, records: RecordStore, blobs: PhotoBlobStore):
        """
        Initialize the repository. Call ``load`` before use.

        Args:
            config: Storage configuration
            records: Record store for settings and collections
            blobs: Photo blob store
        """
        self.config = config
        self.records = records
        self.blobs = blobs
        self.settings = self.default_settings()
        self._collections: dict[Collection, list[Record]] = {c: [] for c in Collection}

    @classmethod
    async def open(cls, config: StorageConfig | None = None) -> KeepsakeRepository:
        """Create stores from ``config`` and load all collections."""
        if config is None:
            config = StorageConfig.load()

        repo = cls(
            config,
            RecordStore(config.records_path),
            PhotoBlobStore(config.photos_db_path),
        )
        await repo.load()
        return repo

    async def __aenter__(self) -> KeepsakeRepository:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self.blobs.close()

    def _log(self, collection: Collection) -> StorageLoggerAdapter:
        return StorageLoggerAdapter(logger, {"collection": collection.value})

    # =========================================================================
    # Loading and defaults
    # =========================================================================

    def default_settings(self) -> Settings:
        return Settings(title=self.config.default_title, subtitle=self.config.default_subtitle)

    def default_records(self, collection: Collection) -> list[Record]:
        """Records used when a collection has never been stored."""
        if self.config.seed_examples:
            return example_records(collection)
        return []

    async def load(self) -> None:
        """Load settings and every collection from the record store."""
        stored_settings = await self.records.get(RecordKey.SETTINGS)
        if stored_settings is None:
            self.settings = self.default_settings()
        else:
            self.settings = Settings.from_dict(stored_settings, self.default_settings())

        for collection, key in COLLECTION_KEYS.items():
            documents = await self.records.get(key)
            if documents is None:
                self._collections[collection] = self.default_records(collection)
            else:
                self._collections[collection] = load_records(collection, documents)

        logger.debug(
            "Loaded collections: "
            + ", ".join(f"{c.value}={len(items)}" for c, items in self._collections.items())
        )

    async def _persist(self, collection: Collection) -> None:
        await self.records.set(
            COLLECTION_KEYS[collection],
            [record.to_dict() for record in self._collections[collection]],
        )

    async def _persist_settings(self) -> None:
        await self.records.set(RecordKey.SETTINGS, self.settings.to_dict())

    def _collection(self, collection: Collection | str) -> Collection:
        try:
            return parse_collection(collection)
        except ValueError:
            raise ValidationError("collection", "unknown collection", str(collection)) from None

    # =========================================================================
    # Photo helpers
    # =========================================================================

    async def _compress_all(
        self, collection: Collection, photos: Iterable[ImageSource]
    ) -> list[CompressedImage]:
        """Compress each photo; undecodable ones are dropped."""
        compressed: list[CompressedImage] = []
        for index, source in enumerate(photos):
            try:
                compressed.append(
                    await compress(source, self.config.max_width, self.config.quality)
                )
            except CodecError as e:
                self._log(collection).warning(f"Dropping photo #{index}: {e.message}")
        return compressed

    async def _store_photos(self, compressed: list[CompressedImage]) -> list[str]:
        """Write compressed photos to the blob store.

        On failure, photos already written by this call are removed and
        the error propagates.
        """
        stored: list[str] = []
        for image in compressed:
            photo = Photo(id=new_id(), data=image.data, mime=image.mime, created_at=now_iso())
            try:
                await self.blobs.put(photo)
            except StorageWriteError:
                await self._delete_blobs(stored)
                raise
            stored.append(photo.id)
        return stored

    async def _delete_blobs(self, photo_ids: Iterable[str]) -> int:
        """Delete blobs best-effort, continuing past individual failures."""
        deleted = 0
        for photo_id in photo_ids:
            try:
                if await self.blobs.delete(photo_id):
                    deleted += 1
            except StorageWriteError as e:
                logger.warning(f"Could not delete photo {photo_id}: {e.message}")
        return deleted

    async def photos_for(self, collection: Collection | str, record_id: str) -> list[Photo]:
        """Resolve a record's photos in order, skipping missing blobs."""
        collection = self._collection(collection)
        record = self.get(collection, record_id)
        if record is None:
            return []

        photos = []
        for photo_id in record.photo_ids:
            photo = await self.blobs.get(photo_id)
            if photo is None:
                self._log(collection).debug(f"Skipping missing photo {photo_id}")
                continue
            photos.append(photo)
        return photos

    async def get_photo(self, photo_id: str) -> Photo:
        """Fetch one photo.

        Raises:
            BlobNotFoundError: If the blob store has no such photo
        """
        photo = await self.blobs.get(photo_id)
        if photo is None:
            raise BlobNotFoundError(photo_id)
        return photo

    def referenced_photo_ids(self) -> list[str]:
        """Photo ids referenced anywhere, deduplicated in first-seen order."""
        seen: dict[str, None] = {}
        for collection in PHOTO_COLLECTIONS:
            for record in self._collections[collection]:
                for photo_id in record.photo_ids:
                    seen.setdefault(photo_id, None)
        return list(seen)

    async def prune_missing_photos(self) -> int:
        """Drop photo ids whose blob no longer exists.

        Returns:
            Number of references removed
        """
        live = set(await self.blobs.list_ids())
        pruned = 0
        for collection in PHOTO_COLLECTIONS:
            changed = False
            for record in self._collections[collection]:
                kept = [pid for pid in record.photo_ids if pid in live]
                if len(kept) != len(record.photo_ids):
                    pruned += len(record.photo_ids) - len(kept)
                    record.photo_ids = kept
                    changed = True
            if changed:
                await self._persist(collection)
        if pruned:
            logger.info(f"Pruned {pruned} dangling photo references")
        return pruned

    # =========================================================================
    # Collection operations
    # =========================================================================

    def list_records(self, collection: Collection | str) -> list[Record]:
        """Records in stored order (newest first for created records)."""
        return list(self._collections[self._collection(collection)])

    def get(self, collection: Collection | str, record_id: str) -> Record | None:
        for record in self._collections[self._collection(collection)]:
            if record.id == record_id:
                return record
        return None

    def _build(self, collection: Collection, fields: Mapping[str, Any]) -> Record:
        now = now_iso()
        if collection is Collection.JAR:
            return JarNote(id=new_id(), text=_field(fields, "text"), created_at=now)
        if collection is Collection.MESSAGES:
            return Message(
                id=new_id(),
                from_name=_field(fields, "from") or self.config.default_sender,
                text=_field(fields, "text"),
                created_at=now,
            )
        return Entry(
            id=new_id(),
            date=_field(fields, "date") or day_iso(),
            title=_field(fields, "title"),
            text=_field(fields, "text"),
            created_at=now,
            updated_at=now,
        )

    async def create(
        self,
        collection: Collection | str,
        fields: Mapping[str, Any] | None = None,
        photos: Iterable[ImageSource] = (),
    ) -> Record | None:
        """Create a record and prepend it to its collection.

        Args:
            collection: Target collection
            fields: Record fields (jar: text; entries: date, title, text;
                messages: from, text)
            photos: Source images to compress and attach (ignored for jar)

        Returns:
            The new record, or None when it would be empty (nothing stored)

        Raises:
            StorageWriteError: If a photo or the collection cannot be written
        """
        collection = self._collection(collection)
        log = self._log(collection)
        record = self._build(collection, fields or {})

        photos = list(photos)
        compressed: list[CompressedImage] = []
        if collection is Collection.JAR:
            if photos:
                log.debug("Jar notes do not carry photos; ignoring attachments")
        else:
            compressed = await self._compress_all(collection, photos)

        if record.is_empty() and not compressed:
            log.debug("Ignoring empty record")
            return None

        if compressed:
            record.photo_ids = await self._store_photos(compressed)

        items = self._collections[collection]
        items.insert(0, record)
        try:
            await self._persist(collection)
        except StorageWriteError:
            items.remove(record)
            if compressed:
                await self._delete_blobs(record.photo_ids)
            raise

        log.info(f"Created {record.id} with {len(compressed)} photo(s)")
        return record

    async def update(
        self,
        collection: Collection | str,
        record_id: str,
        fields: Mapping[str, Any] | None = None,
        photos: Iterable[ImageSource] = (),
    ) -> Entry | None:
        """Update a museum or journal entry in place.

        Supplied ``date``, ``title``, ``text`` and ``photoIds`` replace the
        stored values; omitted ones are kept. ``photoIds`` may reorder or
        drop the entry's own photos; dropped photos are deleted. A ``photoIds``
        of None counts as not supplied. New photos are compressed and
        appended.

        Returns:
            The updated entry, or None if not found or if the update would
            leave the entry empty (nothing changes)

        Raises:
            ValidationError: For jar and message collections, or a
                ``photoIds`` value that is not a list
            StorageWriteError: If a photo or the collection cannot be written
        """
        collection = self._collection(collection)
        if collection not in ENTRY_COLLECTIONS:
            raise ValidationError(
                "collection", "records in this collection are not updated in place", collection.value
            )

        entry = self.get(collection, record_id)
        if entry is None:
            return None

        log = self._log(collection)
        fields = fields or {}
        changes: dict[str, Any] = {}
        if "date" in fields:
            changes["date"] = _field(fields, "date") or day_iso()
        if "title" in fields:
            changes["title"] = _field(fields, "title")
        if "text" in fields:
            changes["text"] = _field(fields, "text")

        dropped: list[str] = []
        raw_ids = fields.get("photoIds")
        if raw_ids is not None:
            if not isinstance(raw_ids, list):
                raise ValidationError("photoIds", "must be a list", repr(raw_ids))
            requested = clean_photo_ids(raw_ids)
            foreign = [pid for pid in requested if pid not in entry.photo_ids]
            if foreign:
                log.warning(f"Ignoring photo ids not owned by {record_id}: {foreign}")
            kept = list(dict.fromkeys(pid for pid in requested if pid in entry.photo_ids))
            dropped = [pid for pid in entry.photo_ids if pid not in kept]
            changes["photoIds"] = kept

        compressed = await self._compress_all(collection, photos)
        candidate = dataclasses.replace(
            entry,
            date=changes.get("date", entry.date),
            title=changes.get("title", entry.title),
            text=changes.get("text", entry.text),
            photo_ids=list(changes.get("photoIds", entry.photo_ids)),
            extra=dict(entry.extra),
        )
        if candidate.is_empty() and not compressed:
            log.debug(f"Ignoring update that would empty {record_id}")
            return None

        new_ids = await self._store_photos(compressed)
        candidate.photo_ids.extend(new_ids)
        candidate.updated_at = now_iso()

        items = self._collections[collection]
        index = items.index(entry)
        items[index] = candidate
        try:
            await self._persist(collection)
        except StorageWriteError:
            items[index] = entry
            await self._delete_blobs(new_ids)
            raise

        await self._delete_blobs(dropped)
        log.info(f"Updated {record_id}")
        return candidate

    async def remove_photo(
        self, collection: Collection | str, record_id: str, photo_id: str
    ) -> bool:
        """Detach a photo from a record and delete its blob.

        Returns:
            True if the record referenced the photo

        Raises:
            StorageWriteError: If the collection cannot be written (the
                record keeps the photo)
        """
        collection = self._collection(collection)
        record = self.get(collection, record_id)
        if record is None or photo_id not in record.photo_ids:
            return False

        previous_ids = record.photo_ids
        record.photo_ids = [pid for pid in previous_ids if pid != photo_id]
        if isinstance(record, Entry):
            previous_updated = record.updated_at
            record.updated_at = now_iso()
        try:
            await self._persist(collection)
        except StorageWriteError:
            record.photo_ids = previous_ids
            if isinstance(record, Entry):
                record.updated_at = previous_updated
            raise

        await self._delete_blobs([photo_id])
        self._log(collection).info(f"Removed photo {photo_id} from {record_id}")
        return True

    async def delete(self, collection: Collection | str, record_id: str) -> bool:
        """Delete a record and every photo it references.

        The record is persisted as removed first; photo deletion then
        continues past individual failures.

        Returns:
            True if the record existed

        Raises:
            StorageWriteError: If the collection cannot be written (the
                record and its photos are kept)
        """
        collection = self._collection(collection)
        record = self.get(collection, record_id)
        if record is None:
            return False

        items = self._collections[collection]
        index = items.index(record)
        del items[index]
        try:
            await self._persist(collection)
        except StorageWriteError:
            items.insert(index, record)
            raise

        deleted = await self._delete_blobs(record.photo_ids)
        self._log(collection).info(f"Deleted {record_id} and {deleted} photo(s)")
        return True

    def search(self, collection: Collection | str, query: str | None) -> list[Record]:
        """Case-insensitive substring search.

        Entries match on title, text or date; jar notes on text; messages
        on sender or text. A blank query matches everything.
        """
        items = self._collections[self._collection(collection)]
        needle = (query or "").strip().lower()
        if not needle:
            return list(items)
        return [r for r in items if any(needle in value.lower() for value in r.search_fields())]

    def sort(
        self,
        collection: Collection | str,
        mode: SortMode | str = SortMode.DESC,
        records: Iterable[Record] | None = None,
    ) -> list[Record]:
        """Sort records for display.

        Journal follows ``mode`` by date (missing dates sort earliest).
        Museum is always most-recently-updated first; jar and messages are
        always most-recently-created first.

        Args:
            collection: Collection whose ordering rules apply
            mode: Journal direction
            records: Records to sort (default: the whole collection),
                e.g. the output of ``search``
        """
        collection = self._collection(collection)
        items = list(self._collections[collection] if records is None else records)

        if collection is Collection.JOURNAL:
            mode = SortMode(mode)
            return sorted(
                items,
                key=lambda e: e.date or MISSING_DATE,
                reverse=mode is SortMode.DESC,
            )
        if collection is Collection.MUSEUM:
            return sorted(items, key=lambda e: e.updated_at or e.created_at, reverse=True)
        return sorted(items, key=lambda r: r.created_at, reverse=True)

    # =========================================================================
    # Jar, settings and the micro note
    # =========================================================================

    def random_note(self, rng: random.Random | None = None) -> str:
        """Text of a random jar note, or a placeholder for an empty jar."""
        jar = self._collections[Collection.JAR]
        if not jar:
            return EMPTY_JAR_TEXT
        return (rng or random).choice(jar).text

    async def update_settings(
        self,
        title: str | None = None,
        subtitle: str | None = None,
        to_whatsapp: str | None = None,
        to_email: str | None = None,
    ) -> Settings:
        """Update settings; None leaves a value unchanged.

        Blank title or subtitle fall back to the configured defaults.
        """
        if title is not None:
            self.settings.title = title.strip() or self.config.default_title
        if subtitle is not None:
            self.settings.subtitle = subtitle.strip() or self.config.default_subtitle
        if to_whatsapp is not None:
            self.settings.to_whatsapp = to_whatsapp.strip()
        if to_email is not None:
            self.settings.to_email = to_email.strip()

        await self._persist_settings()
        return self.settings

    @property
    def brand_title(self) -> str:
        return self.settings.title or self.config.default_title

    @property
    def brand_subtitle(self) -> str:
        return self.settings.subtitle or self.config.default_subtitle

    async def save_micro_note(self, text: str) -> MicroNote | None:
        """Store the "small good thing" note. Blank text is ignored."""
        body = (text or "").strip()
        if not body:
            return None
        note = MicroNote(text=body, at=now_iso())
        await self.records.set(RecordKey.MICRO, note.to_dict())
        return note

    async def load_micro_note(self) -> MicroNote | None:
        return MicroNote.from_dict(await self.records.get(RecordKey.MICRO))

    # =========================================================================
    # Messages
    # =========================================================================

    async def send_message(
        self,
        from_name: str,
        text: str,
        photos: Iterable[ImageSource] = (),
        channel: OutboundChannel | None = None,
    ) -> SendResult | None:
        """Store a message, then deliver it through ``channel``.

        Delivery failures are reported in the result and never undo the
        stored message.

        Returns:
            SendResult, or None for an empty message
        """
        message = await self.create(Collection.MESSAGES, {"from": from_name, "text": text}, photos)
        if message is None:
            return None
        if channel is None:
            return SendResult(message=message)
        return SendResult(message=message, outbound=await self._deliver(message, channel))

    async def resend_message(self, message_id: str, channel: OutboundChannel) -> OutboundResult | None:
        """Deliver a stored message again. Returns None if not found."""
        message = self.get(Collection.MESSAGES, message_id)
        if message is None:
            return None
        return await self._deliver(message, channel)

    async def _deliver(self, message: Message, channel: OutboundChannel) -> OutboundResult:
        payload = format_outgoing(message.from_name, message.text)
        return await send_outbound(payload, self.settings, channel)

    # =========================================================================
    # Whole-state operations
    # =========================================================================

    async def restore(
        self,
        settings: Settings,
        collections: Mapping[Collection, list[Record]],
    ) -> None:
        """Replace settings and every collection wholesale, then persist.

        Collections absent from ``collections`` become empty.
        """
        self.settings = settings
        for collection in Collection:
            self._collections[collection] = list(collections.get(collection, []))

        await self._persist_settings()
        for collection in COLLECTION_KEYS:
            await self._persist(collection)
        logger.info("Restored settings and all collections")

    async def reset(self) -> None:
        """Remove every record and photo, then reload defaults."""
        for key in RecordKey:
            await self.records.remove(key)
        await self.blobs.clear()
        await self.load()
        logger.info("Keepsake storage reset")
