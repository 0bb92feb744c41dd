"""
Record types for keepsake collections.

Each type normalizes a stored JSON document once, in ``from_dict``,
filling defaults for missing or wrong-typed fields. ``to_dict`` produces
the stored camelCase shape. Unknown keys are carried through in ``extra``
so documents written by newer versions survive a load/save cycle.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any


class Collection(Enum):
    """Named collections managed by the repository."""

    MUSEUM = "museum"
    JOURNAL = "journal"
    JAR = "jar"
    MESSAGES = "messages"


class RecordKey(Enum):
    """Stable record store keys. Changing one requires a migration."""

    SETTINGS = "gift_settings_v1"
    JAR = "gift_jar_v1"
    MICRO = "gift_micro_v1"
    MUSEUM = "gift_museum_v1"
    JOURNAL = "gift_journal_v1"
    MESSAGES = "gift_messages_v1"


COLLECTION_KEYS = {
    Collection.MUSEUM: RecordKey.MUSEUM,
    Collection.JOURNAL: RecordKey.JOURNAL,
    Collection.JAR: RecordKey.JAR,
    Collection.MESSAGES: RecordKey.MESSAGES,
}

# Collections whose records reference photos
PHOTO_COLLECTIONS = (Collection.MUSEUM, Collection.JOURNAL, Collection.MESSAGES)


class SortMode(Enum):
    """Journal sort direction."""

    ASC = "asc"
    DESC = "desc"


def new_id() -> str:
    """Generate a fresh record or photo id."""
    return str(uuid.uuid4())


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(UTC).isoformat(timespec="milliseconds")


def day_iso(day: date | None = None) -> str:
    """Local calendar day as YYYY-MM-DD."""
    return (day or date.today()).isoformat()


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def clean_photo_ids(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [pid for pid in value if isinstance(pid, str) and pid]


def _extra(data: dict[str, Any], known: set[str]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if k not in known}


@dataclass
class Settings:
    """Brand text and outbound message targets."""

    title: str = ""
    subtitle: str = ""
    to_whatsapp: str = ""
    to_email: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    _KEYS = {"title", "subtitle", "toWhatsapp", "toEmail"}

    @classmethod
    def from_dict(cls, data: Any, defaults: Settings | None = None) -> Settings:
        """Normalize a stored settings document.

        Missing keys take the value from ``defaults`` when given.
        """
        base = defaults or cls()
        if not isinstance(data, dict):
            return cls(base.title, base.subtitle, base.to_whatsapp, base.to_email)
        return cls(
            title=_text(data.get("title", base.title)),
            subtitle=_text(data.get("subtitle", base.subtitle)),
            to_whatsapp=_text(data.get("toWhatsapp", base.to_whatsapp)),
            to_email=_text(data.get("toEmail", base.to_email)),
            extra=_extra(data, cls._KEYS),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.extra,
            "title": self.title,
            "subtitle": self.subtitle,
            "toWhatsapp": self.to_whatsapp,
            "toEmail": self.to_email,
        }


@dataclass
class JarNote:
    """A short note in the jar."""

    id: str
    text: str
    created_at: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    _KEYS = {"id", "text", "createdAt"}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JarNote:
        return cls(
            id=_text(data.get("id")) or new_id(),
            text=_text(data.get("text")),
            created_at=_text(data.get("createdAt")),
            extra=_extra(data, cls._KEYS),
        )

    def to_dict(self) -> dict[str, Any]:
        return {**self.extra, "id": self.id, "text": self.text, "createdAt": self.created_at}

    @property
    def photo_ids(self) -> list[str]:
        """Jar notes never carry photos."""
        return []

    def search_fields(self) -> tuple[str, ...]:
        return (self.text,)

    def is_empty(self) -> bool:
        return not self.text.strip()


@dataclass
class Entry:
    """A museum or journal entry.

    Attributes:
        id: Unique entry id
        date: Day the memory refers to (YYYY-MM-DD), may be blank
        title: Short title
        text: Free text
        photo_ids: Ordered blob store references
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    id: str
    date: str = ""
    title: str = ""
    text: str = ""
    photo_ids: list[str] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    _KEYS = {"id", "date", "title", "text", "photoIds", "createdAt", "updatedAt"}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Entry:
        return cls(
            id=_text(data.get("id")) or new_id(),
            date=_text(data.get("date")),
            title=_text(data.get("title")),
            text=_text(data.get("text")),
            photo_ids=clean_photo_ids(data.get("photoIds")),
            created_at=_text(data.get("createdAt")),
            updated_at=_text(data.get("updatedAt")),
            extra=_extra(data, cls._KEYS),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.extra,
            "id": self.id,
            "date": self.date,
            "title": self.title,
            "text": self.text,
            "photoIds": list(self.photo_ids),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    def search_fields(self) -> tuple[str, ...]:
        return (self.title, self.text, self.date)

    def is_empty(self) -> bool:
        return not self.title.strip() and not self.text.strip() and not self.photo_ids

    def copy_text(self) -> str:
        """Plain-text rendering used for "copy to clipboard"."""
        return f"{self.date}\n{self.title}\n\n{self.text}".strip()


@dataclass
class Message:
    """An outbound message kept locally after sending."""

    id: str
    from_name: str = ""
    text: str = ""
    photo_ids: list[str] = field(default_factory=list)
    created_at: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    _KEYS = {"id", "from", "text", "photoIds", "createdAt"}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        return cls(
            id=_text(data.get("id")) or new_id(),
            from_name=_text(data.get("from")),
            text=_text(data.get("text")),
            photo_ids=clean_photo_ids(data.get("photoIds")),
            created_at=_text(data.get("createdAt")),
            extra=_extra(data, cls._KEYS),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.extra,
            "id": self.id,
            "from": self.from_name,
            "text": self.text,
            "photoIds": list(self.photo_ids),
            "createdAt": self.created_at,
        }

    def search_fields(self) -> tuple[str, ...]:
        return (self.from_name, self.text)

    def is_empty(self) -> bool:
        return not self.text.strip() and not self.photo_ids


@dataclass
class MicroNote:
    """The single "one small good thing today" note."""

    text: str
    at: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> MicroNote | None:
        if not isinstance(data, dict) or not _text(data.get("text")):
            return None
        return cls(text=_text(data.get("text")), at=_text(data.get("at")))

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "at": self.at}


@dataclass
class Photo:
    """A blob store record."""

    id: str
    data: bytes
    mime: str = "image/jpeg"
    created_at: str = ""

    @property
    def size_bytes(self) -> int:
        return len(self.data)


Record = JarNote | Entry | Message

RECORD_TYPES: dict[Collection, type[JarNote] | type[Entry] | type[Message]] = {
    Collection.MUSEUM: Entry,
    Collection.JOURNAL: Entry,
    Collection.JAR: JarNote,
    Collection.MESSAGES: Message,
}


def parse_collection(value: Collection | str) -> Collection:
    """Accept a Collection or its name.

    "museo" is accepted as an alias for museum.

    Raises ValueError on unknown names.
    """
    if isinstance(value, Collection):
        return value
    name = str(value).strip().lower()
    if name == "museo":
        return Collection.MUSEUM
    return Collection(name)


def load_records(collection: Collection, documents: Any) -> list[Record]:
    """Normalize a stored list of documents, dropping non-object items."""
    if not isinstance(documents, list):
        return []
    record_type = RECORD_TYPES[collection]
    return [record_type.from_dict(doc) for doc in documents if isinstance(doc, dict)]


def example_records(collection: Collection) -> list[Record]:
    """Starter content used when seeding an empty store."""
    now = now_iso()
    if collection is Collection.JAR:
        texts = [
            "If you are here, you wanted a small but true thought.",
            "I like you more than I manage to say when I talk in a hurry.",
            "Today: you don't need to earn anything to be loved.",
        ]
        return [JarNote(id=new_id(), text=t, created_at=now) for t in texts]
    if collection is Collection.MUSEUM:
        return [
            Entry(
                id=new_id(),
                date=day_iso(),
                title="The day when...",
                text="Write a short memory here.",
                created_at=now,
                updated_at=now,
            )
        ]
    if collection is Collection.JOURNAL:
        return [
            Entry(
                id=new_id(),
                date=day_iso(),
                title="A beautiful thing",
                text="Write here something beautiful you did together.",
                created_at=now,
                updated_at=now,
            )
        ]
    return []
