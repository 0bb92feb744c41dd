"""Dataclasses for backup documents."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

BACKUP_VERSION = 1


@dataclass
class BackupPhoto:
    """A photo inlined in a backup document."""

    id: str
    mime: str
    created_at: str
    data_url: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "mime": self.mime,
            "createdAt": self.created_at,
            "dataUrl": self.data_url,
        }


@dataclass
class BackupSnapshot:
    """The whole keepsake state as one portable document."""

    exported_at: str
    settings: dict[str, Any]
    jar: list[dict[str, Any]] = field(default_factory=list)
    museum: list[dict[str, Any]] = field(default_factory=list)
    journal: list[dict[str, Any]] = field(default_factory=list)
    messages: list[dict[str, Any]] = field(default_factory=list)
    photos: list[BackupPhoto] = field(default_factory=list)
    version: int = BACKUP_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "exportedAt": self.exported_at,
            "settings": self.settings,
            "jar": self.jar,
            "museum": self.museum,
            "journal": self.journal,
            "messages": self.messages,
            "photos": [photo.to_dict() for photo in self.photos],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


@dataclass
class ImportReport:
    """Outcome of restoring a backup."""

    photos_restored: int = 0
    photos_skipped: int = 0
    records_restored: dict[str, int] = field(default_factory=dict)
