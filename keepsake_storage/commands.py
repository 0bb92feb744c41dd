"""
Command dispatcher for UI collaborators.

Exposes the repository and backup operations behind one
``execute(input) -> CommandResult`` entry point taking plain dicts, so a
UI layer (or a script) can drive the core without importing its types.

Operations:
- create, update, delete, remove_photo
- search, list, random_note
- update_settings, save_micro_note, load_micro_note
- send_message
- export, import, reset

Photos are passed as a list of data URLs or raw bytes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .backup import BackupCodec, decode_data_url
from .imaging import ImageSource
from .outbound import OutboundChannel, OutboundResult
from .repository import KeepsakeRepository

logger = logging.getLogger(__name__)

OPERATIONS = [
    "create",
    "update",
    "delete",
    "remove_photo",
    "search",
    "list",
    "random_note",
    "update_settings",
    "save_micro_note",
    "load_micro_note",
    "send_message",
    "export",
    "import",
    "reset",
]


@dataclass
class CommandResult:
    """Result of one dispatched command."""

    success: bool
    output: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        result: dict[str, Any] = {"success": self.success}
        if self.success:
            result["output"] = self.output
        if self.error:
            result["error"] = self.error
        return result


def _photos(params: dict[str, Any]) -> list[ImageSource]:
    """Photo sources from the input; malformed data URLs are skipped."""
    sources: list[ImageSource] = []
    for index, item in enumerate(params.get("photos") or []):
        if isinstance(item, str):
            try:
                data, _mime = decode_data_url(item)
            except ValueError as e:
                logger.warning(f"Skipping photo #{index}: {e}")
                continue
            sources.append(data)
        else:
            sources.append(item)
    return sources


def _outbound(result: OutboundResult | None) -> dict[str, Any] | None:
    if result is None:
        return None
    return {
        "delivered": result.delivered,
        "route": result.route.value if result.route else None,
        "url": result.url,
        "error": result.error,
    }


class KeepsakeCommands:
    """
    Dispatches named operations to a repository and its backup codec.

    Usage:

        >>> commands = KeepsakeCommands(repo)
        >>> result = await commands.execute(
        ...     {"operation": "create", "collection": "jar", "fields": {"text": "hi"}}
        ... )
        >>> result.output["record"]["text"]
        'hi'
    """

    def __init__(
        self,
        repository: KeepsakeRepository,
        backup: BackupCodec | None = None,
        channel: OutboundChannel | None = None,
    ):
        self.repository = repository
        self.backup = backup or BackupCodec(repository)
        self.channel = channel

    async def execute(self, input: dict[str, Any]) -> CommandResult:
        """Execute one operation.

        Args:
            input: Operation name under ``operation`` plus its parameters

        Returns:
            CommandResult with success status and output/error
        """
        operation = input.get("operation")

        try:
            if operation == "create":
                output = await self._create(input)
            elif operation == "update":
                output = await self._update(input)
            elif operation == "delete":
                output = await self._delete(input)
            elif operation == "remove_photo":
                output = await self._remove_photo(input)
            elif operation == "search":
                output = self._search(input)
            elif operation == "list":
                output = self._list(input)
            elif operation == "random_note":
                output = {"text": self.repository.random_note()}
            elif operation == "update_settings":
                output = await self._update_settings(input)
            elif operation == "save_micro_note":
                output = await self._save_micro_note(input)
            elif operation == "load_micro_note":
                note = await self.repository.load_micro_note()
                output = {"note": note.to_dict() if note else None}
            elif operation == "send_message":
                output = await self._send_message(input)
            elif operation == "export":
                output = await self._export(input)
            elif operation == "import":
                output = await self._import(input)
            elif operation == "reset":
                await self.repository.reset()
                output = {}
            else:
                return CommandResult(
                    success=False,
                    error=f"Unknown operation: {operation}",
                    output={"available_operations": OPERATIONS},
                )

            if "error" in output:
                return CommandResult(success=False, error=output["error"], output=output)

            output["operation"] = operation
            return CommandResult(success=True, output=output)

        except Exception as e:
            return CommandResult(success=False, error=str(e))

    async def _create(self, params: dict[str, Any]) -> dict[str, Any]:
        collection = params.get("collection")
        if not collection:
            return {"error": "collection is required"}

        record = await self.repository.create(
            collection, params.get("fields") or {}, _photos(params)
        )
        return {"created": record is not None, "record": record.to_dict() if record else None}

    async def _update(self, params: dict[str, Any]) -> dict[str, Any]:
        collection = params.get("collection")
        record_id = params.get("id")
        if not collection or not record_id:
            return {"error": "collection and id are required"}

        entry = await self.repository.update(
            collection, record_id, params.get("fields") or {}, _photos(params)
        )
        return {"updated": entry is not None, "record": entry.to_dict() if entry else None}

    async def _delete(self, params: dict[str, Any]) -> dict[str, Any]:
        collection = params.get("collection")
        record_id = params.get("id")
        if not collection or not record_id:
            return {"error": "collection and id are required"}
        return {"deleted": await self.repository.delete(collection, record_id)}

    async def _remove_photo(self, params: dict[str, Any]) -> dict[str, Any]:
        collection = params.get("collection")
        record_id = params.get("id")
        photo_id = params.get("photo_id")
        if not collection or not record_id or not photo_id:
            return {"error": "collection, id and photo_id are required"}
        removed = await self.repository.remove_photo(collection, record_id, photo_id)
        return {"removed": removed}

    def _search(self, params: dict[str, Any]) -> dict[str, Any]:
        collection = params.get("collection")
        if not collection:
            return {"error": "collection is required"}

        matches = self.repository.search(collection, params.get("query"))
        if params.get("sort"):
            matches = self.repository.sort(collection, params["sort"], matches)
        return {"count": len(matches), "records": [r.to_dict() for r in matches]}

    def _list(self, params: dict[str, Any]) -> dict[str, Any]:
        collection = params.get("collection")
        if not collection:
            return {"error": "collection is required"}

        records = self.repository.sort(collection, params.get("sort", "desc"))
        return {"count": len(records), "records": [r.to_dict() for r in records]}

    async def _update_settings(self, params: dict[str, Any]) -> dict[str, Any]:
        settings = await self.repository.update_settings(
            title=params.get("title"),
            subtitle=params.get("subtitle"),
            to_whatsapp=params.get("to_whatsapp"),
            to_email=params.get("to_email"),
        )
        return {"settings": settings.to_dict()}

    async def _save_micro_note(self, params: dict[str, Any]) -> dict[str, Any]:
        note = await self.repository.save_micro_note(params.get("text") or "")
        return {"saved": note is not None, "note": note.to_dict() if note else None}

    async def _send_message(self, params: dict[str, Any]) -> dict[str, Any]:
        from_name = params.get("from") or self.repository.config.default_sender
        sent = await self.repository.send_message(
            from_name, params.get("text") or "", _photos(params), self.channel
        )
        if sent is None:
            return {"sent": False, "message": None, "outbound": None}
        return {
            "sent": True,
            "message": sent.message.to_dict(),
            "outbound": _outbound(sent.outbound),
        }

    async def _export(self, params: dict[str, Any]) -> dict[str, Any]:
        directory = params.get("directory")
        if directory:
            path = await self.backup.write(directory)
            return {"path": str(path)}
        snapshot = await self.backup.export()
        return {"snapshot": snapshot.to_dict()}

    async def _import(self, params: dict[str, Any]) -> dict[str, Any]:
        if params.get("path"):
            report = await self.backup.read(params["path"])
        elif params.get("document") is not None:
            report = await self.backup.import_snapshot(params["document"])
        else:
            return {"error": "document or path is required"}
        return {
            "photos_restored": report.photos_restored,
            "photos_skipped": report.photos_skipped,
            "records_restored": report.records_restored,
        }
