"""
Custom exceptions for keepsake storage.

All stores raise these exceptions so callers can handle
failures the same way regardless of which store failed.
"""


class KeepsakeStorageError(Exception):
    """Base exception for all keepsake storage errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class StorageReadError(KeepsakeStorageError):
    """Raised when a stored record cannot be read or parsed.

    The record store recovers from this locally by returning the
    caller's default, so it is normally only seen in logs.
    """

    def __init__(self, key: str, cause: Exception | None = None):
        details = {"key": key}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Could not read record: {key}", details)
        self.key = key
        self.cause = cause


class StorageWriteError(KeepsakeStorageError):
    """Raised when the underlying store rejects a write."""

    def __init__(self, operation: str, target: str | None = None, cause: Exception | None = None):
        details = {"operation": operation}
        if target:
            details["target"] = target
        if cause:
            details["cause"] = str(cause)
        message = f"Storage write failed during {operation}"
        if target:
            message += f": {target}"
        super().__init__(message, details)
        self.operation = operation
        self.target = target
        self.cause = cause


class BlobNotFoundError(KeepsakeStorageError):
    """Raised when a referenced photo is absent from the blob store."""

    def __init__(self, photo_id: str):
        super().__init__(f"Photo not found: {photo_id}", {"photo_id": photo_id})
        self.photo_id = photo_id


class ImportValidationError(KeepsakeStorageError):
    """Raised when a backup document is structurally invalid.

    Raised before any store is touched, so prior state is left intact.
    """

    def __init__(self, reason: str, field: str | None = None):
        details = {"reason": reason}
        if field:
            details["field"] = field
        message = f"Invalid backup document: {reason}"
        if field:
            message = f"Invalid backup document ({field}): {reason}"
        super().__init__(message, details)
        self.reason = reason
        self.field = field


class CodecError(KeepsakeStorageError):
    """Raised when a source image cannot be decoded or re-encoded."""

    def __init__(self, reason: str, cause: Exception | None = None):
        details = {"reason": reason}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Image codec error: {reason}", details)
        self.reason = reason
        self.cause = cause


class ValidationError(KeepsakeStorageError):
    """Raised when an operation receives invalid arguments."""

    def __init__(self, field: str, reason: str, value: str | None = None):
        details = {"field": field, "reason": reason}
        if value is not None:
            details["value"] = value
        super().__init__(f"Validation failed for {field}: {reason}", details)
        self.field = field
        self.reason = reason
        self.value = value
