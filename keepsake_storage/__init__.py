"""
Keepsake Storage

Persistence and backup core for a small personal keepsake app.

Provides:
- Record store: one atomically-written JSON document per key
- Photo blob store: SQLite-backed, migrated in place
- Image codec: downscale and re-encode photos before storage
- Repository: jar, museum, journal and message collections with photos
- Backup codec: one portable JSON document, photos inlined as data URLs

Usage:

    >>> from keepsake_storage import KeepsakeRepository, BackupCodec, StorageConfig
    >>> async with await KeepsakeRepository.open(StorageConfig.load()) as repo:
    ...     entry = await repo.create(
    ...         "journal", {"date": "2024-05-01", "title": "Picnic"}, [photo_bytes]
    ...     )
    ...     path = await BackupCodec(repo).write(Path("~/Downloads").expanduser())

Command dispatch:

    from keepsake_storage import KeepsakeCommands

    commands = KeepsakeCommands(repo)
    result = await commands.execute({"operation": "list", "collection": "museum"})
"""

from .backup import (
    BACKUP_VERSION,
    BackupCodec,
    BackupPhoto,
    BackupSnapshot,
    ImportReport,
    decode_data_url,
    encode_data_url,
)
from .blobs import PhotoBlobStore
from .commands import CommandResult, KeepsakeCommands
from .config import StorageConfig
from .exceptions import (
    BlobNotFoundError,
    CodecError,
    ImportValidationError,
    KeepsakeStorageError,
    StorageReadError,
    StorageWriteError,
    ValidationError,
)
from .imaging import CompressedImage, compress, scaled_size
from .logging_utils import (
    StorageLoggerAdapter,
    StructuredJsonFormatter,
    configure_structured_logging,
    get_storage_logger,
)
from .models import (
    Collection,
    Entry,
    JarNote,
    Message,
    MicroNote,
    Photo,
    RecordKey,
    Settings,
    SortMode,
)
from .outbound import (
    OutboundChannel,
    OutboundResult,
    OutboundRoute,
    format_outgoing,
    resolve_outbound,
    send_outbound,
)
from .records import RecordStore
from .repository import KeepsakeRepository, SendResult

__all__ = [
    # Repository
    "KeepsakeRepository",
    "SendResult",
    # Stores
    "RecordStore",
    "PhotoBlobStore",
    # Models
    "Collection",
    "RecordKey",
    "SortMode",
    "Settings",
    "JarNote",
    "Entry",
    "Message",
    "MicroNote",
    "Photo",
    # Images
    "compress",
    "scaled_size",
    "CompressedImage",
    # Backup
    "BACKUP_VERSION",
    "BackupCodec",
    "BackupPhoto",
    "BackupSnapshot",
    "ImportReport",
    "encode_data_url",
    "decode_data_url",
    # Outbound
    "OutboundChannel",
    "OutboundResult",
    "OutboundRoute",
    "format_outgoing",
    "resolve_outbound",
    "send_outbound",
    # Commands
    "KeepsakeCommands",
    "CommandResult",
    # Configuration
    "StorageConfig",
    # Exceptions
    "KeepsakeStorageError",
    "StorageReadError",
    "StorageWriteError",
    "BlobNotFoundError",
    "ImportValidationError",
    "CodecError",
    "ValidationError",
    # Logging
    "StructuredJsonFormatter",
    "StorageLoggerAdapter",
    "configure_structured_logging",
    "get_storage_logger",
]

__version__ = "0.1.0"
