"""Backup export and import."""

from .codec import BackupCodec
from .data_url import decode_data_url, encode_data_url
from .types import BACKUP_VERSION, BackupPhoto, BackupSnapshot, ImportReport

__all__ = [
    "BACKUP_VERSION",
    "BackupCodec",
    "BackupPhoto",
    "BackupSnapshot",
    "ImportReport",
    "decode_data_url",
    "encode_data_url",
]
