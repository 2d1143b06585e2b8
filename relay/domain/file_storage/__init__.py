"""
File Storage Domain

Handles relayed file records, upload sanitizing, token-based access,
expiry and metadata/content consistency.
"""

from .entities import FileRecord, SanitizedDescriptor, UploadDescriptor
from .id_locks import KeyedLock
from .repositories import FileRecordRepository
from .sanitizer import IntegritySanitizer
from .services import FileRegistry
from .storage_repository import IFileStorageRepository
from .value_objects import AccessToken, FileId, StorageKey

__all__ = [
    "FileRecord",
    "UploadDescriptor",
    "SanitizedDescriptor",
    "FileRegistry",
    "FileRecordRepository",
    "IFileStorageRepository",
    "IntegritySanitizer",
    "KeyedLock",
    "FileId",
    "AccessToken",
    "StorageKey",
]
