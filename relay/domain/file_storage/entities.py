"""
File Storage Entities

Domain entities for relayed file management.
"""

import dataclasses
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, BinaryIO, Dict, Optional

from ..errors import ValidationError
from .value_objects import AccessToken, FileId, StorageKey


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class UploadDescriptor:
    """
    Upload as received at the boundary, before sanitizing.

    Attributes:
        original_name: Client-supplied display name (untrusted)
        mime_type: Client-declared MIME type (untrusted)
        stream: Readable binary stream with the upload content
        declared_size: Size announced by the client, if any
    """
    original_name: str
    mime_type: str
    stream: BinaryIO
    declared_size: Optional[int] = None

    def __post_init__(self):
        if not isinstance(self.original_name, str) or not self.original_name.strip():
            raise ValidationError("Upload has no file name")
        if not isinstance(self.mime_type, str) or not self.mime_type.strip():
            raise ValidationError("Upload has no MIME type")
        if self.stream is None or not hasattr(self.stream, "read"):
            raise ValidationError("Upload has no readable content")
        if self.declared_size is not None and self.declared_size < 0:
            raise ValidationError("Declared size cannot be negative")


@dataclass(frozen=True)
class SanitizedDescriptor:
    """
    Upload metadata produced by the integrity sanitizer.

    The content sits in a staging file until it is admitted into the
    content store under storage_key.
    """
    original_name: str
    storage_key: str
    extension: str
    mime_type: str
    size_bytes: int
    content_hash: str
    staged_path: str


@dataclass
class FileRecord:
    """
    Entity representing a relayed file with expiration tracking.

    The record is immutable after creation except for download_count.
    """
    id: str
    original_name: str
    storage_key: str
    mime_type: str
    size_bytes: int
    content_hash: str
    created_at: datetime
    expires_at: datetime
    access_token: str
    download_count: int = 0

    @classmethod
    def create(cls, metadata: SanitizedDescriptor, ttl: timedelta,
               now: Optional[datetime] = None,
               file_id: Optional[FileId] = None) -> 'FileRecord':
        """
        Factory method to create a new file record.

        Args:
            metadata: Sanitized upload metadata
            ttl: Time to live
            now: Creation time (default: current UTC time)
            file_id: Pre-generated identifier (default: new random id)

        Returns:
            New FileRecord instance with a fresh id and access token
        """
        now = now or utc_now()
        StorageKey(metadata.storage_key)

        return cls(
            id=str(file_id or FileId.generate()),
            original_name=metadata.original_name,
            storage_key=metadata.storage_key,
            mime_type=metadata.mime_type,
            size_bytes=metadata.size_bytes,
            content_hash=metadata.content_hash,
            created_at=now,
            expires_at=now + ttl,
            access_token=str(AccessToken.generate()),
            download_count=0,
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """
        Check if the record has expired.

        A record is expired from expires_at onwards, inclusive.
        """
        return (now or utc_now()) >= self.expires_at

    def get_remaining_seconds(self, now: Optional[datetime] = None) -> int:
        """
        Get remaining seconds until expiration.

        Returns:
            Seconds remaining (0 if expired)
        """
        remaining = self.expires_at - (now or utc_now())
        return max(0, int(remaining.total_seconds()))

    def with_download(self) -> 'FileRecord':
        """Copy of this record with the download counter incremented by one."""
        return dataclasses.replace(self, download_count=self.download_count + 1)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for persistence, secrets included."""
        return {
            "id": self.id,
            "original_name": self.original_name,
            "storage_key": self.storage_key,
            "mime_type": self.mime_type,
            "size_bytes": self.size_bytes,
            "content_hash": self.content_hash,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "access_token": self.access_token,
            "download_count": self.download_count,
        }

    def to_public_dict(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Convert to the externally visible shape.

        storage_key and access_token are never included.
        """
        return {
            "id": self.id,
            "original_name": self.original_name,
            "mime_type": self.mime_type,
            "size_bytes": self.size_bytes,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "download_count": self.download_count,
            "remaining_seconds": self.get_remaining_seconds(now),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FileRecord':
        """Create FileRecord from dictionary."""
        return cls(
            id=data["id"],
            original_name=data["original_name"],
            storage_key=data["storage_key"],
            mime_type=data["mime_type"],
            size_bytes=int(data["size_bytes"]),
            content_hash=data["content_hash"],
            created_at=_parse_timestamp(data["created_at"]),
            expires_at=_parse_timestamp(data["expires_at"]),
            access_token=data["access_token"],
            download_count=int(data.get("download_count") or 0),
        )


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    # Naive timestamps are treated as UTC
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
