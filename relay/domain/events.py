"""
Domain Events

Immutable records of significant state changes in the file lifecycle.
Events decouple side effects (logging, metrics) from core registry logic.
"""

from abc import ABC
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict


@dataclass(frozen=True)
class DomainEvent(ABC):
    """
    Base class for all domain events.

    Attributes:
        aggregate_id: ID of the file record that generated the event
        occurred_at: Timestamp when the event occurred
    """
    aggregate_id: str
    occurred_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert event to dictionary for serialization.

        Returns:
            Dictionary representation of the event
        """
        return {
            "event_type": self.__class__.__name__,
            "aggregate_id": self.aggregate_id,
            "occurred_at": self.occurred_at.isoformat(),
        }


@dataclass(frozen=True)
class FileCreatedEvent(DomainEvent):
    """
    Event emitted when a file record is created.

    Attributes:
        mime_type: Declared MIME type of the upload
        size_bytes: Number of stored bytes
        expires_at: When the record stops being live
    """
    mime_type: str
    size_bytes: int
    expires_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        base_dict = super().to_dict()
        base_dict.update({
            "mime_type": self.mime_type,
            "size_bytes": self.size_bytes,
            "expires_at": self.expires_at.isoformat(),
        })
        return base_dict


@dataclass(frozen=True)
class FileDownloadedEvent(DomainEvent):
    """
    Event emitted after a download has been counted.

    Attributes:
        download_count: Counter value after the increment
    """
    download_count: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        base_dict = super().to_dict()
        base_dict["download_count"] = self.download_count
        return base_dict


@dataclass(frozen=True)
class FileEvictedEvent(DomainEvent):
    """
    Event emitted when a record and its content are removed.

    Attributes:
        reason: "expired", "inconsistent" or "explicit"
        content_deleted: False when the content store refused the deletion
    """
    reason: str
    content_deleted: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        base_dict = super().to_dict()
        base_dict.update({
            "reason": self.reason,
            "content_deleted": self.content_deleted,
        })
        return base_dict


@dataclass(frozen=True)
class ConsistencyWarningEvent(DomainEvent):
    """
    Event emitted when metadata and the content store disagree.

    Not a failure of the calling operation. The record has already been
    removed by the time this is published.

    Attributes:
        detail: Short description of the disagreement
    """
    detail: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        base_dict = super().to_dict()
        base_dict["detail"] = self.detail
        return base_dict
