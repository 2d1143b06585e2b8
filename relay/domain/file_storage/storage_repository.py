"""
Content Store Interface

Abstract interface for the physical bytes behind file records.
Bytes are addressed by opaque storage keys; the domain never sees paths.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import BinaryIO, List, Optional


class IFileStorageRepository(ABC):
    """
    Unified interface for content store operations.

    Contract Guarantees:
    - delete() and exists() are idempotent and safe on unknown keys
    - save() replaces atomically: readers see the old bytes or the new
      bytes, never a partial file
    - get() returns an open stream so large files are never buffered
      whole in memory

    Thread Safety:
    - Implementations must be safe for concurrent use on different keys
    """

    @abstractmethod
    def save(self, storage_key: str, content: BinaryIO) -> bool:
        """
        Write content under a storage key.

        Args:
            storage_key: Opaque key produced by the sanitizer
            content: Binary stream positioned at the start of the content

        Returns:
            True if the content was stored

        Raises:
            ValueError: If the key is empty or escapes the store
            IOError: If the write fails
        """
        pass  # pragma: no cover

    @abstractmethod
    def get(self, storage_key: str) -> Optional[BinaryIO]:
        """
        Open stored content for incremental reading.

        The caller owns the returned stream and must close it.

        Args:
            storage_key: Opaque key

        Returns:
            Open binary stream, or None if nothing is stored under the key
        """
        pass  # pragma: no cover

    @abstractmethod
    def delete(self, storage_key: str) -> bool:
        """
        Delete stored content.

        Deleting an unknown key succeeds.

        Args:
            storage_key: Opaque key

        Returns:
            True if the content is gone afterwards

        Raises:
            IOError: If the content exists but could not be removed
        """
        pass  # pragma: no cover

    @abstractmethod
    def exists(self, storage_key: str) -> bool:
        """
        Check whether content is stored under a key.

        Invalid keys return False. Storage failures raise rather than
        reporting the content as missing.
        """
        pass  # pragma: no cover

    @abstractmethod
    def list_keys(self) -> List[str]:
        """
        Snapshot of every storage key currently holding content.

        Used by reconciliation to find content no record refers to.
        """
        pass  # pragma: no cover

    @abstractmethod
    def get_modified_at(self, storage_key: str) -> Optional[datetime]:
        """
        Last modification time of stored content (timezone-aware UTC).

        Returns:
            Modification time, or None if nothing is stored under the key
        """
        pass  # pragma: no cover
