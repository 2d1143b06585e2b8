"""
File Storage Repositories

Repository interface for file metadata persistence.
Concrete implementations are in the infrastructure layer.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from .entities import FileRecord


class FileRecordRepository(ABC):
    """
    Abstract repository interface for durable key-value persistence of
    file records, keyed by file id.

    Implementations store the full record, storage key and access token
    included. Writes must never corrupt previously written records when
    interrupted.
    """

    @abstractmethod
    def save(self, record: FileRecord) -> bool:
        """
        Insert or replace a record.

        Args:
            record: FileRecord to save

        Returns:
            True if successful, False otherwise

        Raises:
            PersistenceError: If the durable write fails
        """
        pass  # pragma: no cover

    @abstractmethod
    def get(self, file_id: str) -> Optional[FileRecord]:
        """
        Retrieve a record by id.

        Args:
            file_id: File identifier

        Returns:
            FileRecord if found, None otherwise
        """
        pass  # pragma: no cover

    @abstractmethod
    def delete(self, file_id: str) -> bool:
        """
        Delete a record.

        Args:
            file_id: File identifier

        Returns:
            True if a record was removed, False if none existed

        Raises:
            PersistenceError: If the durable write fails
        """
        pass  # pragma: no cover

    @abstractmethod
    def exists(self, file_id: str) -> bool:
        """
        Check if a record exists.

        Args:
            file_id: File identifier

        Returns:
            True if exists, False otherwise
        """
        pass  # pragma: no cover

    @abstractmethod
    def list_ids(self) -> List[str]:
        """
        Snapshot of all stored ids.

        Returns:
            List of file identifiers at the time of the call
        """
        pass  # pragma: no cover
