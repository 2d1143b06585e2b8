"""
Local File Storage Repository Implementation

Concrete implementation of IFileStorageRepository for the local filesystem.
Content lives flat under a single directory, one file per storage key.
"""

import logging
import os
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, List, Optional

from relay.domain.file_storage.storage_repository import IFileStorageRepository

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
_TEMP_PREFIX = ".incoming-"


class LocalFileStorageRepository(IFileStorageRepository):
    """
    Local filesystem implementation of IFileStorageRepository.

    Thread Safety:
        Writes go to a temporary file in the same directory and are moved
        into place with os.replace, so readers never observe partial content.

    Attributes:
        base_path: Directory holding the stored content
    """

    def __init__(self, base_path: str = "/tmp/relay/content"):
        """
        Initialize the local file storage repository.

        Args:
            base_path: Base directory for content (default: /tmp/relay/content)
        """
        self.base_path = Path(base_path)
        self._ensure_base_directory()

    def _ensure_base_directory(self) -> None:
        """
        Ensure the base storage directory exists.

        Raises:
            PermissionError: If insufficient permissions to create directory
            OSError: If directory creation fails for other reasons
        """
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            raise PermissionError(
                f"Insufficient permissions to create storage directory: {self.base_path}"
            ) from e
        except OSError as e:
            raise OSError(
                f"Failed to create storage directory: {self.base_path}"
            ) from e

    def _resolve(self, storage_key: str) -> Path:
        """
        Map a storage key to a path inside base_path.

        Raises:
            ValueError: If the key is empty or would leave base_path
        """
        if not storage_key or not storage_key.strip():
            raise ValueError("storage_key cannot be empty")
        if "/" in storage_key or "\\" in storage_key or storage_key in (".", ".."):
            raise ValueError(f"Invalid storage key: {storage_key!r}")

        full_path = self.base_path / storage_key
        if full_path.resolve().parent != self.base_path.resolve():
            raise ValueError(f"Storage key escapes the content directory: {storage_key!r}")
        return full_path

    # IFileStorageRepository interface methods

    def save(self, storage_key: str, content: BinaryIO) -> bool:
        """
        Save content under a storage key.

        Args:
            storage_key: Opaque key produced by the sanitizer
            content: Binary stream with the content

        Returns:
            True if the content was saved

        Raises:
            ValueError: If storage_key is empty or invalid
            PermissionError: If there are insufficient permissions to write
            IOError: If the write fails
        """
        full_path = self._resolve(storage_key)
        temp_path = None

        try:
            fd, temp_path = tempfile.mkstemp(prefix=_TEMP_PREFIX, dir=self.base_path)
            with os.fdopen(fd, "wb") as f:
                shutil.copyfileobj(content, f, CHUNK_SIZE)
                f.flush()
                os.fsync(f.fileno())

            os.replace(temp_path, full_path)
            temp_path = None
            return True

        except PermissionError:
            raise
        except OSError as e:
            raise IOError(f"Failed to save content: {e}") from e
        finally:
            if temp_path is not None:
                self._remove_quietly(temp_path)

    def get(self, storage_key: str) -> Optional[BinaryIO]:
        """
        Open stored content for reading.

        Args:
            storage_key: Opaque key

        Returns:
            Open binary file handle (caller closes), None if nothing is stored
        """
        try:
            full_path = self._resolve(storage_key)
            return open(full_path, "rb")
        except (FileNotFoundError, IsADirectoryError, ValueError):
            return None
        except OSError as e:
            logger.error(f"Error opening stored content: {e.__class__.__name__}")
            return None

    def delete(self, storage_key: str) -> bool:
        """
        Delete stored content. Idempotent.

        Args:
            storage_key: Opaque key

        Returns:
            True if the content is gone afterwards

        Raises:
            PermissionError: If there are insufficient permissions to delete
            IOError: If there are I/O errors during the operation
        """
        try:
            full_path = self._resolve(storage_key)
        except ValueError:
            return True

        try:
            full_path.unlink()
            return True
        except FileNotFoundError:
            return True
        except PermissionError:
            raise
        except OSError as e:
            raise IOError(f"Failed to delete content: {e}") from e

    def exists(self, storage_key: str) -> bool:
        """
        Check if content exists under a storage key.

        Invalid keys return False. Other filesystem errors propagate, so a
        failing disk is never reported as missing content.
        """
        try:
            full_path = self._resolve(storage_key)
        except ValueError:
            return False
        return full_path.is_file()

    def list_keys(self) -> List[str]:
        """Snapshot of stored keys, skipping in-progress writes."""
        try:
            with os.scandir(self.base_path) as entries:
                return [
                    entry.name
                    for entry in entries
                    if entry.is_file() and not entry.name.startswith(_TEMP_PREFIX)
                ]
        except OSError as e:
            logger.error(f"Error listing content directory {self.base_path}: {e}")
            return []

    def get_modified_at(self, storage_key: str) -> Optional[datetime]:
        """Modification time of stored content as an aware UTC datetime."""
        try:
            mtime = self._resolve(storage_key).stat().st_mtime
        except (OSError, ValueError):
            return None
        return datetime.fromtimestamp(mtime, tz=timezone.utc)

    @staticmethod
    def _remove_quietly(path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Could not remove temporary file {path}: {e}")
