"""
Relay Service

Application service orchestrating uploads and downloads across the
integrity sanitizer, the content store and the file registry.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Callable, Dict, Iterator, Optional

from relay.domain.errors import NotFoundOrExpired, PersistenceError
from relay.domain.file_storage.entities import FileRecord, SanitizedDescriptor, UploadDescriptor
from relay.domain.file_storage.sanitizer import IntegritySanitizer
from relay.domain.file_storage.services import FileRegistry
from relay.domain.file_storage.storage_repository import IFileStorageRepository

logger = logging.getLogger(__name__)

TOKEN_REQUIRED = "required"
TOKEN_OPTIONAL = "optional"

DOWNLOAD_CHUNK_SIZE = 64 * 1024


@dataclass
class DownloadHandle:
    """
    An opened download.

    Iterating chunks() streams the content and counts the download once the
    final chunk has been handed over. Abandoning the iterator (client gone)
    closes the stream without counting.
    """
    record: FileRecord
    stream: BinaryIO
    on_complete: Callable[[], None]
    chunk_size: int = DOWNLOAD_CHUNK_SIZE
    _closed: bool = field(default=False, repr=False)

    def chunks(self) -> Iterator[bytes]:
        completed = False
        try:
            while True:
                chunk = self.stream.read(self.chunk_size)
                if not chunk:
                    break
                yield chunk
            completed = True
        finally:
            self.close()

        if completed:
            self.on_complete()

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self.stream.close()


class RelayService:
    """
    Application service for the upload and download use cases.

    Failures that reveal nothing about existence are all reported as
    NotFoundOrExpired: unknown id, expired record, missing content and a
    wrong or missing token look the same to the client.
    """

    def __init__(
        self,
        registry: FileRegistry,
        sanitizer: IntegritySanitizer,
        storage_repository: IFileStorageRepository,
        token_policy: str = TOKEN_OPTIONAL,
    ):
        """
        Initialize RelayService.

        Args:
            registry: FileRegistry owning the records
            sanitizer: IntegritySanitizer admitting uploads
            storage_repository: Content store
            token_policy: "required" or "optional"
        """
        if token_policy not in (TOKEN_REQUIRED, TOKEN_OPTIONAL):
            raise ValueError(f"Unknown token policy: {token_policy}")

        self.registry = registry
        self.sanitizer = sanitizer
        self.storage_repo = storage_repository
        self.token_policy = token_policy

    def upload(self, descriptor: UploadDescriptor) -> FileRecord:
        """
        Admit an upload and create its record.

        Args:
            descriptor: Upload as received at the boundary

        Returns:
            The created FileRecord (access token included)

        Raises:
            ValidationError: If the sanitizer rejects the upload
            PersistenceError: If content or metadata cannot be stored
        """
        sanitized = self.sanitizer.sanitize_upload(descriptor)

        try:
            self._store_content(sanitized)
            try:
                record = self.registry.create(sanitized)
            except Exception:
                self._rollback_content(sanitized)
                raise
        finally:
            self.sanitizer.discard(sanitized)

        return record

    def get_file_info(self, file_id: str) -> Dict[str, Any]:
        """
        Public metadata of a live file.

        Raises:
            NotFoundOrExpired: If the file is not live
        """
        record = self.registry.lookup(file_id)
        if record is None:
            raise NotFoundOrExpired("File not found or expired")
        return record.to_public_dict()

    def open_download(self, file_id: str, presented_token: Optional[str] = None) -> DownloadHandle:
        """
        Open a live file for streaming.

        Args:
            file_id: File identifier
            presented_token: Access token supplied by the client, if any

        Returns:
            DownloadHandle for the content

        Raises:
            NotFoundOrExpired: If the file is not live or the token check fails
        """
        record = self.registry.lookup(file_id)

        if presented_token is not None or self.token_policy == TOKEN_REQUIRED:
            if not self.registry.verify_token(file_id, presented_token or ""):
                record = None

        if record is None:
            raise NotFoundOrExpired("File not found or expired")

        stream = self.storage_repo.get(record.storage_key)
        if stream is None:
            # Deleted between lookup and open; let the registry notice
            self.registry.lookup(record.id)
            raise NotFoundOrExpired("File not found or expired")

        return DownloadHandle(
            record=record,
            stream=stream,
            on_complete=lambda: self.registry.record_download(record.id),
        )

    def _store_content(self, sanitized: SanitizedDescriptor) -> None:
        try:
            with open(sanitized.staged_path, "rb") as staged:
                saved = self.storage_repo.save(sanitized.storage_key, staged)
        except (OSError, ValueError) as e:
            raise PersistenceError("Could not write content", e) from e

        if not saved:
            raise PersistenceError("Content store rejected the upload")

    def _rollback_content(self, sanitized: SanitizedDescriptor) -> None:
        try:
            self.storage_repo.delete(sanitized.storage_key)
        except Exception as e:
            logger.error(f"Could not roll back content after failed create: {e.__class__.__name__}")
