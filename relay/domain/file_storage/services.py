"""
File Storage Services

The file registry: authoritative owner of file records, expiry,
access tokens, download accounting and metadata/content consistency.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Set

from ..errors import MalformedIdentifierError, PersistenceError, ValidationError
from ..events import (
    ConsistencyWarningEvent,
    DomainEvent,
    FileCreatedEvent,
    FileDownloadedEvent,
    FileEvictedEvent,
)
from .entities import FileRecord, SanitizedDescriptor, utc_now
from .id_locks import KeyedLock
from .repositories import FileRecordRepository
from .storage_repository import IFileStorageRepository
from .value_objects import AccessToken, FileId

logger = logging.getLogger(__name__)

# Compared against when no record exists so a miss costs the same as a hit
_DUMMY_TOKEN = AccessToken.generate()

MAX_ID_ATTEMPTS = 5

EVICTION_EXPIRED = "expired"
EVICTION_INCONSISTENT = "inconsistent"
EVICTION_EXPLICIT = "explicit"


class FileRegistry:
    """
    Domain service owning the lifecycle of relayed files.

    A record is live while now < expires_at and its content exists in the
    content store. Every read path treats anything else as absent.

    Mutations on one id are serialized through a per-id lock; operations
    on different ids never wait for each other.
    """

    def __init__(
        self,
        record_repository: FileRecordRepository,
        storage_repository: IFileStorageRepository,
        ttl: timedelta,
        event_publisher=None,
        clock: Optional[Callable[[], datetime]] = None,
        executor=None,
        download_accounting: bool = True,
    ):
        """
        Initialize FileRegistry.

        Args:
            record_repository: Durable store for file records
            storage_repository: Content store holding the bytes
            ttl: Lifetime of a record from its creation
            event_publisher: Optional publisher for domain events
            clock: Callable returning the current aware UTC datetime
            executor: Object with submit(fn, *args) that runs lazy evictions
                (default: a single background worker thread)
            download_accounting: Whether record_download counts anything
        """
        self.record_repo = record_repository
        self.storage_repo = storage_repository
        self.ttl = ttl
        self.event_publisher = event_publisher
        self.download_accounting = download_accounting
        self._clock = clock or utc_now
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="relay-evict"
        )
        self._locks = KeyedLock()

    # ------------------------------------------------------------------
    # Creation and reads
    # ------------------------------------------------------------------

    def create(self, metadata: SanitizedDescriptor) -> FileRecord:
        """
        Create and persist a record for content already in the content store.

        Args:
            metadata: Sanitized upload metadata

        Returns:
            The persisted FileRecord

        Raises:
            PersistenceError: If the record cannot be written durably. The
                caller owns rolling back the content.
        """
        for _ in range(MAX_ID_ATTEMPTS):
            file_id = FileId.generate()

            with self._locks.hold(file_id.value):
                if self.record_repo.exists(file_id.value):
                    logger.warning(f"Generated file id {file_id} already in use, retrying")
                    continue

                record = FileRecord.create(
                    metadata, self.ttl, now=self._clock(), file_id=file_id
                )
                self._persist(record)

            self._publish(FileCreatedEvent(
                aggregate_id=record.id,
                occurred_at=record.created_at,
                mime_type=record.mime_type,
                size_bytes=record.size_bytes,
                expires_at=record.expires_at,
            ))
            return record

        raise PersistenceError("Could not allocate a unique file id")

    def lookup(self, file_id: str) -> Optional[FileRecord]:
        """
        Return the live record for an id, or None.

        Malformed ids return None without touching any store. Expired
        records return None and are evicted in the background. Records
        whose content has disappeared are deleted on the spot.

        Args:
            file_id: Client-supplied identifier

        Returns:
            FileRecord if live, None otherwise
        """
        key = self._parse_id(file_id)
        if key is None:
            return None

        with self._locks.hold(key):
            record = self.record_repo.get(key)
            if record is None:
                return None

            if record.is_expired(self._clock()):
                self._schedule_eviction(key)
                return None

            if not self.storage_repo.exists(record.storage_key):
                self._heal_locked(record, "content missing on lookup")
                return None

            return record

    def verify_token(self, file_id: str, presented_token: str) -> bool:
        """
        Check a presented access token in constant time.

        A comparison is always performed, even when the record is missing,
        so response timing does not reveal whether the id exists.

        Args:
            file_id: File identifier
            presented_token: Token supplied by the client

        Returns:
            True only if the record exists, is not expired and the token matches
        """
        key = self._parse_id(file_id)
        record = self.record_repo.get(key) if key is not None else None

        expected = _DUMMY_TOKEN
        if record is not None:
            try:
                expected = AccessToken(record.access_token)
            except ValidationError:
                logger.error(f"Stored access token for {record.id} is malformed")
                record = None

        matched = expected.matches(presented_token)
        if record is None or record.is_expired(self._clock()):
            return False
        return matched

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def record_download(self, file_id: str) -> None:
        """
        Count one completed delivery.

        The counter is written synchronously but failures are only logged:
        accounting never fails a download. A record evicted in the meantime
        is left absent.

        Args:
            file_id: File identifier
        """
        if not self.download_accounting:
            return

        key = self._parse_id(file_id)
        if key is None:
            return

        try:
            with self._locks.hold(key):
                record = self.record_repo.get(key)
                if record is None:
                    logger.debug(f"Download of {key} finished after eviction; not counted")
                    return

                updated = record.with_download()
                if not self.record_repo.save(updated):
                    logger.warning(f"Metadata store rejected download count for {key}")
                    return
        except Exception as e:
            logger.warning(f"Could not persist download count for {key}: {e}")
            return

        self._publish(FileDownloadedEvent(
            aggregate_id=key,
            occurred_at=self._clock(),
            download_count=updated.download_count,
        ))

    def evict(self, file_id: str, reason: str = EVICTION_EXPLICIT) -> None:
        """
        Delete a record and its content. Idempotent.

        Metadata is removed first; a content store failure is logged and
        leaves orphaned bytes behind rather than an undeletable record.

        Args:
            file_id: File identifier
            reason: Why the record is being removed

        Raises:
            PersistenceError: If the metadata deletion cannot be written
        """
        key = self._parse_id(file_id)
        if key is None:
            return

        with self._locks.hold(key):
            record = self.record_repo.get(key)
            if record is None:
                return
            self._evict_locked(record, reason)

    def sweep_expired(self) -> int:
        """
        Evict every expired record.

        Iterates a snapshot of ids and re-checks each record under its own
        lock, so concurrent requests on other ids proceed untouched.

        Returns:
            Number of records evicted
        """
        evicted = 0

        for key in self.record_repo.list_ids():
            try:
                with self._locks.hold(key):
                    record = self.record_repo.get(key)
                    if record is None or not record.is_expired(self._clock()):
                        continue
                    self._evict_locked(record, EVICTION_EXPIRED)
                evicted += 1
            except Exception as e:
                logger.error(f"Error evicting expired file {key}: {e}", exc_info=True)

        return evicted

    def reconcile(self, orphan_grace: timedelta) -> Dict[str, int]:
        """
        Bring metadata and the content store back in line.

        Deletes live records whose content is missing, then deletes content
        that no record refers to and that is older than orphan_grace. The
        grace period protects uploads whose record is not written yet.
        Orphan removal is skipped when any record could not be read.

        Args:
            orphan_grace: Minimum age of unreferenced content before removal

        Returns:
            Dict with "stale_records" and "orphaned_content" counts
        """
        stale = 0
        referenced: Set[str] = set()
        complete = True

        for key in self.record_repo.list_ids():
            try:
                with self._locks.hold(key):
                    record = self.record_repo.get(key)
                    if record is None:
                        continue

                    if record.is_expired(self._clock()) or self.storage_repo.exists(record.storage_key):
                        referenced.add(record.storage_key)
                        continue

                    self._heal_locked(record, "content missing during reconciliation")
                    stale += 1
            except Exception as e:
                complete = False
                logger.error(f"Error reconciling file {key}: {e}", exc_info=True)

        orphaned = 0
        if not complete:
            logger.warning("Skipping orphan removal: not every file record could be read")
            return {"stale_records": stale, "orphaned_content": orphaned}

        cutoff = self._clock() - orphan_grace

        for storage_key in self.storage_repo.list_keys():
            if storage_key in referenced:
                continue

            modified_at = self.storage_repo.get_modified_at(storage_key)
            if modified_at is None or modified_at > cutoff:
                continue

            try:
                if self.storage_repo.delete(storage_key):
                    orphaned += 1
            except Exception as e:
                logger.error(f"Error deleting orphaned content: {e.__class__.__name__}")

        return {"stale_records": stale, "orphaned_content": orphaned}

    def close(self) -> None:
        """Wait for pending background evictions and stop the worker."""
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    # ------------------------------------------------------------------
    # Internals (callers hold the id lock where the name says so)
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_id(file_id: str) -> Optional[str]:
        try:
            return FileId.parse(file_id).value
        except MalformedIdentifierError:
            return None

    def _persist(self, record: FileRecord) -> None:
        try:
            saved = self.record_repo.save(record)
        except PersistenceError:
            raise
        except OSError as e:
            raise PersistenceError("Could not persist file record", e) from e

        if not saved:
            raise PersistenceError("Metadata store rejected file record")

    def _delete_metadata(self, key: str) -> None:
        try:
            self.record_repo.delete(key)
        except PersistenceError:
            raise
        except OSError as e:
            raise PersistenceError("Could not delete file record", e) from e

    def _delete_content(self, record: FileRecord) -> bool:
        try:
            return bool(self.storage_repo.delete(record.storage_key))
        except Exception as e:
            logger.error(f"Error deleting content of file {record.id}: {e.__class__.__name__}")
            return False

    def _evict_locked(self, record: FileRecord, reason: str) -> None:
        self._delete_metadata(record.id)
        content_deleted = self._delete_content(record)

        self._publish(FileEvictedEvent(
            aggregate_id=record.id,
            occurred_at=self._clock(),
            reason=reason,
            content_deleted=content_deleted,
        ))

    def _heal_locked(self, record: FileRecord, detail: str) -> None:
        logger.warning(f"Consistency warning for file {record.id}: {detail}; removing metadata")

        try:
            self._delete_metadata(record.id)
        except PersistenceError as e:
            logger.error(f"Could not remove inconsistent record {record.id}: {e}")
            return

        now = self._clock()
        self._publish(ConsistencyWarningEvent(
            aggregate_id=record.id, occurred_at=now, detail=detail
        ))
        self._publish(FileEvictedEvent(
            aggregate_id=record.id, occurred_at=now, reason=EVICTION_INCONSISTENT
        ))

    def _schedule_eviction(self, key: str) -> None:
        try:
            self._executor.submit(self._evict_if_expired, key)
        except RuntimeError:
            # Executor already shut down; the reaper will pick the record up
            logger.debug(f"Lazy eviction of {key} skipped, executor closed")

    def _evict_if_expired(self, key: str) -> bool:
        try:
            with self._locks.hold(key):
                record = self.record_repo.get(key)
                if record is None or not record.is_expired(self._clock()):
                    return False
                self._evict_locked(record, EVICTION_EXPIRED)
                return True
        except Exception as e:
            logger.error(f"Lazy eviction of {key} failed: {e}", exc_info=True)
            return False

    def _publish(self, event: DomainEvent) -> None:
        if self.event_publisher is not None:
            self.event_publisher.publish(event)
