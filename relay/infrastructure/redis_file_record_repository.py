"""
Redis File Record Repository Implementation

Concrete Redis-based implementation of FileRecordRepository.
Stores file records with a Redis TTL as a backstop behind the reaper.
"""

import logging
from typing import List, Optional

from redis.exceptions import RedisError

from relay.domain.errors import PersistenceError
from relay.domain.file_storage.entities import FileRecord
from relay.domain.file_storage.repositories import FileRecordRepository

logger = logging.getLogger(__name__)

# Records outlive their expiry in Redis so the reaper, not Redis, removes
# them together with their content
DEFAULT_GRACE_SECONDS = 300


class RedisFileRecordRepository(FileRecordRepository):
    """
    Redis-based implementation of FileRecordRepository.

    One JSON document per record under "file_record:<id>".
    """

    def __init__(self, redis_repository, grace_seconds: int = DEFAULT_GRACE_SECONDS):
        """
        Initialize with Redis repository.

        Args:
            redis_repository: RedisRepository instance from infrastructure layer
            grace_seconds: Extra Redis TTL beyond the record's own expiry
        """
        self.redis_repo = redis_repository
        self.grace_seconds = grace_seconds
        self.record_prefix = "file_record"

    def _key(self, file_id: str) -> str:
        return f"{self.record_prefix}:{file_id}"

    def save(self, record: FileRecord) -> bool:
        """Save a record with TTL = remaining lifetime + grace."""
        redis_ttl = record.get_remaining_seconds() + self.grace_seconds
        return self.redis_repo.set_json(self._key(record.id), record.to_dict(), ttl=redis_ttl)

    def get(self, file_id: str) -> Optional[FileRecord]:
        data = self.redis_repo.get_json(self._key(file_id))
        if data is None:
            return None

        try:
            return FileRecord.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Error deserializing file record {file_id}: {e}")
            return None

    def delete(self, file_id: str) -> bool:
        try:
            return self.redis_repo.delete(self._key(file_id))
        except RedisError as e:
            raise PersistenceError(f"Could not delete file record {file_id}", e) from e

    def exists(self, file_id: str) -> bool:
        return self.redis_repo.exists(self._key(file_id))

    def list_ids(self) -> List[str]:
        prefix = f"{self.record_prefix}:"
        keys = self.redis_repo.scan_keys(f"{prefix}*")
        return [key[len(prefix):] for key in keys if key.startswith(prefix)]
