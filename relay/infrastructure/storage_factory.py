"""
Storage Factory

Factory for the two persistence adapters the registry needs: the content
store and the metadata store. The application layer stays decoupled from
the concrete implementations through the domain interfaces.
"""

import logging
from typing import Optional

from relay.domain.file_storage.repositories import FileRecordRepository
from relay.domain.file_storage.storage_repository import IFileStorageRepository
from relay.infrastructure.json_file_record_repository import JsonFileRecordRepository
from relay.infrastructure.local_file_storage_repository import LocalFileStorageRepository
from relay.infrastructure.redis_file_record_repository import RedisFileRecordRepository

logger = logging.getLogger(__name__)


class StorageFactory:
    """Factory that builds storage adapters from a RelayConfig."""

    @staticmethod
    def create_storage(config) -> IFileStorageRepository:
        """
        Create local filesystem content store.

        Args:
            config: RelayConfig providing content_dir

        Returns:
            LocalFileStorageRepository instance

        Raises:
            RuntimeError: If local storage initialization fails
        """
        try:
            storage = LocalFileStorageRepository(config.content_dir)
            logger.info(f"Storage factory: Using local filesystem storage at {config.content_dir}")
            return storage
        except Exception as e:
            raise RuntimeError(f"Failed to initialize local storage: {e}") from e

    @staticmethod
    def create_record_repository(config, redis_repository=None) -> FileRecordRepository:
        """
        Create the metadata store selected by config.metadata_backend.

        Args:
            config: RelayConfig
            redis_repository: RedisRepository, required for the redis backend

        Returns:
            FileRecordRepository implementation

        Raises:
            RuntimeError: If the redis backend is selected without a repository
        """
        if config.metadata_backend == "redis":
            if redis_repository is None:
                raise RuntimeError("Redis metadata backend selected but Redis is not initialized")
            logger.info("Storage factory: Using Redis metadata store")
            return RedisFileRecordRepository(redis_repository)

        logger.info(f"Storage factory: Using JSON metadata store at {config.metadata_path}")
        return JsonFileRecordRepository(config.metadata_path)
