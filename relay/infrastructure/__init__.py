"""Infrastructure adapters: the filesystem content store and the JSON and Redis metadata stores."""

from .json_file_record_repository import JsonFileRecordRepository
from .local_file_storage_repository import LocalFileStorageRepository
from .redis_file_record_repository import RedisFileRecordRepository
from .redis_repository import RedisConnectionManager, RedisRepository
from .storage_factory import StorageFactory

__all__ = [
    "RedisRepository",
    "RedisConnectionManager",
    "LocalFileStorageRepository",
    "JsonFileRecordRepository",
    "RedisFileRecordRepository",
    "StorageFactory",
]
