"""
Redis Repository

JSON documents under a shared key prefix, plus the pooled connection the
relay's Redis-backed metadata store runs on.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError

from relay.domain.errors import PersistenceError

logger = logging.getLogger(__name__)


class RedisRepository:
    """
    JSON document helpers over a Redis client.

    Writes report failure through their return value. Reads raise
    PersistenceError when Redis cannot answer, so that an outage is never
    mistaken for an empty store.
    """

    def __init__(self, redis_client: redis.Redis, key_prefix: str = ""):
        self.redis = redis_client
        self.key_prefix = key_prefix

    def _make_key(self, key: str) -> str:
        return f"{self.key_prefix}:{key}" if self.key_prefix else key

    def _strip_prefix(self, redis_key) -> str:
        if isinstance(redis_key, bytes):
            redis_key = redis_key.decode("utf-8")
        if self.key_prefix:
            return redis_key[len(self.key_prefix) + 1:]
        return redis_key

    def set_json(self, key: str, data: Dict[str, Any], ttl: Optional[int] = None) -> bool:
        """
        Store `data` as a JSON document, expiring after `ttl` seconds if given.

        Returns:
            True if Redis accepted the write
        """
        try:
            payload = json.dumps(data)
            if ttl:
                return bool(self.redis.setex(self._make_key(key), ttl, payload))
            return bool(self.redis.set(self._make_key(key), payload))
        except (RedisError, TypeError) as e:
            logger.error(f"Error writing {key}: {e.__class__.__name__}")
            return False

    def get_json(self, key: str) -> Optional[Dict[str, Any]]:
        """
        Read a JSON document.

        Returns:
            The decoded document, or None if the key is absent or not JSON

        Raises:
            PersistenceError: If Redis cannot be reached
        """
        try:
            data = self.redis.get(self._make_key(key))
        except RedisError as e:
            raise PersistenceError(f"Could not read {key}", e) from e

        if data is None:
            return None
        if isinstance(data, bytes):
            data = data.decode("utf-8", errors="replace")
        try:
            return json.loads(data)
        except json.JSONDecodeError:
            logger.error(f"Document under {key} is not valid JSON")
            return None

    def delete(self, key: str) -> bool:
        """
        Delete a key.

        Raises:
            RedisError: If Redis cannot be reached
        """
        return self.redis.delete(self._make_key(key)) > 0

    def exists(self, key: str) -> bool:
        try:
            return self.redis.exists(self._make_key(key)) > 0
        except RedisError as e:
            raise PersistenceError(f"Could not check {key}", e) from e

    def scan_keys(self, pattern: str) -> List[str]:
        """
        List keys matching a glob-style pattern, without the key prefix.

        Raises:
            PersistenceError: If the scan cannot complete
        """
        try:
            return [self._strip_prefix(k) for k in self.redis.scan_iter(match=self._make_key(pattern))]
        except RedisError as e:
            raise PersistenceError(f"Could not scan {pattern}", e) from e


class RedisConnectionManager:
    """Owns the connection pool shared by every RedisRepository of the app."""

    def __init__(self, host: str = 'localhost', port: int = 6379, db: int = 0,
                 max_connections: int = 20, password: Optional[str] = None):
        self.connection_pool = redis.ConnectionPool(
            host=host,
            port=port,
            db=db,
            password=password,
            max_connections=max_connections,
            retry_on_timeout=True,
            socket_keepalive=True,
        )
        self._client = None

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.Redis(connection_pool=self.connection_pool)
        return self._client

    def repository(self, key_prefix: str = "") -> RedisRepository:
        return RedisRepository(self.client, key_prefix)

    def health_check(self) -> bool:
        try:
            return bool(self.client.ping())
        except RedisConnectionError:
            return False

    def close(self) -> None:
        """Disconnect every pooled connection."""
        self.connection_pool.disconnect()
