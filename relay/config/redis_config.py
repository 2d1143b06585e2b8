"""
Redis Configuration

Connection settings for the Redis-backed metadata store, read from
REDIS_* environment variables.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from redis.connection import parse_url

from relay.infrastructure.redis_repository import RedisConnectionManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RedisConfig:
    """
    Redis connection settings.

    REDIS_URL (redis://[:password@]host:port/db) wins over the
    individual host, port, db and password variables.
    """
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    max_connections: int = 20
    key_prefix: str = "relay"

    @classmethod
    def from_env(cls) -> 'RedisConfig':
        settings = {
            "host": os.getenv("REDIS_HOST", "localhost"),
            "port": int(os.getenv("REDIS_PORT", 6379)),
            "db": int(os.getenv("REDIS_DB", 0)),
            "password": os.getenv("REDIS_PASSWORD"),
            "max_connections": int(os.getenv("REDIS_MAX_CONNECTIONS", 20)),
            "key_prefix": os.getenv("REDIS_KEY_PREFIX", "relay"),
        }

        url = os.getenv("REDIS_URL")
        if url:
            parsed = parse_url(url)
            for name in ("host", "port", "db", "password"):
                if parsed.get(name) is not None:
                    settings[name] = parsed[name]

        return cls(**settings)


def connect_redis(config: Optional[RedisConfig] = None) -> RedisConnectionManager:
    """
    Build the pooled connection manager. No connection is opened until
    the first command.
    """
    if config is None:
        config = RedisConfig.from_env()

    manager = RedisConnectionManager(
        host=config.host,
        port=config.port,
        db=config.db,
        password=config.password,
        max_connections=config.max_connections,
    )
    logger.info(f"Redis configured at {config.host}:{config.port}/{config.db}")
    return manager
