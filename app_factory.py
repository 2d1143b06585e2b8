"""
Application Factory

Builds the relay's Flask app: CORS, the file registry and its stores,
the reaper, the v1 API and the health endpoint.
"""

import logging
import os
from typing import Optional

from flask import Flask, jsonify
from flask_cors import CORS

from relay.application.dependency_container import DependencyContainer
from relay.application.event_publisher import EventPublisher
from relay.application.relay_service import RelayService
from relay.config.redis_config import RedisConfig, connect_redis
from relay.config.settings import RelayConfig
from relay.domain.file_storage import FileRegistry, IntegritySanitizer
from relay.domain.file_storage.repositories import FileRecordRepository
from relay.domain.file_storage.storage_repository import IFileStorageRepository
from relay.infrastructure.redis_repository import RedisConnectionManager
from relay.infrastructure.storage_factory import StorageFactory
from relay.tasks.reaper import Reaper

logger = logging.getLogger(__name__)

# Multipart framing on top of the file itself
MULTIPART_OVERHEAD_BYTES = 64 * 1024


class AppConfig:
    """HTTP-facing settings: API version and CORS origins."""

    def __init__(self):
        self.api_version = os.getenv("API_VERSION", "v1")
        self.cors_origins = os.getenv("CORS_ORIGINS", "*")


def create_app(config: Optional[AppConfig] = None,
               relay_config: Optional[RelayConfig] = None) -> Flask:
    """
    Create and configure Flask application.

    The reaper thread is created but not started; the server entry point
    starts it so that importing the app (tests, Celery workers) stays
    side-effect free.

    Args:
        config: Application configuration, uses default if None
        relay_config: Relay configuration, read from the environment if None

    Returns:
        Configured Flask application
    """
    if config is None:
        config = AppConfig()
    if relay_config is None:
        relay_config = RelayConfig.from_env()

    # Create Flask app
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = relay_config.max_file_size_bytes + MULTIPART_OVERHEAD_BYTES
    app.config["API_VERSION"] = config.api_version
    app.relay_config = relay_config

    # Configure CORS
    CORS(
        app,
        resources={
            r"/*": {
                "origins": config.cors_origins,
                "methods": ["GET", "POST", "OPTIONS"],
                "allow_headers": ["Content-Type", "Authorization"],
                "expose_headers": [
                    "Content-Type",
                    "Content-Disposition",
                    "X-Relay-Access-Token",
                    "X-Content-SHA256",
                ],
                "max_age": 3600,
            }
        },
    )

    # Initialize infrastructure
    _initialize_infrastructure(app, relay_config)

    # Initialize services
    _initialize_services(app, relay_config)

    # Register blueprints
    _register_blueprints(app, config)

    # Register health check endpoint
    _register_health_endpoint(app)

    return app


def _initialize_infrastructure(app: Flask, relay_config: RelayConfig) -> None:
    """
    Initialize Redis and Celery when the configuration needs them.

    Args:
        app: Flask application
        relay_config: Relay configuration
    """
    app.redis_manager = None
    app.redis_repository = None
    app.celery = None

    if relay_config.metadata_backend == "redis":
        redis_config = RedisConfig.from_env()
        app.redis_manager = connect_redis(redis_config)
        app.redis_repository = app.redis_manager.repository(redis_config.key_prefix)
        logger.info("Redis initialized successfully")

    if relay_config.reaper_mode == "celery":
        from relay.config.celery_config import make_celery

        app.celery = make_celery(app, relay_config.sweep_interval_seconds)
        logger.info("Celery initialized successfully")


def _initialize_services(app: Flask, relay_config: RelayConfig) -> None:
    """
    Initialize application services and attach the container to the app.

    Registration order is infrastructure, domain, application, so that
    `container.close()` shuts them down top to bottom.

    Args:
        app: Flask application
        relay_config: Relay configuration
    """
    container = DependencyContainer()
    container.register_singleton(RelayConfig, relay_config)
    if app.redis_manager is not None:
        container.register_singleton(RedisConnectionManager, app.redis_manager)

    # Event publishing
    event_publisher = EventPublisher()
    container.subscribe_event_handlers(event_publisher)
    container.register_singleton(EventPublisher, event_publisher)

    # Infrastructure
    storage_repository = StorageFactory.create_storage(relay_config)
    record_repository = StorageFactory.create_record_repository(
        relay_config, app.redis_repository
    )
    container.register_singleton(IFileStorageRepository, storage_repository)
    container.register_singleton(FileRecordRepository, record_repository)

    # Domain services
    registry = FileRegistry(
        record_repository,
        storage_repository,
        relay_config.ttl,
        event_publisher=event_publisher,
        download_accounting=relay_config.download_accounting,
    )
    sanitizer = IntegritySanitizer(
        max_file_size_bytes=relay_config.max_file_size_bytes,
        staging_dir=relay_config.staging_dir,
        allowed_mime_types=relay_config.allowed_mime_types,
    )
    container.register_singleton(FileRegistry, registry)
    container.register_singleton(IntegritySanitizer, sanitizer)

    # Application services
    relay_service = RelayService(
        registry, sanitizer, storage_repository, token_policy=relay_config.token_policy
    )
    container.register_singleton(RelayService, relay_service)

    app.container = container
    app.reaper = None
    if relay_config.reaper_mode == "thread":
        app.reaper = Reaper(
            registry,
            interval_seconds=relay_config.sweep_interval_seconds,
            orphan_grace_seconds=relay_config.orphan_grace_seconds,
            sanitizer=sanitizer,
        )

    logger.info(
        f"Relay services initialized (metadata: {relay_config.metadata_backend}, "
        f"ttl: {relay_config.ttl_seconds}s, token policy: {relay_config.token_policy})"
    )


def _register_blueprints(app: Flask, config: AppConfig) -> None:
    """
    Register API blueprints.

    Args:
        app: Flask application
        config: Application configuration
    """
    from relay.api.v1 import api_v1_bp

    app.register_blueprint(api_v1_bp)

    logger.info(
        f"API {config.api_version} registered at /api/{config.api_version} "
        f"with Swagger UI at /api/{config.api_version}/docs"
    )


def _get_health_status(app: Flask) -> tuple[dict, int]:
    """
    Get health status of all system components.

    Args:
        app: Flask application instance

    Returns:
        Tuple of (health_status_dict, http_status_code)
    """
    relay_config: RelayConfig = app.relay_config
    health_status = {
        "status": "ok",
        "message": "relay ready",
        "storage": "unknown",
        "metadata": relay_config.metadata_backend,
        "reaper": relay_config.reaper_mode,
    }

    storage_dir = relay_config.content_dir
    if os.path.isdir(storage_dir) and os.access(storage_dir, os.W_OK):
        health_status["storage"] = "writable"
    else:
        health_status["storage"] = "unavailable"
        health_status["status"] = "degraded"

    if relay_config.metadata_backend == "redis":
        try:
            if app.redis_manager.health_check():
                health_status["redis"] = "connected"
            else:
                health_status["redis"] = "disconnected"
                health_status["status"] = "degraded"
        except Exception as e:
            logger.warning(f"Redis health check failed: {e}")
            health_status["redis"] = "error"
            health_status["status"] = "degraded"

    if relay_config.reaper_mode == "thread":
        reaper = getattr(app, "reaper", None)
        health_status["reaper"] = "running" if reaper and reaper.is_running else "stopped"

    status_code = 200 if health_status["status"] == "ok" else 503
    return health_status, status_code


def _register_health_endpoint(app: Flask) -> None:
    """
    Register health check endpoint.

    Args:
        app: Flask application
    """

    @app.route("/health", methods=["GET"])
    def health():
        """Report storage, metadata store and reaper status."""
        health_status, status_code = _get_health_status(app)
        return jsonify(health_status), status_code
