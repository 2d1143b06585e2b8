"""
Cleanup Task

Celery beat task for periodic cleanup of expired files.
Thin wrapper that delegates to the file registry.
"""

import logging

from celery.signals import beat_init

from celery_app import celery_app
from relay.config.celery_config import SWEEP_TASK_NAME
from relay.tasks.reaper import empty_stats, sweep

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name=SWEEP_TASK_NAME)
def sweep_expired_files(self):
    """
    Periodic task that evicts expired files and reconciles storage.

    Services are resolved from the Flask app's DependencyContainer, never
    instantiated here. Runs every sweep interval (Celery beat schedule) and:
    1. Evicts expired records together with their content
    2. Removes records whose content disappeared
    3. Removes content no record refers to, past the orphan grace period
    4. Removes staging files of interrupted uploads

    Returns:
        dict: Cleanup statistics with counts and errors
    """
    logger.info("Starting sweep task")

    try:
        from celery_app import flask_app
        from relay.config.settings import RelayConfig
        from relay.domain.file_storage import FileRegistry, IntegritySanitizer

        container = flask_app.container
        registry = container.resolve(FileRegistry)
        sanitizer = container.resolve(IntegritySanitizer)
        config = container.resolve(RelayConfig)

        stats = sweep(registry, config.orphan_grace, sanitizer=sanitizer)

        logger.info(
            f"Sweep completed - Expired: {stats['expired_files_removed']}, "
            f"Stale: {stats['stale_records_removed']}, "
            f"Orphaned: {stats['orphaned_content_removed']}, "
            f"Uploads: {stats['stale_uploads_removed']}, "
            f"Errors: {len(stats['errors'])}"
        )

        if stats["errors"]:
            logger.warning(f"Sweep errors: {stats['errors']}")

        return stats

    except Exception as e:
        error_msg = f"Sweep task failed: {e}"
        logger.error(error_msg, exc_info=True)
        stats = empty_stats()
        stats["errors"].append(error_msg)
        return stats


@beat_init.connect
def sweep_on_beat_start(sender=None, **kwargs):
    """Queue one sweep as beat starts; the schedule's first run is an interval away."""
    logger.info("Beat started, queueing initial sweep")
    sweep_expired_files.delay()
