"""
Celery Application Instance

Creates the Celery app instance for use by workers and beat scheduler.
Uses the app factory to ensure all services are properly initialized.
Requires RELAY_REAPER_MODE=celery (and therefore the Redis metadata backend).
"""

from app_factory import create_app

# Create Flask app with all services initialized (including dependency container)
flask_app = create_app()

# Get Celery instance from Flask app
celery_app = flask_app.celery
if celery_app is None:
    raise RuntimeError("Celery is disabled; set RELAY_REAPER_MODE=celery to run workers")

# Task modules are registered by name so that importing them does not
# happen before `celery_app` exists (tasks -> celery_app -> tasks).
celery_app.conf.imports = (
    "relay.tasks.cleanup_task",
)
