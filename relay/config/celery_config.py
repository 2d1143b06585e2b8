"""
Celery Configuration

Builds the Celery app that runs the expired-file sweep on a beat schedule,
with tasks executing inside the Flask app context.
"""

import os

from celery import Celery
from kombu import Queue

SWEEP_TASK_NAME = "relay.tasks.sweep_expired_files"
SWEEP_QUEUE = "relay_sweep"


def celery_settings() -> dict:
    """Celery settings, read from CELERY_* environment variables at call time."""
    broker_url = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    return {
        "broker_url": broker_url,
        "result_backend": os.getenv("CELERY_RESULT_BACKEND", broker_url),
        "task_serializer": "json",
        "result_serializer": "json",
        "accept_content": ["json"],
        "timezone": "UTC",
        "enable_utc": True,
        "worker_prefetch_multiplier": 1,
        "worker_concurrency": int(os.getenv("CELERY_WORKER_CONCURRENCY", 1)),
        "task_routes": {SWEEP_TASK_NAME: {"queue": SWEEP_QUEUE}},
        "task_queues": (Queue(SWEEP_QUEUE, routing_key=SWEEP_QUEUE),),
        "task_default_queue": SWEEP_QUEUE,
        "task_soft_time_limit": int(os.getenv("CELERY_TASK_SOFT_TIME_LIMIT", 60)),
        "task_time_limit": int(os.getenv("CELERY_TASK_TIME_LIMIT", 120)),
        "result_expires": 3600,
    }


def make_celery(app, sweep_interval_seconds: float = 15.0) -> Celery:
    """
    Create the Celery instance bound to a Flask app.

    Args:
        app: Flask application whose context every task runs in
        sweep_interval_seconds: Beat period of the expired-file sweep
    """
    celery = Celery(app.import_name)
    celery.conf.update(celery_settings())
    celery.conf.beat_schedule = {
        "sweep-expired-files": {
            "task": SWEEP_TASK_NAME,
            "schedule": float(sweep_interval_seconds),
            # Queued sweeps older than one interval are dropped
            "options": {"expires": float(sweep_interval_seconds)},
        },
    }

    class ContextTask(celery.Task):

        def __call__(self, *args, **kwargs):
            with app.app_context():
                return self.run(*args, **kwargs)

    celery.Task = ContextTask
    return celery
