"""
Background Tasks

The in-process reaper lives here. The Celery beat task is in
relay.tasks.cleanup_task and is imported by the worker through celery_app.
"""

from .reaper import Reaper, sweep

__all__ = ['Reaper', 'sweep']
