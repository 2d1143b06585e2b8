"""
Reaper

Periodic removal of expired files, stale records, orphaned content and
abandoned uploads. Runs in a daemon thread of the web process, or through
the Celery beat task in cleanup_task.
"""

import logging
import threading
from datetime import timedelta
from typing import Any, Dict, Optional

from relay.domain.file_storage.sanitizer import IntegritySanitizer
from relay.domain.file_storage.services import FileRegistry

logger = logging.getLogger(__name__)


def empty_stats() -> Dict[str, Any]:
    return {
        "expired_files_removed": 0,
        "stale_records_removed": 0,
        "orphaned_content_removed": 0,
        "stale_uploads_removed": 0,
        "errors": [],
    }


def sweep(
    registry: FileRegistry,
    orphan_grace: timedelta,
    sanitizer: Optional[IntegritySanitizer] = None,
    reconcile: bool = True,
) -> Dict[str, Any]:
    """
    Run one maintenance pass.

    Each step runs even if an earlier one failed; failures are logged and
    collected in the "errors" list.

    Args:
        registry: FileRegistry to sweep
        orphan_grace: Age after which unreferenced content and staging
            files are reclaimed
        sanitizer: Sanitizer whose staging directory is purged, if given
        reconcile: Whether to reconcile metadata against the content store

    Returns:
        dict: Cleanup statistics with counts and errors
    """
    stats = empty_stats()

    try:
        stats["expired_files_removed"] = registry.sweep_expired()
    except Exception as e:
        error_msg = f"Error sweeping expired files: {e}"
        stats["errors"].append(error_msg)
        logger.error(error_msg, exc_info=True)

    if reconcile:
        try:
            result = registry.reconcile(orphan_grace)
            stats["stale_records_removed"] = result["stale_records"]
            stats["orphaned_content_removed"] = result["orphaned_content"]
        except Exception as e:
            error_msg = f"Error reconciling metadata and content: {e}"
            stats["errors"].append(error_msg)
            logger.error(error_msg, exc_info=True)

    if sanitizer is not None:
        try:
            stats["stale_uploads_removed"] = sanitizer.purge_stale(orphan_grace)
        except Exception as e:
            error_msg = f"Error purging staging directory: {e}"
            stats["errors"].append(error_msg)
            logger.error(error_msg, exc_info=True)

    return stats


class Reaper:
    """
    Background thread that sweeps the registry at a fixed interval.

    The first pass runs immediately on start. A failing pass is logged and
    the thread keeps going.
    """

    def __init__(
        self,
        registry: FileRegistry,
        interval_seconds: float = 15.0,
        reconcile: bool = True,
        orphan_grace_seconds: float = 3600.0,
        sanitizer: Optional[IntegritySanitizer] = None,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self.registry = registry
        self.interval_seconds = interval_seconds
        self.reconcile = reconcile
        self.orphan_grace = timedelta(seconds=orphan_grace_seconds)
        self.sanitizer = sanitizer
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the reaper thread. Calling start on a running reaper does nothing."""
        with self._lock:
            if self.is_running:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run, name="relay-reaper", daemon=True
            )
            self._thread.start()
            logger.info(f"Reaper started (interval: {self.interval_seconds}s)")

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal the thread to stop and wait for the current pass to finish."""
        with self._lock:
            thread = self._thread
            self._stop_event.set()
        if thread is not None:
            thread.join(timeout)
            logger.info("Reaper stopped")

    def run_once(self) -> Dict[str, Any]:
        """Run a single pass; never raises."""
        try:
            stats = sweep(
                self.registry, self.orphan_grace,
                sanitizer=self.sanitizer, reconcile=self.reconcile,
            )
        except Exception as e:
            logger.error(f"Reaper pass failed: {e}", exc_info=True)
            stats = empty_stats()
            stats["errors"].append(str(e))
            return stats

        removed = (
            stats["expired_files_removed"]
            + stats["stale_records_removed"]
            + stats["orphaned_content_removed"]
        )
        if removed:
            logger.info(
                f"Reaper removed {stats['expired_files_removed']} expired, "
                f"{stats['stale_records_removed']} stale, "
                f"{stats['orphaned_content_removed']} orphaned"
            )
        return stats

    def _run(self) -> None:
        while not self._stop_event.is_set():
            self.run_once()
            self._stop_event.wait(self.interval_seconds)
