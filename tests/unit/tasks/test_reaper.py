"""
Unit tests for the reaper

Verifies that a sweep pass keeps going when individual steps fail and
that the background thread survives failing passes.
"""

import threading
from datetime import timedelta
from unittest.mock import Mock

import pytest

from relay.tasks.reaper import Reaper, empty_stats, sweep
from tests.fixtures import create_sanitized_descriptor


def admit(registry, storage_repository):
    descriptor = create_sanitized_descriptor()
    storage_repository.put(descriptor.storage_key, b"hello world")
    return registry.create(descriptor)


class TestSweep:
    """Test a single maintenance pass."""

    def test_sweep_evicts_expired_records_with_or_without_content(self, registry, storage_repository, clock):
        # Arrange
        admit(registry, storage_repository)
        stale = admit(registry, storage_repository)
        storage_repository.remove_behind_registry(stale.storage_key)
        clock.advance(100)
        admit(registry, storage_repository)
        clock.advance(200)

        # Act
        stats = sweep(registry, timedelta(hours=1))

        # Assert
        assert stats["expired_files_removed"] == 2
        assert stats["stale_records_removed"] == 0
        assert stats["errors"] == []

    def test_sweep_without_reconcile_skips_it(self):
        registry = Mock()
        registry.sweep_expired.return_value = 0

        sweep(registry, timedelta(hours=1), reconcile=False)

        registry.reconcile.assert_not_called()

    def test_failing_step_does_not_stop_later_steps(self):
        registry = Mock()
        registry.sweep_expired.side_effect = RuntimeError("metadata store down")
        registry.reconcile.return_value = {"stale_records": 1, "orphaned_content": 2}
        sanitizer = Mock()
        sanitizer.purge_stale.return_value = 3

        stats = sweep(registry, timedelta(hours=1), sanitizer=sanitizer)

        assert stats["expired_files_removed"] == 0
        assert stats["stale_records_removed"] == 1
        assert stats["orphaned_content_removed"] == 2
        assert stats["stale_uploads_removed"] == 3
        assert len(stats["errors"]) == 1
        assert "metadata store down" in stats["errors"][0]

    def test_empty_stats_are_independent(self):
        first = empty_stats()
        first["errors"].append("x")

        assert empty_stats()["errors"] == []


class TestReaper:
    """Test the background thread."""

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            Reaper(Mock(), interval_seconds=0)

    def test_run_once_never_raises(self):
        reaper = Reaper(Mock(), reconcile=False)
        reaper.registry.sweep_expired.side_effect = RuntimeError("boom")

        stats = reaper.run_once()

        assert len(stats["errors"]) == 1

    def test_start_runs_a_pass_and_stop_joins(self):
        # Arrange
        registry = Mock()
        passes = threading.Event()

        def sweep_expired():
            passes.set()
            return 0

        registry.sweep_expired.side_effect = sweep_expired
        registry.reconcile.return_value = {"stale_records": 0, "orphaned_content": 0}
        reaper = Reaper(registry, interval_seconds=60)

        # Act
        reaper.start()
        reaper.start()
        ran = passes.wait(timeout=2)
        reaper.stop(timeout=2)

        # Assert
        assert ran
        assert not reaper.is_running
        assert registry.sweep_expired.call_count == 1

    def test_thread_survives_failing_passes(self):
        registry = Mock()
        calls = []
        done = threading.Event()

        def sweep_expired():
            calls.append(1)
            if len(calls) >= 3:
                done.set()
            raise RuntimeError("transient failure")

        registry.sweep_expired.side_effect = sweep_expired
        reaper = Reaper(registry, interval_seconds=0.01, reconcile=False)

        reaper.start()
        assert done.wait(timeout=2)
        assert reaper.is_running
        reaper.stop(timeout=2)

    def test_stop_before_start_is_safe(self):
        Reaper(Mock()).stop()
