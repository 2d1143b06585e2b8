"""
Shared pytest fixtures and configuration for the relay test suite.

This module provides:
- Hypothesis configuration for property-based testing
- Shared fixtures for the registry and its collaborators
- Markers applied automatically by test location
"""

from datetime import timedelta

import pytest
from hypothesis import HealthCheck, Phase, settings

from app_factory import create_app
from relay.config.settings import RelayConfig
from relay.domain.file_storage.sanitizer import IntegritySanitizer
from relay.domain.file_storage.services import FileRegistry
from tests.fixtures import (
    DeferredExecutor,
    FakeClock,
    MockFileRecordRepository,
    MockStorageRepository,
    RecordingPublisher,
)

# Register Hypothesis profiles
settings.register_profile(
    "default",
    max_examples=100,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.target, Phase.shrink],
)
settings.register_profile(
    "ci",
    max_examples=200,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
)
settings.register_profile(
    "dev",
    max_examples=10,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
)
settings.load_profile("default")

TTL = timedelta(seconds=300)


# =============================================================================
# Registry Fixtures
# =============================================================================

@pytest.fixture
def clock() -> FakeClock:
    """Provide a manually advanced clock."""
    return FakeClock()


@pytest.fixture
def record_repository() -> MockFileRecordRepository:
    """Provide an in-memory metadata store."""
    return MockFileRecordRepository()


@pytest.fixture
def storage_repository() -> MockStorageRepository:
    """Provide an in-memory content store."""
    return MockStorageRepository()


@pytest.fixture
def publisher() -> RecordingPublisher:
    """Provide an event publisher that records events."""
    return RecordingPublisher()


@pytest.fixture
def executor() -> DeferredExecutor:
    """Provide an executor whose work runs only when asked."""
    return DeferredExecutor()


@pytest.fixture
def registry(record_repository, storage_repository, publisher, clock, executor):
    """Provide a FileRegistry over in-memory stores with a fake clock."""
    return FileRegistry(
        record_repository,
        storage_repository,
        TTL,
        event_publisher=publisher,
        clock=clock,
        executor=executor,
    )


@pytest.fixture
def sanitizer(tmp_path) -> IntegritySanitizer:
    """Provide a sanitizer with a 1 KiB ceiling staging under tmp_path."""
    return IntegritySanitizer(max_file_size_bytes=1024, staging_dir=str(tmp_path / "staging"))


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture
def relay_config(tmp_path) -> RelayConfig:
    """Provide a JSON-backed configuration rooted under tmp_path."""
    return RelayConfig(storage_root_path=str(tmp_path / "relay"), max_file_size_bytes=1024)


@pytest.fixture
def app(relay_config):
    """Provide a Flask app; the reaper thread is not started."""
    app = create_app(relay_config=relay_config)
    app.config["TESTING"] = True
    yield app
    app.container.close()


@pytest.fixture
def client(app):
    """Provide a Flask test client."""
    return app.test_client()


# =============================================================================
# Pytest Configuration Hooks
# =============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (real filesystem or services)"
    )
    config.addinivalue_line(
        "markers", "property: Property-based tests using Hypothesis"
    )


def pytest_collection_modifyitems(config, items):
    """
    Automatically mark tests based on their location.

    - tests/unit/* -> @pytest.mark.unit
    - tests/integration/* -> @pytest.mark.integration
    - tests/property/* -> @pytest.mark.property
    """
    for item in items:
        test_path = str(item.fspath)

        if "/unit/" in test_path or "\\unit\\" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path or "\\integration\\" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/property/" in test_path or "\\property\\" in test_path:
            item.add_marker(pytest.mark.property)
