"""
Test fixtures package.

Provides factory functions, in-memory repositories and test doubles.
"""

from .domain_fixtures import (
    BASE_TIME,
    DeferredExecutor,
    FakeClock,
    ImmediateExecutor,
    RecordingPublisher,
    create_file_record,
    create_sanitized_descriptor,
)
from .mock_repositories import MockFileRecordRepository, MockStorageRepository

__all__ = [
    "BASE_TIME",
    "FakeClock",
    "ImmediateExecutor",
    "DeferredExecutor",
    "RecordingPublisher",
    "create_file_record",
    "create_sanitized_descriptor",
    "MockFileRecordRepository",
    "MockStorageRepository",
]
