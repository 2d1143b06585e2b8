"""
Unit tests for RelayConfig
"""

import os
from datetime import timedelta

import pytest

from relay.config.settings import RelayConfig

RELAY_VARIABLES = (
    "RELAY_TTL_SECONDS",
    "RELAY_MAX_FILE_SIZE",
    "RELAY_ALLOWED_MIME_TYPES",
    "RELAY_STORAGE_ROOT",
    "RELAY_SWEEP_INTERVAL_SECONDS",
    "RELAY_TOKEN_POLICY",
    "RELAY_DOWNLOAD_ACCOUNTING",
    "RELAY_METADATA_BACKEND",
    "RELAY_REAPER_MODE",
    "RELAY_ORPHAN_GRACE_SECONDS",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in RELAY_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestDefaults:

    def test_defaults(self):
        config = RelayConfig()

        assert config.ttl == timedelta(minutes=5)
        assert config.max_file_size_bytes == 10 * 1024 * 1024
        assert config.sweep_interval_seconds == 15
        assert config.token_policy == "optional"
        assert config.download_accounting is True
        assert config.metadata_backend == "json"
        assert config.reaper_mode == "thread"
        assert "application/pdf" in config.allowed_mime_types

    def test_derived_paths(self):
        config = RelayConfig(storage_root_path="/srv/relay")

        assert config.content_dir == os.path.join("/srv/relay", "content")
        assert config.staging_dir == os.path.join("/srv/relay", "staging")
        assert config.metadata_path == os.path.join("/srv/relay", "file-info.json")


class TestValidation:

    @pytest.mark.parametrize("overrides", [
        {"ttl_seconds": 0},
        {"max_file_size_bytes": -1},
        {"sweep_interval_seconds": 0},
        {"orphan_grace_seconds": -5},
        {"allowed_mime_types": ()},
        {"storage_root_path": ""},
        {"token_policy": "sometimes"},
        {"metadata_backend": "sqlite"},
        {"reaper_mode": "cron"},
    ])
    def test_invalid_values_are_refused(self, overrides):
        with pytest.raises(ValueError):
            RelayConfig(**overrides)

    def test_celery_reaper_requires_redis_metadata(self):
        with pytest.raises(ValueError):
            RelayConfig(reaper_mode="celery", metadata_backend="json")

        assert RelayConfig(reaper_mode="celery", metadata_backend="redis").reaper_mode == "celery"


class TestFromEnv:

    def test_reads_environment(self, clean_env):
        clean_env.setenv("RELAY_TTL_SECONDS", "60")
        clean_env.setenv("RELAY_MAX_FILE_SIZE", "2048")
        clean_env.setenv("RELAY_ALLOWED_MIME_TYPES", "Image/PNG, text/plain ,")
        clean_env.setenv("RELAY_STORAGE_ROOT", "/data")
        clean_env.setenv("RELAY_TOKEN_POLICY", "REQUIRED")
        clean_env.setenv("RELAY_DOWNLOAD_ACCOUNTING", "off")

        config = RelayConfig.from_env()

        assert config.ttl_seconds == 60
        assert config.max_file_size_bytes == 2048
        assert config.allowed_mime_types == ("image/png", "text/plain")
        assert config.storage_root_path == "/data"
        assert config.token_policy == "required"
        assert config.download_accounting is False

    def test_empty_environment_gives_defaults(self, clean_env):
        assert RelayConfig.from_env() == RelayConfig()

    @pytest.mark.parametrize("name,value", [
        ("RELAY_TTL_SECONDS", "five minutes"),
        ("RELAY_DOWNLOAD_ACCOUNTING", "maybe"),
        ("RELAY_REAPER_MODE", "celery"),
    ])
    def test_bad_values_raise(self, clean_env, name, value):
        clean_env.setenv(name, value)

        with pytest.raises(ValueError):
            RelayConfig.from_env()
