"""
Relay Configuration

Runtime settings for the file registry, sanitizer and reaper, read from
environment variables.
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Tuple

from relay.domain.file_storage.sanitizer import DEFAULT_ALLOWED_MIME_TYPES

TOKEN_POLICIES = ("required", "optional")
METADATA_BACKENDS = ("json", "redis")
REAPER_MODES = ("thread", "celery")

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


@dataclass(frozen=True)
class RelayConfig:
    """
    Relay configuration settings.

    Attributes:
        ttl_seconds: Lifetime of an uploaded file
        max_file_size_bytes: Upload size ceiling
        allowed_mime_types: MIME types accepted for upload
        storage_root_path: Root directory for content, staging and metadata
        sweep_interval_seconds: Period of the background reaper
        token_policy: "required" or "optional" access token check on download
        download_accounting: Whether completed downloads are counted
        metadata_backend: "json" (single document on disk) or "redis"
        reaper_mode: "thread" (in-process) or "celery" (beat task)
        orphan_grace_seconds: Minimum age of unreferenced content before reclaiming it
    """
    ttl_seconds: int = 300
    max_file_size_bytes: int = 10 * 1024 * 1024
    allowed_mime_types: Tuple[str, ...] = field(default=DEFAULT_ALLOWED_MIME_TYPES)
    storage_root_path: str = "/tmp/relay"
    sweep_interval_seconds: int = 15
    token_policy: str = "optional"
    download_accounting: bool = True
    metadata_backend: str = "json"
    reaper_mode: str = "thread"
    orphan_grace_seconds: int = 3600

    def __post_init__(self):
        if self.ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if self.max_file_size_bytes <= 0:
            raise ValueError("max_file_size_bytes must be positive")
        if self.sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be positive")
        if self.orphan_grace_seconds < 0:
            raise ValueError("orphan_grace_seconds cannot be negative")
        if not self.allowed_mime_types:
            raise ValueError("allowed_mime_types cannot be empty")
        if not self.storage_root_path:
            raise ValueError("storage_root_path cannot be empty")
        if self.token_policy not in TOKEN_POLICIES:
            raise ValueError(f"token_policy must be one of {TOKEN_POLICIES}")
        if self.metadata_backend not in METADATA_BACKENDS:
            raise ValueError(f"metadata_backend must be one of {METADATA_BACKENDS}")
        if self.reaper_mode not in REAPER_MODES:
            raise ValueError(f"reaper_mode must be one of {REAPER_MODES}")
        # A beat worker runs in another process and cannot see a JSON document
        # held in this process's memory
        if self.reaper_mode == "celery" and self.metadata_backend != "redis":
            raise ValueError("reaper_mode 'celery' requires metadata_backend 'redis'")

    @property
    def ttl(self) -> timedelta:
        return timedelta(seconds=self.ttl_seconds)

    @property
    def orphan_grace(self) -> timedelta:
        return timedelta(seconds=self.orphan_grace_seconds)

    @property
    def content_dir(self) -> str:
        return os.path.join(self.storage_root_path, "content")

    @property
    def staging_dir(self) -> str:
        return os.path.join(self.storage_root_path, "staging")

    @property
    def metadata_path(self) -> str:
        return os.path.join(self.storage_root_path, "file-info.json")

    @classmethod
    def from_env(cls) -> 'RelayConfig':
        """
        Build configuration from RELAY_* environment variables.

        Raises:
            ValueError: If a variable cannot be parsed or fails validation
        """
        mime_types = os.getenv("RELAY_ALLOWED_MIME_TYPES")

        return cls(
            ttl_seconds=int(os.getenv("RELAY_TTL_SECONDS", 300)),
            max_file_size_bytes=int(os.getenv("RELAY_MAX_FILE_SIZE", 10 * 1024 * 1024)),
            allowed_mime_types=(
                tuple(m.strip().lower() for m in mime_types.split(",") if m.strip())
                if mime_types else DEFAULT_ALLOWED_MIME_TYPES
            ),
            storage_root_path=os.getenv("RELAY_STORAGE_ROOT", "/tmp/relay"),
            sweep_interval_seconds=int(os.getenv("RELAY_SWEEP_INTERVAL_SECONDS", 15)),
            token_policy=os.getenv("RELAY_TOKEN_POLICY", "optional").lower(),
            download_accounting=_parse_bool(os.getenv("RELAY_DOWNLOAD_ACCOUNTING", "true")),
            metadata_backend=os.getenv("RELAY_METADATA_BACKEND", "json").lower(),
            reaper_mode=os.getenv("RELAY_REAPER_MODE", "thread").lower(),
            orphan_grace_seconds=int(os.getenv("RELAY_ORPHAN_GRACE_SECONDS", 3600)),
        )


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Not a boolean: {value!r}")
