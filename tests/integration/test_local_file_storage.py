"""
Integration tests for LocalFileStorageRepository against a real directory
"""

import os
import time
from datetime import datetime, timedelta, timezone
from io import BytesIO

import pytest

from relay.infrastructure.local_file_storage_repository import LocalFileStorageRepository

KEY = "0123456789abcdef0123456789abcdef.txt"


@pytest.fixture
def store(tmp_path):
    return LocalFileStorageRepository(str(tmp_path / "content"))


class TestSaveAndRead:

    def test_save_then_get(self, store):
        assert store.save(KEY, BytesIO(b"hello")) is True

        with store.get(KEY) as f:
            assert f.read() == b"hello"
        assert store.exists(KEY)

    def test_save_replaces_existing_content(self, store):
        store.save(KEY, BytesIO(b"first"))
        store.save(KEY, BytesIO(b"second"))

        with store.get(KEY) as f:
            assert f.read() == b"second"

    def test_save_leaves_no_temporary_files(self, store):
        store.save(KEY, BytesIO(b"x" * 200_000))
        assert os.listdir(store.base_path) == [KEY]

    def test_failed_save_leaves_no_partial_file(self, store):
        class BrokenStream:
            def __init__(self):
                self.calls = 0

            def read(self, size=-1):
                self.calls += 1
                if self.calls > 1:
                    raise OSError("connection reset")
                return b"partial"

        with pytest.raises(IOError):
            store.save(KEY, BrokenStream())

        assert os.listdir(store.base_path) == []

    def test_missing_key(self, store):
        assert store.get(KEY) is None
        assert not store.exists(KEY)
        assert store.get_modified_at(KEY) is None


class TestKeyValidation:

    @pytest.mark.parametrize("key", ["", "  ", "../escape", "a/b", "a\\b", "..", "."])
    def test_unsafe_keys_are_refused_on_save(self, store, key):
        with pytest.raises(ValueError):
            store.save(key, BytesIO(b"x"))

    @pytest.mark.parametrize("key", ["../escape", "a/b", ""])
    def test_unsafe_keys_read_as_absent(self, store, key):
        assert store.get(key) is None
        assert not store.exists(key)


class TestDeleteAndListing:

    def test_delete_is_idempotent(self, store):
        store.save(KEY, BytesIO(b"x"))

        assert store.delete(KEY) is True
        assert store.delete(KEY) is True
        assert not store.exists(KEY)

    def test_list_keys_skips_in_progress_writes(self, store):
        store.save(KEY, BytesIO(b"x"))
        (store.base_path / ".incoming-abc").write_bytes(b"partial")

        assert store.list_keys() == [KEY]

    def test_get_modified_at_is_aware_utc(self, store):
        store.save(KEY, BytesIO(b"x"))
        past = time.time() - 3600
        os.utime(store.base_path / KEY, (past, past))

        modified = store.get_modified_at(KEY)

        assert modified.tzinfo == timezone.utc
        assert abs(modified - datetime.now(timezone.utc) + timedelta(hours=1)) < timedelta(seconds=5)
