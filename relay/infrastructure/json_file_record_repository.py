"""
JSON File Record Repository Implementation

Concrete FileRecordRepository backed by a single JSON document on local
disk, mapping file id -> record. The whole document is kept in memory and
rewritten atomically on every mutation.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from relay.domain.errors import PersistenceError
from relay.domain.file_storage.entities import FileRecord, utc_now
from relay.domain.file_storage.repositories import FileRecordRepository

logger = logging.getLogger(__name__)


class JsonFileRecordRepository(FileRecordRepository):
    """
    Single-document JSON implementation of FileRecordRepository.

    Each mutation writes the complete new document to a temporary file in
    the same directory, fsyncs it and renames it over the previous one.
    The in-memory map only changes once the rename succeeded, so a failed
    write leaves both memory and disk at the previous state.

    Thread Safety:
        Document rewrites are serialized by an internal lock. Reads take
        the same lock briefly to copy a single entry.
    """

    def __init__(self, document_path: str):
        """
        Initialize and load the document if it exists.

        Args:
            document_path: Path of the JSON document (e.g. /tmp/relay/file-info.json)
        """
        self.document_path = Path(document_path)
        self.document_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._records: Dict[str, Dict[str, Any]] = self._load()

    def _load(self) -> Dict[str, Dict[str, Any]]:
        """
        Read the document from disk.

        A document that cannot be parsed is renamed aside and the store
        starts empty; content left behind is reclaimed by reconciliation.

        Raises:
            PersistenceError: If the document exists but cannot be read
        """
        try:
            with open(self.document_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except ValueError as e:
            self._quarantine(e)
            return {}
        except OSError as e:
            raise PersistenceError(f"Could not read {self.document_path}", e) from e

        if not isinstance(data, dict):
            self._quarantine(TypeError("document root is not an object"))
            return {}

        records = {}
        for file_id, entry in data.items():
            try:
                records[file_id] = FileRecord.from_dict(entry).to_dict()
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Dropping unreadable record {file_id} from {self.document_path}: {e}")

        logger.info(f"Loaded {len(records)} file records from {self.document_path}")
        return records

    def _quarantine(self, error: Exception) -> None:
        stamp = utc_now().strftime("%Y%m%dT%H%M%S")
        corrupt_path = self.document_path.with_name(f"{self.document_path.name}.corrupt-{stamp}")
        logger.error(
            f"Metadata document {self.document_path} is unreadable ({error}); "
            f"moved to {corrupt_path}"
        )
        try:
            os.replace(self.document_path, corrupt_path)
        except OSError as e:
            logger.error(f"Could not move unreadable metadata document aside: {e}")

    def _write(self, records: Dict[str, Dict[str, Any]]) -> None:
        """
        Durably replace the document with records.

        Raises:
            PersistenceError: If any step of the write fails
        """
        temp_path = None
        try:
            fd, temp_path = tempfile.mkstemp(
                prefix=f".{self.document_path.name}.", suffix=".tmp",
                dir=self.document_path.parent,
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2)
                f.flush()
                os.fsync(f.fileno())

            os.replace(temp_path, self.document_path)
            temp_path = None
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Could not write {self.document_path}", e) from e
        finally:
            if temp_path is not None:
                try:
                    os.remove(temp_path)
                except OSError:
                    logger.error(f"Could not remove temporary metadata file {temp_path}")

    def save(self, record: FileRecord) -> bool:
        with self._lock:
            updated = dict(self._records)
            updated[record.id] = record.to_dict()
            self._write(updated)
            self._records = updated
        return True

    def get(self, file_id: str) -> Optional[FileRecord]:
        with self._lock:
            entry = self._records.get(file_id)
        if entry is None:
            return None
        return FileRecord.from_dict(entry)

    def delete(self, file_id: str) -> bool:
        with self._lock:
            if file_id not in self._records:
                return False
            updated = dict(self._records)
            del updated[file_id]
            self._write(updated)
            self._records = updated
        return True

    def exists(self, file_id: str) -> bool:
        with self._lock:
            return file_id in self._records

    def list_ids(self) -> List[str]:
        with self._lock:
            return list(self._records)
