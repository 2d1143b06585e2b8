"""
Integrity Sanitizer

Validates inbound uploads before they are admitted into the content store:
name and extension checks, MIME allow-list, size ceiling, native executable
signature sniffing, and content hashing.
"""

import hashlib
import logging
import os
import re
import tempfile
import time
from datetime import timedelta
from pathlib import Path
from typing import BinaryIO, Iterable, Optional, Tuple

from ..errors import FileTooLargeError, PersistenceError, UnsupportedFileType, ValidationError
from .entities import SanitizedDescriptor, UploadDescriptor
from .value_objects import StorageKey

logger = logging.getLogger(__name__)

# Extensions refused regardless of the declared MIME type
DANGEROUS_EXTENSIONS = frozenset([
    # Executable files
    "exe", "dll", "com", "bat", "cmd", "vbs", "js", "jse", "ws", "wsf", "wsc", "wsh",
    "msc", "scr", "ps1", "msi", "msp", "hta", "cpl", "jar", "vb", "vbe",
    # Script files
    "php", "phtml", "php3", "php4", "php5", "php7", "phps", "pht", "phar", "asp",
    "aspx", "cer", "csr", "jsp", "jspx", "cfm", "cfml", "py", "pl", "cgi",
    # Other potentially dangerous files
    "sh", "bash", "zsh", "ksh", "ade", "adp", "app", "application", "gadget",
    "inf", "ins", "isp", "lnk", "msh", "msh1", "msh2", "mshxml", "msh1xml",
    "msh2xml", "prf", "prg", "reg", "scf", "sct", "shb", "shs", "url", "xbap",
])

DEFAULT_ALLOWED_MIME_TYPES = (
    # Documents
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "text/plain",
    "text/csv",
    # Images
    "image/jpeg", "image/png", "image/gif", "image/svg+xml", "image/webp",
    # Archives
    "application/zip", "application/x-rar-compressed", "application/x-7z-compressed",
    # Audio/Video
    "audio/mpeg", "audio/wav", "video/mp4", "video/mpeg", "video/webm",
)

# Leading bytes of native executables: PE, ELF, Mach-O (32/64-bit, both byte orders)
EXECUTABLE_SIGNATURES = (
    b"MZ",
    b"\x7fELF",
    b"\xfe\xed\xfa\xce",
    b"\xce\xfa\xed\xfe",
    b"\xfe\xed\xfa\xcf",
    b"\xcf\xfa\xed\xfe",
)

SIGNATURE_PROBE_LENGTH = 8
CHUNK_SIZE = 64 * 1024
MAX_NAME_LENGTH = 255

_INVALID_NAME_CHARACTERS = re.compile(r'[\\/:*?"<>|\x00-\x1f\x7f]')


class IntegritySanitizer:
    """
    Domain service that admits or rejects uploads.

    Content is spooled into a staging file while it is hashed and measured.
    Every rejection removes the staged bytes on a best-effort basis.
    """

    def __init__(
        self,
        max_file_size_bytes: int,
        staging_dir: str,
        allowed_mime_types: Iterable[str] = DEFAULT_ALLOWED_MIME_TYPES,
    ):
        """
        Initialize sanitizer.

        Args:
            max_file_size_bytes: Size ceiling for a single upload
            staging_dir: Directory for in-flight uploads
            allowed_mime_types: MIME types accepted for upload
        """
        self.max_file_size_bytes = max_file_size_bytes
        self.allowed_mime_types = frozenset(m.lower() for m in allowed_mime_types)
        self.staging_dir = Path(staging_dir)
        self.staging_dir.mkdir(parents=True, exist_ok=True)

    def sanitize_upload(self, descriptor: UploadDescriptor) -> SanitizedDescriptor:
        """Sanitize an upload received at the boundary."""
        return self.sanitize(
            descriptor.stream,
            descriptor.original_name,
            descriptor.mime_type,
            declared_size=descriptor.declared_size,
        )

    def sanitize(
        self,
        stream: BinaryIO,
        declared_name: str,
        declared_mime_type: str,
        declared_size: Optional[int] = None,
    ) -> SanitizedDescriptor:
        """
        Validate an upload and stage its content.

        Args:
            stream: Readable binary stream with the upload content
            declared_name: Client-supplied file name
            declared_mime_type: Client-supplied MIME type
            declared_size: Client-announced size, checked before reading

        Returns:
            SanitizedDescriptor pointing at the staged content

        Raises:
            ValidationError: If the file name is unusable
            UnsupportedFileType: If extension, MIME type or content is refused
            FileTooLargeError: If the upload exceeds the size ceiling
            PersistenceError: If the staging file cannot be written
        """
        name = self._validate_name(declared_name)
        extension = self.extension_of(name)

        if extension in DANGEROUS_EXTENSIONS:
            logger.info(f"Rejected upload with denylisted extension '.{extension}'")
            raise UnsupportedFileType(f"Extension '.{extension}' is not allowed")

        mime_type = self.normalize_mime_type(declared_mime_type)
        if mime_type not in self.allowed_mime_types:
            logger.info(f"Rejected upload with MIME type '{mime_type}'")
            raise UnsupportedFileType(f"MIME type '{mime_type}' is not allowed")

        if declared_size is not None and declared_size > self.max_file_size_bytes:
            raise FileTooLargeError(
                f"Declared size {declared_size} exceeds {self.max_file_size_bytes}"
            )

        staged_path, size, content_hash, head = self._stage(stream)

        if self.is_native_executable(head):
            self._discard_path(staged_path)
            logger.warning("Rejected upload carrying a native executable signature")
            raise UnsupportedFileType("Content is a native executable")

        return SanitizedDescriptor(
            original_name=name,
            storage_key=str(StorageKey.generate(extension)),
            extension=StorageKey.clean_extension(extension),
            mime_type=mime_type,
            size_bytes=size,
            content_hash=content_hash,
            staged_path=staged_path,
        )

    def discard(self, descriptor: SanitizedDescriptor) -> None:
        """Remove the staged content of a sanitized upload, best effort."""
        self._discard_path(descriptor.staged_path)

    def purge_stale(self, older_than: timedelta) -> int:
        """
        Delete staging files left behind by interrupted uploads.

        Args:
            older_than: Minimum age of a staging file before it is removed

        Returns:
            Number of files removed
        """
        cutoff = time.time() - older_than.total_seconds()

        try:
            with os.scandir(self.staging_dir) as entries:
                stale = [
                    entry.path for entry in entries
                    if entry.is_file() and entry.stat().st_mtime < cutoff
                ]
        except OSError as e:
            logger.error(f"Error listing staging directory {self.staging_dir}: {e}")
            return 0

        removed = 0
        for path in stale:
            try:
                os.remove(path)
                removed += 1
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Failed to remove stale staging file {path}: {e}")
        return removed

    @staticmethod
    def extension_of(name: str) -> str:
        """Lower-case extension of a file name without the leading dot."""
        # Windows drops trailing dots and spaces when saving, so "a.php." is a .php
        return os.path.splitext(name.rstrip(". "))[1].lower().lstrip(".")

    @staticmethod
    def normalize_mime_type(mime_type: str) -> str:
        """Strip parameters and case from a MIME type."""
        return (mime_type or "").split(";", 1)[0].strip().lower()

    @staticmethod
    def is_native_executable(head: bytes) -> bool:
        """
        Check leading bytes against native executable signatures.

        Args:
            head: First bytes of the content

        Returns:
            True if the content starts like a PE, ELF or Mach-O binary
        """
        return any(head.startswith(signature) for signature in EXECUTABLE_SIGNATURES)

    def _validate_name(self, declared_name: str) -> str:
        if not isinstance(declared_name, str):
            raise ValidationError("File name must be a string")

        name = declared_name.strip()
        if not name:
            raise ValidationError("File name is empty")
        if len(name) > MAX_NAME_LENGTH:
            raise ValidationError("File name is too long")
        if _INVALID_NAME_CHARACTERS.search(name):
            raise ValidationError("File name contains invalid characters")
        return name

    def _stage(self, stream: BinaryIO) -> Tuple[str, int, str, bytes]:
        """
        Spool the stream into a staging file.

        Returns:
            Tuple of (staged path, size in bytes, sha256 hex digest, leading bytes)
        """
        try:
            fd, staged_path = tempfile.mkstemp(
                prefix="upload-", suffix=".part", dir=self.staging_dir
            )
        except OSError as e:
            raise PersistenceError("Could not create staging file", e) from e

        digest = hashlib.sha256()
        size = 0
        head = b""

        try:
            with os.fdopen(fd, "wb") as staged:
                while True:
                    chunk = stream.read(CHUNK_SIZE)
                    if not chunk:
                        break

                    size += len(chunk)
                    if size > self.max_file_size_bytes:
                        raise FileTooLargeError(
                            f"Upload exceeds {self.max_file_size_bytes} bytes"
                        )

                    if len(head) < SIGNATURE_PROBE_LENGTH:
                        head += chunk[:SIGNATURE_PROBE_LENGTH - len(head)]

                    digest.update(chunk)
                    staged.write(chunk)
        except FileTooLargeError:
            self._discard_path(staged_path)
            raise
        except OSError as e:
            self._discard_path(staged_path)
            raise PersistenceError("Could not stage upload", e) from e

        return staged_path, size, digest.hexdigest(), head

    @staticmethod
    def _discard_path(path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Could not delete staged upload {path}: {e}")
