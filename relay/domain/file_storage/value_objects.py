"""
File Storage Value Objects

Immutable value objects for type safety and validation.
"""

import hmac
import re
import secrets
import uuid
from dataclasses import dataclass

from ..errors import MalformedIdentifierError, ValidationError

_FILE_ID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"
)
_ACCESS_TOKEN_PATTERN = re.compile(r"^[0-9a-f]{64}$")
_STORAGE_KEY_PATTERN = re.compile(r"^[0-9a-f]{32}(\.[a-z0-9.]{1,16})?$")


@dataclass(frozen=True)
class FileId:
    """
    Value object representing a public file identifier.

    Identifiers are 128-bit random values rendered in canonical UUID form.
    Validation is purely syntactic and never touches storage, so anything
    that is not a UUID (path fragments, injection attempts) is rejected here.
    """
    value: str

    def __post_init__(self):
        if not isinstance(self.value, str) or not _FILE_ID_PATTERN.match(self.value):
            raise MalformedIdentifierError("File identifier is not a canonical UUID")

    @classmethod
    def parse(cls, raw: str) -> 'FileId':
        """
        Parse a client-supplied identifier.

        Upper-case hex digits are accepted and normalized to lower case.

        Raises:
            MalformedIdentifierError: If raw is not a UUID
        """
        if not isinstance(raw, str):
            raise MalformedIdentifierError("File identifier must be a string")
        return cls(raw.strip().lower())

    @classmethod
    def generate(cls) -> 'FileId':
        """Generate a new random identifier (UUID4)."""
        return cls(str(uuid.uuid4()))

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class AccessToken:
    """
    Value object representing a per-file download secret.

    Tokens carry 256 bits of randomness rendered as 64 hex characters.
    """
    value: str

    def __post_init__(self):
        if not isinstance(self.value, str) or not _ACCESS_TOKEN_PATTERN.match(self.value):
            raise ValidationError("Access token must be 64 hex characters")

    @classmethod
    def generate(cls) -> 'AccessToken':
        """Generate a new cryptographically secure access token."""
        return cls(secrets.token_hex(32))

    def matches(self, presented: str) -> bool:
        """
        Compare a presented token against this one in constant time.

        Args:
            presented: Token supplied by the client

        Returns:
            True if both tokens are identical
        """
        if not isinstance(presented, str):
            return False
        return hmac.compare_digest(
            presented.encode("utf-8"), self.value.encode("utf-8")
        )

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class StorageKey:
    """
    Value object representing the name bytes are stored under.

    Keys are random and never derived from the file id or the client's
    file name. The optional extension is restricted to [a-z0-9.].
    """
    value: str

    def __post_init__(self):
        if not isinstance(self.value, str) or not _STORAGE_KEY_PATTERN.match(self.value):
            raise ValidationError("Invalid storage key")

    @staticmethod
    def clean_extension(extension: str) -> str:
        """
        Reduce an extension to the characters allowed in a storage key.

        Args:
            extension: Extension with or without leading dot

        Returns:
            Lower-case extension without leading dot, possibly empty
        """
        cleaned = re.sub(r"[^a-z0-9.]", "", (extension or "").lower())
        cleaned = cleaned.strip(".")
        return cleaned[:16]

    @classmethod
    def generate(cls, extension: str = "") -> 'StorageKey':
        """
        Generate a new random storage key.

        Args:
            extension: Original file extension, cleaned before use

        Returns:
            New StorageKey instance
        """
        cleaned = cls.clean_extension(extension)
        name = secrets.token_hex(16)
        return cls(f"{name}.{cleaned}" if cleaned else name)

    def __str__(self) -> str:
        return self.value
