"""
Relay Errors

Domain exceptions raised by the registry and sanitizer, and the generic
client-facing bodies the API answers them with.
"""

from enum import Enum
from typing import Any, Dict, Optional, Tuple


class ErrorCategory(Enum):
    """Stable error codes sent to clients in the "error" field."""

    INVALID_REQUEST = "invalid_request"
    INVALID_IDENTIFIER = "invalid_identifier"
    UNSUPPORTED_FILE_TYPE = "unsupported_file_type"
    FILE_TOO_LARGE = "file_too_large"
    FILE_NOT_FOUND = "file_not_found"
    STORAGE_UNAVAILABLE = "storage_unavailable"
    SYSTEM_ERROR = "system_error"


# Client-facing text per category; never includes request details
ERROR_MESSAGES: Dict[ErrorCategory, Dict[str, str]] = {
    ErrorCategory.INVALID_REQUEST: {
        "title": "Invalid Request",
        "message": "The request is missing required information or contains invalid data.",
        "action": "Please check your input and try again.",
    },
    ErrorCategory.INVALID_IDENTIFIER: {
        "title": "Invalid File Identifier",
        "message": "The file identifier is not well formed.",
        "action": "Check the link you were given and try again.",
    },
    ErrorCategory.UNSUPPORTED_FILE_TYPE: {
        "title": "File Type Not Allowed",
        "message": "This type of file cannot be shared.",
        "action": "Upload a document, image, archive, audio or video file instead.",
    },
    ErrorCategory.FILE_TOO_LARGE: {
        "title": "File Too Large",
        "message": "The file exceeds the maximum allowed size.",
        "action": "Compress the file or split it before uploading.",
    },
    ErrorCategory.FILE_NOT_FOUND: {
        "title": "File Not Available",
        "message": "The requested file does not exist or is no longer available.",
        "action": "Ask the sender to upload the file again.",
    },
    ErrorCategory.STORAGE_UNAVAILABLE: {
        "title": "Storage Unavailable",
        "message": "The file could not be stored right now.",
        "action": "Please try again in a moment.",
    },
    ErrorCategory.SYSTEM_ERROR: {
        "title": "System Error",
        "message": "An unexpected error occurred while processing your request.",
        "action": "Please try again later. If the problem persists, contact support.",
    },
}


# ============================================================================
# Domain Exceptions
# ============================================================================

class DomainError(Exception):
    """Base exception for all domain errors, optionally wrapping the low-level cause."""

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error


class ValidationError(DomainError):
    """
    Raised when client-supplied input is rejected.

    Always client-caused and detected before any storage I/O where possible.
    """

    category = ErrorCategory.INVALID_REQUEST


class MalformedIdentifierError(ValidationError):
    """Raised when a file identifier is not a canonical UUID."""

    category = ErrorCategory.INVALID_IDENTIFIER


class UnsupportedFileType(ValidationError):
    """
    Raised when an upload is refused because of what it is.

    Covers denylisted extensions, MIME types outside the allow-list and
    native executable signatures found in the content itself.
    """

    category = ErrorCategory.UNSUPPORTED_FILE_TYPE


class FileTooLargeError(ValidationError):
    """Raised when an upload exceeds the configured size ceiling."""

    category = ErrorCategory.FILE_TOO_LARGE


class NotFoundOrExpired(DomainError):
    """
    Raised when a file cannot be served.

    Deliberately does not say whether the id never existed, expired,
    was evicted or was presented with the wrong token.
    """

    pass


class PersistenceError(DomainError):
    """Raised when metadata or content cannot be written durably."""

    pass


# ============================================================================
# Client-Facing Errors
# ============================================================================

class ApplicationError(Exception):
    """
    An error as the client sees it.

    Only the category's stable title, message and action are serialized;
    the technical message stays in the logs.
    """

    def __init__(self, category: ErrorCategory, technical_message: Optional[str] = None):
        self.category = category
        self.technical_message = technical_message or ""

        error_info = ERROR_MESSAGES.get(category, ERROR_MESSAGES[ErrorCategory.SYSTEM_ERROR])
        self.title = error_info["title"]
        self.message = error_info["message"]
        self.action = error_info["action"]

        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.category.value,
            "title": self.title,
            "message": self.message,
            "action": self.action,
        }


def create_error_response(
    category: ErrorCategory,
    technical_message: Optional[str] = None,
    status_code: int = 400,
) -> Tuple[Dict[str, Any], int]:
    """Build the (body, status) pair a Resource returns for `category`."""
    return ApplicationError(category, technical_message).to_dict(), status_code
