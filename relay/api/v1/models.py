"""
API Models for request/response validation and Swagger documentation
"""

from flask_restx import fields
from werkzeug.datastructures import FileStorage

from relay.api.v1 import api

# =============================================================================
# Request Models
# =============================================================================

upload_parser = api.parser()
upload_parser.add_argument(
    "file",
    location="files",
    type=FileStorage,
    required=True,
    help="File to share",
)

download_parser = api.parser()
download_parser.add_argument(
    "token",
    location="args",
    required=False,
    help="Access token (alternatively sent as 'Authorization: Bearer <token>')",
)

# =============================================================================
# Response Models
# =============================================================================

file_info = api.model(
    "FileInfo",
    {
        "id": fields.String(description="File identifier (UUID)"),
        "original_name": fields.String(description="File name as uploaded"),
        "mime_type": fields.String(description="Declared MIME type"),
        "size_bytes": fields.Integer(description="Size in bytes"),
        "created_at": fields.String(description="Upload time (ISO 8601, UTC)"),
        "expires_at": fields.String(description="Expiry time (ISO 8601, UTC)"),
        "download_count": fields.Integer(description="Completed downloads"),
        "remaining_seconds": fields.Integer(description="Seconds until expiry"),
    },
)

upload_response = api.model(
    "UploadResponse",
    {
        "file": fields.Nested(file_info),
        "download_url": fields.String(description="Relative URL of the download endpoint"),
        "message": fields.String(description="Status message"),
    },
)

error_response = api.model(
    "ErrorResponse",
    {
        "error": fields.String(description="Error category"),
        "title": fields.String(description="Short error title"),
        "message": fields.String(description="User-facing error message"),
        "action": fields.String(description="Suggested next step"),
    },
)
