"""
API Namespaces - Organized endpoint groups
"""

from typing import Optional
from urllib.parse import quote

from flask import Response, current_app, request
from flask_restx import Namespace, Resource
from werkzeug.exceptions import RequestEntityTooLarge

from relay.api.v1 import API_VERSION
from relay.api.v1.models import download_parser, error_response, file_info, upload_parser, upload_response
from relay.application.relay_service import RelayService
from relay.domain.errors import (
    ErrorCategory,
    FileTooLargeError,
    NotFoundOrExpired,
    PersistenceError,
    UnsupportedFileType,
    ValidationError,
    create_error_response,
)
from relay.domain.file_storage.entities import UploadDescriptor

ACCESS_TOKEN_HEADER = "X-Relay-Access-Token"
CONTENT_HASH_HEADER = "X-Content-SHA256"


def error_response_for(error: Exception):
    """
    Map a domain exception to a generic (body, status) pair.

    The body never carries the technical message.
    """
    if isinstance(error, (FileTooLargeError, RequestEntityTooLarge)):
        return create_error_response(ErrorCategory.FILE_TOO_LARGE, str(error), status_code=413)
    if isinstance(error, UnsupportedFileType):
        return create_error_response(ErrorCategory.UNSUPPORTED_FILE_TYPE, str(error), status_code=415)
    if isinstance(error, ValidationError):
        return create_error_response(error.category, str(error), status_code=400)
    if isinstance(error, NotFoundOrExpired):
        return create_error_response(ErrorCategory.FILE_NOT_FOUND, str(error), status_code=404)
    if isinstance(error, PersistenceError):
        return create_error_response(ErrorCategory.STORAGE_UNAVAILABLE, str(error), status_code=503)
    return create_error_response(ErrorCategory.SYSTEM_ERROR, str(error), status_code=500)


def _relay_service() -> RelayService:
    return current_app.container.resolve(RelayService)


def _presented_token() -> Optional[str]:
    authorization = request.headers.get("Authorization", "")
    if authorization[:7].lower() == "bearer ":
        return authorization[7:].strip()
    return request.args.get("token")


def _content_disposition(name: str) -> str:
    fallback = name.encode("ascii", "ignore").decode("ascii") or "download"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(name, safe='')}"


# =============================================================================
# File Namespace - Upload, metadata and download
# =============================================================================

file_ns = Namespace("files", description="Ephemeral file operations")


@file_ns.route("/")
class FileUpload(Resource):
    """Upload a file"""

    @file_ns.doc("upload_file")
    @file_ns.expect(upload_parser)
    @file_ns.response(201, "Created", upload_response)
    @file_ns.response(400, "Bad Request", error_response)
    @file_ns.response(413, "File Too Large", error_response)
    @file_ns.response(415, "Unsupported File Type", error_response)
    @file_ns.response(503, "Storage Unavailable", error_response)
    def post(self):
        """
        Upload a file for temporary sharing

        The access token for the download is returned only in the
        X-Relay-Access-Token response header.
        """
        try:
            uploaded = request.files.get("file")
            if uploaded is None or not uploaded.filename:
                return create_error_response(
                    ErrorCategory.INVALID_REQUEST, "No file uploaded", status_code=400
                )

            descriptor = UploadDescriptor(
                original_name=uploaded.filename,
                mime_type=uploaded.mimetype or "application/octet-stream",
                stream=uploaded.stream,
                declared_size=uploaded.content_length or None,
            )
            record = _relay_service().upload(descriptor)

        except (ValidationError, PersistenceError, RequestEntityTooLarge) as e:
            current_app.logger.info(f"Upload rejected: {e.__class__.__name__}")
            return error_response_for(e)
        except Exception as e:
            current_app.logger.exception(f"Unexpected error during upload: {e.__class__.__name__}")
            return error_response_for(e)

        body = {
            "file": record.to_public_dict(),
            "download_url": f"{request.script_root}/api/{API_VERSION}/files/{record.id}/download",
            "message": "File uploaded successfully",
        }
        return body, 201, {ACCESS_TOKEN_HEADER: record.access_token}


@file_ns.route("/<string:file_id>")
@file_ns.param("file_id", "The file identifier")
class FileInfo(Resource):
    """File metadata"""

    @file_ns.doc("get_file_info")
    @file_ns.response(200, "Success", file_info)
    @file_ns.response(404, "File Not Found", error_response)
    def get(self, file_id):
        """
        Get public metadata of a shared file

        Expired, deleted and unknown files all answer 404.
        """
        try:
            return _relay_service().get_file_info(file_id), 200
        except NotFoundOrExpired as e:
            return error_response_for(e)
        except Exception as e:
            current_app.logger.exception(f"Unexpected error reading file info: {e.__class__.__name__}")
            return error_response_for(e)


@file_ns.route("/<string:file_id>/download")
@file_ns.param("file_id", "The file identifier")
class FileDownload(Resource):
    """File content"""

    @file_ns.doc("download_file")
    @file_ns.expect(download_parser)
    @file_ns.response(200, "File content")
    @file_ns.response(404, "File Not Found", error_response)
    def get(self, file_id):
        """
        Download a shared file

        The access token is read from 'Authorization: Bearer <token>' or the
        'token' query parameter. A wrong token answers 404 like a missing file.
        """
        try:
            handle = _relay_service().open_download(file_id, _presented_token())
        except NotFoundOrExpired as e:
            return error_response_for(e)
        except Exception as e:
            current_app.logger.exception(f"Unexpected error opening download: {e.__class__.__name__}")
            return error_response_for(e)

        record = handle.record
        response = Response(
            handle.chunks(),
            mimetype=record.mime_type,
            direct_passthrough=True,
        )
        response.headers["Content-Disposition"] = _content_disposition(record.original_name)
        response.headers["Content-Length"] = str(record.size_bytes)
        response.headers[CONTENT_HASH_HEADER] = record.content_hash
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Cache-Control"] = "no-store"
        # HEAD or an early disconnect never starts the body generator
        response.call_on_close(handle.close)
        return response
