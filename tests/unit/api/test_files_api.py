"""
Unit tests for the /api/v1/files endpoints

Runs the real app against a temporary storage root with the JSON
metadata store; no Redis or Celery is involved.
"""

import hashlib
from datetime import timedelta
from io import BytesIO

import pytest

from relay.api.v1.namespaces import ACCESS_TOKEN_HEADER, CONTENT_HASH_HEADER, _content_disposition
from relay.config.settings import RelayConfig
from relay.domain.file_storage import FileRegistry
from relay.domain.file_storage.entities import utc_now
from relay.domain.file_storage.storage_repository import IFileStorageRepository

FILES_URL = "/api/v1/files/"
UNKNOWN_ID = "123e4567-e89b-12d3-a456-426614174000"


def upload(client, data=b"hello world", name="notes.txt", mime_type="text/plain"):
    return client.post(
        FILES_URL,
        data={"file": (BytesIO(data), name, mime_type)},
        content_type="multipart/form-data",
    )


def expire_everything(app, monkeypatch):
    registry = app.container.resolve(FileRegistry)
    monkeypatch.setattr(registry, "_clock", lambda: utc_now() + timedelta(hours=1))


class TestUploadEndpoint:
    """Test POST /files/."""

    def test_upload_returns_201_with_token_in_header_only(self, client):
        # Act
        response = upload(client)

        # Assert
        assert response.status_code == 201
        token = response.headers[ACCESS_TOKEN_HEADER]
        assert len(token) == 64
        body = response.get_json()
        assert token not in response.get_data(as_text=True)
        assert body["file"]["original_name"] == "notes.txt"
        assert body["file"]["size_bytes"] == 11
        assert body["file"]["download_count"] == 0
        assert "storage_key" not in body["file"]
        assert body["download_url"] == f"/api/v1/files/{body['file']['id']}/download"

    def test_upload_without_file_is_400(self, client):
        response = client.post(FILES_URL, data={}, content_type="multipart/form-data")

        assert response.status_code == 400
        assert response.get_json()["error"] == "invalid_request"

    def test_disallowed_mime_type_is_415(self, client):
        response = upload(client, name="blob.bin", mime_type="application/octet-stream")

        assert response.status_code == 415
        assert response.get_json()["error"] == "unsupported_file_type"

    def test_executable_content_is_415(self, client):
        response = upload(client, data=b"\x7fELF\x02\x01\x01", name="notes.txt")
        assert response.status_code == 415

    def test_denylisted_extension_is_415(self, client):
        response = upload(client, name="install.sh")
        assert response.status_code == 415

    def test_content_over_limit_is_413(self, client):
        response = upload(client, data=b"x" * 2048)

        assert response.status_code == 413
        assert response.get_json()["error"] == "file_too_large"

    def test_request_over_hard_limit_is_413(self, client):
        response = upload(client, data=b"x" * (200 * 1024))
        assert response.status_code == 413

    def test_storage_failure_is_503_without_details(self, app, client, monkeypatch):
        storage = app.container.resolve(IFileStorageRepository)

        def broken_save(storage_key, content):
            raise OSError("No space left on device: /secret/path")

        monkeypatch.setattr(storage, "save", broken_save)

        response = upload(client)

        assert response.status_code == 503
        assert response.get_json()["error"] == "storage_unavailable"
        assert "/secret/path" not in response.get_data(as_text=True)


class TestInfoEndpoint:
    """Test GET /files/<id>."""

    def test_info_of_live_file(self, client):
        file_id = upload(client).get_json()["file"]["id"]

        response = client.get(f"{FILES_URL}{file_id}")

        assert response.status_code == 200
        body = response.get_json()
        assert body["id"] == file_id
        assert 0 < body["remaining_seconds"] <= 300
        assert "access_token" not in body

    @pytest.mark.parametrize("file_id", [UNKNOWN_ID, "not-a-uuid", "123E4567-E89B-12D3-A456-42661417400Z"])
    def test_unknown_or_malformed_id_is_404(self, client, file_id):
        response = client.get(f"{FILES_URL}{file_id}")

        assert response.status_code == 404
        assert response.get_json()["error"] == "file_not_found"

    def test_expired_file_is_404(self, app, client, monkeypatch):
        file_id = upload(client).get_json()["file"]["id"]
        expire_everything(app, monkeypatch)

        assert client.get(f"{FILES_URL}{file_id}").status_code == 404


class TestDownloadEndpoint:
    """Test GET /files/<id>/download."""

    def test_download_streams_content_with_headers(self, client):
        data = b"%PDF-1.4 annual report"
        file_id = upload(client, data=data, name="report.pdf", mime_type="application/pdf").get_json()["file"]["id"]

        response = client.get(f"{FILES_URL}{file_id}/download")

        assert response.status_code == 200
        assert response.data == data
        assert response.mimetype == "application/pdf"
        assert response.headers["Content-Length"] == str(len(data))
        assert response.headers[CONTENT_HASH_HEADER] == hashlib.sha256(data).hexdigest()
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["Cache-Control"] == "no-store"
        assert 'filename="report.pdf"' in response.headers["Content-Disposition"]

    def test_head_request_closes_the_content_stream(self, app, client, monkeypatch):
        file_id = upload(client).get_json()["file"]["id"]
        storage = app.container.resolve(IFileStorageRepository)
        opened = []
        original_get = storage.get

        def tracking_get(storage_key):
            stream = original_get(storage_key)
            opened.append(stream)
            return stream

        monkeypatch.setattr(storage, "get", tracking_get)

        response = client.head(f"{FILES_URL}{file_id}/download")
        response.close()

        assert response.status_code == 200
        assert len(opened) == 1
        assert opened[0].closed
        assert client.get(f"{FILES_URL}{file_id}").get_json()["download_count"] == 0

    def test_non_ascii_name_gets_encoded_disposition(self):
        disposition = _content_disposition("résumé.txt")

        assert 'filename="rsum.txt"' in disposition
        assert "filename*=UTF-8''r%C3%A9sum%C3%A9.txt" in disposition

    def test_completed_download_is_counted(self, client):
        file_id = upload(client).get_json()["file"]["id"]

        client.get(f"{FILES_URL}{file_id}/download").get_data()
        client.get(f"{FILES_URL}{file_id}/download").get_data()

        assert client.get(f"{FILES_URL}{file_id}").get_json()["download_count"] == 2

    def test_correct_token_in_query_or_header_is_accepted(self, client):
        response = upload(client)
        file_id = response.get_json()["file"]["id"]
        token = response.headers[ACCESS_TOKEN_HEADER]

        by_query = client.get(f"{FILES_URL}{file_id}/download?token={token}")
        by_header = client.get(
            f"{FILES_URL}{file_id}/download", headers={"Authorization": f"Bearer {token}"}
        )

        assert by_query.status_code == 200
        assert by_header.status_code == 200

    def test_wrong_token_looks_like_missing_file(self, client):
        file_id = upload(client).get_json()["file"]["id"]

        wrong = client.get(f"{FILES_URL}{file_id}/download?token={'0' * 64}")
        missing = client.get(f"{FILES_URL}{UNKNOWN_ID}/download")

        assert wrong.status_code == missing.status_code == 404
        assert wrong.get_json() == missing.get_json()

    def test_expired_file_is_not_downloadable(self, app, client, monkeypatch):
        file_id = upload(client).get_json()["file"]["id"]
        expire_everything(app, monkeypatch)

        assert client.get(f"{FILES_URL}{file_id}/download").status_code == 404


class TestRequiredTokenPolicy:
    """Test downloads when every request must carry the token."""

    @pytest.fixture
    def relay_config(self, tmp_path):
        return RelayConfig(storage_root_path=str(tmp_path / "relay"), token_policy="required")

    def test_missing_token_is_404(self, client):
        file_id = upload(client).get_json()["file"]["id"]
        assert client.get(f"{FILES_URL}{file_id}/download").status_code == 404

    def test_token_is_accepted(self, client):
        response = upload(client)
        file_id = response.get_json()["file"]["id"]
        token = response.headers[ACCESS_TOKEN_HEADER]

        download = client.get(
            f"{FILES_URL}{file_id}/download", headers={"Authorization": f"bearer {token}"}
        )

        assert download.status_code == 200
        assert download.data == b"hello world"
