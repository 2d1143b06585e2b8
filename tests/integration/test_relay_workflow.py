"""
End-to-end tests over the Flask app with real disk storage

Upload, inspect, download, expire and reap, plus the health endpoint.
"""

import os
from datetime import timedelta
from io import BytesIO

from app_factory import create_app
from relay.domain.file_storage import FileRegistry
from relay.domain.file_storage.entities import utc_now
from relay.domain.file_storage.repositories import FileRecordRepository
from relay.domain.file_storage.storage_repository import IFileStorageRepository

FILES_URL = "/api/v1/files/"


def upload(client, data=b"quarterly numbers", name="numbers.csv", mime_type="text/csv"):
    return client.post(
        FILES_URL,
        data={"file": (BytesIO(data), name, mime_type)},
        content_type="multipart/form-data",
    )


class TestRelayWorkflow:
    """Test the complete life of a relayed file."""

    def test_upload_download_expire_and_reap(self, app, client, monkeypatch, relay_config):
        # Upload
        response = upload(client)
        assert response.status_code == 201
        file_id = response.get_json()["file"]["id"]
        token = response.headers["X-Relay-Access-Token"]
        assert len(os.listdir(relay_config.content_dir)) == 1
        assert os.listdir(relay_config.staging_dir) == []

        # Download with token
        download = client.get(
            f"{FILES_URL}{file_id}/download", headers={"Authorization": f"Bearer {token}"}
        )
        assert download.data == b"quarterly numbers"
        assert client.get(f"{FILES_URL}{file_id}").get_json()["download_count"] == 1

        # Time passes beyond the TTL
        registry = app.container.resolve(FileRegistry)
        monkeypatch.setattr(registry, "_clock", lambda: utc_now() + timedelta(seconds=301))

        # The reaper removes both record and content
        stats = app.reaper.run_once()

        assert stats["expired_files_removed"] == 1
        assert stats["errors"] == []
        assert os.listdir(relay_config.content_dir) == []
        assert client.get(f"{FILES_URL}{file_id}").status_code == 404

    def test_records_survive_app_restart(self, client, relay_config):
        file_id = upload(client).get_json()["file"]["id"]

        restarted = create_app(relay_config=relay_config)
        try:
            response = restarted.test_client().get(f"{FILES_URL}{file_id}")
            assert response.status_code == 200
        finally:
            restarted.container.close()

    def test_content_deleted_behind_the_relay_heals(self, app, client, relay_config):
        file_id = upload(client).get_json()["file"]["id"]
        for name in os.listdir(relay_config.content_dir):
            os.remove(os.path.join(relay_config.content_dir, name))

        assert client.get(f"{FILES_URL}{file_id}/download").status_code == 404
        assert not app.container.resolve(FileRecordRepository).exists(file_id)

    def test_orphaned_content_is_reclaimed_after_grace(self, app, monkeypatch, relay_config):
        storage = app.container.resolve(IFileStorageRepository)
        storage.save("ffffffffffffffffffffffffffffffff", BytesIO(b"left behind"))

        registry = app.container.resolve(FileRegistry)
        monkeypatch.setattr(registry, "_clock", lambda: utc_now() + timedelta(hours=2))

        stats = app.reaper.run_once()

        assert stats["orphaned_content_removed"] == 1
        assert os.listdir(relay_config.content_dir) == []


class TestHealthEndpoint:

    def test_health_reports_components(self, app, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.get_json()
        assert body["storage"] == "writable"
        assert body["metadata"] == "json"
        assert body["reaper"] == "stopped"

    def test_running_reaper_reports_ok(self, app, client):
        app.reaper.start()
        try:
            response = client.get("/health")
        finally:
            app.reaper.stop(timeout=2)

        assert response.status_code == 200
        assert response.get_json()["status"] == "ok"
        assert response.get_json()["reaper"] == "running"
