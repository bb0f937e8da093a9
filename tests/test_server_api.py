from __future__ import annotations

import io

import pytest

from server import create_app


@pytest.fixture()
def app(controller):
    app = create_app(controller)
    app.config.update(TESTING=True)
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def test_state_starts_idle(client):
    response = client.get("/api/state")

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["status"] == "IDLE"
    assert payload["is_busy"] is False
    assert payload["job"] is None
    assert response.headers.get("X-Trace-Id")


def test_upload_starts_tracking(client, backend, loops):
    backend.queue_upload(202, json={"jobId": "J1", "status": "UPLOADED"})

    response = client.post(
        "/api/upload",
        data={"file": (io.BytesIO(b"0123456789"), "scan one.png")},
        content_type="multipart/form-data",
    )

    assert response.status_code == 202
    payload = response.get_json()
    assert payload["status"] == "UPLOADED"
    assert payload["status_class"] == "pending"
    assert payload["job"]["id"] == "J1"
    assert payload["job"]["filename"] == "scan_one.png"
    assert len(loops.loops) == 1
    assert b"0123456789" in backend.upload_requests[0].content


def test_upload_failure_is_reported(client, backend):
    backend.queue_upload(500, text="Storage unavailable")

    response = client.post(
        "/api/upload",
        data={"file": (io.BytesIO(b"abc"), "scan.png")},
        content_type="multipart/form-data",
    )

    assert response.status_code == 502
    payload = response.get_json()
    assert payload["error"] == "Failed to create job: API call failed: Storage unavailable"
    assert payload["message"] == "Upload failed."


def test_upload_without_file_is_rejected(client, backend):
    response = client.post("/api/upload", data={}, content_type="multipart/form-data")

    assert response.status_code == 400
    assert response.get_json()["error"]["message"] == "Please select a file first."
    assert backend.requests == []


def test_state_reflects_completed_job(client, backend, loops):
    backend.queue_upload(202, json={"jobId": "J1", "status": "UPLOADED"})
    backend.queue_poll(json={"status": "COMPLETED"})
    client.post(
        "/api/upload",
        data={"file": (io.BytesIO(b"abc"), "scan.png")},
        content_type="multipart/form-data",
    )
    loops.loops[0].fire()

    payload = client.get("/api/state").get_json()

    assert payload["status"] == "COMPLETED"
    assert payload["download_url"] == "http://backend.test/api/v1/jobs/J1/download"
    assert payload["message"] == "Job J1 is complete!"


def test_select_file(client):
    response = client.post("/api/select", json={"filename": "invoice.pdf"})

    assert response.status_code == 200
    assert response.get_json()["message"] == "File selected: invoice.pdf"


def test_select_requires_json_object(client):
    response = client.post("/api/select", data="nope", content_type="text/plain")

    assert response.status_code == 400


def test_job_details_proxy(client, backend):
    backend.queue_other(200, json={"jobId": "J5", "status": "COMPLETED", "originalFilename": "a.png"})

    response = client.get("/api/jobs/J5")

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["original_filename"] == "a.png"
    assert payload["download_url"] == "http://backend.test/api/v1/jobs/J5/download"


def test_job_details_not_found(client, backend):
    backend.queue_other(404, text="")

    response = client.get("/api/jobs/missing")

    assert response.status_code == 404
    assert "error" in response.get_json()


def test_recent_jobs_proxy(client, backend):
    backend.queue_other(200, json=[{"jobId": "J1", "status": "FAILED", "errorMessage": "bad scan"}])

    response = client.get("/api/jobs/recent?page=0&size=5")

    assert response.status_code == 200
    items = response.get_json()["items"]
    assert items[0]["job_id"] == "J1"
    assert items[0]["error_message"] == "bad scan"
    assert backend.requests[0].url.path == "/api/v1/jobs/recent"


def test_health_reports_metrics(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["ok"] is True
    assert payload["polling"] is False
    assert payload["poll_interval_s"] == 3.0
    assert isinstance(payload["metrics"], dict)


def test_unknown_route_returns_json_404(client):
    response = client.get("/api/nope")

    assert response.status_code == 404
    assert response.get_json()["error"]["code"] == 404
