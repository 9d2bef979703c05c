"""Smoke tests for API routes."""

import time
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from vitalscan.api.main import app
from vitalscan.api.routes.recordings import sanitize_recording_id
from vitalscan.api.state import reset_app_state
from vitalscan.sensor.stream import Sample
from vitalscan.storage import ParquetRecorder, SessionMetadata


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
	path = tmp_path / "data"
	monkeypatch.setenv("VITALSCAN_MOCK_SENSORS", "true")
	monkeypatch.setenv("VITALSCAN_DATA_DIR", str(path))
	monkeypatch.setenv("VITALSCAN_LOG_DIR", str(tmp_path / "logs"))
	return path


@pytest.fixture
def client(data_dir):
	reset_app_state()
	with TestClient(app) as c:
		yield c
	reset_app_state()


def wait_for_state(client, *states, timeout=3.0):
	deadline = time.monotonic() + timeout
	while time.monotonic() < deadline:
		data = client.get("/api/scans/current").json()
		if data["state"] in states:
			return data
		time.sleep(0.05)
	raise AssertionError(f"scan never reached {states}")


def make_recording(data_dir, session_id="abc123") -> str:
	meta = SessionMetadata(session_id=session_id, modality="breath", start_time=datetime(2025, 1, 1, 8, 30))
	path = data_dir / f"20250101_083000_breath_{session_id}.parquet"
	with ParquetRecorder(path, meta) as recorder:
		for i in range(5):
			recorder.write_sample(Sample(0.1 * (i + 1), 12.0))
	return path.stem


class TestHealthEndpoints:
	def test_root(self, client):
		resp = client.get("/")
		assert resp.status_code == 200
		data = resp.json()
		assert data["status"] == "ok"
		assert data["service"] == "vitalscan"

	def test_health(self, client):
		resp = client.get("/health")
		assert resp.status_code == 200
		data = resp.json()
		assert data["status"] == "healthy"
		assert data["session_state"] is None
		assert data["results"] == 0
		assert data["mock_sensors"] is True

	def test_lifespan_creates_data_dir(self, client, data_dir):
		assert data_dir.is_dir()


class TestScanRoutes:
	def test_no_current_scan(self, client):
		assert client.get("/api/scans/current").status_code == 404
		assert client.delete("/api/scans/current").status_code == 404

	def test_start_scan(self, client):
		resp = client.post("/api/scans", json={"modality": "pulse", "duration_ms": 5000})
		assert resp.status_code == 200
		data = resp.json()
		assert data["modality"] == "pulse"
		assert data["state"] == "sampling"
		assert data["result"] is None

	def test_cancel_scan(self, client):
		client.post("/api/scans", json={"modality": "breath", "duration_ms": 5000})
		resp = client.delete("/api/scans/current")
		assert resp.status_code == 200
		assert resp.json()["state"] == "cancelled"
		assert client.get("/api/scans/results").json() == []

	def test_running_scan_conflicts_without_replace(self, client):
		first = client.post("/api/scans", json={"modality": "pulse", "duration_ms": 5000}).json()
		resp = client.post("/api/scans", json={"modality": "breath", "replace": False})
		assert resp.status_code == 409
		assert client.get("/api/scans/current").json()["session_id"] == first["session_id"]

	def test_replace_cancels_running_scan(self, client):
		first = client.post("/api/scans", json={"modality": "pulse", "duration_ms": 5000}).json()
		second = client.post("/api/scans", json={"modality": "breath", "duration_ms": 5000}).json()
		assert second["session_id"] != first["session_id"]
		assert client.get("/api/scans/current").json()["modality"] == "breath"

	@pytest.mark.parametrize("body", [
		{"modality": "heart"},
		{"modality": "pulse", "duration_ms": 0},
		{"modality": "pulse", "phases": 3},
	])
	def test_invalid_request(self, client, body):
		assert client.post("/api/scans", json=body).status_code == 422

	def test_completed_scan_lands_in_results(self, client):
		client.post("/api/scans", json={"modality": "breath", "duration_ms": 500})
		data = wait_for_state(client, "complete", "error")
		assert data["state"] == "complete"
		assert data["progress_percent"] == 100.0
		assert data["result"]["modality"] == "breath"
		assert data["result"]["duration_ms"] == 500

		results = client.get("/api/scans/results").json()
		assert len(results) == 1
		assert results[0]["session_id"] == data["session_id"]
		assert client.get("/api/scans/results", params={"limit": 0}).json() == []
		assert client.get("/health").json()["results"] == 1

	def test_recorded_scan_is_listed(self, client):
		client.post("/api/scans", json={"modality": "pulse", "duration_ms": 400, "record": True})
		data = wait_for_state(client, "complete", "error")

		recordings = client.get("/api/recordings").json()
		assert len(recordings) == 1
		assert recordings[0]["session_id"] == data["session_id"]
		assert recordings[0]["status"] == data["state"]


class TestRecordingRoutes:
	def test_list_empty(self, client):
		resp = client.get("/api/recordings")
		assert resp.status_code == 200
		assert resp.json() == []

	def test_get_recording(self, client, data_dir):
		recording_id = make_recording(data_dir)
		resp = client.get(f"/api/recordings/{recording_id}")
		assert resp.status_code == 200
		data = resp.json()
		assert data["id"] == recording_id
		assert data["modality"] == "breath"
		assert data["sample_count"] == 5
		assert data["status"] == "complete"

	def test_download_recording(self, client, data_dir):
		recording_id = make_recording(data_dir)
		resp = client.get(f"/api/recordings/{recording_id}/download")
		assert resp.status_code == 200
		assert resp.content[:4] == b"PAR1"

	def test_delete_recording(self, client, data_dir):
		recording_id = make_recording(data_dir)
		assert client.delete(f"/api/recordings/{recording_id}").json() == {"deleted": recording_id}
		assert client.get(f"/api/recordings/{recording_id}").status_code == 404

	def test_missing_recording(self, client):
		assert client.get("/api/recordings/nope").status_code == 404

	def test_invalid_recording_id(self, client):
		assert client.get("/api/recordings/bad.id").status_code == 400


class TestSanitizeRecordingId:
	def test_valid(self):
		assert sanitize_recording_id("20250101_083000_breath_abc-1") == "20250101_083000_breath_abc-1"

	@pytest.mark.parametrize("recording_id", ["", "..", "a/b", "a\\b", "a b"])
	def test_rejected(self, recording_id):
		from fastapi import HTTPException

		with pytest.raises(HTTPException) as exc:
			sanitize_recording_id(recording_id)
		assert exc.value.status_code == 400


class TestScansWebSocket:
	def test_initial_status_and_ping(self, client):
		with client.websocket_connect("/ws/scans") as ws:
			msg = ws.receive_json()
			assert msg["type"] == "session_state"
			assert msg["payload"] is None

			ws.send_json({"type": "ping"})
			assert ws.receive_json()["type"] == "pong"
			assert client.get("/health").json()["ws_clients"] == 1

	def test_session_events_are_broadcast(self, client):
		with client.websocket_connect("/ws/scans") as ws:
			ws.receive_json()
			started = client.post("/api/scans", json={"modality": "pulse", "duration_ms": 5000}).json()

			msg = ws.receive_json()
			assert msg["type"] == "session_event"
			assert msg["payload"]["session_id"] == started["session_id"]
			assert msg["payload"]["state"] == "requesting_access"

			ws.send_json({"type": "get_status"})
			while msg["type"] != "session_state":
				msg = ws.receive_json()
			assert msg["payload"]["session_id"] == started["session_id"]
