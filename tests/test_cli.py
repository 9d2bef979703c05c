"""CLI smoke tests."""

import json
from dataclasses import asdict
from datetime import datetime

import pytest
from click.testing import CliRunner

from vitalscan.cli import main
from vitalscan.sensor.stream import Sample
from vitalscan.session.models import ScanConfig
from vitalscan.storage import ParquetRecorder, SessionMetadata


@pytest.fixture
def runner() -> CliRunner:
	return CliRunner()


class TestConfigCommand:
	def test_prints_valid_config(self, runner):
		result = runner.invoke(main, ["config"])
		assert result.exit_code == 0
		assert "Configuration valid" in result.output

	def test_invalid_file_exits_nonzero(self, runner, tmp_path):
		path = tmp_path / "bad.json"
		path.write_text(json.dumps({"session": {"phases": 4}}))
		result = runner.invoke(main, ["--config", str(path), "config"])
		assert result.exit_code == 1
		assert "session.phases" in result.output


class TestDevicesCommand:
	def test_mock_devices(self, runner):
		result = runner.invoke(main, ["devices", "--mock"])
		assert result.exit_code == 0
		assert "mock camera" in result.output
		assert "mock microphone" in result.output


class TestScanCommand:
	def test_mock_scan_writes_result(self, runner, tmp_path):
		output = tmp_path / "result.json"
		result = runner.invoke(main, ["scan", "breath", "--mock", "--duration-ms", "400", "-o", str(output)])
		assert result.exit_code == 0, result.output
		data = json.loads(output.read_text())
		assert data["modality"] == "breath"
		assert data["duration_ms"] == 400

	def test_rejects_unknown_modality(self, runner):
		result = runner.invoke(main, ["scan", "temperature", "--mock"])
		assert result.exit_code == 2


class TestReplayCommand:
	def test_replays_recording(self, runner, tmp_path):
		path = tmp_path / "rec.parquet"
		meta = SessionMetadata(
			session_id="cli1",
			modality="pulse",
			start_time=datetime(2025, 1, 1),
			config=asdict(ScanConfig(duration_ms=10000)),
		)
		pattern = [1.0, 2.0, 1.0, 1.0, 1.0, 1.0, 1.0, 1.0, 1.0, 1.0]
		with ParquetRecorder(path, meta) as recorder:
			for i in range(99):
				recorder.write_sample(Sample(0.1 * (i + 1), pattern[i % 10]))

		result = runner.invoke(main, ["replay", str(path)])
		assert result.exit_code == 0, result.output
		assert "complete" in result.output
		assert "61" in result.output
