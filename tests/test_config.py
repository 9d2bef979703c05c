"""Tests for configuration module."""

import json
from pathlib import Path

from vitalscan.config import (
	APIConfig,
	AppConfig,
	BreathConfig,
	PathsConfig,
	PulseConfig,
	SensorConfig,
	SessionConfig,
	configure_logging,
	get_config,
	reset_config,
)
from vitalscan.session.models import Modality, ScanConfig


class TestSensorConfig:
	def test_defaults(self):
		config = SensorConfig()
		assert config.preferred_facing == "environment"
		assert config.fft_size == 256
		assert config.smoothing == 0.8
		assert config.min_decibels == -100.0
		assert config.max_decibels == -30.0
		assert config.validate() == []

	def test_validate(self):
		config = SensorConfig(preferred_facing="sideways", fft_size=100, smoothing=1.0)
		errors = config.validate()
		assert len(errors) == 3


class TestEstimatorConfig:
	def test_pulse_defaults(self):
		config = PulseConfig()
		assert config.window_seconds == 10.0
		assert config.duration_ms == 10000

	def test_breath_defaults(self):
		config = BreathConfig()
		assert config.duration_ms == 20000
		assert config.on_threshold == 10.0
		assert config.off_threshold == 5.0

	def test_breath_thresholds_must_be_ordered(self):
		assert BreathConfig(on_threshold=5.0, off_threshold=5.0).validate()


class TestSessionConfig:
	def test_defaults(self):
		config = SessionConfig()
		assert config.sample_interval_ms == 100
		assert config.progress_interval_ms == 100
		assert config.progress_start_percent == 5.0
		assert config.phases == 1
		assert config.keep_stream_open is False
		assert config.record is False

	def test_validate(self):
		assert SessionConfig(phases=3).validate()
		assert SessionConfig(sample_interval_ms=5).validate()


class TestAPIConfig:
	def test_defaults(self):
		config = APIConfig()
		assert config.host == "0.0.0.0"
		assert config.port == 8000
		assert config.log_level == "INFO"
		assert config.result_history == 50


class TestPathsConfig:
	def test_defaults(self):
		config = PathsConfig()
		assert config.data_dir == Path("data")
		assert config.log_dir == Path("logs")


class TestAppConfig:
	def test_defaults(self):
		config = AppConfig()
		assert isinstance(config.sensor, SensorConfig)
		assert isinstance(config.session, SessionConfig)
		assert config.mock_sensors is False
		assert config.validate() == []

	def test_from_env(self, monkeypatch):
		monkeypatch.setenv("VITALSCAN_CAMERA_FACING", "none")
		monkeypatch.setenv("VITALSCAN_MIC_DEVICE", "2")
		monkeypatch.setenv("VITALSCAN_BREATH_DURATION_MS", "30000")
		monkeypatch.setenv("VITALSCAN_KEEP_STREAM_OPEN", "true")
		monkeypatch.setenv("VITALSCAN_PHASES", "2")
		monkeypatch.setenv("VITALSCAN_API_PORT", "9000")
		monkeypatch.setenv("VITALSCAN_MOCK_SENSORS", "1")

		config = AppConfig.from_env()
		assert config.sensor.preferred_facing is None
		assert config.sensor.mic_device == 2
		assert config.breath.duration_ms == 30000
		assert config.session.keep_stream_open is True
		assert config.session.phases == 2
		assert config.api.port == 9000
		assert config.mock_sensors is True

	def test_from_file(self, tmp_path):
		config_data = {
			"sensor": {"camera_index": 3, "preferred_facing": "user"},
			"pulse": {"duration_ms": 15000},
			"session": {"record": True},
			"paths": {"data_dir": str(tmp_path / "recordings")},
			"mock_sensors": True,
		}
		path = tmp_path / "config.json"
		path.write_text(json.dumps(config_data))

		config = AppConfig.from_file(path)
		assert config.sensor.camera_index == 3
		assert config.sensor.preferred_facing == "user"
		assert config.pulse.duration_ms == 15000
		assert config.session.record is True
		assert config.paths.data_dir == tmp_path / "recordings"
		assert config.mock_sensors is True

	def test_unknown_keys_ignored(self, tmp_path):
		path = tmp_path / "config.json"
		path.write_text(json.dumps({"sensor": {"bogus": 1}, "unknown_section": {}}))
		config = AppConfig.from_file(path)
		assert not hasattr(config.sensor, "bogus")

	def test_validate_prefixes_section(self):
		config = AppConfig()
		config.breath.on_threshold = 1.0
		config.session.phases = 5
		errors = config.validate()
		assert any(e.startswith("breath.") for e in errors)
		assert any(e.startswith("session.") for e in errors)

	def test_to_dict_is_json_serializable(self):
		data = AppConfig().to_dict()
		assert data["paths"]["data_dir"] == "data"
		json.dumps(data)

	def test_ensure_dirs(self, tmp_path):
		config = AppConfig()
		config.paths.data_dir = tmp_path / "a" / "data"
		config.paths.log_dir = tmp_path / "a" / "logs"
		config.ensure_dirs()
		assert config.paths.data_dir.is_dir()
		assert config.paths.log_dir.is_dir()


class TestGlobalConfig:
	def test_cached_until_reset(self, monkeypatch):
		first = get_config()
		assert get_config() is first

		monkeypatch.setenv("VITALSCAN_PULSE_DURATION_MS", "5000")
		assert get_config().pulse.duration_ms == 10000
		reset_config()
		assert get_config().pulse.duration_ms == 5000

	def test_configure_logging(self):
		configure_logging("DEBUG")
		configure_logging("not-a-level")


class TestScanConfig:
	def test_pulse_from_app_config(self):
		app = AppConfig()
		config = ScanConfig.for_modality(Modality.PULSE, app)
		assert config.duration_ms == 10000
		assert config.window_seconds == 10.0
		assert config.facing == "environment"

	def test_breath_from_app_config(self):
		app = AppConfig()
		app.breath.on_threshold = 12.0
		config = ScanConfig.for_modality(Modality.BREATH, app)
		assert config.duration_ms == 20000
		assert config.window_seconds is None
		assert config.facing is None
		assert config.on_threshold == 12.0

	def test_breath_ignores_facing(self):
		config = ScanConfig.for_modality(Modality.BREATH, AppConfig(), facing="user")
		assert config.facing is None
		assert ScanConfig.for_modality(Modality.PULSE, AppConfig(), facing="user").facing == "user"

	def test_none_overrides_are_ignored(self):
		config = ScanConfig.for_modality(Modality.PULSE, AppConfig(), duration_ms=None, phases=2)
		assert config.duration_ms == 10000
		assert config.phases == 2
