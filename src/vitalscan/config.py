"""vitalscan settings.

get_config() reads VITALSCAN_* environment variables over the defaults;
the CLI can load a JSON file instead with --config.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog


@dataclass
class SensorConfig:
	"""Camera and microphone access configuration."""

	camera_index: int = 0
	preferred_facing: str | None = "environment"  # user, environment, or None
	facing_indices: dict[str, int] = field(default_factory=lambda: {"user": 0, "environment": 1})
	camera_width: int = 640
	camera_height: int = 480
	mic_device: str | int | None = None  # sounddevice default input when None
	mic_sample_rate: int = 44100
	fft_size: int = 256  # 128 frequency bins
	smoothing: float = 0.8  # temporal smoothing of magnitudes
	min_decibels: float = -100.0
	max_decibels: float = -30.0

	def validate(self) -> list[str]:
		"""Validate configuration values. Returns list of error messages."""
		errors = []

		if self.preferred_facing not in (None, "user", "environment"):
			errors.append(f"preferred_facing ({self.preferred_facing}) must be 'user', 'environment', or empty")
		if self.fft_size < 32 or self.fft_size & (self.fft_size - 1):
			errors.append(f"fft_size ({self.fft_size}) must be a power of two >= 32")
		if not 0.0 <= self.smoothing < 1.0:
			errors.append(f"smoothing ({self.smoothing}) must be in [0, 1)")
		if self.min_decibels >= self.max_decibels:
			errors.append(
				f"min_decibels ({self.min_decibels}) must be < max_decibels ({self.max_decibels})"
			)
		if self.mic_sample_rate <= 0:
			errors.append(f"mic_sample_rate ({self.mic_sample_rate}) must be positive")

		return errors


@dataclass
class PulseConfig:
	"""Optical pulse estimation configuration."""

	window_seconds: float = 10.0  # rolling buffer length
	duration_ms: int = 10000  # observation window


@dataclass
class BreathConfig:
	"""Acoustic breath-rate estimation configuration."""

	duration_ms: int = 20000
	on_threshold: float = 10.0  # enter breath phase above this
	off_threshold: float = 5.0  # leave breath phase below this

	def validate(self) -> list[str]:
		errors = []
		if self.on_threshold <= self.off_threshold:
			errors.append(
				f"on_threshold ({self.on_threshold}) must be > off_threshold ({self.off_threshold})"
			)
		if self.duration_ms <= 0:
			errors.append(f"duration_ms ({self.duration_ms}) must be positive")
		return errors


@dataclass
class SessionConfig:
	"""Session timing and lifecycle policy."""

	sample_interval_ms: int = 100
	progress_interval_ms: int = 100
	progress_start_percent: float = 5.0
	phases: int = 1  # 2 = two-phase protocol, halves reported separately
	keep_stream_open: bool = False  # retain stream after completion for re-scan
	record: bool = False  # write samples + result to a recording

	def validate(self) -> list[str]:
		errors = []
		if self.sample_interval_ms < 10 or self.sample_interval_ms > 1000:
			errors.append(f"sample_interval_ms ({self.sample_interval_ms}) must be between 10 and 1000")
		if self.progress_interval_ms < 10 or self.progress_interval_ms > 5000:
			errors.append(f"progress_interval_ms ({self.progress_interval_ms}) must be between 10 and 5000")
		if not 0.0 <= self.progress_start_percent < 100.0:
			errors.append(f"progress_start_percent ({self.progress_start_percent}) must be in [0, 100)")
		if self.phases not in (1, 2):
			errors.append(f"phases ({self.phases}) must be 1 or 2")
		return errors


@dataclass
class APIConfig:
	"""HTTP service settings."""

	host: str = "0.0.0.0"
	port: int = 8000
	cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
	log_level: str = "INFO"
	result_history: int = 50  # completed results kept in memory


@dataclass
class PathsConfig:
	"""Where recordings and logs live."""

	data_dir: Path = field(default_factory=lambda: Path("data"))
	log_dir: Path = field(default_factory=lambda: Path("logs"))


@dataclass
class AppConfig:
	"""Every config section in one object."""

	sensor: SensorConfig = field(default_factory=SensorConfig)
	pulse: PulseConfig = field(default_factory=PulseConfig)
	breath: BreathConfig = field(default_factory=BreathConfig)
	session: SessionConfig = field(default_factory=SessionConfig)
	api: APIConfig = field(default_factory=APIConfig)
	paths: PathsConfig = field(default_factory=PathsConfig)
	mock_sensors: bool = False

	@classmethod
	def from_env(cls) -> AppConfig:
		"""Defaults overridden by VITALSCAN_* environment variables."""
		config = cls()

		# Sensor config
		if camera_index := os.environ.get("VITALSCAN_CAMERA_INDEX"):
			config.sensor.camera_index = int(camera_index)
		if facing := os.environ.get("VITALSCAN_CAMERA_FACING"):
			config.sensor.preferred_facing = None if facing.lower() == "none" else facing.lower()
		if mic_device := os.environ.get("VITALSCAN_MIC_DEVICE"):
			config.sensor.mic_device = int(mic_device) if mic_device.isdigit() else mic_device
		if mic_rate := os.environ.get("VITALSCAN_MIC_SAMPLE_RATE"):
			config.sensor.mic_sample_rate = int(mic_rate)

		# Estimator config
		if pulse_ms := os.environ.get("VITALSCAN_PULSE_DURATION_MS"):
			config.pulse.duration_ms = int(pulse_ms)
		if breath_ms := os.environ.get("VITALSCAN_BREATH_DURATION_MS"):
			config.breath.duration_ms = int(breath_ms)
		if on_threshold := os.environ.get("VITALSCAN_BREATH_ON_THRESHOLD"):
			config.breath.on_threshold = float(on_threshold)
		if off_threshold := os.environ.get("VITALSCAN_BREATH_OFF_THRESHOLD"):
			config.breath.off_threshold = float(off_threshold)

		# Session config
		if interval := os.environ.get("VITALSCAN_SAMPLE_INTERVAL_MS"):
			config.session.sample_interval_ms = int(interval)
		if phases := os.environ.get("VITALSCAN_PHASES"):
			config.session.phases = int(phases)
		keep_open = os.environ.get("VITALSCAN_KEEP_STREAM_OPEN", "").lower()
		if keep_open:
			config.session.keep_stream_open = keep_open == "true"
		record = os.environ.get("VITALSCAN_RECORD", "").lower()
		if record:
			config.session.record = record == "true"

		# API config
		config.api.host = os.environ.get("VITALSCAN_API_HOST", config.api.host)
		config.api.port = int(os.environ.get("VITALSCAN_API_PORT", config.api.port))
		config.api.log_level = os.environ.get("VITALSCAN_LOG_LEVEL", config.api.log_level)

		# Paths config
		if data_dir := os.environ.get("VITALSCAN_DATA_DIR"):
			config.paths.data_dir = Path(data_dir)
		if log_dir := os.environ.get("VITALSCAN_LOG_DIR"):
			config.paths.log_dir = Path(log_dir)

		config.mock_sensors = os.environ.get("VITALSCAN_MOCK_SENSORS", "").lower() in ("true", "1", "yes")

		return config

	@classmethod
	def from_file(cls, path: str | Path) -> AppConfig:
		"""Load a JSON config file; same section names as to_dict()."""
		with open(path) as f:
			data = json.load(f)
		return cls._from_dict(data)

	@classmethod
	def _from_dict(cls, data: dict[str, Any]) -> AppConfig:
		"""Apply known keys from a nested dict; unknown keys are ignored."""
		config = cls()

		for section in ("sensor", "pulse", "breath", "session", "api"):
			if section in data:
				target = getattr(config, section)
				for key, value in data[section].items():
					if hasattr(target, key):
						setattr(target, key, value)

		if "paths" in data:
			for key, value in data["paths"].items():
				if hasattr(config.paths, key):
					setattr(config.paths, key, Path(value))

		if "mock_sensors" in data:
			config.mock_sensors = bool(data["mock_sensors"])

		return config

	def to_dict(self) -> dict[str, Any]:
		"""Plain dict view, paths rendered as strings."""
		from dataclasses import asdict
		data = asdict(self)
		data["paths"] = {k: str(v) for k, v in data["paths"].items()}
		return data

	def ensure_dirs(self) -> None:
		"""Make data and log directories."""
		self.paths.data_dir.mkdir(parents=True, exist_ok=True)
		self.paths.log_dir.mkdir(parents=True, exist_ok=True)

	def validate(self) -> list[str]:
		"""Errors from every section, prefixed with the section name."""
		errors = []

		errors.extend(f"sensor.{e}" for e in self.sensor.validate())

		if self.pulse.window_seconds <= 0:
			errors.append(f"pulse.window_seconds ({self.pulse.window_seconds}) must be positive")
		if self.pulse.duration_ms <= 0:
			errors.append(f"pulse.duration_ms ({self.pulse.duration_ms}) must be positive")

		errors.extend(f"breath.{e}" for e in self.breath.validate())
		errors.extend(f"session.{e}" for e in self.session.validate())

		if self.api.result_history < 1:
			errors.append(f"api.result_history ({self.api.result_history}) must be >= 1")

		return errors


# Cached by get_config()
_config: AppConfig | None = None


def get_config() -> AppConfig:
	"""Process-wide config, read from the environment on first use."""
	global _config
	if _config is None:
		_config = AppConfig.from_env()
	return _config


def reset_config() -> None:
	"""Drop the cached global config so the next get_config() re-reads the environment."""
	global _config
	_config = None


def configure_logging(level: str = "INFO") -> None:
	"""Route structlog through stdlib logging at the given level."""
	log_level = getattr(logging, level.upper(), logging.INFO)

	structlog.configure(
		processors=[
			structlog.stdlib.filter_by_level,
			structlog.stdlib.add_logger_name,
			structlog.stdlib.add_log_level,
			structlog.stdlib.PositionalArgumentsFormatter(),
			structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
			structlog.processors.StackInfoRenderer(),
			structlog.processors.format_exc_info,
			structlog.processors.UnicodeDecoder(),
			structlog.dev.ConsoleRenderer(),
		],
		wrapper_class=structlog.stdlib.BoundLogger,
		context_class=dict,
		logger_factory=structlog.stdlib.LoggerFactory(),
		cache_logger_on_first_use=True,
	)

	logging.basicConfig(
		format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
		level=log_level,
	)

	# uvicorn access lines would drown out scan events
	logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
	logging.getLogger("websockets").setLevel(logging.WARNING)
