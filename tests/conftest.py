"""Pytest fixtures."""

import pytest

from vitalscan.config import AppConfig, reset_config
from vitalscan.sensor.mock import MockMediaProvider
from vitalscan.sensor.stream import StreamKind
from vitalscan.session.scheduler import ManualScheduler


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
	"""Every test starts from default configuration."""
	import os

	for key in list(os.environ):
		if key.startswith("VITALSCAN_"):
			monkeypatch.delenv(key)
	reset_config()
	yield
	reset_config()


@pytest.fixture
def scheduler() -> ManualScheduler:
	return ManualScheduler()


@pytest.fixture
def provider() -> MockMediaProvider:
	return MockMediaProvider()


@pytest.fixture
def pulse_values() -> list[float]:
	"""One strict peak every 10 samples (1 s at 10 Hz)."""
	return [1.0, 2.0, 1.0, 1.0, 1.0, 1.0, 1.0, 1.0, 1.0, 1.0]


@pytest.fixture
def breath_values() -> list[float]:
	"""One breath every 40 samples (4 s at 10 Hz): 1 s loud, 3 s quiet."""
	return [20.0] * 10 + [2.0] * 30


@pytest.fixture
def scripted_provider(pulse_values, breath_values) -> MockMediaProvider:
	return MockMediaProvider(scripted={
		StreamKind.CAMERA: pulse_values,
		StreamKind.MICROPHONE: breath_values,
	})


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
	config = AppConfig()
	config.paths.data_dir = tmp_path / "data"
	config.paths.log_dir = tmp_path / "logs"
	return config
