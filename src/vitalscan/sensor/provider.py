"""Hardware media provider and provider selection."""
from __future__ import annotations

import asyncio
import threading

import structlog

from vitalscan.config import AppConfig, SensorConfig
from vitalscan.errors import UnsupportedError

from .stream import MediaProvider, MediaStream, StreamKind

logger = structlog.get_logger(__name__)


class _PendingOpen:
	"""A blocking stream open running in a worker thread.

	If the waiting task is cancelled the thread cannot be stopped, so the
	stream is closed by whichever side finishes last: the worker once open()
	returns, or abandon() when the open already finished.
	"""

	def __init__(self, stream: MediaStream) -> None:
		self.stream = stream
		self._lock = threading.Lock()
		self._opened = False
		self._abandoned = False

	def run(self) -> None:
		self.stream.open()
		with self._lock:
			self._opened = True
			abandoned = self._abandoned
		if abandoned:
			logger.info("late_stream_closed", kind=self.stream.kind.value)
			self.stream.close()

	def abandon(self) -> None:
		with self._lock:
			self._abandoned = True
			opened = self._opened
		if opened:
			self.stream.close()


class DeviceMediaProvider(MediaProvider):
	"""Opens real cameras (OpenCV) and microphones (sounddevice).

	Device opening blocks, so it runs in a worker thread and the event loop
	stays free to process a cancel request meanwhile.
	"""

	def __init__(self, config: SensorConfig | None = None) -> None:
		self._config = config or SensorConfig()

	async def open_stream(self, kind: StreamKind, facing: str | None = None) -> MediaStream:
		if kind == StreamKind.CAMERA:
			stream = self._create_camera(facing)
		elif kind == StreamKind.MICROPHONE:
			stream = self._create_microphone()
		else:
			raise UnsupportedError(f"Unknown stream kind: {kind}")

		logger.info("requesting_access", kind=kind.value, facing=facing)
		pending = _PendingOpen(stream)
		try:
			await asyncio.to_thread(pending.run)
		except asyncio.CancelledError:
			pending.abandon()
			raise
		return stream

	def _create_camera(self, facing: str | None):
		try:
			from .camera import CameraStream, resolve_camera_index
		except ImportError as e:
			raise UnsupportedError(f"Camera backend unavailable: {e}") from e
		index = resolve_camera_index(self._config, facing)
		return CameraStream(index, self._config, facing=facing)

	def _create_microphone(self):
		try:
			from .microphone import MicrophoneStream
		except (ImportError, OSError) as e:
			# sounddevice raises OSError when the PortAudio library is missing
			raise UnsupportedError(f"Microphone backend unavailable: {e}") from e
		return MicrophoneStream(self._config)

	def list_devices(self) -> list[dict]:
		devices: list[dict] = []
		try:
			from .camera import list_cameras
			devices.extend(list_cameras())
		except ImportError as e:
			logger.warning("camera_backend_unavailable", error=str(e))
		try:
			from .microphone import list_microphones
			devices.extend(list_microphones())
		except (ImportError, OSError) as e:
			logger.warning("microphone_backend_unavailable", error=str(e))
		return devices


def create_provider(config: AppConfig | None = None) -> MediaProvider:
	"""Mock provider when mock sensors are enabled, hardware otherwise."""
	from vitalscan.config import get_config

	from .mock import MockMediaProvider, is_mock_enabled

	cfg = config or get_config()
	if cfg.mock_sensors or is_mock_enabled():
		return MockMediaProvider()
	return DeviceMediaProvider(cfg.sensor)
