"""Microphone sampler backed by sounddevice.

Each tick reduces the latest audio block to a byte-scaled frequency
magnitude buffer, the same shape a Web Audio AnalyserNode produces
(fft_size / 2 bins, Blackman window, temporal smoothing, dB range mapped to
0..255), and reports the mean over all bins.
"""
from __future__ import annotations

import threading

import numpy as np
import sounddevice as sd
import structlog

from vitalscan.config import SensorConfig
from vitalscan.errors import (
	DeviceBusyError,
	DeviceNotFoundError,
	PermissionDeniedError,
	SensorError,
	StreamInterruptedError,
)

from .signal import FrequencyAnalyser, mean_magnitude
from .stream import MediaStream, StreamKind

logger = structlog.get_logger(__name__)


def _map_portaudio_error(e: Exception, device: str | int | None) -> SensorError:
	message = str(e)
	lowered = message.lower()
	if "permission" in lowered or "not permitted" in lowered or "not authorized" in lowered:
		return PermissionDeniedError(f"Microphone permission denied: {message}")
	if "invalid device" in lowered or "no default input" in lowered or "invalid number of channels" in lowered:
		return DeviceNotFoundError(f"No microphone {device if device is not None else '(default)'}: {message}")
	return DeviceBusyError(f"Microphone unavailable: {message}")


class MicrophoneStream(MediaStream):
	"""sounddevice.InputStream feeding a FrequencyAnalyser."""

	kind = StreamKind.MICROPHONE

	def __init__(self, config: SensorConfig | None = None) -> None:
		self._config = config or SensorConfig()
		self.device = self._config.mic_device
		self._analyser = FrequencyAnalyser(
			fft_size=self._config.fft_size,
			smoothing=self._config.smoothing,
			min_decibels=self._config.min_decibels,
			max_decibels=self._config.max_decibels,
		)
		self._stream: sd.InputStream | None = None
		self._lock = threading.Lock()
		self._latest_block = np.zeros(self._config.fft_size, dtype=np.float32)
		self._live = False
		self._closed = False

	@property
	def is_open(self) -> bool:
		return self._stream is not None and not self._closed

	@property
	def is_live(self) -> bool:
		return self.is_open and self._live

	def open(self) -> None:
		try:
			self._stream = sd.InputStream(
				device=self.device,
				samplerate=self._config.mic_sample_rate,
				channels=1,
				dtype="float32",
				blocksize=self._config.fft_size,
				callback=self._on_audio,
				finished_callback=self._on_finished,
			)
			self._stream.start()
		except sd.PortAudioError as e:
			self._stream = None
			raise _map_portaudio_error(e, self.device) from e
		self._live = True
		logger.info("microphone_opened", device=self.device, sample_rate=self._config.mic_sample_rate)

	def _on_audio(self, indata, frames, time_info, status) -> None:
		if status:
			logger.debug("microphone_status", status=str(status))
		with self._lock:
			self._latest_block = indata[:, 0].copy()

	def _on_finished(self) -> None:
		if not self._closed:
			logger.warning("microphone_stream_finished", device=self.device)
			self._live = False

	def read_value(self) -> float:
		if not self.is_live:
			raise StreamInterruptedError("Microphone stream ended")
		with self._lock:
			block = self._latest_block
		return mean_magnitude(self._analyser.byte_frequency_data(block))

	def close(self) -> None:
		if self._closed:
			return
		self._closed = True
		if self._stream is not None:
			try:
				self._stream.stop()
				self._stream.close()
			except sd.PortAudioError as e:
				logger.warning("microphone_close_error", error=str(e))
		self._analyser.reset()
		logger.info("microphone_released", device=self.device)


def list_microphones() -> list[dict]:
	"""Input-capable devices as reported by PortAudio."""
	devices = []
	for index, info in enumerate(sd.query_devices()):
		if info.get("max_input_channels", 0) > 0:
			devices.append({"kind": StreamKind.MICROPHONE.value, "index": index, "name": info["name"]})
	return devices
