"""Frame and audio-block reductions to one scalar per sample.

Pure numpy, so the reductions can be used (and tested) without a camera or
PortAudio present.
"""
from __future__ import annotations

import numpy as np
from numpy.typing import NDArray


def mean_red_channel(frame: NDArray[np.uint8], bgr: bool = True) -> float:
	"""Arithmetic mean of the red channel over all pixels.

	OpenCV delivers BGR frames, so red is the last channel unless bgr=False.
	"""
	if frame.ndim != 3 or frame.shape[2] < 3:
		raise ValueError(f"Expected HxWx3 frame, got shape {frame.shape}")
	channel = 2 if bgr else 0
	return float(frame[:, :, channel].mean())


class FrequencyAnalyser:
	"""Byte-scaled frequency magnitudes, shaped like a Web Audio AnalyserNode.

	fft_size / 2 bins, Blackman window, temporal smoothing across calls, and
	the [min_decibels, max_decibels] range mapped onto 0..255.
	"""

	def __init__(
		self,
		fft_size: int = 256,
		smoothing: float = 0.8,
		min_decibels: float = -100.0,
		max_decibels: float = -30.0,
	) -> None:
		if min_decibels >= max_decibels:
			raise ValueError("min_decibels must be < max_decibels")
		self.fft_size = fft_size
		self.smoothing = smoothing
		self.min_decibels = min_decibels
		self.max_decibels = max_decibels
		self._window = np.blackman(fft_size)
		self._smoothed = np.zeros(fft_size // 2, dtype=np.float64)

	@property
	def bin_count(self) -> int:
		return self.fft_size // 2

	def byte_frequency_data(self, block: NDArray[np.float32]) -> NDArray[np.uint8]:
		"""Magnitudes of the most recent fft_size samples as bytes."""
		samples = np.asarray(block, dtype=np.float64).ravel()[-self.fft_size:]
		if len(samples) < self.fft_size:
			samples = np.pad(samples, (self.fft_size - len(samples), 0))

		spectrum = np.fft.rfft(samples * self._window)[: self.bin_count]
		magnitude = np.abs(spectrum) / self.fft_size
		self._smoothed = self.smoothing * self._smoothed + (1.0 - self.smoothing) * magnitude

		with np.errstate(divide="ignore"):
			db = 20.0 * np.log10(self._smoothed)
		scaled = 255.0 / (self.max_decibels - self.min_decibels) * (db - self.min_decibels)
		return np.clip(np.floor(scaled), 0, 255).astype(np.uint8)

	def reset(self) -> None:
		self._smoothed[:] = 0.0


def mean_magnitude(bins: NDArray) -> float:
	"""Arithmetic mean across frequency bins."""
	if len(bins) == 0:
		raise ValueError("Empty frequency buffer")
	return float(np.mean(bins))
