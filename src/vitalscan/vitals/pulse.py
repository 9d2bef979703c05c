"""Optical pulse estimation from fingertip brightness."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
import structlog
from numpy.typing import NDArray

from vitalscan.errors import InsufficientSamplesError
from vitalscan.sensor.stream import Sample
from vitalscan.vitals.buffer import RollingWindowBuffer
from vitalscan.vitals.rate import pulse_rate

logger = structlog.get_logger(__name__)


@dataclass
class PulseEstimate:
	"""Pulse rate plus the numbers it was derived from."""
	rate_bpm: int
	peak_count: int
	sample_count: int
	duration_s: float


def count_strict_peaks(values: Sequence[float] | NDArray[np.float64]) -> int:
	"""Count interior samples strictly greater than both neighbours.

	Plateaus never count: [1, 2, 2, 1] has no strict maximum.
	"""
	v = np.asarray(values, dtype=np.float64)
	if len(v) < 3:
		return 0
	mid = v[1:-1]
	return int(np.count_nonzero((mid > v[:-2]) & (mid > v[2:])))


class PulseEstimator:
	"""Peak-counting pulse estimator over a rolling brightness window."""

	def __init__(self, window_seconds: float = 10.0) -> None:
		self.buffer = RollingWindowBuffer(window_seconds)

	def push(self, sample: Sample) -> None:
		self.buffer.push(sample)

	def estimate(self) -> PulseEstimate:
		"""Count peaks in the buffer and convert to beats per minute.

		Raises:
			InsufficientSamplesError: fewer than 2 samples buffered
			ZeroDurationError: all samples share one timestamp
		"""
		n = len(self.buffer)
		if n < 2:
			raise InsufficientSamplesError(f"Need at least 2 samples, have {n}")

		peaks = count_strict_peaks(self.buffer.values())
		duration = self.buffer.observed_duration
		rate = pulse_rate(peaks, duration)

		logger.debug("pulse_estimated", peaks=peaks, samples=n, duration_s=round(duration, 3), bpm=rate)
		return PulseEstimate(rate_bpm=rate, peak_count=peaks, sample_count=n, duration_s=duration)

	def reset(self) -> None:
		self.buffer.clear()
