"""Breath-rate estimation from microphone loudness."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from vitalscan.errors import InsufficientSamplesError
from vitalscan.sensor.stream import Sample
from vitalscan.vitals.buffer import RollingWindowBuffer
from vitalscan.vitals.rate import breath_rate

logger = structlog.get_logger(__name__)


@dataclass
class BreathEstimate:
	rate_bpm: int
	cycle_count: int
	sample_count: int
	window_ms: float


class BreathCycleDetector:
	"""Hysteresis detector for quiet -> loud -> quiet breath cycles.

	A cycle is counted once, on entering the breath phase (value above
	on_threshold). The phase ends only when the value drops below
	off_threshold, so noise between the two thresholds cannot re-trigger.
	"""

	def __init__(self, on_threshold: float = 10.0, off_threshold: float = 5.0) -> None:
		if on_threshold <= off_threshold:
			raise ValueError(
				f"on_threshold ({on_threshold}) must be > off_threshold ({off_threshold})"
			)
		self.on_threshold = on_threshold
		self.off_threshold = off_threshold
		self.in_breath_phase = False
		self.cycle_count = 0

	def update(self, value: float) -> bool:
		"""Feed one loudness value. Returns True when a new cycle starts."""
		if not self.in_breath_phase and value > self.on_threshold:
			self.in_breath_phase = True
			self.cycle_count += 1
			return True
		if self.in_breath_phase and value < self.off_threshold:
			self.in_breath_phase = False
		return False

	def reset(self) -> None:
		self.in_breath_phase = False
		self.cycle_count = 0


class BreathRateEstimator:
	"""Cycle counter plus a full-session buffer kept for plotting and recordings."""

	def __init__(self, on_threshold: float = 10.0, off_threshold: float = 5.0) -> None:
		self.detector = BreathCycleDetector(on_threshold, off_threshold)
		self.buffer = RollingWindowBuffer(None)

	@property
	def cycle_count(self) -> int:
		return self.detector.cycle_count

	def push(self, sample: Sample) -> None:
		self.buffer.push(sample)
		if self.detector.update(sample.value):
			logger.debug("breath_detected", count=self.detector.cycle_count, volume=round(sample.value, 2))

	def estimate(self, window_ms: float) -> BreathEstimate:
		"""Rate from the live cycle count over the configured window.

		Raises:
			InsufficientSamplesError: fewer than 2 samples were observed
			ZeroDurationError: window_ms is not positive
		"""
		n = len(self.buffer)
		if n < 2:
			raise InsufficientSamplesError(f"Need at least 2 samples, have {n}")
		cycles = self.detector.cycle_count
		rate = breath_rate(cycles, window_ms)
		logger.debug("breath_estimated", cycles=cycles, window_ms=window_ms, bpm=rate)
		return BreathEstimate(
			rate_bpm=rate,
			cycle_count=cycles,
			sample_count=n,
			window_ms=window_ms,
		)

	def reset(self) -> None:
		self.detector.reset()
		self.buffer.clear()
