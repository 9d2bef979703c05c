"""Time-pruned sample buffer."""
from __future__ import annotations

from collections import deque
from collections.abc import Iterator

import numpy as np
from numpy.typing import NDArray

from vitalscan.sensor.stream import Sample


class RollingWindowBuffer:
	"""Samples in arrival order, oldest evicted once outside the window.

	After every push, each retained sample satisfies
	timestamp >= newest.timestamp - window_seconds. A window of None keeps
	everything (full-session buffers).
	"""

	def __init__(self, window_seconds: float | None = None) -> None:
		if window_seconds is not None and window_seconds <= 0:
			raise ValueError(f"window_seconds must be positive, got {window_seconds}")
		self.window_seconds = window_seconds
		self._samples: deque[Sample] = deque()

	def push(self, sample: Sample) -> None:
		if self._samples and sample.timestamp < self._samples[-1].timestamp:
			raise ValueError(
				f"Sample at {sample.timestamp} is older than newest buffered sample {self._samples[-1].timestamp}"
			)
		self._samples.append(sample)
		if self.window_seconds is None:
			return
		cutoff = sample.timestamp - self.window_seconds
		while self._samples[0].timestamp < cutoff:
			self._samples.popleft()

	def samples(self) -> list[Sample]:
		return list(self._samples)

	def values(self) -> NDArray[np.float64]:
		return np.fromiter((s.value for s in self._samples), dtype=np.float64, count=len(self._samples))

	@property
	def observed_duration(self) -> float:
		"""Seconds between oldest and newest retained sample."""
		if len(self._samples) < 2:
			return 0.0
		return self._samples[-1].timestamp - self._samples[0].timestamp

	def clear(self) -> None:
		self._samples.clear()

	def __len__(self) -> int:
		return len(self._samples)

	def __iter__(self) -> Iterator[Sample]:
		return iter(self._samples)
