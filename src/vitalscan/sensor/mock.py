"""Mock media provider for running without a camera or microphone.

Generates synthetic signals:
- Camera: fingertip red level with a sinusoidal pulse component
- Microphone: byte-scale loudness with loud breath bursts over a quiet floor

Enable with VITALSCAN_MOCK_SENSORS=true environment variable.
"""
from __future__ import annotations

import asyncio
import math
import os
from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np
import structlog

from vitalscan.errors import PermissionDeniedError, SensorError, StreamInterruptedError

from .stream import MediaProvider, MediaStream, StreamKind

logger = structlog.get_logger(__name__)


def is_mock_enabled() -> bool:
	"""Check if mock mode is enabled via environment variable."""
	return os.environ.get("VITALSCAN_MOCK_SENSORS", "").lower() in ("true", "1", "yes")


@dataclass
class MockConfig:
	"""Configuration for synthetic signal generation and failure injection."""
	sample_interval_s: float = 0.1  # nominal spacing between reads

	# Pulse simulation
	heart_rate_bpm: float = 72.0
	red_baseline: float = 180.0
	red_amplitude: float = 4.0

	# Breath simulation
	breathing_rate_bpm: float = 15.0
	breath_duty: float = 0.4  # fraction of each cycle that is audible
	loud_level: float = 25.0
	quiet_level: float = 2.0

	noise_std: float = 0.0
	seed: int | None = None

	# Failure injection
	denied_facings: set[str] = field(default_factory=set)
	open_error: dict[StreamKind, type[SensorError]] = field(default_factory=dict)
	open_delay_s: float = 0.0
	interrupt_after_reads: int | None = None


class MockStream(MediaStream):
	"""Synthetic stream. Scripted values take precedence over generated ones."""

	def __init__(
		self,
		kind: StreamKind,
		config: MockConfig | None = None,
		values: Sequence[float] | None = None,
		facing: str | None = None,
	) -> None:
		self.kind = kind
		self.facing = facing
		self._config = config or MockConfig()
		self._values = list(values) if values is not None else None
		self._rng = np.random.default_rng(self._config.seed)
		self._reads = 0
		self._closed = False
		self._interrupted = False
		self.close_calls = 0
		self.release_count = 0

	@property
	def is_open(self) -> bool:
		return not self._closed

	@property
	def is_live(self) -> bool:
		return self.is_open and not self._interrupted

	@property
	def reads(self) -> int:
		return self._reads

	def interrupt(self) -> None:
		"""Simulate the device disappearing."""
		self._interrupted = True

	def read_value(self) -> float:
		limit = self._config.interrupt_after_reads
		if limit is not None and self._reads >= limit:
			self._interrupted = True
		if not self.is_live:
			raise StreamInterruptedError(f"Mock {self.kind.value} stream interrupted")

		index = self._reads
		self._reads += 1

		if self._values is not None:
			return float(self._values[index % len(self._values)])

		t = index * self._config.sample_interval_s
		if self.kind == StreamKind.CAMERA:
			value = self._pulse_value(t)
		else:
			value = self._breath_value(t)
		if self._config.noise_std > 0:
			value += float(self._rng.normal(0.0, self._config.noise_std))
		return value

	def _pulse_value(self, t: float) -> float:
		hr_hz = self._config.heart_rate_bpm / 60.0
		return self._config.red_baseline + self._config.red_amplitude * math.sin(2 * math.pi * hr_hz * t)

	def _breath_value(self, t: float) -> float:
		period = 60.0 / self._config.breathing_rate_bpm
		position = (t % period) / period
		if position < self._config.breath_duty:
			return self._config.loud_level
		return self._config.quiet_level

	def close(self) -> None:
		self.close_calls += 1
		if self._closed:
			return
		self._closed = True
		self.release_count += 1
		logger.debug("mock_stream_closed", kind=self.kind.value, reads=self._reads)


class MockMediaProvider(MediaProvider):
	"""Implements the MediaProvider interface for drop-in testing.

	Usage:
		provider = MockMediaProvider()
		stream = await provider.open_stream(StreamKind.CAMERA)
		value = stream.read_value()
		stream.close()
	"""

	def __init__(
		self,
		config: MockConfig | None = None,
		scripted: dict[StreamKind, Sequence[float]] | None = None,
	) -> None:
		self._config = config or MockConfig()
		self._scripted = scripted or {}
		self.open_attempts: list[tuple[StreamKind, str | None]] = []
		self.streams: list[MockStream] = []
		logger.info("mock_provider_init")

	@property
	def config(self) -> MockConfig:
		return self._config

	@property
	def open_streams(self) -> list[MockStream]:
		return [s for s in self.streams if s.is_open]

	@property
	def release_count(self) -> int:
		return sum(s.release_count for s in self.streams)

	async def open_stream(self, kind: StreamKind, facing: str | None = None) -> MediaStream:
		self.open_attempts.append((kind, facing))
		if self._config.open_delay_s > 0:
			await asyncio.sleep(self._config.open_delay_s)

		if facing is not None and facing in self._config.denied_facings:
			raise PermissionDeniedError(f"Mock denied {kind.value} facing={facing}")
		error_cls = self._config.open_error.get(kind)
		if error_cls is not None:
			raise error_cls(f"Mock {kind.value} open failure")

		stream = MockStream(kind, self._config, values=self._scripted.get(kind), facing=facing)
		self.streams.append(stream)
		logger.info("mock_stream_opened", kind=kind.value, facing=facing)
		return stream

	def list_devices(self) -> list[dict]:
		return [
			{"kind": StreamKind.CAMERA.value, "index": 0, "name": "mock camera"},
			{"kind": StreamKind.MICROPHONE.value, "index": 0, "name": "mock microphone"},
		]
