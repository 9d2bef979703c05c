"""Media stream abstraction shared by camera and microphone samplers."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

import structlog

from vitalscan.errors import DeviceNotFoundError, PermissionDeniedError

logger = structlog.get_logger(__name__)


class StreamKind(str, Enum):
	CAMERA = "camera"
	MICROPHONE = "microphone"


@dataclass(frozen=True)
class Sample:
	"""One scalar observation. timestamp is a monotonic instant in seconds."""
	timestamp: float
	value: float


class MediaStream(ABC):
	"""An open hardware stream yielding one scalar per read.

	close() must be idempotent: the second and later calls do nothing.
	"""

	kind: StreamKind

	@property
	@abstractmethod
	def is_open(self) -> bool:
		pass

	@property
	def is_live(self) -> bool:
		"""False once the device went away while the stream was open."""
		return self.is_open

	@abstractmethod
	def read_value(self) -> float:
		"""Return the current scalar. Raises StreamInterruptedError on device loss."""
		pass

	@abstractmethod
	def close(self) -> None:
		pass


class MediaProvider(ABC):
	"""Grants access to camera and microphone streams."""

	@abstractmethod
	async def open_stream(self, kind: StreamKind, facing: str | None = None) -> MediaStream:
		"""Open a stream. Raises a SensorError subclass when access fails."""
		pass

	def list_devices(self) -> list[dict]:
		return []


async def open_stream_with_fallback(
	provider: MediaProvider,
	kind: StreamKind,
	facing: str | None = None,
) -> MediaStream:
	"""Open a stream, retrying once without the facing preference.

	Only PermissionDenied and DeviceNotFound on a preferred facing trigger the
	retry; everything else, and a failed retry, propagates.
	"""
	try:
		return await provider.open_stream(kind, facing)
	except (PermissionDeniedError, DeviceNotFoundError) as e:
		if facing is None:
			raise
		logger.warning("open_stream_retry", kind=kind.value, facing=facing, reason=e.reason.value)
		return await provider.open_stream(kind, None)


def sample_once(stream: MediaStream, now: float) -> Sample:
	"""Read one value from the stream and stamp it with now."""
	return Sample(timestamp=now, value=float(stream.read_value()))
