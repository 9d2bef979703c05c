"""Error taxonomy for scan sessions.

Every failure that can end a session maps to one ErrorReason. Exceptions are
raised inside the sensor and estimator layers; sessions catch them and keep a
tagged SessionError instead of letting them cross the event loop.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorReason(str, Enum):
	PERMISSION_DENIED = "permission_denied"
	DEVICE_NOT_FOUND = "device_not_found"
	DEVICE_BUSY = "device_busy"
	UNSUPPORTED = "unsupported"
	STREAM_INTERRUPTED = "stream_interrupted"
	INSUFFICIENT_SAMPLES = "insufficient_samples"
	DIVIDE_BY_ZERO = "divide_by_zero"


class VitalScanError(Exception):
	"""Base class for all scan failures."""

	reason: ErrorReason = ErrorReason.UNSUPPORTED


class SensorError(VitalScanError):
	"""Hardware access or streaming failure."""


class PermissionDeniedError(SensorError):
	reason = ErrorReason.PERMISSION_DENIED


class DeviceNotFoundError(SensorError):
	reason = ErrorReason.DEVICE_NOT_FOUND


class DeviceBusyError(SensorError):
	reason = ErrorReason.DEVICE_BUSY


class UnsupportedError(SensorError):
	reason = ErrorReason.UNSUPPORTED


class StreamInterruptedError(SensorError):
	reason = ErrorReason.STREAM_INTERRUPTED


class EstimationError(VitalScanError):
	"""Buffered data cannot produce a rate."""


class InsufficientSamplesError(EstimationError):
	reason = ErrorReason.INSUFFICIENT_SAMPLES


class ZeroDurationError(EstimationError):
	reason = ErrorReason.DIVIDE_BY_ZERO


@dataclass(frozen=True)
class SessionError:
	"""Tagged error value stored on a failed session."""
	reason: ErrorReason
	message: str = ""

	@classmethod
	def from_exception(cls, exc: BaseException) -> SessionError:
		if isinstance(exc, VitalScanError):
			return cls(reason=exc.reason, message=str(exc))
		return cls(reason=ErrorReason.STREAM_INTERRUPTED, message=f"{type(exc).__name__}: {exc}")

	def to_dict(self) -> dict[str, str]:
		return {"reason": self.reason.value, "message": self.message}
