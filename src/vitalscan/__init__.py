"""Pulse and breath-rate estimation from a camera and a microphone."""
__version__ = "0.1.0"

from vitalscan.errors import ErrorReason, SessionError, VitalScanError
from vitalscan.sensor.stream import MediaProvider, MediaStream, Sample, StreamKind
from vitalscan.session.controller import Session, SessionController
from vitalscan.session.models import Modality, ScanConfig, ScanResult, SessionEvent, SessionState
from vitalscan.vitals.breath import BreathCycleDetector, BreathRateEstimator
from vitalscan.vitals.buffer import RollingWindowBuffer
from vitalscan.vitals.pulse import PulseEstimator, count_strict_peaks

__all__ = [
	"Sample",
	"StreamKind",
	"MediaStream",
	"MediaProvider",
	"RollingWindowBuffer",
	"PulseEstimator",
	"count_strict_peaks",
	"BreathCycleDetector",
	"BreathRateEstimator",
	"Session",
	"SessionController",
	"SessionState",
	"SessionEvent",
	"ScanConfig",
	"ScanResult",
	"Modality",
	"ErrorReason",
	"SessionError",
	"VitalScanError",
]
