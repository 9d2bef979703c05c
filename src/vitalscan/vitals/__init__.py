"""Pulse and breath-rate estimation from sampled signals."""

from vitalscan.vitals.breath import BreathCycleDetector, BreathEstimate, BreathRateEstimator
from vitalscan.vitals.buffer import RollingWindowBuffer
from vitalscan.vitals.pulse import PulseEstimate, PulseEstimator, count_strict_peaks
from vitalscan.vitals.rate import breath_rate, pulse_rate, round_rate

__all__ = [
	"RollingWindowBuffer",
	"PulseEstimator",
	"PulseEstimate",
	"count_strict_peaks",
	"BreathCycleDetector",
	"BreathRateEstimator",
	"BreathEstimate",
	"pulse_rate",
	"breath_rate",
	"round_rate",
]
