"""Rate arithmetic shared by both estimators."""
from __future__ import annotations

import math

from vitalscan.errors import ZeroDurationError


def round_rate(value: float) -> int:
	"""Round half away from zero (2.5 -> 3), unlike round()'s banker's rounding."""
	return int(math.copysign(math.floor(abs(value) + 0.5), value))


def pulse_rate(peak_count: int, duration_s: float) -> int:
	"""Peaks per observed second, scaled to a per-minute rate."""
	if duration_s <= 0:
		raise ZeroDurationError(f"Observed duration is {duration_s}s")
	return round_rate(peak_count / duration_s * 60)


def breath_rate(cycle_count: int, window_ms: float) -> int:
	"""Breath cycles over a fixed window, scaled to a per-minute rate."""
	if window_ms <= 0:
		raise ZeroDurationError(f"Observation window is {window_ms}ms")
	return round_rate(cycle_count * 60000 / window_ms)
