"""Tests for the rolling buffer and the pulse and breath estimators."""

import numpy as np
import pytest

from vitalscan.errors import ErrorReason, InsufficientSamplesError, ZeroDurationError
from vitalscan.sensor.stream import Sample
from vitalscan.vitals import (
	BreathCycleDetector,
	BreathRateEstimator,
	PulseEstimator,
	RollingWindowBuffer,
	breath_rate,
	count_strict_peaks,
	pulse_rate,
	round_rate,
)


def _samples(values, interval=0.1, start=0.1):
	return [Sample(timestamp=start + i * interval, value=v) for i, v in enumerate(values)]


class TestRollingWindowBuffer:
	def test_eviction_invariant_holds_after_every_push(self):
		rng = np.random.default_rng(0)
		buffer = RollingWindowBuffer(window_seconds=2.0)
		now = 0.0
		for _ in range(500):
			now += float(rng.uniform(0.0, 0.3))
			buffer.push(Sample(timestamp=now, value=float(rng.normal())))
			assert all(s.timestamp >= now - 2.0 for s in buffer)
			assert buffer.samples()[-1].timestamp == now

	def test_boundary_sample_is_kept(self):
		buffer = RollingWindowBuffer(window_seconds=10.0)
		buffer.push(Sample(0.0, 1.0))
		buffer.push(Sample(10.0, 2.0))
		assert len(buffer) == 2
		buffer.push(Sample(10.5, 3.0))
		assert [s.value for s in buffer] == [2.0, 3.0]

	def test_unbounded_window_keeps_everything(self):
		buffer = RollingWindowBuffer(None)
		for s in _samples(range(300)):
			buffer.push(s)
		assert len(buffer) == 300

	def test_rejects_out_of_order_sample(self):
		buffer = RollingWindowBuffer(5.0)
		buffer.push(Sample(1.0, 0.0))
		with pytest.raises(ValueError):
			buffer.push(Sample(0.5, 0.0))

	def test_rejects_non_positive_window(self):
		with pytest.raises(ValueError):
			RollingWindowBuffer(0)

	def test_values_and_duration(self):
		buffer = RollingWindowBuffer(10.0)
		for s in _samples([3.0, 4.0, 5.0]):
			buffer.push(s)
		np.testing.assert_array_equal(buffer.values(), [3.0, 4.0, 5.0])
		assert buffer.observed_duration == pytest.approx(0.2)
		buffer.clear()
		assert len(buffer) == 0
		assert buffer.observed_duration == 0.0


class TestPeakCounting:
	def test_fixed_sequence(self):
		# indices 1, 3 and 5 each exceed both neighbours
		assert count_strict_peaks([1, 2, 1, 3, 1, 2, 1]) == 3

	def test_first_four_samples(self):
		# indices 1 (value 2) and 3 (value 3) are the strict maxima
		assert count_strict_peaks([1, 2, 1, 3, 1]) == 2

	def test_independent_of_timestamps(self):
		values = [1, 2, 1, 3, 1]
		a = PulseEstimator(60.0)
		b = PulseEstimator(60.0)
		for s in _samples(values, interval=0.1):
			a.push(s)
		for s in _samples(values, interval=0.37, start=5.0):
			b.push(s)
		assert a.estimate().peak_count == b.estimate().peak_count == 2

	def test_plateau_is_not_a_peak(self):
		assert count_strict_peaks([1, 2, 2, 1]) == 0

	def test_endpoints_never_count(self):
		assert count_strict_peaks([5, 1, 5]) == 0
		assert count_strict_peaks([1, 2]) == 0
		assert count_strict_peaks([]) == 0


class TestRateFormulas:
	def test_pulse_rate(self):
		assert pulse_rate(12, 10.0) == 72

	def test_breath_rate(self):
		assert breath_rate(6, 20000) == 18

	def test_round_half_away_from_zero(self):
		assert round_rate(2.5) == 3
		assert round_rate(72.5) == 73
		assert round_rate(72.49) == 72

	def test_zero_duration(self):
		with pytest.raises(ZeroDurationError) as exc:
			pulse_rate(3, 0.0)
		assert exc.value.reason == ErrorReason.DIVIDE_BY_ZERO
		with pytest.raises(ZeroDurationError):
			breath_rate(3, 0)


class TestPulseEstimator:
	def test_one_peak_per_second(self):
		estimator = PulseEstimator(window_seconds=10.0)
		values = ([1.0, 2.0] + [1.0] * 8) * 10 + [1.0]
		for s in _samples(values, start=0.0):
			estimator.push(s)
		estimate = estimator.estimate()
		assert estimate.peak_count == 10
		assert estimate.duration_s == pytest.approx(10.0)
		assert estimate.rate_bpm == 60

	@pytest.mark.parametrize("count", [0, 1])
	def test_insufficient_samples(self, count):
		estimator = PulseEstimator()
		for s in _samples([1.0] * count):
			estimator.push(s)
		with pytest.raises(InsufficientSamplesError) as exc:
			estimator.estimate()
		assert exc.value.reason == ErrorReason.INSUFFICIENT_SAMPLES

	def test_same_timestamp_is_zero_duration(self):
		estimator = PulseEstimator()
		estimator.push(Sample(1.0, 1.0))
		estimator.push(Sample(1.0, 2.0))
		with pytest.raises(ZeroDurationError):
			estimator.estimate()

	def test_only_window_contributes(self):
		estimator = PulseEstimator(window_seconds=1.0)
		# early peaks fall out of the 1 s window
		for s in _samples([1, 5, 1, 5, 1] + [1] * 20):
			estimator.push(s)
		assert estimator.estimate().peak_count == 0


class TestBreathCycleDetector:
	def test_oscillation_between_thresholds_never_triggers(self):
		detector = BreathCycleDetector(on_threshold=10, off_threshold=5)
		for v in [6, 8] * 50:
			assert detector.update(v) is False
		assert detector.cycle_count == 0
		assert detector.in_breath_phase is False

	def test_counts_phase_entries_not_loud_samples(self):
		detector = BreathCycleDetector(on_threshold=10, off_threshold=5)
		for v in [2, 2, 15, 15, 2, 2, 15, 2]:
			detector.update(v)
		assert detector.cycle_count == 2

	def test_noise_between_thresholds_does_not_end_phase(self):
		detector = BreathCycleDetector(on_threshold=10, off_threshold=5)
		for v in [15, 7, 12, 7, 15]:
			detector.update(v)
		assert detector.cycle_count == 1
		assert detector.in_breath_phase is True

	def test_thresholds_are_strict(self):
		detector = BreathCycleDetector(on_threshold=10, off_threshold=5)
		detector.update(10)
		assert detector.cycle_count == 0
		detector.update(11)
		detector.update(5)
		assert detector.in_breath_phase is True
		detector.update(4)
		assert detector.in_breath_phase is False

	def test_requires_on_above_off(self):
		with pytest.raises(ValueError):
			BreathCycleDetector(on_threshold=5, off_threshold=5)

	def test_reset(self):
		detector = BreathCycleDetector()
		detector.update(50)
		detector.reset()
		assert detector.cycle_count == 0
		assert detector.in_breath_phase is False


class TestBreathRateEstimator:
	def test_six_cycles_over_twenty_seconds(self):
		estimator = BreathRateEstimator(10, 5)
		for s in _samples(([20.0] * 10 + [2.0] * 23) * 6):
			estimator.push(s)
		estimate = estimator.estimate(20000)
		assert estimate.cycle_count == 6
		assert estimate.rate_bpm == 18
		assert estimate.sample_count == 198

	@pytest.mark.parametrize("count", [0, 1])
	def test_insufficient_samples(self, count):
		estimator = BreathRateEstimator()
		for s in _samples([20.0] * count):
			estimator.push(s)
		with pytest.raises(InsufficientSamplesError):
			estimator.estimate(20000)

	def test_silence_is_zero_rate(self):
		estimator = BreathRateEstimator()
		for s in _samples([1.0] * 50):
			estimator.push(s)
		assert estimator.estimate(20000).rate_bpm == 0
