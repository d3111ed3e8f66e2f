"""Tests for the signal window and windowed statistics."""

import math
import random

import pytest

from auto_context.engine.baseline import BaselineTracker
from auto_context.engine.signals import (
    SignalWindow,
    axis_rms_std,
    estimate_sample_rate,
    linear_slope,
    peak_autocorrelation,
    walk_score,
)
from auto_context.models import ExtraSignals, MotionSample, Vector3


class TestSignalWindow:
    def test_evicts_samples_older_than_window(self):
        window = SignalWindow(window_seconds=8.0)
        for t in range(0, 20):
            window.push(MotionSample(time=float(t), ax=0.0, ay=0.0, az=9.8))
        times = [s.time for s in window]
        assert times[0] == 11.0
        assert times[-1] == 19.0
        assert window.span_seconds == 8.0

    def test_late_sample_is_dropped(self):
        window = SignalWindow()
        assert window.push(MotionSample(time=100.0, az=9.8))
        assert not window.push(MotionSample(time=50.0, az=9.8))
        assert [s.time for s in window] == [100.0]
        assert window.push(MotionSample(time=100.0, az=9.7))
        assert len(window) == 2

    def test_clear(self):
        window = SignalWindow()
        window.push(MotionSample(time=1.0, p=1013.0))
        assert len(window) == 1
        window.clear()
        assert len(window) == 0

    def test_sample_from_extras_keeps_missing_channels(self):
        extras = ExtraSignals(timestamp=5.0, accel=Vector3(x=0.1, y=0.2, z=9.7))
        sample = MotionSample.from_extras(extras)
        assert sample.az == 9.7
        assert sample.mx is None and sample.p is None


class TestStatistics:
    def test_axis_rms_std(self):
        rows = [(1.0, 0.0, 0.0), (-1.0, 0.0, 0.0)]
        # x std = 1, y = z = 0 → sqrt(1/3)
        assert axis_rms_std(rows) == pytest.approx(math.sqrt(1 / 3))
        assert axis_rms_std(rows[:1]) is None

    def test_linear_slope(self):
        times = [0.0, 1.0, 2.0, 3.0]
        assert linear_slope(times, [10.0, 10.5, 11.0, 11.5]) == pytest.approx(0.5)

    def test_sample_rate_uses_median_gap(self):
        times = [0.0, 0.02, 0.04, 0.06, 0.5, 0.52]
        assert estimate_sample_rate(times) == pytest.approx(50.0)
        assert estimate_sample_rate([1.0, 1.0]) is None

    def test_autocorrelation_of_periodic_signal(self):
        values = [math.sin(2 * math.pi * i / 25) for i in range(400)]
        assert peak_autocorrelation(values, 20, 50) > 0.9

    def test_autocorrelation_of_constant_is_zero(self):
        assert peak_autocorrelation([1.0] * 100, 5, 20) == 0.0


def _samples(rate_hz: float, seconds: float, az):
    n = int(seconds * rate_hz) + 1
    return [
        MotionSample(time=i / rate_hz, ax=0.0, ay=0.0, az=az(i / rate_hz))
        for i in range(n)
    ]


class TestWalkScore:
    def test_gait_rhythm_scores_high(self):
        samples = _samples(50, 8, lambda t: 9.81 + 3 * math.sin(2 * math.pi * 2 * t))
        assert walk_score(samples) > 0.35

    def test_still_phone_scores_zero(self):
        samples = _samples(50, 8, lambda t: 9.81)
        assert walk_score(samples) == 0.0

    def test_low_rate_heuristic(self):
        # 5 Hz: alternating large jumps
        samples = _samples(5, 8, lambda t: 9.81 + (2.0 if round(t * 5) % 2 else -2.0))
        score = walk_score(samples)
        assert score is not None and score > 0.35

    @pytest.mark.parametrize("seconds", [0.5, 1.1, 1.6])
    def test_short_noisy_window_is_not_gait(self, seconds):
        rng = random.Random(7)
        samples = _samples(50, seconds, lambda t: 9.81 + rng.gauss(0, 0.02))
        assert walk_score(samples) < 0.1

    def test_insufficient_samples(self):
        assert walk_score(_samples(50, 0.02, lambda t: 9.81)) is None


class TestBaselineTracker:
    def test_first_reading_has_no_delta(self):
        tracker = BaselineTracker()
        deltas = tracker.update(12.0, 15.0, 45.0, 21.0)
        assert deltas.pm25 is None and deltas.humidity is None
        assert tracker.pm25 == 12.0

    def test_delta_uses_previous_baseline(self):
        tracker = BaselineTracker(alpha=0.5)
        tracker.update(10.0)
        deltas = tracker.update(20.0)
        assert deltas.pm25 == 10.0
        assert tracker.pm25 == 15.0

    def test_missing_channel_keeps_baseline(self):
        tracker = BaselineTracker()
        tracker.update(10.0, humidity=40.0)
        deltas = tracker.update(10.0, humidity=None)
        assert deltas.humidity is None
        assert tracker.humidity == 40.0

    def test_two_of_three_debounce(self):
        tracker = BaselineTracker()
        tracker.push_trigger(True)
        assert not tracker.debounced()
        tracker.push_trigger(False)
        tracker.push_trigger(True)
        assert tracker.debounced()
        tracker.push_trigger(False)
        assert tracker.recent_triggers == [False, True, False]
        assert not tracker.debounced()
