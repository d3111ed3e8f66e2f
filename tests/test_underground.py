"""Tests for the underground classifier."""

import math
import random

import pytest

from auto_context.engine.signals import SignalWindow
from auto_context.engine.underground import classify_underground, compute_evidence
from auto_context.models import MotionSample

RATE_HZ = 50
SECONDS = 8


def _window(accel=None, mag=None, pressure=None, seconds=SECONDS) -> SignalWindow:
    """Fill a window (8 s by default) at 50 Hz from per-time channel functions."""
    window = SignalWindow(SECONDS)
    for i in range(int(RATE_HZ * seconds) + 1):
        t = i / RATE_HZ
        a = accel(i, t) if accel else (None, None, None)
        m = mag(i, t) if mag else (None, None, None)
        window.push(
            MotionSample(
                time=t,
                ax=a[0], ay=a[1], az=a[2],
                mx=m[0], my=m[1], mz=m[2],
                p=pressure(t) if pressure else None,
            )
        )
    return window


def still_accel(i, t):
    return (0.0, 0.0, 9.81)


def still_mag(i, t):
    return (20.0, -5.0, 40.0)


def gait_accel(i, t):
    return (0.0, 0.0, 9.81 + 3.0 * math.sin(2 * math.pi * 2 * t))


def train_mag(i, t):
    return (20.0 + 30.0 * math.sin(2 * math.pi * 0.25 * t), -5.0, 40.0)


class TestUndergroundClassifier:
    def test_walking_rhythm_is_walk_platform(self):
        result = classify_underground(_window(gait_accel, still_mag))
        assert result is not None
        assert result.label == "Walk platform"
        assert result.evidence.walking is True

    def test_walking_wins_over_magnetic_swings(self):
        result = classify_underground(_window(gait_accel, train_mag))
        assert result.label == "Walk platform"
        assert result.evidence.magneto_std >= 8.0

    def test_train(self):
        result = classify_underground(_window(still_accel, train_mag))
        assert result.label == "Underground Transport"
        assert result.confidence >= 0.55

    def test_escalator_from_pressure_slope(self):
        result = classify_underground(
            _window(still_accel, still_mag, pressure=lambda t: 1010.0 + 0.05 * t)
        )
        assert result.label == "Escalator underground"
        assert result.evidence.baro_slope > 0.03

    def test_station(self):
        def station_mag(i, t):
            return (20.0 + 6.0 * math.sin(2 * math.pi * 0.5 * t), -5.0, 40.0)

        result = classify_underground(_window(still_accel, station_mag))
        assert result.label == "Underground Station"

    def test_stand_platform(self):
        result = classify_underground(_window(still_accel, still_mag))
        assert result.label == "Stand platform"
        assert result.confidence > 0.3

    @pytest.mark.parametrize("seed", [1, 2, 3, 4])
    @pytest.mark.parametrize("seconds", [1.1, 1.6])
    def test_short_window_of_sensor_noise_is_standing(self, seed, seconds):
        rng = random.Random(seed)

        def noisy_accel(i, t):
            return (rng.gauss(0, 0.02), rng.gauss(0, 0.02), 9.81 + rng.gauss(0, 0.02))

        result = classify_underground(_window(noisy_accel, still_mag, seconds=seconds))
        assert result.evidence.walking is False
        assert result.evidence.walk_score < 0.1
        assert result.label == "Stand platform"

    def test_fallback_is_low_confidence_stand(self):
        def fidget_accel(i, t):
            # Constant magnitude, moderate per-axis spread, no rhythm
            return (1.5 if i % 2 else -1.5, 0.0, 9.81)

        result = classify_underground(_window(fidget_accel, still_mag))
        assert result.label == "Stand platform"
        assert result.confidence == 0.3

    def test_no_motion_channels(self):
        assert classify_underground(_window(pressure=lambda t: 1010.0)) is None

    def test_empty_window(self):
        assert classify_underground(SignalWindow()) is None

    def test_pressure_needs_three_samples(self):
        window = SignalWindow()
        window.push(MotionSample(time=0.0, ax=0.0, ay=0.0, az=9.8, p=1010.0))
        window.push(MotionSample(time=0.5, ax=0.0, ay=0.0, az=9.8, p=1010.2))
        evidence = compute_evidence(window)
        assert evidence.baro_std is None
        assert evidence.baro_slope is None
        assert evidence.accel_std == 0.0
