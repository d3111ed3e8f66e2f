"""Signal window buffer and the windowed statistics computed over it.

The window keeps a few seconds of raw accelerometer / magnetometer /
barometer samples.  Statistics treat every channel independently: a
sample missing a channel simply does not contribute to that channel, so a
phone without a barometer still yields accelerometer features.
"""

from __future__ import annotations

import math
import statistics
from collections import deque
from typing import Iterator, Sequence

from auto_context.models import MotionSample

DEFAULT_WINDOW_SECONDS = 8.0


class SignalWindow:
    """Time-bounded FIFO of :class:`MotionSample` objects.

    Every insert evicts samples older than ``window_seconds`` relative to the
    newest sample's time.  Samples arriving out of order are rejected.
    """

    def __init__(self, window_seconds: float = DEFAULT_WINDOW_SECONDS) -> None:
        self.window_seconds = window_seconds
        self._samples: deque[MotionSample] = deque()

    def push(self, sample: MotionSample) -> bool:
        """Append ``sample``; return False if it is older than the newest one.

        Late samples are dropped so the window stays time-ordered.
        """
        if self._samples and sample.time < self._samples[-1].time:
            return False
        self._samples.append(sample)
        cutoff = sample.time - self.window_seconds
        while self._samples and self._samples[0].time < cutoff:
            self._samples.popleft()
        return True

    def clear(self) -> None:
        self._samples.clear()

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[MotionSample]:
        return iter(self._samples)

    @property
    def samples(self) -> list[MotionSample]:
        return list(self._samples)

    @property
    def span_seconds(self) -> float:
        if len(self._samples) < 2:
            return 0.0
        return self._samples[-1].time - self._samples[0].time


# ── Statistics helpers ────────────────────────────────────────


def pstdev(values: Sequence[float]) -> float | None:
    """Population standard deviation, ``None`` for fewer than two values."""
    if len(values) < 2:
        return None
    return statistics.pstdev(values)


def rms_of(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return math.sqrt(sum(v * v for v in values) / len(values))


def linear_slope(times: Sequence[float], values: Sequence[float]) -> float:
    """Least-squares slope of ``values`` against ``times`` (units per second)."""
    n = len(values)
    if n < 2:
        return 0.0
    t_mean = statistics.fmean(times)
    v_mean = statistics.fmean(values)
    numerator = sum((t - t_mean) * (v - v_mean) for t, v in zip(times, values))
    denominator = sum((t - t_mean) ** 2 for t in times)
    if denominator == 0:
        return 0.0
    return numerator / denominator


def axis_rms_std(rows: Sequence[tuple[float, float, float]]) -> float | None:
    """Per-axis standard deviation combined as RMS across the three axes."""
    if len(rows) < 2:
        return None
    per_axis = [statistics.pstdev(axis) for axis in zip(*rows)]
    return rms_of(per_axis)


def accel_rows(samples: Sequence[MotionSample]) -> list[tuple[float, float, float]]:
    return [
        (s.ax, s.ay, s.az)  # type: ignore[misc]
        for s in samples
        if s.ax is not None and s.ay is not None and s.az is not None
    ]


def magneto_rows(samples: Sequence[MotionSample]) -> list[tuple[float, float, float]]:
    return [
        (s.mx, s.my, s.mz)  # type: ignore[misc]
        for s in samples
        if s.mx is not None and s.my is not None and s.mz is not None
    ]


def estimate_sample_rate(times: Sequence[float]) -> float | None:
    """Sample rate (Hz) from the median positive inter-sample gap."""
    gaps = [b - a for a, b in zip(times, times[1:]) if b - a > 0]
    if not gaps:
        return None
    return 1.0 / statistics.median(gaps)


def peak_autocorrelation(values: Sequence[float], min_lag: int, max_lag: int) -> float:
    """Peak normalised autocorrelation of ``values`` over ``[min_lag, max_lag]``.

    The series is de-meaned and each lag is normalised by the zero-lag
    energy, so a perfectly periodic signal scores close to 1.
    """
    n = len(values)
    max_lag = min(max_lag, n - 2)
    if n < 3 or min_lag > max_lag:
        return 0.0
    mean = statistics.fmean(values)
    centred = [v - mean for v in values]
    energy = sum(c * c for c in centred)
    if energy <= 1e-12:
        return 0.0

    peak = 0.0
    for lag in range(max(1, min_lag), max_lag + 1):
        acc = sum(centred[i] * centred[i + lag] for i in range(n - lag))
        peak = max(peak, acc / energy)
    return min(1.0, max(0.0, peak))


def walk_score(
    samples: Sequence[MotionSample],
    *,
    min_rate_hz: float = 15.0,
    step_band_hz: tuple[float, float] = (1.0, 2.5),
    jump_magnitude: float = 1.5,
    variance_scale: float = 4.0,
) -> float | None:
    """Normalised [0, 1] measure of periodic gait motion.

    With a fast enough accelerometer and at least two periods of the
    slowest step frequency, the score is the autocorrelation peak over the
    step-frequency band.  Slower feeds and shorter windows fall back to the
    fraction of large magnitude jumps blended with magnitude variance.
    ``None`` when fewer than three accelerometer samples exist.
    """
    accel = [s for s in samples if s.ax is not None and s.ay is not None and s.az is not None]
    if len(accel) < 3:
        return None

    times = [s.time for s in accel]
    magnitudes = [math.sqrt(s.ax ** 2 + s.ay ** 2 + s.az ** 2) for s in accel]  # type: ignore[operator]
    rate = estimate_sample_rate(times)

    if rate is not None and rate >= min_rate_hz:
        low_hz, high_hz = step_band_hz
        min_lag = max(1, int(round(rate / high_hz)))
        max_lag = int(round(rate / low_hz))
        # Needs two full slow-step periods; shorter windows use the heuristic
        if len(magnitudes) >= 2 * max_lag:
            return peak_autocorrelation(magnitudes, min_lag, max_lag)

    jumps = [abs(b - a) for a, b in zip(magnitudes, magnitudes[1:])]
    jump_fraction = sum(1 for j in jumps if j >= jump_magnitude) / len(jumps)
    variance_term = min(1.0, statistics.pvariance(magnitudes) / variance_scale)
    return min(1.0, 0.6 * jump_fraction + 0.4 * variance_term)
