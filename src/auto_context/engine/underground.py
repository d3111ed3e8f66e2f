"""Underground classifier — sub-labels from the raw signal window.

When GPS is lost the only evidence left is the phone's own motion sensors.
Trains produce strong magnetic-field swings (traction motors) with little
body motion, escalators show a steady barometric slope, platforms are
quiet, and walking has a characteristic 1–2.5 Hz rhythm.  The checks run in
a fixed precedence order; the first one that fires wins.
"""

from __future__ import annotations

import statistics

import structlog

from auto_context.engine.models import UndergroundEvidence, UndergroundResult
from auto_context.engine.signals import (
    SignalWindow,
    accel_rows,
    axis_rms_std,
    linear_slope,
    magneto_rows,
    walk_score,
)
from auto_context.engine.thresholds import UndergroundThresholds
from auto_context.models import ContextLabel

logger = structlog.get_logger(__name__)

_MIN_PRESSURE_SAMPLES = 3


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def _excess(value: float | None, threshold: float) -> float:
    """Relative amount by which ``value`` exceeds ``threshold`` (0 when not)."""
    if value is None or threshold <= 0:
        return 0.0
    return max(0.0, (value - threshold) / threshold)


def _below(value: float | None, threshold: float) -> bool:
    return value is not None and value < threshold


def compute_evidence(
    window: SignalWindow,
    thresholds: UndergroundThresholds | None = None,
) -> UndergroundEvidence:
    """Compute every windowed statistic the classifier relies on."""
    t = thresholds or UndergroundThresholds()
    samples = window.samples

    pressures = [(s.time, s.p) for s in samples if s.p is not None]
    baro_std: float | None = None
    baro_slope: float | None = None
    if len(pressures) >= _MIN_PRESSURE_SAMPLES:
        times, values = zip(*pressures)
        baro_std = statistics.pstdev(values)
        baro_slope = linear_slope(times, values)

    score = walk_score(
        samples,
        min_rate_hz=t.autocorr_min_rate_hz,
        step_band_hz=t.step_band_hz,
        jump_magnitude=t.jump_magnitude,
        variance_scale=t.jump_variance_scale,
    )

    return UndergroundEvidence(
        sample_count=len(samples),
        accel_std=axis_rms_std(accel_rows(samples)),
        magneto_std=axis_rms_std(magneto_rows(samples)),
        baro_std=baro_std,
        baro_slope=baro_slope,
        walk_score=score,
        walking=score is not None and score > t.walk_score,
    )


def classify_underground(
    window: SignalWindow,
    thresholds: UndergroundThresholds | None = None,
) -> UndergroundResult | None:
    """Classify the current window into one of five underground sub-labels.

    Returns ``None`` when the window holds neither accelerometer nor
    magnetometer data; the caller then falls through to the rule engine.
    """
    t = thresholds or UndergroundThresholds()
    ev = compute_evidence(window, t)

    if ev.accel_std is None and ev.magneto_std is None:
        logger.debug("underground.insufficient_data", samples=ev.sample_count)
        return None

    accel = ev.accel_std
    mag = ev.magneto_std
    baro_moving = (ev.baro_std is not None and ev.baro_std >= t.escalator_baro_std) or (
        ev.baro_slope is not None and abs(ev.baro_slope) >= t.escalator_baro_slope
    )

    if ev.walking or (accel is not None and accel >= t.walk_accel_std):
        label = ContextLabel.WALK_PLATFORM
        confidence = 0.5 + 0.5 * max(
            _excess(ev.walk_score, t.walk_score),
            _excess(accel, t.walk_accel_std),
        )
    elif mag is not None and mag >= t.transport_magneto_std and _below(accel, t.transport_accel_max):
        label = ContextLabel.UNDERGROUND_TRANSPORT
        confidence = 0.55 + 0.45 * _excess(mag, t.transport_magneto_std)
    elif baro_moving and _below(accel, t.escalator_accel_max):
        label = ContextLabel.ESCALATOR_UNDERGROUND
        confidence = 0.5 + 0.25 * _excess(ev.baro_std, t.escalator_baro_std) + 0.25 * _excess(
            abs(ev.baro_slope) if ev.baro_slope is not None else None, t.escalator_baro_slope
        )
    elif (
        _below(accel, t.station_accel_max)
        and mag is not None
        and t.station_magneto_min <= mag < t.transport_magneto_std
    ):
        label = ContextLabel.UNDERGROUND_STATION
        confidence = 0.5 + 0.3 * (1.0 - accel / t.station_accel_max)  # type: ignore[operator]
    elif _below(accel, t.stand_accel_max) and _below(mag, t.stand_magneto_max):
        label = ContextLabel.STAND_PLATFORM
        confidence = 0.45 + 0.3 * (1.0 - accel / t.stand_accel_max)  # type: ignore[operator]
    else:
        label = ContextLabel.STAND_PLATFORM
        confidence = t.fallback_confidence

    result = UndergroundResult(
        label=label.value,
        confidence=round(_clamp01(confidence), 3),
        evidence=ev,
    )
    logger.debug(
        "underground.classified",
        label=result.label,
        confidence=result.confidence,
        accel_std=accel,
        magneto_std=mag,
        walk_score=ev.walk_score,
    )
    return result
