"""Fork selector — pick the UNDERGROUND / INDOOR / OUTDOOR regime for a tick."""

from __future__ import annotations

from auto_context.engine.models import Fork
from auto_context.engine.thresholds import ForkThresholds
from auto_context.models import EvaluationSnapshot, ExtraSignals, GpsQuality

_DEFAULT = ForkThresholds()


def gps_indicates_underground(
    snapshot: EvaluationSnapshot,
    extras: ExtraSignals | None = None,
    thresholds: ForkThresholds | None = None,
) -> bool:
    """True when GPS loss or quality alone puts the tick underground."""
    t = thresholds or _DEFAULT
    loss = extras.gps_loss_seconds if extras is not None else None
    if loss is not None and loss >= t.gps_loss_seconds:
        return True
    return snapshot.location.gps_quality is GpsQuality.POOR


def select_fork(
    snapshot: EvaluationSnapshot,
    extras: ExtraSignals | None = None,
    last_strong_underground_at: float | None = None,
    thresholds: ForkThresholds | None = None,
) -> Fork:
    """Decide which sub-classifier owns this tick.

    Lost or poor GPS means underground.  After a strong underground result
    the fork stays underground for a short hysteresis period so weak signal
    at a station exit does not flap.  A stationary user without a good fix
    is treated as indoor; everything else is outdoor.
    """
    t = thresholds or _DEFAULT
    extras = extras or ExtraSignals()
    quality = snapshot.location.gps_quality

    if gps_indicates_underground(snapshot, extras, t):
        return Fork.UNDERGROUND

    if (
        last_strong_underground_at is not None
        and extras.timestamp is not None
        and extras.timestamp - last_strong_underground_at < t.hysteresis_seconds
    ):
        return Fork.UNDERGROUND

    movement = snapshot.movement
    if quality is not GpsQuality.GOOD and movement.speed < t.stationary_speed and not movement.is_moving:
        return Fork.INDOOR
    return Fork.OUTDOOR
