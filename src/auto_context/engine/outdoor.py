"""Outdoor speed classifier — speed bands gated by the walking signature."""

from __future__ import annotations

from auto_context.engine.thresholds import OutdoorThresholds
from auto_context.models import ContextLabel

_DEFAULT = OutdoorThresholds()


def classify_outdoor_speed(
    speed_kmh: float,
    walking_signature: bool | None,
    previous_label: str = "",
    thresholds: OutdoorThresholds | None = None,
) -> str | None:
    """Label an outdoor tick from speed alone, or ``None`` to defer to the rules.

    An absent walking signature counts as "no walking detected".  Driving is
    sticky at low speed (red lights, traffic) unless a gait rhythm appears,
    and very high speed is always driving whatever the signature says.
    """
    t = thresholds or _DEFAULT
    walking = walking_signature is True
    previous = previous_label or ""

    if speed_kmh >= t.driving and not walking:
        return ContextLabel.DRIVING.value
    if previous.startswith(ContextLabel.DRIVING.value) and speed_kmh < t.sticky_driving_max and not walking:
        return ContextLabel.DRIVING.value
    if speed_kmh >= t.driving_immune:
        return ContextLabel.DRIVING.value
    if t.cycling_min <= speed_kmh < t.driving and not walking:
        return ContextLabel.OUTDOOR_CYCLING.value

    walk_min, walk_max = t.walking
    if walking and walk_min <= speed_kmh <= walk_max:
        return ContextLabel.OUTDOOR_WALKING.value
    if walking and walk_max < speed_kmh <= t.jogging_max:
        return ContextLabel.OUTDOOR_JOGGING.value
    return None
