"""GPS speed and fix-quality estimation feeding the evaluation snapshot."""

from __future__ import annotations

import math

from pydantic import BaseModel

from auto_context.models import Area, EvaluationSnapshot, ExtraSignals, GeoFix, GpsQuality

EARTH_RADIUS_M = 6_371_000.0


class SpeedEstimate(BaseModel):
    speed_kmh: float
    gps_quality: GpsQuality


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = phi2 - phi1
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def is_inside_area(lat: float, lon: float, area: Area) -> bool:
    return haversine_m(lat, lon, area.lat, area.lon) <= area.radius_m


class GeoSpeedEstimator:
    """EMA-smoothed speed from consecutive GPS fixes.

    A fix whose accuracy is worse than ``max_accuracy_m`` (or a segment
    touching one) is reported as poor quality.  Implausible jumps after a
    GPS dropout are clamped to ``max_jump_kmh`` and also flagged poor.
    """

    def __init__(
        self,
        alpha: float = 0.3,
        max_accuracy_m: float = 50.0,
        max_jump_kmh: float = 200.0,
        min_dt_seconds: float = 0.5,
    ) -> None:
        self.alpha = alpha
        self.max_accuracy_m = max_accuracy_m
        self.max_jump_kmh = max_jump_kmh
        self.min_dt_seconds = min_dt_seconds
        self._prev: GeoFix | None = None
        self._speed: float | None = None
        self._last_good_at: float | None = None

    def _poor(self, fix: GeoFix | None) -> bool:
        return fix is not None and fix.accuracy is not None and fix.accuracy > self.max_accuracy_m

    def update(self, fix: GeoFix) -> SpeedEstimate:
        quality = GpsQuality.POOR if self._poor(fix) else GpsQuality.GOOD
        prev, self._prev = self._prev, fix

        if prev is not None and fix.time - prev.time > self.min_dt_seconds:
            if self._poor(prev):
                quality = GpsQuality.POOR
            dt = fix.time - prev.time
            kmh = haversine_m(prev.lat, prev.lon, fix.lat, fix.lon) / dt * 3.6
            if kmh > self.max_jump_kmh:
                kmh = self.max_jump_kmh
                quality = GpsQuality.POOR
            if self._speed is None:
                self._speed = kmh
            else:
                self._speed = self.alpha * kmh + (1 - self.alpha) * self._speed

        if quality is GpsQuality.GOOD:
            self._last_good_at = fix.time
        return SpeedEstimate(speed_kmh=round(self._speed or 0.0, 3), gps_quality=quality)

    def seconds_since_good_fix(self, now: float) -> float | None:
        """Duration of the current GPS loss; ``None`` before any good fix."""
        if self._last_good_at is None:
            return None
        return max(0.0, now - self._last_good_at)

    @property
    def speed_kmh(self) -> float:
        return self._speed or 0.0

    def reset(self) -> None:
        self._prev = None
        self._speed = None
        self._last_good_at = None


def apply_gps(
    estimator: GeoSpeedEstimator,
    snapshot: EvaluationSnapshot,
    extras: ExtraSignals,
    fix: GeoFix | None = None,
    home: Area | None = None,
    work: Area | None = None,
) -> tuple[EvaluationSnapshot, ExtraSignals]:
    """Fold a device's GPS stream into one tick's snapshot and extras.

    A fix overrides the snapshot's speed and GPS quality and, for any
    configured area, its home / work presence.  ``gps_loss_seconds`` is
    filled from the last good fix whenever the caller left it empty, so a
    device whose fixes stop arriving drifts toward the underground fork.
    """
    if fix is not None:
        estimate = estimator.update(fix)
        location_update: dict = {"gps_quality": estimate.gps_quality}
        if home is not None:
            location_update["inside_home"] = is_inside_area(fix.lat, fix.lon, home)
        if work is not None:
            location_update["inside_work"] = is_inside_area(fix.lat, fix.lon, work)
        snapshot = snapshot.model_copy(
            update={
                "movement": snapshot.movement.model_copy(update={"speed": estimate.speed_kmh}),
                "location": snapshot.location.model_copy(update=location_update),
            }
        )

    now = extras.timestamp if extras.timestamp is not None else (fix.time if fix else None)
    if extras.gps_loss_seconds is None and now is not None:
        loss = estimator.seconds_since_good_fix(now)
        if loss is not None:
            extras = extras.model_copy(update={"gps_loss_seconds": loss})
    return snapshot, extras
