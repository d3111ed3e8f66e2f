"""Tests for fork selection and the GPS speed estimator."""

import pytest

from auto_context.engine.fork import gps_indicates_underground, select_fork
from auto_context.engine.geo import (
    Area,
    GeoFix,
    GeoSpeedEstimator,
    apply_gps,
    haversine_m,
    is_inside_area,
)
from auto_context.engine.models import Fork
from auto_context.models import EvaluationSnapshot, ExtraSignals, GpsQuality


def _snap(quality=None, speed=0.0, moving=False) -> EvaluationSnapshot:
    return EvaluationSnapshot.model_validate(
        {
            "location": {"gps_quality": quality},
            "movement": {"speed": speed, "is_moving": moving},
        }
    )


class TestSelectFork:
    def test_gps_loss(self):
        extras = ExtraSignals(gps_loss_seconds=25)
        assert select_fork(_snap("good", speed=30), extras) is Fork.UNDERGROUND
        assert select_fork(_snap("good", speed=30), ExtraSignals(gps_loss_seconds=24.9)) is Fork.OUTDOOR

    def test_poor_gps(self):
        assert select_fork(_snap("poor", speed=30)) is Fork.UNDERGROUND

    def test_hysteresis_window(self):
        snap = _snap("good", speed=10, moving=True)
        assert select_fork(snap, ExtraSignals(timestamp=1005), last_strong_underground_at=1000) is Fork.UNDERGROUND
        assert select_fork(snap, ExtraSignals(timestamp=1015), last_strong_underground_at=1000) is Fork.OUTDOOR

    def test_hysteresis_needs_timestamp(self):
        snap = _snap("good", speed=10, moving=True)
        assert select_fork(snap, ExtraSignals(), last_strong_underground_at=1000) is Fork.OUTDOOR

    def test_stationary_without_good_fix_is_indoor(self):
        assert select_fork(_snap(None, speed=0.5)) is Fork.INDOOR
        assert select_fork(_snap(None, speed=0.5, moving=True)) is Fork.OUTDOOR
        assert select_fork(_snap("good", speed=0.5)) is Fork.OUTDOOR

    def test_gps_indicates_underground(self):
        assert gps_indicates_underground(_snap("poor")) is True
        assert gps_indicates_underground(_snap("good"), ExtraSignals(gps_loss_seconds=40)) is True
        assert gps_indicates_underground(_snap("good")) is False


class TestGeoSpeedEstimator:
    def test_haversine_one_degree_latitude(self):
        assert haversine_m(0.0, 0.0, 1.0, 0.0) == pytest.approx(111_195, rel=1e-3)

    def test_first_fix_has_zero_speed(self):
        est = GeoSpeedEstimator()
        out = est.update(GeoFix(lat=48.85, lon=2.35, time=0.0, accuracy=5))
        assert out.speed_kmh == 0.0
        assert out.gps_quality is GpsQuality.GOOD

    def test_speed_from_consecutive_fixes(self):
        est = GeoSpeedEstimator()
        est.update(GeoFix(lat=0.0, lon=0.0, time=0.0, accuracy=5))
        # ~11.1 m north in 10 s → ~4 km/h
        out = est.update(GeoFix(lat=0.0001, lon=0.0, time=10.0, accuracy=5))
        assert out.speed_kmh == pytest.approx(4.0, rel=0.01)

    def test_poor_accuracy(self):
        est = GeoSpeedEstimator()
        out = est.update(GeoFix(lat=0.0, lon=0.0, time=0.0, accuracy=80))
        assert out.gps_quality is GpsQuality.POOR
        out = est.update(GeoFix(lat=0.0, lon=0.0, time=5.0, accuracy=5))
        assert out.gps_quality is GpsQuality.POOR  # segment touches a poor fix

    def test_jump_is_clamped(self):
        est = GeoSpeedEstimator()
        est.update(GeoFix(lat=0.0, lon=0.0, time=0.0, accuracy=5))
        out = est.update(GeoFix(lat=1.0, lon=0.0, time=10.0, accuracy=5))
        assert out.speed_kmh == 200.0
        assert out.gps_quality is GpsQuality.POOR

    def test_short_interval_is_ignored(self):
        est = GeoSpeedEstimator()
        est.update(GeoFix(lat=0.0, lon=0.0, time=0.0))
        out = est.update(GeoFix(lat=0.001, lon=0.0, time=0.3))
        assert out.speed_kmh == 0.0

    def test_seconds_since_good_fix(self):
        est = GeoSpeedEstimator()
        assert est.seconds_since_good_fix(10.0) is None
        est.update(GeoFix(lat=0.0, lon=0.0, time=100.0, accuracy=5))
        est.update(GeoFix(lat=0.0, lon=0.0, time=110.0, accuracy=120))
        assert est.seconds_since_good_fix(130.0) == 30.0

    def test_inside_area(self):
        home = Area(lat=48.8566, lon=2.3522, radius_m=100)
        assert is_inside_area(48.8567, 2.3522, home)
        assert not is_inside_area(48.8600, 2.3522, home)


class TestApplyGps:
    def test_fix_overrides_speed_and_quality(self):
        est = GeoSpeedEstimator()
        snap = _snap("poor", speed=99.0)
        apply_gps(est, snap, ExtraSignals(), GeoFix(lat=0.0, lon=0.0, time=0.0, accuracy=5))
        out, _ = apply_gps(est, snap, ExtraSignals(), GeoFix(lat=0.0001, lon=0.0, time=10.0, accuracy=5))
        assert out.movement.speed == pytest.approx(4.0, rel=0.01)
        assert out.location.gps_quality is GpsQuality.GOOD
        assert snap.movement.speed == 99.0

    def test_missing_fixes_become_gps_loss(self):
        est = GeoSpeedEstimator()
        apply_gps(est, _snap(), ExtraSignals(timestamp=100.0), GeoFix(lat=0.0, lon=0.0, time=100.0))
        snap, extras = apply_gps(est, _snap("good", speed=30), ExtraSignals(timestamp=130.0))
        assert extras.gps_loss_seconds == 30.0
        assert select_fork(snap, extras) is Fork.UNDERGROUND

    def test_reported_gps_loss_is_kept(self):
        est = GeoSpeedEstimator()
        apply_gps(est, _snap(), ExtraSignals(), GeoFix(lat=0.0, lon=0.0, time=100.0))
        _, extras = apply_gps(est, _snap(), ExtraSignals(timestamp=200.0, gps_loss_seconds=3.0))
        assert extras.gps_loss_seconds == 3.0

    def test_no_loss_before_first_good_fix(self):
        est = GeoSpeedEstimator()
        _, extras = apply_gps(est, _snap(), ExtraSignals(timestamp=50.0))
        assert extras.gps_loss_seconds is None

    def test_home_presence_only_for_configured_areas(self):
        home = Area(lat=48.8566, lon=2.3522, radius_m=100)
        snap = EvaluationSnapshot.model_validate({"location": {"inside_work": True}})
        out, _ = apply_gps(
            GeoSpeedEstimator(), snap, ExtraSignals(), GeoFix(lat=48.8567, lon=2.3522, time=0.0), home=home
        )
        assert out.location.inside_home is True
        assert out.location.inside_work is True
