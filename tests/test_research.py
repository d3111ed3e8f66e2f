"""Tests for offline episode classification and exposure analysis."""

from datetime import datetime, timedelta

import pandas as pd
import pytest

from auto_context.engine.models import CookingSubtype
from auto_context.models import ContextTick
from auto_context.research.analysis import compute_summary, exposure_by_context, label_ticks
from auto_context.research.episodes import classify_episode, episode_features

START = datetime(2025, 3, 4, 12, 15)


def _measurements(pm25_at, r1: float, r10: float, rh_at=lambda k: 45.0) -> pd.DataFrame:
    """Ten minutes of clean air, then a 20-minute episode, one row per minute."""
    rows = []
    for k in range(-10, 21):
        pm25 = 10.0 if k < 0 else pm25_at(k)
        rows.append(
            {
                "timestamp": START + timedelta(minutes=k),
                "pm1": r1 * pm25,
                "pm25": pm25,
                "pm10": r10 * pm25,
                "humidity": 45.0 if k < 0 else rh_at(k),
                "temperature": 22.0,
            }
        )
    return pd.DataFrame(rows)


def _frying_curve(k: int) -> float:
    # Fast rise to 210, slow decay
    return 10.0 + 20.0 * k if k <= 10 else 210.0 - 15.0 * (k - 10)


def _boiling_curve(k: int) -> float:
    return 10.0 + 3.0 * k if k <= 10 else 40.0 - 2.0 * (k - 10)


class TestEpisodeFeatures:
    def test_frying_shape(self):
        f = episode_features(_measurements(_frying_curve, 0.5, 1.1), START, START + timedelta(minutes=20))
        assert f.baseline25 == 10.0
        assert f.peak25 == 210.0
        assert f.peak_height == 200.0
        assert f.rise_rate == 20.0
        assert f.decay_half_life == 7.0
        assert f.r1 == 0.5
        assert f.meal_time is True
        assert f.data_quality == "good"
        assert f.measurement_count == 21

    def test_humidity_rise(self):
        df = _measurements(_boiling_curve, 0.7, 1.05, rh_at=lambda k: 45.0 + 3.0 * min(k, 5))
        f = episode_features(df, START, START + timedelta(minutes=20))
        assert f.delta_rh == pytest.approx(13.5)

    def test_too_few_measurements(self):
        df = _measurements(_frying_curve, 0.5, 1.1).iloc[:12]
        f = episode_features(df, START, START + timedelta(minutes=20))
        assert f.data_quality == "poor"
        assert f.measurement_count == 0

    def test_walking_context_is_not_still(self):
        df = _measurements(_frying_curve, 0.5, 1.1)
        f = episode_features(df, START, START + timedelta(minutes=20), automatic_context="Outdoor walking")
        assert f.still is False
        f = episode_features(df, START, START + timedelta(minutes=20), automatic_context="Indoor at home")
        assert f.still is True
        assert f.at_home is True


class TestClassifyEpisode:
    def test_frying(self):
        result = classify_episode(
            _measurements(_frying_curve, 0.5, 1.1), START, START + timedelta(minutes=20),
            location_context="Home",
        )
        assert result.subtype is CookingSubtype.FRYING
        assert result.scores.predicted is CookingSubtype.FRYING
        assert result.scores.frying == pytest.approx(0.95)
        assert result.low_confidence is False

    def test_boiling(self):
        df = _measurements(_boiling_curve, 0.7, 1.05, rh_at=lambda k: 45.0 + 3.0 * min(k, 5))
        result = classify_episode(df, START, START + timedelta(minutes=20))
        assert result.subtype is CookingSubtype.BOILING
        assert result.scores.boiling > result.scores.frying

    def test_default_duration_is_thirty_minutes(self):
        result = classify_episode(_measurements(_frying_curve, 0.5, 1.1), START)
        assert result.features.duration == 30.0


def _tick(device_id: str, t: float, speed: float, signature, pm25: float) -> ContextTick:
    return ContextTick.model_validate(
        {
            "device_id": device_id,
            "snapshot": {
                "location": {"gps_quality": "good"},
                "movement": {"speed": speed, "is_moving": True, "walking_signature": signature},
            },
            "extras": {"timestamp": t, "pm25": pm25},
        }
    )


class TestExposure:
    @pytest.fixture
    def labelled(self) -> pd.DataFrame:
        return label_ticks(
            [
                _tick("a", 0.0, 10, True, 10.0),
                _tick("a", 60.0, 10, True, 20.0),
                _tick("a", 120.0, 18, False, 30.0),
                _tick("b", 0.0, 18, False, 40.0),
            ]
        )

    def test_label_ticks(self, labelled):
        assert list(labelled["label"]) == [
            "Outdoor jogging", "Outdoor jogging", "Outdoor cycling", "Outdoor cycling",
        ]
        assert set(labelled["fork"]) == {"outdoor"}

    def test_exposure_by_context(self, labelled):
        out = exposure_by_context(labelled, default_interval=30.0)
        assert list(out.index) == ["Outdoor jogging", "Outdoor cycling"]
        jog = out.loc["Outdoor jogging"]
        assert jog["ticks"] == 2
        assert jog["minutes"] == pytest.approx(2.0)
        assert jog["mean_pm25"] == pytest.approx(15.0)
        assert jog["dose"] == pytest.approx(30.0)
        assert out.loc["Outdoor cycling", "max_pm25"] == 40.0

    def test_empty_frame(self):
        assert exposure_by_context(label_ticks([])).empty

    def test_summary(self, labelled):
        summary = compute_summary(labelled)
        assert summary["count"] == 4
        assert summary["devices"] == 2
        assert summary["labels"]["Outdoor jogging"] == 2
        assert summary["mean_pm25"] == 25.0
