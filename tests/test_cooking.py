"""Tests for cooking scoring, subtype derivation and the episode state machine."""

import pytest

from auto_context.engine.cooking import (
    CookingDetector,
    derive_subtype,
    is_meal_time,
    score_tick,
    step_episode,
)
from auto_context.engine.models import (
    CookingEpisode,
    CookingPhase,
    CookingReading,
    CookingSubtype,
)

CONTEXT = dict(is_still=True, at_home=True, has_beacon=False, is_meal_time=True)


def _warm_up(detector: CookingDetector, seconds: int = 60) -> int:
    """Settle the baselines on clean air; return the next timestamp."""
    for t in range(seconds):
        detector.update(float(t), 5.5, 10.0, 11.0, None, 45.0, **CONTEXT)
    return seconds


def _ramp(detector: CookingDetector, start: int, ticks: int, humid: bool = False):
    """PM2.5 climbing 0.6 µg/m³/s, which holds it ~30 above the EWMA baseline."""
    out = None
    for k in range(ticks):
        pm25 = 40.0 + 0.6 * k
        rh = 51.0 + 0.15 * k if humid else 45.0
        out = detector.update(float(start + k), 0.55 * pm25, pm25, 1.1 * pm25, None, rh, **CONTEXT)
    return out


class TestMealTime:
    @pytest.mark.parametrize("hour,minute,expected", [(7, 0, True), (6, 15, False), (12, 30, True), (15, 0, False), (21, 0, True), (21, 30, False)])
    def test_windows(self, hour, minute, expected):
        assert is_meal_time(hour, minute) is expected


class TestScore:
    def test_frying_like_tick(self):
        reading = CookingReading(
            now=0, pm1=22.0, pm25=40.0, pm10=44.0,
            pm25_delta=30.0, pm10_delta=33.0, rh_delta=0.0,
            is_still=True, at_home=True, is_meal_time=True,
        )
        # medium spike + PM10 rising + frying band + still/home/meal
        assert score_tick(reading) == pytest.approx(0.65)

    def test_dust_penalty_floors_at_zero(self):
        reading = CookingReading(now=0, pm1=5.0, pm25=20.0, pm10=60.0, rh_delta=0.0)
        assert score_tick(reading) == 0.0

    def test_missing_inputs_are_skipped(self):
        reading = CookingReading(now=0, pm25=40.0, is_still=True)
        assert score_tick(reading) == pytest.approx(0.05)

    @pytest.mark.parametrize(
        "pm25_delta,rh_delta,expected",
        [
            (30.0, 0.0, CookingSubtype.FRYING),
            (5.0, 6.0, CookingSubtype.BOILING),
            (30.0, 6.0, CookingSubtype.BOILING),
            (150.0, 6.0, CookingSubtype.FRYING),
            (5.0, 1.0, CookingSubtype.UNKNOWN),
        ],
    )
    def test_subtype(self, pm25_delta, rh_delta, expected):
        reading = CookingReading(now=0, pm25=50.0, pm25_delta=pm25_delta, rh_delta=rh_delta)
        assert derive_subtype(reading) is expected


class TestStateMachine:
    def test_idle_without_trigger(self):
        episode, out = step_episode(CookingEpisode(), CookingReading(now=0, pm25=10.0))
        assert episode.phase is CookingPhase.IDLE
        assert out.active is False

    def test_trigger_opens_episode(self):
        reading = CookingReading(now=100, pm25=50.0, pm25_delta=30.0, triggered=True)
        episode, out = step_episode(CookingEpisode(), reading)
        assert episode.phase is CookingPhase.EPISODE
        assert episode.started_at == 100
        assert out.active is False

    def test_confirmation_needs_minimum_duration(self):
        strong = dict(pm1=27.5, pm25=50.0, pm10=55.0, pm25_delta=30.0, pm10_delta=30.0, rh_delta=0.0, **CONTEXT)
        episode = CookingEpisode(phase=CookingPhase.EPISODE, started_at=0, last_above_at=0)
        episode, out = step_episode(episode, CookingReading(now=179, **strong))
        assert episode.phase is CookingPhase.EPISODE
        episode, out = step_episode(episode, CookingReading(now=180, **strong))
        assert episode.phase is CookingPhase.COOKING
        assert out.active is True
        assert out.subtype is CookingSubtype.FRYING

    def test_subtype_retained_over_unknown_ticks(self):
        episode = CookingEpisode(
            phase=CookingPhase.COOKING, started_at=0, last_above_at=0,
            score_max=0.8, subtype=CookingSubtype.BOILING,
        )
        # Above threshold via humidity only, too weak for a subtype
        episode, out = step_episode(episode, CookingReading(now=10, pm25=12.0, pm25_delta=2.0, rh_delta=3.0))
        assert out.subtype is CookingSubtype.BOILING


class TestCookingDetector:
    def test_frying_episode(self):
        detector = CookingDetector()
        start = _warm_up(detector)
        out = _ramp(detector, start, 200)
        assert out.active is True
        assert out.subtype is CookingSubtype.FRYING
        assert out.score_max >= 0.6

    def test_boiling_episode(self):
        detector = CookingDetector()
        start = _warm_up(detector)
        out = _ramp(detector, start, 200, humid=True)
        assert out.active is True
        assert out.subtype is CookingSubtype.BOILING

    def test_short_spike_is_not_cooking(self):
        detector = CookingDetector()
        start = _warm_up(detector)
        out = _ramp(detector, start, 60)
        assert out.active is False
        assert detector.episode.phase is CookingPhase.EPISODE

    def test_clean_air_never_triggers(self):
        detector = CookingDetector()
        _warm_up(detector, 300)
        assert detector.episode.phase is CookingPhase.IDLE

    def test_hold_then_exit_exactly_once(self):
        detector = CookingDetector()
        start = _warm_up(detector)
        out = _ramp(detector, start, 300)
        assert out.active is True
        last_above = start + 299

        transitions = []
        previous = out.active
        for t in range(last_above + 1, last_above + 700):
            out = detector.update(float(t), 5.5, 10.0, 11.0, None, 45.0, **CONTEXT)
            if t == last_above + 599:
                assert out.active is True
            if out.active != previous:
                transitions.append(t)
                previous = out.active

        assert transitions == [last_above + 600]
        assert detector.episode.phase is CookingPhase.IDLE

    def test_sustained_cooking_stays_active_past_hold(self):
        detector = CookingDetector()
        start = _warm_up(detector)
        confirmed_at = None
        for k in range(1200):
            pm25 = 40.0 + 0.6 * k
            out = detector.update(float(start + k), 0.55 * pm25, pm25, 1.1 * pm25, None, 45.0, **CONTEXT)
            if confirmed_at is None and out.active:
                confirmed_at = k
            elif confirmed_at is not None:
                assert out.active is True, f"dropped out at tick {k}"

        assert confirmed_at is not None
        assert 1200 - confirmed_at > 900
        assert detector.episode.phase is CookingPhase.COOKING

    def test_reset(self):
        detector = CookingDetector()
        start = _warm_up(detector)
        _ramp(detector, start, 10)
        detector.reset()
        assert detector.episode.phase is CookingPhase.IDLE
        assert detector.baseline.pm25 is None
