"""Cooking detector — baseline-relative PM spikes confirmed by a state machine.

Cooking shows up as a sharp PM2.5 rise over the slowly adapting ambient
baseline, usually with a fine-particle fingerprint (PM1/PM2.5 in the frying
band, little coarse PM10) and often a humidity rise from boiling water.

State machine
-------------
::

    idle ──(2-of-3 trigger)──▶ episode ──(score_max ≥ 0.60 and ≥ 180 s)──▶ cooking
      ▲                           │                                         │
      └──────(600 s without an above-threshold tick)───────────────────────┘

All transitions live in :func:`step_episode`, a pure function of the
previous :class:`CookingEpisode` and one :class:`CookingReading`.
:class:`CookingDetector` owns the baselines and the current episode.
"""

from __future__ import annotations

import structlog

from auto_context.engine.baseline import BaselineTracker
from auto_context.engine.models import (
    CookingEpisode,
    CookingOutput,
    CookingPhase,
    CookingReading,
    CookingSubtype,
)
from auto_context.engine.thresholds import CookingThresholds

logger = structlog.get_logger(__name__)

# Breakfast, lunch, dinner as decimal hours (inclusive)
MEAL_WINDOWS: tuple[tuple[float, float], ...] = (
    (6.5, 9.5),
    (11.5, 14.0),
    (17.5, 21.0),
)

# ── Score weights ─────────────────────────────────────────────

_W_LARGE_SPIKE = 0.30
_W_MEDIUM_SPIKE = 0.15
_W_PM10_RISING = 0.10
_W_FRYING_BAND = 0.25
_W_FINE_PM = 0.10
_W_RH_RISE = 0.25
_W_TEMP_RISE = 0.10
_W_STILL = 0.05
_W_AT_HOME = 0.05
_W_BEACON = 0.10
_W_MEAL_TIME = 0.05

_P_VACUUM = 0.25
_P_SMOKE = 0.20
_P_DUST = 0.30


def is_meal_time(hour: int, minute: int = 0) -> bool:
    """True during typical breakfast, lunch or dinner hours."""
    t = hour + minute / 60
    return any(start <= t <= end for start, end in MEAL_WINDOWS)


def _ge(value: float | None, threshold: float) -> bool:
    return value is not None and value >= threshold


def score_tick(reading: CookingReading, cfg: CookingThresholds | None = None) -> float:
    """Additive cooking evidence for one tick, floored at zero.

    Components whose inputs are unavailable are skipped rather than scored
    as zero readings.
    """
    cfg = cfg or CookingThresholds()
    r1, r10 = reading.r1, reading.r10
    rh = reading.rh_delta
    rh_flat = rh is not None and rh < cfg.flat_rh
    score = 0.0

    if _ge(reading.pm25_delta, cfg.large_spike):
        score += _W_LARGE_SPIKE
    elif _ge(reading.pm25_delta, cfg.medium_spike):
        score += _W_MEDIUM_SPIKE

    if _ge(reading.pm10_delta, cfg.pm10_rise) and r10 is not None and r10 <= cfg.pm10_rise_ratio_max:
        score += _W_PM10_RISING
    if r1 is not None and cfg.frying_r1_band[0] <= r1 <= cfg.frying_r1_band[1]:
        score += _W_FRYING_BAND
    if r10 is not None and r10 <= cfg.fine_r10_max:
        score += _W_FINE_PM
    if _ge(rh, cfg.rh_rise):
        score += _W_RH_RISE
    if _ge(reading.temp_delta, cfg.temp_rise):
        score += _W_TEMP_RISE

    if reading.is_still:
        score += _W_STILL
    if reading.at_home:
        score += _W_AT_HOME
    if reading.has_beacon:
        score += _W_BEACON
    if reading.is_meal_time:
        score += _W_MEAL_TIME

    # Anti-false-positive signatures
    if not reading.is_still and r10 is not None and r10 > cfg.vacuum_r10:
        score -= _P_VACUUM  # vacuuming
    if r1 is not None and r1 > cfg.smoke_r1 and rh_flat:
        score -= _P_SMOKE  # smoke / incense
    if r10 is not None and r10 > cfg.dust_r10 and rh_flat:
        score -= _P_DUST  # dust / construction

    return max(0.0, round(score, 4))


def derive_subtype(reading: CookingReading, cfg: CookingThresholds | None = None) -> CookingSubtype:
    """Frying vs boiling from which signal dominates the current tick."""
    cfg = cfg or CookingThresholds()
    pm_strong = _ge(reading.pm25_delta, cfg.trigger_excess)
    rh_strong = _ge(reading.rh_delta, cfg.rh_rise)

    if pm_strong and not rh_strong:
        return CookingSubtype.FRYING
    if rh_strong and not pm_strong:
        return CookingSubtype.BOILING
    if pm_strong and rh_strong:
        if reading.pm25_delta >= cfg.frying_pm25_delta:  # type: ignore[operator]
            return CookingSubtype.FRYING
        return CookingSubtype.BOILING
    return CookingSubtype.UNKNOWN


def is_above_threshold(reading: CookingReading, cfg: CookingThresholds) -> bool:
    return _ge(reading.pm25_delta, cfg.above_pm25_delta) or (
        reading.rh_delta is not None and reading.rh_delta > cfg.above_rh_delta
    )


def step_episode(
    episode: CookingEpisode,
    reading: CookingReading,
    cfg: CookingThresholds | None = None,
) -> tuple[CookingEpisode, CookingOutput]:
    """Advance the cooking state machine by one tick."""
    cfg = cfg or CookingThresholds()
    now = reading.now

    if episode.phase is CookingPhase.IDLE:
        if not reading.triggered:
            return episode, CookingOutput(active=False, phase=CookingPhase.IDLE)
        episode = CookingEpisode(
            phase=CookingPhase.EPISODE,
            started_at=now,
            last_above_at=now,
        )
        logger.info("cooking.episode_started", at=now, pm25_delta=reading.pm25_delta)

    last_above = now if is_above_threshold(reading, cfg) else episode.last_above_at
    if last_above is None or now - last_above >= cfg.hold_seconds:
        logger.info(
            "cooking.episode_ended",
            at=now,
            was=episode.phase.value,
            score_max=episode.score_max,
            subtype=episode.subtype.value if episode.subtype else None,
        )
        return CookingEpisode(), CookingOutput(
            active=False, phase=CookingPhase.IDLE, score_max=episode.score_max
        )

    score = score_tick(reading, cfg)
    score_max = max(episode.score_max, score)
    phase = episode.phase

    if (
        phase is CookingPhase.EPISODE
        and score_max >= cfg.min_score
        and episode.started_at is not None
        and now - episode.started_at >= cfg.confirm_seconds
    ):
        phase = CookingPhase.COOKING
        logger.info("cooking.confirmed", at=now, score_max=score_max)

    subtype = episode.subtype
    if phase is CookingPhase.COOKING:
        current = derive_subtype(reading, cfg)
        if current is not CookingSubtype.UNKNOWN or subtype is None:
            subtype = current

    episode = episode.model_copy(
        update={
            "phase": phase,
            "last_above_at": last_above,
            "score_max": score_max,
            "subtype": subtype,
        }
    )
    active = phase is CookingPhase.COOKING
    return episode, CookingOutput(
        active=active,
        phase=phase,
        subtype=subtype if active else None,
        score=score,
        score_max=score_max,
    )


class CookingDetector:
    """Per-tracker cooking detector: baselines, debounce ring and episode."""

    def __init__(self, thresholds: CookingThresholds | None = None) -> None:
        self.thresholds = thresholds or CookingThresholds()
        self.baseline = BaselineTracker(
            alpha=self.thresholds.ewma_alpha,
            debounce_window=self.thresholds.debounce_window,
        )
        self.episode = CookingEpisode()

    def update(
        self,
        now: float,
        pm1: float | None,
        pm25: float,
        pm10: float | None,
        temp: float | None,
        rh: float | None,
        *,
        is_still: bool = False,
        at_home: bool = False,
        has_beacon: bool = False,
        is_meal_time: bool = False,
    ) -> CookingOutput:
        """Fold one tick into the baselines and advance the episode."""
        cfg = self.thresholds
        deltas = self.baseline.update(pm25, pm10, rh, temp)

        raw_trigger = _ge(deltas.pm25, cfg.trigger_excess) and _ge(deltas.pm25, cfg.trigger_min_delta)
        self.baseline.push_trigger(raw_trigger)

        reading = CookingReading(
            now=now,
            pm1=pm1,
            pm25=pm25,
            pm10=pm10,
            pm25_delta=deltas.pm25,
            pm10_delta=deltas.pm10,
            rh_delta=deltas.humidity,
            temp_delta=deltas.temperature,
            triggered=self.baseline.debounced(cfg.debounce_required),
            is_still=is_still,
            at_home=at_home,
            has_beacon=has_beacon,
            is_meal_time=is_meal_time,
        )
        self.episode, output = step_episode(self.episode, reading, cfg)
        return output

    def reset(self) -> None:
        self.baseline.reset()
        self.episode = CookingEpisode()
