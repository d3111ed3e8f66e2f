"""Offline cooking-episode analysis — features and boiling / frying scores.

Works on a completed episode rather than tick by tick: the caller passes
the full measurement table and the episode bounds, and gets the shape of
the PM2.5 curve (rise rate, peak, decay) plus particle ratios and humidity
/ temperature changes, which separate boiling from frying better than any
single tick can.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Literal

import pandas as pd
import structlog
from pydantic import BaseModel

from auto_context.engine.cooking import is_meal_time
from auto_context.engine.models import CookingSubtype

logger = structlog.get_logger(__name__)

MEASUREMENT_COLUMNS = ("timestamp", "pm1", "pm25", "pm10", "humidity", "temperature")

_BASELINE_LOOKBACK = timedelta(minutes=10)
_DEFAULT_BASELINE = 10.0
_MIN_PM25_FOR_RATIO = 1.0


class EpisodeFeatures(BaseModel):
    r1: float = 0.0  # mean PM1/PM2.5 over the central third
    r10: float = 0.0  # mean PM10/PM2.5 over the central third
    rise_rate: float = 0.0  # µg/m³ per minute
    peak_height: float = 0.0
    decay_half_life: float = 0.0  # minutes
    delta_rh: float = 0.0
    delta_t: float = 0.0
    still: bool = True
    at_home: bool = False
    kitchen_beacon: bool = False
    meal_time: bool = False
    duration: float = 0.0  # minutes
    baseline25: float = _DEFAULT_BASELINE
    peak25: float = _DEFAULT_BASELINE
    start_time: datetime
    data_quality: Literal["good", "partial", "poor"] = "poor"
    measurement_count: int = 0


class EpisodeScores(BaseModel):
    boiling: float
    frying: float
    confidence: float
    predicted: CookingSubtype | None = None


class EpisodeClassification(BaseModel):
    subtype: CookingSubtype
    confidence: float
    low_confidence: bool
    features: EpisodeFeatures
    scores: EpisodeScores


def _find_baseline(df: pd.DataFrame, start: datetime) -> float:
    before = df[(df["timestamp"] >= start - _BASELINE_LOOKBACK) & (df["timestamp"] < start)]
    if not before.empty:
        return float(before["pm25"].mean())
    during = df[df["timestamp"] >= start]
    if not during.empty:
        return float(during["pm25"].head(3).min())
    return _DEFAULT_BASELINE


def _mentions(word: str, *contexts: str | None) -> bool:
    return any(word in c.lower() for c in contexts if c)


def episode_features(
    measurements: pd.DataFrame,
    start: datetime,
    end: datetime,
    location_context: str | None = None,
    automatic_context: str | None = None,
) -> EpisodeFeatures:
    """Compute shape and ratio features for one cooking episode.

    ``measurements`` needs the columns in :data:`MEASUREMENT_COLUMNS`; rows
    outside ``[start, end]`` are used only for the pre-episode baseline.
    """
    df = measurements.copy()
    df["timestamp"] = pd.to_datetime(df["timestamp"])
    ep = df[(df["timestamp"] >= start) & (df["timestamp"] <= end)].sort_values("timestamp")
    ep = ep.reset_index(drop=True)

    still = not _mentions("walking", automatic_context)
    at_home = _mentions("home", location_context, automatic_context)
    beacon = _mentions("kitchen", location_context, automatic_context)
    meal = is_meal_time(start.hour, start.minute)

    if len(ep) < 3:
        logger.warning("episodes.insufficient_measurements", count=len(ep))
        return EpisodeFeatures(
            still=still, at_home=at_home, kitchen_beacon=beacon, meal_time=meal, start_time=start
        )

    n = len(ep)
    duration = (end - start).total_seconds() / 60
    baseline25 = _find_baseline(df, start)
    peak25 = float(ep["pm25"].max())
    peak_height = peak25 - baseline25

    third = n // 3
    central = ep.iloc[third : n - third]
    central = central[central["pm25"] > _MIN_PM25_FOR_RATIO]
    r1 = float((central["pm1"] / central["pm25"]).mean()) if not central.empty else 0.0
    r10 = float((central["pm10"] / central["pm25"]).mean()) if not central.empty else 0.0

    mid = (third + n - third) // 2
    minutes = (ep["timestamp"].iloc[mid] - ep["timestamp"].iloc[0]).total_seconds() / 60
    rise_rate = (ep["pm25"].iloc[mid] - ep["pm25"].iloc[0]) / minutes if minutes > 0 else 0.0

    decay = 0.0
    peak_idx = int(ep["pm25"].idxmax())
    half_target = baseline25 + peak_height / 2
    after = ep.iloc[peak_idx + 1 :]
    below = after[after["pm25"] <= half_target]
    if not below.empty:
        decay = (below["timestamp"].iloc[0] - ep["timestamp"].iloc[peak_idx]).total_seconds() / 60

    plateau = ep.iloc[int(n * 0.25) : int(n * 0.5)]
    head = ep.iloc[:2]
    delta_rh = float(plateau["humidity"].mean() - head["humidity"].mean()) if not plateau.empty else 0.0
    delta_t = float(plateau["temperature"].mean() - head["temperature"].mean()) if not plateau.empty else 0.0

    if n < 5 or duration < 2:
        quality = "poor"
    elif n < 10 or duration < 5:
        quality = "partial"
    else:
        quality = "good"

    features = EpisodeFeatures(
        r1=round(r1, 3),
        r10=round(r10, 3),
        rise_rate=round(float(rise_rate), 2),
        peak_height=round(peak_height, 1),
        decay_half_life=round(decay, 1),
        delta_rh=round(delta_rh, 1),
        delta_t=round(delta_t, 2),
        still=still,
        at_home=at_home,
        kitchen_beacon=beacon,
        meal_time=meal,
        duration=round(duration, 1),
        baseline25=round(baseline25, 1),
        peak25=round(peak25, 1),
        start_time=start,
        data_quality=quality,
        measurement_count=n,
    )
    logger.debug("episodes.features", **features.model_dump(exclude={"start_time"}))
    return features


def episode_scores(f: EpisodeFeatures) -> EpisodeScores:
    """Boiling and frying scores with shared context bonuses and penalties."""
    boiling = 0.0
    if f.delta_rh >= 6:
        boiling += 0.50
    if f.r10 <= 1.1:
        boiling += 0.15
    if f.peak_height < 100:
        boiling += 0.10
    if 0 <= f.delta_t <= 1.5:
        boiling += 0.05
    if f.r1 >= 0.60:
        boiling += 0.05

    frying = 0.0
    if 0.35 <= f.r1 <= 0.65:
        frying += 0.30
    if f.peak_height >= 100:
        frying += 0.25
    if f.rise_rate >= 15:
        frying += 0.20
    if f.decay_half_life >= 10:
        frying += 0.10
    if f.r10 <= 1.2:
        frying += 0.05

    bonus = 0.05 * f.still + 0.05 * f.at_home + 0.10 * f.kitchen_beacon + 0.05 * f.meal_time

    penalty = 0.0
    if not f.still and f.r10 > 1.4:
        penalty += 0.25  # vacuuming
    if f.r1 > 0.80 and f.delta_rh < 2:
        penalty += 0.20  # smoke / incense
    if f.r10 > 1.8 and f.delta_rh < 2:
        penalty += 0.30  # dust / construction

    boiling = max(0.0, boiling + bonus - penalty)
    frying = max(0.0, frying + bonus - penalty)

    best = max(boiling, frying)
    total = boiling + frying
    confidence = best / max(total, 1.0) if total > 0 else 0.0

    predicted = None
    if best > 0.3:
        predicted = CookingSubtype.BOILING if boiling > frying else CookingSubtype.FRYING

    return EpisodeScores(
        boiling=round(boiling, 3),
        frying=round(frying, 3),
        confidence=round(confidence, 3),
        predicted=predicted,
    )


def classify_episode(
    measurements: pd.DataFrame,
    start: datetime,
    end: datetime | None = None,
    location_context: str | None = None,
    automatic_context: str | None = None,
) -> EpisodeClassification:
    """Pick boiling or frying for a finished episode (30 min when ``end`` is unknown)."""
    end = end or start + timedelta(minutes=30)
    features = episode_features(measurements, start, end, location_context, automatic_context)
    scores = episode_scores(features)

    subtype = CookingSubtype.BOILING if scores.boiling >= scores.frying else CookingSubtype.FRYING
    confidence = min(1.0, max(0.0, max(scores.boiling, scores.frying)))
    result = EpisodeClassification(
        subtype=subtype,
        confidence=confidence,
        low_confidence=confidence < 0.5,
        features=features,
        scores=scores,
    )
    logger.info(
        "episodes.classified",
        subtype=subtype.value,
        confidence=confidence,
        boiling=scores.boiling,
        frying=scores.frying,
        duration=features.duration,
    )
    return result
