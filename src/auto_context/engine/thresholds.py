"""Named, overridable policy constants for every classifier.

The default values were chosen empirically on field recordings.  They are
policy, not incidental detail: change them only against a labelled
dataset.  Each group is a frozen Pydantic model so a tracker can be built
with a variant (``UndergroundThresholds(walk_score=0.4)``) without touching
module globals.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from auto_context.config import Settings


class UndergroundThresholds(BaseModel):
    """Signal-window statistics thresholds for the underground classifier."""

    model_config = ConfigDict(frozen=True)

    window_seconds: float = 8.0
    # Walk score
    autocorr_min_rate_hz: float = 15.0
    step_band_hz: tuple[float, float] = (1.0, 2.5)
    walk_score: float = 0.35
    jump_magnitude: float = 1.5  # m/s² sample-to-sample magnitude change
    jump_variance_scale: float = 4.0
    # Classification precedence
    walk_accel_std: float = 1.2
    transport_magneto_std: float = 8.0
    transport_accel_max: float = 0.6
    escalator_baro_std: float = 0.05  # hPa
    escalator_baro_slope: float = 0.03  # hPa/s
    escalator_accel_max: float = 1.0
    station_accel_max: float = 0.15
    station_magneto_min: float = 2.0
    stand_accel_max: float = 0.4
    stand_magneto_max: float = 2.0
    fallback_confidence: float = 0.3
    strong_confidence: float = Field(
        0.55, description="Results at or above this refresh the fork hysteresis."
    )


class CookingThresholds(BaseModel):
    """Baseline, trigger, scoring and timing constants for cooking detection."""

    model_config = ConfigDict(frozen=True)

    ewma_alpha: float = 0.02
    trigger_excess: float = 25.0  # PM2.5 µg/m³ above baseline
    trigger_min_delta: float = 10.0
    debounce_window: int = 3
    debounce_required: int = 2
    # Exit / hold
    above_pm25_delta: float = 20.0
    above_rh_delta: float = 2.0
    hold_seconds: float = 600.0
    # Confirmation
    min_score: float = 0.60
    confirm_seconds: float = 180.0
    # Score components
    large_spike: float = 100.0
    medium_spike: float = 25.0
    pm10_rise: float = 10.0
    pm10_rise_ratio_max: float = 1.2
    frying_r1_band: tuple[float, float] = (0.35, 0.70)
    fine_r10_max: float = 1.0
    rh_rise: float = 4.0
    temp_rise: float = 1.0
    # Anti-false-positive signatures
    vacuum_r10: float = 1.4
    smoke_r1: float = 0.80
    dust_r10: float = 1.8
    flat_rh: float = 2.0
    # Subtype tie-break
    frying_pm25_delta: float = 120.0


class OutdoorThresholds(BaseModel):
    """Speed bands (km/h) for the outdoor speed classifier."""

    model_config = ConfigDict(frozen=True)

    driving: float = 22.0
    driving_immune: float = 28.0
    sticky_driving_max: float = 5.0
    cycling_min: float = 8.0
    walking: tuple[float, float] = (2.0, 7.0)
    jogging_max: float = 12.0


class ForkThresholds(BaseModel):
    """GPS-loss and hysteresis timings for fork selection."""

    model_config = ConfigDict(frozen=True)

    gps_loss_seconds: float = 25.0
    hysteresis_seconds: float = 12.0
    stationary_speed: float = 2.0  # km/h


class EngineConfig(BaseModel):
    """Aggregate of all classifier thresholds handed to an evaluator."""

    model_config = ConfigDict(frozen=True)

    underground: UndergroundThresholds = Field(default_factory=UndergroundThresholds)
    cooking: CookingThresholds = Field(default_factory=CookingThresholds)
    outdoor: OutdoorThresholds = Field(default_factory=OutdoorThresholds)
    fork: ForkThresholds = Field(default_factory=ForkThresholds)

    @classmethod
    def from_settings(cls, settings: Settings) -> EngineConfig:
        """Build a config whose policy knobs come from :class:`Settings`."""
        return cls(
            underground=UndergroundThresholds(
                window_seconds=settings.signal_window_seconds,
                walk_score=settings.walk_autocorr_threshold,
                strong_confidence=settings.underground_strong_confidence,
            ),
            cooking=CookingThresholds(
                ewma_alpha=settings.cooking_ewma_alpha,
                confirm_seconds=settings.cooking_confirm_seconds,
                hold_seconds=settings.cooking_hold_seconds,
                min_score=settings.cooking_min_score,
            ),
            fork=ForkThresholds(
                gps_loss_seconds=settings.fork_gps_loss_seconds,
                hysteresis_seconds=settings.fork_hysteresis_seconds,
            ),
        )
