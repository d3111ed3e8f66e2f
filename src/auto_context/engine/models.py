"""Pydantic models for the classifier outputs and per-tracker state.

These models represent:
- Underground window statistics and the resulting sub-label
- The cooking episode state machine (phase, timers, running score)
- The fork chosen for a tick and the final, explainable decision
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# ── Enums ─────────────────────────────────────────────────────


class Fork(str, Enum):
    """Coarse regime chosen before fine-grained classification."""

    UNDERGROUND = "underground"
    INDOOR = "indoor"
    OUTDOOR = "outdoor"


class DecisionSource(str, Enum):
    """Which stage produced the emitted label."""

    UNDERGROUND = "underground"
    COOKING = "cooking"
    OUTDOOR_SPEED = "outdoor_speed"
    RULES = "rules"


class CookingPhase(str, Enum):
    IDLE = "idle"
    EPISODE = "episode"  # triggered, awaiting confirmation
    COOKING = "cooking"


class CookingSubtype(str, Enum):
    FRYING = "frying"
    BOILING = "boiling"
    UNKNOWN = "unknown"


# ── Underground ──────────────────────────────────────────────


class UndergroundEvidence(BaseModel):
    """Windowed statistics backing an underground classification.

    Missing values mean the channel was unavailable in the window.
    """

    sample_count: int = 0
    accel_std: float | None = None
    magneto_std: float | None = None
    baro_std: float | None = None
    baro_slope: float | None = Field(None, description="hPa per second.")
    walk_score: float | None = None
    walking: bool = False


class UndergroundResult(BaseModel):
    label: str
    confidence: float = Field(ge=0.0, le=1.0)
    evidence: UndergroundEvidence


# ── Cooking ──────────────────────────────────────────────────


class CookingReading(BaseModel):
    """Inputs for one cooking-detector tick, already paired with baselines.

    Deltas are taken against the baselines *before* this tick's update and
    are ``None`` when the reading or its baseline is unavailable.
    """

    model_config = ConfigDict(frozen=True)

    now: float
    pm1: float | None = None
    pm25: float
    pm10: float | None = None
    pm25_delta: float | None = None
    pm10_delta: float | None = None
    rh_delta: float | None = None
    temp_delta: float | None = None
    triggered: bool = False  # 2-of-3 debounce already applied
    is_still: bool = False
    at_home: bool = False
    has_beacon: bool = False
    is_meal_time: bool = False

    @property
    def r1(self) -> float | None:
        if self.pm1 is None or self.pm25 <= 0:
            return None
        return self.pm1 / self.pm25

    @property
    def r10(self) -> float | None:
        if self.pm10 is None or self.pm25 <= 0:
            return None
        return self.pm10 / self.pm25


class CookingEpisode(BaseModel):
    """Explicit state of the cooking state machine."""

    model_config = ConfigDict(frozen=True)

    phase: CookingPhase = CookingPhase.IDLE
    started_at: float | None = None
    last_above_at: float | None = None
    score_max: float = 0.0
    subtype: CookingSubtype | None = None


class CookingOutput(BaseModel):
    active: bool
    phase: CookingPhase
    subtype: CookingSubtype | None = None
    score: float = 0.0
    score_max: float = 0.0


# ── Decision ─────────────────────────────────────────────────


class ContextDecision(BaseModel):
    """The label emitted for one tick plus how it was reached."""

    label: str
    fork: Fork
    source: DecisionSource
    underground: UndergroundResult | None = None
    cooking: CookingOutput | None = None
