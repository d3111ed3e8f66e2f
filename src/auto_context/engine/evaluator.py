"""Unified evaluator — routes each tick through the fork to a sub-classifier.

Per tick:

1. buffer any accelerometer / magnetometer / barometer sample;
2. pick the fork (UNDERGROUND / INDOOR / OUTDOOR);
3. UNDERGROUND with a non-empty window → underground classifier;
4. INDOOR → cooking detector, "Indoor Cooking" while active;
5. OUTDOOR → outdoor speed classifier;
6. anything left unlabelled falls through to the rule engine.
"""

from __future__ import annotations

from typing import Sequence

import structlog

from auto_context.engine.cooking import CookingDetector, is_meal_time
from auto_context.engine.fork import gps_indicates_underground, select_fork
from auto_context.engine.models import (
    ContextDecision,
    CookingOutput,
    DecisionSource,
    Fork,
    UndergroundResult,
)
from auto_context.engine.outdoor import classify_outdoor_speed
from auto_context.engine.rules import RuleEngine
from auto_context.engine.signals import SignalWindow
from auto_context.engine.thresholds import EngineConfig
from auto_context.engine.underground import classify_underground
from auto_context.models import (
    ContextLabel,
    ContextRule,
    EvaluationSnapshot,
    ExtraSignals,
    MotionSample,
)

logger = structlog.get_logger(__name__)


class EngineState:
    """All mutable state of one tracked device.

    Holds the motion window, the cooking detector (baselines, debounce ring
    and episode) and the underground hysteresis timestamp.  Never share an
    instance between unrelated sensor streams.
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config or EngineConfig()
        self.window = SignalWindow(self.config.underground.window_seconds)
        self.cooking = CookingDetector(self.config.cooking)
        self.last_strong_underground_at: float | None = None

    def reset(self) -> None:
        self.window.clear()
        self.cooking.reset()
        self.last_strong_underground_at = None


def _is_still(snapshot: EvaluationSnapshot, config: EngineConfig) -> bool:
    movement = snapshot.movement
    return not movement.is_moving and movement.speed < config.fork.stationary_speed


def _meal_time(snapshot: EvaluationSnapshot, extras: ExtraSignals) -> bool:
    hour = extras.hour if extras.hour is not None else snapshot.time.current_hour
    return is_meal_time(hour, extras.minute or 0)


def decide(
    engine: RuleEngine,
    snapshot: EvaluationSnapshot,
    extras: ExtraSignals | None,
    state: EngineState,
) -> ContextDecision:
    """Run one full evaluation tick against ``state``."""
    extras = extras or ExtraSignals()
    cfg = state.config
    now = extras.timestamp

    if extras.has_motion and now is not None:
        if not state.window.push(MotionSample.from_extras(extras)):
            logger.debug("evaluator.late_sample_dropped", timestamp=now)

    fork = select_fork(snapshot, extras, state.last_strong_underground_at, cfg.fork)
    underground: UndergroundResult | None = None
    cooking: CookingOutput | None = None

    if fork is Fork.UNDERGROUND and len(state.window):
        underground = classify_underground(state.window, cfg.underground)
        if underground is not None:
            if (
                now is not None
                and underground.confidence >= cfg.underground.strong_confidence
                and gps_indicates_underground(snapshot, extras, cfg.fork)
            ):
                state.last_strong_underground_at = now
            return _decision(underground.label, fork, DecisionSource.UNDERGROUND, underground=underground)

    if fork is Fork.INDOOR and extras.pm25 is not None and now is not None:
        cooking = state.cooking.update(
            now,
            extras.pm1,
            extras.pm25,
            extras.pm10,
            extras.temperature,
            extras.humidity,
            is_still=_is_still(snapshot, cfg),
            at_home=snapshot.wifi.home or snapshot.location.inside_home,
            has_beacon=bool(extras.kitchen_beacon),
            is_meal_time=_meal_time(snapshot, extras),
        )
        if cooking.active:
            return _decision(ContextLabel.INDOOR_COOKING.value, fork, DecisionSource.COOKING, cooking=cooking)

    if fork is Fork.OUTDOOR:
        label = classify_outdoor_speed(
            snapshot.movement.speed,
            snapshot.movement.walking_signature,
            snapshot.context.latest_context,
            cfg.outdoor,
        )
        if label is not None:
            return _decision(label, fork, DecisionSource.OUTDOOR_SPEED)

    return _decision(
        engine.evaluate(snapshot), fork, DecisionSource.RULES, underground=underground, cooking=cooking
    )


def _decision(label: str, fork: Fork, source: DecisionSource, **detail) -> ContextDecision:
    logger.debug("context.evaluated", fork=fork.value, source=source.value, label=label)
    return ContextDecision(label=label, fork=fork, source=source, **detail)


def evaluate_unified(
    rules: Sequence[ContextRule],
    snapshot: EvaluationSnapshot,
    extras: ExtraSignals | None,
    state: EngineState,
) -> str:
    """Label one tick using the full pipeline and the caller-owned ``state``."""
    return decide(RuleEngine(rules), snapshot, extras, state).label


class ContextEvaluator:
    """Stateful evaluator for one device: a rule set plus its own :class:`EngineState`."""

    def __init__(
        self,
        rules: Sequence[ContextRule] | None = None,
        config: EngineConfig | None = None,
    ) -> None:
        if rules is None:
            from auto_context.engine.default_rules import default_rules

            rules = default_rules()
        self.engine = RuleEngine(rules)
        self.state = EngineState(config)

    def evaluate(self, snapshot: EvaluationSnapshot, extras: ExtraSignals | None = None) -> ContextDecision:
        return decide(self.engine, snapshot, extras, self.state)

    def reset(self) -> None:
        self.state.reset()
