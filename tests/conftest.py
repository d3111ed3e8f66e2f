"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from auto_context.engine.default_rules import default_rules
from auto_context.engine.evaluator import ContextEvaluator
from auto_context.engine.rules import RuleEngine
from auto_context.models import (
    ContextRule,
    EvaluationSnapshot,
    GpsQuality,
    LocationState,
    MovementCondition,
    MovementState,
    Range,
    RuleConditions,
    WifiCondition,
)


@pytest.fixture
def snapshot() -> EvaluationSnapshot:
    """Outdoors with a good fix, standing still, no Wi-Fi."""
    return EvaluationSnapshot(
        location=LocationState(gps_quality=GpsQuality.GOOD),
        movement=MovementState(speed=0.0, is_moving=False),
    )


@pytest.fixture
def simple_rules() -> list[ContextRule]:
    return [
        ContextRule(
            id="fast",
            name="Fast",
            priority=50,
            conditions=RuleConditions(movement=MovementCondition(speed=Range(min=20))),
            result="Fast",
        ),
        ContextRule(
            id="home",
            name="Home",
            priority=40,
            conditions=RuleConditions(wifi=WifiCondition(home=True)),
            result="Home",
        ),
        ContextRule(id="fallback", name="Fallback", priority=10, result="Somewhere"),
    ]


@pytest.fixture
def rules() -> list[ContextRule]:
    return default_rules()


@pytest.fixture
def rule_engine(simple_rules: list[ContextRule]) -> RuleEngine:
    return RuleEngine(rules=simple_rules)


@pytest.fixture
def evaluator() -> ContextEvaluator:
    return ContextEvaluator()
