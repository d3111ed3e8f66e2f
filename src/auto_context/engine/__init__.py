"""Automatic context classification engine.

Infers a user's current context ("Driving", "Underground Transport",
"Indoor Cooking", "Indoor at work", ...) from intermittent, noisy sensor
signals so air-quality exposure can be attributed without manual tagging.

Architecture
------------
1. **Rule engine** (`rules.py`, `default_rules.py`)
   - Prioritised, declarative rules over a per-tick snapshot
   - Validation, JSON import/export and rule templates

2. **Sub-classifiers**
   - Underground (`underground.py`): windowed IMU / barometer statistics
     and autocorrelation-based step detection (`signals.py`)
   - Cooking (`cooking.py`): EWMA baselines (`baseline.py`), debounced
     trigger, additive score and an explicit episode state machine
   - Outdoor speed (`outdoor.py`): speed bands gated by the walking signature

3. **Routing** (`fork.py`, `evaluator.py`)
   - Fork selection with underground exit hysteresis
   - One :class:`EngineState` per tracked device, never global

Thresholds live in `thresholds.py` as named, overridable models.
"""

from auto_context.engine.default_rules import (
    RULE_TEMPLATES,
    create_default_engine,
    create_rule_from_template,
    default_rules,
)
from auto_context.engine.evaluator import ContextEvaluator, EngineState, evaluate_unified
from auto_context.engine.models import ContextDecision, DecisionSource, Fork
from auto_context.engine.rules import RuleEngine, evaluate_rules
from auto_context.engine.thresholds import EngineConfig

__all__ = [
    "ContextDecision",
    "ContextEvaluator",
    "DecisionSource",
    "EngineConfig",
    "EngineState",
    "Fork",
    "RULE_TEMPLATES",
    "RuleEngine",
    "create_default_engine",
    "create_rule_from_template",
    "default_rules",
    "evaluate_rules",
    "evaluate_unified",
]
