"""Rule engine — evaluates prioritised :class:`ContextRule` sets against a snapshot."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Sequence

import structlog
from pydantic import TypeAdapter, ValidationError

from auto_context.exceptions import InvalidRuleSet
from auto_context.models import ContextLabel, ContextRule, EvaluationSnapshot, RuleConditions

logger = structlog.get_logger(__name__)

_RULE_LIST = TypeAdapter(list[ContextRule])


# ── Matching ─────────────────────────────────────────────────


def matches_rule(rule: ContextRule, data: EvaluationSnapshot) -> bool:
    """True when every condition present on ``rule`` holds for ``data``.

    A condition on a snapshot field the caller could not fill in (no
    weather, unknown weekend flag) does not match.
    """
    c = rule.conditions

    if c.wifi:
        for field in ("home", "work", "known"):
            expected = getattr(c.wifi, field)
            if expected is not None and expected != getattr(data.wifi, field):
                return False

    if c.location:
        loc = c.location
        if loc.inside_home is not None and loc.inside_home != data.location.inside_home:
            return False
        if loc.inside_work is not None and loc.inside_work != data.location.inside_work:
            return False
        if loc.gps_quality is not None and loc.gps_quality != data.location.gps_quality:
            return False

    if c.movement:
        mv = c.movement
        if mv.is_moving is not None and mv.is_moving != data.movement.is_moving:
            return False
        if mv.speed is not None and not mv.speed.contains(data.movement.speed):
            return False
        if mv.requires_walking_signature is not None:
            has_signature = data.movement.walking_signature is True
            if has_signature != mv.requires_walking_signature:
                return False

    if c.time:
        if c.time.hour_range is not None and not c.time.hour_range.contains(data.time.current_hour):
            return False
        if c.time.is_weekend is not None and data.time.is_weekend != c.time.is_weekend:
            return False

    if c.connectivity:
        conn = c.connectivity
        if conn.cellular_signal is not None and conn.cellular_signal != data.connectivity.cellular_signal:
            return False
        if conn.car_bluetooth is not None and conn.car_bluetooth != data.connectivity.car_bluetooth:
            return False

    if c.weather:
        w = c.weather
        weather = data.weather
        if weather is None:
            return False
        if w.main is not None and w.main != weather.main:
            return False
        if w.temperature is not None and (
            weather.temperature is None or not w.temperature.contains(weather.temperature)
        ):
            return False
        if w.humidity is not None and (
            weather.humidity is None or not w.humidity.contains(weather.humidity)
        ):
            return False

    if c.context:
        if c.context.previous_wifi is not None and not data.wifi.previous_ssid:
            return False
        prefix = c.context.latest_context_starts_with
        if prefix and not data.context.latest_context.startswith(prefix):
            return False

    return True


def sort_rules(rules: Sequence[ContextRule]) -> list[ContextRule]:
    """Highest priority first; equal priorities keep their list order."""
    return sorted(rules, key=lambda r: -r.priority)


def evaluate_rules(rules: Sequence[ContextRule], data: EvaluationSnapshot) -> str:
    """Return the result of the highest-priority matching rule, else ``"Unknown"``."""
    for rule in sort_rules(rules):
        if matches_rule(rule, data):
            return rule.result
    return ContextLabel.UNKNOWN.value


# ── Engine ───────────────────────────────────────────────────


class RuleEngine:
    """Hold an ordered rule set and evaluate snapshots against it.

    Rules are immutable; the engine's list can be extended or pruned
    between evaluations.  The sorted order is cached until the list changes.
    """

    def __init__(self, rules: Sequence[ContextRule] | None = None) -> None:
        self._rules: list[ContextRule] = list(rules or [])
        self._sorted: list[ContextRule] | None = None

    # ── Rule management ───────────────────────────────────────

    def add_rule(self, rule: ContextRule) -> None:
        self._rules.append(rule)
        self._sorted = None

    def remove_rule(self, rule_id: str) -> bool:
        before = len(self._rules)
        self._rules = [r for r in self._rules if r.id != rule_id]
        self._sorted = None
        return len(self._rules) < before

    def get_rule(self, rule_id: str) -> ContextRule | None:
        return next((r for r in self._rules if r.id == rule_id), None)

    def list_rules(self) -> list[ContextRule]:
        return list(self._rules)

    # ── Evaluation ────────────────────────────────────────────

    def matching_rule(self, data: EvaluationSnapshot) -> ContextRule | None:
        """Return the winning rule itself, useful for explaining a label."""
        if self._sorted is None:
            self._sorted = sort_rules(self._rules)
        for rule in self._sorted:
            if matches_rule(rule, data):
                return rule
        return None

    def evaluate(self, data: EvaluationSnapshot) -> str:
        rule = self.matching_rule(data)
        if rule is None:
            logger.debug("rule_engine.no_match", rules=len(self._rules))
            return ContextLabel.UNKNOWN.value
        logger.debug("rule_engine.matched", rule_id=rule.id, result=rule.result)
        return rule.result


# ── Validation & (de)serialisation ───────────────────────────


def validate_rule(rule: ContextRule) -> list[str]:
    """Return human-readable problems with ``rule`` (empty when valid)."""
    errors: list[str] = []

    if not rule.id.strip():
        errors.append("Rule ID is required")
    if not rule.name.strip():
        errors.append("Rule name is required")
    if not rule.result.strip():
        errors.append("Rule result is required")
    if not 0 <= rule.priority <= 100:
        errors.append("Priority must be a number between 0 and 100")

    movement = rule.conditions.movement
    if movement and movement.speed:
        lo, hi = movement.speed.min, movement.speed.max
        if lo is not None and hi is not None and lo > hi:
            errors.append("Speed minimum cannot be greater than maximum")

    time = rule.conditions.time
    if time and time.hour_range:
        hr = time.hour_range
        if not (0 <= hr.start <= 23 and 0 <= hr.end <= 23):
            errors.append("Hour range must be between 0 and 23")

    return errors


def is_catch_all(rule: ContextRule) -> bool:
    return not any(
        getattr(rule.conditions, group) is not None
        for group in RuleConditions.model_fields
    )


def ensure_terminal_rule(rules: Sequence[ContextRule]) -> bool:
    """Warn when no unconditional rule guarantees a non-``Unknown`` label."""
    if any(is_catch_all(r) for r in rules):
        return True
    logger.warning("rule_engine.no_catch_all", rules=len(rules))
    return False


def rules_to_json(rules: Sequence[ContextRule]) -> str:
    return json.dumps(
        [r.model_dump(mode="json", exclude_none=True) for r in rules],
        indent=2,
    )


def rules_from_json(text: str) -> list[ContextRule]:
    """Parse and validate a JSON rule list.

    Raises :class:`InvalidRuleSet` on malformed JSON, schema errors or
    rules failing :func:`validate_rule`.
    """
    try:
        rules = _RULE_LIST.validate_json(text)
    except ValidationError as exc:
        raise InvalidRuleSet(
            "Rule set does not match the rule schema.",
            errors=[f"{'.'.join(map(str, e['loc']))}: {e['msg']}" for e in exc.errors()],
        ) from exc

    problems = [f"{r.id or '<missing id>'}: {msg}" for r in rules for msg in validate_rule(r)]
    if problems:
        raise InvalidRuleSet("Rule set contains invalid rules.", errors=problems)
    return rules


def load_rules(path: str | Path) -> list[ContextRule]:
    """Load a JSON rule file written by :func:`rules_to_json`."""
    source = Path(path)
    try:
        text = source.read_text(encoding="utf-8")
    except OSError as exc:
        raise InvalidRuleSet(f"Cannot read rule file {source}: {exc}") from exc
    rules = rules_from_json(text)
    logger.info("rule_engine.rules_loaded", path=str(source), count=len(rules))
    ensure_terminal_rule(rules)
    return rules
