"""Per-device context trackers, each owning an isolated engine state."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

import structlog

from auto_context.engine.default_rules import default_rules
from auto_context.engine.evaluator import ContextEvaluator
from auto_context.engine.geo import GeoSpeedEstimator, apply_gps
from auto_context.engine.models import ContextDecision
from auto_context.engine.rules import RuleEngine
from auto_context.engine.thresholds import EngineConfig
from auto_context.models import Area, ContextRule, ContextTick

if TYPE_CHECKING:
    from auto_context.config import Settings

logger = structlog.get_logger(__name__)


class TrackerRegistry:
    """Lazily create one :class:`ContextEvaluator` per device id.

    All trackers share the same immutable rule set and thresholds, but each
    keeps its own signal window, cooking baselines and hysteresis.  Devices
    that send raw GPS fixes also get their own speed estimator.  The
    registry itself is not thread-safe; feed it from a single task.
    """

    def __init__(
        self,
        rules: Sequence[ContextRule] | None = None,
        config: EngineConfig | None = None,
        home: Area | None = None,
        work: Area | None = None,
    ) -> None:
        self._rules: list[ContextRule] = list(rules) if rules is not None else default_rules()
        self._config = config or EngineConfig()
        self._trackers: dict[str, ContextEvaluator] = {}
        self._latest: dict[str, ContextDecision] = {}
        self._gps: dict[str, GeoSpeedEstimator] = {}
        self.home = home
        self.work = work

    @classmethod
    def from_settings(cls, rules: Sequence[ContextRule], settings: Settings) -> TrackerRegistry:
        """Build a registry with thresholds and home / work areas from settings."""

        def _area(lat: float | None, lon: float | None) -> Area | None:
            if lat is None or lon is None:
                return None
            return Area(lat=lat, lon=lon, radius_m=settings.area_radius_m)

        return cls(
            rules,
            EngineConfig.from_settings(settings),
            home=_area(settings.home_lat, settings.home_lon),
            work=_area(settings.work_lat, settings.work_lon),
        )

    @property
    def rules(self) -> list[ContextRule]:
        return list(self._rules)

    def set_rules(self, rules: Sequence[ContextRule]) -> None:
        """Swap the rule set for every existing and future tracker."""
        self._rules = list(rules)
        for evaluator in self._trackers.values():
            evaluator.engine = RuleEngine(self._rules)
        logger.info("trackers.rules_updated", rules=len(self._rules), trackers=len(self._trackers))

    def get(self, device_id: str) -> ContextEvaluator:
        evaluator = self._trackers.get(device_id)
        if evaluator is None:
            evaluator = ContextEvaluator(self._rules, self._config)
            self._trackers[device_id] = evaluator
            logger.info("trackers.created", device_id=device_id)
        return evaluator

    def process(self, tick: ContextTick) -> ContextDecision:
        """Evaluate one tick for its device and remember the decision."""
        snapshot, extras = tick.snapshot, tick.extras
        gps = self._gps.get(tick.device_id)
        if tick.fix is not None and gps is None:
            gps = self._gps[tick.device_id] = GeoSpeedEstimator()
        if gps is not None:
            snapshot, extras = apply_gps(gps, snapshot, extras, tick.fix, self.home, self.work)

        decision = self.get(tick.device_id).evaluate(snapshot, extras)
        previous = self._latest.get(tick.device_id)
        if previous is None or previous.label != decision.label:
            logger.info(
                "trackers.context_changed",
                device_id=tick.device_id,
                label=decision.label,
                previous=previous.label if previous else None,
                source=decision.source.value,
            )
        self._latest[tick.device_id] = decision
        return decision

    def latest(self, device_id: str) -> ContextDecision | None:
        return self._latest.get(device_id)

    def reset(self, device_id: str) -> bool:
        """Drop a device's state; return False when it was never tracked."""
        self._latest.pop(device_id, None)
        self._gps.pop(device_id, None)
        removed = self._trackers.pop(device_id, None)
        if removed is not None:
            logger.info("trackers.reset", device_id=device_id)
        return removed is not None

    @property
    def device_ids(self) -> list[str]:
        return sorted(self._trackers)

    def __len__(self) -> int:
        return len(self._trackers)
