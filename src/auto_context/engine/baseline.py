"""Baseline tracker — slow EWMA "ambient normal" for spike detection."""

from __future__ import annotations

from collections import deque

from pydantic import BaseModel


class BaselineDeltas(BaseModel):
    """Reading-minus-baseline for one tick; ``None`` when unavailable."""

    pm25: float | None = None
    pm10: float | None = None
    humidity: float | None = None
    temperature: float | None = None


def _ewma(old: float | None, new: float | None, alpha: float) -> float | None:
    if new is None:
        return old
    if old is None:
        return new
    return alpha * new + (1 - alpha) * old


def _delta(value: float | None, baseline: float | None) -> float | None:
    if value is None or baseline is None:
        return None
    return value - baseline


class BaselineTracker:
    """EWMA baselines for PM2.5, PM10, humidity and temperature.

    A baseline stays ``None`` until its first reading, so the first tick
    never produces a spike.  The tracker also keeps a short ring of recent
    trigger booleans used for 2-of-3 debouncing.
    """

    def __init__(self, alpha: float = 0.02, debounce_window: int = 3) -> None:
        self.alpha = alpha
        self.pm25: float | None = None
        self.pm10: float | None = None
        self.humidity: float | None = None
        self.temperature: float | None = None
        self._triggers: deque[bool] = deque(maxlen=debounce_window)

    def update(
        self,
        pm25: float | None,
        pm10: float | None = None,
        humidity: float | None = None,
        temperature: float | None = None,
    ) -> BaselineDeltas:
        """Return deltas against the current baselines, then fold the readings in."""
        deltas = BaselineDeltas(
            pm25=_delta(pm25, self.pm25),
            pm10=_delta(pm10, self.pm10),
            humidity=_delta(humidity, self.humidity),
            temperature=_delta(temperature, self.temperature),
        )
        self.pm25 = _ewma(self.pm25, pm25, self.alpha)
        self.pm10 = _ewma(self.pm10, pm10, self.alpha)
        self.humidity = _ewma(self.humidity, humidity, self.alpha)
        self.temperature = _ewma(self.temperature, temperature, self.alpha)
        return deltas

    def push_trigger(self, triggered: bool) -> None:
        self._triggers.append(triggered)

    def debounced(self, required: int = 2) -> bool:
        """True when at least ``required`` of the recent triggers fired."""
        return sum(self._triggers) >= required

    @property
    def recent_triggers(self) -> list[bool]:
        return list(self._triggers)

    def reset(self) -> None:
        self.pm25 = self.pm10 = self.humidity = self.temperature = None
        self._triggers.clear()
