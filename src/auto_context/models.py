"""Shared Pydantic models used across the framework."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# ── Enums ─────────────────────────────────────────────────────


class GpsQuality(str, Enum):
    """Coarse GPS fix quality reported by the location subsystem."""
    GOOD = "good"
    POOR = "poor"


class WeatherMain(str, Enum):
    CLEAR = "Clear"
    CLOUDS = "Clouds"
    RAIN = "Rain"
    SNOW = "Snow"
    THUNDERSTORM = "Thunderstorm"
    DRIZZLE = "Drizzle"
    MIST = "Mist"
    FOG = "Fog"


class ContextLabel(str, Enum):
    """Labels emitted by the built-in classifiers.

    Rules may emit any string; these are the ones the sub-classifiers
    produce directly.
    """

    DRIVING = "Driving"
    OUTDOOR_WALKING = "Outdoor walking"
    OUTDOOR_JOGGING = "Outdoor jogging"
    OUTDOOR_CYCLING = "Outdoor cycling"
    WALK_PLATFORM = "Walk platform"
    STAND_PLATFORM = "Stand platform"
    UNDERGROUND_TRANSPORT = "Underground Transport"
    UNDERGROUND_STATION = "Underground Station"
    ESCALATOR_UNDERGROUND = "Escalator underground"
    INDOOR_COOKING = "Indoor Cooking"
    UNKNOWN = "Unknown"


# ── Rule conditions ───────────────────────────────────────────


class Range(BaseModel):
    """Inclusive numeric range; either bound may be omitted."""
    min: float | None = None
    max: float | None = None

    def contains(self, value: float) -> bool:
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True


class HourRange(BaseModel):
    """Half-open ``[start, end)`` hour window that may wrap midnight."""
    start: int
    end: int

    def contains(self, hour: int) -> bool:
        if self.start <= self.end:
            return self.start <= hour < self.end
        return hour >= self.start or hour < self.end


class WifiCondition(BaseModel):
    home: bool | None = None
    work: bool | None = None
    known: bool | None = None


class LocationCondition(BaseModel):
    inside_home: bool | None = None
    inside_work: bool | None = None
    gps_quality: GpsQuality | None = None


class MovementCondition(BaseModel):
    speed: Range | None = None
    is_moving: bool | None = None
    requires_walking_signature: bool | None = Field(
        None,
        description=(
            "True: the snapshot must carry a walking signature. "
            "False: the signature must be false or absent."
        ),
    )


class TimeCondition(BaseModel):
    hour_range: HourRange | None = None
    is_weekend: bool | None = None


class ConnectivityCondition(BaseModel):
    cellular_signal: bool | None = None
    car_bluetooth: bool | None = None


class WeatherCondition(BaseModel):
    main: WeatherMain | None = None
    temperature: Range | None = None
    humidity: Range | None = None


class ContextCondition(BaseModel):
    previous_wifi: str | None = Field(None, pattern="^(home|work)$")
    latest_context_starts_with: str | None = None


class RuleConditions(BaseModel):
    """Conjunction of optional condition groups.  Absent means don't care."""
    wifi: WifiCondition | None = None
    location: LocationCondition | None = None
    movement: MovementCondition | None = None
    time: TimeCondition | None = None
    connectivity: ConnectivityCondition | None = None
    weather: WeatherCondition | None = None
    context: ContextCondition | None = None


class ContextRule(BaseModel):
    """A declarative, prioritised rule mapping a snapshot to a label."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    priority: float = 0  # higher wins
    conditions: RuleConditions = Field(default_factory=RuleConditions)
    result: str


# ── Evaluation snapshot ───────────────────────────────────────


class WifiState(BaseModel):
    home: bool = False
    work: bool = False
    known: bool = False
    current_ssid: str | None = None
    previous_ssid: str | None = None


class LocationState(BaseModel):
    inside_home: bool = False
    inside_work: bool = False
    gps_quality: GpsQuality | None = None


class MovementState(BaseModel):
    speed: float = 0.0  # km/h
    is_moving: bool = False
    walking_signature: bool | None = None
    data_quality: str | None = None


class TimeState(BaseModel):
    current_hour: int = Field(12, ge=0, le=23)
    is_weekend: bool | None = None


class ConnectivityState(BaseModel):
    cellular_signal: bool = True
    car_bluetooth: bool = False


class WeatherState(BaseModel):
    main: WeatherMain | None = None
    temperature: float | None = None
    humidity: float | None = None


class PreviousContext(BaseModel):
    latest_context: str = ""


class EvaluationSnapshot(BaseModel):
    """Point-in-time read of every sensor subsystem.

    Built by the caller once per tick; the engine never mutates it.
    """

    wifi: WifiState = Field(default_factory=WifiState)
    location: LocationState = Field(default_factory=LocationState)
    movement: MovementState = Field(default_factory=MovementState)
    time: TimeState = Field(default_factory=TimeState)
    connectivity: ConnectivityState = Field(default_factory=ConnectivityState)
    weather: WeatherState | None = None
    context: PreviousContext = Field(default_factory=PreviousContext)


# ── Extra signals ─────────────────────────────────────────────


class Vector3(BaseModel):
    x: float
    y: float
    z: float


class ExtraSignals(BaseModel):
    """Optional enrichment passed alongside the snapshot.

    Every field may be ``None``, which always means *unavailable*; a zero
    is a valid reading.
    """

    timestamp: float | None = Field(None, description="Epoch seconds.")
    gps_loss_seconds: float | None = None
    accel: Vector3 | None = None  # m/s²
    magneto: Vector3 | None = None  # µT
    pressure: float | None = None  # hPa
    pm1: float | None = None
    pm25: float | None = None
    pm10: float | None = None
    humidity: float | None = None
    temperature: float | None = None
    hour: int | None = Field(None, ge=0, le=23)
    minute: int | None = Field(None, ge=0, le=59)
    weekday: int | None = Field(None, ge=0, le=6)
    kitchen_beacon: bool | None = None

    @property
    def has_motion(self) -> bool:
        return self.accel is not None or self.magneto is not None or self.pressure is not None


@dataclass(frozen=True, slots=True)
class MotionSample:
    """One raw IMU / barometer sample inside the signal window."""
    time: float
    ax: float | None = None
    ay: float | None = None
    az: float | None = None
    mx: float | None = None
    my: float | None = None
    mz: float | None = None
    p: float | None = None

    @classmethod
    def from_extras(cls, extras: ExtraSignals) -> MotionSample:
        accel, mag = extras.accel, extras.magneto
        return cls(
            time=extras.timestamp,  # type: ignore[arg-type]
            ax=accel.x if accel else None,
            ay=accel.y if accel else None,
            az=accel.z if accel else None,
            mx=mag.x if mag else None,
            my=mag.y if mag else None,
            mz=mag.z if mag else None,
            p=extras.pressure,
        )


# ── Location ──────────────────────────────────────────────────


class GeoFix(BaseModel):
    """One raw GPS fix from the location subsystem."""
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)
    time: float  # epoch seconds
    accuracy: float | None = None  # metres


class Area(BaseModel):
    """Circular area such as "home" or "work"."""
    lat: float
    lon: float
    radius_m: float = 150.0


# ── Streaming ─────────────────────────────────────────────────


class ContextTick(BaseModel):
    """One evaluation tick for a tracked device.

    When ``fix`` is present the tracker derives speed, GPS quality, GPS loss
    and home / work presence from it instead of trusting the snapshot.
    """
    device_id: str
    snapshot: EvaluationSnapshot = Field(default_factory=EvaluationSnapshot)
    extras: ExtraSignals = Field(default_factory=ExtraSignals)
    fix: GeoFix | None = None
