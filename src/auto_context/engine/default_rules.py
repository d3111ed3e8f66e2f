"""Default context rules, rule templates and engine factories."""

from __future__ import annotations

import uuid
from typing import Any

from pydantic import BaseModel, Field

from auto_context.exceptions import RuleTemplateNotFound
from auto_context.models import (
    ConnectivityCondition,
    ContextCondition,
    ContextLabel,
    ContextRule,
    GpsQuality,
    HourRange,
    LocationCondition,
    MovementCondition,
    Range,
    RuleConditions,
    TimeCondition,
    WifiCondition,
)
from auto_context.engine.rules import RuleEngine

_GOOD = GpsQuality.GOOD
_POOR = GpsQuality.POOR


def default_movement_rules() -> list[ContextRule]:
    """Speed-band rules gated by the walking signature.

    They mirror the outdoor speed classifier so a snapshot evaluated by the
    rules alone still gets a sensible transport label.
    """
    return [
        ContextRule(
            id="driving-car",
            name="Driving (car Bluetooth)",
            description="Car Bluetooth connected while moving",
            priority=100,
            conditions=RuleConditions(
                connectivity=ConnectivityCondition(car_bluetooth=True),
                movement=MovementCondition(speed=Range(min=5)),
            ),
            result=ContextLabel.DRIVING.value,
        ),
        ContextRule(
            id="tunnel-driving",
            name="Driving in tunnel",
            description="Was driving, lost GPS and cellular signal",
            priority=98,
            conditions=RuleConditions(
                context=ContextCondition(latest_context_starts_with=ContextLabel.DRIVING.value),
                location=LocationCondition(gps_quality=_POOR),
                connectivity=ConnectivityCondition(cellular_signal=False),
            ),
            result="Driving in tunnel",
        ),
        ContextRule(
            id="driving-highway",
            name="Driving (high speed)",
            description="Too fast for any non-motorised activity",
            priority=97,
            conditions=RuleConditions(movement=MovementCondition(speed=Range(min=28))),
            result=ContextLabel.DRIVING.value,
        ),
        ContextRule(
            id="driving-speed",
            name="Driving (speed)",
            description="Vehicle speed without a gait rhythm",
            priority=96,
            conditions=RuleConditions(
                movement=MovementCondition(speed=Range(min=22), requires_walking_signature=False),
            ),
            result=ContextLabel.DRIVING.value,
        ),
        ContextRule(
            id="driving-sticky",
            name="Driving (slow traffic)",
            description="Keep driving through red lights and traffic jams",
            priority=95,
            conditions=RuleConditions(
                context=ContextCondition(latest_context_starts_with=ContextLabel.DRIVING.value),
                movement=MovementCondition(speed=Range(max=10), requires_walking_signature=False),
            ),
            result=ContextLabel.DRIVING.value,
        ),
        ContextRule(
            id="outdoor-walking",
            name="Outdoor walking",
            description="Walking pace with a gait rhythm",
            priority=94,
            conditions=RuleConditions(
                movement=MovementCondition(speed=Range(min=2, max=7), requires_walking_signature=True),
            ),
            result=ContextLabel.OUTDOOR_WALKING.value,
        ),
        ContextRule(
            id="outdoor-jogging",
            name="Outdoor jogging",
            description="Running pace with a gait rhythm",
            priority=93,
            conditions=RuleConditions(
                movement=MovementCondition(speed=Range(min=7, max=12), requires_walking_signature=True),
            ),
            result=ContextLabel.OUTDOOR_JOGGING.value,
        ),
        ContextRule(
            id="outdoor-cycling",
            name="Outdoor cycling",
            description="Cycling speed without a gait rhythm",
            priority=92,
            conditions=RuleConditions(
                movement=MovementCondition(speed=Range(min=8, max=22), requires_walking_signature=False),
            ),
            result=ContextLabel.OUTDOOR_CYCLING.value,
        ),
    ]


def default_place_rules() -> list[ContextRule]:
    """Wi-Fi, time-of-day and area rules, ending with the catch-all."""
    return [
        ContextRule(
            id="wifi-home-wfh",
            name="Working from home",
            description="Home Wi-Fi during office hours on a weekday",
            priority=89,
            conditions=RuleConditions(
                wifi=WifiCondition(home=True),
                time=TimeCondition(hour_range=HourRange(start=9, end=18), is_weekend=False),
            ),
            result="Indoor at home (working from home)",
        ),
        ContextRule(
            id="wifi-home",
            name="Indoor at home",
            description="Connected to the home Wi-Fi",
            priority=88,
            conditions=RuleConditions(wifi=WifiCondition(home=True)),
            result="Indoor at home",
        ),
        ContextRule(
            id="wifi-work",
            name="Indoor at work",
            description="Connected to the work Wi-Fi",
            priority=88,
            conditions=RuleConditions(wifi=WifiCondition(work=True)),
            result="Indoor at work",
        ),
        ContextRule(
            id="wifi-work-hours",
            name="Known Wi-Fi during work hours",
            description="Any known Wi-Fi on a weekday between 9 and 18",
            priority=86,
            conditions=RuleConditions(
                wifi=WifiCondition(known=True),
                time=TimeCondition(hour_range=HourRange(start=9, end=18), is_weekend=False),
            ),
            result="Indoor at work",
        ),
        ContextRule(
            id="wifi-home-evening",
            name="Known Wi-Fi in the evening",
            description="Any known Wi-Fi between 18 and 23",
            priority=85,
            conditions=RuleConditions(
                wifi=WifiCondition(known=True),
                time=TimeCondition(hour_range=HourRange(start=18, end=23)),
            ),
            result="Indoor at home",
        ),
        ContextRule(
            id="wifi-home-morning",
            name="Known Wi-Fi in the morning",
            description="Any known Wi-Fi between 6 and 9",
            priority=85,
            conditions=RuleConditions(
                wifi=WifiCondition(known=True),
                time=TimeCondition(hour_range=HourRange(start=6, end=9)),
            ),
            result="Indoor at home",
        ),
        ContextRule(
            id="underground-transport",
            name="Underground transport",
            description="Moving with no cellular signal and no car",
            priority=83,
            conditions=RuleConditions(
                connectivity=ConnectivityCondition(cellular_signal=False, car_bluetooth=False),
                movement=MovementCondition(is_moving=True),
            ),
            result=ContextLabel.UNDERGROUND_TRANSPORT.value,
        ),
        ContextRule(
            id="wifi-home-weekend",
            name="Known Wi-Fi at the weekend",
            description="Any known Wi-Fi on Saturday or Sunday",
            priority=80,
            conditions=RuleConditions(
                wifi=WifiCondition(known=True),
                time=TimeCondition(is_weekend=True),
            ),
            result="Indoor at home",
        ),
        ContextRule(
            id="outdoor-transport",
            name="Outdoor transport",
            description="Good GPS at vehicle speed without car Bluetooth",
            priority=75,
            conditions=RuleConditions(
                location=LocationCondition(gps_quality=_GOOD),
                movement=MovementCondition(speed=Range(min=25)),
                connectivity=ConnectivityCondition(car_bluetooth=False),
            ),
            result="Outdoor transport",
        ),
        ContextRule(
            id="gps-home-area",
            name="Outdoor at home",
            description="Inside the home area, slow, off Wi-Fi",
            priority=70,
            conditions=RuleConditions(
                location=LocationCondition(inside_home=True, gps_quality=_GOOD),
                wifi=WifiCondition(known=False),
                movement=MovementCondition(speed=Range(max=5)),
            ),
            result="Outdoor at home",
        ),
        ContextRule(
            id="gps-work-area",
            name="Outdoor at work",
            description="Inside the work area, slow, off Wi-Fi",
            priority=70,
            conditions=RuleConditions(
                location=LocationCondition(inside_work=True, gps_quality=_GOOD),
                wifi=WifiCondition(known=False),
                movement=MovementCondition(speed=Range(max=5)),
            ),
            result="Outdoor at work",
        ),
        ContextRule(
            id="generic-outdoor",
            name="Outdoor",
            description="Good GPS fix and no Wi-Fi",
            priority=40,
            conditions=RuleConditions(
                location=LocationCondition(gps_quality=_GOOD),
                wifi=WifiCondition(known=False),
            ),
            result="Outdoor",
        ),
        ContextRule(
            id="likely-work",
            name="Likely at work",
            description="Left home Wi-Fi during the morning commute window",
            priority=40,
            conditions=RuleConditions(
                context=ContextCondition(previous_wifi="home"),
                time=TimeCondition(hour_range=HourRange(start=8, end=10)),
            ),
            result="Indoor at work",
        ),
        ContextRule(
            id="maintain-indoor",
            name="Stay indoor",
            description="Previously indoor and not moving",
            priority=30,
            conditions=RuleConditions(
                context=ContextCondition(latest_context_starts_with="Indoor"),
                movement=MovementCondition(is_moving=False),
            ),
            result="Indoor",
        ),
        ContextRule(
            id="generic-indoor",
            name="Indoor",
            description="Fallback when nothing else matches",
            priority=10,
            result="Indoor",
        ),
    ]


def default_rules() -> list[ContextRule]:
    """The full default rule set, ending with the priority-10 catch-all."""
    return [*default_movement_rules(), *default_place_rules()]


def create_default_engine() -> RuleEngine:
    """Instantiate a :class:`RuleEngine` pre-loaded with the default rules."""
    return RuleEngine(default_rules())


# ── Templates ─────────────────────────────────────────────────


class RuleTemplate(BaseModel):
    """A starting point for a user-defined rule."""

    id: str
    name: str
    description: str = ""
    category: str = Field(..., pattern="^(location|activity|transport|time)$")
    rule: dict[str, Any]


RULE_TEMPLATES: list[RuleTemplate] = [
    RuleTemplate(
        id="indoor-gym",
        name="Indoor at gym",
        description="Specific Wi-Fi network for gym",
        category="location",
        rule={
            "name": "Indoor at gym",
            "description": "Connected to gym Wi-Fi",
            "priority": 85,
            "conditions": {"wifi": {"known": True}},
            "result": "Indoor at gym",
        },
    ),
    RuleTemplate(
        id="indoor-shopping",
        name="Indoor shopping",
        description="Shopping center or mall Wi-Fi",
        category="location",
        rule={
            "name": "Indoor shopping",
            "description": "Connected to shopping center Wi-Fi",
            "priority": 85,
            "conditions": {"wifi": {"known": True}},
            "result": "Indoor shopping",
        },
    ),
    RuleTemplate(
        id="indoor-restaurant",
        name="Indoor restaurant",
        description="Restaurant or cafe Wi-Fi",
        category="location",
        rule={
            "name": "Indoor restaurant",
            "description": "Connected to restaurant Wi-Fi",
            "priority": 85,
            "conditions": {"wifi": {"known": True}},
            "result": "Indoor restaurant",
        },
    ),
    RuleTemplate(
        id="outdoor-exercise",
        name="Outdoor exercise",
        description="Stationary outdoor exercise",
        category="activity",
        rule={
            "name": "Outdoor exercise",
            "description": "Minimal movement outdoors",
            "priority": 70,
            "conditions": {
                "location": {"gps_quality": "good"},
                "movement": {"speed": {"max": 2}},
            },
            "result": "Outdoor exercise",
        },
    ),
    RuleTemplate(
        id="train-transport",
        name="Train transport",
        description="Train-like speed pattern",
        category="transport",
        rule={
            "name": "Train transport",
            "description": "High speed with stops",
            "priority": 80,
            "conditions": {"movement": {"speed": {"min": 40, "max": 120}}},
            "result": "Train transport",
        },
    ),
    RuleTemplate(
        id="bus-transport",
        name="Bus transport",
        description="Bus-like speed pattern",
        category="transport",
        rule={
            "name": "Bus transport",
            "description": "Medium speed with frequent stops",
            "priority": 75,
            "conditions": {"movement": {"speed": {"min": 15, "max": 50}}},
            "result": "Bus transport",
        },
    ),
    RuleTemplate(
        id="night-indoor",
        name="Night indoor",
        description="Late night hours indoors",
        category="time",
        rule={
            "name": "Night indoor",
            "description": "Indoor during night hours",
            "priority": 50,
            "conditions": {
                "time": {"hour_range": {"start": 22, "end": 6}},
                "movement": {"speed": {"max": 1}},
            },
            "result": "Indoor at night",
        },
    ),
    RuleTemplate(
        id="early-morning-commute",
        name="Morning commute",
        description="Early morning movement",
        category="time",
        rule={
            "name": "Morning commute",
            "description": "Movement during early morning hours",
            "priority": 65,
            "conditions": {
                "time": {"hour_range": {"start": 7, "end": 9}},
                "movement": {"speed": {"min": 5}},
            },
            "result": "Morning commute",
        },
    ),
]


def get_template(template_id: str) -> RuleTemplate:
    for template in RULE_TEMPLATES:
        if template.id == template_id:
            return template
    raise RuleTemplateNotFound(template_id)


def create_rule_from_template(template_id: str, **overrides: Any) -> ContextRule:
    """Build a new rule from a template, with a fresh ``custom_*`` id.

    Keyword overrides replace top-level rule fields (``priority``,
    ``result``, ``conditions`` ...).
    """
    template = get_template(template_id)
    data: dict[str, Any] = {"id": f"custom_{uuid.uuid4().hex[:12]}", **template.rule}
    data.update(overrides)
    return ContextRule.model_validate(data)
